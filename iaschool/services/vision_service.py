# iaschool/services/vision_service.py
"""Delegated face recognition: asks a vision model which reference students appear in a photo."""
import json
import logging
import re
from typing import Any, Dict, List, Optional

import httpx

from ..core.config import gallery_ai_settings

logger = logging.getLogger(__name__)

FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)


class VisionServiceException(Exception):
    """Custom exception for vision service errors"""
    pass


def parse_recognition(text: str) -> List[Dict[str, Any]]:
    """Parse the model answer, tolerating markdown code fences"""
    cleaned = FENCE_RE.sub("", (text or "").strip()).strip()
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        start, end = cleaned.find("{"), cleaned.rfind("}") + 1
        if start < 0 or end <= start:
            raise VisionServiceException("Invalid vision response format")
        try:
            data = json.loads(cleaned[start:end])
        except json.JSONDecodeError:
            raise VisionServiceException("Invalid vision response format")

    if isinstance(data, dict):
        data = data.get("recognized") or data.get("students") or []
    if not isinstance(data, list):
        raise VisionServiceException("Invalid vision response format")

    matches = []
    for item in data:
        if not isinstance(item, dict) or not item.get("student_id"):
            continue
        try:
            confidence = float(item.get("confidence", 0.5))
        except (TypeError, ValueError):
            confidence = 0.5
        matches.append({"student_id": str(item["student_id"]), "confidence": max(0.0, min(confidence, 1.0))})
    return matches


class VisionService:
    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = gallery_ai_settings.API_KEY
        self.base_url = gallery_ai_settings.API_URL
        self.model = gallery_ai_settings.MODEL
        self._transport = transport

        if not self.api_key:
            raise VisionServiceException("Vision service not properly configured")

        self.headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }

    def _build_payload(self, photo_url: str, references: List[Dict[str, str]]) -> Dict[str, Any]:
        roster = "\n".join(f"- {ref['student_id']}: {ref['name']}" for ref in references)
        content = [{
            "type": "text",
            "text": (
                "The first image is a school photo. The following images are reference portraits "
                "of students, in this order:\n"
                f"{roster}\n"
                "Return JSON only: {\"recognized\": [{\"student_id\": \"...\", \"confidence\": 0.0-1.0}]} "
                "listing the students that appear in the first image."
            )
        }, {"type": "image_url", "image_url": {"url": photo_url}}]
        content.extend({"type": "image_url", "image_url": {"url": ref["photo_url"]}} for ref in references)

        return {
            "model": self.model,
            "messages": [{"role": "user", "content": content}],
            "max_tokens": gallery_ai_settings.MAX_TOKENS,
            "temperature": 0,
        }

    async def recognize_students(self, photo_url: str, references: List[Dict[str, str]]) -> List[Dict[str, Any]]:
        payload = self._build_payload(photo_url, references[:gallery_ai_settings.MAX_REFERENCE_STUDENTS])
        try:
            async with httpx.AsyncClient(timeout=gallery_ai_settings.TIMEOUT, transport=self._transport) as client:
                response = await client.post(self.base_url, headers=self.headers, json=payload)
                response.raise_for_status()
                result = response.json()
                answer = result["choices"][0]["message"]["content"]
        except httpx.TimeoutException:
            logger.error("Vision API timeout")
            raise VisionServiceException("Vision service timeout")
        except httpx.HTTPStatusError as e:
            logger.error(f"Vision API HTTP error: {e.response.status_code} - {e.response.text}")
            raise VisionServiceException(f"Vision service error: {e.response.status_code}")
        except httpx.HTTPError as e:
            logger.error(f"Vision API transport error: {e}")
            raise VisionServiceException(f"Vision service error: {e}")
        except (KeyError, IndexError, ValueError) as e:
            logger.error(f"Unexpected vision API response: {e}")
            raise VisionServiceException("Invalid vision response format")

        return parse_recognition(answer)
