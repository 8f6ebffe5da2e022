import hashlib
import re
import secrets
from typing import Optional


def sanitize_search_term(term: Optional[str]) -> str:
    """Sanitize search terms for LIKE queries"""
    if not isinstance(term, str):
        return ""

    # Escape LIKE wildcards
    sanitized = re.sub(r"[%_\\]", r"\\\g<0>", term.strip())
    return sanitized[:100]


def normalize_phone(phone: str) -> str:
    """Strip separators and keep the last 10 digits"""
    cleaned = re.sub(r"[\s\-\(\)\+]", "", phone or "")
    return cleaned[-10:]


def hash_phone(phone: str) -> str:
    return hashlib.sha256(normalize_phone(phone).encode("utf-8")).hexdigest()


def generate_verification_code() -> str:
    """32 hex chars used to verify a document signature"""
    return secrets.token_hex(16)


def sanitize_file_name(file_name: str) -> str:
    name = re.sub(r"[^A-Za-z0-9._-]", "-", file_name.strip())
    name = re.sub(r"-+", "-", name).strip("-.")
    return name[:120] or "file"
