# iaschool/services/upload_service.py
"""Presigned S3 uploads: the browser PUTs the file directly to the bucket."""
import logging
import time
from typing import Any, Dict
from uuid import UUID

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..core.config import storage_settings
from ..core.exceptions import BadRequestError, ExternalServiceError
from ..core.security_utils import sanitize_file_name

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "text/plain",
}


class UploadService:
    def __init__(self, s3_client=None):
        self.s3_client = s3_client or boto3.client(
            "s3",
            endpoint_url=storage_settings.ENDPOINT_URL,
            aws_access_key_id=storage_settings.ACCESS_KEY_ID,
            aws_secret_access_key=storage_settings.SECRET_ACCESS_KEY,
            region_name=storage_settings.REGION,
        )
        self.bucket = storage_settings.BUCKET

    def build_key(self, school_id: UUID, folder: str, file_name: str) -> str:
        folder = sanitize_file_name(folder or "general")
        return f"{school_id}/{folder}/{int(time.time() * 1000)}-{sanitize_file_name(file_name)}"

    def public_url(self, key: str) -> str:
        if storage_settings.PUBLIC_BASE_URL:
            return f"{storage_settings.PUBLIC_BASE_URL.rstrip('/')}/{key}"
        return f"https://{self.bucket}.s3.{storage_settings.REGION}.amazonaws.com/{key}"

    def create_presigned_upload(self, school_id: UUID, file_name: str, content_type: str, folder: str = None) -> Dict[str, Any]:
        if content_type not in ALLOWED_CONTENT_TYPES:
            raise BadRequestError("File type not allowed", content_type=content_type)
        if not (file_name or "").strip():
            raise BadRequestError("File name is required", field="file_name")

        key = self.build_key(school_id, folder, file_name)
        try:
            upload_url = self.s3_client.generate_presigned_url(
                "put_object",
                Params={"Bucket": self.bucket, "Key": key, "ContentType": content_type},
                ExpiresIn=storage_settings.PRESIGN_EXPIRES,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Failed to presign upload for {key}: {e}")
            raise ExternalServiceError("storage", "Could not prepare the upload")

        logger.info(f"Presigned upload issued for {key}")
        return {
            "upload_url": upload_url,
            "file_url": self.public_url(key),
            "key": key,
            "expires_in": storage_settings.PRESIGN_EXPIRES,
        }
