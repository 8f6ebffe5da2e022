# iaschool/schemas/upload_schemas.py
from typing import Optional
from pydantic import BaseModel, Field


class PresignedUploadRequest(BaseModel):
    file_name: str = Field(..., max_length=255)
    content_type: str = Field(..., max_length=100)
    folder: Optional[str] = Field(default="general", max_length=50)
