# iaschool/schemas/document_schemas.py
from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field

from ..models.tenant_specific.document import DocumentType, DocumentStatus
from ..models.tenant_specific.user import UserRole


class DocumentCreate(BaseModel):
    title: str = Field(..., max_length=200)
    description: Optional[str] = Field(default=None)
    content: str
    type: DocumentType = Field(default=DocumentType.AUTORIZACION)
    target_role: Optional[UserRole] = Field(default=None)
    group_id: Optional[UUID] = Field(default=None)
    requires_all: bool = Field(default=True)
    expires_at: Optional[datetime] = Field(default=None)


class DocumentUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None)
    content: Optional[str] = Field(default=None, min_length=1)
    type: Optional[DocumentType] = Field(default=None)
    status: Optional[DocumentStatus] = Field(default=None)
    target_role: Optional[UserRole] = Field(default=None)
    group_id: Optional[UUID] = Field(default=None)
    requires_all: Optional[bool] = Field(default=None)
    expires_at: Optional[datetime] = Field(default=None)


class SignRequest(BaseModel):
    student_id: Optional[UUID] = Field(default=None)
    signature_data: Optional[str] = Field(default=None, description="Base64 signature image")
