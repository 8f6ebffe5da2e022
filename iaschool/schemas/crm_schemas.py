# iaschool/schemas/crm_schemas.py
from datetime import datetime
from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel, Field

from ..models.tenant_specific.crm import CampaignType
from ..models.tenant_specific.user import UserRole


class SegmentFilters(BaseModel):
    roles: List[UserRole] = Field(default_factory=lambda: [UserRole.PADRE])
    group_id: Optional[UUID] = Field(default=None)


class SegmentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None)
    filters: SegmentFilters = Field(default_factory=SegmentFilters)


class SegmentUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None)
    filters: Optional[SegmentFilters] = Field(default=None)


class TemplateCreate(BaseModel):
    name: str = Field(..., max_length=200)
    subject: str = Field(..., max_length=300)
    content: str = Field(..., description="HTML with {{name}} and {{school}} placeholders")
    category: Optional[str] = Field(default=None, max_length=50)
    is_default: bool = Field(default=False)


class TemplateUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    subject: Optional[str] = Field(default=None, min_length=1, max_length=300)
    content: Optional[str] = Field(default=None, min_length=1)
    category: Optional[str] = Field(default=None, max_length=50)


class CampaignCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    subject: Optional[str] = Field(default=None, max_length=300)
    content: Optional[str] = Field(default=None)
    type: CampaignType = Field(default=CampaignType.EMAIL)
    segment_id: Optional[UUID] = Field(default=None)
    template_id: Optional[UUID] = Field(default=None)
    scheduled_at: Optional[datetime] = Field(default=None)
