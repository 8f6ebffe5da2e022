# iaschool/schemas/tutor_schemas.py
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field

from ..models.tenant_specific.tutor import TutorRelationship


class TutorPermissions(BaseModel):
    has_full_access: Optional[bool] = None
    can_view_grades: Optional[bool] = None
    can_view_attendance: Optional[bool] = None
    can_view_payments: Optional[bool] = None
    can_make_payments: Optional[bool] = None
    can_pickup: Optional[bool] = None
    can_communicate: Optional[bool] = None
    can_receive_notifications: Optional[bool] = None
    can_request_permissions: Optional[bool] = None


class TutorLinkBase(TutorPermissions):
    relationship: Optional[TutorRelationship] = Field(default=None)
    relationship_detail: Optional[str] = Field(default=None, max_length=100)
    is_primary_contact: Optional[bool] = Field(default=None)
    custody_type: Optional[str] = Field(default=None, max_length=50)
    custody_notes: Optional[str] = Field(default=None)

    def to_model_values(self) -> dict:
        """Field values keyed by model attribute"""
        values = self.model_dump(exclude_unset=True)
        if "relationship" in values:
            values["relationship_type"] = values.pop("relationship")
        return values


class TutorLinkCreate(TutorLinkBase):
    student_id: UUID
    tutor_id: UUID


class TutorLinkUpdate(TutorLinkBase):
    is_active: Optional[bool] = Field(default=None)
    deactivated_reason: Optional[str] = Field(default=None, max_length=500)
