# iaschool/schemas/appointment_schemas.py
from datetime import date
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field

from ..models.tenant_specific.appointment import AppointmentStatus

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class AppointmentCreate(BaseModel):
    teacher_id: UUID
    student_id: Optional[UUID] = Field(default=None)
    date: date
    start_time: str = Field(..., pattern=TIME_PATTERN, description="HH:MM")
    end_time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    subject: str = Field(..., min_length=1, max_length=200)
    notes: Optional[str] = Field(default=None)


class AppointmentUpdate(BaseModel):
    status: Optional[AppointmentStatus] = Field(default=None)
    teacher_notes: Optional[str] = Field(default=None)
    notes: Optional[str] = Field(default=None)
    subject: Optional[str] = Field(default=None, min_length=1, max_length=200)
    cancel_reason: Optional[str] = Field(default=None, max_length=500)


class VideoToggle(BaseModel):
    enabled: bool = Field(default=True)
