# iaschool/schemas/enrollment_schemas.py
"""Pydantic schemas for admission applications."""
from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, Field, field_validator

from ..models.tenant_specific.enrollment import EnrollmentStatus


class EnrollmentApplication(BaseModel):
    """Public admission form"""
    school_code: str = Field(..., min_length=1, max_length=20, description="School code")
    parent_name: str = Field(..., min_length=1, max_length=200)
    parent_email: EmailStr = Field(..., description="Contact email")
    parent_phone: str = Field(..., min_length=10, max_length=30)
    relationship: Optional[str] = Field(default="padre", max_length=30)
    student_name: str = Field(..., min_length=1, max_length=200)
    student_birth_date: date
    student_gender: Optional[str] = Field(default=None, max_length=20)
    previous_school: Optional[str] = Field(default=None, max_length=200)
    requested_grade: str = Field(..., min_length=1, max_length=30)
    requested_year: str = Field(..., min_length=4, max_length=10, description="School year, e.g. 2025-2026")
    notes: Optional[str] = Field(default=None, max_length=2000)

    @field_validator('parent_phone')
    @classmethod
    def validate_phone(cls, v):
        cleaned = ''.join(c for c in v if c.isdigit())
        if len(cleaned) < 10:
            raise ValueError('Phone number must have at least 10 digits')
        return v

    @field_validator('student_birth_date')
    @classmethod
    def validate_birth_date(cls, v):
        if v > date.today():
            raise ValueError('Birth date cannot be in the future')
        return v


class EnrollmentUpdate(BaseModel):
    status: Optional[EnrollmentStatus] = Field(default=None)
    priority: Optional[int] = Field(default=None, ge=0, le=10)
    interview_date: Optional[datetime] = Field(default=None)
    interview_notes: Optional[str] = Field(default=None)
    rejection_reason: Optional[str] = Field(default=None)
