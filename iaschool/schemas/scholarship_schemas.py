# iaschool/schemas/scholarship_schemas.py
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel, Field, model_validator

from ..models.tenant_specific.scholarship import ScholarshipType, DiscountType, ScholarshipApplyTo


class ScholarshipBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None)
    type: ScholarshipType = Field(default=ScholarshipType.OTRA)
    discount_type: DiscountType = Field(default=DiscountType.PERCENTAGE)
    discount_value: Decimal = Field(..., description="Percentage (0-100] or fixed amount")
    apply_to: ScholarshipApplyTo = Field(default=ScholarshipApplyTo.COLEGIATURA)
    min_gpa: Optional[Decimal] = Field(default=None, ge=0, le=10)
    requirements: Optional[str] = Field(default=None)
    max_beneficiaries: Optional[int] = Field(default=None, gt=0)
    valid_from: Optional[datetime] = Field(default=None)
    valid_until: Optional[datetime] = Field(default=None)
    is_active: bool = Field(default=True)

    @model_validator(mode='after')
    def validate_period(self):
        if self.valid_from and self.valid_until and self.valid_until < self.valid_from:
            raise ValueError('valid_until must be after valid_from')
        return self


class ScholarshipCreate(ScholarshipBase):
    pass


class ScholarshipUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None)
    type: Optional[ScholarshipType] = Field(default=None)
    discount_type: Optional[DiscountType] = Field(default=None)
    discount_value: Optional[Decimal] = Field(default=None)
    apply_to: Optional[ScholarshipApplyTo] = Field(default=None)
    min_gpa: Optional[Decimal] = Field(default=None, ge=0, le=10)
    requirements: Optional[str] = Field(default=None)
    max_beneficiaries: Optional[int] = Field(default=None, gt=0)
    valid_from: Optional[datetime] = Field(default=None)
    valid_until: Optional[datetime] = Field(default=None)
    is_active: Optional[bool] = Field(default=None)


class ScholarshipAssign(BaseModel):
    student_ids: List[UUID] = Field(..., min_length=1)
    notes: Optional[str] = Field(default=None)
