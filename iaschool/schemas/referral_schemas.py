# iaschool/schemas/referral_schemas.py
from decimal import Decimal
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, EmailStr, Field

from ..models.tenant_specific.referral import ReferralStatus, RewardType


class ReferralProgramUpdate(BaseModel):
    """Program configuration; omitted fields keep their current value"""
    is_active: Optional[bool] = Field(default=None)
    reward_type: Optional[RewardType] = Field(default=None)
    reward_value: Optional[Decimal] = Field(default=None, description="Must be greater than 0")
    reward_description: Optional[str] = Field(default=None, max_length=500)
    max_rewards_per_year: Optional[int] = Field(default=None, ge=0)
    requires_active_account: Optional[bool] = Field(default=None)
    requires_min_months: Optional[int] = Field(default=None, ge=0)
    terms_and_conditions: Optional[str] = Field(default=None)


class ReferralCreate(BaseModel):
    referred_name: Optional[str] = Field(default=None, max_length=200)
    referred_phone: Optional[str] = Field(default=None, max_length=30)
    referred_email: Optional[EmailStr] = Field(default=None)
    children_count: Optional[int] = Field(default=None, ge=0, le=20)
    children_grades: Optional[str] = Field(default=None, max_length=200)
    notes: Optional[str] = Field(default=None, max_length=2000)


class ReferralUpdate(BaseModel):
    referral_id: UUID
    status: Optional[ReferralStatus] = Field(default=None)
    admin_notes: Optional[str] = Field(default=None)
