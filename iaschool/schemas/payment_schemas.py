# iaschool/schemas/payment_schemas.py
"""Pydantic schemas for charges, payments and bank data."""
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field

from ..models.tenant_specific.payment import ChargeStatus, ChargeType, PaymentMethod


class ChargeCreate(BaseModel):
    student_id: UUID
    concept: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None)
    type: ChargeType = Field(default=ChargeType.COLEGIATURA)
    amount: Decimal = Field(..., description="Amount before scholarship discounts")
    due_date: datetime


class ChargeUpdate(BaseModel):
    concept: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None)
    amount: Optional[Decimal] = Field(default=None)
    due_date: Optional[datetime] = Field(default=None)
    status: Optional[ChargeStatus] = Field(default=None)


class PaymentCreate(BaseModel):
    amount: Decimal
    method: PaymentMethod = Field(default=PaymentMethod.EFECTIVO)
    reference: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = Field(default=None)
    paid_at: Optional[datetime] = Field(default=None)


class BankConfigUpdate(BaseModel):
    bank_name: Optional[str] = Field(default=None, max_length=100)
    bank_account_holder: Optional[str] = Field(default=None, max_length=200)
    bank_clabe: Optional[str] = Field(default=None, description="18-digit CLABE")
    bank_reference_prefix: Optional[str] = Field(default=None, max_length=10)
