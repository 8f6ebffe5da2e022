from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import get_current_user, require_admin_sub_roles
from ..models.tenant_specific.payment import ChargeStatus
from ..models.tenant_specific.user import User, AdminSubRole
from ..schemas.payment_schemas import ChargeCreate, ChargeUpdate, PaymentCreate, BankConfigUpdate
from ..services.payment_service import PaymentService

router = APIRouter(prefix="/api/v1/payments", tags=["Payments"])

require_cashier = require_admin_sub_roles(AdminSubRole.DIRECCION, AdminSubRole.CAJA)


@router.get("/charges")
async def list_charges(
    status: Optional[ChargeStatus] = Query(None),
    student_id: Optional[UUID] = Query(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = PaymentService(db)
    result = await service.list_charges(current_user, status, student_id)
    result["items"] = [service.format_charge(c) for c in result["items"]]
    return result


@router.post("/charges", status_code=201)
async def create_charge(
    payload: ChargeCreate,
    current_user: User = Depends(require_cashier),
    db: AsyncSession = Depends(get_db)
):
    service = PaymentService(db)
    charge = await service.create_charge(current_user, payload.model_dump())
    return service.format_charge(charge)


@router.get("/charges/{charge_id}")
async def get_charge(
    charge_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = PaymentService(db)
    charge = await service.get_charge_for_user(current_user, charge_id)
    return service.format_charge(charge, include_payments=True)


@router.put("/charges/{charge_id}")
async def update_charge(
    charge_id: UUID,
    payload: ChargeUpdate,
    current_user: User = Depends(require_cashier),
    db: AsyncSession = Depends(get_db)
):
    service = PaymentService(db)
    charge = await service.update_charge(current_user, charge_id, payload.model_dump(exclude_unset=True))
    return service.format_charge(charge)


@router.delete("/charges/{charge_id}")
async def delete_charge(
    charge_id: UUID,
    current_user: User = Depends(require_cashier),
    db: AsyncSession = Depends(get_db)
):
    service = PaymentService(db)
    await service.delete_charge(current_user, charge_id)
    return {"message": "Charge deleted successfully"}


@router.post("/charges/{charge_id}/payments", status_code=201)
async def record_payment(
    charge_id: UUID,
    payload: PaymentCreate,
    current_user: User = Depends(require_cashier),
    db: AsyncSession = Depends(get_db)
):
    """Register a payment against a charge"""
    service = PaymentService(db)
    payment = await service.record_payment(current_user, charge_id, payload.model_dump())
    charge = await service.get_or_404(charge_id, current_user.school_id)
    return {
        "message": "Payment recorded successfully",
        "payment": service.format_payment(payment),
        "charge": service.format_charge(charge)
    }


@router.get("/charges/{charge_id}/spei-reference")
async def spei_reference(
    charge_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = PaymentService(db)
    return await service.get_spei_reference(current_user, charge_id)


@router.get("/bank-config")
async def get_bank_config(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = PaymentService(db)
    return await service.get_bank_config(current_user.school_id)


@router.put("/bank-config")
async def update_bank_config(
    payload: BankConfigUpdate,
    current_user: User = Depends(require_cashier),
    db: AsyncSession = Depends(get_db)
):
    service = PaymentService(db)
    return await service.update_bank_config(current_user.school_id, payload.model_dump(exclude_unset=True))
