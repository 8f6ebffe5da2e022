from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ...core.database import get_db
from ...core.dependencies import require_admin
from ...models.tenant_specific.user import User
from ...schemas.referral_schemas import ReferralProgramUpdate, ReferralUpdate
from ...services.referral_service import ReferralService

router = APIRouter(prefix="/api/v1/school_authority/referrals", tags=["School Authority - Referrals"])


@router.get("/program")
async def get_program(
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Referral program configuration, or the defaults when none is saved"""
    service = ReferralService(db)
    program = await service.get_program(current_user.school_id)
    return service.format_program(program)


@router.put("/program")
async def upsert_program(
    payload: ReferralProgramUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    service = ReferralService(db)
    program = await service.upsert_program(current_user.school_id, payload.model_dump(exclude_unset=True))
    return {"message": "Referral program saved", "program": service.format_program(program)}


@router.get("")
async def list_leads(
    status: Optional[str] = Query("ALL"),
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Referral leads, newest first"""
    service = ReferralService(db)
    result = await service.list_leads(current_user.school_id, status=status, page=page, size=size)
    result["items"] = [service.format_referral(r, include_referrer=True) for r in result["items"]]
    return result


@router.patch("")
async def update_referral(
    payload: ReferralUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    service = ReferralService(db)
    referral = await service.update_referral(
        current_user, payload.referral_id,
        status=payload.status, admin_notes=payload.admin_notes
    )
    return {"message": "Referral updated", "referral": service.format_referral(referral, include_referrer=True)}
