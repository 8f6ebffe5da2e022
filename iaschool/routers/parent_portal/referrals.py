from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ...core.database import get_db
from ...core.dependencies import require_parent
from ...models.tenant_specific.user import User
from ...schemas.referral_schemas import ReferralCreate
from ...services.referral_service import ReferralService

router = APIRouter(prefix="/api/v1/parent/referrals", tags=["Parent Portal - Referrals"])


@router.get("")
async def get_overview(
    current_user: User = Depends(require_parent),
    db: AsyncSession = Depends(get_db)
):
    """Program, own referrals, stats and eligibility"""
    service = ReferralService(db)
    return await service.get_parent_overview(current_user)


@router.post("", status_code=201)
async def submit_referral(
    payload: ReferralCreate,
    current_user: User = Depends(require_parent),
    db: AsyncSession = Depends(get_db)
):
    service = ReferralService(db)
    referral = await service.submit_referral(current_user, payload.model_dump())
    return {"message": "Referral submitted successfully", "referral": service.format_referral(referral)}
