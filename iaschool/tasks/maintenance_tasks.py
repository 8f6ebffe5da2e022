import asyncio
import logging

from .celery_app import celery_app
from ..core.database import AsyncBackgroundSessionLocal
from ..services.payment_service import PaymentService
from ..services.referral_service import ReferralService

logger = logging.getLogger(__name__)


async def _mark_overdue() -> int:
    async with AsyncBackgroundSessionLocal() as db:
        return await PaymentService(db).mark_overdue_charges()


async def _expire_rewards() -> int:
    async with AsyncBackgroundSessionLocal() as db:
        return await ReferralService(db).expire_rewards()


@celery_app.task(name="iaschool.tasks.maintenance_tasks.mark_overdue_charges")
def mark_overdue_charges():
    count = asyncio.run(_mark_overdue())
    logger.info(f"Overdue sweep updated {count} charges")
    return count


@celery_app.task(name="iaschool.tasks.maintenance_tasks.expire_referral_rewards")
def expire_referral_rewards():
    count = asyncio.run(_expire_rewards())
    logger.info(f"Reward sweep expired {count} rewards")
    return count
