import asyncio
import logging
from uuid import UUID

from .celery_app import celery_app
from ..core.database import AsyncBackgroundSessionLocal
from ..services.crm_service import CrmService

logger = logging.getLogger(__name__)


async def _deliver(campaign_id: str) -> dict:
    async with AsyncBackgroundSessionLocal() as db:
        campaign = await CrmService(db).deliver(UUID(campaign_id))
        return {
            "campaign_id": campaign_id,
            "status": campaign.status.value,
            "delivered_count": campaign.delivered_count,
        }


@celery_app.task(bind=True, name="iaschool.tasks.campaign_tasks.deliver_campaign")
def deliver_campaign(self, campaign_id: str):
    """Send a campaign that has already been moved to SENDING"""
    logger.info(f"Delivering campaign {campaign_id} (task {self.request.id})")
    result = asyncio.run(_deliver(campaign_id))
    logger.info(f"Campaign {campaign_id} finished as {result['status']}")
    return result
