from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from ...core.database import get_db
from ...core.dependencies import require_admin_sub_roles
from ...models.tenant_specific.crm import CampaignStatus
from ...models.tenant_specific.user import User, AdminSubRole
from ...schemas.crm_schemas import (
    SegmentCreate, SegmentUpdate, TemplateCreate, TemplateUpdate, CampaignCreate
)
from ...services.crm_service import CrmService
from ...tasks.campaign_tasks import deliver_campaign

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/school_authority/crm", tags=["School Authority - CRM"])

require_communication = require_admin_sub_roles(AdminSubRole.DIRECCION, AdminSubRole.COMUNICACION)


@router.get("/stats")
async def get_stats(
    current_user: User = Depends(require_communication),
    db: AsyncSession = Depends(get_db)
):
    service = CrmService(db)
    return await service.get_stats(current_user.school_id)


# Segments

@router.get("/segments")
async def list_segments(
    current_user: User = Depends(require_communication),
    db: AsyncSession = Depends(get_db)
):
    service = CrmService(db)
    segments = await service.list_segments(current_user.school_id)
    return {"items": segments, "total": len(segments)}


@router.post("/segments", status_code=201)
async def create_segment(
    payload: SegmentCreate,
    current_user: User = Depends(require_communication),
    db: AsyncSession = Depends(get_db)
):
    service = CrmService(db)
    return await service.create_segment(current_user, payload.model_dump(mode="json"))


@router.put("/segments/{segment_id}")
async def update_segment(
    segment_id: UUID,
    payload: SegmentUpdate,
    current_user: User = Depends(require_communication),
    db: AsyncSession = Depends(get_db)
):
    service = CrmService(db)
    return await service.update_segment(
        current_user.school_id, segment_id, payload.model_dump(mode="json", exclude_unset=True)
    )


@router.delete("/segments/{segment_id}")
async def delete_segment(
    segment_id: UUID,
    current_user: User = Depends(require_communication),
    db: AsyncSession = Depends(get_db)
):
    service = CrmService(db)
    await service.deactivate_segment(current_user.school_id, segment_id)
    return {"message": "Segment deactivated"}


# Templates

@router.get("/templates")
async def list_templates(
    current_user: User = Depends(require_communication),
    db: AsyncSession = Depends(get_db)
):
    service = CrmService(db)
    templates = await service.list_templates(current_user.school_id)
    return {"items": [service.format_template(t) for t in templates], "total": len(templates)}


@router.post("/templates", status_code=201)
async def create_template(
    payload: TemplateCreate,
    current_user: User = Depends(require_communication),
    db: AsyncSession = Depends(get_db)
):
    service = CrmService(db)
    template = await service.create_template(current_user.school_id, payload.model_dump())
    return service.format_template(template)


@router.put("/templates/{template_id}")
async def update_template(
    template_id: UUID,
    payload: TemplateUpdate,
    current_user: User = Depends(require_communication),
    db: AsyncSession = Depends(get_db)
):
    service = CrmService(db)
    template = await service.update_template(
        current_user.school_id, template_id, payload.model_dump(exclude_unset=True)
    )
    return service.format_template(template)


@router.delete("/templates/{template_id}")
async def delete_template(
    template_id: UUID,
    current_user: User = Depends(require_communication),
    db: AsyncSession = Depends(get_db)
):
    service = CrmService(db)
    await service.delete_template(current_user.school_id, template_id)
    return {"message": "Template deleted successfully"}


# Campaigns

@router.get("/campaigns")
async def list_campaigns(
    status: Optional[CampaignStatus] = Query(None),
    current_user: User = Depends(require_communication),
    db: AsyncSession = Depends(get_db)
):
    service = CrmService(db)
    campaigns = await service.list_campaigns(current_user.school_id, status)
    return {"items": [service.format_campaign(c) for c in campaigns], "total": len(campaigns)}


@router.post("/campaigns", status_code=201)
async def create_campaign(
    payload: CampaignCreate,
    current_user: User = Depends(require_communication),
    db: AsyncSession = Depends(get_db)
):
    service = CrmService(db)
    campaign = await service.create_campaign(current_user, payload.model_dump())
    return service.format_campaign(campaign)


@router.get("/campaigns/{campaign_id}")
async def get_campaign(
    campaign_id: UUID,
    current_user: User = Depends(require_communication),
    db: AsyncSession = Depends(get_db)
):
    service = CrmService(db)
    return service.format_campaign(await service.get_or_404(campaign_id, current_user.school_id))


@router.delete("/campaigns/{campaign_id}")
async def delete_campaign(
    campaign_id: UUID,
    current_user: User = Depends(require_communication),
    db: AsyncSession = Depends(get_db)
):
    service = CrmService(db)
    await service.delete_campaign(current_user.school_id, campaign_id)
    return {"message": "Campaign deleted successfully"}


@router.post("/campaigns/{campaign_id}/send", status_code=202)
async def send_campaign(
    campaign_id: UUID,
    current_user: User = Depends(require_communication),
    db: AsyncSession = Depends(get_db)
):
    """Freeze recipients and queue delivery on the worker"""
    service = CrmService(db)
    campaign = await service.start_sending(current_user, campaign_id)
    task = deliver_campaign.delay(str(campaign.id))
    logger.info(f"Campaign {campaign.id} delivery queued as task {task.id}")
    return {
        "message": "Campaign queued for delivery",
        "task_id": task.id,
        "campaign": service.format_campaign(campaign)
    }
