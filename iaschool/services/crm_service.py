# iaschool/services/crm_service.py
"""CRM: audience segments, email templates and campaign delivery."""
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from sqlalchemy import select, func, false
from sqlalchemy.ext.asyncio import AsyncSession

from .base_service import BaseService
from .notification_service import EmailSender, EmailDeliveryError, render_template
from .roster_service import RosterService
from ..core.cache import cache_manager
from ..core.exceptions import BadRequestError, NotFoundError
from ..models.shared.school import School
from ..models.tenant_specific.crm import (
    CrmSegment, EmailTemplate, Campaign, CampaignRecipient, CampaignType,
    CampaignStatus, RecipientStatus, CAMPAIGN_TRANSITIONS
)
from ..models.tenant_specific.user import User, UserRole, Student
from ..utils.dates import utcnow

logger = logging.getLogger(__name__)


def stats_cache_key(school_id: UUID) -> str:
    return cache_manager.make_key("crm", "stats", school_id)


class CrmService(BaseService[Campaign]):
    def __init__(self, db: AsyncSession):
        super().__init__(Campaign, db)
        self.roster = RosterService(db)

    # Audience

    async def resolve_audience(self, school_id: UUID, filters: Optional[Dict[str, Any]] = None) -> List[User]:
        """Active users matching segment filters; no filters means every parent"""
        filters = filters or {}
        roles = [UserRole(r) for r in filters.get("roles") or [UserRole.PADRE.value]]
        stmt = select(User).where(
            User.school_id == school_id,
            User.role.in_(roles),
            User.is_active == True,
            User.is_deleted == False
        )

        group_id = filters.get("group_id")
        if group_id:
            group_id = UUID(str(group_id))
            member_ids = set(await self.roster.get_group_tutor_ids(group_id))
            students = await self.db.execute(
                select(Student.user_id).where(Student.group_id == group_id, Student.user_id.isnot(None))
            )
            member_ids.update(students.scalars().all())
            stmt = stmt.where(User.id.in_(member_ids)) if member_ids else stmt.where(false())

        result = await self.db.execute(stmt.order_by(User.name))
        return result.scalars().all()

    async def _invalidate_stats(self, school_id: UUID):
        await cache_manager.delete(stats_cache_key(school_id))

    # Segments

    async def list_segments(self, school_id: UUID) -> List[Dict[str, Any]]:
        result = await self.db.execute(
            select(CrmSegment).where(
                CrmSegment.school_id == school_id,
                CrmSegment.is_active == True,
                CrmSegment.is_deleted == False
            ).order_by(CrmSegment.name)
        )
        segments = result.scalars().all()
        return [
            self.format_segment(s, len(await self.resolve_audience(school_id, s.filters)))
            for s in segments
        ]

    async def create_segment(self, admin: User, data: Dict[str, Any]) -> Dict[str, Any]:
        segment = CrmSegment(
            school_id=admin.school_id,
            name=data["name"],
            description=data.get("description"),
            filters=data.get("filters") or {},
            created_by=admin.id,
        )
        self.db.add(segment)
        await self.db.commit()
        await self.db.refresh(segment)
        await self._invalidate_stats(admin.school_id)
        return self.format_segment(segment, len(await self.resolve_audience(admin.school_id, segment.filters)))

    async def _get_segment(self, school_id: UUID, segment_id: UUID) -> CrmSegment:
        result = await self.db.execute(
            select(CrmSegment).where(
                CrmSegment.id == segment_id,
                CrmSegment.school_id == school_id,
                CrmSegment.is_deleted == False
            )
        )
        segment = result.scalar_one_or_none()
        if not segment:
            raise NotFoundError("Segment", segment_id)
        return segment

    async def update_segment(self, school_id: UUID, segment_id: UUID, data: Dict[str, Any]) -> Dict[str, Any]:
        segment = await self._get_segment(school_id, segment_id)
        for key, value in data.items():
            if value is not None:
                setattr(segment, key, value)
        await self.db.commit()
        await self.db.refresh(segment)
        return self.format_segment(segment, len(await self.resolve_audience(school_id, segment.filters)))

    async def deactivate_segment(self, school_id: UUID, segment_id: UUID):
        segment = await self._get_segment(school_id, segment_id)
        segment.is_active = False
        await self.db.commit()
        await self._invalidate_stats(school_id)

    # Templates

    async def list_templates(self, school_id: UUID) -> List[EmailTemplate]:
        result = await self.db.execute(
            select(EmailTemplate).where(
                EmailTemplate.school_id == school_id,
                EmailTemplate.is_deleted == False
            ).order_by(EmailTemplate.is_default.desc(), EmailTemplate.name)
        )
        return result.scalars().all()

    async def _get_template(self, school_id: UUID, template_id: UUID) -> EmailTemplate:
        result = await self.db.execute(
            select(EmailTemplate).where(
                EmailTemplate.id == template_id,
                EmailTemplate.school_id == school_id,
                EmailTemplate.is_deleted == False
            )
        )
        template = result.scalar_one_or_none()
        if not template:
            raise NotFoundError("Template", template_id)
        return template

    async def create_template(self, school_id: UUID, data: Dict[str, Any]) -> EmailTemplate:
        for field in ("name", "subject", "content"):
            if not (data.get(field) or "").strip():
                raise BadRequestError("Name, subject and content are required", field=field)
        template = EmailTemplate(school_id=school_id, **data)
        self.db.add(template)
        await self.db.commit()
        await self.db.refresh(template)
        return template

    async def update_template(self, school_id: UUID, template_id: UUID, data: Dict[str, Any]) -> EmailTemplate:
        template = await self._get_template(school_id, template_id)
        for key, value in data.items():
            if value is not None:
                setattr(template, key, value)
        await self.db.commit()
        await self.db.refresh(template)
        return template

    async def delete_template(self, school_id: UUID, template_id: UUID):
        template = await self._get_template(school_id, template_id)
        if template.is_default:
            raise BadRequestError("Default templates cannot be deleted")
        template.is_deleted = True
        await self.db.commit()

    # Campaigns

    async def list_campaigns(self, school_id: UUID, status: Optional[CampaignStatus] = None) -> List[Campaign]:
        stmt = select(Campaign).where(Campaign.school_id == school_id, Campaign.is_deleted == False)
        if status:
            stmt = stmt.where(Campaign.status == status)
        result = await self.db.execute(stmt.order_by(Campaign.created_at.desc()))
        return result.scalars().all()

    async def create_campaign(self, admin: User, data: Dict[str, Any]) -> Campaign:
        segment = None
        if data.get("segment_id"):
            segment = await self._get_segment(admin.school_id, data["segment_id"])

        content, subject = data.get("content"), data.get("subject")
        if data.get("template_id"):
            template = await self._get_template(admin.school_id, data["template_id"])
            content = content or template.content
            subject = subject or template.subject
        if not (content or "").strip():
            raise BadRequestError("Campaign content is required", field="content")

        audience = await self.resolve_audience(admin.school_id, segment.filters if segment else None)
        campaign = Campaign(
            school_id=admin.school_id,
            name=data["name"],
            subject=subject,
            content=content,
            type=data.get("type") or CampaignType.EMAIL,
            segment_id=segment.id if segment else None,
            template_id=data.get("template_id"),
            scheduled_at=data.get("scheduled_at"),
            status=CampaignStatus.DRAFT,
            total_recipients=len(audience),
            created_by=admin.id,
        )
        self.db.add(campaign)
        await self.db.commit()
        await self.db.refresh(campaign)
        await self._invalidate_stats(admin.school_id)
        logger.info(f"Campaign {campaign.id} created with {len(audience)} recipients")
        return campaign

    async def delete_campaign(self, school_id: UUID, campaign_id: UUID):
        campaign = await self.get_or_404(campaign_id, school_id)
        if campaign.status != CampaignStatus.DRAFT:
            raise BadRequestError("Only draft campaigns can be deleted")
        campaign.is_deleted = True
        await self.db.commit()
        await self._invalidate_stats(school_id)

    async def start_sending(self, admin: User, campaign_id: UUID) -> Campaign:
        """Freeze the audience and hand the campaign over to the delivery worker"""
        campaign = await self.get_or_404(campaign_id, admin.school_id)
        if campaign.status != CampaignStatus.DRAFT:
            raise BadRequestError("Only draft campaigns can be sent")
        CAMPAIGN_TRANSITIONS.validate(campaign.status, CampaignStatus.SENDING)

        audience = await self.resolve_audience(admin.school_id, campaign.segment.filters if campaign.segment else None)
        if not audience:
            raise BadRequestError("The campaign has no recipients")

        for user in audience:
            self.db.add(CampaignRecipient(
                campaign_id=campaign.id,
                user_id=user.id,
                email=user.email,
                name=user.name,
                status=RecipientStatus.PENDING,
            ))
        campaign.total_recipients = len(audience)
        campaign.status = CampaignStatus.SENDING

        await self.db.commit()
        await self.db.refresh(campaign)
        await self._invalidate_stats(admin.school_id)
        logger.info(f"Campaign {campaign.id} queued for {len(audience)} recipients")
        return campaign

    async def deliver(self, campaign_id: UUID, sender: EmailSender = None) -> Campaign:
        """Send every pending recipient email and close the campaign"""
        sender = sender or EmailSender()
        campaign = await self.get_or_404(campaign_id)
        if campaign.status != CampaignStatus.SENDING:
            logger.warning(f"Campaign {campaign.id} is {campaign.status.value}; nothing to deliver")
            return campaign

        school = (await self.db.execute(select(School).where(School.id == campaign.school_id))).scalar_one()
        result = await self.db.execute(
            select(CampaignRecipient).where(
                CampaignRecipient.campaign_id == campaign.id,
                CampaignRecipient.status == RecipientStatus.PENDING
            )
        )
        recipients = result.scalars().all()

        delivered = 0
        async with sender.client() as client:
            for recipient in recipients:
                context = {"name": recipient.name, "school": school.name, "email": recipient.email}
                try:
                    await sender.send(
                        client,
                        to_email=recipient.email,
                        to_name=recipient.name,
                        subject=render_template(campaign.subject or campaign.name, context),
                        html=render_template(campaign.content, context),
                        metadata={"campaign_id": str(campaign.id), "recipient_id": str(recipient.id)},
                    )
                except EmailDeliveryError as e:
                    recipient.status = RecipientStatus.FAILED
                    recipient.error = str(e)[:500]
                    continue
                recipient.status = RecipientStatus.SENT
                recipient.sent_at = utcnow()
                delivered += 1

        campaign.delivered_count = (campaign.delivered_count or 0) + delivered
        final_status = CampaignStatus.FAILED if recipients and delivered == 0 else CampaignStatus.SENT
        CAMPAIGN_TRANSITIONS.validate(campaign.status, final_status)
        campaign.status = final_status
        campaign.sent_at = utcnow()

        await self.db.commit()
        await self.db.refresh(campaign)
        await self._invalidate_stats(campaign.school_id)
        logger.info(f"Campaign {campaign.id} {final_status.value}: {delivered}/{len(recipients)} delivered")
        return campaign

    async def track_open(self, campaign_id: UUID, recipient_id: UUID) -> bool:
        result = await self.db.execute(
            select(CampaignRecipient).where(
                CampaignRecipient.id == recipient_id,
                CampaignRecipient.campaign_id == campaign_id
            )
        )
        recipient = result.scalar_one_or_none()
        if not recipient:
            raise NotFoundError("Recipient", recipient_id)
        if recipient.opened_at:
            return False

        campaign = await self.get_or_404(campaign_id)
        recipient.status = RecipientStatus.OPENED
        recipient.opened_at = utcnow()
        campaign.opened_count = (campaign.opened_count or 0) + 1
        await self.db.commit()
        await self._invalidate_stats(campaign.school_id)
        return True

    async def get_stats(self, school_id: UUID) -> Dict[str, Any]:
        key = stats_cache_key(school_id)
        cached = await cache_manager.get(key)
        if cached:
            return cached

        total_contacts = (await self.db.execute(
            select(func.count()).select_from(User).where(
                User.school_id == school_id,
                User.role == UserRole.PADRE,
                User.is_active == True,
                User.is_deleted == False
            )
        )).scalar()
        total_segments = (await self.db.execute(
            select(func.count()).select_from(CrmSegment).where(
                CrmSegment.school_id == school_id,
                CrmSegment.is_active == True,
                CrmSegment.is_deleted == False
            )
        )).scalar()

        campaigns = await self.list_campaigns(school_id)
        by_status = {s.value: 0 for s in CampaignStatus}
        for campaign in campaigns:
            by_status[campaign.status.value] += 1

        sent = [c for c in campaigns if c.status == CampaignStatus.SENT]
        total_delivered = sum(c.delivered_count for c in sent)
        total_opened = sum(c.opened_count for c in sent)
        stats = {
            "total_contacts": total_contacts,
            "total_segments": total_segments,
            "total_campaigns": len(campaigns),
            "campaigns_by_status": by_status,
            "total_sent": len(sent),
            "total_delivered": total_delivered,
            "total_opened": total_opened,
            "open_rate": round(total_opened / total_delivered * 100, 1) if total_delivered else 0.0,
        }
        await cache_manager.set(key, stats)
        return stats

    # Formatting

    @staticmethod
    def format_segment(segment: CrmSegment, user_count: int) -> Dict[str, Any]:
        return {
            "id": str(segment.id),
            "name": segment.name,
            "description": segment.description,
            "filters": segment.filters or {},
            "is_active": segment.is_active,
            "user_count": user_count,
        }

    @staticmethod
    def format_template(template: EmailTemplate) -> Dict[str, Any]:
        return {
            "id": str(template.id),
            "name": template.name,
            "subject": template.subject,
            "content": template.content,
            "category": template.category,
            "is_default": template.is_default,
        }

    @staticmethod
    def format_campaign(campaign: Campaign) -> Dict[str, Any]:
        return {
            "id": str(campaign.id),
            "name": campaign.name,
            "subject": campaign.subject,
            "content": campaign.content,
            "type": campaign.type.value,
            "status": campaign.status.value,
            "segment_id": str(campaign.segment_id) if campaign.segment_id else None,
            "segment_name": campaign.segment.name if campaign.segment else None,
            "template_id": str(campaign.template_id) if campaign.template_id else None,
            "total_recipients": campaign.total_recipients,
            "delivered_count": campaign.delivered_count,
            "opened_count": campaign.opened_count,
            "clicked_count": campaign.clicked_count,
            "scheduled_at": campaign.scheduled_at.isoformat() if campaign.scheduled_at else None,
            "sent_at": campaign.sent_at.isoformat() if campaign.sent_at else None,
            "created_at": campaign.created_at.isoformat(),
        }
