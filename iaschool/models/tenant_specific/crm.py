from sqlalchemy import Column, String, Boolean, Integer, Text, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
import enum

from ..base import Base, TenantMixin
from ..types import GUID, JSONType, UTCDateTime
from ...core.workflow import TransitionTable


class CampaignType(str, enum.Enum):
    EMAIL = "EMAIL"
    SMS = "SMS"
    PUSH = "PUSH"


class CampaignStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    SENDING = "SENDING"
    SENT = "SENT"
    FAILED = "FAILED"


class RecipientStatus(str, enum.Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"
    OPENED = "OPENED"


CAMPAIGN_TRANSITIONS = TransitionTable("Campaign", {
    CampaignStatus.DRAFT: [CampaignStatus.SENDING],
    CampaignStatus.SENDING: [CampaignStatus.SENT, CampaignStatus.FAILED],
})


class CrmSegment(TenantMixin, Base):
    __tablename__ = "crm_segments"

    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    # {"roles": ["PADRE"], "group_id": "..."}
    filters = Column(JSONType(), nullable=False, default=dict)
    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(GUID(), ForeignKey("users.id"), nullable=True)


class EmailTemplate(TenantMixin, Base):
    __tablename__ = "email_templates"

    name = Column(String(200), nullable=False)
    subject = Column(String(300), nullable=False)
    content = Column(Text, nullable=False)
    category = Column(String(50), nullable=True)
    is_default = Column(Boolean, default=False, nullable=False)


class Campaign(TenantMixin, Base):
    __tablename__ = "campaigns"

    name = Column(String(200), nullable=False)
    subject = Column(String(300), nullable=True)
    content = Column(Text, nullable=False)
    type = Column(Enum(CampaignType, name="campaign_type"), nullable=False, default=CampaignType.EMAIL)
    segment_id = Column(GUID(), ForeignKey("crm_segments.id"), nullable=True)
    template_id = Column(GUID(), ForeignKey("email_templates.id"), nullable=True)
    status = Column(Enum(CampaignStatus, name="campaign_status"), nullable=False, default=CampaignStatus.DRAFT, index=True)

    total_recipients = Column(Integer, nullable=False, default=0)
    delivered_count = Column(Integer, nullable=False, default=0)
    opened_count = Column(Integer, nullable=False, default=0)
    clicked_count = Column(Integer, nullable=False, default=0)

    scheduled_at = Column(UTCDateTime(), nullable=True)
    sent_at = Column(UTCDateTime(), nullable=True)
    created_by = Column(GUID(), ForeignKey("users.id"), nullable=False)

    segment = relationship("CrmSegment", lazy="selectin")


class CampaignRecipient(Base):
    __tablename__ = "campaign_recipients"

    campaign_id = Column(GUID(), ForeignKey("campaigns.id"), nullable=False, index=True)
    user_id = Column(GUID(), ForeignKey("users.id"), nullable=False)
    email = Column(String(255), nullable=False)
    name = Column(String(200), nullable=True)
    status = Column(Enum(RecipientStatus, name="recipient_status"), nullable=False, default=RecipientStatus.PENDING)
    sent_at = Column(UTCDateTime(), nullable=True)
    opened_at = Column(UTCDateTime(), nullable=True)
    error = Column(String(500), nullable=True)

    __table_args__ = (
        UniqueConstraint('campaign_id', 'user_id', name='uq_campaign_recipient'),
    )
