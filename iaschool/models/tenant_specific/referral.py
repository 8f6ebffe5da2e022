from sqlalchemy import Column, String, Boolean, Integer, Numeric, Text, ForeignKey, Enum, UniqueConstraint, Index
from sqlalchemy.orm import relationship
import enum

from ..base import Base, TenantMixin
from ..types import GUID, JSONType, UTCDateTime
from ...core.workflow import TransitionTable


class ReferralStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONTACTED = "CONTACTED"
    INTERESTED = "INTERESTED"
    ENROLLED = "ENROLLED"
    NOT_INTERESTED = "NOT_INTERESTED"
    ALREADY_REFERRED = "ALREADY_REFERRED"
    INVALID = "INVALID"


class RewardType(str, enum.Enum):
    DISCOUNT_PERCENTAGE = "DISCOUNT_PERCENTAGE"
    DISCOUNT_FIXED = "DISCOUNT_FIXED"
    CREDIT = "CREDIT"
    GIFT = "GIFT"


class RewardStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    APPLIED = "APPLIED"
    EXPIRED = "EXPIRED"


PENDING_REFERRAL_STATUSES = (ReferralStatus.PENDING, ReferralStatus.CONTACTED, ReferralStatus.INTERESTED)

REFERRAL_TRANSITIONS = TransitionTable("Referral", {
    ReferralStatus.PENDING: [
        ReferralStatus.CONTACTED, ReferralStatus.INTERESTED, ReferralStatus.NOT_INTERESTED,
        ReferralStatus.ALREADY_REFERRED, ReferralStatus.INVALID,
    ],
    ReferralStatus.CONTACTED: [
        ReferralStatus.INTERESTED, ReferralStatus.ENROLLED, ReferralStatus.NOT_INTERESTED,
        ReferralStatus.INVALID,
    ],
    ReferralStatus.INTERESTED: [
        ReferralStatus.CONTACTED, ReferralStatus.ENROLLED, ReferralStatus.NOT_INTERESTED,
    ],
    ReferralStatus.NOT_INTERESTED: [ReferralStatus.CONTACTED],
})


class ReferralProgram(TenantMixin, Base):
    __tablename__ = "referral_programs"

    is_active = Column(Boolean, default=True, nullable=False)
    reward_type = Column(Enum(RewardType, name="reward_type"), nullable=False, default=RewardType.DISCOUNT_PERCENTAGE)
    reward_value = Column(Numeric(10, 2), nullable=False, default=10)
    reward_description = Column(String(500), nullable=True)
    max_rewards_per_year = Column(Integer, nullable=False, default=5)
    requires_active_account = Column(Boolean, nullable=False, default=True)
    requires_min_months = Column(Integer, nullable=False, default=3)
    terms_and_conditions = Column(Text, nullable=True)

    # Counters
    total_referrals = Column(Integer, nullable=False, default=0)
    successful_referrals = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint('school_id', name='uq_referral_program_school'),
    )


class Referral(TenantMixin, Base):
    __tablename__ = "referrals"

    referrer_id = Column(GUID(), ForeignKey("users.id"), nullable=False, index=True)

    referred_name = Column(String(200), nullable=False)
    referred_phone = Column(String(30), nullable=False)
    phone_hash = Column(String(64), nullable=False)
    referred_email = Column(String(255), nullable=True)
    children_count = Column(Integer, nullable=True)
    children_grades = Column(String(200), nullable=True)
    notes = Column(Text, nullable=True)

    status = Column(Enum(ReferralStatus, name="referral_status"), nullable=False, default=ReferralStatus.PENDING, index=True)
    status_history = Column(JSONType(), nullable=False, default=list)
    admin_notes = Column(Text, nullable=True)
    contacted_at = Column(UTCDateTime(), nullable=True)
    enrolled_at = Column(UTCDateTime(), nullable=True)

    referrer = relationship("User", lazy="selectin")
    reward = relationship("ReferralReward", back_populates="referral", uselist=False, lazy="selectin")

    __table_args__ = (
        UniqueConstraint('school_id', 'phone_hash', name='uq_referral_school_phone'),
        Index('idx_referral_school_status', 'school_id', 'status'),
    )


class ReferralReward(TenantMixin, Base):
    __tablename__ = "referral_rewards"

    # One reward per referral, enforced by the database as well
    referral_id = Column(GUID(), ForeignKey("referrals.id"), nullable=False, unique=True)
    beneficiary_id = Column(GUID(), ForeignKey("users.id"), nullable=False, index=True)

    reward_type = Column(Enum(RewardType, name="reward_type"), nullable=False)
    reward_value = Column(Numeric(10, 2), nullable=False)
    description = Column(String(500), nullable=True)
    status = Column(Enum(RewardStatus, name="reward_status"), nullable=False, default=RewardStatus.ACTIVE, index=True)
    expires_at = Column(UTCDateTime(), nullable=True)
    applied_at = Column(UTCDateTime(), nullable=True)

    referral = relationship("Referral", back_populates="reward")
