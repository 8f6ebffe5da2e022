# iaschool/services/referral_service.py
"""Referral program: parent-submitted leads tracked through an admin pipeline."""
from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import UUID
import logging

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .base_service import BaseService
from .roster_service import RosterService
from ..core.exceptions import BadRequestError, ConflictError
from ..core.security_utils import hash_phone, normalize_phone
from ..models.tenant_specific.referral import (
    ReferralProgram, Referral, ReferralReward, ReferralStatus, RewardType, RewardStatus,
    PENDING_REFERRAL_STATUSES, REFERRAL_TRANSITIONS
)
from ..models.tenant_specific.payment import Charge, ChargeStatus
from ..models.tenant_specific.user import User
from ..utils.dates import utcnow, months_since, start_of_year

logger = logging.getLogger(__name__)

PROGRAM_DEFAULTS = {
    "is_active": True,
    "reward_type": RewardType.DISCOUNT_PERCENTAGE,
    "reward_value": Decimal("10"),
    "reward_description": None,
    "max_rewards_per_year": 5,
    "requires_active_account": True,
    "requires_min_months": 3,
    "terms_and_conditions": None,
}

REWARD_VALIDITY_DAYS = 365


class ReferralService(BaseService[Referral]):
    def __init__(self, db: AsyncSession):
        super().__init__(Referral, db)
        self.roster = RosterService(db)

    # Program configuration

    async def get_program(self, school_id: UUID) -> Optional[ReferralProgram]:
        result = await self.db.execute(
            select(ReferralProgram).where(ReferralProgram.school_id == school_id)
        )
        return result.scalar_one_or_none()

    async def upsert_program(self, school_id: UUID, data: Dict[str, Any]) -> ReferralProgram:
        reward_value = data.get("reward_value")
        if reward_value is not None and Decimal(str(reward_value)) <= 0:
            raise BadRequestError("Reward value must be greater than 0", field="reward_value")

        program = await self.get_program(school_id)
        if program is None:
            values = dict(PROGRAM_DEFAULTS)
            values.update({k: v for k, v in data.items() if v is not None})
            program = ReferralProgram(school_id=school_id, **values)
            self.db.add(program)
        else:
            for key, value in data.items():
                if value is not None:
                    setattr(program, key, value)

        await self.db.commit()
        await self.db.refresh(program)
        logger.info(f"Referral program saved for school {school_id}")
        return program

    # Parent side

    async def _rewards_this_year(self, user_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(ReferralReward).where(
                ReferralReward.beneficiary_id == user_id,
                ReferralReward.created_at >= start_of_year()
            )
        )
        return result.scalar()

    async def _pending_charges(self, parent: User) -> int:
        children = await self.roster.get_children_ids(parent.id)
        if not children:
            return 0
        result = await self.db.execute(
            select(func.count()).select_from(Charge).where(
                Charge.student_id.in_(children),
                Charge.status.in_([ChargeStatus.PENDIENTE, ChargeStatus.VENCIDO]),
                Charge.is_deleted == False
            )
        )
        return result.scalar()

    async def check_eligibility(self, parent: User, program: Optional[ReferralProgram]) -> Dict[str, Any]:
        config = program or ReferralProgram(**PROGRAM_DEFAULTS)
        pending_charges = await self._pending_charges(parent)
        months = months_since(parent.created_at) if parent.created_at else 0
        rewards_this_year = await self._rewards_this_year(parent.id)

        reasons = []
        if program is not None and not program.is_active:
            reasons.append("Referral program is not active")
        if config.requires_active_account and pending_charges > 0:
            reasons.append("Account has pending charges")
        if months < (config.requires_min_months or 0):
            reasons.append(f"Account must be at least {config.requires_min_months} months old to earn rewards")
        if rewards_this_year >= config.max_rewards_per_year:
            reasons.append("Yearly reward limit reached")

        return {
            "is_eligible": not reasons,
            "reasons": reasons,
            "pending_charges": pending_charges,
            "months_active": months,
            "rewards_this_year": rewards_this_year,
            "remaining_rewards": max(config.max_rewards_per_year - rewards_this_year, 0),
        }

    async def get_parent_overview(self, parent: User) -> Dict[str, Any]:
        program = await self.get_program(parent.school_id)
        result = await self.db.execute(
            select(Referral).where(
                Referral.referrer_id == parent.id,
                Referral.is_deleted == False
            ).order_by(Referral.created_at.desc())
        )
        referrals = result.scalars().all()
        eligibility = await self.check_eligibility(parent, program)

        return {
            "program": self.format_program(program),
            "referrals": [self.format_referral(r) for r in referrals],
            "stats": {
                "total": len(referrals),
                "successful": sum(1 for r in referrals if r.status == ReferralStatus.ENROLLED),
                "pending": sum(1 for r in referrals if r.status in PENDING_REFERRAL_STATUSES),
                "remaining_rewards": eligibility["remaining_rewards"],
            },
            "eligibility": eligibility,
        }

    async def _already_referred(self, school_id: UUID, phone_hash: str) -> bool:
        result = await self.db.execute(
            select(Referral.id).where(Referral.school_id == school_id, Referral.phone_hash == phone_hash)
        )
        return result.first() is not None

    async def submit_referral(self, parent: User, data: Dict[str, Any]) -> Referral:
        name = (data.get("referred_name") or "").strip()
        phone = (data.get("referred_phone") or "").strip()
        if not name or not phone:
            raise BadRequestError("Name and phone are required")
        if len(normalize_phone(phone)) < 10:
            raise BadRequestError("Phone must have at least 10 digits", field="referred_phone")

        program = await self.get_program(parent.school_id)
        config = program or ReferralProgram(**PROGRAM_DEFAULTS)
        if program is not None and not program.is_active:
            raise BadRequestError("Referral program is not active")

        if config.requires_active_account and await self._pending_charges(parent) > 0:
            raise BadRequestError("You must be up to date with your payments to refer")

        if await self._rewards_this_year(parent.id) >= config.max_rewards_per_year:
            raise BadRequestError("You reached the maximum rewards for this year")

        phone_hash = hash_phone(phone)
        if await self._already_referred(parent.school_id, phone_hash):
            raise ConflictError("This family was already referred", already_referred=True)

        referral = Referral(
            school_id=parent.school_id,
            referrer_id=parent.id,
            referred_name=name,
            referred_phone=phone,
            phone_hash=phone_hash,
            referred_email=data.get("referred_email"),
            children_count=data.get("children_count"),
            children_grades=data.get("children_grades"),
            notes=data.get("notes"),
            status=ReferralStatus.PENDING,
            status_history=[],
        )
        self.db.add(referral)

        if program is not None:
            program.total_referrals = (program.total_referrals or 0) + 1

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("This family was already referred", already_referred=True)
        await self.db.refresh(referral)
        logger.info(f"Referral {referral.id} submitted by {parent.id}")
        return referral

    # Admin pipeline

    async def list_leads(
        self,
        school_id: UUID,
        status: Optional[str] = None,
        page: int = 1,
        size: int = 20
    ) -> Dict[str, Any]:
        status_filter = None if not status or status == "ALL" else ReferralStatus(status)
        result = await self.get_paginated(
            school_id=school_id, page=page, size=size,
            order_by="created_at", sort="desc",
            status=status_filter
        )

        grouped = await self.db.execute(
            select(Referral.status, func.count())
            .where(Referral.school_id == school_id, Referral.is_deleted == False)
            .group_by(Referral.status)
        )
        stats = {s.value: 0 for s in ReferralStatus}
        for row_status, count in grouped.all():
            stats[ReferralStatus(row_status).value] = count
        stats["total"] = sum(stats.values())

        result["stats"] = stats
        return result

    async def update_referral(
        self,
        admin: User,
        referral_id: UUID,
        status: Optional[ReferralStatus] = None,
        admin_notes: Optional[str] = None
    ) -> Referral:
        referral = await self.get_or_404(referral_id, admin.school_id)
        now = utcnow()

        if status is not None and REFERRAL_TRANSITIONS.validate(referral.status, status):
            previous = referral.status
            referral.status_history = list(referral.status_history or []) + [{
                "from": previous.value,
                "to": status.value,
                "by": str(admin.id),
                "at": now.isoformat(),
            }]
            referral.status = status

            if status == ReferralStatus.CONTACTED and not referral.contacted_at:
                referral.contacted_at = now

            if status == ReferralStatus.ENROLLED:
                referral.enrolled_at = now
                await self._grant_reward(referral)

            logger.info(f"Referral {referral.id} moved {previous.value} -> {status.value} by {admin.id}")

        if admin_notes is not None:
            referral.admin_notes = admin_notes

        await self.db.commit()
        await self.db.refresh(referral)
        return referral

    async def _grant_reward(self, referral: Referral):
        """Create the referrer's reward; a referral earns at most one"""
        existing = await self.db.execute(
            select(ReferralReward.id).where(ReferralReward.referral_id == referral.id)
        )
        if existing.first():
            logger.warning(f"Referral {referral.id} already has a reward; skipping")
            return

        program = await self.get_program(referral.school_id)
        config = program or ReferralProgram(**PROGRAM_DEFAULTS)
        description = config.reward_description or self._describe_reward(config.reward_type, config.reward_value)

        reward = ReferralReward(
            school_id=referral.school_id,
            referral_id=referral.id,
            beneficiary_id=referral.referrer_id,
            reward_type=config.reward_type,
            reward_value=config.reward_value,
            description=description,
            status=RewardStatus.ACTIVE,
            expires_at=utcnow() + timedelta(days=REWARD_VALIDITY_DAYS),
        )
        self.db.add(reward)
        referral.reward = reward

        if program is not None:
            program.successful_referrals = (program.successful_referrals or 0) + 1

    async def expire_rewards(self, now=None) -> int:
        """Mark ACTIVE rewards past their expiry date as EXPIRED"""
        now = now or utcnow()
        result = await self.db.execute(
            select(ReferralReward).where(
                ReferralReward.status == RewardStatus.ACTIVE,
                ReferralReward.expires_at.isnot(None),
                ReferralReward.expires_at < now
            )
        )
        rewards = result.scalars().all()
        for reward in rewards:
            reward.status = RewardStatus.EXPIRED
        await self.db.commit()
        if rewards:
            logger.info(f"Expired {len(rewards)} referral rewards")
        return len(rewards)

    @staticmethod
    def _describe_reward(reward_type: RewardType, value) -> str:
        value = Decimal(str(value))
        if reward_type == RewardType.DISCOUNT_PERCENTAGE:
            return f"{value.normalize():f}% discount"
        if reward_type == RewardType.DISCOUNT_FIXED:
            return f"${value:.2f} discount"
        if reward_type == RewardType.CREDIT:
            return f"${value:.2f} credit"
        return "Referral gift"

    # Formatting

    @staticmethod
    def format_program(program: Optional[ReferralProgram]) -> Dict[str, Any]:
        if program is None:
            data = dict(PROGRAM_DEFAULTS)
            data.update({"id": None, "total_referrals": 0, "successful_referrals": 0})
        else:
            data = {
                "id": str(program.id),
                "is_active": program.is_active,
                "reward_type": program.reward_type,
                "reward_value": program.reward_value,
                "reward_description": program.reward_description,
                "max_rewards_per_year": program.max_rewards_per_year,
                "requires_active_account": program.requires_active_account,
                "requires_min_months": program.requires_min_months,
                "terms_and_conditions": program.terms_and_conditions,
                "total_referrals": program.total_referrals,
                "successful_referrals": program.successful_referrals,
            }
        data["reward_type"] = RewardType(data["reward_type"]).value
        data["reward_value"] = float(data["reward_value"])
        return data

    @staticmethod
    def format_reward(reward: Optional[ReferralReward]) -> Optional[Dict[str, Any]]:
        if reward is None:
            return None
        return {
            "id": str(reward.id),
            "reward_type": reward.reward_type.value,
            "reward_value": float(reward.reward_value),
            "description": reward.description,
            "status": reward.status.value,
            "expires_at": reward.expires_at.isoformat() if reward.expires_at else None,
            "applied_at": reward.applied_at.isoformat() if reward.applied_at else None,
        }

    @classmethod
    def format_referral(cls, referral: Referral, include_referrer: bool = False) -> Dict[str, Any]:
        data = {
            "id": str(referral.id),
            "referred_name": referral.referred_name,
            "referred_phone": referral.referred_phone,
            "referred_email": referral.referred_email,
            "children_count": referral.children_count,
            "children_grades": referral.children_grades,
            "notes": referral.notes,
            "status": referral.status.value,
            "contacted_at": referral.contacted_at.isoformat() if referral.contacted_at else None,
            "enrolled_at": referral.enrolled_at.isoformat() if referral.enrolled_at else None,
            "created_at": referral.created_at.isoformat(),
            "reward": cls.format_reward(referral.reward),
        }
        if include_referrer:
            data.update({
                "referrer_id": str(referral.referrer_id),
                "referrer_name": referral.referrer.name if referral.referrer else None,
                "referrer_email": referral.referrer.email if referral.referrer else None,
                "admin_notes": referral.admin_notes,
                "status_history": referral.status_history or [],
            })
        return data
