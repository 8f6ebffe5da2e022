# iaschool/services/payment_service.py
"""Charges ledger and payments recorded against it."""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging
import secrets

from sqlalchemy import select, case
from sqlalchemy.ext.asyncio import AsyncSession

from .base_service import BaseService
from .roster_service import RosterService
from .scholarship_service import ScholarshipService, apply_scholarships
from ..core.exceptions import BadRequestError, InvalidTransition, NotFoundError, PermissionDenied
from ..models.shared.school import School
from ..models.tenant_specific.payment import (
    Charge, Payment, ChargeStatus, ChargeType, PaymentMethod, CHARGE_TRANSITIONS, OPEN_CHARGE_STATUSES
)
from ..models.tenant_specific.user import User, UserRole
from ..utils.dates import utcnow, ensure_aware

logger = logging.getLogger(__name__)

CHARGE_STATUS_ORDER = [
    ChargeStatus.VENCIDO, ChargeStatus.PENDIENTE, ChargeStatus.PARCIAL,
    ChargeStatus.PAGADO, ChargeStatus.CANCELADO,
]
SPEI_REFERENCE_LENGTH = 20
# PARCIAL and PAGADO only follow from recorded payments
MANUAL_CHARGE_STATUSES = {ChargeStatus.VENCIDO, ChargeStatus.CANCELADO}


class PaymentService(BaseService[Charge]):
    def __init__(self, db: AsyncSession):
        super().__init__(Charge, db)
        self.roster = RosterService(db)

    async def list_charges(
        self,
        user: User,
        status: Optional[ChargeStatus] = None,
        student_id: Optional[UUID] = None
    ) -> Dict[str, Any]:
        stmt = select(Charge).where(
            Charge.school_id == user.school_id,
            Charge.is_deleted == False
        )
        if user.role == UserRole.PADRE:
            children = await self.roster.get_children_ids(user.id, "can_view_payments")
            if not children:
                return {"items": [], "summary": self._summarize([])}
            stmt = stmt.where(Charge.student_id.in_(children))
        elif not user.is_admin:
            raise PermissionDenied("Only parents and administrators can view charges")

        if status:
            stmt = stmt.where(Charge.status == status)
        if student_id:
            stmt = stmt.where(Charge.student_id == student_id)

        status_rank = case(
            {s: index for index, s in enumerate(CHARGE_STATUS_ORDER)},
            value=Charge.status
        )
        result = await self.db.execute(stmt.order_by(status_rank, Charge.due_date.asc()))
        charges = result.scalars().all()
        return {"items": charges, "summary": self._summarize(charges)}

    @staticmethod
    def _summarize(charges: List[Charge]) -> Dict[str, float]:
        pending = sum((c.amount - c.amount_paid for c in charges if c.status in OPEN_CHARGE_STATUSES), Decimal("0"))
        overdue = sum((c.amount - c.amount_paid for c in charges if c.status == ChargeStatus.VENCIDO), Decimal("0"))
        paid = sum((c.amount_paid for c in charges if c.status != ChargeStatus.CANCELADO), Decimal("0"))
        return {
            "total_pending": float(pending),
            "total_overdue": float(overdue),
            "total_paid": float(paid),
            "count": len(charges),
        }

    async def get_charge_for_user(self, user: User, charge_id: UUID) -> Charge:
        charge = await self.get_or_404(charge_id, user.school_id)
        if user.role == UserRole.PADRE:
            children = await self.roster.get_children_ids(user.id, "can_view_payments")
            if charge.student_id not in children:
                raise NotFoundError("Charge", charge_id)
        elif not user.is_admin:
            raise PermissionDenied()
        return charge

    async def create_charge(self, admin: User, data: Dict[str, Any]) -> Charge:
        student = await self.roster.get_student(data["student_id"], admin.school_id)
        amount = Decimal(str(data["amount"]))
        if amount <= 0:
            raise BadRequestError("Amount must be greater than 0", field="amount")

        charge_type = data.get("type") or ChargeType.COLEGIATURA
        scholarships = await ScholarshipService(self.db).get_active_for_student(student.id)
        discount, final_amount = apply_scholarships(amount, charge_type, scholarships)

        due_date = ensure_aware(data["due_date"])
        status = ChargeStatus.VENCIDO if due_date < utcnow() else ChargeStatus.PENDIENTE

        charge = Charge(
            school_id=admin.school_id,
            student_id=student.id,
            concept=data["concept"],
            description=data.get("description"),
            type=charge_type,
            original_amount=amount,
            discount=discount,
            amount=final_amount,
            amount_paid=Decimal("0"),
            due_date=due_date,
            status=status,
            created_by=admin.id,
        )
        self.db.add(charge)
        await self.db.commit()
        await self.db.refresh(charge)
        logger.info(f"Charge {charge.id} created for student {student.id}: {final_amount} (discount {discount})")
        return charge

    async def update_charge(self, admin: User, charge_id: UUID, data: Dict[str, Any]) -> Charge:
        charge = await self.get_or_404(charge_id, admin.school_id)
        has_payments = bool(charge.payments)

        if data.get("amount") is not None:
            if has_payments:
                raise BadRequestError("Cannot change the amount of a charge with payments")
            amount = Decimal(str(data["amount"]))
            if amount <= 0:
                raise BadRequestError("Amount must be greater than 0", field="amount")
            scholarships = await ScholarshipService(self.db).get_active_for_student(charge.student_id)
            discount, final_amount = apply_scholarships(amount, charge.type, scholarships)
            charge.original_amount = amount
            charge.discount = discount
            charge.amount = final_amount

        for field in ("concept", "description"):
            if data.get(field) is not None:
                setattr(charge, field, data[field])
        if data.get("due_date") is not None:
            charge.due_date = ensure_aware(data["due_date"])

        status = data.get("status")
        if status is not None and status != charge.status and status not in MANUAL_CHARGE_STATUSES:
            raise BadRequestError(
                "Only VENCIDO or CANCELADO can be set manually; payments drive PARCIAL and PAGADO",
                field="status"
            )
        if status is not None and CHARGE_TRANSITIONS.validate(charge.status, status):
            logger.info(f"Charge {charge.id} moved {charge.status.value} -> {status.value} by {admin.id}")
            charge.status = status

        await self.db.commit()
        await self.db.refresh(charge)
        return charge

    async def delete_charge(self, admin: User, charge_id: UUID):
        charge = await self.get_or_404(charge_id, admin.school_id)
        if charge.payments:
            raise BadRequestError("Cannot delete a charge with payments")
        charge.is_deleted = True
        await self.db.commit()
        logger.info(f"Charge {charge.id} deleted by {admin.id}")

    async def record_payment(self, admin: User, charge_id: UUID, data: Dict[str, Any]) -> Payment:
        """Apply a payment; amount_paid accumulates and drives PARCIAL/PAGADO"""
        amount = Decimal(str(data.get("amount") or 0))
        if amount <= 0:
            raise BadRequestError("Amount must be greater than 0", field="amount")

        charge = await self.get_or_404(charge_id, admin.school_id)
        new_amount_paid = charge.amount_paid + amount
        new_status = ChargeStatus.PAGADO if new_amount_paid >= charge.amount else ChargeStatus.PARCIAL
        if CHARGE_TRANSITIONS.is_terminal(charge.status):
            raise InvalidTransition("Charge", charge.status.value, new_status.value)
        CHARGE_TRANSITIONS.validate(charge.status, new_status)

        now = utcnow()
        payment = Payment(
            school_id=admin.school_id,
            charge_id=charge.id,
            amount=amount,
            method=data.get("method") or PaymentMethod.EFECTIVO,
            reference=data.get("reference"),
            notes=data.get("notes"),
            receipt_number=self._generate_receipt_number(now),
            received_by=admin.id,
            paid_at=ensure_aware(data.get("paid_at")) or now,
        )
        self.db.add(payment)
        charge.payments.append(payment)

        charge.amount_paid = new_amount_paid
        charge.status = new_status
        if new_status == ChargeStatus.PAGADO:
            charge.paid_at = now

        await self.db.commit()
        await self.db.refresh(payment)
        logger.info(
            f"Payment {payment.receipt_number} of {amount} applied to charge {charge.id}: "
            f"{new_amount_paid}/{charge.amount} {new_status.value}"
        )
        return payment

    @staticmethod
    def _generate_receipt_number(now: datetime) -> str:
        return f"REC-{now:%Y%m%d}-{secrets.token_hex(3).upper()}"

    async def mark_overdue_charges(self, now: datetime = None) -> int:
        """Move open charges past their due date to VENCIDO"""
        now = now or utcnow()
        result = await self.db.execute(
            select(Charge).where(
                Charge.status.in_([ChargeStatus.PENDIENTE, ChargeStatus.PARCIAL]),
                Charge.due_date < now,
                Charge.is_deleted == False
            )
        )
        charges = result.scalars().all()
        for charge in charges:
            CHARGE_TRANSITIONS.validate(charge.status, ChargeStatus.VENCIDO)
            charge.status = ChargeStatus.VENCIDO
        await self.db.commit()
        if charges:
            logger.info(f"Marked {len(charges)} charges as overdue")
        return len(charges)

    # Bank transfer data

    async def _get_school(self, school_id: UUID) -> School:
        result = await self.db.execute(select(School).where(School.id == school_id))
        return result.scalar_one()

    async def get_bank_config(self, school_id: UUID) -> Dict[str, Any]:
        return self.format_bank_config(await self._get_school(school_id))

    async def update_bank_config(self, school_id: UUID, data: Dict[str, Any]) -> Dict[str, Any]:
        school = await self._get_school(school_id)
        try:
            for field in ("bank_name", "bank_account_holder", "bank_clabe", "bank_reference_prefix"):
                if field in data:
                    setattr(school, field, data[field])
        except ValueError as e:
            raise BadRequestError(str(e))
        await self.db.commit()
        await self.db.refresh(school)
        return self.format_bank_config(school)

    async def get_spei_reference(self, user: User, charge_id: UUID) -> Dict[str, Any]:
        charge = await self.get_charge_for_user(user, charge_id)
        school = await self._get_school(user.school_id)

        student_part = (charge.student.enrollment_number if charge.student and charge.student.enrollment_number
                        else charge.student_id.hex[:6])
        body = f"{school.bank_reference_prefix or ''}{student_part}{charge.id.hex[:6]}".upper()
        body = "".join(c for c in body if c.isalnum())[:SPEI_REFERENCE_LENGTH - 1]
        body = body.ljust(SPEI_REFERENCE_LENGTH - 1, "0")
        reference = body + self._check_digit(body)

        return {
            "charge_id": str(charge.id),
            "reference": reference,
            "numeric_reference": str(int(charge.id.hex, 16) % 10_000_000).zfill(7),
            "amount": float(charge.balance),
            "concept": charge.concept,
            **self.format_bank_config(school),
        }

    @staticmethod
    def _check_digit(reference: str) -> str:
        """Weighted mod-10 check digit over base-36 characters"""
        total = sum(int(c, 36) * (3 if i % 2 else 7) for i, c in enumerate(reference))
        return str(total % 10)

    # Formatting

    @staticmethod
    def format_bank_config(school: School) -> Dict[str, Any]:
        return {
            "bank_name": school.bank_name,
            "bank_account_holder": school.bank_account_holder,
            "bank_clabe": school.bank_clabe,
            "bank_reference_prefix": school.bank_reference_prefix,
        }

    @staticmethod
    def format_payment(payment: Payment) -> Dict[str, Any]:
        return {
            "id": str(payment.id),
            "charge_id": str(payment.charge_id),
            "amount": float(payment.amount),
            "method": payment.method.value,
            "reference": payment.reference,
            "notes": payment.notes,
            "receipt_number": payment.receipt_number,
            "paid_at": payment.paid_at.isoformat(),
        }

    @classmethod
    def format_charge(cls, charge: Charge, include_payments: bool = False) -> Dict[str, Any]:
        data = {
            "id": str(charge.id),
            "student_id": str(charge.student_id),
            "student_name": charge.student.full_name if charge.student else None,
            "concept": charge.concept,
            "description": charge.description,
            "type": charge.type.value,
            "original_amount": float(charge.original_amount),
            "discount": float(charge.discount),
            "amount": float(charge.amount),
            "amount_paid": float(charge.amount_paid),
            "balance": float(charge.balance),
            "due_date": charge.due_date.isoformat(),
            "status": charge.status.value,
            "paid_at": charge.paid_at.isoformat() if charge.paid_at else None,
            "created_at": charge.created_at.isoformat(),
        }
        if include_payments:
            data["payments"] = [cls.format_payment(p) for p in charge.payments]
        return data
