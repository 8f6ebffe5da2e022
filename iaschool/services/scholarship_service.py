# iaschool/services/scholarship_service.py
"""Scholarships and their discount math over student charges."""
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Tuple
from uuid import UUID
import logging

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from .base_service import BaseService
from ..core.exceptions import BadRequestError, NotFoundError
from ..models.tenant_specific.scholarship import (
    Scholarship, StudentScholarship, DiscountType, ScholarshipApplyTo, StudentScholarshipStatus
)
from ..models.tenant_specific.payment import ChargeType
from ..models.tenant_specific.user import Student, User
from ..utils.dates import utcnow

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def scholarship_discount(amount: Decimal, scholarship: Scholarship) -> Decimal:
    """Discount a single scholarship grants on an amount"""
    value = Decimal(str(scholarship.discount_value))
    if scholarship.discount_type == DiscountType.PERCENTAGE:
        discount = amount * value / Decimal("100")
    else:
        discount = value
    return min(discount, amount).quantize(CENTS, rounding=ROUND_HALF_UP)


def applies_to_charge(scholarship: Scholarship, charge_type: ChargeType) -> bool:
    if scholarship.apply_to == ScholarshipApplyTo.TODOS:
        return True
    return scholarship.apply_to.value == charge_type.value


def apply_scholarships(amount: Decimal, charge_type: ChargeType, scholarships: List[Scholarship]) -> Tuple[Decimal, Decimal]:
    """Return (total discount, final amount); the final amount never drops below 0"""
    amount = Decimal(str(amount))
    discount = sum(
        (scholarship_discount(amount, s) for s in scholarships if applies_to_charge(s, charge_type)),
        Decimal("0")
    )
    discount = min(discount, amount)
    return discount, (amount - discount).quantize(CENTS)


class ScholarshipService(BaseService[Scholarship]):
    def __init__(self, db: AsyncSession):
        super().__init__(Scholarship, db)

    async def list_scholarships(self, school_id: UUID) -> List[Scholarship]:
        result = await self.db.execute(
            select(Scholarship).where(
                Scholarship.school_id == school_id,
                Scholarship.is_deleted == False
            ).order_by(Scholarship.name)
        )
        return result.scalars().all()

    def _validate_discount(self, discount_type: DiscountType, discount_value):
        if discount_value is None or Decimal(str(discount_value)) <= 0:
            raise BadRequestError("Discount value must be greater than 0", field="discount_value")
        if discount_type == DiscountType.PERCENTAGE and Decimal(str(discount_value)) > 100:
            raise BadRequestError("Percentage discount cannot exceed 100", field="discount_value")

    async def create_scholarship(self, school_id: UUID, data: Dict[str, Any]) -> Scholarship:
        self._validate_discount(data.get("discount_type") or DiscountType.PERCENTAGE, data.get("discount_value"))
        scholarship = await self.create({"school_id": school_id, **data})
        logger.info(f"Scholarship {scholarship.id} created for school {school_id}")
        return scholarship

    async def update_scholarship(self, school_id: UUID, scholarship_id: UUID, data: Dict[str, Any]) -> Scholarship:
        scholarship = await self.get_or_404(scholarship_id, school_id)
        if "discount_value" in data or "discount_type" in data:
            self._validate_discount(
                data.get("discount_type") or scholarship.discount_type,
                data.get("discount_value", scholarship.discount_value)
            )
        return await self.update(scholarship.id, data, school_id)

    async def delete_scholarship(self, school_id: UUID, scholarship_id: UUID):
        scholarship = await self.get_or_404(scholarship_id, school_id)
        if await self._active_beneficiaries(scholarship.id) > 0:
            raise BadRequestError("Cannot delete a scholarship with assigned students")
        scholarship.is_deleted = True
        await self.db.commit()
        logger.info(f"Scholarship {scholarship.id} deleted")

    async def _active_beneficiaries(self, scholarship_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(StudentScholarship).where(
                StudentScholarship.scholarship_id == scholarship_id,
                StudentScholarship.status == StudentScholarshipStatus.ACTIVA,
                StudentScholarship.is_deleted == False
            )
        )
        return result.scalar()

    async def assign_students(self, admin: User, scholarship_id: UUID, student_ids: List[UUID], notes: str = None) -> Dict[str, Any]:
        scholarship = await self.get_or_404(scholarship_id, admin.school_id)
        now = utcnow()
        if not scholarship.is_active:
            raise BadRequestError("Scholarship is not active")
        if (scholarship.valid_from and scholarship.valid_from > now) or \
                (scholarship.valid_until and scholarship.valid_until < now):
            raise BadRequestError("Scholarship is outside its validity period")

        unique_ids = list(dict.fromkeys(student_ids))
        result = await self.db.execute(
            select(Student.id).where(
                Student.id.in_(unique_ids),
                Student.school_id == admin.school_id,
                Student.is_active == True,
                Student.is_deleted == False
            )
        )
        valid_ids = set(result.scalars().all())
        if len(valid_ids) != len(unique_ids):
            raise BadRequestError("Some students do not exist or are inactive")

        existing = await self.db.execute(
            select(StudentScholarship).where(
                StudentScholarship.scholarship_id == scholarship.id,
                StudentScholarship.student_id.in_(unique_ids),
                StudentScholarship.is_deleted == False
            )
        )
        existing_rows = {row.student_id: row for row in existing.scalars().all()}
        already_active = {sid for sid, row in existing_rows.items() if row.status == StudentScholarshipStatus.ACTIVA}
        new_ids = [sid for sid in unique_ids if sid not in already_active]
        if not new_ids:
            raise BadRequestError("All students already have this scholarship")

        if scholarship.max_beneficiaries is not None:
            current = await self._active_beneficiaries(scholarship.id)
            if current + len(new_ids) > scholarship.max_beneficiaries:
                raise BadRequestError(
                    f"Scholarship allows {scholarship.max_beneficiaries} beneficiaries; "
                    f"{current} already assigned"
                )

        for student_id in new_ids:
            row = existing_rows.get(student_id)
            if row is not None:
                # Reactivate a suspended or finished assignment
                row.status = StudentScholarshipStatus.ACTIVA
                row.assigned_by = admin.id
                row.start_date = now
                row.end_date = None
            else:
                self.db.add(StudentScholarship(
                    school_id=admin.school_id,
                    scholarship_id=scholarship.id,
                    student_id=student_id,
                    status=StudentScholarshipStatus.ACTIVA,
                    assigned_by=admin.id,
                    start_date=now,
                    notes=notes,
                ))

        await self.db.commit()
        logger.info(f"Scholarship {scholarship.id} assigned to {len(new_ids)} students")
        return {"assigned": len(new_ids), "skipped": len(unique_ids) - len(new_ids)}

    async def unassign_student(self, school_id: UUID, scholarship_id: UUID, student_id: UUID):
        await self.get_or_404(scholarship_id, school_id)
        result = await self.db.execute(
            select(StudentScholarship).where(
                StudentScholarship.scholarship_id == scholarship_id,
                StudentScholarship.student_id == student_id,
                StudentScholarship.status == StudentScholarshipStatus.ACTIVA,
                StudentScholarship.is_deleted == False
            )
        )
        assignment = result.scalar_one_or_none()
        if not assignment:
            raise NotFoundError("Scholarship assignment")
        assignment.status = StudentScholarshipStatus.FINALIZADA
        assignment.end_date = utcnow()
        await self.db.commit()

    async def get_active_for_student(self, student_id: UUID) -> List[Scholarship]:
        """Active, in-window scholarships currently assigned to a student"""
        now = utcnow()
        result = await self.db.execute(
            select(Scholarship)
            .join(StudentScholarship, StudentScholarship.scholarship_id == Scholarship.id)
            .where(
                StudentScholarship.student_id == student_id,
                StudentScholarship.status == StudentScholarshipStatus.ACTIVA,
                StudentScholarship.is_deleted == False,
                Scholarship.is_active == True,
                Scholarship.is_deleted == False
            )
        )
        return [
            s for s in result.scalars().unique().all()
            if (not s.valid_from or s.valid_from <= now) and (not s.valid_until or s.valid_until >= now)
        ]

    @staticmethod
    def format_scholarship(scholarship: Scholarship, include_students: bool = False) -> Dict[str, Any]:
        active = [a for a in scholarship.assignments
                  if a.status == StudentScholarshipStatus.ACTIVA and not a.is_deleted]
        data = {
            "id": str(scholarship.id),
            "name": scholarship.name,
            "description": scholarship.description,
            "type": scholarship.type.value,
            "discount_type": scholarship.discount_type.value,
            "discount_value": float(scholarship.discount_value),
            "apply_to": scholarship.apply_to.value,
            "min_gpa": float(scholarship.min_gpa) if scholarship.min_gpa is not None else None,
            "requirements": scholarship.requirements,
            "max_beneficiaries": scholarship.max_beneficiaries,
            "valid_from": scholarship.valid_from.isoformat() if scholarship.valid_from else None,
            "valid_until": scholarship.valid_until.isoformat() if scholarship.valid_until else None,
            "is_active": scholarship.is_active,
            "beneficiaries": len(active),
        }
        if include_students:
            data["students"] = [
                {
                    "student_id": str(a.student_id),
                    "name": a.student.full_name if a.student else None,
                    "status": a.status.value,
                    "start_date": a.start_date.isoformat() if a.start_date else None,
                }
                for a in active
            ]
        return data
