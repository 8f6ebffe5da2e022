# iaschool/services/enrollment_service.py
from typing import Any, Dict, Optional
from uuid import UUID
import logging

from sqlalchemy import select, func, case
from sqlalchemy.ext.asyncio import AsyncSession

from .base_service import BaseService
from ..core.exceptions import BadRequestError, SchoolNotFound
from ..models.shared.school import School
from ..models.tenant_specific.enrollment import (
    Enrollment, EnrollmentStatus, CLOSED_ENROLLMENT_STATUSES, ENROLLMENT_TRANSITIONS
)
from ..models.tenant_specific.user import Student, User
from ..utils.dates import utcnow

logger = logging.getLogger(__name__)

# Pipeline order used when listing applications
STATUS_ORDER = [s for s in EnrollmentStatus]


class EnrollmentService(BaseService[Enrollment]):
    def __init__(self, db: AsyncSession):
        super().__init__(Enrollment, db)

    async def submit_application(self, data: Dict[str, Any]) -> Enrollment:
        """Public application form, addressed to a school by its code"""
        result = await self.db.execute(
            select(School).where(
                School.code == data["school_code"].strip().upper(),
                School.is_active == True,
                School.is_deleted == False
            )
        )
        school = result.scalar_one_or_none()
        if not school:
            raise SchoolNotFound()

        parent_email = data["parent_email"].strip().lower()
        student_name = data["student_name"].strip()

        duplicate = await self.db.execute(
            select(Enrollment.id).where(
                Enrollment.school_id == school.id,
                Enrollment.parent_email == parent_email,
                Enrollment.student_name == student_name,
                Enrollment.requested_year == data["requested_year"],
                Enrollment.status.notin_(CLOSED_ENROLLMENT_STATUSES),
                Enrollment.is_deleted == False
            )
        )
        if duplicate.first():
            raise BadRequestError("An application for this student already exists for that year")

        enrollment = Enrollment(
            school_id=school.id,
            parent_name=data["parent_name"].strip(),
            parent_email=parent_email,
            parent_phone=data["parent_phone"].strip(),
            relationship_type=data.get("relationship") or "padre",
            student_name=student_name,
            student_birth_date=data["student_birth_date"],
            student_gender=data.get("student_gender"),
            previous_school=data.get("previous_school"),
            requested_grade=data["requested_grade"],
            requested_year=data["requested_year"],
            notes=data.get("notes"),
            status=EnrollmentStatus.PENDING,
        )
        self.db.add(enrollment)
        await self.db.commit()
        await self.db.refresh(enrollment)
        logger.info(f"Enrollment application {enrollment.id} received for school {school.code}")
        return enrollment

    async def list_applications(
        self,
        school_id: UUID,
        status: Optional[EnrollmentStatus] = None,
        year: Optional[str] = None
    ) -> Dict[str, Any]:
        stmt = select(Enrollment).where(
            Enrollment.school_id == school_id,
            Enrollment.is_deleted == False
        )
        if status:
            stmt = stmt.where(Enrollment.status == status)
        if year:
            stmt = stmt.where(Enrollment.requested_year == year)

        status_rank = case(
            {s: index for index, s in enumerate(STATUS_ORDER)},
            value=Enrollment.status
        )
        stmt = stmt.order_by(status_rank, Enrollment.created_at.desc())
        items = (await self.db.execute(stmt)).scalars().all()

        count_stmt = select(Enrollment.status, func.count()).where(
            Enrollment.school_id == school_id,
            Enrollment.is_deleted == False
        )
        if year:
            count_stmt = count_stmt.where(Enrollment.requested_year == year)
        grouped = await self.db.execute(count_stmt.group_by(Enrollment.status))
        counts = {s.value: 0 for s in EnrollmentStatus}
        for row_status, count in grouped.all():
            counts[EnrollmentStatus(row_status).value] = count

        return {"items": items, "counts": counts, "total": len(items)}

    async def update_application(self, admin: User, enrollment_id: UUID, data: Dict[str, Any]) -> Enrollment:
        enrollment = await self.get_or_404(enrollment_id, admin.school_id)
        status = data.get("status")

        if status is not None and ENROLLMENT_TRANSITIONS.validate(enrollment.status, status):
            previous = enrollment.status
            if status == EnrollmentStatus.REJECTED and not (data.get("rejection_reason") or enrollment.rejection_reason):
                raise BadRequestError("A rejection reason is required", field="rejection_reason")

            enrollment.status = status
            if status in (EnrollmentStatus.ACCEPTED, EnrollmentStatus.REJECTED):
                enrollment.reviewed_by = admin.id
                enrollment.reviewed_at = utcnow()
            if status == EnrollmentStatus.ENROLLED:
                await self._finalize_student(enrollment)
            logger.info(f"Enrollment {enrollment.id} moved {previous.value} -> {status.value} by {admin.id}")

        for field in ("interview_date", "interview_notes", "rejection_reason", "priority"):
            if data.get(field) is not None:
                setattr(enrollment, field, data[field])

        await self.db.commit()
        await self.db.refresh(enrollment)
        return enrollment

    async def _finalize_student(self, enrollment: Enrollment):
        """Create the student record for an enrolled applicant, once"""
        if enrollment.enrolled_student_id:
            return
        first_name, _, last_name = enrollment.student_name.partition(" ")
        student = Student(
            school_id=enrollment.school_id,
            first_name=first_name,
            last_name=last_name or None,
            birth_date=enrollment.student_birth_date,
            gender=enrollment.student_gender,
            grade=enrollment.requested_grade,
            is_active=True,
        )
        self.db.add(student)
        await self.db.flush()
        enrollment.enrolled_student_id = student.id
        logger.info(f"Student {student.id} created from enrollment {enrollment.id}")

    @staticmethod
    def format_enrollment(enrollment: Enrollment) -> Dict[str, Any]:
        return {
            "id": str(enrollment.id),
            "parent_name": enrollment.parent_name,
            "parent_email": enrollment.parent_email,
            "parent_phone": enrollment.parent_phone,
            "relationship": enrollment.relationship_type,
            "student_name": enrollment.student_name,
            "student_birth_date": enrollment.student_birth_date.isoformat(),
            "student_gender": enrollment.student_gender,
            "previous_school": enrollment.previous_school,
            "requested_grade": enrollment.requested_grade,
            "requested_year": enrollment.requested_year,
            "notes": enrollment.notes,
            "status": enrollment.status.value,
            "priority": enrollment.priority,
            "interview_date": enrollment.interview_date.isoformat() if enrollment.interview_date else None,
            "interview_notes": enrollment.interview_notes,
            "rejection_reason": enrollment.rejection_reason,
            "reviewed_by": str(enrollment.reviewed_by) if enrollment.reviewed_by else None,
            "reviewed_at": enrollment.reviewed_at.isoformat() if enrollment.reviewed_at else None,
            "enrolled_student_id": str(enrollment.enrolled_student_id) if enrollment.enrolled_student_id else None,
            "created_at": enrollment.created_at.isoformat(),
        }
