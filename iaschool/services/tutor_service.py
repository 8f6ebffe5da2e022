# iaschool/services/tutor_service.py
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .base_service import BaseService
from .roster_service import RosterService
from ..core.exceptions import BadRequestError
from ..models.tenant_specific.tutor import StudentTutor, PERMISSION_FLAGS
from ..models.tenant_specific.user import User, UserRole
from ..utils.dates import utcnow

logger = logging.getLogger(__name__)


class TutorService(BaseService[StudentTutor]):
    resource_name = "Tutor link"

    def __init__(self, db: AsyncSession):
        super().__init__(StudentTutor, db)
        self.roster = RosterService(db)

    async def list_tutors(self, school_id: UUID, student_id: Optional[UUID] = None) -> List[StudentTutor]:
        stmt = select(StudentTutor).where(
            StudentTutor.school_id == school_id,
            StudentTutor.is_deleted == False
        )
        if student_id:
            stmt = stmt.where(StudentTutor.student_id == student_id)
        result = await self.db.execute(
            stmt.order_by(StudentTutor.is_primary_contact.desc(), StudentTutor.created_at)
        )
        return result.scalars().all()

    async def _clear_primary(self, student_id: UUID, keep_id: UUID = None):
        stmt = update(StudentTutor).where(
            StudentTutor.student_id == student_id,
            StudentTutor.is_primary_contact == True
        )
        if keep_id is not None:
            stmt = stmt.where(StudentTutor.id != keep_id)
        await self.db.execute(stmt.values(is_primary_contact=False))

    async def create_tutor(self, admin: User, data: Dict[str, Any]) -> StudentTutor:
        student = await self.roster.get_student(data["student_id"], admin.school_id)
        tutor = await self.roster.get_user(data["tutor_id"], admin.school_id, role=UserRole.PADRE)
        if not tutor:
            raise BadRequestError("Tutor must be a parent account of this school", field="tutor_id")

        existing = await self.db.execute(
            select(StudentTutor.id).where(
                StudentTutor.student_id == student.id,
                StudentTutor.tutor_id == tutor.id,
                StudentTutor.is_deleted == False
            )
        )
        if existing.first():
            raise BadRequestError("This tutor is already linked to the student")

        if data.get("is_primary_contact"):
            await self._clear_primary(student.id)

        values = {k: v for k, v in data.items() if k not in ("student_id", "tutor_id") and v is not None}
        link = StudentTutor(
            school_id=admin.school_id,
            student_id=student.id,
            tutor_id=tutor.id,
            configured_by=admin.id,
            **values
        )
        self.db.add(link)
        await self.db.commit()
        await self.db.refresh(link)
        logger.info(f"Tutor {tutor.id} linked to student {student.id}")
        return link

    async def update_tutor(self, admin: User, link_id: UUID, data: Dict[str, Any]) -> StudentTutor:
        link = await self.get_or_404(link_id, admin.school_id)

        if data.get("is_primary_contact"):
            await self._clear_primary(link.student_id, keep_id=link.id)

        if "is_active" in data and data["is_active"] is not None and data["is_active"] != link.is_active:
            if data["is_active"]:
                link.deactivated_at = None
                link.deactivated_reason = None
            else:
                link.deactivated_at = utcnow()
                link.deactivated_reason = data.get("deactivated_reason")
            link.is_active = data["is_active"]

        for key, value in data.items():
            if key in ("is_active", "deactivated_reason") or value is None:
                continue
            setattr(link, key, value)
        link.configured_by = admin.id

        await self.db.commit()
        await self.db.refresh(link)
        return link

    async def delete_tutor(self, admin: User, link_id: UUID):
        link = await self.get_or_404(link_id, admin.school_id)
        await self.db.delete(link)
        await self.db.commit()
        logger.info(f"Tutor link {link_id} removed by {admin.id}")

    @staticmethod
    def format_tutor(link: StudentTutor) -> Dict[str, Any]:
        data = {
            "id": str(link.id),
            "student_id": str(link.student_id),
            "student_name": link.student.full_name if link.student else None,
            "tutor_id": str(link.tutor_id),
            "tutor_name": link.tutor.name if link.tutor else None,
            "tutor_email": link.tutor.email if link.tutor else None,
            "relationship": link.relationship_type.value,
            "relationship_detail": link.relationship_detail,
            "is_primary_contact": link.is_primary_contact,
            "custody_type": link.custody_type,
            "custody_notes": link.custody_notes,
            "is_active": link.is_active,
            "deactivated_at": link.deactivated_at.isoformat() if link.deactivated_at else None,
            "deactivated_reason": link.deactivated_reason,
        }
        data["permissions"] = {flag: getattr(link, flag) for flag in PERMISSION_FLAGS}
        return data
