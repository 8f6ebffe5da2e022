# iaschool/services/appointment_service.py
from datetime import date
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging
import time

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .base_service import BaseService
from .roster_service import RosterService
from ..core.exceptions import BadRequestError, ConflictError, NotFoundError
from ..models.tenant_specific.appointment import Appointment, AppointmentStatus, APPOINTMENT_TRANSITIONS
from ..models.tenant_specific.user import User, UserRole
from ..utils.dates import utcnow, to_base36

logger = logging.getLogger(__name__)

MEETING_BASE_URL = "https://meet.jit.si"


class AppointmentService(BaseService[Appointment]):
    def __init__(self, db: AsyncSession):
        super().__init__(Appointment, db)
        self.roster = RosterService(db)

    def _is_participant(self, user: User, appointment: Appointment) -> bool:
        return user.id in (appointment.parent_id, appointment.teacher_id)

    async def get_for_user(self, user: User, appointment_id: UUID) -> Appointment:
        appointment = await self.get_or_404(appointment_id, user.school_id)
        if not user.is_admin and not self._is_participant(user, appointment):
            raise NotFoundError("Appointment", appointment_id)
        return appointment

    async def list_appointments(
        self,
        user: User,
        status: Optional[AppointmentStatus] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None
    ) -> List[Appointment]:
        stmt = select(Appointment).where(
            Appointment.school_id == user.school_id,
            Appointment.is_deleted == False
        )
        if user.role == UserRole.PADRE:
            stmt = stmt.where(Appointment.parent_id == user.id)
        elif user.role == UserRole.PROFESOR:
            stmt = stmt.where(Appointment.teacher_id == user.id)
        elif not user.is_admin:
            return []

        if status:
            stmt = stmt.where(Appointment.status == status)
        if date_from:
            stmt = stmt.where(Appointment.date >= date_from)
        if date_to:
            stmt = stmt.where(Appointment.date <= date_to)

        result = await self.db.execute(stmt.order_by(Appointment.date, Appointment.start_time))
        return result.scalars().all()

    async def create_appointment(self, parent: User, data: Dict[str, Any]) -> Appointment:
        teacher = await self.roster.get_user(data["teacher_id"], parent.school_id, role=UserRole.PROFESOR)
        if not teacher:
            raise BadRequestError("Teacher not found", field="teacher_id")
        if data.get("student_id"):
            await self.roster.ensure_child_of(parent, data["student_id"])

        clash = await self.db.execute(
            select(Appointment.id).where(
                Appointment.teacher_id == teacher.id,
                Appointment.date == data["date"],
                Appointment.start_time == data["start_time"],
                Appointment.status != AppointmentStatus.CANCELLED,
                Appointment.is_deleted == False
            )
        )
        if clash.first():
            raise ConflictError("The teacher already has an appointment at that time")

        appointment = Appointment(
            school_id=parent.school_id,
            parent_id=parent.id,
            teacher_id=teacher.id,
            student_id=data.get("student_id"),
            date=data["date"],
            start_time=data["start_time"],
            end_time=data.get("end_time"),
            subject=data["subject"],
            notes=data.get("notes"),
            status=AppointmentStatus.PENDING,
        )
        self.db.add(appointment)
        await self.db.commit()
        await self.db.refresh(appointment)
        logger.info(f"Appointment {appointment.id} requested by {parent.id} with {teacher.id}")
        return appointment

    async def update_appointment(self, user: User, appointment_id: UUID, data: Dict[str, Any]) -> Appointment:
        appointment = await self.get_for_user(user, appointment_id)
        changed = False

        if user.is_admin or user.id == appointment.teacher_id:
            status = data.get("status")
            if status is not None and APPOINTMENT_TRANSITIONS.validate(appointment.status, status):
                logger.info(f"Appointment {appointment.id} moved {appointment.status.value} -> {status.value}")
                appointment.status = status
                if status == AppointmentStatus.CANCELLED:
                    self._mark_cancelled(appointment, user, data.get("cancel_reason"))
                changed = True
            if data.get("teacher_notes") is not None:
                appointment.teacher_notes = data["teacher_notes"]
                changed = True

        if user.id == appointment.parent_id:
            if data.get("notes") is not None:
                appointment.notes = data["notes"]
                changed = True
            if data.get("subject") is not None:
                if appointment.status != AppointmentStatus.PENDING:
                    raise BadRequestError("Subject can only change while the appointment is pending")
                appointment.subject = data["subject"]
                changed = True

        if not changed:
            raise BadRequestError("No valid changes")

        await self.db.commit()
        await self.db.refresh(appointment)
        return appointment

    def _mark_cancelled(self, appointment: Appointment, user: User, reason: Optional[str]):
        appointment.cancelled_by = user.id
        appointment.cancel_reason = reason
        appointment.cancelled_at = utcnow()

    async def cancel_appointment(self, user: User, appointment_id: UUID, reason: Optional[str] = None) -> Appointment:
        appointment = await self.get_for_user(user, appointment_id)
        if appointment.status == AppointmentStatus.COMPLETED:
            raise BadRequestError("Completed appointments cannot be cancelled")
        APPOINTMENT_TRANSITIONS.validate(appointment.status, AppointmentStatus.CANCELLED)

        appointment.status = AppointmentStatus.CANCELLED
        self._mark_cancelled(appointment, user, reason)
        await self.db.commit()
        await self.db.refresh(appointment)
        logger.info(f"Appointment {appointment.id} cancelled by {user.id}")
        return appointment

    async def enable_video(self, user: User, appointment_id: UUID) -> Appointment:
        appointment = await self.get_for_user(user, appointment_id)
        if appointment.status in (AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED, AppointmentStatus.NO_SHOW):
            raise BadRequestError("Video calls are only available for active appointments")

        if not appointment.meeting_room_id:
            school_code = user.school.code if user.school else "IAS"
            room_id = f"{school_code}-{appointment.id.hex[-6:]}-{to_base36(int(time.time() * 1000))}"
            appointment.meeting_room_id = room_id
            appointment.meeting_url = f"{MEETING_BASE_URL}/{room_id}"
        appointment.is_video_call = True

        await self.db.commit()
        await self.db.refresh(appointment)
        return appointment

    async def disable_video(self, user: User, appointment_id: UUID) -> Appointment:
        appointment = await self.get_for_user(user, appointment_id)
        appointment.is_video_call = False
        appointment.meeting_url = None
        appointment.meeting_room_id = None
        await self.db.commit()
        await self.db.refresh(appointment)
        return appointment

    @staticmethod
    def format_appointment(appointment: Appointment) -> Dict[str, Any]:
        return {
            "id": str(appointment.id),
            "parent_id": str(appointment.parent_id),
            "parent_name": appointment.parent.name if appointment.parent else None,
            "teacher_id": str(appointment.teacher_id),
            "teacher_name": appointment.teacher.name if appointment.teacher else None,
            "student_id": str(appointment.student_id) if appointment.student_id else None,
            "student_name": appointment.student.full_name if appointment.student else None,
            "date": appointment.date.isoformat(),
            "start_time": appointment.start_time,
            "end_time": appointment.end_time,
            "subject": appointment.subject,
            "notes": appointment.notes,
            "teacher_notes": appointment.teacher_notes,
            "status": appointment.status.value,
            "cancel_reason": appointment.cancel_reason,
            "cancelled_at": appointment.cancelled_at.isoformat() if appointment.cancelled_at else None,
            "is_video_call": appointment.is_video_call,
            "meeting_url": appointment.meeting_url,
            "meeting_room_id": appointment.meeting_room_id,
        }
