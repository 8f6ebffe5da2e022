from sqlalchemy import Column, String, Boolean, Date, Text, ForeignKey, Enum, Index
from sqlalchemy.orm import relationship
import enum

from ..base import Base, TenantMixin
from ..types import GUID, UTCDateTime
from ...core.workflow import TransitionTable


class AppointmentStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


APPOINTMENT_TRANSITIONS = TransitionTable("Appointment", {
    AppointmentStatus.PENDING: [AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED],
    AppointmentStatus.CONFIRMED: [
        AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW,
    ],
})


class Appointment(TenantMixin, Base):
    __tablename__ = "appointments"

    parent_id = Column(GUID(), ForeignKey("users.id"), nullable=False, index=True)
    teacher_id = Column(GUID(), ForeignKey("users.id"), nullable=False, index=True)
    student_id = Column(GUID(), ForeignKey("students.id"), nullable=True)

    date = Column(Date, nullable=False)
    start_time = Column(String(5), nullable=False)  # HH:MM
    end_time = Column(String(5), nullable=True)
    subject = Column(String(200), nullable=False)
    notes = Column(Text, nullable=True)
    teacher_notes = Column(Text, nullable=True)
    status = Column(Enum(AppointmentStatus, name="appointment_status"), nullable=False, default=AppointmentStatus.PENDING, index=True)

    cancelled_by = Column(GUID(), ForeignKey("users.id"), nullable=True)
    cancel_reason = Column(String(500), nullable=True)
    cancelled_at = Column(UTCDateTime(), nullable=True)

    # Video call
    is_video_call = Column(Boolean, default=False, nullable=False)
    meeting_url = Column(String(500), nullable=True)
    meeting_room_id = Column(String(100), nullable=True)

    parent = relationship("User", foreign_keys=[parent_id], lazy="selectin")
    teacher = relationship("User", foreign_keys=[teacher_id], lazy="selectin")
    student = relationship("Student", lazy="selectin")

    __table_args__ = (
        Index('idx_appointment_teacher_slot', 'teacher_id', 'date', 'start_time'),
    )
