from sqlalchemy import Column, String, Boolean, Text, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
import enum

from ..base import Base, TenantMixin
from ..types import GUID, UTCDateTime


class TutorRelationship(str, enum.Enum):
    PADRE = "PADRE"
    MADRE = "MADRE"
    TUTOR_LEGAL = "TUTOR_LEGAL"
    ABUELO = "ABUELO"
    OTRO = "OTRO"


PERMISSION_FLAGS = (
    "has_full_access",
    "can_view_grades",
    "can_view_attendance",
    "can_view_payments",
    "can_make_payments",
    "can_pickup",
    "can_communicate",
    "can_receive_notifications",
    "can_request_permissions",
)


class StudentTutor(TenantMixin, Base):
    __tablename__ = "student_tutors"

    student_id = Column(GUID(), ForeignKey("students.id"), nullable=False, index=True)
    tutor_id = Column(GUID(), ForeignKey("users.id"), nullable=False, index=True)

    relationship_type = Column(
        "relationship", Enum(TutorRelationship, name="tutor_relationship"),
        nullable=False, default=TutorRelationship.PADRE
    )
    relationship_detail = Column(String(100), nullable=True)
    is_primary_contact = Column(Boolean, default=False, nullable=False)

    # Permission grid
    has_full_access = Column(Boolean, default=True, nullable=False)
    can_view_grades = Column(Boolean, default=True, nullable=False)
    can_view_attendance = Column(Boolean, default=True, nullable=False)
    can_view_payments = Column(Boolean, default=True, nullable=False)
    can_make_payments = Column(Boolean, default=True, nullable=False)
    can_pickup = Column(Boolean, default=True, nullable=False)
    can_communicate = Column(Boolean, default=True, nullable=False)
    can_receive_notifications = Column(Boolean, default=True, nullable=False)
    can_request_permissions = Column(Boolean, default=True, nullable=False)

    # Custody
    custody_type = Column(String(50), nullable=True)
    custody_notes = Column(Text, nullable=True)

    configured_by = Column(GUID(), ForeignKey("users.id"), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    deactivated_at = Column(UTCDateTime(), nullable=True)
    deactivated_reason = Column(String(500), nullable=True)

    student = relationship("Student", lazy="selectin")
    tutor = relationship("User", foreign_keys=[tutor_id], lazy="selectin")

    __table_args__ = (
        UniqueConstraint('student_id', 'tutor_id', name='uq_student_tutor'),
    )

    def allows(self, permission: str) -> bool:
        return bool(self.is_active and (self.has_full_access or getattr(self, permission, False)))
