from sqlalchemy import Column, String, Integer, Date, Text, ForeignKey, Enum, Index
from sqlalchemy.orm import validates
import enum

from ..base import Base, TenantMixin
from ..types import GUID, UTCDateTime
from ...core.workflow import TransitionTable


class EnrollmentStatus(str, enum.Enum):
    PENDING = "PENDING"
    REVIEWING = "REVIEWING"
    DOCUMENTS = "DOCUMENTS"
    INTERVIEW = "INTERVIEW"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    WAITLIST = "WAITLIST"
    ENROLLED = "ENROLLED"
    CANCELLED = "CANCELLED"


# Applications in these states do not block a new application for the same child
CLOSED_ENROLLMENT_STATUSES = (EnrollmentStatus.REJECTED, EnrollmentStatus.CANCELLED)

ENROLLMENT_TRANSITIONS = TransitionTable("Enrollment", {
    EnrollmentStatus.PENDING: [
        EnrollmentStatus.REVIEWING, EnrollmentStatus.WAITLIST,
        EnrollmentStatus.REJECTED, EnrollmentStatus.CANCELLED,
    ],
    EnrollmentStatus.REVIEWING: [
        EnrollmentStatus.DOCUMENTS, EnrollmentStatus.INTERVIEW, EnrollmentStatus.ACCEPTED,
        EnrollmentStatus.WAITLIST, EnrollmentStatus.REJECTED, EnrollmentStatus.CANCELLED,
    ],
    EnrollmentStatus.DOCUMENTS: [
        EnrollmentStatus.REVIEWING, EnrollmentStatus.INTERVIEW, EnrollmentStatus.ACCEPTED,
        EnrollmentStatus.REJECTED, EnrollmentStatus.CANCELLED,
    ],
    EnrollmentStatus.INTERVIEW: [
        EnrollmentStatus.ACCEPTED, EnrollmentStatus.WAITLIST,
        EnrollmentStatus.REJECTED, EnrollmentStatus.CANCELLED,
    ],
    EnrollmentStatus.WAITLIST: [
        EnrollmentStatus.REVIEWING, EnrollmentStatus.ACCEPTED,
        EnrollmentStatus.REJECTED, EnrollmentStatus.CANCELLED,
    ],
    EnrollmentStatus.ACCEPTED: [EnrollmentStatus.ENROLLED, EnrollmentStatus.CANCELLED],
})


class Enrollment(TenantMixin, Base):
    __tablename__ = "enrollments"

    # Parent / guardian
    parent_name = Column(String(200), nullable=False)
    parent_email = Column(String(255), nullable=False, index=True)
    parent_phone = Column(String(30), nullable=False)
    relationship_type = Column("relationship", String(30), nullable=False, default="padre")

    # Applicant
    student_name = Column(String(200), nullable=False)
    student_birth_date = Column(Date, nullable=False)
    student_gender = Column(String(20), nullable=True)
    previous_school = Column(String(200), nullable=True)
    requested_grade = Column(String(30), nullable=False)
    requested_year = Column(String(10), nullable=False, index=True)
    notes = Column(Text, nullable=True)

    # Review pipeline
    status = Column(Enum(EnrollmentStatus, name="enrollment_status"), nullable=False, default=EnrollmentStatus.PENDING, index=True)
    priority = Column(Integer, nullable=False, default=0)
    interview_date = Column(UTCDateTime(), nullable=True)
    interview_notes = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    reviewed_by = Column(GUID(), ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(UTCDateTime(), nullable=True)
    enrolled_student_id = Column(GUID(), ForeignKey("students.id"), nullable=True)

    __table_args__ = (
        Index('idx_enrollment_school_status', 'school_id', 'status'),
        Index('idx_enrollment_duplicate', 'school_id', 'parent_email', 'student_name', 'requested_year'),
    )

    @validates('parent_email')
    def validate_parent_email(self, key, email):
        return email.strip().lower()
