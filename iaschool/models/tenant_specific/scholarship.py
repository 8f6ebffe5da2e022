from sqlalchemy import Column, String, Boolean, Integer, Numeric, Text, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
import enum

from ..base import Base, TenantMixin
from ..types import GUID, UTCDateTime


class ScholarshipType(str, enum.Enum):
    ACADEMICA = "ACADEMICA"
    DEPORTIVA = "DEPORTIVA"
    SOCIOECONOMICA = "SOCIOECONOMICA"
    HERMANOS = "HERMANOS"
    EMPLEADO = "EMPLEADO"
    OTRA = "OTRA"


class DiscountType(str, enum.Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"


class ScholarshipApplyTo(str, enum.Enum):
    COLEGIATURA = "COLEGIATURA"
    INSCRIPCION = "INSCRIPCION"
    TODOS = "TODOS"


class StudentScholarshipStatus(str, enum.Enum):
    ACTIVA = "ACTIVA"
    SUSPENDIDA = "SUSPENDIDA"
    FINALIZADA = "FINALIZADA"


class Scholarship(TenantMixin, Base):
    __tablename__ = "scholarships"

    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(Enum(ScholarshipType, name="scholarship_type"), nullable=False, default=ScholarshipType.OTRA)
    discount_type = Column(Enum(DiscountType, name="discount_type"), nullable=False, default=DiscountType.PERCENTAGE)
    discount_value = Column(Numeric(10, 2), nullable=False)
    apply_to = Column(Enum(ScholarshipApplyTo, name="scholarship_apply_to"), nullable=False, default=ScholarshipApplyTo.COLEGIATURA)

    min_gpa = Column(Numeric(4, 2), nullable=True)
    requirements = Column(Text, nullable=True)
    max_beneficiaries = Column(Integer, nullable=True)
    valid_from = Column(UTCDateTime(), nullable=True)
    valid_until = Column(UTCDateTime(), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    assignments = relationship("StudentScholarship", back_populates="scholarship", lazy="selectin")


class StudentScholarship(TenantMixin, Base):
    __tablename__ = "student_scholarships"

    scholarship_id = Column(GUID(), ForeignKey("scholarships.id"), nullable=False, index=True)
    student_id = Column(GUID(), ForeignKey("students.id"), nullable=False, index=True)
    status = Column(Enum(StudentScholarshipStatus, name="student_scholarship_status"), nullable=False, default=StudentScholarshipStatus.ACTIVA)
    assigned_by = Column(GUID(), ForeignKey("users.id"), nullable=True)
    start_date = Column(UTCDateTime(), nullable=True)
    end_date = Column(UTCDateTime(), nullable=True)
    notes = Column(Text, nullable=True)

    scholarship = relationship("Scholarship", back_populates="assignments", lazy="selectin")
    student = relationship("Student", lazy="selectin")

    __table_args__ = (
        UniqueConstraint('scholarship_id', 'student_id', name='uq_student_scholarship'),
    )
