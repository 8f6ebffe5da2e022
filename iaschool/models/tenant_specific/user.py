from sqlalchemy import Column, String, Boolean, Integer, Date, ForeignKey, Enum, Index
from sqlalchemy.orm import relationship, validates
import enum

from ..base import Base, TenantMixin
from ..types import GUID, JSONType, UTCDateTime


class UserRole(str, enum.Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    PROFESOR = "PROFESOR"
    PADRE = "PADRE"
    ALUMNO = "ALUMNO"
    VOCAL = "VOCAL"


class AdminSubRole(str, enum.Enum):
    DIRECCION = "DIRECCION"
    CAJA = "CAJA"
    CONTROL_ESCOLAR = "CONTROL_ESCOLAR"
    COMUNICACION = "COMUNICACION"


ADMIN_ROLES = (UserRole.ADMIN, UserRole.SUPER_ADMIN)


class User(TenantMixin, Base):
    __tablename__ = "users"

    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(200), nullable=False)
    phone = Column(String(20), nullable=True)
    avatar_url = Column(String(500), nullable=True)

    role = Column(Enum(UserRole, name="user_role"), nullable=False, default=UserRole.PADRE, index=True)
    admin_sub_roles = Column(JSONType(), nullable=False, default=list)
    is_active = Column(Boolean, default=True, nullable=False)

    # Login protection
    failed_login_attempts = Column(Integer, default=0, nullable=False)
    locked_until = Column(UTCDateTime(), nullable=True)
    last_login_at = Column(UTCDateTime(), nullable=True)

    school = relationship("School", lazy="selectin")

    __table_args__ = (
        Index('idx_user_school_role', 'school_id', 'role'),
    )

    @validates('email')
    def validate_email(self, key, email):
        if not email or '@' not in email:
            raise ValueError("Invalid email format")
        return email.strip().lower()

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @property
    def is_general_admin(self) -> bool:
        """Admins without sub-roles manage every area"""
        return self.is_admin and not self.admin_sub_roles

    def has_sub_role(self, *sub_roles) -> bool:
        wanted = {s.value if isinstance(s, enum.Enum) else s for s in sub_roles}
        return bool(wanted.intersection(self.admin_sub_roles or []))

    def __repr__(self):
        return f"<User(email='{self.email}', role='{self.role}')>"


class Group(TenantMixin, Base):
    __tablename__ = "groups"

    name = Column(String(100), nullable=False)
    grade = Column(String(20), nullable=True)
    section = Column(String(10), nullable=True)
    academic_year = Column(String(10), nullable=True)
    teacher_id = Column(GUID(), ForeignKey("users.id"), nullable=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False)


class Student(TenantMixin, Base):
    __tablename__ = "students"

    group_id = Column(GUID(), ForeignKey("groups.id"), nullable=True, index=True)
    user_id = Column(GUID(), ForeignKey("users.id"), nullable=True, index=True)

    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=True)
    enrollment_number = Column(String(30), nullable=True, index=True)
    birth_date = Column(Date, nullable=True)
    gender = Column(String(20), nullable=True)
    grade = Column(String(20), nullable=True)
    photo_url = Column(String(500), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    group = relationship("Group", lazy="selectin")

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)
