from sqlalchemy import Column, String, Boolean, Index
from sqlalchemy.orm import validates
import re

from ..base import Base


class School(Base):
    __tablename__ = "schools"

    name = Column(String(200), nullable=False)
    code = Column(String(20), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(20), nullable=True)
    address = Column(String(500), nullable=True)
    logo_url = Column(String(500), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    # Bank transfer / SPEI data shown to parents
    bank_name = Column(String(100), nullable=True)
    bank_account_holder = Column(String(200), nullable=True)
    bank_clabe = Column(String(18), nullable=True)
    bank_reference_prefix = Column(String(6), nullable=True)

    __table_args__ = (
        Index('idx_school_active', 'is_active', 'is_deleted'),
    )

    @validates('code')
    def validate_code(self, key, code):
        if not code or not re.match(r'^[A-Za-z0-9_-]+$', code):
            raise ValueError("School code must be alphanumeric")
        return code.upper()

    @validates('bank_clabe')
    def validate_clabe(self, key, clabe):
        if clabe and not re.match(r'^\d{18}$', clabe):
            raise ValueError("CLABE must have 18 digits")
        return clabe

    def __repr__(self):
        return f"<School(code='{self.code}', name='{self.name}')>"
