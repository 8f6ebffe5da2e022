from sqlalchemy.orm import as_declarative, declared_attr
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Boolean, ForeignKey, func
import uuid

from .types import GUID, UTCDateTime
from ..utils.dates import utcnow


@as_declarative()
class Base:
    __abstract__ = True  # Prevents creating a table for the base class

    id: Mapped[uuid.UUID]

    @declared_attr
    def __tablename__(cls) -> str:
        return cls.__name__.lower()

    id = mapped_column(GUID(), primary_key=True, index=True, default=uuid.uuid4)
    created_at = mapped_column(UTCDateTime(), default=utcnow, server_default=func.now(), index=True)
    updated_at = mapped_column(UTCDateTime(), default=utcnow, server_default=func.now(), onupdate=utcnow)

    # Soft delete
    is_deleted = mapped_column(Boolean, default=False, nullable=False, index=True)


class TenantMixin:
    """Rows owned by a single school"""

    @declared_attr
    def school_id(cls):
        return mapped_column(GUID(), ForeignKey("schools.id"), nullable=False, index=True)
