from sqlalchemy import Column, String, Boolean, Integer, Text, ForeignKey, Enum, UniqueConstraint, Index
from sqlalchemy.orm import relationship
import enum

from ..base import Base, TenantMixin
from ..types import GUID, UTCDateTime
from ...core.workflow import TransitionTable
from .user import UserRole


class DocumentStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    PARTIALLY_SIGNED = "PARTIALLY_SIGNED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


class DocumentType(str, enum.Enum):
    AUTORIZACION = "AUTORIZACION"
    CIRCULAR = "CIRCULAR"
    REGLAMENTO = "REGLAMENTO"
    CONTRATO = "CONTRATO"
    PERMISO = "PERMISO"
    OTRO = "OTRO"


PUBLISHED_DOCUMENT_STATUSES = (DocumentStatus.PENDING, DocumentStatus.PARTIALLY_SIGNED, DocumentStatus.COMPLETED)
UNSIGNABLE_DOCUMENT_STATUSES = (
    DocumentStatus.DRAFT, DocumentStatus.COMPLETED, DocumentStatus.CANCELLED, DocumentStatus.EXPIRED,
)

DOCUMENT_TRANSITIONS = TransitionTable("Document", {
    DocumentStatus.DRAFT: [DocumentStatus.PENDING, DocumentStatus.CANCELLED],
    DocumentStatus.PENDING: [
        DocumentStatus.PARTIALLY_SIGNED, DocumentStatus.COMPLETED,
        DocumentStatus.CANCELLED, DocumentStatus.EXPIRED,
    ],
    DocumentStatus.PARTIALLY_SIGNED: [
        DocumentStatus.COMPLETED, DocumentStatus.CANCELLED, DocumentStatus.EXPIRED,
    ],
})


class Document(TenantMixin, Base):
    __tablename__ = "documents"

    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    content = Column(Text, nullable=False)
    type = Column(Enum(DocumentType, name="document_type"), nullable=False, default=DocumentType.AUTORIZACION)
    version = Column(Integer, nullable=False, default=1)
    status = Column(Enum(DocumentStatus, name="document_status"), nullable=False, default=DocumentStatus.DRAFT, index=True)

    # Audience
    target_role = Column(Enum(UserRole, name="user_role"), nullable=True)
    group_id = Column(GUID(), ForeignKey("groups.id"), nullable=True)
    requires_all = Column(Boolean, default=True, nullable=False)

    expires_at = Column(UTCDateTime(), nullable=True)
    completed_at = Column(UTCDateTime(), nullable=True)
    created_by = Column(GUID(), ForeignKey("users.id"), nullable=False)

    signatures = relationship("DocumentSignature", back_populates="document", lazy="selectin")

    __table_args__ = (
        Index('idx_document_school_status', 'school_id', 'status'),
    )


class DocumentSignature(TenantMixin, Base):
    __tablename__ = "document_signatures"

    document_id = Column(GUID(), ForeignKey("documents.id"), nullable=False, index=True)
    user_id = Column(GUID(), ForeignKey("users.id"), nullable=False, index=True)
    student_id = Column(GUID(), ForeignKey("students.id"), nullable=True)

    signature_data = Column(Text, nullable=True)
    verification_code = Column(String(32), nullable=False, unique=True, index=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)
    signed_at = Column(UTCDateTime(), nullable=False)

    document = relationship("Document", back_populates="signatures")
    user = relationship("User", lazy="selectin")

    __table_args__ = (
        UniqueConstraint('document_id', 'user_id', name='uq_document_signature_user'),
    )
