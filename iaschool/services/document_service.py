# iaschool/services/document_service.py
"""Documents that parents and staff sign electronically."""
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from .base_service import BaseService
from .roster_service import RosterService
from ..core.exceptions import BadRequestError, NotFoundError, PermissionDenied
from ..core.security_utils import generate_verification_code
from ..models.tenant_specific.document import (
    Document, DocumentSignature, DocumentStatus,
    DOCUMENT_TRANSITIONS, PUBLISHED_DOCUMENT_STATUSES, UNSIGNABLE_DOCUMENT_STATUSES
)
from ..models.tenant_specific.user import User, UserRole, Student, Group
from ..utils.dates import utcnow, ensure_aware

logger = logging.getLogger(__name__)


class DocumentService(BaseService[Document]):
    def __init__(self, db: AsyncSession):
        super().__init__(Document, db)
        self.roster = RosterService(db)

    async def list_documents(
        self,
        user: User,
        status: Optional[DocumentStatus] = None,
        view: Optional[str] = None
    ) -> List[Document]:
        stmt = select(Document).where(Document.school_id == user.school_id, Document.is_deleted == False)

        if user.is_admin:
            if status:
                stmt = stmt.where(Document.status == status)
        else:
            audience = [Document.target_role.is_(None) & Document.group_id.is_(None), Document.target_role == user.role]
            group_ids = await self.roster.get_user_group_ids(user)
            if group_ids:
                audience.append(Document.group_id.in_(group_ids))
            stmt = stmt.where(Document.status.in_(PUBLISHED_DOCUMENT_STATUSES), or_(*audience))

        if view == "pending":
            signed = select(DocumentSignature.document_id).where(DocumentSignature.user_id == user.id)
            stmt = stmt.where(Document.id.not_in(signed))

        result = await self.db.execute(stmt.order_by(Document.created_at.desc()))
        return result.scalars().all()

    async def get_document(self, user: User, document_id: UUID) -> Document:
        document = await self.get_or_404(document_id, user.school_id)
        if not user.is_admin and document.status == DocumentStatus.DRAFT:
            raise PermissionDenied("This document has not been published")
        return document

    async def create_document(self, admin: User, data: Dict[str, Any]) -> Document:
        for field in ("title", "content"):
            if not (data.get(field) or "").strip():
                raise BadRequestError("Title and content are required", field=field)
        if data.get("group_id"):
            await self._ensure_group(admin.school_id, data["group_id"])

        values = {k: v for k, v in data.items() if v is not None}
        document = Document(
            school_id=admin.school_id,
            created_by=admin.id,
            status=DocumentStatus.DRAFT,
            version=1,
            **values
        )
        self.db.add(document)
        await self.db.commit()
        await self.db.refresh(document)
        logger.info(f"Document {document.id} created by {admin.id}")
        return document

    async def _ensure_group(self, school_id: UUID, group_id: UUID):
        result = await self.db.execute(
            select(Group.id).where(Group.id == group_id, Group.school_id == school_id, Group.is_deleted == False)
        )
        if not result.first():
            raise BadRequestError("Group not found", field="group_id")

    async def update_document(self, admin: User, document_id: UUID, data: Dict[str, Any]) -> Document:
        document = await self.get_or_404(document_id, admin.school_id)
        has_signatures = bool(document.signatures)

        for field in ("title", "content"):
            value = data.get(field)
            if value is None or value == getattr(document, field):
                continue
            if has_signatures:
                raise BadRequestError("Title and content cannot change once the document has signatures")
            if field == "content":
                document.version += 1
            setattr(document, field, value)

        status = data.get("status")
        if status is not None and DOCUMENT_TRANSITIONS.validate(document.status, status):
            logger.info(f"Document {document.id} moved {document.status.value} -> {status.value}")
            document.status = status
            if status == DocumentStatus.COMPLETED:
                document.completed_at = utcnow()

        if data.get("group_id"):
            await self._ensure_group(admin.school_id, data["group_id"])
        for key in ("description", "type", "target_role", "group_id", "requires_all", "expires_at"):
            if data.get(key) is not None:
                setattr(document, key, data[key])

        await self.db.commit()
        await self.db.refresh(document)
        return document

    async def delete_document(self, admin: User, document_id: UUID):
        document = await self.get_or_404(document_id, admin.school_id)
        if document.signatures:
            raise BadRequestError("Documents with signatures cannot be deleted")
        document.is_deleted = True
        await self.db.commit()
        logger.info(f"Document {document.id} deleted by {admin.id}")

    async def _can_sign(self, user: User, document: Document) -> bool:
        if user.is_admin:
            return True
        if document.target_role is not None and document.target_role == user.role:
            return True
        if document.group_id is not None:
            if user.role == UserRole.PADRE:
                result = await self.db.execute(
                    select(Student.id).where(Student.group_id == document.group_id, Student.is_deleted == False)
                )
                group_students = set(result.scalars().all())
                if group_students & set(await self.roster.get_children_ids(user.id)):
                    return True
            elif user.role == UserRole.ALUMNO:
                result = await self.db.execute(
                    select(Student.id).where(Student.group_id == document.group_id, Student.user_id == user.id)
                )
                if result.first():
                    return True
        return document.target_role is None and document.group_id is None

    async def _expected_signatures(self, document: Document) -> int:
        if document.group_id is not None:
            return len(await self.roster.get_group_tutor_ids(document.group_id))
        if document.target_role is not None:
            return await self.roster.count_users_with_role(document.school_id, document.target_role)
        return 0

    async def sign_document(
        self,
        user: User,
        document_id: UUID,
        data: Dict[str, Any],
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> DocumentSignature:
        document = await self.get_or_404(document_id, user.school_id)

        if document.status in UNSIGNABLE_DOCUMENT_STATUSES:
            raise BadRequestError(f"Document cannot be signed while {document.status.value}")
        if any(s.user_id == user.id for s in document.signatures):
            raise BadRequestError("You have already signed this document")

        if document.expires_at and ensure_aware(document.expires_at) < utcnow():
            DOCUMENT_TRANSITIONS.validate(document.status, DocumentStatus.EXPIRED)
            document.status = DocumentStatus.EXPIRED
            await self.db.commit()
            raise BadRequestError("Document has expired")

        if not await self._can_sign(user, document):
            raise PermissionDenied("You are not allowed to sign this document")

        if data.get("student_id"):
            await self.roster.get_student(data["student_id"], user.school_id)

        signature = DocumentSignature(
            school_id=user.school_id,
            document_id=document.id,
            user_id=user.id,
            student_id=data.get("student_id"),
            signature_data=data.get("signature_data"),
            verification_code=generate_verification_code(),
            ip_address=ip_address,
            user_agent=(user_agent or "")[:500] or None,
            signed_at=utcnow(),
        )
        document.signatures.append(signature)

        total = len(document.signatures)
        expected = await self._expected_signatures(document)
        if expected > 0 and total >= expected:
            DOCUMENT_TRANSITIONS.validate(document.status, DocumentStatus.COMPLETED)
            document.status = DocumentStatus.COMPLETED
            document.completed_at = utcnow()
        elif document.status == DocumentStatus.PENDING:
            document.status = DocumentStatus.PARTIALLY_SIGNED

        await self.db.commit()
        await self.db.refresh(signature)
        logger.info(f"Document {document.id} signed by {user.id} ({total}/{expected or '-'})")
        return signature

    async def verify_signature(self, code: str) -> Dict[str, Any]:
        result = await self.db.execute(
            select(DocumentSignature).where(DocumentSignature.verification_code == code)
        )
        signature = result.scalar_one_or_none()
        if not signature:
            raise NotFoundError("Signature")
        document = (await self.db.execute(
            select(Document).where(Document.id == signature.document_id)
        )).scalar_one()
        return {
            "valid": True,
            "document_title": document.title,
            "document_version": document.version,
            "document_status": document.status.value,
            "signer_name": signature.user.name if signature.user else None,
            "signed_at": signature.signed_at.isoformat(),
            "verification_code": signature.verification_code,
        }

    async def list_signatures(self, admin: User, document_id: UUID) -> List[DocumentSignature]:
        document = await self.get_or_404(document_id, admin.school_id)
        return sorted(document.signatures, key=lambda s: s.signed_at)

    @staticmethod
    def format_signature(signature: DocumentSignature) -> Dict[str, Any]:
        return {
            "id": str(signature.id),
            "document_id": str(signature.document_id),
            "user_id": str(signature.user_id),
            "user_name": signature.user.name if signature.user else None,
            "student_id": str(signature.student_id) if signature.student_id else None,
            "verification_code": signature.verification_code,
            "ip_address": signature.ip_address,
            "signed_at": signature.signed_at.isoformat(),
        }

    @staticmethod
    def format_document(document: Document, user: User = None) -> Dict[str, Any]:
        data = {
            "id": str(document.id),
            "title": document.title,
            "description": document.description,
            "content": document.content,
            "type": document.type.value,
            "version": document.version,
            "status": document.status.value,
            "target_role": document.target_role.value if document.target_role else None,
            "group_id": str(document.group_id) if document.group_id else None,
            "requires_all": document.requires_all,
            "expires_at": document.expires_at.isoformat() if document.expires_at else None,
            "completed_at": document.completed_at.isoformat() if document.completed_at else None,
            "signature_count": len(document.signatures),
            "created_at": document.created_at.isoformat(),
        }
        if user is not None:
            data["has_signed"] = any(s.user_id == user.id for s in document.signatures)
        return data
