from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import get_current_user, require_admin
from ..models.tenant_specific.document import DocumentStatus
from ..models.tenant_specific.user import User
from ..schemas.document_schemas import DocumentCreate, DocumentUpdate, SignRequest
from ..services.document_service import DocumentService

router = APIRouter(prefix="/api/v1/documents", tags=["Documents"])


@router.get("")
async def list_documents(
    status: Optional[DocumentStatus] = Query(None),
    view: Optional[str] = Query(None, pattern="^(all|pending)$"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = DocumentService(db)
    documents = await service.list_documents(current_user, status, view)
    return {
        "items": [service.format_document(d, current_user) for d in documents],
        "total": len(documents)
    }


@router.post("", status_code=201)
async def create_document(
    payload: DocumentCreate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    service = DocumentService(db)
    document = await service.create_document(current_user, payload.model_dump())
    return service.format_document(document, current_user)


@router.get("/{document_id}")
async def get_document(
    document_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = DocumentService(db)
    document = await service.get_document(current_user, document_id)
    return service.format_document(document, current_user)


@router.put("/{document_id}")
async def update_document(
    document_id: UUID,
    payload: DocumentUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    service = DocumentService(db)
    document = await service.update_document(current_user, document_id, payload.model_dump(exclude_unset=True))
    return service.format_document(document, current_user)


@router.delete("/{document_id}")
async def delete_document(
    document_id: UUID,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    service = DocumentService(db)
    await service.delete_document(current_user, document_id)
    return {"message": "Document deleted successfully"}


@router.post("/{document_id}/sign", status_code=201)
async def sign_document(
    document_id: UUID,
    payload: SignRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = DocumentService(db)
    signature = await service.sign_document(
        current_user,
        document_id,
        payload.model_dump(),
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent")
    )
    return {
        "message": "Document signed successfully",
        "signature": service.format_signature(signature)
    }


@router.get("/{document_id}/signatures")
async def list_signatures(
    document_id: UUID,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    service = DocumentService(db)
    signatures = await service.list_signatures(current_user, document_id)
    return {"items": [service.format_signature(s) for s in signatures], "total": len(signatures)}
