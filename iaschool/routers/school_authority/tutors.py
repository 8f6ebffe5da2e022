from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ...core.database import get_db
from ...core.dependencies import require_admin
from ...models.tenant_specific.user import User
from ...schemas.tutor_schemas import TutorLinkCreate, TutorLinkUpdate
from ...services.tutor_service import TutorService

router = APIRouter(prefix="/api/v1/school_authority/tutors", tags=["School Authority - Tutors"])


@router.get("")
async def list_tutors(
    student_id: Optional[UUID] = Query(None),
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    service = TutorService(db)
    links = await service.list_tutors(current_user.school_id, student_id)
    return {"items": [service.format_tutor(link) for link in links], "total": len(links)}


@router.post("", status_code=201)
async def create_tutor(
    payload: TutorLinkCreate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    service = TutorService(db)
    link = await service.create_tutor(current_user, payload.to_model_values())
    return service.format_tutor(link)


@router.put("/{link_id}")
async def update_tutor(
    link_id: UUID,
    payload: TutorLinkUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    service = TutorService(db)
    link = await service.update_tutor(current_user, link_id, payload.to_model_values())
    return service.format_tutor(link)


@router.delete("/{link_id}")
async def delete_tutor(
    link_id: UUID,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    service = TutorService(db)
    await service.delete_tutor(current_user, link_id)
    return {"message": "Tutor link removed"}
