from uuid import UUID
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ...core.database import get_db
from ...core.dependencies import require_admin_sub_roles
from ...models.tenant_specific.user import User, AdminSubRole
from ...schemas.scholarship_schemas import ScholarshipCreate, ScholarshipUpdate, ScholarshipAssign
from ...services.scholarship_service import ScholarshipService

router = APIRouter(prefix="/api/v1/school_authority/scholarships", tags=["School Authority - Scholarships"])

require_finance = require_admin_sub_roles(AdminSubRole.DIRECCION, AdminSubRole.CAJA)
require_direction = require_admin_sub_roles(AdminSubRole.DIRECCION)


@router.get("")
async def list_scholarships(
    current_user: User = Depends(require_finance),
    db: AsyncSession = Depends(get_db)
):
    service = ScholarshipService(db)
    scholarships = await service.list_scholarships(current_user.school_id)
    return {"items": [service.format_scholarship(s) for s in scholarships], "total": len(scholarships)}


@router.post("", status_code=201)
async def create_scholarship(
    payload: ScholarshipCreate,
    current_user: User = Depends(require_finance),
    db: AsyncSession = Depends(get_db)
):
    service = ScholarshipService(db)
    scholarship = await service.create_scholarship(current_user.school_id, payload.model_dump())
    return service.format_scholarship(scholarship)


@router.get("/{scholarship_id}")
async def get_scholarship(
    scholarship_id: UUID,
    current_user: User = Depends(require_finance),
    db: AsyncSession = Depends(get_db)
):
    service = ScholarshipService(db)
    scholarship = await service.get_or_404(scholarship_id, current_user.school_id)
    return service.format_scholarship(scholarship, include_students=True)


@router.put("/{scholarship_id}")
async def update_scholarship(
    scholarship_id: UUID,
    payload: ScholarshipUpdate,
    current_user: User = Depends(require_finance),
    db: AsyncSession = Depends(get_db)
):
    service = ScholarshipService(db)
    scholarship = await service.update_scholarship(
        current_user.school_id, scholarship_id, payload.model_dump(exclude_unset=True)
    )
    return service.format_scholarship(scholarship)


@router.delete("/{scholarship_id}")
async def delete_scholarship(
    scholarship_id: UUID,
    current_user: User = Depends(require_direction),
    db: AsyncSession = Depends(get_db)
):
    service = ScholarshipService(db)
    await service.delete_scholarship(current_user.school_id, scholarship_id)
    return {"message": "Scholarship deleted successfully"}


@router.post("/{scholarship_id}/students")
async def assign_students(
    scholarship_id: UUID,
    payload: ScholarshipAssign,
    current_user: User = Depends(require_finance),
    db: AsyncSession = Depends(get_db)
):
    service = ScholarshipService(db)
    return await service.assign_students(current_user, scholarship_id, payload.student_ids, payload.notes)


@router.delete("/{scholarship_id}/students/{student_id}")
async def unassign_student(
    scholarship_id: UUID,
    student_id: UUID,
    current_user: User = Depends(require_finance),
    db: AsyncSession = Depends(get_db)
):
    service = ScholarshipService(db)
    await service.unassign_student(current_user.school_id, scholarship_id, student_id)
    return {"message": "Student removed from scholarship"}
