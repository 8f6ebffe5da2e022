from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ...core.database import get_db
from ...core.dependencies import require_admin_sub_roles
from ...models.tenant_specific.enrollment import EnrollmentStatus
from ...models.tenant_specific.user import User, AdminSubRole
from ...schemas.enrollment_schemas import EnrollmentUpdate
from ...services.enrollment_service import EnrollmentService

router = APIRouter(prefix="/api/v1/school_authority/enrollments", tags=["School Authority - Enrollments"])

require_admissions = require_admin_sub_roles(AdminSubRole.DIRECCION, AdminSubRole.CONTROL_ESCOLAR)


@router.get("")
async def list_applications(
    status: Optional[EnrollmentStatus] = Query(None),
    year: Optional[str] = Query(None),
    current_user: User = Depends(require_admissions),
    db: AsyncSession = Depends(get_db)
):
    service = EnrollmentService(db)
    result = await service.list_applications(current_user.school_id, status=status, year=year)
    result["items"] = [service.format_enrollment(e) for e in result["items"]]
    return result


@router.get("/{enrollment_id}")
async def get_application(
    enrollment_id: UUID,
    current_user: User = Depends(require_admissions),
    db: AsyncSession = Depends(get_db)
):
    service = EnrollmentService(db)
    return service.format_enrollment(await service.get_or_404(enrollment_id, current_user.school_id))


@router.patch("/{enrollment_id}")
async def update_application(
    enrollment_id: UUID,
    payload: EnrollmentUpdate,
    current_user: User = Depends(require_admissions),
    db: AsyncSession = Depends(get_db)
):
    service = EnrollmentService(db)
    enrollment = await service.update_application(current_user, enrollment_id, payload.model_dump(exclude_unset=True))
    return service.format_enrollment(enrollment)
