"""Endpoints reachable without a session: admission form, signature verification, email open pixel."""
import base64
from uuid import UUID

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..schemas.enrollment_schemas import EnrollmentApplication
from ..services.crm_service import CrmService
from ..services.document_service import DocumentService
from ..services.enrollment_service import EnrollmentService

router = APIRouter(prefix="/api/v1/public", tags=["Public"])

TRACKING_PIXEL = base64.b64decode("R0lGODlhAQABAIAAAAAAAP///yH5BAEAAAAALAAAAAABAAEAAAIBRAA7")


@router.post("/enrollments", status_code=201)
async def submit_enrollment(
    application: EnrollmentApplication,
    db: AsyncSession = Depends(get_db)
):
    """Public admission application addressed by school code"""
    service = EnrollmentService(db)
    enrollment = await service.submit_application(application.model_dump())
    return {
        "message": "Application received",
        "id": str(enrollment.id),
        "folio": str(enrollment.id),
        "status": enrollment.status.value
    }


@router.get("/documents/verify/{code}")
async def verify_signature(code: str, db: AsyncSession = Depends(get_db)):
    service = DocumentService(db)
    return await service.verify_signature(code)


@router.get("/campaigns/{campaign_id}/open/{recipient_id}")
async def track_open(
    campaign_id: UUID,
    recipient_id: UUID,
    db: AsyncSession = Depends(get_db)
):
    """1x1 pixel embedded in campaign emails"""
    service = CrmService(db)
    await service.track_open(campaign_id, recipient_id)
    return Response(content=TRACKING_PIXEL, media_type="image/gif", headers={"Cache-Control": "no-store"})
