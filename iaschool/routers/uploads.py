from fastapi import APIRouter, Depends

from ..core.dependencies import get_current_user
from ..models.tenant_specific.user import User
from ..schemas.upload_schemas import PresignedUploadRequest
from ..services.upload_service import UploadService

router = APIRouter(prefix="/api/v1/uploads", tags=["Uploads"])


def get_upload_service() -> UploadService:
    return UploadService()


@router.post("/presigned")
async def presigned_upload(
    payload: PresignedUploadRequest,
    current_user: User = Depends(get_current_user),
    service: UploadService = Depends(get_upload_service)
):
    """Issue a presigned PUT URL; the client uploads straight to storage"""
    return service.create_presigned_upload(
        current_user.school_id, payload.file_name, payload.content_type, payload.folder
    )
