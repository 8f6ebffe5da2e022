from typing import Optional
from uuid import UUID
import httpx
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import get_current_user, require_staff
from ..models.tenant_specific.user import User
from ..schemas.gallery_schemas import AlbumCreate, AlbumUpdate, PhotosAdd, TagCreate
from ..services.gallery_service import GalleryService

router = APIRouter(prefix="/api/v1/gallery", tags=["Gallery"])


def get_vision_transport() -> Optional[httpx.AsyncBaseTransport]:
    """Default network transport; overridden in tests"""
    return None


@router.get("/albums")
async def list_albums(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = GalleryService(db)
    albums = await service.list_albums(current_user)
    return {"items": [service.format_album(a) for a in albums], "total": len(albums)}


@router.post("/albums", status_code=201)
async def create_album(
    payload: AlbumCreate,
    current_user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    service = GalleryService(db)
    album = await service.create_album(current_user, payload.model_dump())
    return service.format_album(album)


@router.get("/albums/{album_id}")
async def get_album(
    album_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = GalleryService(db)
    album = await service.get_album_for_user(current_user, album_id)
    photos = await service.list_photos(current_user, album_id)
    data = service.format_album(album)
    data["photos"] = [service.format_photo(p) for p in photos]
    return data


@router.put("/albums/{album_id}")
async def update_album(
    album_id: UUID,
    payload: AlbumUpdate,
    current_user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    service = GalleryService(db)
    album = await service.update_album(current_user, album_id, payload.model_dump(exclude_unset=True))
    return service.format_album(album)


@router.delete("/albums/{album_id}")
async def delete_album(
    album_id: UUID,
    current_user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    service = GalleryService(db)
    await service.delete_album(current_user, album_id)
    return {"message": "Album deleted successfully"}


@router.post("/albums/{album_id}/photos", status_code=201)
async def add_photos(
    album_id: UUID,
    payload: PhotosAdd,
    current_user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    service = GalleryService(db)
    photos = await service.add_photos(current_user, album_id, [p.model_dump() for p in payload.photos])
    return {"items": [service.format_photo(p) for p in photos], "total": len(photos)}


@router.delete("/photos/{photo_id}")
async def delete_photo(
    photo_id: UUID,
    current_user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    service = GalleryService(db)
    await service.delete_photo(current_user, photo_id)
    return {"message": "Photo deleted successfully"}


@router.post("/photos/{photo_id}/analyze")
async def analyze_photo(
    photo_id: UUID,
    current_user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_vision_transport)
):
    """Tag students recognized in the photo by the vision model"""
    service = GalleryService(db, vision_transport=transport)
    photo = await service.analyze_photo(current_user, photo_id)
    return service.format_photo(photo)


@router.post("/photos/{photo_id}/tags", status_code=201)
async def tag_student(
    photo_id: UUID,
    payload: TagCreate,
    current_user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    service = GalleryService(db)
    tag = await service.tag_student(current_user, photo_id, payload.student_id)
    return service.format_tag(tag)


@router.delete("/photos/{photo_id}/tags/{tag_id}")
async def delete_tag(
    photo_id: UUID,
    tag_id: UUID,
    current_user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    service = GalleryService(db)
    await service.delete_tag(current_user, photo_id, tag_id)
    return {"message": "Tag removed"}


@router.get("/students/{student_id}/photos")
async def student_photos(
    student_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = GalleryService(db)
    photos = await service.get_student_photos(current_user, student_id)
    return {"items": [service.format_photo(p) for p in photos], "total": len(photos)}
