# iaschool/services/gallery_service.py
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

import httpx
from sqlalchemy import select, func, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession

from .base_service import BaseService
from .roster_service import RosterService
from .vision_service import VisionService, VisionServiceException
from ..core.exceptions import BadRequestError, ConflictError, ExternalServiceError, NotFoundError, PermissionDenied
from ..models.tenant_specific.gallery import Album, Photo, PhotoTag, AlbumVisibility
from ..models.tenant_specific.user import User, UserRole, Student
from ..utils.dates import utcnow

logger = logging.getLogger(__name__)


class GalleryService(BaseService[Album]):
    def __init__(self, db: AsyncSession, vision_transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(Album, db)
        self.roster = RosterService(db)
        self.vision_transport = vision_transport

    # Albums

    async def _visibility_filter(self, user: User):
        """Albums a non-admin may see: public, their own, or group-only for their groups"""
        visibility = [Album.visibility == AlbumVisibility.PUBLIC, Album.created_by == user.id]
        group_ids = await self.roster.get_user_group_ids(user)
        if group_ids:
            visibility.append(and_(
                Album.visibility == AlbumVisibility.GROUP_ONLY,
                Album.group_id.in_(group_ids)
            ))
        return or_(*visibility)

    async def list_albums(self, user: User) -> List[Album]:
        stmt = select(Album).where(Album.school_id == user.school_id, Album.is_deleted == False)
        if not user.is_admin:
            stmt = stmt.where(await self._visibility_filter(user))
        result = await self.db.execute(stmt.order_by(Album.event_date.desc(), Album.created_at.desc()))
        return result.scalars().all()

    async def get_album_for_user(self, user: User, album_id: UUID) -> Album:
        album = await self.get_or_404(album_id, user.school_id)
        if user.is_admin or album.created_by == user.id or album.visibility == AlbumVisibility.PUBLIC:
            return album
        if album.visibility == AlbumVisibility.GROUP_ONLY and album.group_id in await self.roster.get_user_group_ids(user):
            return album
        raise NotFoundError("Album", album_id)

    async def create_album(self, user: User, data: Dict[str, Any]) -> Album:
        if data.get("visibility") == AlbumVisibility.GROUP_ONLY and not data.get("group_id"):
            raise BadRequestError("Group-only albums need a group", field="group_id")
        values = {k: v for k, v in data.items() if v is not None}
        album = Album(school_id=user.school_id, created_by=user.id, **values)
        self.db.add(album)
        await self.db.commit()
        await self.db.refresh(album)
        logger.info(f"Album {album.id} created by {user.id}")
        return album

    async def _get_editable(self, user: User, album_id: UUID) -> Album:
        album = await self.get_or_404(album_id, user.school_id)
        if not user.is_admin and album.created_by != user.id:
            raise PermissionDenied("Only the creator or an administrator can modify this album")
        return album

    async def update_album(self, user: User, album_id: UUID, data: Dict[str, Any]) -> Album:
        album = await self._get_editable(user, album_id)
        for key, value in data.items():
            if value is not None:
                setattr(album, key, value)
        if album.visibility == AlbumVisibility.GROUP_ONLY and not album.group_id:
            raise BadRequestError("Group-only albums need a group", field="group_id")
        await self.db.commit()
        await self.db.refresh(album)
        return album

    async def delete_album(self, user: User, album_id: UUID):
        album = await self._get_editable(user, album_id)
        album.is_deleted = True
        await self.db.commit()
        logger.info(f"Album {album.id} deleted by {user.id}")

    # Photos

    async def list_photos(self, user: User, album_id: UUID) -> List[Photo]:
        album = await self.get_album_for_user(user, album_id)
        result = await self.db.execute(
            select(Photo).where(Photo.album_id == album.id, Photo.is_deleted == False).order_by(Photo.order)
        )
        return result.scalars().all()

    async def add_photos(self, user: User, album_id: UUID, photos: List[Dict[str, Any]]) -> List[Photo]:
        album = await self._get_editable(user, album_id)
        if not photos:
            raise BadRequestError("At least one photo is required", field="photos")

        last_order = (await self.db.execute(
            select(func.max(Photo.order)).where(Photo.album_id == album.id, Photo.is_deleted == False)
        )).scalar()
        next_order = (last_order if last_order is not None else -1) + 1

        created = []
        for item in photos:
            photo = Photo(
                school_id=user.school_id,
                album_id=album.id,
                url=item["url"],
                thumbnail_url=item.get("thumbnail_url"),
                caption=item.get("caption"),
                order=next_order,
                uploaded_by=user.id,
            )
            next_order += 1
            self.db.add(photo)
            created.append(photo)

        if not album.cover_url:
            album.cover_url = created[0].thumbnail_url or created[0].url
        album.photo_count = (album.photo_count or 0) + len(created)

        await self.db.commit()
        for photo in created:
            await self.db.refresh(photo)
        return created

    async def _get_photo(self, school_id: UUID, photo_id: UUID) -> Photo:
        result = await self.db.execute(
            select(Photo).where(Photo.id == photo_id, Photo.school_id == school_id, Photo.is_deleted == False)
        )
        photo = result.scalar_one_or_none()
        if not photo:
            raise NotFoundError("Photo", photo_id)
        return photo

    async def delete_photo(self, user: User, photo_id: UUID):
        photo = await self._get_photo(user.school_id, photo_id)
        album = await self._get_editable(user, photo.album_id)

        photo.is_deleted = True
        album.photo_count = max((album.photo_count or 0) - 1, 0)
        if album.cover_url in (photo.url, photo.thumbnail_url):
            next_cover = (await self.db.execute(
                select(Photo).where(
                    Photo.album_id == album.id,
                    Photo.id != photo.id,
                    Photo.is_deleted == False
                ).order_by(Photo.order).limit(1)
            )).scalar_one_or_none()
            album.cover_url = (next_cover.thumbnail_url or next_cover.url) if next_cover else None

        await self.db.commit()

    # Tagging

    async def _reference_students(self, school_id: UUID, group_id: Optional[UUID]) -> List[Student]:
        stmt = select(Student).where(
            Student.school_id == school_id,
            Student.is_active == True,
            Student.is_deleted == False,
            Student.photo_url.isnot(None),
            Student.photo_url != ""
        )
        if group_id:
            stmt = stmt.where(Student.group_id == group_id)
        result = await self.db.execute(stmt.order_by(Student.last_name, Student.first_name))
        return result.scalars().all()

    async def analyze_photo(self, user: User, photo_id: UUID) -> Photo:
        photo = await self._get_photo(user.school_id, photo_id)
        album = await self.get_or_404(photo.album_id, user.school_id)

        students = await self._reference_students(user.school_id, album.group_id)
        if not students:
            raise BadRequestError("No students have a reference photo", needs_profiles=True)

        references = [
            {"student_id": str(s.id), "name": s.full_name, "photo_url": s.photo_url}
            for s in students
        ]
        try:
            matches = await VisionService(transport=self.vision_transport).recognize_students(photo.url, references)
        except VisionServiceException as e:
            raise ExternalServiceError("vision", str(e))

        valid_ids = {str(s.id): s.id for s in students}
        already_tagged = {tag.student_id for tag in photo.tags}
        added = 0
        for match in matches:
            student_id = valid_ids.get(match["student_id"])
            if student_id is None or student_id in already_tagged:
                continue
            photo.tags.append(PhotoTag(
                student_id=student_id,
                confidence=match["confidence"],
                is_manual=False,
                tagged_by=user.id,
            ))
            already_tagged.add(student_id)
            added += 1

        photo.is_processed = True
        photo.processed_at = utcnow()
        await self.db.commit()
        await self.db.refresh(photo)
        logger.info(f"Photo {photo.id} analyzed: {added} new tags from {len(matches)} matches")
        return photo

    async def tag_student(self, user: User, photo_id: UUID, student_id: UUID) -> PhotoTag:
        photo = await self._get_photo(user.school_id, photo_id)
        student = await self.roster.get_student(student_id, user.school_id)
        if any(tag.student_id == student.id for tag in photo.tags):
            raise ConflictError("Student already tagged in this photo")

        tag = PhotoTag(photo_id=photo.id, student_id=student.id, confidence=1.0, is_manual=True, tagged_by=user.id)
        self.db.add(tag)
        await self.db.commit()
        await self.db.refresh(tag)
        return tag

    async def delete_tag(self, user: User, photo_id: UUID, tag_id: UUID):
        photo = await self._get_photo(user.school_id, photo_id)
        tag = next((t for t in photo.tags if t.id == tag_id), None)
        if not tag:
            raise NotFoundError("Tag", tag_id)
        photo.tags.remove(tag)
        await self.db.commit()

    async def get_student_photos(self, user: User, student_id: UUID) -> List[Photo]:
        student = await self.roster.get_student(student_id, user.school_id)
        if user.role == UserRole.PADRE:
            await self.roster.ensure_child_of(user, student.id)
        elif not (user.is_admin or user.role == UserRole.PROFESOR or student.user_id == user.id):
            raise PermissionDenied()

        stmt = (
            select(Photo)
            .join(PhotoTag, PhotoTag.photo_id == Photo.id)
            .join(Album, Album.id == Photo.album_id)
            .where(
                PhotoTag.student_id == student.id,
                Photo.is_deleted == False,
                Album.is_deleted == False
            )
        )
        if not user.is_admin:
            stmt = stmt.where(await self._visibility_filter(user))
        result = await self.db.execute(stmt.order_by(Photo.created_at.desc()))
        return result.scalars().unique().all()

    # Formatting

    @staticmethod
    def format_album(album: Album) -> Dict[str, Any]:
        return {
            "id": str(album.id),
            "title": album.title,
            "description": album.description,
            "event_date": album.event_date.isoformat() if album.event_date else None,
            "visibility": album.visibility.value,
            "group_id": str(album.group_id) if album.group_id else None,
            "cover_url": album.cover_url,
            "photo_count": album.photo_count,
            "created_by": str(album.created_by),
            "created_at": album.created_at.isoformat(),
        }

    @staticmethod
    def format_tag(tag: PhotoTag) -> Dict[str, Any]:
        return {
            "id": str(tag.id),
            "student_id": str(tag.student_id),
            "student_name": tag.student.full_name if tag.student else None,
            "confidence": tag.confidence,
            "is_manual": tag.is_manual,
        }

    @classmethod
    def format_photo(cls, photo: Photo) -> Dict[str, Any]:
        return {
            "id": str(photo.id),
            "album_id": str(photo.album_id),
            "url": photo.url,
            "thumbnail_url": photo.thumbnail_url,
            "caption": photo.caption,
            "order": photo.order,
            "is_processed": photo.is_processed,
            "processed_at": photo.processed_at.isoformat() if photo.processed_at else None,
            "tags": [cls.format_tag(tag) for tag in photo.tags],
        }
