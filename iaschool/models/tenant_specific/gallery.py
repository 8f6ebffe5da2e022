from sqlalchemy import Column, String, Boolean, Integer, Float, Text, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
import enum

from ..base import Base, TenantMixin
from ..types import GUID, UTCDateTime


class AlbumVisibility(str, enum.Enum):
    PUBLIC = "PUBLIC"
    PRIVATE = "PRIVATE"
    GROUP_ONLY = "GROUP_ONLY"


class Album(TenantMixin, Base):
    __tablename__ = "albums"

    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    event_date = Column(UTCDateTime(), nullable=True)
    visibility = Column(Enum(AlbumVisibility, name="album_visibility"), nullable=False, default=AlbumVisibility.PUBLIC)
    group_id = Column(GUID(), ForeignKey("groups.id"), nullable=True)
    cover_url = Column(String(500), nullable=True)
    photo_count = Column(Integer, nullable=False, default=0)
    created_by = Column(GUID(), ForeignKey("users.id"), nullable=False)


class Photo(TenantMixin, Base):
    __tablename__ = "photos"

    album_id = Column(GUID(), ForeignKey("albums.id"), nullable=False, index=True)
    url = Column(String(500), nullable=False)
    thumbnail_url = Column(String(500), nullable=True)
    caption = Column(String(500), nullable=True)
    order = Column(Integer, nullable=False, default=0)
    is_processed = Column(Boolean, default=False, nullable=False)
    processed_at = Column(UTCDateTime(), nullable=True)
    uploaded_by = Column(GUID(), ForeignKey("users.id"), nullable=False)

    tags = relationship("PhotoTag", back_populates="photo", lazy="selectin", cascade="all, delete-orphan")


class PhotoTag(Base):
    __tablename__ = "photo_tags"

    photo_id = Column(GUID(), ForeignKey("photos.id"), nullable=False, index=True)
    student_id = Column(GUID(), ForeignKey("students.id"), nullable=False, index=True)
    confidence = Column(Float, nullable=False, default=1.0)
    is_manual = Column(Boolean, default=True, nullable=False)
    tagged_by = Column(GUID(), ForeignKey("users.id"), nullable=True)

    photo = relationship("Photo", back_populates="tags")
    student = relationship("Student", lazy="selectin")

    __table_args__ = (
        UniqueConstraint('photo_id', 'student_id', name='uq_photo_tag_student'),
    )
