# iaschool/schemas/gallery_schemas.py
from datetime import datetime
from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel, Field

from ..models.tenant_specific.gallery import AlbumVisibility


class AlbumCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None)
    event_date: Optional[datetime] = Field(default=None)
    visibility: AlbumVisibility = Field(default=AlbumVisibility.PUBLIC)
    group_id: Optional[UUID] = Field(default=None)


class AlbumUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None)
    event_date: Optional[datetime] = Field(default=None)
    visibility: Optional[AlbumVisibility] = Field(default=None)
    group_id: Optional[UUID] = Field(default=None)
    cover_url: Optional[str] = Field(default=None, max_length=500)


class PhotoIn(BaseModel):
    url: str = Field(..., min_length=1, max_length=500)
    thumbnail_url: Optional[str] = Field(default=None, max_length=500)
    caption: Optional[str] = Field(default=None, max_length=500)


class PhotosAdd(BaseModel):
    photos: List[PhotoIn] = Field(..., min_length=1, max_length=100)


class TagCreate(BaseModel):
    student_id: UUID
