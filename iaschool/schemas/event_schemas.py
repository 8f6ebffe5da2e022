# iaschool/schemas/event_schemas.py
from datetime import datetime
from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel, Field

from ..models.tenant_specific.event import EventType, AttendeeStatus


class EventCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None)
    start_date: datetime
    end_date: Optional[datetime] = Field(default=None)
    all_day: bool = Field(default=False)
    location: Optional[str] = Field(default=None, max_length=300)
    type: EventType = Field(default=EventType.ESCOLAR)
    color: Optional[str] = Field(default=None, pattern=r"^#[0-9A-Fa-f]{6}$")
    is_public: bool = Field(default=False)
    group_id: Optional[UUID] = Field(default=None)
    attendee_ids: List[UUID] = Field(default_factory=list)


class EventUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None)
    start_date: Optional[datetime] = Field(default=None)
    end_date: Optional[datetime] = Field(default=None)
    all_day: Optional[bool] = Field(default=None)
    location: Optional[str] = Field(default=None, max_length=300)
    type: Optional[EventType] = Field(default=None)
    color: Optional[str] = Field(default=None, pattern=r"^#[0-9A-Fa-f]{6}$")
    is_public: Optional[bool] = Field(default=None)
    group_id: Optional[UUID] = Field(default=None)
    attendee_ids: Optional[List[UUID]] = Field(default=None)


class RSVPRequest(BaseModel):
    status: AttendeeStatus
