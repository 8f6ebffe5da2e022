from datetime import datetime
from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import get_current_user, require_staff
from ..models.tenant_specific.user import User
from ..schemas.event_schemas import EventCreate, EventUpdate, RSVPRequest
from ..services.event_service import EventService

router = APIRouter(prefix="/api/v1/calendar", tags=["Calendar"])


@router.get("/events")
async def list_events(
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = EventService(db)
    events = await service.list_events(current_user, start, end)
    return {"items": [service.format_event(e, current_user) for e in events], "total": len(events)}


@router.post("/events", status_code=201)
async def create_event(
    payload: EventCreate,
    current_user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    service = EventService(db)
    event = await service.create_event(current_user, payload.model_dump())
    return service.format_event(event, current_user)


@router.get("/events/{event_id}")
async def get_event(
    event_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = EventService(db)
    return service.format_event(await service.get_or_404(event_id, current_user.school_id), current_user)


@router.put("/events/{event_id}")
async def update_event(
    event_id: UUID,
    payload: EventUpdate,
    current_user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    service = EventService(db)
    event = await service.update_event(current_user, event_id, payload.model_dump(exclude_unset=True))
    return service.format_event(event, current_user)


@router.delete("/events/{event_id}")
async def delete_event(
    event_id: UUID,
    current_user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    service = EventService(db)
    await service.delete_event(current_user, event_id)
    return {"message": "Event deleted successfully"}


@router.post("/events/{event_id}/rsvp")
async def respond_to_event(
    event_id: UUID,
    payload: RSVPRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = EventService(db)
    attendee = await service.respond(current_user, event_id, payload.status)
    return {
        "event_id": str(event_id),
        "status": attendee.status.value,
        "response_at": attendee.response_at.isoformat()
    }
