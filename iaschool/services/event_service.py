# iaschool/services/event_service.py
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from .base_service import BaseService
from .roster_service import RosterService
from ..core.exceptions import BadRequestError, NotFoundError, PermissionDenied
from ..models.tenant_specific.event import Event, EventAttendee, AttendeeStatus
from ..models.tenant_specific.user import User
from ..utils.dates import utcnow, ensure_aware

logger = logging.getLogger(__name__)

RSVP_STATUSES = (AttendeeStatus.CONFIRMED, AttendeeStatus.DECLINED)


class EventService(BaseService[Event]):
    def __init__(self, db: AsyncSession):
        super().__init__(Event, db)
        self.roster = RosterService(db)

    async def list_events(
        self,
        user: User,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> List[Event]:
        stmt = select(Event).where(Event.school_id == user.school_id, Event.is_deleted == False)

        if not user.is_admin:
            attending = select(EventAttendee.event_id).where(EventAttendee.user_id == user.id)
            visibility = [
                Event.is_public == True,
                Event.created_by == user.id,
                Event.id.in_(attending),
            ]
            group_ids = await self.roster.get_user_group_ids(user)
            if group_ids:
                visibility.append(Event.group_id.in_(group_ids))
            stmt = stmt.where(or_(*visibility))

        if start:
            stmt = stmt.where(Event.end_date >= ensure_aware(start))
        if end:
            stmt = stmt.where(Event.start_date <= ensure_aware(end))

        result = await self.db.execute(stmt.order_by(Event.start_date))
        return result.scalars().all()

    async def _validate_attendees(self, school_id: UUID, attendee_ids: List[UUID]) -> List[UUID]:
        unique_ids = list(dict.fromkeys(attendee_ids or []))
        if not unique_ids:
            return []
        result = await self.db.execute(
            select(User.id).where(
                User.id.in_(unique_ids),
                User.school_id == school_id,
                User.is_deleted == False
            )
        )
        found = set(result.scalars().all())
        if len(found) != len(unique_ids):
            raise BadRequestError("Some attendees do not belong to this school", field="attendee_ids")
        return unique_ids

    async def create_event(self, user: User, data: Dict[str, Any]) -> Event:
        start, end = ensure_aware(data["start_date"]), ensure_aware(data.get("end_date") or data["start_date"])
        if end < start:
            raise BadRequestError("End date must be after start date", field="end_date")
        attendee_ids = await self._validate_attendees(user.school_id, data.get("attendee_ids"))

        values = {k: v for k, v in data.items() if k not in ("attendee_ids", "start_date", "end_date") and v is not None}
        event = Event(
            school_id=user.school_id,
            created_by=user.id,
            start_date=start,
            end_date=end,
            **values
        )
        event.attendees = [EventAttendee(user_id=uid) for uid in attendee_ids]
        self.db.add(event)
        await self.db.commit()
        await self.db.refresh(event)
        logger.info(f"Event {event.id} created by {user.id} with {len(attendee_ids)} attendees")
        return event

    async def _get_editable(self, user: User, event_id: UUID) -> Event:
        event = await self.get_or_404(event_id, user.school_id)
        if not user.is_admin and event.created_by != user.id:
            raise PermissionDenied("Only the creator or an administrator can modify this event")
        return event

    async def update_event(self, user: User, event_id: UUID, data: Dict[str, Any]) -> Event:
        event = await self._get_editable(user, event_id)

        if "attendee_ids" in data and data["attendee_ids"] is not None:
            attendee_ids = await self._validate_attendees(user.school_id, data.pop("attendee_ids"))
            current = {a.user_id: a for a in event.attendees}
            event.attendees = [current.get(uid) or EventAttendee(user_id=uid) for uid in attendee_ids]

        for key, value in data.items():
            if value is None or key == "attendee_ids":
                continue
            if key in ("start_date", "end_date"):
                value = ensure_aware(value)
            setattr(event, key, value)

        if event.end_date < event.start_date:
            raise BadRequestError("End date must be after start date", field="end_date")

        await self.db.commit()
        await self.db.refresh(event)
        return event

    async def delete_event(self, user: User, event_id: UUID):
        event = await self._get_editable(user, event_id)
        event.is_deleted = True
        await self.db.commit()
        logger.info(f"Event {event.id} deleted by {user.id}")

    async def respond(self, user: User, event_id: UUID, status: AttendeeStatus) -> EventAttendee:
        if status not in RSVP_STATUSES:
            raise BadRequestError("Response must be CONFIRMED or DECLINED", field="status")
        await self.get_or_404(event_id, user.school_id)

        result = await self.db.execute(
            select(EventAttendee).where(
                EventAttendee.event_id == event_id,
                EventAttendee.user_id == user.id
            )
        )
        attendee = result.scalar_one_or_none()
        if not attendee:
            raise NotFoundError("Invitation")

        attendee.status = status
        attendee.response_at = utcnow()
        await self.db.commit()
        await self.db.refresh(attendee)
        return attendee

    @staticmethod
    def format_event(event: Event, user: User = None) -> Dict[str, Any]:
        attendees = [
            {
                "user_id": str(a.user_id),
                "name": a.user.name if a.user else None,
                "status": a.status.value,
                "response_at": a.response_at.isoformat() if a.response_at else None,
            }
            for a in event.attendees
        ]
        data = {
            "id": str(event.id),
            "title": event.title,
            "description": event.description,
            "start_date": event.start_date.isoformat(),
            "end_date": event.end_date.isoformat(),
            "all_day": event.all_day,
            "location": event.location,
            "type": event.type.value,
            "color": event.color,
            "is_public": event.is_public,
            "group_id": str(event.group_id) if event.group_id else None,
            "created_by": str(event.created_by),
            "creator_name": event.creator.name if event.creator else None,
            "attendees": attendees,
        }
        if user is not None:
            mine = next((a for a in event.attendees if a.user_id == user.id), None)
            data["my_response"] = mine.status.value if mine else None
        return data
