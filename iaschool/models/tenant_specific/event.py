from sqlalchemy import Column, String, Boolean, Text, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
import enum

from ..base import Base, TenantMixin
from ..types import GUID, UTCDateTime


class EventType(str, enum.Enum):
    ESCOLAR = "ESCOLAR"
    REUNION = "REUNION"
    EXAMEN = "EXAMEN"
    FESTIVO = "FESTIVO"
    EXCURSION = "EXCURSION"
    OTRO = "OTRO"


class AttendeeStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    DECLINED = "DECLINED"


class Event(TenantMixin, Base):
    __tablename__ = "events"

    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    start_date = Column(UTCDateTime(), nullable=False, index=True)
    end_date = Column(UTCDateTime(), nullable=False)
    all_day = Column(Boolean, default=False, nullable=False)
    location = Column(String(300), nullable=True)
    type = Column(Enum(EventType, name="event_type"), nullable=False, default=EventType.ESCOLAR)
    color = Column(String(7), nullable=False, default="#1B4079")
    is_public = Column(Boolean, default=False, nullable=False)
    group_id = Column(GUID(), ForeignKey("groups.id"), nullable=True)
    created_by = Column(GUID(), ForeignKey("users.id"), nullable=False)

    creator = relationship("User", lazy="selectin")
    attendees = relationship("EventAttendee", back_populates="event", lazy="selectin", cascade="all, delete-orphan")


class EventAttendee(Base):
    __tablename__ = "event_attendees"

    event_id = Column(GUID(), ForeignKey("events.id"), nullable=False, index=True)
    user_id = Column(GUID(), ForeignKey("users.id"), nullable=False, index=True)
    status = Column(Enum(AttendeeStatus, name="attendee_status"), nullable=False, default=AttendeeStatus.PENDING)
    response_at = Column(UTCDateTime(), nullable=True)

    event = relationship("Event", back_populates="attendees")
    user = relationship("User", lazy="selectin")

    __table_args__ = (
        UniqueConstraint('event_id', 'user_id', name='uq_event_attendee'),
    )
