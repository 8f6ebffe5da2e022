from sqlalchemy import Column, String, Text, ForeignKey, Enum, UniqueConstraint, Index
from sqlalchemy.orm import relationship
import enum

from ..base import Base, TenantMixin
from ..types import GUID, UTCDateTime


class ConversationType(str, enum.Enum):
    DIRECT = "DIRECT"
    GROUP = "GROUP"


class MessageType(str, enum.Enum):
    TEXT = "TEXT"
    FILE = "FILE"
    IMAGE = "IMAGE"


class Conversation(TenantMixin, Base):
    __tablename__ = "conversations"

    type = Column(Enum(ConversationType, name="conversation_type"), nullable=False, default=ConversationType.DIRECT)
    title = Column(String(200), nullable=True)
    last_message_at = Column(UTCDateTime(), nullable=True, index=True)
    created_by = Column(GUID(), ForeignKey("users.id"), nullable=True)

    participants = relationship("ConversationParticipant", back_populates="conversation", lazy="selectin")


class ConversationParticipant(Base):
    __tablename__ = "conversation_participants"

    conversation_id = Column(GUID(), ForeignKey("conversations.id"), nullable=False, index=True)
    user_id = Column(GUID(), ForeignKey("users.id"), nullable=False, index=True)
    last_read_at = Column(UTCDateTime(), nullable=True)

    conversation = relationship("Conversation", back_populates="participants")
    user = relationship("User", lazy="selectin")

    __table_args__ = (
        UniqueConstraint('conversation_id', 'user_id', name='uq_conversation_participant'),
    )


class Message(Base):
    __tablename__ = "messages"

    conversation_id = Column(GUID(), ForeignKey("conversations.id"), nullable=False)
    sender_id = Column(GUID(), ForeignKey("users.id"), nullable=False)
    content = Column(Text, nullable=True)
    type = Column(Enum(MessageType, name="message_type"), nullable=False, default=MessageType.TEXT)
    file_url = Column(String(500), nullable=True)
    file_name = Column(String(255), nullable=True)

    sender = relationship("User", lazy="selectin")

    __table_args__ = (
        Index('idx_message_conversation_created', 'conversation_id', 'created_at'),
    )
