# iaschool/services/messaging_service.py
from typing import Any, Dict, List, Optional
from uuid import UUID
import logging

from sqlalchemy import select, func, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession

from .base_service import BaseService
from ..core.exceptions import BadRequestError, NotFoundError, PermissionDenied
from ..models.tenant_specific.messaging import (
    Conversation, ConversationParticipant, Message, ConversationType, MessageType
)
from ..models.tenant_specific.user import User
from ..utils.dates import utcnow

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100


class MessagingService(BaseService[Conversation]):
    def __init__(self, db: AsyncSession):
        super().__init__(Conversation, db)

    def _participant(self, conversation: Conversation, user: User) -> ConversationParticipant:
        participant = next((p for p in conversation.participants if p.user_id == user.id), None)
        if not participant:
            raise PermissionDenied("You are not a participant of this conversation")
        return participant

    async def _last_message(self, conversation_id: UUID) -> Optional[Message]:
        result = await self.db.execute(
            select(Message)
            .where(Message.conversation_id == conversation_id, Message.is_deleted == False)
            .order_by(Message.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _unread_count(self, participant: ConversationParticipant) -> int:
        stmt = select(func.count()).select_from(Message).where(
            Message.conversation_id == participant.conversation_id,
            Message.sender_id != participant.user_id,
            Message.is_deleted == False
        )
        if participant.last_read_at:
            stmt = stmt.where(Message.created_at > participant.last_read_at)
        return (await self.db.execute(stmt)).scalar()

    async def list_conversations(self, user: User) -> List[Dict[str, Any]]:
        mine = select(ConversationParticipant.conversation_id).where(ConversationParticipant.user_id == user.id)
        result = await self.db.execute(
            select(Conversation).where(
                Conversation.school_id == user.school_id,
                Conversation.is_deleted == False,
                Conversation.id.in_(mine)
            ).order_by(Conversation.last_message_at.desc().nullslast(), Conversation.created_at.desc())
        )

        conversations = []
        for conversation in result.scalars().all():
            participant = self._participant(conversation, user)
            conversations.append(self.format_conversation(
                conversation,
                last_message=await self._last_message(conversation.id),
                unread_count=await self._unread_count(participant),
            ))
        return conversations

    async def _find_direct(self, school_id: UUID, user_id: UUID, other_id: UUID) -> Optional[Conversation]:
        mine = select(ConversationParticipant.conversation_id).where(ConversationParticipant.user_id == user_id)
        theirs = select(ConversationParticipant.conversation_id).where(ConversationParticipant.user_id == other_id)
        result = await self.db.execute(
            select(Conversation).where(
                Conversation.school_id == school_id,
                Conversation.type == ConversationType.DIRECT,
                Conversation.is_deleted == False,
                Conversation.id.in_(mine),
                Conversation.id.in_(theirs)
            ).limit(1)
        )
        return result.scalar_one_or_none()

    async def create_conversation(self, user: User, data: Dict[str, Any]) -> Conversation:
        conv_type = data.get("type") or ConversationType.DIRECT
        other_ids = [uid for uid in dict.fromkeys(data.get("participant_ids") or []) if uid != user.id]
        if not other_ids:
            raise BadRequestError("At least one other participant is required", field="participant_ids")

        found = await self.db.execute(
            select(User.id).where(
                User.id.in_(other_ids),
                User.school_id == user.school_id,
                User.is_active == True,
                User.is_deleted == False
            )
        )
        if len(set(found.scalars().all())) != len(other_ids):
            raise BadRequestError("Some participants do not belong to this school", field="participant_ids")

        if conv_type == ConversationType.DIRECT:
            if len(other_ids) != 1:
                raise BadRequestError("Direct conversations have exactly one other participant", field="participant_ids")
            existing = await self._find_direct(user.school_id, user.id, other_ids[0])
            if existing:
                return existing
        elif not (data.get("title") or "").strip():
            raise BadRequestError("Group conversations need a title", field="title")

        conversation = Conversation(
            school_id=user.school_id,
            type=conv_type,
            title=data.get("title"),
            created_by=user.id,
        )
        conversation.participants = [
            ConversationParticipant(user_id=uid, last_read_at=utcnow() if uid == user.id else None)
            for uid in [user.id, *other_ids]
        ]
        self.db.add(conversation)
        await self.db.commit()
        await self.db.refresh(conversation)
        logger.info(f"{conv_type.value} conversation {conversation.id} created by {user.id}")
        return conversation

    async def get_conversation(self, user: User, conversation_id: UUID) -> Conversation:
        conversation = await self.get_or_404(conversation_id, user.school_id)
        self._participant(conversation, user)
        return conversation

    async def list_messages(
        self,
        user: User,
        conversation_id: UUID,
        cursor: Optional[UUID] = None,
        limit: int = DEFAULT_PAGE_SIZE
    ) -> Dict[str, Any]:
        """Newest first; ``cursor`` is the id of the oldest message already seen"""
        conversation = await self.get_or_404(conversation_id, user.school_id)
        participant = self._participant(conversation, user)
        limit = max(1, min(limit, MAX_PAGE_SIZE))

        stmt = select(Message).where(Message.conversation_id == conversation.id, Message.is_deleted == False)
        if cursor:
            anchor = (await self.db.execute(
                select(Message).where(Message.id == cursor, Message.conversation_id == conversation.id)
            )).scalar_one_or_none()
            if not anchor:
                raise NotFoundError("Message", cursor)
            stmt = stmt.where(or_(
                Message.created_at < anchor.created_at,
                and_(Message.created_at == anchor.created_at, Message.id < anchor.id)
            ))

        result = await self.db.execute(stmt.order_by(Message.created_at.desc(), Message.id.desc()).limit(limit + 1))
        messages = result.scalars().all()
        has_more = len(messages) > limit
        messages = messages[:limit]

        participant.last_read_at = utcnow()
        await self.db.commit()

        return {
            "items": [self.format_message(m) for m in messages],
            "next_cursor": str(messages[-1].id) if has_more else None,
            "has_more": has_more,
        }

    async def send_message(self, user: User, conversation_id: UUID, data: Dict[str, Any]) -> Message:
        conversation = await self.get_or_404(conversation_id, user.school_id)
        participant = self._participant(conversation, user)

        msg_type = data.get("type") or MessageType.TEXT
        content = (data.get("content") or "").strip()
        if msg_type == MessageType.TEXT and not content:
            raise BadRequestError("Message content is required", field="content")
        if msg_type in (MessageType.FILE, MessageType.IMAGE) and not data.get("file_url"):
            raise BadRequestError("file_url is required for file messages", field="file_url")

        now = utcnow()
        message = Message(
            conversation_id=conversation.id,
            sender_id=user.id,
            content=content or None,
            type=msg_type,
            file_url=data.get("file_url"),
            file_name=data.get("file_name"),
            created_at=now,
        )
        self.db.add(message)
        conversation.last_message_at = now
        participant.last_read_at = now

        await self.db.commit()
        await self.db.refresh(message)
        return message

    @staticmethod
    def format_message(message: Message) -> Dict[str, Any]:
        return {
            "id": str(message.id),
            "conversation_id": str(message.conversation_id),
            "sender_id": str(message.sender_id),
            "sender_name": message.sender.name if message.sender else None,
            "content": message.content,
            "type": message.type.value,
            "file_url": message.file_url,
            "file_name": message.file_name,
            "created_at": message.created_at.isoformat(),
        }

    @classmethod
    def format_conversation(
        cls,
        conversation: Conversation,
        last_message: Optional[Message] = None,
        unread_count: int = 0
    ) -> Dict[str, Any]:
        return {
            "id": str(conversation.id),
            "type": conversation.type.value,
            "title": conversation.title,
            "last_message_at": conversation.last_message_at.isoformat() if conversation.last_message_at else None,
            "participants": [
                {
                    "user_id": str(p.user_id),
                    "name": p.user.name if p.user else None,
                    "role": p.user.role.value if p.user else None,
                }
                for p in conversation.participants
            ],
            "last_message": cls.format_message(last_message) if last_message else None,
            "unread_count": unread_count,
        }
