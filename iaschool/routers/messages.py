from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import get_current_user
from ..models.tenant_specific.user import User
from ..schemas.messaging_schemas import ConversationCreate, MessageCreate
from ..services.messaging_service import MessagingService, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

router = APIRouter(prefix="/api/v1/messages", tags=["Messaging"])


@router.get("/conversations")
async def list_conversations(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = MessagingService(db)
    conversations = await service.list_conversations(current_user)
    return {"items": conversations, "total": len(conversations)}


@router.post("/conversations", status_code=201)
async def create_conversation(
    payload: ConversationCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = MessagingService(db)
    conversation = await service.create_conversation(current_user, payload.model_dump())
    return service.format_conversation(conversation)


@router.get("/conversations/{conversation_id}/messages")
async def list_messages(
    conversation_id: UUID,
    cursor: Optional[UUID] = Query(None),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = MessagingService(db)
    return await service.list_messages(current_user, conversation_id, cursor, limit)


@router.post("/conversations/{conversation_id}/messages", status_code=201)
async def send_message(
    conversation_id: UUID,
    payload: MessageCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    service = MessagingService(db)
    message = await service.send_message(current_user, conversation_id, payload.model_dump())
    return service.format_message(message)
