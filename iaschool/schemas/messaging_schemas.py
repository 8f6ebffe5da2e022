# iaschool/schemas/messaging_schemas.py
from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel, Field

from ..models.tenant_specific.messaging import ConversationType, MessageType


class ConversationCreate(BaseModel):
    type: ConversationType = Field(default=ConversationType.DIRECT)
    title: Optional[str] = Field(default=None, max_length=200)
    participant_ids: List[UUID] = Field(..., min_length=1)


class MessageCreate(BaseModel):
    content: Optional[str] = Field(default=None, max_length=5000)
    type: MessageType = Field(default=MessageType.TEXT)
    file_url: Optional[str] = Field(default=None, max_length=500)
    file_name: Optional[str] = Field(default=None, max_length=255)
