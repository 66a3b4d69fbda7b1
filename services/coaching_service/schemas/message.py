"""Schemas for coach/client conversations and their text messages."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from services.coaching_service.schemas.media import SenderTypeEnum


class MessageTypeEnum(str, Enum):
    TEXT = "text"
    VOICE = "voice"
    RESOURCE = "resource"
    EXERCISE = "exercise"
    IMAGE = "image"


class Conversation(BaseModel):
    id: str
    coach_id: str
    client_id: str
    last_message: Optional[str] = None
    last_message_time: Optional[datetime] = None
    unread_count: int = 0
    is_priority: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(extra="ignore")


class Message(BaseModel):
    id: str
    conversation_id: str
    sender_id: str
    sender_type: SenderTypeEnum
    content: str = ""
    message_type: MessageTypeEnum = MessageTypeEnum.TEXT
    resource_id: Optional[str] = None
    exercise_id: Optional[str] = None
    image_url: Optional[str] = None
    is_read: bool = False
    created_at: Optional[datetime] = None

    model_config = ConfigDict(extra="ignore")


class MessageCreate(BaseModel):
    conversation_id: str
    sender_id: str
    sender_type: SenderTypeEnum
    content: str = Field(..., max_length=4000)
    message_type: MessageTypeEnum = MessageTypeEnum.TEXT
    resource_id: Optional[str] = None
    exercise_id: Optional[str] = None
    image_url: Optional[str] = None
