"""Schemas for file-bearing records: progress photos and voice messages."""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ProgressPhoto(BaseModel):
    id: str
    client_id: str
    nom_photo: str
    # Storage key inside the progress-photo bucket, never a URL
    url_fichier: str
    description: Optional[str] = None
    date_prise: Optional[date] = None
    created_at: Optional[datetime] = None
    # Minted on read, never persisted
    signed_url: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class ProgressPhotoUpdate(BaseModel):
    description: Optional[str] = None
    date_prise: Optional[date] = None


class SenderTypeEnum(str, Enum):
    COACH = "coach"
    CLIENT = "client"


class VoiceMessage(BaseModel):
    id: str
    conversation_id: str
    sender_id: str
    sender_type: SenderTypeEnum
    content: str = ""
    message_type: str = "voice"
    # Storage key inside the voice-message bucket
    voice_url: str
    voice_duration: float = 0
    voice_file_size: int = 0
    voice_mime_type: str = "audio/webm"
    is_read: bool = False
    created_at: Optional[datetime] = None
    signed_url: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class UploadFile(BaseModel):
    """In-memory file handed to an upload operation."""

    filename: str = Field(..., min_length=1)
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)
