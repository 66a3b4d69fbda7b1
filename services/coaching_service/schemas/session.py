"""Scheduled workout session schemas."""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SessionStatusEnum(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    MISSED = "missed"


class Session(BaseModel):
    id: str
    client_id: str
    workout_id: str
    scheduled_date: date
    status: SessionStatusEnum = SessionStatusEnum.SCHEDULED
    intensity: Optional[int] = None
    mood: Optional[str] = None
    comment: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(extra="ignore")


class SessionCreate(BaseModel):
    client_id: str
    workout_id: str
    scheduled_date: date


class SessionFeedback(BaseModel):
    """Post-session feedback entered when marking a session completed."""

    intensity: Optional[int] = Field(None, ge=1, le=10)
    mood: Optional[str] = None
    comment: Optional[str] = None
