"""Client (trainee) schemas."""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class LevelEnum(str, Enum):
    BEGINNER = "Débutant"
    INTERMEDIATE = "Intermédiaire"
    ADVANCED = "Avancé"


class InvitationStatusEnum(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"


class Client(BaseModel):
    id: str
    coach_id: str
    first_name: str
    last_name: str = ""
    contact: Optional[str] = None
    email: Optional[str] = None
    age: Optional[int] = None
    height: Optional[float] = None
    objective: Optional[str] = None
    level: Optional[LevelEnum] = None
    mentality: Optional[str] = None
    coaching_type: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    constraints: Optional[str] = None
    allergies: Optional[str] = None
    sports_history: Optional[str] = None
    needs_attention: bool = False
    poids_depart: Optional[float] = None
    poids_objectif: Optional[float] = None
    poids_actuel: Optional[float] = None
    invitation_status: Optional[InvitationStatusEnum] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(extra="ignore")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class ClientCreate(BaseModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = ""
    contact: EmailStr
    age: Optional[int] = Field(None, ge=0, le=120)
    height: Optional[float] = Field(None, gt=0)
    objective: str = "À définir"
    level: LevelEnum = LevelEnum.BEGINNER
    mentality: str = "À définir"
    coaching_type: str = "À définir"
    start_date: Optional[date] = None
    constraints: Optional[str] = None
    allergies: Optional[str] = None
    sports_history: str = "À définir"
    poids_depart: Optional[float] = Field(None, gt=0)
    poids_objectif: Optional[float] = Field(None, gt=0)


class ClientUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1)
    last_name: Optional[str] = None
    contact: Optional[EmailStr] = None
    age: Optional[int] = Field(None, ge=0, le=120)
    height: Optional[float] = Field(None, gt=0)
    objective: Optional[str] = None
    level: Optional[LevelEnum] = None
    mentality: Optional[str] = None
    coaching_type: Optional[str] = None
    end_date: Optional[date] = None
    constraints: Optional[str] = None
    allergies: Optional[str] = None
    sports_history: Optional[str] = None
    needs_attention: Optional[bool] = None
    poids_objectif: Optional[float] = Field(None, gt=0)
    poids_actuel: Optional[float] = Field(None, gt=0)


class ClientProgress(BaseModel):
    """Summary shown on the coach's client detail page."""

    client_id: str
    start_weight: Optional[float] = None
    current_weight: Optional[float] = None
    target_weight: Optional[float] = None
    weight_change: Optional[float] = None
    total_sessions: int = 0
    completed_sessions: int = 0
    missed_sessions: int = 0
    completion_rate: int = 0
    completed_feedbacks: int = 0
    average_feedback_score: Optional[float] = None
