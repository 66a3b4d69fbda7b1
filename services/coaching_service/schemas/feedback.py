"""Weekly feedback questionnaire schemas."""

from datetime import date, datetime
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class QuestionTypeEnum(str, Enum):
    TEXT = "text"
    SCALE_1_10 = "scale_1_10"
    MULTIPLE_CHOICE = "multiple_choice"
    YES_NO = "yes_no"


class FeedbackStatusEnum(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class FeedbackQuestion(BaseModel):
    id: str
    template_id: str
    question_text: str
    question_type: QuestionTypeEnum
    order_index: int
    required: bool = True
    options: Optional[list[str]] = None

    model_config = ConfigDict(extra="ignore")


class FeedbackQuestionInput(BaseModel):
    question_text: str = Field(..., min_length=1)
    question_type: QuestionTypeEnum = QuestionTypeEnum.TEXT
    required: bool = True
    options: Optional[list[str]] = None


class FeedbackTemplate(BaseModel):
    id: str
    coach_id: str
    name: str
    description: Optional[str] = None
    is_active: bool = True
    questions: list[FeedbackQuestion] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(extra="ignore")


class FeedbackTemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    is_active: bool = True
    questions: list[FeedbackQuestionInput] = Field(default_factory=list)


class FeedbackTemplateUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    is_active: Optional[bool] = None
    # ``None`` keeps the existing questions; a list replaces them.
    questions: Optional[list[FeedbackQuestionInput]] = None


class FeedbackResponse(BaseModel):
    question_id: str
    question_text: str
    question_type: str
    response: Union[int, float, str, list[str]]
    created_at: Optional[datetime] = None


class WeeklyFeedback(BaseModel):
    id: str
    client_id: str
    coach_id: str
    template_id: str
    week_start: date
    week_end: date
    status: FeedbackStatusEnum = FeedbackStatusEnum.DRAFT
    sent_at: Optional[datetime] = None
    deadline: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    responses: list[FeedbackResponse] = Field(default_factory=list)
    score: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(extra="ignore")


class WeeklyTrendPoint(BaseModel):
    week: date
    sent: int = 0
    completed: int = 0
    score: float = 0


class FeedbackStats(BaseModel):
    total_sent: int = 0
    total_completed: int = 0
    completion_rate: int = 0
    average_score: int = 0
    weekly_trend: list[WeeklyTrendPoint] = Field(default_factory=list)
