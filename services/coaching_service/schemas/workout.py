"""Exercise and workout program schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from services.coaching_service.schemas.client import LevelEnum


class Exercise(BaseModel):
    id: str
    name: str
    theme: Optional[str] = None
    objective: Optional[str] = None
    instructions: Optional[str] = None
    common_mistakes: Optional[str] = None
    variations: Optional[str] = None
    video_url: Optional[str] = None
    image_url: Optional[str] = None
    created_by: Optional[str] = None
    is_custom: bool = True
    is_public: bool = False
    created_at: Optional[datetime] = None

    model_config = ConfigDict(extra="ignore")


class ExerciseCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    theme: Optional[str] = None
    objective: Optional[str] = None
    instructions: Optional[str] = None
    common_mistakes: Optional[str] = None
    variations: Optional[str] = None
    video_url: Optional[str] = None
    image_url: Optional[str] = None


class ExerciseUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    theme: Optional[str] = None
    objective: Optional[str] = None
    instructions: Optional[str] = None
    common_mistakes: Optional[str] = None
    variations: Optional[str] = None
    video_url: Optional[str] = None
    image_url: Optional[str] = None


class WorkoutExercise(BaseModel):
    """Association between a workout and an exercise, carrying the prescription."""

    id: str
    workout_id: str
    exercise_id: str
    sets: int = 3
    reps: str = "10"
    rest: str = "60s"
    order_index: int
    exercise: Optional[Exercise] = None

    model_config = ConfigDict(extra="ignore")


class WorkoutExerciseInput(BaseModel):
    exercise_id: str
    sets: int = Field(3, ge=1)
    reps: str = "10"
    rest: str = "60s"


class Workout(BaseModel):
    id: str
    name: str
    themes: list[str] = Field(default_factory=list)
    level: Optional[LevelEnum] = None
    duration: Optional[int] = None
    created_by: str
    exercises: list[WorkoutExercise] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(extra="ignore")


class WorkoutCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    themes: list[str] = Field(default_factory=list)
    level: LevelEnum = LevelEnum.BEGINNER
    duration: Optional[int] = Field(None, ge=1)


class WorkoutUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    themes: Optional[list[str]] = None
    level: Optional[LevelEnum] = None
    duration: Optional[int] = Field(None, ge=1)


class WorkoutStats(BaseModel):
    total_workouts: int = 0
    total_exercises: int = 0
    by_level: dict[str, int] = Field(default_factory=dict)
    by_theme: dict[str, int] = Field(default_factory=dict)
