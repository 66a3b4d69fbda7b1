"""Nutrition tracking schemas."""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class MealTypeEnum(str, Enum):
    BREAKFAST = "petit-dejeuner"
    LUNCH = "dejeuner"
    DINNER = "diner"
    SNACK = "collation"


class NutritionEntry(BaseModel):
    id: str
    client_id: str
    coach_id: Optional[str] = None
    meal_type: MealTypeEnum
    photo_url: Optional[str] = None
    description: Optional[str] = None
    calories: Optional[float] = None
    proteins: Optional[float] = None
    carbs: Optional[float] = None
    fats: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(extra="ignore")


class NutritionEntryCreate(BaseModel):
    client_id: str
    coach_id: Optional[str] = None
    meal_type: MealTypeEnum
    photo_url: Optional[str] = None
    description: Optional[str] = None
    calories: Optional[float] = Field(None, ge=0)
    proteins: Optional[float] = Field(None, ge=0)
    carbs: Optional[float] = Field(None, ge=0)
    fats: Optional[float] = Field(None, ge=0)


class NutritionEntryUpdate(BaseModel):
    meal_type: Optional[MealTypeEnum] = None
    photo_url: Optional[str] = None
    description: Optional[str] = None
    calories: Optional[float] = Field(None, ge=0)
    proteins: Optional[float] = Field(None, ge=0)
    carbs: Optional[float] = Field(None, ge=0)
    fats: Optional[float] = Field(None, ge=0)


class NutritionComment(BaseModel):
    id: str
    nutrition_entry_id: str
    coach_id: str
    comment: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(extra="ignore")


class NutritionGoals(BaseModel):
    id: Optional[str] = None
    client_id: str
    coach_id: Optional[str] = None
    daily_calories: Optional[float] = 2000
    daily_proteins: Optional[float] = 150
    daily_carbs: Optional[float] = 250
    daily_fats: Optional[float] = 70
    daily_water_glasses: int = 8
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(extra="ignore")


class HydrationRecord(BaseModel):
    id: Optional[str] = None
    client_id: str
    date: date
    glasses_count: int = Field(0, ge=0)

    model_config = ConfigDict(extra="ignore")


class NutritionProgress(BaseModel):
    calories: float = 0
    proteins: float = 0
    carbs: float = 0
    fats: float = 0
    water: float = 0


class NutritionStats(BaseModel):
    day: date
    total_calories: float = 0
    total_proteins: float = 0
    total_carbs: float = 0
    total_fats: float = 0
    water_glasses: int = 0
    goals: Optional[NutritionGoals] = None
    progress: NutritionProgress = Field(default_factory=NutritionProgress)
