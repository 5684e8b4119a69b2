"""Domain records and read-only context models.

Records are what the executor writes to the domain stores; the profile and
daily context are snapshots the orchestrator reads when building a prompt.
"""

from datetime import date as date_type
from datetime import datetime, timezone
from functools import partial
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RecipeData(BaseModel):
    """A recipe as carried in an action's ``data.recipe``.

    Instructions are free text; a list of steps is joined with newlines.
    """

    model_config = ConfigDict(extra="ignore")

    name: str
    description: str = ""
    servings: int = 4
    prep_time: int | None = None
    cook_time: int | None = None
    instructions: str = ""
    nutrition_per_serving: dict[str, float] = Field(
        default_factory=lambda: {"calories": 0, "protein": 0, "carbs": 0, "fats": 0}
    )
    tags: list[str] = Field(default_factory=list)
    is_favorite: bool = False

    @field_validator("instructions", mode="before")
    @classmethod
    def _join_steps(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, list):
            return "\n".join(str(step) for step in value)
        return value

    @field_validator("description", mode="before")
    @classmethod
    def _empty_if_missing(cls, value: Any) -> Any:
        return value or ""


class MealEntry(BaseModel):
    """A logged meal."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    date: date_type
    meal_type: str = "lunch"
    name: str | None = None
    calories: float = 0
    protein: float = 0
    carbs: float | None = None
    fats: float | None = None
    food_items: list[Any] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=partial(datetime.now, timezone.utc))


class ExerciseDetail(BaseModel):
    """One exercise inside a workout entry."""

    name: str
    type: str = "other"
    duration: float | None = None
    calories_burned: float | None = None


class WorkoutEntry(BaseModel):
    """A logged workout session."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    date: date_type
    exercises: list[ExerciseDetail] = Field(default_factory=list)
    calories_burned: float = 0
    duration: float | None = None
    created_at: datetime = Field(default_factory=partial(datetime.now, timezone.utc))


class WaterEntry(BaseModel):
    """A water intake record (ml)."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    date: date_type
    amount: float
    created_at: datetime = Field(default_factory=partial(datetime.now, timezone.utc))


class RecipeEntry(RecipeData):
    """A saved recipe owned by a user."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    created_at: datetime = Field(default_factory=partial(datetime.now, timezone.utc))


class ProfileSnapshot(BaseModel):
    """User profile fields used to personalise replies."""

    name: str | None = None
    age: int | None = None
    weight: float | None = None
    height: float | None = None
    goal: str = "maintain"
    activity_level: str = "moderate"
    dietary_preference: str = "non_vegetarian"
    restrictions: list[str] = Field(default_factory=list)
    calorie_target: float | None = None
    protein_target: float | None = None
    water_goal: float | None = None
    target_carbs: float | None = None
    target_fats: float | None = None


class DailyContext(BaseModel):
    """Aggregate of one day's logged data."""

    date: date_type
    calories_consumed: float = 0
    calories_burned: float = 0
    protein: float = 0
    water_intake: float = 0
    meals: list[MealEntry] = Field(default_factory=list)
    exercises: list[WorkoutEntry] = Field(default_factory=list)
