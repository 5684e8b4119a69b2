"""Data models for action proposals and execution results.

An action proposal is the structured, typed suggestion of a domain
mutation that the generation collaborator attaches to an assistant turn.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


class ActionType(str, Enum):
    """Kinds of action the assistant can propose."""

    LOG_MEAL = "log_meal"
    LOG_WORKOUT = "log_workout"
    LOG_WATER = "log_water"
    GENERATE_RECIPE = "generate_recipe"
    SAVE_RECIPE = "save_recipe"
    NONE = "none"


class CacheKey(str, Enum):
    """Named cached aggregates that consumers can invalidate."""

    MEALS = "meals"
    EXERCISES = "exercises"
    WATER_INTAKE = "waterIntake"
    DAILY_LOG = "dailyLog"
    RECIPES = "recipes"
    MEAL_PLANS = "mealPlans"
    GROCERY_LISTS = "groceryLists"
    STREAK = "streak"


# Wire names the generation collaborator may use for the same action
ACTION_TYPE_ALIASES = {
    "log_meal_with_confirmation": ActionType.LOG_MEAL,
}


class MealData(BaseModel):
    """Payload of a ``log_meal`` proposal."""

    model_config = ConfigDict(extra="ignore")

    meal_type: str = "lunch"
    meal_description: str | None = None
    calories: float = 0
    protein: float = 0
    carbs: float | None = None
    fats: float | None = None
    food_items: list[Any] = Field(default_factory=list)

    @field_validator("meal_type", mode="before")
    @classmethod
    def _default_meal_type(cls, value: Any) -> Any:
        return value or "lunch"

    @field_validator("calories", "protein", mode="before")
    @classmethod
    def _zero_if_missing(cls, value: Any) -> Any:
        return 0 if value is None else value


class WorkoutData(BaseModel):
    """Payload of a ``log_workout`` proposal."""

    model_config = ConfigDict(extra="ignore")

    exercise_name: str = "Workout"
    exercise_type: str = "other"
    duration: float | None = None
    calories_burned: float = 0

    @field_validator("exercise_name", "exercise_type", mode="before")
    @classmethod
    def _blank_to_default(cls, value: Any, info: ValidationInfo) -> Any:
        if value:
            return value
        return "Workout" if info.field_name == "exercise_name" else "other"

    @field_validator("calories_burned", mode="before")
    @classmethod
    def _zero_if_missing(cls, value: Any) -> Any:
        return 0 if value is None else value


class WaterData(BaseModel):
    """Payload of a ``log_water`` proposal (amount in ml)."""

    model_config = ConfigDict(extra="ignore")

    water_amount: float | None = None


class ActionProposal(BaseModel):
    """Typed action attached to an assistant message.

    At most one proposal exists per message and it is executed at most once,
    keyed by the owning message's id.
    """

    model_config = ConfigDict(frozen=True)

    type: ActionType
    data: dict[str, Any] = Field(default_factory=dict)
    requires_confirmation: bool = False
    confirmation_message: str | None = None

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            return ACTION_TYPE_ALIASES.get(value, value)
        return value

    @field_validator("data", mode="before")
    @classmethod
    def _data_or_empty(cls, value: Any) -> Any:
        return value or {}

    @property
    def is_actionable(self) -> bool:
        """True for any proposal other than ``none``."""
        return self.type != ActionType.NONE

    def meal(self) -> MealData:
        return MealData.model_validate(self.data)

    def workout(self) -> WorkoutData:
        return WorkoutData.model_validate(self.data)

    def water(self) -> WaterData:
        return WaterData.model_validate(self.data)

    def recipe_payload(self) -> dict[str, Any] | None:
        """Raw ``data.recipe`` object if present."""
        recipe = self.data.get("recipe")
        return recipe if isinstance(recipe, dict) else None

    def as_save_recipe(self) -> "ActionProposal":
        """Reinterpret a confirmed ``generate_recipe`` as ``save_recipe``.

        Only the recipe payload is carried over.
        """
        return ActionProposal(
            type=ActionType.SAVE_RECIPE,
            data={"recipe": self.data.get("recipe")},
            requires_confirmation=False,
        )


class ExecutionResult(BaseModel):
    """Outcome of executing one action proposal."""

    model_config = ConfigDict(frozen=True)

    success: bool
    message: str
    affected_keys: frozenset[CacheKey] = Field(default_factory=frozenset)
    record_id: str | None = None
