"""Domain stores for meals, workouts, water intake and recipes."""

from .base import DomainStores
from .in_memory import InMemoryDomainStores
from .models import (
    DailyContext,
    ExerciseDetail,
    MealEntry,
    ProfileSnapshot,
    RecipeData,
    RecipeEntry,
    WaterEntry,
    WorkoutEntry,
)

__all__ = [
    "DomainStores",
    "InMemoryDomainStores",
    "DailyContext",
    "ExerciseDetail",
    "MealEntry",
    "ProfileSnapshot",
    "RecipeData",
    "RecipeEntry",
    "WaterEntry",
    "WorkoutEntry",
]
