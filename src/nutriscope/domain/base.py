"""Abstract base class for domain stores.

The abstraction hides where meals, workouts, water intake and recipes are
persisted. Implementations raise ``DomainStoreError`` when a write is
rejected; any other exception means the store could not be reached.
"""

from abc import ABC, abstractmethod
from datetime import date

from .models import DailyContext, MealEntry, RecipeEntry, WaterEntry, WorkoutEntry


class DomainStores(ABC):
    """Persistence abstraction for the health-tracking domain."""

    @abstractmethod
    async def create_meal(self, entry: MealEntry) -> str:
        """Persist a meal and return its record id."""

    @abstractmethod
    async def create_workout(self, entry: WorkoutEntry) -> str:
        """Persist a workout and return its record id."""

    @abstractmethod
    async def create_water(self, entry: WaterEntry) -> str:
        """Persist a water intake record and return its record id."""

    @abstractmethod
    async def create_recipe(self, entry: RecipeEntry) -> str:
        """Persist a recipe and return its record id."""

    @abstractmethod
    async def get_daily_context(self, user_id: str, day: date) -> DailyContext:
        """Aggregate the given day's records for a user."""
