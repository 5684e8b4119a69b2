"""In-memory domain stores.

Simple list-based storage for session-only data and tests.
Data is lost when the application exits.
"""

from datetime import date

from ..errors import DomainStoreError
from .base import DomainStores
from .models import DailyContext, MealEntry, RecipeEntry, WaterEntry, WorkoutEntry


class InMemoryDomainStores(DomainStores):
    """In-memory domain stores (session-only)."""

    def __init__(self) -> None:
        self.meals: list[MealEntry] = []
        self.workouts: list[WorkoutEntry] = []
        self.water: list[WaterEntry] = []
        self.recipes: list[RecipeEntry] = []

    async def create_meal(self, entry: MealEntry) -> str:
        if entry.calories < 0 or entry.protein < 0:
            raise DomainStoreError("Meal nutrition values cannot be negative")
        self.meals.append(entry)
        return entry.id

    async def create_workout(self, entry: WorkoutEntry) -> str:
        if entry.calories_burned < 0:
            raise DomainStoreError("Calories burned cannot be negative")
        self.workouts.append(entry)
        return entry.id

    async def create_water(self, entry: WaterEntry) -> str:
        if entry.amount <= 0:
            raise DomainStoreError("Water amount must be positive")
        self.water.append(entry)
        return entry.id

    async def create_recipe(self, entry: RecipeEntry) -> str:
        if not entry.name.strip():
            raise DomainStoreError("Recipe name is required")
        self.recipes.append(entry)
        return entry.id

    async def get_daily_context(self, user_id: str, day: date) -> DailyContext:
        meals = [m for m in self.meals if m.user_id == user_id and m.date == day]
        workouts = [w for w in self.workouts if w.user_id == user_id and w.date == day]
        water = [w for w in self.water if w.user_id == user_id and w.date == day]

        return DailyContext(
            date=day,
            calories_consumed=sum(m.calories for m in meals),
            calories_burned=sum(w.calories_burned for w in workouts),
            protein=sum(m.protein for m in meals),
            water_intake=sum(w.amount for w in water),
            # Newest first, as the dashboard shows them
            meals=list(reversed(meals)),
            exercises=list(reversed(workouts)),
        )
