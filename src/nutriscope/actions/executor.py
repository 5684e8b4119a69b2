"""Action executor.

Applies a confirmed or auto-executed proposal to the domain stores. The
executor never touches caches; it reports which aggregates were affected
and the caller invalidates them.
"""

import logging
from datetime import date
from typing import Any

from pydantic import ValidationError

from ..domain import (
    DomainStores,
    ExerciseDetail,
    MealEntry,
    RecipeData,
    RecipeEntry,
    WaterEntry,
    WorkoutEntry,
)
from ..errors import DomainStoreError, ExecutionError
from .cache_keys import affected_keys_for
from .models import ActionProposal, ActionType, ExecutionResult

logger = logging.getLogger(__name__)


class ActionExecutor:
    """Executes action proposals against the domain stores.

    Hidden design decisions:
    - Payload defaults for partially specified actions
    - Recipe reconstruction from loose fields
    - Which failures are results and which are raised

    Domain-store rejections come back as ``success=False``; anything else
    (an unreachable store) is raised as ``ExecutionError``.
    """

    def __init__(self, stores: DomainStores):
        self._stores = stores

    async def execute(
        self,
        action: ActionProposal,
        user_id: str,
        effective_date: date
    ) -> ExecutionResult:
        """Execute one proposal.

        Args:
            action: The proposal to apply
            user_id: Owner of the created records
            effective_date: Date the records are logged against

        Returns:
            ExecutionResult with a confirmation string and affected keys

        Raises:
            ExecutionError: If a domain store could not be reached
        """
        logger.debug("Executing %s for user %s", action.type.value, user_id)
        try:
            if action.type == ActionType.LOG_MEAL:
                return await self._log_meal(action, user_id, effective_date)
            if action.type == ActionType.LOG_WORKOUT:
                return await self._log_workout(action, user_id, effective_date)
            if action.type == ActionType.LOG_WATER:
                return await self._log_water(action, user_id, effective_date)
            if action.type == ActionType.SAVE_RECIPE:
                return await self._save_recipe(action, user_id)
            if action.type == ActionType.GENERATE_RECIPE:
                return await self._generate_recipe(action, user_id)
            return ExecutionResult(success=True, message="")
        except DomainStoreError as e:
            logger.warning("Domain store rejected %s: %s", action.type.value, e)
            return ExecutionResult(success=False, message=str(e))
        except ValidationError as e:
            logger.warning("Invalid %s payload: %s", action.type.value, e)
            return ExecutionResult(
                success=False,
                message=f"Invalid {action.type.value.replace('_', ' ')} data."
            )
        except Exception as e:
            logger.error("Error executing %s: %s", action.type.value, e)
            raise ExecutionError(str(e) or type(e).__name__, action.type.value) from e

    def _success(self, action_type: ActionType, message: str, record_id: str) -> ExecutionResult:
        return ExecutionResult(
            success=True,
            message=message,
            affected_keys=affected_keys_for(action_type),
            record_id=record_id,
        )

    async def _log_meal(self, action: ActionProposal, user_id: str, day: date) -> ExecutionResult:
        if not action.data:
            return ExecutionResult(success=False, message="Missing meal data")

        meal = action.meal()
        record_id = await self._stores.create_meal(MealEntry(
            user_id=user_id,
            date=day,
            meal_type=meal.meal_type,
            name=meal.meal_description or None,
            calories=meal.calories,
            protein=meal.protein,
            carbs=meal.carbs,
            fats=meal.fats,
            food_items=meal.food_items,
        ))
        return self._success(action.type, "Meal logged successfully!", record_id)

    async def _log_workout(self, action: ActionProposal, user_id: str, day: date) -> ExecutionResult:
        if not action.data:
            return ExecutionResult(success=False, message="Missing workout data")

        workout = action.workout()
        record_id = await self._stores.create_workout(WorkoutEntry(
            user_id=user_id,
            date=day,
            exercises=[ExerciseDetail(
                name=workout.exercise_name,
                type=workout.exercise_type,
                duration=workout.duration,
                calories_burned=workout.calories_burned,
            )],
            calories_burned=workout.calories_burned,
            duration=workout.duration,
        ))
        return self._success(action.type, "Workout logged successfully!", record_id)

    async def _log_water(self, action: ActionProposal, user_id: str, day: date) -> ExecutionResult:
        amount = action.water().water_amount
        if not amount:
            return ExecutionResult(success=False, message="Missing water amount")

        record_id = await self._stores.create_water(WaterEntry(
            user_id=user_id,
            date=day,
            amount=amount,
        ))
        return self._success(action.type, "Water intake logged successfully!", record_id)

    async def _save_recipe(self, action: ActionProposal, user_id: str) -> ExecutionResult:
        recipe = _recipe_from_action(action.data)
        if recipe is None:
            return ExecutionResult(
                success=False,
                message="Recipe data is missing. Please try generating the recipe again."
            )
        if not recipe.name.strip():
            return ExecutionResult(
                success=False,
                message="Recipe name is missing. Please try generating the recipe again."
            )

        record_id = await self._stores.create_recipe(
            RecipeEntry(user_id=user_id, **recipe.model_dump())
        )
        return self._success(action.type, f'Recipe "{recipe.name}" saved successfully!', record_id)

    async def _generate_recipe(self, action: ActionProposal, user_id: str) -> ExecutionResult:
        # A recipe the user supplied themselves arrives without confirmation
        # and is saved directly
        if not action.requires_confirmation and action.recipe_payload():
            return await self._save_recipe(action, user_id)
        return ExecutionResult(
            success=True,
            message="Recipe generated! Would you like to save it to your recipes?",
        )


def _recipe_from_action(data: dict[str, Any]) -> RecipeData | None:
    """Build a recipe from ``data.recipe`` or from loose ``recipe_*`` fields."""
    recipe = data.get("recipe")
    if isinstance(recipe, dict):
        return RecipeData.model_validate({**recipe, "name": recipe.get("name") or ""})

    if data.get("recipe_name"):
        return RecipeData(
            name=data["recipe_name"],
            description=data.get("recipe_description") or "",
        )
    return None
