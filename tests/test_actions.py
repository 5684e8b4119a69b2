"""Unit tests for action models, cache keys and the executor."""
import pytest
from conftest import TODAY, UnreachableStores
from hypothesis import given
from hypothesis import strategies as st

from nutriscope.actions import (
    AFFECTED_KEYS,
    ActionExecutor,
    ActionProposal,
    ActionType,
    CacheKey,
    affected_keys_for,
)
from nutriscope.errors import ExecutionError


class TestActionProposal:
    """Tests for ActionProposal model."""

    def test_alias_is_normalised(self):
        """Test that the confirmation alias maps to log_meal."""
        action = ActionProposal.model_validate({"type": "log_meal_with_confirmation", "data": {}})
        assert action.type == ActionType.LOG_MEAL

    def test_unknown_type_is_rejected(self):
        """Test that an unknown action type fails validation."""
        with pytest.raises(ValueError):
            ActionProposal.model_validate({"type": "delete_everything"})

    def test_null_data_becomes_empty(self):
        action = ActionProposal.model_validate({"type": "log_water", "data": None})
        assert action.data == {}

    def test_none_is_not_actionable(self):
        assert not ActionProposal(type=ActionType.NONE).is_actionable
        assert ActionProposal(type=ActionType.LOG_WATER).is_actionable

    def test_meal_defaults(self):
        """Test that missing meal fields get their defaults."""
        meal = ActionProposal(
            type=ActionType.LOG_MEAL,
            data={"meal_type": None, "calories": None, "meal_description": "eggs"}
        ).meal()

        assert meal.meal_type == "lunch"
        assert meal.calories == 0
        assert meal.protein == 0
        assert meal.food_items == []

    def test_workout_defaults(self):
        workout = ActionProposal(type=ActionType.LOG_WORKOUT, data={"duration": 30}).workout()
        assert workout.exercise_name == "Workout"
        assert workout.exercise_type == "other"
        assert workout.calories_burned == 0

    def test_as_save_recipe_carries_only_recipe(self):
        """Test the generate_recipe to save_recipe rewrite payload."""
        recipe = {"name": "Overnight oats", "servings": 2}
        action = ActionProposal(
            type=ActionType.GENERATE_RECIPE,
            data={"recipe": recipe, "note": "extra"},
            requires_confirmation=True,
        )

        saved = action.as_save_recipe()

        assert saved.type == ActionType.SAVE_RECIPE
        assert saved.data == {"recipe": recipe}
        assert saved.requires_confirmation is False


class TestAffectedKeys:
    """Tests for the action type to cache key table."""

    def test_table_is_exhaustive(self):
        """Test that every action type has an entry."""
        assert set(AFFECTED_KEYS) == set(ActionType)

    def test_exact_mapping(self):
        """Test the exact key set for each action type."""
        assert affected_keys_for(ActionType.LOG_MEAL) == {CacheKey.MEALS, CacheKey.DAILY_LOG}
        assert affected_keys_for(ActionType.LOG_WORKOUT) == {CacheKey.EXERCISES, CacheKey.DAILY_LOG}
        assert affected_keys_for(ActionType.LOG_WATER) == {CacheKey.WATER_INTAKE, CacheKey.DAILY_LOG}
        recipe_keys = {CacheKey.RECIPES, CacheKey.MEAL_PLANS, CacheKey.GROCERY_LISTS}
        assert affected_keys_for(ActionType.SAVE_RECIPE) == recipe_keys
        assert affected_keys_for(ActionType.GENERATE_RECIPE) == recipe_keys
        assert affected_keys_for(ActionType.NONE) == frozenset()

    def test_key_wire_names(self):
        """Test the key names consumers invalidate by."""
        assert {k.value for k in CacheKey} == {
            "meals", "exercises", "waterIntake", "dailyLog",
            "recipes", "mealPlans", "groceryLists", "streak",
        }

    @given(st.sampled_from(list(ActionType)))
    def test_lookup_accepts_string_values(self, action_type: ActionType):
        """Property test: lookup by enum value equals lookup by member."""
        assert affected_keys_for(action_type.value) == affected_keys_for(action_type)


class TestActionExecutor:
    """Tests for ActionExecutor."""

    @pytest.mark.asyncio
    async def test_log_meal_creates_one_record(self, domain_stores):
        """Test that log_meal issues exactly one create call."""
        executor = ActionExecutor(domain_stores)
        action = ActionProposal(
            type=ActionType.LOG_MEAL,
            data={"meal_type": "breakfast", "meal_description": "2 eggs and toast",
                  "calories": 320, "protein": 18},
        )

        result = await executor.execute(action, "user-1", TODAY)

        assert result.success
        assert result.message == "Meal logged successfully!"
        assert result.affected_keys == {CacheKey.MEALS, CacheKey.DAILY_LOG}
        assert len(domain_stores.meals) == 1
        meal = domain_stores.meals[0]
        assert meal.id == result.record_id
        assert meal.name == "2 eggs and toast"
        assert meal.date == TODAY
        assert meal.user_id == "user-1"

    @pytest.mark.asyncio
    async def test_log_meal_without_data(self, domain_stores):
        result = await ActionExecutor(domain_stores).execute(
            ActionProposal(type=ActionType.LOG_MEAL), "user-1", TODAY
        )
        assert not result.success
        assert result.message == "Missing meal data"
        assert result.affected_keys == frozenset()
        assert domain_stores.meals == []

    @pytest.mark.asyncio
    async def test_log_workout(self, domain_stores):
        action = ActionProposal(
            type=ActionType.LOG_WORKOUT,
            data={"exercise_name": "Running", "exercise_type": "cardio",
                  "duration": 30, "calories_burned": 300},
        )

        result = await ActionExecutor(domain_stores).execute(action, "user-1", TODAY)

        assert result.success
        assert result.affected_keys == {CacheKey.EXERCISES, CacheKey.DAILY_LOG}
        workout = domain_stores.workouts[0]
        assert workout.exercises[0].name == "Running"
        assert workout.calories_burned == 300

    @pytest.mark.asyncio
    async def test_log_water(self, domain_stores):
        action = ActionProposal(type=ActionType.LOG_WATER, data={"water_amount": 500})

        result = await ActionExecutor(domain_stores).execute(action, "user-1", TODAY)

        assert result.success
        assert result.message == "Water intake logged successfully!"
        assert result.affected_keys == {CacheKey.WATER_INTAKE, CacheKey.DAILY_LOG}
        assert domain_stores.water[0].amount == 500

    @pytest.mark.asyncio
    async def test_log_water_missing_amount(self, domain_stores):
        result = await ActionExecutor(domain_stores).execute(
            ActionProposal(type=ActionType.LOG_WATER, data={"water_amount": 0}), "user-1", TODAY
        )
        assert not result.success
        assert result.message == "Missing water amount"

    @pytest.mark.asyncio
    async def test_save_recipe(self, domain_stores):
        """Test saving a recipe with list instructions."""
        action = ActionProposal(
            type=ActionType.SAVE_RECIPE,
            data={"recipe": {"name": "Protein pancakes",
                             "instructions": ["Mix", "Cook"], "servings": 2}},
        )

        result = await ActionExecutor(domain_stores).execute(action, "user-1", TODAY)

        assert result.success
        assert result.message == 'Recipe "Protein pancakes" saved successfully!'
        assert result.affected_keys == {CacheKey.RECIPES, CacheKey.MEAL_PLANS, CacheKey.GROCERY_LISTS}
        assert domain_stores.recipes[0].instructions == "Mix\nCook"

    @pytest.mark.asyncio
    async def test_save_recipe_from_loose_fields(self, domain_stores):
        action = ActionProposal(
            type=ActionType.SAVE_RECIPE,
            data={"recipe_name": "Greek salad", "recipe_description": "Fresh"},
        )
        result = await ActionExecutor(domain_stores).execute(action, "user-1", TODAY)
        assert result.success
        assert domain_stores.recipes[0].description == "Fresh"

    @pytest.mark.asyncio
    async def test_save_recipe_missing_payload(self, domain_stores):
        result = await ActionExecutor(domain_stores).execute(
            ActionProposal(type=ActionType.SAVE_RECIPE, data={"recipe": None}), "user-1", TODAY
        )
        assert not result.success
        assert result.message.startswith("Recipe data is missing")

    @pytest.mark.asyncio
    async def test_save_recipe_blank_name(self, domain_stores):
        result = await ActionExecutor(domain_stores).execute(
            ActionProposal(type=ActionType.SAVE_RECIPE, data={"recipe": {"name": "  "}}),
            "user-1", TODAY
        )
        assert not result.success
        assert result.message.startswith("Recipe name is missing")

    @pytest.mark.asyncio
    async def test_generate_recipe_pending_confirmation_saves_nothing(self, domain_stores):
        action = ActionProposal(
            type=ActionType.GENERATE_RECIPE,
            data={"recipe": {"name": "Chili"}},
            requires_confirmation=True,
        )
        result = await ActionExecutor(domain_stores).execute(action, "user-1", TODAY)
        assert result.success
        assert result.affected_keys == frozenset()
        assert domain_stores.recipes == []

    @pytest.mark.asyncio
    async def test_generate_recipe_auto_saves(self, domain_stores):
        """Test that a user-provided recipe without confirmation is saved."""
        action = ActionProposal(type=ActionType.GENERATE_RECIPE, data={"recipe": {"name": "Chili"}})
        result = await ActionExecutor(domain_stores).execute(action, "user-1", TODAY)
        assert result.success
        assert result.affected_keys == {CacheKey.RECIPES, CacheKey.MEAL_PLANS, CacheKey.GROCERY_LISTS}
        assert len(domain_stores.recipes) == 1

    @pytest.mark.asyncio
    async def test_none_is_noop_success(self, domain_stores):
        result = await ActionExecutor(domain_stores).execute(
            ActionProposal(type=ActionType.NONE), "user-1", TODAY
        )
        assert result.success
        assert result.affected_keys == frozenset()

    @pytest.mark.asyncio
    async def test_domain_rejection_is_a_result(self, domain_stores):
        """Test that store rejections return success=False without raising."""
        action = ActionProposal(type=ActionType.LOG_MEAL, data={"calories": -100})
        result = await ActionExecutor(domain_stores).execute(action, "user-1", TODAY)
        assert not result.success
        assert "negative" in result.message

    @pytest.mark.asyncio
    async def test_invalid_payload_is_a_result(self, domain_stores):
        action = ActionProposal(type=ActionType.LOG_MEAL, data={"calories": "lots"})
        result = await ActionExecutor(domain_stores).execute(action, "user-1", TODAY)
        assert not result.success
        assert result.message == "Invalid log meal data."

    @pytest.mark.asyncio
    async def test_unreachable_store_raises(self):
        """Test that an unreachable store propagates as ExecutionError."""
        action = ActionProposal(type=ActionType.LOG_MEAL, data={"calories": 100})
        with pytest.raises(ExecutionError) as exc_info:
            await ActionExecutor(UnreachableStores()).execute(action, "user-1", TODAY)
        assert exc_info.value.action_type == "log_meal"
        assert exc_info.value.user_message == "domain backend unreachable"
