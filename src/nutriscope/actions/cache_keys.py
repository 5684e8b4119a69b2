"""Mapping from executed action type to the cached aggregates it invalidates.

Consumers must reproduce this table exactly to keep views fresh; it is the
only place the mapping lives.
"""

from types import MappingProxyType

from .models import ActionType, CacheKey

_RECIPE_KEYS = frozenset({CacheKey.RECIPES, CacheKey.MEAL_PLANS, CacheKey.GROCERY_LISTS})

AFFECTED_KEYS: MappingProxyType[ActionType, frozenset[CacheKey]] = MappingProxyType({
    ActionType.LOG_MEAL: frozenset({CacheKey.MEALS, CacheKey.DAILY_LOG}),
    ActionType.LOG_WORKOUT: frozenset({CacheKey.EXERCISES, CacheKey.DAILY_LOG}),
    ActionType.LOG_WATER: frozenset({CacheKey.WATER_INTAKE, CacheKey.DAILY_LOG}),
    ActionType.SAVE_RECIPE: _RECIPE_KEYS,
    ActionType.GENERATE_RECIPE: _RECIPE_KEYS,
    ActionType.NONE: frozenset(),
})


def affected_keys_for(action_type: ActionType) -> frozenset[CacheKey]:
    """Return the cache keys invalidated by a successful action of this type.

    Raises:
        KeyError: If the action type has no entry (table must be exhaustive)
    """
    return AFFECTED_KEYS[ActionType(action_type)]
