"""Cache-invalidation consumers.

The session hands every successful execution's affected keys to a
consumer; what "invalidate" means (refetch, notify, drop) is up to it.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable

from .actions import CacheKey

logger = logging.getLogger(__name__)


class CacheInvalidator(ABC):
    """Accepts sets of cache keys to invalidate."""

    @abstractmethod
    def invalidate(self, keys: Iterable[CacheKey]) -> None:
        """Invalidate the named cached aggregates."""
        pass


class RecordingCacheInvalidator(CacheInvalidator):
    """Keeps every invalidation batch in order.

    Used by the CLI to show what was refreshed and by tests to assert on
    the exact key sets.
    """

    def __init__(self) -> None:
        self.batches: list[frozenset[CacheKey]] = []

    def invalidate(self, keys: Iterable[CacheKey]) -> None:
        batch = frozenset(keys)
        logger.debug("Invalidating %s", sorted(k.value for k in batch))
        self.batches.append(batch)

    @property
    def invalidated(self) -> frozenset[CacheKey]:
        """Union of every key invalidated so far."""
        return frozenset().union(*self.batches)

    def clear(self) -> None:
        self.batches.clear()
