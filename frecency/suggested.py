"""The "Suggested" list: config-driven tracking and display policy over a store."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from frecency.config import SuggestedConfig
from frecency.store import FrecencyStore, currentTimestamp

logger = logging.getLogger("frecency")


def trackUse(
    store: FrecencyStore,
    key: str,
    config: SuggestedConfig,
    now: int | None = None,
) -> bool:
    """Record a completed run of `key` unless tracking is off or the key is excluded.

    Returns True if a use was recorded. Raises KeyTooLongError from the store.
    """
    if not config.track_usage:
        return False
    if key in config.excluded_commands:
        logger.debug("Not tracking excluded command %r", key)
        return False
    store.recordUse(key, now)
    return True


def suggestedItems(
    store: FrecencyStore,
    config: SuggestedConfig,
    now: int | None = None,
) -> list[tuple[str, float]]:
    """Top items for display: above min_score, excluded keys dropped, capped at max_items."""
    if not config.enabled or config.max_items == 0:
        return []
    excluded = set(config.excluded_commands)
    items = [
        (key, score)
        for key, score in store.ranked(now)
        if score >= config.min_score and key not in excluded
    ]
    return items[: config.max_items]


@dataclass
class SuggestedCache:
    """Last computed suggestions plus the store revision they were computed at."""

    store: FrecencyStore
    config: SuggestedConfig
    _items: list[tuple[str, float]] = field(default_factory=list)
    _revision: int | None = None
    _computed_at: int | None = None

    def get(self, now: int | None = None) -> list[tuple[str, float]]:
        """Cached list, recomputed on a new revision or after refresh_seconds."""
        ts = currentTimestamp() if now is None else now
        if not self.isStale(ts):
            return list(self._items)
        revision = self.store.revision
        self._items = suggestedItems(self.store, self.config, ts)
        self._revision = revision
        self._computed_at = ts
        return list(self._items)

    def isStale(self, now: int) -> bool:
        if self._revision is None or self._computed_at is None:
            return True
        if self.store.revision != self._revision:
            return True
        # Scores decay with time even without writes
        return abs(now - self._computed_at) >= self.config.refresh_seconds

    def invalidate(self) -> None:
        self._revision = None
        self._computed_at = None
