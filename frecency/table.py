"""In-memory entry table: bounds, decay merges, eviction, revision counter."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from frecency.config import DEFAULT_MAX_ENTRIES, DEFAULT_MAX_KEY_BYTES
from frecency.decay import mergeUse, scoreAt
from frecency.errors import KeyTooLongError
from frecency.models import MAX_TIMESTAMP, Entry

logger = logging.getLogger("frecency")


def keyBytes(key: str) -> int:
    return len(key.encode("utf-8", errors="surrogatepass"))


def clampTimestamp(ts: int) -> int:
    return min(max(int(ts), 0), MAX_TIMESTAMP)


class EntryTable:
    """Map of key -> Entry with a revision bumped on every mutation.

    Not thread-safe on its own; FrecencyStore wraps it in a lock.
    """

    def __init__(
        self,
        half_life: float,
        *,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        max_key_bytes: int = DEFAULT_MAX_KEY_BYTES,
    ) -> None:
        if not half_life > 0:
            raise ValueError(f"half_life must be > 0, got {half_life!r}")
        if max_entries <= 0 or max_key_bytes <= 0:
            raise ValueError("max_entries and max_key_bytes must be positive")
        self.half_life = half_life
        self.max_entries = max_entries
        self.max_key_bytes = max_key_bytes
        self._entries: dict[str, Entry] = {}
        self._revision = 0

    # ── Read ─────────────────────────────────────────────────

    @property
    def revision(self) -> int:
        return self._revision

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get(self, key: str) -> Entry | None:
        return self._entries.get(key)

    def entries(self) -> list[Entry]:
        """Snapshot of all entries, in no particular order."""
        return list(self._entries.values())

    def scoreOf(self, key: str, now: int) -> float | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        return scoreAt(entry.weight, entry.last_used_at, clampTimestamp(now), self.half_life)

    def ranked(self, now: int, limit: int | None = None) -> list[tuple[str, float]]:
        """All entries as (key, score), highest score first, ties by key."""
        now = clampTimestamp(now)
        scored = [
            (e.key, scoreAt(e.weight, e.last_used_at, now, self.half_life))
            for e in self._entries.values()
        ]
        scored.sort(key=lambda ks: (-ks[1], ks[0]))
        if limit is not None:
            scored = scored[: max(limit, 0)]
        return scored

    def checkKey(self, key: str) -> None:
        size = keyBytes(key)
        if size > self.max_key_bytes:
            raise KeyTooLongError(key, size, self.max_key_bytes)

    # ── Write ────────────────────────────────────────────────

    def recordUse(self, key: str, use_time: int, now: int) -> Entry:
        """Fold one use of `key` into the table. Returns the updated entry.

        Raises KeyTooLongError (no mutation) if the key exceeds max_key_bytes.
        Future use times are clamped to `now`.
        """
        self.checkKey(key)
        now = clampTimestamp(now)
        use_time = min(clampTimestamp(use_time), now)

        existing = self._entries.get(key)
        if existing is not None:
            # last_used_at never moves backwards
            use_time = max(use_time, existing.last_used_at)
            weight, last_used_at = mergeUse(
                existing.weight, existing.last_used_at, use_time, self.half_life
            )
            entry = Entry(
                key=key, weight=weight, last_used_at=last_used_at, count=existing.count + 1
            )
        else:
            if len(self._entries) >= self.max_entries:
                self._evict(now)
            entry = Entry(key=key, weight=1.0, last_used_at=use_time, count=1)

        self._entries[key] = entry
        self._revision += 1
        return entry

    def remove(self, key: str) -> Entry | None:
        entry = self._entries.pop(key, None)
        if entry is not None:
            self._revision += 1
        return entry

    def clear(self) -> None:
        self._entries.clear()
        self._revision += 1

    def replaceAll(self, entries: Iterable[Entry]) -> None:
        """Install pre-validated entries (used by load). Resets revision to 0."""
        self._entries = {e.key: e for e in entries}
        self._revision = 0

    def _evict(self, now: int) -> None:
        """Drop the lowest-scoring entry; ties go to the oldest, then by key."""
        victim = min(
            self._entries.values(),
            key=lambda e: (
                scoreAt(e.weight, e.last_used_at, now, self.half_life),
                e.last_used_at,
                e.key,
            ),
        )
        del self._entries[victim.key]
        self._revision += 1
        logger.debug("Evicted %r (table full at %d entries)", victim.key, self.max_entries)
