"""FrecencyStore: the public API over table + persistence.

Usage::

    store = FrecencyStore.load("~/.frecency/frecency.json")
    store.recordUse("/scripts/deploy.ts")
    top = store.ranked(limit=10)
    store.save("~/.frecency/frecency.json")

Callers own the instance; there is no module-level singleton. A caller that
caches `ranked()` output can keep `store.revision` alongside it and recompute
only when the revision changes.
"""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path

from frecency.config import FrecencyConfig
from frecency.decay import SECONDS_PER_DAY, halfLifeSeconds
from frecency.models import Entry
from frecency.persist import readEntries, saveEntries
from frecency.table import EntryTable

logger = logging.getLogger("frecency")


def currentTimestamp() -> int:
    return int(time.time())


class FrecencyStore:
    """Frecency ranking with atomic persistence. Safe to share across threads."""

    def __init__(self, config: FrecencyConfig | None = None) -> None:
        self.config = config or FrecencyConfig()
        self._table = EntryTable(
            halfLifeSeconds(self.config.suggested.half_life_days),
            max_entries=self.config.max_entries,
            max_key_bytes=self.config.max_key_bytes,
        )
        self._lock = threading.Lock()
        self._save_lock = threading.Lock()
        self._dirty = False

    @classmethod
    def load(
        cls,
        path: str | Path,
        config: FrecencyConfig | None = None,
        now: int | None = None,
    ) -> FrecencyStore:
        """Load from `path`. Missing, corrupt, or oversized files give an empty store."""
        store = cls(config)
        cfg = store.config
        entries = readEntries(
            path,
            now=currentTimestamp() if now is None else now,
            max_entries=cfg.max_entries,
            max_key_bytes=cfg.max_key_bytes,
            max_file_bytes=cfg.max_file_bytes,
        )
        store._table.replaceAll(entries)
        logger.info("Frecency store loaded: %d entries from %s", len(entries), path)
        return store

    def save(self, path: str | Path) -> None:
        """Atomically write the current entries. Raises FrecencyIOError.

        A failed save leaves the in-memory entries and dirty flag as they were.
        Nothing is written when the store is clean and `path` already exists.
        """
        with self._save_lock:
            if not self._dirty and Path(path).expanduser().exists():
                logger.debug("Store clean, skipping save to %s", path)
                return
            with self._lock:
                snapshot = self._table.entries()
                revision = self._table.revision
            saveEntries(snapshot, path)
            with self._lock:
                if self._table.revision == revision:
                    self._dirty = False

    # ── Mutations ────────────────────────────────────────────

    def recordUse(self, key: str, now: int | None = None) -> Entry:
        """Record one use of `key` at `now`. Raises KeyTooLongError."""
        ts = currentTimestamp() if now is None else now
        with self._lock:
            entry = self._table.recordUse(key, ts, ts)
            self._dirty = True
        return entry

    def remove(self, key: str) -> Entry | None:
        with self._lock:
            entry = self._table.remove(key)
            if entry is not None:
                self._dirty = True
        return entry

    def clear(self) -> None:
        with self._lock:
            self._table.clear()
            self._dirty = True

    # ── Reads ────────────────────────────────────────────────

    def scoreOf(self, key: str, now: int | None = None) -> float | None:
        ts = currentTimestamp() if now is None else now
        with self._lock:
            return self._table.scoreOf(key, ts)

    def ranked(self, now: int | None = None, limit: int | None = None) -> list[tuple[str, float]]:
        ts = currentTimestamp() if now is None else now
        with self._lock:
            return self._table.ranked(ts, limit)

    def entries(self) -> list[Entry]:
        with self._lock:
            return self._table.entries()

    def get(self, key: str) -> Entry | None:
        with self._lock:
            return self._table.get(key)

    @property
    def revision(self) -> int:
        with self._lock:
            return self._table.revision

    @property
    def isDirty(self) -> bool:
        return self._dirty

    @property
    def halfLifeDays(self) -> float:
        return self._table.half_life / SECONDS_PER_DAY

    def setHalfLifeDays(self, days: float) -> None:
        """Change the half-life for future merges and scores. Stored weights are kept."""
        seconds = halfLifeSeconds(days)
        with self._lock:
            self._table.half_life = seconds

    def __len__(self) -> int:
        with self._lock:
            return len(self._table)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._table
