"""Pydantic models for frecency entries and the on-disk document."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

SCHEMA_VERSION = 1
MAX_TIMESTAMP = 2**64 - 1


class Entry(BaseModel):
    """One tracked key. Score is derived at read time and never stored."""

    model_config = ConfigDict(frozen=True)

    key: str
    weight: float = Field(ge=0.0, allow_inf_nan=False)
    last_used_at: int = Field(ge=0, le=MAX_TIMESTAMP)
    count: int = Field(default=1, ge=0, le=MAX_TIMESTAMP)


class StoreDocument(BaseModel):
    """Current (v1) on-disk layout."""

    schema_version: int = SCHEMA_VERSION
    entries: list[Entry] = Field(default_factory=list)


class LegacyEntry(BaseModel):
    """Pre-versioned layout: {"entries": {key: {count, last_used, score}}}."""

    count: int = Field(ge=0, le=MAX_TIMESTAMP)
    last_used: int = Field(ge=0, le=MAX_TIMESTAMP)

    def toEntry(self, key: str) -> Entry:
        # stale score dropped; count is the undecayed weight
        return Entry(key=key, weight=float(self.count), last_used_at=self.last_used, count=self.count)
