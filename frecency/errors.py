"""Exception hierarchy for the frecency store."""

from __future__ import annotations

__all__ = [
    "FrecencyError",
    "KeyTooLongError",
    "FrecencyIOError",
    "CorruptStoreError",
]


class FrecencyError(Exception):
    """Root exception for all frecency errors."""


class KeyTooLongError(FrecencyError, ValueError):
    """Raised when a key exceeds the configured byte limit. Nothing is recorded."""

    def __init__(self, key: str, size: int, limit: int) -> None:
        self.key = key
        self.size = size
        self.limit = limit
        super().__init__(f"Key is {size} bytes, limit is {limit}")


class FrecencyIOError(FrecencyError):
    """Disk or permission failure while saving. In-memory state is untouched; retryable."""

    def __init__(self, path: str, cause: OSError) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to save {path}: {cause}")


class CorruptStoreError(FrecencyError):
    """Store file could not be parsed. Only used inside load, never surfaced."""
