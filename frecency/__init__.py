"""Frecency store: rank items by half-life decayed usage, persisted atomically."""

from frecency.config import FrecencyConfig, SuggestedConfig, loadConfig
from frecency.errors import FrecencyError, FrecencyIOError, KeyTooLongError
from frecency.models import Entry
from frecency.store import FrecencyStore
from frecency.version import __version__

__all__ = [
    "Entry",
    "FrecencyConfig",
    "FrecencyError",
    "FrecencyIOError",
    "FrecencyStore",
    "KeyTooLongError",
    "SuggestedConfig",
    "__version__",
    "loadConfig",
]
