"""Half-life decay math for frecency scoring.

A use at time ``t`` contributes ``1.0`` to an item's weight, and that
contribution halves every ``half_life`` seconds. Each entry stores only the
accumulated weight as of its last use, so:

- write time: ``mergeUse`` decays the stored weight up to the new use and adds 1.0
- read time: ``scoreAt`` decays the stored weight up to ``now``

Only entries that are actually used get written; everything can still be
ranked at any later ``now``.
"""

from __future__ import annotations

import math
import sys

SECONDS_PER_DAY = 86400.0
DEFAULT_HALF_LIFE_DAYS = 7.0

# Smallest positive float; keeps the factor inside (0, 1] for huge gaps.
_MIN_FACTOR = sys.float_info.min


def halfLifeSeconds(days: float) -> float:
    """Convert a half-life in days to seconds."""
    if not days > 0 or math.isinf(days):
        raise ValueError(f"half-life must be a positive finite number of days, got {days!r}")
    return days * SECONDS_PER_DAY


def decayFactor(elapsed_seconds: float, half_life_seconds: float) -> float:
    """0.5 ** (elapsed / half_life). Returns 1.0 at zero elapsed, never 0."""
    if not half_life_seconds > 0:
        raise ValueError(f"half_life_seconds must be > 0, got {half_life_seconds!r}")
    if elapsed_seconds <= 0:
        return 1.0
    return max(math.pow(0.5, elapsed_seconds / half_life_seconds), _MIN_FACTOR)


def mergeUse(
    weight: float,
    last_used_at: int,
    use_time: int,
    half_life: float,
) -> tuple[float, int]:
    """Fold one new use into (weight, last_used_at). Returns (new_weight, use_time)."""
    elapsed = max(0, use_time - last_used_at)
    decayed = weight * decayFactor(elapsed, half_life)
    return decayed + 1.0, use_time


def scoreAt(weight: float, last_used_at: int, now: int, half_life: float) -> float:
    """Weight decayed from last_used_at to now. Pure."""
    return weight * decayFactor(max(0, now - last_used_at), half_life)
