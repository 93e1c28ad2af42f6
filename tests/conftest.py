"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from frecency.config import FrecencyConfig, SuggestedConfig
from frecency.store import FrecencyStore

DAY = 86400


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    return tmp_path / "frecency.json"


@pytest.fixture
def config(store_path: Path) -> FrecencyConfig:
    return FrecencyConfig(
        store_path=str(store_path),
        max_entries=50,
        max_key_bytes=64,
        max_file_bytes=64 * 1024,
        suggested=SuggestedConfig(half_life_days=1.0),
    )


@pytest.fixture
def store(config: FrecencyConfig) -> FrecencyStore:
    return FrecencyStore(config)
