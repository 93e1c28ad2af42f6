"""Config loading from ~/.frecency/config.json with env var overrides."""

from __future__ import annotations

import json
from pathlib import Path
from typing import ClassVar

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from frecency.decay import DEFAULT_HALF_LIFE_DAYS

CONFIG_DIR = Path.home() / ".frecency"
CONFIG_PATH = CONFIG_DIR / "config.json"

DEFAULT_MAX_ENTRIES = 5000
DEFAULT_MAX_KEY_BYTES = 512
DEFAULT_MAX_FILE_BYTES = 5 * 1024 * 1024
DEFAULT_EXCLUDED_COMMANDS = ["builtin-quit-script-kit"]


class SuggestedConfig(BaseModel):
    enabled: bool = True
    max_items: int = Field(default=10, ge=0)
    min_score: float = Field(default=0.1, ge=0.0)
    # Lower = recent items dominate, higher = frequent items dominate
    half_life_days: float = Field(default=DEFAULT_HALF_LIFE_DAYS, gt=0.0, allow_inf_nan=False)
    # Off: nothing new is recorded, existing data is kept
    track_usage: bool = True
    excluded_commands: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDED_COMMANDS))
    refresh_seconds: int = Field(default=60, ge=0)


class FrecencyConfig(BaseSettings):
    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_prefix="FRECENCY_",
        env_nested_delimiter="__",
        extra="ignore",
    )
    store_path: str = Field(default_factory=lambda: str(CONFIG_DIR / "frecency.json"))
    # Bounds
    max_entries: int = Field(default=DEFAULT_MAX_ENTRIES, gt=0)
    max_key_bytes: int = Field(default=DEFAULT_MAX_KEY_BYTES, gt=0)
    max_file_bytes: int = Field(default=DEFAULT_MAX_FILE_BYTES, gt=0)
    suggested: SuggestedConfig = Field(default_factory=SuggestedConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # FRECENCY_* env vars beat values read from config.json
        return env_settings, init_settings, dotenv_settings, file_secret_settings


def loadConfig() -> FrecencyConfig:
    """Load config from ~/.frecency/config.json with env var overrides."""
    if CONFIG_PATH.exists():
        raw = json.loads(CONFIG_PATH.read_text())
        return FrecencyConfig(**raw)
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    config = FrecencyConfig()
    CONFIG_PATH.write_text(config.model_dump_json(indent=2))
    return config
