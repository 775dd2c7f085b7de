"""Configuration models loaded from YAML.

Every field has a default, so an empty or missing file yields a working
setup (API keys still come from the environment).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/default.yaml"


class ApiSettings(BaseModel):
    provider: str = "groq"
    model: str | None = None
    api_key_env: str | None = None
    timeout: int = 60
    temperature: float = 0.8
    max_tokens: int = 400
    max_retries: int = 5
    base_delay: float = 1.0
    max_delay: float = 30.0


class GameSettings(BaseModel):
    num_agents: int = 4
    max_strikes: int = 2
    debate_turns: int = 2
    tie_break: Literal["strike_all", "judge"] = "strike_all"


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8080
    batch_timeout: float = 120.0
    stream_timeout: float = 180.0


class Settings(BaseModel):
    api: ApiSettings = Field(default_factory=ApiSettings)
    game: GameSettings = Field(default_factory=GameSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)


def load_settings(config_path: str | Path = DEFAULT_CONFIG_PATH) -> Settings:
    """Load settings from YAML, falling back to defaults if the file is absent."""
    p = Path(config_path)
    if not p.exists():
        logger.warning("Config not found: %s. Using defaults.", p)
        return Settings()
    with open(p) as f:
        raw: dict[str, Any] = yaml.safe_load(f) or {}
    return Settings.model_validate(raw)
