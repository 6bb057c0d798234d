"""Configuration loading — reads optional TOML config file."""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

DEFAULT_CONFIG_PATHS = [
    Path.home() / ".config" / "trackgate" / "config.toml",
    Path("trackgate.toml"),
]

DEFAULT_DATA_DIR = Path.home() / ".local" / "share" / "trackgate"


class Settings(BaseModel):
    db_path: Path = DEFAULT_DATA_DIR / "rules.db"
    preloads_path: Path = DEFAULT_DATA_DIR / "preloads.yaml"  # written by update-preloads
    preloads_url: str | None = None
    cookie_db: Path | None = None  # Firefox cookies.sqlite to clear cookies in
    log_level: str = "WARNING"
    extra_whitelisted_schemes: list[str] = Field(default_factory=list)


def load_config(path: Path | None = None) -> dict[str, Any]:
    """Load configuration from a TOML file.

    Searches default paths if no explicit path is given.
    Returns an empty dict if no config file is found.
    """
    paths = [path] if path is not None else DEFAULT_CONFIG_PATHS

    for p in paths:
        if p.exists():
            with open(p, "rb") as f:
                return tomllib.load(f)

    return {}


def get_settings(path: Path | None = None) -> Settings:
    """Settings from TG_* env vars → config.toml → defaults."""
    data = load_config(path)
    env_overrides = {
        "db_path": os.environ.get("TG_DB_PATH"),
        "cookie_db": os.environ.get("TG_COOKIE_DB"),
        "log_level": os.environ.get("TG_LOG_LEVEL"),
    }
    for key, value in env_overrides.items():
        if value:
            data[key] = value
    return Settings.model_validate(data)
