"""
Application configuration utilities.

This module defines the ``Settings`` class used throughout the service for
environment variables and provides helper functions to load YAML files
containing business rules such as the ROI feasibility threshold and the
default forecasting parameters.
"""

from __future__ import annotations

import os
from functools import lru_cache

import yaml
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuration loaded from environment variables or a .env file."""

    # API server configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Directory holding settings.yaml
    config_dir: str = "configs"

    # Comma separated list of allowed CORS origins ("*" when empty)
    cors_origins: str = ""

    # Requests per client IP per minute; 0 disables the limit
    rate_limit_per_min: int = 60

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )


@lru_cache(maxsize=None)
def get_settings() -> Settings:
    """Return a cached instance of ``Settings``.

    Using a cache ensures that environment variables are only read once.
    """
    return Settings()


def load_yaml(file_path: str) -> dict:
    """Load a YAML file from the given path and return its contents.

    If the file does not exist, an empty dictionary is returned.
    """
    if not os.path.exists(file_path):
        return {}
    with open(file_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_section(config_root: str, section: str) -> dict:
    """Return one top-level mapping of ``settings.yaml`` under ``config_root``."""

    settings = load_yaml(os.path.join(config_root, "settings.yaml"))
    value = settings.get(section)
    return value if isinstance(value, dict) else {}
