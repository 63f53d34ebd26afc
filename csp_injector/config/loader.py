"""YAML + env var config loading with pydantic-settings."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger()


def load_yaml(path: str | Path) -> dict[str, Any]:
    """Load a YAML mapping, returning an empty dict when the file is absent."""
    path = Path(path)
    if not path.exists():
        logger.debug("config_file_missing", path=str(path))
        return {}
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping at the top level")
    return data


class ServerSettings(BaseSettings):
    """Dev server and build settings, overridden by CSP_* env vars."""

    model_config = SettingsConfigDict(
        env_prefix="CSP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: str = "development"

    # Dev server
    host: str = ""
    port: int = 4200
    ssl: bool = False

    # Live reload; the port defaults to the dev server port
    live_reload: bool = True
    live_reload_host: str = ""
    live_reload_port: int | None = None

    config_file: str = "config/content-security-policy.yaml"
    environment_file: str = "config/environment.yaml"
    build_dir: str = "dist"

    log_level: str = "info"
    log_json: bool = False


_settings: ServerSettings | None = None


def get_settings() -> ServerSettings:
    """Get or create the singleton settings instance."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def load_settings(**overrides: Any) -> ServerSettings:
    """Load settings from env vars; keyword overrides win over both."""
    global _settings
    _settings = ServerSettings(**overrides)
    logger.info(
        "config_loaded",
        environment=_settings.environment,
        port=_settings.port,
        config_file=_settings.config_file,
    )
    return _settings
