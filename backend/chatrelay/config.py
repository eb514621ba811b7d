"""Chat relay configuration.

Loads settings from ``relay.settings.yaml`` (non-secret configuration; the
relay has no secrets). The path can be overridden with the ``RELAY_SETTINGS``
environment variable or passed to ``load_config`` directly.

The ``PORT`` environment variable, when set, overrides ``server.port``.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("relay.settings.yaml")


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(BaseModel):
    host:            str       = "0.0.0.0"
    port:            int       = 3001
    reload:          bool      = False
    allowed_origins: List[str] = Field(default_factory=lambda: ["http://localhost:3000"])


class ChatSettings(BaseModel):
    """Limits for the in-memory chat state."""
    history_limit:     int = 100
    name_suffix_limit: int = 1000

    @field_validator("history_limit", "name_suffix_limit")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value


class LoggingSettings(BaseModel):
    level: str = "info"


class AppConfig(BaseModel):
    server:  ServerSettings  = Field(default_factory=ServerSettings)
    chat:    ChatSettings    = Field(default_factory=ChatSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def load_config(settings_path: Optional[Path] = None) -> AppConfig:
    """Load settings from YAML and apply environment overrides."""
    if settings_path is None:
        settings_path = Path(os.environ.get("RELAY_SETTINGS", SETTINGS_FILE))
    data = _load_yaml(Path(settings_path))

    port = os.environ.get("PORT")
    if port:
        data["server"] = {**(data.get("server") or {}), "port": port}

    config = AppConfig(**data)
    logger.info(
        "Settings loaded (server=%s:%s, history_limit=%s)",
        config.server.host,
        config.server.port,
        config.chat.history_limit,
    )
    return config


_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the process-wide config, loading it on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Drop the cached config so the next ``get_config`` reloads it."""
    global _config
    _config = None
