"""Shared config loading helpers."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from .constants import DEFAULT_LOG_LEVEL
from .errors import ConfigError
from .models import CollectorSettings
from .paths import get_config_path

logger = logging.getLogger(__name__)


def load_config(path: Path | str | None = None) -> Dict[str, Any]:
    """
    Load bincover.yml if present; return empty dict when missing.

    Parse/IO errors are logged and surfaced to callers to prevent silent fallbacks.
    """
    config_path = Path(path) if path is not None else get_config_path()
    if not config_path.exists():
        return {}
    try:
        with open(config_path) as f:
            loaded = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        logger.error("Failed to load config from %s: %s", config_path, exc)
        raise ConfigError(f"Failed to load config at {config_path}: {exc}") from exc
    if not isinstance(loaded, dict):
        raise ConfigError(f"Failed to load config at {config_path}: top level must be a mapping")
    return loaded


def get_collector_config(config: Optional[Dict[str, Any]] = None) -> CollectorSettings:
    """Return the collector section merged with defaults."""
    cfg = config if config is not None else load_config()
    section = cfg.get("collector") or {}
    try:
        return CollectorSettings(**section)
    except (TypeError, ValidationError) as exc:
        raise ConfigError(f"Invalid collector config: {exc}") from exc


def get_log_level(config: Optional[Dict[str, Any]] = None) -> str:
    """Return the configured log level name (INFO when unset)."""
    cfg = config if config is not None else load_config()
    logging_cfg = cfg.get("logging") or {}
    return str(logging_cfg.get("level", DEFAULT_LOG_LEVEL)).upper()
