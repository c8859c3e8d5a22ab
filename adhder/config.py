"""
Configuration loader.

Reads args/adhder.yaml on top of built-in defaults, after loading a
.env file so that environment overrides can live there too.

Usage:
    from adhder.config import load_config
    config = load_config()
    config["rate_limits"]["tasks"]["max_requests"]
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).parent.parent
CONFIG_PATH = PROJECT_ROOT / "args" / "adhder.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "api": {"base_url": "http://127.0.0.1:8080", "token": None},
    "server": {
        "host": "127.0.0.1",
        "port": 8080,
        "allowed_origins": ["http://localhost:3000", "http://127.0.0.1:3000"],
    },
    "logging": {"level": "INFO", "format": "console"},
    "database": {"path": "data/adhder.db"},
    "client": {"state_path": "data/client_state.json"},
    "security": {"require_auth": True, "session_ttl_hours": 168},
    "rate_limits": {
        "tasks": {"window_seconds": 60, "max_requests": 60},
        "categories": {"window_seconds": 60, "max_requests": 30},
        "outcomes": {"window_seconds": 60, "max_requests": 30},
        "renegotiations": {"window_seconds": 60, "max_requests": 20},
    },
    "views": {"max_custom_views": 10},
    "renegotiation": {"threshold_days": 1, "pattern_threshold": 3},
}

# env var -> (section, key)
ENV_OVERRIDES = {
    "ADHDER_DB_PATH": ("database", "path"),
    "ADHDER_API_URL": ("api", "base_url"),
    "ADHDER_API_TOKEN": ("api", "token"),
    "ADHDER_STATE_PATH": ("client", "state_path"),
}


def _deep_merge(base: dict, override: dict) -> dict:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path: Path | None = None) -> dict[str, Any]:
    """Load configuration from YAML with defaults and env overrides."""
    load_dotenv()

    config_path = path or CONFIG_PATH
    file_config: dict[str, Any] = {}
    if config_path.exists():
        try:
            with open(config_path) as f:
                file_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.warning(f"Ignoring unreadable config {config_path}: {e}")

    config = _deep_merge(DEFAULT_CONFIG, file_config)

    for env_var, (section, key) in ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if value:
            config.setdefault(section, {})[key] = value

    return config


def resolve_path(value: str | Path) -> Path:
    """Resolve a configured path relative to the project root."""
    path = Path(value)
    return path if path.is_absolute() else PROJECT_ROOT / path


__all__ = ["CONFIG_PATH", "DEFAULT_CONFIG", "PROJECT_ROOT", "load_config", "resolve_path"]
