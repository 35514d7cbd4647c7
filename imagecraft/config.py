"""
Configuration
=============

Reads service settings from the first available settings.json and lets
environment variables override them.

Environment variables:
    IMAGECRAFT_DATA_DIR           - Directory for history files and the key store
    POLLINATIONS_BASE             - Base URL of the image generation endpoint
    MYMEMORY_URL                  - Translation endpoint
    IMAGECRAFT_KEY_SALT           - Salt mixed into stored API key hashes
    IMAGECRAFT_DEFAULT_RATE_LIMIT - Requests per minute granted to new keys
    IMAGECRAFT_LOG_LEVEL          - Logging level name (INFO, DEBUG, ...)
    IMAGECRAFT_LOG_FILE           - Log file path, empty to disable file logging
"""

import os
import json
from pathlib import Path

# ---------------------------------------------------------------------------
# Settings discovery
# ---------------------------------------------------------------------------

PROJECT_ROOT = Path(__file__).resolve().parent.parent

SETTINGS_PATHS = [
    PROJECT_ROOT / "backend" / "settings.json",
    PROJECT_ROOT / "settings.json",
]

DEFAULTS = {
    "data_dir": str(PROJECT_ROOT / "imagecraft-data"),
    "pollinations_base": "https://image.pollinations.ai/prompt/",
    "mymemory_url": "https://api.mymemory.translated.net/get",
    "key_salt": "arabish-image-craft",
    "default_rate_limit": 30,
    "log_level": "INFO",
    "log_file": "",
}

ENV_KEYS = {
    "data_dir": "IMAGECRAFT_DATA_DIR",
    "pollinations_base": "POLLINATIONS_BASE",
    "mymemory_url": "MYMEMORY_URL",
    "key_salt": "IMAGECRAFT_KEY_SALT",
    "default_rate_limit": "IMAGECRAFT_DEFAULT_RATE_LIMIT",
    "log_level": "IMAGECRAFT_LOG_LEVEL",
    "log_file": "IMAGECRAFT_LOG_FILE",
}

_config_cache = None


def _load_settings() -> dict:
    """Load settings from the first available settings file."""
    for path in SETTINGS_PATHS:
        if path.exists():
            with open(path) as f:
                data = json.load(f)
            env = data.get("env", {})
            settings = {key: env[name] for key, name in ENV_KEYS.items() if name in env}
            settings["source"] = str(path)
            return settings
    return {}


def get_config() -> dict:
    """
    Get the service configuration.

    Returns a dict with the keys of DEFAULTS plus ``source``. Values found in
    settings.json replace the defaults, and environment variables replace both.
    """
    global _config_cache
    if _config_cache is None:
        _config_cache = _load_settings()

    cfg = {}
    for key, default in DEFAULTS.items():
        value = os.environ.get(ENV_KEYS[key], _config_cache.get(key, default))
        if isinstance(default, int):
            try:
                value = int(value)
            except (TypeError, ValueError):
                value = default
        cfg[key] = value
    cfg["source"] = _config_cache.get("source", "env")
    return cfg


def reset_config() -> None:
    """Forget the cached settings file so the next get_config() re-reads it."""
    global _config_cache
    _config_cache = None


def data_dir() -> Path:
    path = Path(get_config()["data_dir"])
    path.mkdir(parents=True, exist_ok=True)
    return path
