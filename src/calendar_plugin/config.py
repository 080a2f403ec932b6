"""YAML configuration loading for calendar backends and plugin settings."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any

import yaml

logger = logging.getLogger("calendar-plugin")

CONFIG_PATH = os.environ.get("CALENDAR_CONFIG", "/config/calendar_plugin.yaml")

VALID_TYPES = {"local", "caldav"}
DEFAULT_BASE_URL = "http://localhost:8000"


@dataclass
class BackendAccount:
    """A single backend configuration."""

    name: str  # backend id, part of every public calendar uri
    type: str  # local, caldav
    config: dict[str, Any] = field(default_factory=dict)
    enabled: bool = True


@dataclass
class AppConfig:
    """Plugin-wide settings."""

    backends: dict[str, BackendAccount] = field(default_factory=dict)
    users: dict[str, str] = field(default_factory=dict)  # userid -> display name
    debug: bool = False
    base_url: str = DEFAULT_BASE_URL
    default_user: str | None = None
    default_backend: str = "local"


def default_config() -> AppConfig:
    return AppConfig(backends={"local": BackendAccount(name="local", type="local")})


def _env_debug() -> bool:
    return os.environ.get("CALENDAR_DEBUG", "").strip().lower() in ("1", "true", "yes", "on")


def load_config() -> AppConfig:
    """Load and validate the plugin YAML config.

    A missing file yields a single local backend.
    """
    path = CONFIG_PATH
    if not os.path.isfile(path):
        logger.warning("Config file not found: %s", path)
        cfg = default_config()
        cfg.debug = _env_debug()
        return cfg

    with open(path, "r") as f:
        raw = yaml.safe_load(f) or {}

    if not raw.get("backends"):
        raise ValueError("No 'backends' configured")

    backends: dict[str, BackendAccount] = {}

    for entry in raw["backends"]:
        # Public uris are lower-cased, so backend ids must be too
        name = str(entry.get("name", "")).strip().lower()
        if not name:
            raise ValueError("Backend missing 'name' field")
        if name in backends:
            raise ValueError(f"Duplicate backend name: '{name}'")

        backend_type = str(entry.get("type", "")).strip().lower()
        if backend_type not in VALID_TYPES:
            raise ValueError(f"Backend '{name}': unknown type '{backend_type}'. Must be one of: {VALID_TYPES}")

        enabled = bool(entry.get("enabled", True))

        # Collect type-specific config (everything except metadata fields)
        config = {
            k: v for k, v in entry.items()
            if k not in ("name", "type", "enabled")
        }

        if backend_type == "caldav":
            if "url" not in config:
                raise ValueError(f"Backend '{name}' (caldav): 'url' is required")
            if "username_env" not in config or "password_env" not in config:
                raise ValueError(f"Backend '{name}' (caldav): 'username_env' and 'password_env' are required")
            for env_key in ("username_env", "password_env"):
                env_var = config[env_key]
                if not os.environ.get(env_var):
                    logger.warning("Backend '%s': env var '%s' not set", name, env_var)

        backends[name] = BackendAccount(name=name, type=backend_type, config=config, enabled=enabled)

    default_backend = str(raw.get("default_backend", next(iter(backends)))).strip().lower()
    if default_backend not in backends:
        raise ValueError(f"default_backend '{default_backend}' is not a configured backend")

    users = {str(k): str(v) for k, v in (raw.get("users") or {}).items()}
    default_user = raw.get("default_user")

    return AppConfig(
        backends=backends,
        users=users,
        debug=bool(raw.get("debug", False)) or _env_debug(),
        base_url=str(raw.get("base_url", DEFAULT_BASE_URL)),
        default_user=str(default_user) if default_user is not None else None,
        default_backend=default_backend,
    )
