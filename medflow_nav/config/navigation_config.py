"""Configuration registry for the navigation engine.

Provides centralized settings for caching, guards, persistence and analytics.
Environment variables take precedence over YAML config.

Usage:
    from medflow_nav.config.navigation_config import load_navigation_config

    config = load_navigation_config()            # YAML + env
    config = load_navigation_config(cache_ttl_ms=60_000)  # explicit override wins

Environment:
    from medflow_nav.config.navigation_config import get_environment

    env = get_environment()  # MEDFLOW_ENV / MEDFLOW_VERSION
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from medflow_nav.runtime.types import Environment

logger = logging.getLogger(__name__)

_CONFIG_PATH = Path(__file__).parent / "navigation.yaml"
_cached_config: Optional[Dict[str, Any]] = None

ENV_PREFIX = "MEDFLOW_NAV_"

VALID_FAILURE_POLICIES = ("deny", "allow")
VALID_ENVIRONMENTS = ("development", "production", "test")

# Sanity bounds for buffer sizes
BUFFER_MIN = 1
BUFFER_MAX = 100_000


@dataclass
class NavigationConfig:
    """Resolved navigation settings.

    Resolution order: explicit overrides > environment > YAML > defaults.
    """

    enable_caching: bool = True
    cache_ttl_ms: float = 300_000
    cache_version: str = "1.0"
    enable_analytics: bool = True
    enable_debug_logging: bool = False
    enable_performance_monitoring: bool = True
    enable_guards: bool = True
    enable_breadcrumbs: bool = True
    enable_persistence: bool = False
    persistence_key: str = "medflow_navigation_state"
    max_history_items: int = 100
    max_audit_entries: int = 1000
    max_events: int = 1000
    guard_failure_policy: str = "deny"
    sign_in_path: str = "/signin"
    breadcrumb_root_label: str = "Dashboard"
    breadcrumb_root_path: str = "/dashboard"


def _load_config() -> Dict[str, Any]:
    """Load navigation.yaml configuration, with caching."""
    global _cached_config
    if _cached_config is not None:
        return _cached_config

    if _CONFIG_PATH.exists():
        with open(_CONFIG_PATH) as f:
            _cached_config = yaml.safe_load(f) or {}
    else:
        _cached_config = _default_config()

    return _cached_config


def _default_config() -> Dict[str, Any]:
    """Return default configuration if navigation.yaml doesn't exist."""
    defaults = {f.name: f.default for f in fields(NavigationConfig)}
    return {"version": "1.0", "defaults": defaults, "guards": []}


def reset_config() -> None:
    """Reset cached config (for testing)."""
    global _cached_config
    _cached_config = None


def get_default(key: str, fallback: Any = None) -> Any:
    """Get a default setting value from the YAML config.

    Args:
        key: Setting key (e.g., "cache_ttl_ms").
        fallback: Value to return if key not found.

    Returns:
        Setting value or fallback.
    """
    config = _load_config()
    defaults = config.get("defaults", {}) or {}
    return defaults.get(key, fallback)


def _coerce(raw: str, template: Any) -> Any:
    """Convert an environment string to the type of the default value."""
    if isinstance(template, bool):
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(template, int):
        return int(raw)
    if isinstance(template, float):
        return float(raw)
    return raw


def _clamp_buffer_size(value: int, name: str) -> int:
    """Clamp a buffer capacity to sanity bounds with logging."""
    if value < BUFFER_MIN:
        logger.warning(
            "Setting '%s' value %d is below minimum %d. Clamping to %d.",
            name,
            value,
            BUFFER_MIN,
            BUFFER_MIN,
        )
        return BUFFER_MIN
    if value > BUFFER_MAX:
        logger.warning(
            "Setting '%s' value %d exceeds maximum %d. Clamping to %d.",
            name,
            value,
            BUFFER_MAX,
            BUFFER_MAX,
        )
        return BUFFER_MAX
    return value


def load_navigation_config(**overrides: Any) -> NavigationConfig:
    """Resolve the effective navigation configuration.

    Environment variable precedence (highest to lowest):
    1. Explicit keyword overrides
    2. MEDFLOW_NAV_<KEY> (e.g., MEDFLOW_NAV_MAX_HISTORY_ITEMS)
    3. Config file value
    4. Dataclass default

    Invalid environment values are logged and ignored.

    Returns:
        Resolved NavigationConfig.
    """
    base = NavigationConfig()
    values: Dict[str, Any] = {}

    for f in fields(NavigationConfig):
        default = getattr(base, f.name)
        value = get_default(f.name, default)

        env_var = ENV_PREFIX + f.name.upper()
        raw = os.environ.get(env_var)
        if raw is not None and raw != "":
            try:
                value = _coerce(raw, default)
            except ValueError:
                logger.warning("Invalid %s value '%s'; keeping %r.", env_var, raw, value)

        values[f.name] = value

    unknown = set(overrides) - set(values)
    if unknown:
        raise TypeError(f"Unknown navigation settings: {', '.join(sorted(unknown))}")
    values.update(overrides)

    for name in ("max_history_items", "max_audit_entries", "max_events"):
        values[name] = _clamp_buffer_size(int(values[name]), name)

    policy = str(values["guard_failure_policy"]).lower()
    if policy not in VALID_FAILURE_POLICIES:
        logger.warning(
            "Invalid guard_failure_policy '%s' (valid: %s). Falling back to 'deny'.",
            policy,
            ", ".join(VALID_FAILURE_POLICIES),
        )
        policy = "deny"
    values["guard_failure_policy"] = policy

    return NavigationConfig(**values)


def get_guard_definitions() -> List[Dict[str, Any]]:
    """Get extra guard definitions declared in the config file."""
    config = _load_config()
    return list(config.get("guards") or [])


def get_environment() -> Environment:
    """Build the session Environment from MEDFLOW_ENV and MEDFLOW_VERSION.

    Unknown environment names fall back to "production".
    """
    name = os.environ.get("MEDFLOW_ENV", "production").lower()
    if name not in VALID_ENVIRONMENTS:
        logger.warning(
            "Invalid MEDFLOW_ENV '%s' (valid: %s). Falling back to 'production'.",
            name,
            ", ".join(VALID_ENVIRONMENTS),
        )
        name = "production"
    return Environment(name=name, version=os.environ.get("MEDFLOW_VERSION", "1.0.0"))
