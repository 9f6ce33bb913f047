"""Configuration file loading and caching.

Handles:
- YAML file parsing
- Environment variable overrides
- Config caching with reset support
- Conversion from dict to typed Config dataclass
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from filetail.config.merge import merge_configs
from filetail.config.paths import get_config_paths
from filetail.config.schema import Config, LoggingConfig, RateLimitConfig, TailSettings

# Module logger (may not be configured yet at import time)
_log = logging.getLogger("filetail.config")

_cached_config: Config | None = None

_TRUE = {"1", "true", "yes", "on"}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file, returning empty dict if not found or invalid."""
    if not path.exists():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except yaml.YAMLError as e:
        _log.warning("Invalid YAML in %s: %s", path, e)
        return {}
    except PermissionError:
        _log.debug("Permission denied reading %s", path)
        return {}
    except OSError as e:
        _log.warning("Error reading %s: %s", path, e)
        return {}


def env_overrides() -> dict[str, Any]:
    """Build config dict from environment variables.

    FILETAIL_LOG (log file), FILETAIL_LOG_LEVEL and FILETAIL_POLL
    take highest priority.
    """
    overrides: dict[str, Any] = {}

    log_path = os.environ.get("FILETAIL_LOG")
    if log_path:
        overrides.setdefault("logging", {})["file"] = log_path

    log_level = os.environ.get("FILETAIL_LOG_LEVEL")
    if log_level:
        overrides.setdefault("logging", {})["level"] = log_level

    poll = os.environ.get("FILETAIL_POLL")
    if poll:
        overrides.setdefault("tail", {})["poll"] = poll.strip().lower() in _TRUE

    return overrides


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name)
    return value if isinstance(value, dict) else {}


def dict_to_config(data: dict[str, Any]) -> Config:
    """Convert a merged dict to the typed Config dataclass.

    Unknown keys are ignored; missing keys keep their defaults.
    """
    log_data = _section(data, "logging")
    logging_config = LoggingConfig(
        level=log_data.get("level"),
        verbose=log_data.get("verbose"),
        file=log_data.get("file"),
    )

    defaults = TailSettings()
    tail_data = _section(data, "tail")
    tail = TailSettings(
        follow=bool(tail_data.get("follow", defaults.follow)),
        reopen=bool(tail_data.get("reopen", defaults.reopen)),
        reopen_delay=float(tail_data.get("reopen_delay", defaults.reopen_delay)),
        must_exist=bool(tail_data.get("must_exist", defaults.must_exist)),
        poll=bool(tail_data.get("poll", defaults.poll)),
        poll_interval=float(tail_data.get("poll_interval", defaults.poll_interval)),
        max_line_size=int(tail_data.get("max_line_size", defaults.max_line_size)),
        notify_interval=tail_data.get("notify_interval"),
    )

    rate_defaults = RateLimitConfig()
    rate_data = _section(data, "rate_limit")
    rate_limit = RateLimitConfig(
        capacity=rate_data.get("capacity"),
        leak_interval=float(rate_data.get("leak_interval", rate_defaults.leak_interval)),
        cooloff=float(rate_data.get("cooloff", rate_defaults.cooloff)),
    )

    return Config(logging=logging_config, tail=tail, rate_limit=rate_limit)


def load_config(
    config_path: str | os.PathLike[str] | None = None, reload: bool = False
) -> Config:
    """Load and merge config from all sources.

    Priority order (highest to lowest):
    1. Environment variables
    2. Explicit config file (``config_path``)
    3. User config
    4. System config

    Args:
        config_path: Optional config file named by the caller.
        reload: Force reload even if cached.
    """
    global _cached_config

    if _cached_config is not None and not reload and config_path is None:
        return _cached_config

    configs: list[dict[str, Any]] = []
    for path in get_config_paths(config_path):
        config_data = load_yaml_file(path)
        if config_data:
            _log.debug("Loaded config from %s", path)
            configs.append(config_data)

    env_config = env_overrides()
    if env_config:
        configs.append(env_config)

    config = dict_to_config(merge_configs(*configs))

    # Cache only the default lookup
    if config_path is None:
        _cached_config = config

    return config


def get_config() -> Config:
    """Get the cached config, loading it on first use."""
    if _cached_config is None:
        return load_config()
    return _cached_config


def reset_config() -> None:
    """Reset cached config.

    Useful for testing or forcing a reload.
    """
    global _cached_config
    _cached_config = None
