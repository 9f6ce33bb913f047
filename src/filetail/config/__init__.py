"""Configuration management for filetail.

Hierarchical YAML configuration with:
- System-level config (/etc/filetail/ or %PROGRAMDATA%)
- User-level config (~/.config/filetail/, ~/.filetail/ or %APPDATA%)
- An explicit file passed by the caller (e.g. ``filetail --config``)
- Environment variable overrides (highest priority)

Example usage:
    from filetail.config import load_config

    config = load_config("tail.yaml")
    tail = Tail("/var/log/app.log", config.tail_config())
"""

from filetail.config.loader import (
    dict_to_config,
    env_overrides,
    get_config,
    load_config,
    load_yaml_file,
    reset_config,
)
from filetail.config.merge import deep_merge, merge_configs
from filetail.config.paths import (
    get_config_paths,
    get_system_config_path,
    get_user_config_path,
)
from filetail.config.schema import Config, LoggingConfig, RateLimitConfig, TailSettings

__all__ = [
    "Config",
    "LoggingConfig",
    "RateLimitConfig",
    "TailSettings",
    "deep_merge",
    "dict_to_config",
    "env_overrides",
    "get_config",
    "get_config_paths",
    "get_system_config_path",
    "get_user_config_path",
    "load_config",
    "load_yaml_file",
    "merge_configs",
    "reset_config",
]
