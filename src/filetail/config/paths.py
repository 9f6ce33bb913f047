"""Platform-aware configuration path resolution.

- Windows: %PROGRAMDATA%\\filetail (system), %APPDATA%\\filetail (user)
- Unix: /etc/filetail (system), $XDG_CONFIG_HOME/filetail,
  ~/.config/filetail or ~/.filetail (user)
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

CONFIG_FILENAME = "config.yaml"
APP_NAME = "filetail"
SHORT_NAME = ".filetail"


def get_system_config_path() -> Path | None:
    if sys.platform == "win32":
        program_data = os.environ.get("PROGRAMDATA")
        if program_data:
            return Path(program_data) / APP_NAME / CONFIG_FILENAME
        return None
    return Path("/etc") / APP_NAME / CONFIG_FILENAME


def get_user_config_path() -> Path | None:
    if sys.platform == "win32":
        app_data = os.environ.get("APPDATA")
        if app_data:
            return Path(app_data) / APP_NAME / CONFIG_FILENAME
        return None

    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config) / APP_NAME / CONFIG_FILENAME

    home = Path.home()
    if (home / ".config").exists():
        return home / ".config" / APP_NAME / CONFIG_FILENAME
    return home / SHORT_NAME / CONFIG_FILENAME


def get_config_paths(explicit: str | os.PathLike[str] | None = None) -> list[Path]:
    """Config paths in merge order (lowest priority first).

    Args:
        explicit: A config file named on the command line; merged last.
    """
    paths: list[Path] = []
    for path in (get_system_config_path(), get_user_config_path()):
        if path:
            paths.append(path)
    if explicit:
        paths.append(Path(explicit).expanduser())
    return paths
