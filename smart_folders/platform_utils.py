"""
Cross-platform utilities for Smart Folders.

Centralises all OS-detection logic so every other module can import
a single canonical set of helpers rather than scattering ``sys.platform``
checks throughout the codebase.

Supported platforms:
  - Linux (primary; desktop notifications via ``notify-send``)
  - macOS 12+ (Monterey and newer)
  - Windows 10/11 (best-effort; external tools must be on PATH)
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

logger = logging.getLogger(__name__)

# ---- platform flags ----------------------------------------------------

IS_WINDOWS: bool = sys.platform == "win32"
IS_MACOS: bool = sys.platform == "darwin"
IS_LINUX: bool = sys.platform.startswith("linux")

_CONFIG_DIR_NAME = "SmartFolders"

# ---- directories -------------------------------------------------------


def get_config_dir() -> Path:
    """
    Return the application config directory, created if needed.

    - Windows : ``%APPDATA%\\SmartFolders``
    - macOS   : ``~/Library/Application Support/SmartFolders``
    - Linux   : ``$XDG_CONFIG_HOME/SmartFolders`` (default ``~/.config``)

    A newly created directory is private to the current user (0700).
    """
    if IS_WINDOWS:
        base = os.environ.get("APPDATA", str(Path.home()))
    elif IS_MACOS:
        base = str(Path.home() / "Library" / "Application Support")
    else:
        base = os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config"))

    config_dir = Path(base) / _CONFIG_DIR_NAME
    config_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
    return config_dir


def get_log_path() -> Path:
    """Return the path to the log file (inside the config directory)."""
    return get_config_dir() / "smart_folders.log"


# ---- paths -------------------------------------------------------------


def normalize_path(path: str | Path) -> str:
    """
    Collapse different spellings of a directory into one key.

    A leading ``~/`` is expanded to the home directory, then the result is
    made absolute (without resolving symlinks).
    """
    raw = str(path)
    if raw == "~" or raw.startswith("~/"):
        raw = str(Path.home() / raw[2:])
    return os.path.abspath(raw)
