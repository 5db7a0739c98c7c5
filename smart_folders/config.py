"""Configuration management for Smart Folders.

Stores and retrieves folder bindings from a JSON config file in the
platform-appropriate application data directory.  Every mutation rewrites
the whole file atomically so a watcher never observes a half-written
document.
"""

import contextlib
import json
import logging
import os
import tempfile
import threading
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Iterable

from smart_folders.errors import ConfigIOError, NotFoundError, WatchSetupError
from smart_folders.platform_utils import get_config_dir as _platform_config_dir
from smart_folders.platform_utils import get_log_path as _platform_log_path
from smart_folders.platform_utils import normalize_path

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "folders.json"

DEFAULT_CONFIG: dict[str, Any] = {
    "folders": [],
    "log_level": "INFO",
    # ---- log rotation ----
    "max_log_size_mb": 10,  # rotate log when it exceeds this size
    "log_backup_count": 3,  # number of rotated log files to keep
}


def get_config_dir() -> Path:
    """Return the platform-appropriate application config directory."""
    return _platform_config_dir()


def get_config_path() -> Path:
    """Return the path to the folders file."""
    return get_config_dir() / CONFIG_FILE_NAME


def get_log_path() -> Path:
    """Return the path to the log file."""
    return _platform_log_path()


def normalize_extensions(values: Iterable[str]) -> list[str]:
    """Lowercase extension filters and strip any leading dot."""
    return [ext.lower().strip().lstrip(".") for ext in values if ext.strip()]


def _typed(data: dict[str, Any], key: str, kind: type, default: Any) -> Any:
    """Return ``data[key]``, the default when absent or null, else raise TypeError."""
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, kind):
        raise TypeError(
            f"{key!r} must be {kind.__name__}, not {type(value).__name__}"
        )
    return value


@dataclass
class Binding:
    """One folder wired to one transformation.

    A folder may appear in several bindings, one per transformation.  When
    ``command`` is non-empty it wins over ``action``.
    """
    path: str
    action: str = ""
    command: str = ""
    extensions: list[str] = field(default_factory=list)
    notify: bool = True
    keep_original: bool = False

    def describe(self) -> str:
        """Return a short label for logs, e.g. ``custom: convert {} ...``."""
        if self.command:
            return f"custom: {self.command}"
        return self.action

    def same_target(self, other: "Binding") -> bool:
        """True when both bindings address the same folder and transformation."""
        return (
            self.path == other.path
            and self.action == other.action
            and self.command == other.command
        )

    def matches(self, matcher: str) -> bool:
        """Match against the command when one is set, else the action name."""
        if self.command:
            return self.command == matcher
        return self.action == matcher

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Binding":
        """Build a binding from a folders file entry.

        Raises KeyError or TypeError for an entry that cannot be trusted,
        such as a missing path or an extension filter that is not a list.
        """
        path = data["path"]
        if not isinstance(path, str) or not path.strip():
            raise TypeError("'path' must be a non-empty string")
        extensions = _typed(data, "extensions", list, [])
        if not all(isinstance(ext, str) for ext in extensions):
            raise TypeError("'extensions' must be a list of strings")
        return cls(
            path=normalize_path(path),
            action=_typed(data, "action", str, ""),
            command=_typed(data, "command", str, ""),
            extensions=normalize_extensions(extensions),
            notify=_typed(data, "notify", bool, True),
            keep_original=_typed(data, "keep_original", bool, False),
        )


Configuration = list[Binding]


class FolderConfig:
    """Thread-safe binding store backed by a JSON file."""

    def __init__(self, path: Path | None = None, autoload: bool = True):
        """Bind to *path* (platform default when omitted) and optionally load it."""
        self._path = Path(path) if path else get_config_path()
        self._data: dict[str, Any] = dict(DEFAULT_CONFIG)
        self._bindings: Configuration = []
        self._loaded = False
        self._lock = threading.RLock()
        if autoload:
            self.load()

    @property
    def path(self) -> Path:
        return self._path

    # ---- persistence ----

    def load(self) -> Configuration:
        """Load bindings from disk.

        A missing file is not an error: an empty configuration is written
        in its place.  Anything else that prevents reading the document
        raises ConfigIOError and leaves the in-memory state untouched.
        """
        with self._lock:
            try:
                with open(self._path, encoding="utf-8") as fh:
                    stored = json.load(fh)
            except FileNotFoundError:
                self._data = dict(DEFAULT_CONFIG)
                self._bindings = []
                self._loaded = True
                self._write()
                logger.info("Created empty configuration at %s", self._path)
                return []
            except (json.JSONDecodeError, UnicodeDecodeError) as exc:
                raise ConfigIOError(str(self._path), f"invalid JSON ({exc})") from exc
            except OSError as exc:
                raise ConfigIOError(str(self._path), str(exc)) from exc

            if not isinstance(stored, dict) or not isinstance(
                stored.get("folders", []), list
            ):
                raise ConfigIOError(
                    str(self._path), "expected an object with a 'folders' list"
                )

            bindings = []
            for entry in stored.get("folders", []):
                try:
                    bindings.append(Binding.from_dict(entry))
                except (KeyError, TypeError, AttributeError) as exc:
                    logger.warning("Skipping malformed folder entry %r (%s)", entry, exc)

            # Merge stored values over defaults so new keys get defaults
            self._data = {**DEFAULT_CONFIG, **stored}
            self._bindings = bindings
            self._loaded = True
            logger.info(
                "Configuration loaded from %s (%d bindings)", self._path, len(bindings)
            )
            return list(bindings)

    def save(self, bindings: Configuration | None = None) -> None:
        """Atomically rewrite the folders file.

        When *bindings* is given it replaces the stored list first.
        """
        with self._lock:
            if bindings is not None:
                previous = self._bindings
                self._bindings = list(bindings)
                try:
                    self._write()
                except ConfigIOError:
                    self._bindings = previous
                    raise
            else:
                self._write()

    def _write(self) -> None:
        data = {**self._data, "folders": [b.to_dict() for b in self._bindings]}
        parent = self._path.parent
        tmp_path = None
        try:
            parent.mkdir(mode=0o700, parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=parent, prefix=f".{self._path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, self._path)
        except OSError as exc:
            if tmp_path:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_path)
            logger.error("Failed to save configuration: %s", exc)
            raise ConfigIOError(str(self._path), str(exc)) from exc
        logger.debug("Configuration saved to %s", self._path)

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    # ---- queries ----

    @property
    def bindings(self) -> Configuration:
        """Return a copy of all bindings in presentation order."""
        with self._lock:
            return list(self._bindings)

    def list_distinct_paths(self) -> list[str]:
        """Return each configured folder once, in first-seen order."""
        with self._lock:
            return list(dict.fromkeys(b.path for b in self._bindings))

    def list_bindings_for_path(self, path: str | Path) -> Configuration:
        """Return every binding registered for *path*, in configuration order."""
        key = normalize_path(path)
        with self._lock:
            return [b for b in self._bindings if b.path == key]

    # ---- mutations ----

    def upsert_binding(
        self,
        path: str | Path,
        action: str = "",
        command: str = "",
        extensions: Iterable[str] = (),
        keep_original: bool = False,
        notify: bool = True,
    ) -> Binding:
        """Add a binding, or replace the one with the same folder and transformation.

        Other bindings on the same folder are left alone, so a folder can
        carry several transformations.  The folder is created if needed.
        """
        key = normalize_path(path)
        try:
            Path(key).mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise WatchSetupError(key, f"failed to create folder ({exc})") from exc

        binding = Binding(
            path=key,
            action=action,
            command=command,
            extensions=normalize_extensions(extensions),
            notify=notify,
            keep_original=keep_original,
        )
        with self._lock:
            self._ensure_loaded()
            updated = list(self._bindings)
            for i, existing in enumerate(updated):
                if existing.same_target(binding):
                    updated[i] = binding
                    logger.info("Updated binding %s -> %s", key, binding.describe())
                    break
            else:
                updated.append(binding)
                logger.info("Added binding %s -> %s", key, binding.describe())
            self.save(updated)
        return binding

    def remove_binding(self, path: str | Path, matcher: str) -> Binding:
        """Remove the first binding on *path* whose command or action equals *matcher*."""
        key = normalize_path(path)
        with self._lock:
            self._ensure_loaded()
            for i, existing in enumerate(self._bindings):
                if existing.path == key and existing.matches(matcher):
                    updated = self._bindings[:i] + self._bindings[i + 1:]
                    self.save(updated)
                    logger.info("Removed binding %s -> %s", key, existing.describe())
                    return existing
        raise NotFoundError(f"No action {matcher!r} configured for {key}")

    def remove_all_bindings_for_path(self, path: str | Path) -> int:
        """Remove every binding on *path*; returns how many were removed."""
        key = normalize_path(path)
        with self._lock:
            self._ensure_loaded()
            remaining = [b for b in self._bindings if b.path != key]
            removed = len(self._bindings) - len(remaining)
            if not removed:
                raise NotFoundError(f"Folder not configured: {key}")
            self.save(remaining)
        logger.info("Removed %d binding(s) for %s", removed, key)
        return removed

    # ---- logging settings ----

    def _number_setting(self, key: str) -> int:
        value = self._data.get(key)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            logger.warning("Ignoring %s=%r; using %r", key, value, DEFAULT_CONFIG[key])
            return DEFAULT_CONFIG[key]
        return int(value)

    @property
    def log_level(self) -> str:
        """Return the current logging level name."""
        value = self._data.get("log_level")
        if not isinstance(value, str):
            return DEFAULT_CONFIG["log_level"]
        return value

    @property
    def max_log_size_mb(self) -> int:
        """Return the maximum log file size in MB before rotation."""
        return max(1, self._number_setting("max_log_size_mb"))

    @property
    def log_backup_count(self) -> int:
        """Return the number of rotated log backups to keep."""
        return max(0, self._number_setting("log_backup_count"))
