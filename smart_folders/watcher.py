"""File system watcher for Smart Folders.

Uses the watchdog library to keep exactly one watch per configured
folder.  Each new file is checked against the output suppression cache,
given a short settle delay, then run through every binding of its folder
on a worker thread.  The folders file is watched too, so edits made by
other tools are picked up without a restart.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Callable
from typing import Any

from watchdog.events import (
    FileCreatedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from smart_folders.actions import ActionExecutor
from smart_folders.config import Binding, FolderConfig
from smart_folders.errors import ConfigIOError, WatchSetupError
from smart_folders.suppression import OutputSuppressionCache

logger = logging.getLogger(__name__)

SETTLE_DELAY_SECONDS = 0.5  # wait for the producer to finish writing
HEALTH_CHECK_SECONDS = 5.0


class NewFileHandler(FileSystemEventHandler):
    """Watchdog handler that reports files appearing directly in one folder."""

    def __init__(self, directory: str, on_new_file: Callable[[str, str], None]):
        super().__init__()
        self._directory = directory
        self._on_new_file = on_new_file

    def _emit(self, path: str) -> None:
        try:
            self._on_new_file(self._directory, path)
        except Exception:
            logger.exception("Error handling new file %s", path)

    def on_created(self, event: FileCreatedEvent) -> None:  # type: ignore[override]
        """Handle a new file creation event."""
        if event.is_directory:
            return
        self._emit(os.fsdecode(event.src_path))

    def on_moved(self, event: FileMovedEvent) -> None:  # type: ignore[override]
        """A file renamed into the folder counts as a new file."""
        if event.is_directory:
            return
        dest = os.fsdecode(event.dest_path)
        if os.path.dirname(dest) == self._directory:
            self._emit(dest)


class ConfigFileHandler(FileSystemEventHandler):
    """Watchdog handler that reports writes to, or replacement of, the folders file."""

    def __init__(self, file_name: str, on_change: Callable[[], None]):
        super().__init__()
        self._file_name = file_name
        self._on_change = on_change

    def _check(self, path: Any) -> None:
        if os.path.basename(os.fsdecode(path)) != self._file_name:
            return
        try:
            self._on_change()
        except Exception:
            logger.exception("Error scheduling configuration reload")

    def on_created(self, event: FileCreatedEvent) -> None:  # type: ignore[override]
        if not event.is_directory:
            self._check(event.src_path)

    def on_modified(self, event: FileModifiedEvent) -> None:  # type: ignore[override]
        if not event.is_directory:
            self._check(event.src_path)

    def on_moved(self, event: FileMovedEvent) -> None:  # type: ignore[override]
        if not event.is_directory:
            self._check(event.dest_path)


class DirectoryWatch:
    """One watchdog observer bound to one directory (non-recursive).

    Usage:
        watch = DirectoryWatch("/home/me/Inbox", handler)
        watch.start()
        ...
        watch.stop()
    """

    def __init__(
        self,
        directory: str,
        handler: FileSystemEventHandler,
        observer_factory: Callable[[], Any] = Observer,
    ):
        self.directory = directory
        self._handler = handler
        self._observer_factory = observer_factory
        self._observer: Any | None = None

    # ---- lifecycle ----

    def start(self) -> None:
        """Start watching; raise WatchSetupError if the folder cannot be watched."""
        if not os.path.isdir(self.directory):
            raise WatchSetupError(self.directory, "not a directory")

        observer = self._observer_factory()
        try:
            observer.schedule(self._handler, self.directory, recursive=False)
            observer.start()
        except OSError as exc:
            raise WatchSetupError(self.directory, str(exc)) from exc
        self._observer = observer

    def stop(self) -> None:
        """Stop watching and release resources."""
        if self._observer:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    @property
    def is_running(self) -> bool:
        """Return whether the watch is active and its folder still exists."""
        return (
            self._observer is not None
            and self._observer.is_alive()
            and os.path.isdir(self.directory)
        )


class WatchManager:
    """
    Keeps the set of live folder watches in line with the configuration.

    Parameters
    ----------
    config : FolderConfig
        Source of bindings; re-read whenever the folders file changes.
    executor : ActionExecutor
        Applies a binding to a file.
    suppression : OutputSuppressionCache
        Consulted before dispatching a new file.
    settle_delay : float
        Seconds to wait after a create event before processing, and after a
        folders file change before reloading.
    observer_factory : callable
        Builds watchdog observers (``Observer`` by default).
    """

    def __init__(
        self,
        config: FolderConfig,
        executor: ActionExecutor,
        suppression: OutputSuppressionCache,
        settle_delay: float = SETTLE_DELAY_SECONDS,
        observer_factory: Callable[[], Any] = Observer,
    ):
        self._config = config
        self._executor = executor
        self._suppression = suppression
        self._settle_delay = settle_delay
        self._observer_factory = observer_factory
        # directory -> DirectoryWatch
        self._watches: dict[str, DirectoryWatch] = {}
        self._lock = threading.Lock()
        self._config_watch: DirectoryWatch | None = None
        self._reload_timer: threading.Timer | None = None
        self._reload_lock = threading.Lock()
        self._stopped = False

    @property
    def watched_paths(self) -> list[str]:
        """Return the folders currently being watched."""
        with self._lock:
            return list(self._watches)

    # ---- watch set ----

    def refresh(self) -> None:
        """Open watches for new folders and close watches for removed ones.

        Watches for folders that are still configured are left running.
        """
        with self._lock:
            if self._stopped:
                return
            wanted = self._config.list_distinct_paths()
            for directory in [d for d in self._watches if d not in wanted]:
                self._watches.pop(directory).stop()
                logger.info("Stopped watching: %s", directory)

            for directory in wanted:
                if directory in self._watches:
                    continue
                watch = DirectoryWatch(
                    directory,
                    NewFileHandler(directory, self.handle_new_file),
                    self._observer_factory,
                )
                try:
                    watch.start()
                except WatchSetupError as exc:
                    logger.warning("%s", exc)
                    continue
                self._watches[directory] = watch
                actions = [
                    b.describe() for b in self._config.list_bindings_for_path(directory)
                ]
                logger.info("Watching: %s -> [%s]", directory, ", ".join(actions))

        if not wanted:
            logger.info("No smart folders configured.")

    def stop_all(self) -> None:
        """Close every watch, including the folders file watch."""
        with self._reload_lock:
            if self._reload_timer:
                self._reload_timer.cancel()
                self._reload_timer = None
        with self._lock:
            self._stopped = True
            for watch in self._watches.values():
                watch.stop()
            self._watches.clear()
        if self._config_watch:
            self._config_watch.stop()
            self._config_watch = None
        logger.info("Watchers stopped.")

    def prune_dead_watches(self) -> list[str]:
        """Drop watches whose observer died or whose folder vanished."""
        with self._lock:
            dead = [d for d, w in self._watches.items() if not w.is_running]
            for directory in dead:
                self._watches.pop(directory).stop()
                logger.warning("Watch lost for %s; it will be retried on the next reload.", directory)
        return dead

    # ---- file events ----

    def handle_new_file(self, directory: str, file_path: str) -> bool:
        """Dispatch a newly created file; returns False when it was suppressed."""
        if self._suppression.is_suppressed(file_path):
            logger.debug("Ignoring own output: %s", file_path)
            return False

        bindings = self._config.list_bindings_for_path(directory)
        if not bindings:
            return False

        threading.Thread(
            target=self._process_file,
            args=(file_path, bindings),
            daemon=True,
            name=f"Process-{os.path.basename(file_path)}",
        ).start()
        return True

    def _process_file(self, file_path: str, bindings: list[Binding]) -> None:
        if self._settle_delay > 0:
            time.sleep(self._settle_delay)
        for binding in bindings:
            try:
                self._executor.process(file_path, binding)
            except Exception:
                logger.exception(
                    "Unexpected error applying %s to %s", binding.describe(), file_path
                )

    # ---- folders file hot-reload ----

    def watch_config(self) -> None:
        """Watch the folder holding the folders file (the file itself may be replaced)."""
        config_path = self._config.path
        watch = DirectoryWatch(
            str(config_path.parent),
            ConfigFileHandler(config_path.name, self.schedule_reload),
            self._observer_factory,
        )
        try:
            watch.start()
        except WatchSetupError as exc:
            logger.warning("Cannot watch configuration for changes: %s", exc)
            return
        self._config_watch = watch
        logger.debug("Watching %s for configuration changes", config_path.parent)

    def schedule_reload(self) -> None:
        """Reload after the settle delay; events inside the delay coalesce."""
        with self._reload_lock:
            if self._stopped:
                return
            if self._reload_timer:
                self._reload_timer.cancel()
            timer = threading.Timer(self._settle_delay, self.reload)
            timer.daemon = True
            timer.name = "ConfigReload"
            self._reload_timer = timer
            timer.start()

    def reload(self) -> bool:
        """Re-read the folders file and recompute the watch set."""
        logger.info("Configuration changed, reloading...")
        try:
            self._config.load()
        except ConfigIOError as exc:
            logger.error("Failed to reload configuration: %s", exc)
            return False
        self.refresh()
        return True

    # ---- main loop ----

    def run(self, stop_event: threading.Event) -> None:
        """Watch until *stop_event* is set.

        Raises ConfigIOError if the folders file cannot be loaded at start.
        In-flight worker threads are not waited for on shutdown.
        """
        self._config.load()
        with self._lock:
            self._stopped = False
        self.watch_config()
        self.refresh()
        try:
            while not stop_event.wait(timeout=HEALTH_CHECK_SECONDS):
                self.prune_dead_watches()
        finally:
            self.stop_all()
