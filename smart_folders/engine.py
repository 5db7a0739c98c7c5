"""
Engine facade for Smart Folders.

Ties together the folders file, output suppression, the action executor
and the watch manager behind the small interface used by front-ends
(settings panel, command-line tools, the background daemon).
"""

import logging
import threading
from pathlib import Path
from typing import Any, Callable, Iterable

from watchdog.observers import Observer

from smart_folders.actions import PREDEFINED_ACTIONS, ActionExecutor, run_tool
from smart_folders.config import Binding, Configuration, FolderConfig
from smart_folders.errors import UnknownActionError
from smart_folders.notify import DesktopNotifier
from smart_folders.suppression import OutputSuppressionCache
from smart_folders.watcher import SETTLE_DELAY_SECONDS, WatchManager

logger = logging.getLogger(__name__)


class FolderEngine:
    """Owns all engine state; one instance per running daemon."""

    def __init__(
        self,
        config_path: Path | None = None,
        settle_delay: float = SETTLE_DELAY_SECONDS,
        notifier: DesktopNotifier | None = None,
        runner: Callable[[list[str]], None] = run_tool,
        observer_factory: Callable[[], Any] = Observer,
    ):
        self.config = FolderConfig(config_path, autoload=False)
        self.suppression = OutputSuppressionCache()
        self.executor = ActionExecutor(
            self.suppression,
            notifier if notifier is not None else DesktopNotifier(),
            runner=runner,
        )
        self.watch_manager = WatchManager(
            self.config,
            self.executor,
            self.suppression,
            settle_delay=settle_delay,
            observer_factory=observer_factory,
        )

    # ---- configuration ----

    def load_configuration(self) -> Configuration:
        return self.config.load()

    def save_configuration(self, bindings: Configuration) -> None:
        self.config.save(bindings)

    def list_distinct_paths(self) -> list[str]:
        return self.config.list_distinct_paths()

    def list_bindings_for_path(self, path: str | Path) -> Configuration:
        return self.config.list_bindings_for_path(path)

    def add_or_update_binding(
        self,
        path: str | Path,
        action: str = "",
        command: str = "",
        extensions: Iterable[str] = (),
        keep_original: bool = False,
        notify: bool = True,
    ) -> Binding:
        """Add or replace a binding; predefined action names are checked first."""
        if not command and action not in PREDEFINED_ACTIONS:
            raise UnknownActionError(action)
        return self.config.upsert_binding(
            path, action, command, extensions, keep_original, notify
        )

    def remove_binding(self, path: str | Path, matcher: str) -> Binding:
        return self.config.remove_binding(path, matcher)

    def remove_all_bindings_for_path(self, path: str | Path) -> int:
        return self.config.remove_all_bindings_for_path(path)

    # ---- watching ----

    def start_watching(self, stop_event: threading.Event) -> None:
        """Block, watching every configured folder, until *stop_event* is set."""
        logger.info("Starting folder watch (config: %s)", self.config.path)
        self.watch_manager.run(stop_event)
