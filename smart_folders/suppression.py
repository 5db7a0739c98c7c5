"""Output suppression for Smart Folders.

When an action is about to write a new file into a watched folder, the
likely output paths are remembered for a short while so the watcher does
not feed the engine its own output.  Outputs are guessed by scanning the
raw command text for known media extensions; the guess can miss outputs
or flag paths that are never written.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)

OUTPUT_EXTENSIONS = (
    ".webp", ".png", ".jpg", ".jpeg", ".mp4",
    ".mp3", ".gif", ".mov", ".avi", ".mkv",
)

SUPPRESSION_SECONDS = 10.0  # create events at a marked path are ignored
RETENTION_SECONDS = 30.0  # marks older than this are dropped


class OutputSuppressionCache:
    """Time-windowed record of paths the engine itself is about to write."""

    def __init__(
        self,
        suppress_seconds: float = SUPPRESSION_SECONDS,
        retain_seconds: float = RETENTION_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._suppress_seconds = suppress_seconds
        self._retain_seconds = retain_seconds
        self._clock = clock
        # absolute path -> time it was marked
        self._marks: dict[str, float] = {}
        self._lock = threading.Lock()

    def mark_likely_outputs(self, directory: str, stem: str, descriptor: str) -> list[str]:
        """Record ``<directory>/<stem><ext>`` for each known extension in *descriptor*.

        Returns the marked paths.
        """
        now = self._clock()
        marked = [
            os.path.join(directory, stem + ext)
            for ext in OUTPUT_EXTENSIONS
            if ext in descriptor
        ]
        with self._lock:
            for path in marked:
                self._marks[path] = now
        if marked:
            logger.debug("Marked likely outputs: %s", ", ".join(marked))
        return marked

    def is_suppressed(self, path: str) -> bool:
        """True if *path* was marked within the suppression window.

        Stale marks are evicted as a side effect.
        """
        now = self._clock()
        with self._lock:
            for stale in [
                p for p, t in self._marks.items() if now - t > self._retain_seconds
            ]:
                del self._marks[stale]
            marked_at = self._marks.get(path)
        return marked_at is not None and now - marked_at < self._suppress_seconds

    def __len__(self) -> int:
        with self._lock:
            return len(self._marks)
