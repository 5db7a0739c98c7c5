"""
Action engine for Smart Folders.

Applies one folder binding to one file: filters out files the binding
does not want, optionally backs the original up into ``.originals``,
then runs either a predefined transformation (ImageMagick ``convert``,
``pngquant``, ``ffmpeg``) or the binding's custom shell template.
Callers run this on worker threads; every tool invocation blocks until
the tool exits.
"""

import logging
import os
import shutil
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from smart_folders import templater
from smart_folders.config import Binding
from smart_folders.errors import ExternalToolError, UnknownActionError
from smart_folders.notify import DesktopNotifier
from smart_folders.suppression import OutputSuppressionCache

logger = logging.getLogger(__name__)

BACKUP_DIR_NAME = ".originals"

_STDERR_TAIL = 300  # characters of tool stderr kept in error messages


def run_tool(argv: list[str]) -> None:
    """Run *argv* to completion; raise ExternalToolError unless it exits 0."""
    try:
        result = subprocess.run(
            argv,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
            check=False,
        )
    except OSError as exc:
        raise ExternalToolError(argv[0], f"could not start ({exc})") from exc
    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        reason = f"exit status {result.returncode}"
        if stderr:
            reason += f": {stderr[-_STDERR_TAIL:]}"
        raise ExternalToolError(argv[0], reason, result.returncode)


# ---- predefined catalog ----

def _webp_argv(src: str, out: str) -> list[str]:
    return ["convert", src, "-quality", "80", out]


def _mp4_argv(src: str, out: str) -> list[str]:
    return ["ffmpeg", "-i", src, "-c:v", "libx264", "-c:a", "aac", "-y", out]


def _mp3_argv(src: str, out: str) -> list[str]:
    return ["ffmpeg", "-i", src, "-c:a", "libmp3lame", "-q:a", "2", "-y", out]


# action name -> (output extension, argv builder)
CONVERSIONS: dict[str, tuple[str, Callable[[str, str], list[str]]]] = {
    "convert-webp": (".webp", _webp_argv),
    "convert-mp4": (".mp4", _mp4_argv),
    "convert-mp3": (".mp3", _mp3_argv),
}

# action name -> ImageMagick geometry
RESIZES: dict[str, str] = {
    "resize-50": "50%",
    "resize-25": "25%",
}

PREDEFINED_ACTIONS: tuple[str, ...] = ("compress", *CONVERSIONS, *RESIZES)


@dataclass
class ActionRecord:
    """Outcome of applying one binding to one file."""
    source: str
    action: str
    started: float = 0.0
    finished: float = 0.0
    success: bool = False
    skipped: bool = False
    backed_up: bool = False
    error: str = ""

    @property
    def duration(self) -> float:
        if self.finished and self.started:
            return self.finished - self.started
        return 0.0


class ActionExecutor:
    """
    Runs folder bindings against individual files.

    Parameters
    ----------
    suppression : OutputSuppressionCache
        Receives the likely output paths of each command before it runs.
    notifier : DesktopNotifier, optional
        Used for bindings with ``notify`` set.  None disables notifications.
    runner : callable
        Executes an argv list, raising ExternalToolError on failure.
        Defaults to :func:`run_tool`.
    which : callable
        Looks up optional tools on PATH (``shutil.which`` by default).
    """

    def __init__(
        self,
        suppression: OutputSuppressionCache,
        notifier: DesktopNotifier | None = None,
        runner: Callable[[list[str]], None] = run_tool,
        which: Callable[[str], str | None] = shutil.which,
    ):
        self._suppression = suppression
        self._notifier = notifier
        self._runner = runner
        self._which = which

    # ---- entry point ----

    def process(self, file_path: str | Path, binding: Binding) -> ActionRecord:
        """Apply *binding* to *file_path* and report the outcome."""
        path = Path(file_path)
        rec = ActionRecord(source=str(path), action=binding.describe())

        reason = self._skip_reason(path, binding)
        if reason:
            rec.skipped = True
            rec.error = reason
            logger.debug("Skipping %s: %s", path, reason)
            return rec

        logger.info("Processing: %s (%s)", path, binding.describe())

        if binding.keep_original:
            rec.backed_up = self._backup_original(path, binding)

        rec.started = time.time()
        try:
            if binding.command:
                self._run_custom(path, binding.command)
            else:
                self._run_predefined(path, binding.action)
        except ExternalToolError as exc:
            rec.error = str(exc)
            rec.finished = time.time()
            logger.error("Action failed for %s: %s", path, exc)
            if binding.notify:
                self._notify(f"Failed: {path.name}")
            return rec

        rec.success = True
        rec.finished = time.time()
        logger.info("Processed in %.1fs: %s", rec.duration, path)
        if binding.notify:
            self._notify(f"Processed: {path.name}")
        return rec

    # ---- gating ----

    def _skip_reason(self, path: Path, binding: Binding) -> str:
        """Return why *path* should be left alone, or an empty string."""
        if path.is_dir():
            return "is a directory"
        if not path.exists():
            return "file no longer exists"
        if path.name.startswith(".") or path.parent.name == BACKUP_DIR_NAME:
            return "hidden file"
        if binding.extensions:
            wanted = {e.lower().strip().lstrip(".") for e in binding.extensions}
            ext = path.suffix.lower().lstrip(".")
            if ext not in wanted:
                return f"extension {ext or '<none>'} not in filter"
        return ""

    def _backup_original(self, path: Path, binding: Binding) -> bool:
        backup_dir = Path(binding.path) / BACKUP_DIR_NAME
        try:
            backup_dir.mkdir(parents=True, exist_ok=True)
            shutil.copy2(str(path), str(backup_dir / path.name))
        except OSError as exc:
            logger.warning("Could not back up %s: %s", path, exc)
            return False
        logger.debug("Backed up %s to %s", path, backup_dir)
        return True

    # ---- custom commands ----

    def _run_custom(self, path: Path, template: str) -> None:
        command = templater.expand(template, str(path))
        self._suppression.mark_likely_outputs(str(path.parent), path.stem, template)
        logger.debug("Running: %s", command)
        self._runner(templater.shell_argv(command))

    # ---- predefined actions ----

    def _run_predefined(self, path: Path, action: str) -> None:
        if action == "compress":
            self._compress(path)
        elif action in CONVERSIONS:
            ext, build_argv = CONVERSIONS[action]
            self._convert(path, ext, build_argv)
        elif action in RESIZES:
            src = str(path)
            self._runner(["convert", src, "-resize", RESIZES[action], src])
        else:
            raise UnknownActionError(action)

    def _compress(self, path: Path) -> None:
        src = str(path)
        ext = path.suffix.lower()
        if ext == ".png":
            if self._which("pngquant"):
                self._runner(
                    ["pngquant", "--force", "--quality=65-80", "--output", src, src]
                )
            else:
                self._runner(["convert", src, "-strip", "-colors", "256", src])
        elif ext in (".jpg", ".jpeg", ".webp"):
            self._runner(["convert", src, "-strip", "-quality", "75", src])
        else:
            logger.debug("Nothing to compress for %s", path)

    def _convert(
        self,
        path: Path,
        ext: str,
        build_argv: Callable[[str, str], list[str]],
    ) -> None:
        """Convert *path* to *ext*, deleting the source once the tool succeeds."""
        if path.suffix.lower() == ext:
            logger.debug("%s is already %s", path, ext)
            return
        output = path.with_suffix(ext)
        self._suppression.mark_likely_outputs(str(path.parent), path.stem, ext)
        self._runner(build_argv(str(path), str(output)))
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Converted %s but could not remove it: %s", path, exc)

    def _notify(self, message: str) -> None:
        if self._notifier is not None:
            self._notifier.notify(message)
