"""
Background daemon for Smart Folders.

Runs the folder engine headless in the foreground until SIGINT/SIGTERM:
    python -m smart_folders            (blocks until Ctrl-C)
    python -m smart_folders --version
"""

import logging
import logging.handlers
import signal
import sys
import threading

from smart_folders import __app_name__, __version__
from smart_folders.config import FolderConfig, get_log_path
from smart_folders.engine import FolderEngine
from smart_folders.errors import ConfigIOError

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(config: FolderConfig) -> None:
    """Configure rotating file log and stderr handler."""
    level = getattr(logging, config.log_level.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    fmt = logging.Formatter(_LOG_FORMAT)

    # Rotating file handler
    max_bytes = config.max_log_size_mb * 1024 * 1024
    try:
        fh = logging.handlers.RotatingFileHandler(
            str(get_log_path()),
            maxBytes=max_bytes,
            backupCount=config.log_backup_count,
            encoding="utf-8",
        )
    except OSError as exc:
        print(f"Cannot open log file: {exc}", file=sys.stderr)
    else:
        fh.setLevel(level)
        fh.setFormatter(fmt)
        root_logger.addHandler(fh)

    sh = logging.StreamHandler(sys.stderr)
    sh.setLevel(level)
    sh.setFormatter(fmt)
    root_logger.addHandler(sh)


def run_foreground() -> int:
    """Run the engine until SIGINT/SIGTERM; returns the process exit code."""
    engine = FolderEngine()
    try:
        engine.load_configuration()
    except ConfigIOError as exc:
        logging.basicConfig(level=logging.INFO, format=_LOG_FORMAT)
        logger.error("%s", exc)
        return 1
    setup_logging(engine.config)
    logger.info("Starting %s v%s", __app_name__, __version__)

    stop = threading.Event()

    def _handler(sig, frame):
        logger.info("Shutting down\u2026")
        stop.set()

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)

    print(f"{__app_name__} running (press Ctrl-C to stop)\u2026")
    try:
        engine.start_watching(stop)
    except ConfigIOError as exc:
        logger.error("Folder watch stopped: %s", exc)
        return 1
    print(f"{__app_name__} stopped.")
    return 0


def main() -> None:
    """Entry point for the daemon."""
    cmd = sys.argv[1] if len(sys.argv) > 1 else ""
    if cmd == "--version":
        print(f"smart-folders v{__version__}")
        print("Watched folders that transform new files.")
        return
    if cmd:
        _show_help()
        sys.exit(2)
    sys.exit(run_foreground())


def _show_help() -> None:
    print(f"{__app_name__}: background daemon")
    print()
    print("Usage:")
    print("  python -m smart_folders             Run in foreground (Ctrl-C to stop)")
    print("  python -m smart_folders --version   Show version")


if __name__ == "__main__":
    main()
