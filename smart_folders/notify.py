"""Desktop notification helper for Smart Folders.

On Linux, uses ``notify-send`` (libnotify).  On macOS, falls back to
``osascript`` so Notification Center shows the message.  On other
platforms, or when no notifier binary is installed, notifications are
logged at debug level and otherwise discarded.
"""

import logging
import shutil
import subprocess
import threading

from smart_folders import __app_name__
from smart_folders.platform_utils import IS_MACOS

logger = logging.getLogger(__name__)


def _applescript_string(text: str) -> str:
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


class DesktopNotifier:
    """Fire-and-forget desktop notifier.

    - Linux: ``notify-send <title> <message>``
    - macOS: ``osascript -e 'display notification ...'``
    - Other: silent no-op

    Call ``notify(message)`` to push a notification.  The call never
    blocks; the notifier process runs on a daemon thread and its failures
    are only logged.
    """

    def __init__(self, title: str = __app_name__) -> None:
        """Detect the notifier binary available on this system."""
        self._title = title
        self._notify_send = shutil.which("notify-send")

    def command_for(self, message: str) -> list[str] | None:
        """Return the argv that shows *message*, or None when unsupported."""
        if self._notify_send:
            return [self._notify_send, self._title, message]
        if IS_MACOS:
            script = (
                f"display notification {_applescript_string(message)} "
                f"with title {_applescript_string(self._title)}"
            )
            return ["osascript", "-e", script]
        return None

    def notify(self, message: str) -> None:
        """Show *message* as a desktop notification."""
        argv = self.command_for(message)
        if argv is None:
            logger.debug("Notify (no backend): %s", message)
            return

        threading.Thread(
            target=self._do_notify,
            args=(argv,),
            daemon=True,
            name="Notify",
        ).start()

    def _do_notify(self, argv: list[str]) -> None:
        try:
            subprocess.run(
                argv,
                timeout=15,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
            logger.debug("Notified: %s", argv[-1])
        except Exception:
            logger.debug("Desktop notification failed.", exc_info=True)
