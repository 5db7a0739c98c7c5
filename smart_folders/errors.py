"""
Error types for Smart Folders.

All errors inherit from SmartFoldersError for easy catching.
"""


class SmartFoldersError(Exception):
    """Base exception for all Smart Folders failures."""
    pass


class ConfigIOError(SmartFoldersError):
    """Raised when the folders file cannot be read, parsed or written."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Configuration error for {path}: {reason}")


class NotFoundError(SmartFoldersError):
    """Raised when removing a binding or folder that is not configured."""
    pass


class WatchSetupError(SmartFoldersError):
    """Raised when a directory cannot be watched."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot watch {path}: {reason}")


class ExternalToolError(SmartFoldersError):
    """Raised when an external tool fails to spawn or exits non-zero."""

    def __init__(self, command: str, reason: str, returncode: int | None = None):
        self.command = command
        self.reason = reason
        self.returncode = returncode
        super().__init__(f"{command} failed: {reason}")


class UnknownActionError(ExternalToolError):
    """Raised when a binding names an action outside the predefined catalog."""

    def __init__(self, action: str):
        self.action = action
        super().__init__(action or "<empty>", "unknown action")
