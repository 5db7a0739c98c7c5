"""Test doubles shared by the Smart Folders test suite."""

import threading
import time
from pathlib import Path
from typing import Callable

from smart_folders.errors import ExternalToolError


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRunner:
    """Records argv lists instead of spawning processes."""

    def __init__(self, fail: bool = False, on_call: Callable[[list[str]], None] | None = None):
        self.calls: list[list[str]] = []
        self.fail = fail
        self.on_call = on_call
        self.called = threading.Event()

    def __call__(self, argv: list[str]) -> None:
        self.calls.append(list(argv))
        try:
            if self.on_call:
                self.on_call(argv)
            if self.fail:
                raise ExternalToolError(argv[0], "exit status 1", 1)
        finally:
            self.called.set()


class FakeNotifier:
    """Collects notification messages."""

    def __init__(self):
        self.messages: list[str] = []

    def notify(self, message: str) -> None:
        self.messages.append(message)


class FakeObserver:
    """Stand-in for a watchdog observer that never delivers events."""

    instances: list["FakeObserver"] = []

    def __init__(self):
        self.scheduled: list[tuple[object, str, bool]] = []
        self.alive = False
        FakeObserver.instances.append(self)

    def schedule(self, handler, path, recursive=False):
        self.scheduled.append((handler, path, recursive))

    def start(self):
        self.alive = True

    def stop(self):
        self.alive = False

    def join(self, timeout=None):
        pass

    def is_alive(self):
        return self.alive


def wait_for(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    """Poll *predicate* until it is true or *timeout* elapses."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.05)
    return predicate()


def write_file(path: Path, data: bytes = b"data") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path
