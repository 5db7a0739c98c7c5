"""Pytest configuration and shared fixtures for Smart Folders tests."""

from pathlib import Path

import pytest

from helpers import FakeClock, FakeNotifier, FakeObserver, FakeRunner
from smart_folders.config import FolderConfig
from smart_folders.suppression import OutputSuppressionCache


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    return tmp_path / "config" / "folders.json"


@pytest.fixture
def folder_config(config_path: Path) -> FolderConfig:
    return FolderConfig(config_path)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def suppression(clock: FakeClock) -> OutputSuppressionCache:
    return OutputSuppressionCache(clock=clock)


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def inbox(tmp_path: Path) -> Path:
    path = tmp_path / "in"
    path.mkdir()
    return path


@pytest.fixture
def home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    path = tmp_path / "home"
    path.mkdir()
    monkeypatch.setenv("HOME", str(path))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(path / ".config"))
    return path


@pytest.fixture(autouse=True)
def _reset_fake_observers():
    FakeObserver.instances.clear()
    yield
    FakeObserver.instances.clear()
