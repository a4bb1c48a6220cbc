"""
Test Configuration File

Unified setup for Python path, avoiding sys.path.insert in each test file.
Provides the QCoreApplication fixture for the Qt ticker tests and the
shared fakes for the audio engine and sound effects.
"""

import os
import sys
from pathlib import Path

import pytest

# Add the src directory to the Python path
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

# pygame must never open a real audio device during tests
os.environ.setdefault("SDL_AUDIODRIVER", "dummy")


@pytest.fixture(scope="session")
def qapp():
    """
    Create QCoreApplication for all tests.

    Uses session scope to avoid creating multiple application instances.
    """
    from PyQt6.QtCore import QCoreApplication

    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication([])
    yield app


@pytest.fixture(autouse=True)
def _isolate_user_dirs(tmp_path, monkeypatch):
    """Keep config/database singletons and user directories per test."""
    from core.database import DatabaseManager
    from services.config_service import ConfigService

    base = tmp_path / "user-dirs"
    monkeypatch.setenv("APPDATA", str(base))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(base / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(base / "data"))

    ConfigService.reset_instance()
    DatabaseManager.reset_instance()
    yield
    ConfigService.reset_instance()
    DatabaseManager.reset_instance()


@pytest.fixture
def event_bus():
    from core.event_bus import EventBus

    bus = EventBus()
    yield bus
    bus.shutdown()


@pytest.fixture
def engine():
    from fakes import FakeEngine

    return FakeEngine()


@pytest.fixture
def clip_backend():
    from fakes import FakeClipBackend

    return FakeClipBackend()


@pytest.fixture
def tracks():
    from fakes import make_tracks

    return make_tracks(4)
