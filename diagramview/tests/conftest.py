"""Pytest fixtures for diagramview tests."""

import pytest

from .. import terminal_caps
from ..images import ImageLifecycleManager
from ..poller import JobPoller
from ..registry import DiagramRegistry
from .fakes import FakeHost, FakeImageBackend, FakeJobs

_ENV_VARS = (
    "DIAGRAMVIEW_MERMAID_THEME",
    "DIAGRAMVIEW_MERMAID_SCALE",
    "DIAGRAMVIEW_STALE_JOBS",
    "DIAGRAMVIEW_KROKI_URL",
    "DIAGRAMVIEW_CACHE_DIR",
    "DIAGRAMVIEW_BACKEND",
    "DIAGRAMVIEW_GRAPHICS_PROTOCOL",
    "DIAGRAMVIEW_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Isolate tests from the user's DIAGRAMVIEW_* settings and cached caps."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    terminal_caps.invalidate_cache()
    yield
    terminal_caps.invalidate_cache()


@pytest.fixture
def host():
    return FakeHost()


@pytest.fixture
def jobs():
    return FakeJobs()


@pytest.fixture
def image_backend():
    return FakeImageBackend()


@pytest.fixture
def images(image_backend):
    return ImageLifecycleManager(image_backend)


@pytest.fixture
def registry(images):
    return DiagramRegistry(images)


@pytest.fixture
def poller(host, jobs):
    return JobPoller(host, jobs, interval_ms=100)


@pytest.fixture
def png_file(tmp_path):
    """A non-empty file standing in for a rendered image."""
    path = tmp_path / "diagram.png"
    path.write_bytes(b"\x89PNG\r\n\x1a\n fake image")
    return str(path)
