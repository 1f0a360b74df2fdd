"""
Shared pytest fixtures and configuration for reqtrail tests.

Fixtures pin time through ``FakeTimeProvider`` and render timestamps in UTC
(``timezone_offset_hours=0``), so log lines can be compared by exact string.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any

# Settings loaded without an explicit mode must not turn on console mirroring.
os.environ.setdefault("APP_ENV", "test")

import pytest

from reqtrail.config.runtime import RuntimeMode
from reqtrail.config.schema import AppSettings, LoggingSettings
from reqtrail.observability.log_sink import LogSink
from reqtrail.utils.time_provider import FakeTimeProvider

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path

# 2024-03-01T12:00:00Z
FIXED_NOW = 1709294400.0
FIXED_DATE = "2024-03-01"
FIXED_TIMESTAMP = "2024-03-01T12:00:00"


# ============================================================
# Pytest Hooks and Configuration
# ============================================================


def pytest_configure(config: Any) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "property: marks property-based tests")
    config.addinivalue_line("markers", "security: marks security-related tests")
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


# ============================================================
# Time and Filesystem Fixtures
# ============================================================


@pytest.fixture
def fake_time() -> FakeTimeProvider:
    """Fake clock pinned to 2024-03-01T12:00:00Z."""
    return FakeTimeProvider(start_time=FIXED_NOW)


@pytest.fixture
def log_dir(tmp_path: Path) -> Path:
    return tmp_path / "logs"


@pytest.fixture
def sink(log_dir: Path, fake_time: FakeTimeProvider) -> Iterator[LogSink]:
    log_sink = LogSink(log_dir, time_provider=fake_time, offset_hours=0)
    yield log_sink
    log_sink.close()


@pytest.fixture
def read_lines() -> Callable[[Path], list[str]]:
    """Return a helper reading a log file as a list of lines."""

    def _read(path: Path) -> list[str]:
        if not path.exists():
            return []
        return path.read_text(encoding="utf-8").splitlines()

    return _read


# ============================================================
# Settings Fixtures
# ============================================================


@pytest.fixture
def settings(log_dir: Path) -> AppSettings:
    """Test-mode settings writing into a temporary log directory."""
    return AppSettings(
        runtime_mode=RuntimeMode.TEST,
        logging=LoggingSettings(
            log_dir=str(log_dir),
            timezone_offset_hours=0,
            console_mirror=False,
        ),
    )
