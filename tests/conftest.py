"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from doubles import FakeClock
from shopinstall.core.config.loader import ENV_FIELDS, ENV_NEGATED
from shopinstall.core.observability.logging_config import setup_logging


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch):
    """Keep the host's installer variables out of every test."""
    for var in (*ENV_FIELDS, *ENV_NEGATED, "SHOPINSTALL_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture(autouse=True)
def _restore_logging():
    """Drop handlers a test attached to the root logger."""
    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in before:
            root.removeHandler(handler)
            handler.close()
    for handler in before:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def run_log(tmp_path: Path) -> Path:
    """Attach a run log in tmp_path and return its path."""
    path = setup_logging(level="CRITICAL", log_file=tmp_path / "logs" / "run.log")
    assert path is not None
    return path


@pytest.fixture
def target(tmp_path: Path) -> Path:
    """Install target path (not created)."""
    return tmp_path / "www"


@pytest.fixture
def stage_dir(tmp_path: Path) -> Path:
    path = tmp_path / "stage"
    path.mkdir()
    return path
