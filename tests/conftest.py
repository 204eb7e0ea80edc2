"""Shared pytest fixtures for PomoSmart tests."""

import sys
import pytest

from pomosmart.database.db import configure_engine, init_db
from pomosmart.timer.engine import PomodoroEngine

from helpers import FakeClock


@pytest.fixture(scope="session")
def qapp():
    """A single QCoreApplication instance shared across the entire test run."""
    from PyQt6.QtCore import QCoreApplication

    app = QCoreApplication.instance() or QCoreApplication(sys.argv)
    yield app


@pytest.fixture(autouse=True)
def test_db(tmp_path, monkeypatch):
    """Point every test at a fresh in-memory SQLite database."""
    monkeypatch.setenv("POMOSMART_HOME", str(tmp_path / "home"))
    configure_engine("sqlite:///:memory:")
    init_db()
    yield


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine(clock):
    """Engine on the fake clock."""
    return PomodoroEngine(clock=clock)
