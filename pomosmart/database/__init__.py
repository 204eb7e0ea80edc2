"""Database package."""

from .db import configure_engine, get_session, init_db
from .models import ActiveTimer, CompletedSession, PomodoroSettings, TimerCycle

__all__ = [
    "configure_engine",
    "get_session",
    "init_db",
    "ActiveTimer",
    "CompletedSession",
    "PomodoroSettings",
    "TimerCycle",
]
