"""Timer package."""

from .cycle import Mode, next_mode
from .engine import (
    PomodoroEngine,
    TimerSnapshot,
    SessionRecord,
    CompletionResult,
    TimerCompleted,
    format_clock,
    STATUS_COMPLETED,
    STATUS_INTERRUPTED,
)
from .errors import (
    TimerError,
    AlreadyActive,
    NoActiveTimer,
    AlreadyPaused,
    NotPaused,
    SessionNotFound,
    PersistenceUnavailable,
)
from .headless import HeadlessTickDriver
from .recovery import RecoveredTimer, remaining_seconds

__all__ = [
    "Mode",
    "next_mode",
    "PomodoroEngine",
    "TimerSnapshot",
    "SessionRecord",
    "CompletionResult",
    "TimerCompleted",
    "format_clock",
    "STATUS_COMPLETED",
    "STATUS_INTERRUPTED",
    "TimerError",
    "AlreadyActive",
    "NoActiveTimer",
    "AlreadyPaused",
    "NotPaused",
    "SessionNotFound",
    "PersistenceUnavailable",
    "HeadlessTickDriver",
    "RecoveredTimer",
    "remaining_seconds",
]
