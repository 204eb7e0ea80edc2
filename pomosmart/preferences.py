"""Per-user pomodoro cadence stored in the ``pomodoro_settings`` table.

The timer engine only reads these values (once, when a segment starts);
changing them is an explicit user action.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace

from .database.db import get_session
from .database.models import PomodoroSettings as SettingsRow

MIN_SESSIONS_BEFORE_LONG_BREAK = 2


@dataclass(frozen=True)
class PomodoroPreferences:
    work_duration_min: int = 25
    short_break_min: int = 5
    long_break_min: int = 15
    sessions_before_long_break: int = 4
    auto_start_breaks: bool = False
    auto_start_work: bool = False

    def duration_seconds(self, mode: str) -> int:
        """Planned length in seconds of a ``work``/``short_break``/``long_break`` run."""
        minutes = {
            "work": self.work_duration_min,
            "short_break": self.short_break_min,
            "long_break": self.long_break_min,
        }[mode]
        return minutes * 60


DEFAULT_PREFERENCES = PomodoroPreferences()

_FIELD_NAMES = tuple(f.name for f in fields(PomodoroPreferences))


def _validate(prefs: PomodoroPreferences) -> None:
    if prefs.sessions_before_long_break < MIN_SESSIONS_BEFORE_LONG_BREAK:
        raise ValueError(
            "sessions_before_long_break must be at least "
            f"{MIN_SESSIONS_BEFORE_LONG_BREAK}"
        )
    for name in ("work_duration_min", "short_break_min", "long_break_min"):
        if getattr(prefs, name) < 1:
            raise ValueError(f"{name} must be at least 1 minute")


def _from_row(row: SettingsRow) -> PomodoroPreferences:
    return PomodoroPreferences(**{name: getattr(row, name) for name in _FIELD_NAMES})


def get_pomodoro_settings(user_id: str, db=None) -> PomodoroPreferences:
    """Return the user's cadence, or the defaults when none was saved.

    Pass ``db`` to read inside an already-open session.
    """
    if db is not None:
        row = db.get(SettingsRow, user_id)
        return _from_row(row) if row else DEFAULT_PREFERENCES
    with get_session() as session:
        return get_pomodoro_settings(user_id, session)


def update_pomodoro_settings(user_id: str, **changes) -> PomodoroPreferences:
    """Apply ``changes`` to the user's cadence and persist it."""
    unknown = set(changes) - set(_FIELD_NAMES)
    if unknown:
        raise TypeError(f"Unknown pomodoro setting(s): {', '.join(sorted(unknown))}")

    with get_session() as db:
        row = db.get(SettingsRow, user_id)
        current = _from_row(row) if row else DEFAULT_PREFERENCES
        updated = replace(current, **changes)
        _validate(updated)

        if row is None:
            row = SettingsRow(user_id=user_id)
            db.add(row)
        for name in _FIELD_NAMES:
            setattr(row, name, getattr(updated, name))
    return updated
