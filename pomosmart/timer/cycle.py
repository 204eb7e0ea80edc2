"""Work/break cadence."""

from __future__ import annotations

from enum import Enum


class Mode(Enum):
    WORK = "work"
    SHORT_BREAK = "short_break"
    LONG_BREAK = "long_break"

    @property
    def is_break(self) -> bool:
        return self is not Mode.WORK


def next_mode(
    completed: Mode, session_count: int, sessions_before_long_break: int
) -> tuple[Mode, int]:
    """Return ``(next_mode, session_count)`` after ``completed`` finishes.

    A finished work segment bumps the count; every
    ``sessions_before_long_break``-th one earns a long break.  Breaks always
    lead back to work and leave the count alone.
    """
    if completed is Mode.WORK:
        session_count += 1
        if session_count % sessions_before_long_break == 0:
            return Mode.LONG_BREAK, session_count
        return Mode.SHORT_BREAK, session_count
    return Mode.WORK, session_count
