"""Remaining-time arithmetic for persisted timers.

Everything here is a pure function of a timer record and a wall-clock
instant, so it gives the same answer no matter how often it runs:

* paused   → remaining = duration - elapsed_when_paused
* running  → remaining = duration - (now - started_at)

A running timer whose remaining time is <= 0 expired while nobody was
looking (closed window, restarted server); the caller has to ``complete``
it rather than drop it.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable


def elapsed_seconds(timer, now: datetime) -> float:
    """Active seconds spent in the current segment (pauses excluded)."""
    if timer.is_paused:
        return max(0.0, float(timer.elapsed_when_paused))
    return max(0.0, (now - timer.started_at).total_seconds())


def remaining_seconds(timer, now: datetime) -> int:
    """Whole seconds left, rounded up so the countdown never hits 0 early."""
    left = timer.duration_seconds - elapsed_seconds(timer, now)
    return max(0, math.ceil(left))


def is_expired(timer, now: datetime) -> bool:
    return remaining_seconds(timer, now) <= 0


@dataclass(frozen=True)
class RecoveredTimer:
    user_id: str
    remaining_seconds: int
    is_paused: bool

    @property
    def expired(self) -> bool:
        return self.remaining_seconds <= 0


def recover(timers: Iterable, now: datetime) -> list[RecoveredTimer]:
    """Rebuild the countdown of every persisted timer at ``now``."""
    return [
        RecoveredTimer(
            user_id=t.user_id,
            remaining_seconds=remaining_seconds(t, now),
            is_paused=bool(t.is_paused),
        )
        for t in timers
    ]
