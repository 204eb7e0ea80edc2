"""Timer state machine for PomoSmart.

States (per user)
-----------------
IDLE            No ActiveTimer row.
RUNNING(mode)   Counting down from the ``started_at`` anchor.
PAUSED(mode)    Frozen at ``elapsed_when_paused``.

Transitions
-----------
IDLE → RUNNING                      (start)
RUNNING → PAUSED                    (pause)
PAUSED → RUNNING                    (resume, anchor moved to now - elapsed)
RUNNING | PAUSED → IDLE             (stop, session recorded as interrupted)
RUNNING | PAUSED → IDLE | RUNNING   (complete, next segment if auto-start)

The engine keeps no countdown in memory.  The ``active_timers`` row is the
only source of truth and remaining time is always recomputed from the wall
clock, so any number of hosts (Qt client, headless loop, bot handlers) can
share one database.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..database.db import get_session
from ..database.models import ActiveTimer, CompletedSession, TimerCycle
from ..preferences import PomodoroPreferences, get_pomodoro_settings
from .cycle import Mode, next_mode
from .errors import (
    AlreadyActive,
    AlreadyPaused,
    NoActiveTimer,
    NotPaused,
    PersistenceUnavailable,
    SessionNotFound,
)
from .recovery import (
    RecoveredTimer,
    elapsed_seconds,
    recover as recover_timers,
    remaining_seconds,
)

logger = logging.getLogger(__name__)


# ── constants ─────────────────────────────────────────────────────────────

STATUS_COMPLETED = "completed"
STATUS_INTERRUPTED = "interrupted"

MIN_RATING = 1
MAX_RATING = 5


def utcnow() -> datetime:
    """Naive UTC "now", the format every timestamp column uses."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def format_clock(seconds: int) -> str:
    """``MM:SS`` for a countdown display."""
    minutes, secs = divmod(max(0, int(seconds)), 60)
    return f"{minutes:02d}:{secs:02d}"


# ── value objects ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class TimerSnapshot:
    """Read-only view of an ActiveTimer at one instant."""

    user_id: str
    mode: Mode
    started_at: datetime
    created_at: datetime
    duration_seconds: int
    is_paused: bool
    elapsed_when_paused: float
    session_count: int
    focus_target: str | None
    sessions_before_long_break: int
    auto_start_breaks: bool
    auto_start_work: bool
    remaining_seconds: int
    elapsed_seconds: float

    @classmethod
    def from_row(cls, row: ActiveTimer, now: datetime) -> "TimerSnapshot":
        return cls(
            user_id=row.user_id,
            mode=Mode(row.mode),
            started_at=row.started_at,
            created_at=row.created_at,
            duration_seconds=row.duration_seconds,
            is_paused=bool(row.is_paused),
            elapsed_when_paused=float(row.elapsed_when_paused or 0.0),
            session_count=row.session_count,
            focus_target=row.focus_target,
            sessions_before_long_break=row.sessions_before_long_break,
            auto_start_breaks=bool(row.auto_start_breaks),
            auto_start_work=bool(row.auto_start_work),
            remaining_seconds=remaining_seconds(row, now),
            elapsed_seconds=elapsed_seconds(row, now),
        )

    @property
    def expired(self) -> bool:
        return self.remaining_seconds <= 0

    @property
    def percent_complete(self) -> float:
        """0.0 → 1.0 progress through the segment."""
        if self.duration_seconds <= 0:
            return 0.0
        return max(0.0, min(1.0, self.elapsed_seconds / self.duration_seconds))


@dataclass(frozen=True)
class SessionRecord:
    """Read-only view of a CompletedSession row."""

    id: int
    user_id: str
    focus_target: str | None
    mode: Mode
    planned_duration_minutes: int
    actual_duration_seconds: int
    status: str
    focus_rating: int | None
    started_at: datetime
    completed_at: datetime

    @classmethod
    def from_row(cls, row: CompletedSession) -> "SessionRecord":
        return cls(
            id=row.id,
            user_id=row.user_id,
            focus_target=row.focus_target,
            mode=Mode(row.mode),
            planned_duration_minutes=row.planned_duration_minutes,
            actual_duration_seconds=row.actual_duration_seconds,
            status=row.status,
            focus_rating=row.focus_rating,
            started_at=row.started_at,
            completed_at=row.completed_at,
        )


@dataclass(frozen=True)
class CompletionResult:
    session: SessionRecord
    next_mode: Mode
    session_count: int
    next_timer: TimerSnapshot | None = None  # set when auto-start kicked in


@dataclass(frozen=True)
class TimerCompleted:
    """Event handed to notification listeners after ``complete``."""

    user_id: str
    mode: Mode
    focus_target: str | None


Listener = Callable[[TimerCompleted], None]


# ── engine ────────────────────────────────────────────────────────────────


class PomodoroEngine:
    """Per-user pomodoro timers backed by the ``active_timers`` table.

    Mutating calls for one user are serialized by a per-user lock; the
    ``user_id`` primary key keeps a second process from slipping in a
    second timer.  ``tick`` is lock-free and does a single primary-key read.

    ``clock`` returns naive UTC datetimes and exists so tests (and replays)
    can control time.
    """

    def __init__(self, *, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or utcnow
        self._locks: dict[str, _UserLock] = {}
        self._locks_guard = threading.Lock()
        self._listeners: list[Listener] = []

    # ══════════════════════════════════════════════════════════════════
    #  LISTENERS
    # ══════════════════════════════════════════════════════════════════

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ══════════════════════════════════════════════════════════════════
    #  CONTROLS
    # ══════════════════════════════════════════════════════════════════

    def start(
        self,
        user_id: str,
        mode: Mode | str = Mode.WORK,
        duration_seconds: int | None = None,
        focus_target: str | None = None,
        *,
        session_count: int | None = None,
    ) -> TimerSnapshot:
        """Start a segment.

        ``duration_seconds=None`` uses the user's settings and
        ``session_count=None`` continues from the stored cycle position.
        """
        mode = Mode(mode)
        if duration_seconds is not None and duration_seconds <= 0:
            raise ValueError("duration_seconds must be greater than zero")

        with self._user_lock(user_id), self._transaction() as db:
            if db.get(ActiveTimer, user_id) is not None:
                raise AlreadyActive(user_id=user_id)
            now = self._clock()
            if session_count is None:
                session_count = _stored_cycle(db, user_id)[1]
            prefs = get_pomodoro_settings(user_id, db)
            row = self._insert_timer(
                db, user_id, mode, duration_seconds, focus_target,
                session_count, prefs, now,
            )
            snapshot = TimerSnapshot.from_row(row, now)

        logger.info(
            "Timer started: user=%s mode=%s duration=%ss target=%s",
            user_id, mode.value, snapshot.duration_seconds, focus_target,
        )
        return snapshot

    def pause(self, user_id: str) -> TimerSnapshot:
        with self._user_lock(user_id), self._transaction() as db:
            row = self._require_timer(db, user_id)
            if row.is_paused:
                raise AlreadyPaused(user_id=user_id)
            now = self._clock()
            row.elapsed_when_paused = elapsed_seconds(row, now)
            row.is_paused = True
            snapshot = TimerSnapshot.from_row(row, now)

        logger.info(
            "Timer paused: user=%s remaining=%ss",
            user_id, snapshot.remaining_seconds,
        )
        return snapshot

    def resume(self, user_id: str) -> TimerSnapshot:
        with self._user_lock(user_id), self._transaction() as db:
            row = self._require_timer(db, user_id)
            if not row.is_paused:
                raise NotPaused(user_id=user_id)
            now = self._clock()
            # re-anchor so running arithmetic stays duration - (now - started_at)
            row.started_at = now - timedelta(seconds=row.elapsed_when_paused)
            row.elapsed_when_paused = 0.0
            row.is_paused = False
            snapshot = TimerSnapshot.from_row(row, now)

        logger.info(
            "Timer resumed: user=%s remaining=%ss",
            user_id, snapshot.remaining_seconds,
        )
        return snapshot

    def stop(self, user_id: str) -> SessionRecord | None:
        """Cancel the active timer and record it as interrupted.

        Returns ``None`` when nothing was running.
        """
        with self._user_lock(user_id), self._transaction() as db:
            row = db.get(ActiveTimer, user_id)
            if row is None:
                return None
            now = self._clock()
            record = self._finalize(db, row, now, STATUS_INTERRUPTED, None)

        logger.info(
            "Timer stopped: user=%s mode=%s elapsed=%ss",
            user_id, record.mode.value, record.actual_duration_seconds,
        )
        return record

    def tick(self, user_id: str) -> TimerSnapshot | None:
        """Current snapshot, or ``None`` when the user is idle.  Read-only."""
        with self._transaction() as db:
            row = db.get(ActiveTimer, user_id)
            if row is None:
                return None
            return TimerSnapshot.from_row(row, self._clock())

    status = tick

    def complete(self, user_id: str, rating: int | None = None) -> CompletionResult:
        """Finish the active segment and work out what comes next.

        Writing the session, deleting the timer, advancing the cycle and
        (when auto-start applies) starting the next segment all happen in
        one transaction.
        """
        _check_rating(rating)

        with self._user_lock(user_id), self._transaction() as db:
            row = self._require_timer(db, user_id)
            now = self._clock()
            completed_mode = Mode(row.mode)
            focus_target = row.focus_target
            upcoming, count = next_mode(
                completed_mode, row.session_count, row.sessions_before_long_break
            )
            auto = row.auto_start_work if upcoming is Mode.WORK else row.auto_start_breaks

            record = self._finalize(db, row, now, STATUS_COMPLETED, rating)
            self._save_cycle(db, user_id, upcoming, count, now)

            next_timer = None
            if auto:
                prefs = get_pomodoro_settings(user_id, db)
                new_row = self._insert_timer(
                    db, user_id, upcoming, None, focus_target, count, prefs, now,
                )
                next_timer = TimerSnapshot.from_row(new_row, now)

        result = CompletionResult(
            session=record,
            next_mode=upcoming,
            session_count=count,
            next_timer=next_timer,
        )
        logger.info(
            "Timer completed: user=%s mode=%s next=%s count=%d auto=%s",
            user_id, completed_mode.value, upcoming.value, count,
            next_timer is not None,
        )
        self._notify(TimerCompleted(user_id, completed_mode, focus_target))
        return result

    def attach_rating(self, session_id: int, rating: int) -> SessionRecord:
        """Set the focus rating of a finished session after the fact."""
        if rating is None:
            raise ValueError("rating is required")
        _check_rating(rating)

        with self._transaction() as db:
            row = db.get(CompletedSession, session_id)
            if row is None:
                raise SessionNotFound(f"No session with id {session_id}")
            if row.focus_rating is not None:
                raise ValueError(f"Session {session_id} is already rated")
            row.focus_rating = rating
            record = SessionRecord.from_row(row)

        logger.info("Session rated: id=%s rating=%d", session_id, rating)
        return record

    # ══════════════════════════════════════════════════════════════════
    #  QUERIES
    # ══════════════════════════════════════════════════════════════════

    def cycle(self, user_id: str) -> tuple[Mode, int]:
        """``(next_mode, session_count)`` recorded by the user's last completion."""
        with self._transaction() as db:
            return _stored_cycle(db, user_id)

    def active_user_ids(self) -> list[str]:
        with self._transaction() as db:
            return list(db.scalars(select(ActiveTimer.user_id)))

    def recover(self, user_id: str | None = None) -> list[RecoveredTimer]:
        """Recompute the countdown of persisted timers after a restart.

        Entries with ``expired`` set must be passed to :meth:`complete`.
        """
        with self._transaction() as db:
            stmt = select(ActiveTimer)
            if user_id is not None:
                stmt = stmt.where(ActiveTimer.user_id == user_id)
            recovered = recover_timers(db.scalars(stmt), self._clock())

        for item in recovered:
            logger.debug(
                "Recovered timer: user=%s remaining=%ss paused=%s",
                item.user_id, item.remaining_seconds, item.is_paused,
            )
        return recovered

    # ══════════════════════════════════════════════════════════════════
    #  INTERNAL
    # ══════════════════════════════════════════════════════════════════

    @contextmanager
    def _user_lock(self, user_id: str):
        # entries live only while some thread holds or waits on them
        with self._locks_guard:
            entry = self._locks.get(user_id)
            if entry is None:
                entry = self._locks[user_id] = _UserLock()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._locks_guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[user_id]

    @contextmanager
    def _transaction(self):
        try:
            with get_session() as db:
                yield db
        except SQLAlchemyError as exc:
            logger.error("Timer store error: %s", exc)
            raise PersistenceUnavailable(str(exc)) from exc

    @staticmethod
    def _require_timer(db, user_id: str) -> ActiveTimer:
        row = db.get(ActiveTimer, user_id)
        if row is None:
            raise NoActiveTimer(user_id=user_id)
        return row

    @staticmethod
    def _insert_timer(
        db,
        user_id: str,
        mode: Mode,
        duration_seconds: int | None,
        focus_target: str | None,
        session_count: int,
        prefs: PomodoroPreferences,
        now: datetime,
    ) -> ActiveTimer:
        row = ActiveTimer(
            user_id=user_id,
            mode=mode.value,
            started_at=now,
            created_at=now,
            duration_seconds=duration_seconds or prefs.duration_seconds(mode.value),
            is_paused=False,
            elapsed_when_paused=0.0,
            session_count=session_count,
            focus_target=focus_target,
            sessions_before_long_break=prefs.sessions_before_long_break,
            auto_start_breaks=prefs.auto_start_breaks,
            auto_start_work=prefs.auto_start_work,
        )
        db.add(row)
        try:
            db.flush()
        except IntegrityError as exc:
            # another process won the race for this user's row
            raise AlreadyActive(user_id=user_id) from exc
        return row

    @staticmethod
    def _finalize(
        db,
        row: ActiveTimer,
        now: datetime,
        status: str,
        rating: int | None,
    ) -> SessionRecord:
        elapsed = min(elapsed_seconds(row, now), row.duration_seconds)
        session = CompletedSession(
            user_id=row.user_id,
            focus_target=row.focus_target,
            mode=row.mode,
            planned_duration_minutes=row.duration_seconds // 60,
            actual_duration_seconds=int(elapsed),
            status=status,
            focus_rating=rating,
            started_at=row.created_at,
            completed_at=now,
        )
        db.add(session)
        db.delete(row)
        db.flush()
        return SessionRecord.from_row(session)

    @staticmethod
    def _save_cycle(db, user_id: str, upcoming: Mode, count: int, now: datetime) -> None:
        row = db.get(TimerCycle, user_id)
        if row is None:
            row = TimerCycle(user_id=user_id)
            db.add(row)
        row.session_count = count
        row.next_mode = upcoming.value
        row.updated_at = now
        db.flush()

    def _notify(self, event: TimerCompleted) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(
                    "Completion listener %r failed for user=%s",
                    listener, event.user_id,
                )


@dataclass
class _UserLock:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


def _stored_cycle(db, user_id: str) -> tuple[Mode, int]:
    row = db.get(TimerCycle, user_id)
    if row is None:
        return Mode.WORK, 0
    return Mode(row.next_mode), row.session_count


def _check_rating(rating: int | None) -> None:
    if rating is None:
        return
    if not MIN_RATING <= rating <= MAX_RATING:
        raise ValueError(f"rating must be between {MIN_RATING} and {MAX_RATING}")
