"""SQLAlchemy ORM models for PomoSmart."""

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Float
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class ActiveTimer(Base):
    """The in-flight timer of one user.  At most one row per user."""

    __tablename__ = "active_timers"

    user_id = Column(String(64), primary_key=True)
    mode = Column(String(20), nullable=False, default="work")  # work | short_break | long_break
    started_at = Column(DateTime, nullable=False)   # anchor, moved on resume
    created_at = Column(DateTime, nullable=False)   # first start of the segment
    duration_seconds = Column(Integer, nullable=False)
    is_paused = Column(Boolean, nullable=False, default=False)
    elapsed_when_paused = Column(Float, nullable=False, default=0.0)
    session_count = Column(Integer, nullable=False, default=0)
    focus_target = Column(String(255), nullable=True)

    # cadence captured at start
    sessions_before_long_break = Column(Integer, nullable=False, default=4)
    auto_start_breaks = Column(Boolean, nullable=False, default=False)
    auto_start_work = Column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return (
            f"<ActiveTimer user={self.user_id} mode={self.mode} "
            f"paused={self.is_paused}>"
        )


class CompletedSession(Base):
    """Append-only record of a finished (or interrupted) timer segment."""

    __tablename__ = "completed_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)
    focus_target = Column(String(255), nullable=True)
    mode = Column(String(20), nullable=False)
    planned_duration_minutes = Column(Integer, nullable=False)
    actual_duration_seconds = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False)  # completed | interrupted
    focus_rating = Column(Integer, nullable=True)  # 1-5
    started_at = Column(DateTime, nullable=False)
    completed_at = Column(DateTime, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<CompletedSession id={self.id} user={self.user_id} "
            f"mode={self.mode} status={self.status}>"
        )


class PomodoroSettings(Base):
    """Per-user timer cadence."""

    __tablename__ = "pomodoro_settings"

    user_id = Column(String(64), primary_key=True)
    work_duration_min = Column(Integer, nullable=False, default=25)
    short_break_min = Column(Integer, nullable=False, default=5)
    long_break_min = Column(Integer, nullable=False, default=15)
    sessions_before_long_break = Column(Integer, nullable=False, default=4)
    auto_start_breaks = Column(Boolean, nullable=False, default=False)
    auto_start_work = Column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return (
            f"<PomodoroSettings user={self.user_id} "
            f"work={self.work_duration_min}m "
            f"long_every={self.sessions_before_long_break}>"
        )


class TimerCycle(Base):
    """Where a user stands in the work/break cycle between segments.

    Written in the same transaction that records a completed segment, so the
    count survives restarts and is shared by every host.
    """

    __tablename__ = "timer_cycles"

    user_id = Column(String(64), primary_key=True)
    session_count = Column(Integer, nullable=False, default=0)
    next_mode = Column(String(20), nullable=False, default="work")
    updated_at = Column(DateTime, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<TimerCycle user={self.user_id} count={self.session_count} "
            f"next={self.next_mode}>"
        )
