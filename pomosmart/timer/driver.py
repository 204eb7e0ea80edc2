"""Qt tick driver for the interactive client.

One ``TimerDriver`` follows one user's timer inside a Qt event loop.  It
never counts down on its own: every ``QTimer`` timeout re-reads the engine,
so a timer paused or stopped from another host (the bot, a second window)
shows up on the next tick, and a throttled or suspended loop catches up the
moment it runs again.
"""

from __future__ import annotations

import logging
from enum import Enum

from PyQt6.QtCore import QObject, QTimer, pyqtSignal

from .cycle import Mode
from .engine import (
    CompletionResult, PomodoroEngine, SessionRecord, TimerSnapshot,
)
from .errors import NoActiveTimer, PersistenceUnavailable

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_MS = 250


class TimerState(Enum):
    IDLE = "idle"
    WORKING = "working"
    SHORT_BREAK = "short_break"
    LONG_BREAK = "long_break"
    PAUSED = "paused"


_MODE_TO_TIMER_STATE: dict[Mode, TimerState] = {
    Mode.WORK: TimerState.WORKING,
    Mode.SHORT_BREAK: TimerState.SHORT_BREAK,
    Mode.LONG_BREAK: TimerState.LONG_BREAK,
}


def state_for(snapshot: TimerSnapshot | None) -> TimerState:
    if snapshot is None:
        return TimerState.IDLE
    if snapshot.is_paused:
        return TimerState.PAUSED
    return _MODE_TO_TIMER_STATE[snapshot.mode]


class TimerDriver(QObject):
    """Samples one user's timer at a fixed cadence.

    Signals
    -------
    tick(remaining_seconds: int)
        Emitted on every sample while a timer exists.
    state_changed(new_state: TimerState)
        Emitted whenever the projected state differs from the last sample.
    session_completed(result: CompletionResult)
        Emitted after the driver completed an expired timer.  The session is
        unrated; the UI can call :meth:`rate` once the user picks a score.
    persistence_error(message: str)
        The store could not be read; the driver retries on the next tick.
    """

    tick = pyqtSignal(int)
    state_changed = pyqtSignal(object)
    session_completed = pyqtSignal(object)
    persistence_error = pyqtSignal(str)

    def __init__(
        self,
        engine: PomodoroEngine,
        user_id: str,
        parent: QObject | None = None,
        *,
        interval_ms: int = DEFAULT_INTERVAL_MS,
    ) -> None:
        super().__init__(parent)

        self._engine = engine
        self._user_id = user_id

        # ── projection of the last sample ─────────────────────────────
        self._state: TimerState = TimerState.IDLE
        self._snapshot: TimerSnapshot | None = None

        # ── what comes next once idle ─────────────────────────────────
        self._upcoming_mode: Mode = Mode.WORK
        self._session_count: int = 0
        self._last_result: CompletionResult | None = None

        # ── Qt timer ──────────────────────────────────────────────────
        self._qt_timer = QTimer(self)
        self._qt_timer.setInterval(interval_ms)
        self._qt_timer.timeout.connect(self._on_tick)

    # ══════════════════════════════════════════════════════════════════
    #  PUBLIC PROPERTIES
    # ══════════════════════════════════════════════════════════════════

    @property
    def user_id(self) -> str:
        return self._user_id

    @property
    def state(self) -> TimerState:
        return self._state

    @property
    def snapshot(self) -> TimerSnapshot | None:
        return self._snapshot

    @property
    def remaining(self) -> int:
        """Seconds left as of the last sample (0 when idle)."""
        return self._snapshot.remaining_seconds if self._snapshot else 0

    @property
    def upcoming_mode(self) -> Mode:
        """Mode a plain :meth:`start` will use."""
        return self._upcoming_mode

    @property
    def session_count(self) -> int:
        return self._session_count

    @property
    def last_result(self) -> CompletionResult | None:
        return self._last_result

    @property
    def is_active(self) -> bool:
        return self._qt_timer.isActive()

    # ══════════════════════════════════════════════════════════════════
    #  LIFECYCLE
    # ══════════════════════════════════════════════════════════════════

    def activate(self) -> None:
        """Recover any persisted timer and cycle position, then begin sampling.

        Recovery runs before the first tick so an expiry that happened while
        the window was closed is completed instead of being lost.
        """
        try:
            recovered = self._engine.recover(self._user_id)
            self._upcoming_mode, self._session_count = self._engine.cycle(self._user_id)
        except PersistenceUnavailable as exc:
            self._report(exc)
            recovered = []

        for item in recovered:
            if item.expired:
                logger.info("Completing timer that expired while closed: user=%s",
                            self._user_id)
                self._complete()

        self._refresh()
        self._qt_timer.start()

    def deactivate(self) -> None:
        self._qt_timer.stop()

    # ══════════════════════════════════════════════════════════════════
    #  CONTROLS
    # ══════════════════════════════════════════════════════════════════

    def start(
        self,
        focus_target: str | None = None,
        *,
        mode: Mode | None = None,
        duration_seconds: int | None = None,
    ) -> TimerSnapshot:
        """Start the upcoming segment (or ``mode``) for this user."""
        snapshot = self._engine.start(
            self._user_id,
            mode or self._upcoming_mode,
            duration_seconds,
            focus_target,
        )
        self._refresh()
        return snapshot

    def pause(self) -> TimerSnapshot:
        snapshot = self._engine.pause(self._user_id)
        self._refresh()
        return snapshot

    def resume(self) -> TimerSnapshot:
        snapshot = self._engine.resume(self._user_id)
        self._refresh()
        return snapshot

    def stop(self) -> SessionRecord | None:
        record = self._engine.stop(self._user_id)
        self._refresh()
        return record

    def rate(self, session_id: int, rating: int) -> SessionRecord:
        return self._engine.attach_rating(session_id, rating)

    # ══════════════════════════════════════════════════════════════════
    #  INTERNAL — timer mechanics
    # ══════════════════════════════════════════════════════════════════

    def _on_tick(self) -> None:
        snapshot = self._refresh()
        if snapshot is not None and snapshot.remaining_seconds == 0:
            self._complete()

    def _refresh(self) -> TimerSnapshot | None:
        try:
            snapshot = self._engine.tick(self._user_id)
        except PersistenceUnavailable as exc:
            self._report(exc)
            return None

        self._snapshot = snapshot
        if snapshot is not None:
            # a segment started elsewhere carries its own cycle position
            self._session_count = snapshot.session_count
            self.tick.emit(snapshot.remaining_seconds)
        self._set_state(state_for(snapshot))
        return snapshot

    def _complete(self) -> None:
        try:
            result = self._engine.complete(self._user_id)
        except NoActiveTimer:
            # stopped from another host between the sample and now
            logger.debug("Timer vanished before completion: user=%s", self._user_id)
            self._refresh()
            return
        except PersistenceUnavailable as exc:
            self._report(exc)
            return

        self._last_result = result
        self._upcoming_mode = result.next_mode
        self._session_count = result.session_count
        self.session_completed.emit(result)
        self._refresh()

    def _set_state(self, new_state: TimerState) -> None:
        if new_state is self._state:
            return
        self._state = new_state
        self.state_changed.emit(new_state)

    def _report(self, exc: PersistenceUnavailable) -> None:
        logger.warning("Tick skipped, timer store unavailable: %s", exc)
        self.persistence_error.emit(str(exc))
