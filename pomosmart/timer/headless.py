"""Headless tick driver for the server process.

A single background thread walks every active timer once per cadence.  As
with the Qt driver, nothing is counted locally; each pass re-reads the
store, so restarts, pauses from the UI and stops from the bot need no
coordination beyond the shared database.
"""

from __future__ import annotations

import logging
import threading

from .engine import CompletionResult, PomodoroEngine
from .errors import NoActiveTimer, PersistenceUnavailable

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 1.0


class HeadlessTickDriver:
    """Completes expired timers for all users on a fixed cadence.

    Completion runs without a rating; bot handlers attach one later through
    :meth:`PomodoroEngine.attach_rating`.  Notification goes through the
    engine's completion listeners.
    """

    def __init__(
        self,
        engine: PomodoroEngine,
        *,
        interval: float = DEFAULT_INTERVAL_SECONDS,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be greater than zero")
        self._engine = engine
        self._interval = interval
        self._recovered = False
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # ── one pass ──────────────────────────────────────────────────────

    def recover_all(self) -> list[CompletionResult]:
        """Complete every timer that expired while the server was down."""
        try:
            recovered = self._engine.recover()
        except PersistenceUnavailable as exc:
            logger.warning("Recovery postponed, timer store unavailable: %s", exc)
            return []

        self._recovered = True
        results = []
        for item in recovered:
            if item.expired:
                logger.info("Completing timer that expired during downtime: user=%s",
                            item.user_id)
                result = self._complete(item.user_id)
                if result is not None:
                    results.append(result)
        logger.info("Recovered %d active timer(s)", len(recovered))
        return results

    def run_once(self) -> list[CompletionResult]:
        """Tick every active timer once; return the completions it caused."""
        results = [] if self._recovered else self.recover_all()
        if not self._recovered:
            # no tick may run before recovery succeeded
            return results

        try:
            user_ids = self._engine.active_user_ids()
        except PersistenceUnavailable as exc:
            logger.warning("Tick skipped, timer store unavailable: %s", exc)
            return results

        for user_id in user_ids:
            try:
                snapshot = self._engine.tick(user_id)
            except PersistenceUnavailable as exc:
                logger.warning("Tick skipped for user=%s: %s", user_id, exc)
                continue
            if snapshot is None or snapshot.remaining_seconds > 0:
                continue
            result = self._complete(user_id)
            if result is not None:
                results.append(result)
        return results

    def _complete(self, user_id: str) -> CompletionResult | None:
        try:
            return self._engine.complete(user_id)
        except NoActiveTimer:
            logger.debug("Timer vanished before completion: user=%s", user_id)
        except PersistenceUnavailable as exc:
            logger.warning("Completion postponed for user=%s: %s", user_id, exc)
        return None

    # ── loop ──────────────────────────────────────────────────────────

    def run_forever(self) -> None:
        """Tick until :meth:`stop` is called (blocks the calling thread)."""
        logger.info("Headless timer loop started (every %ss)", self._interval)
        while not self._stop_event.is_set():
            self.run_once()
            self._stop_event.wait(self._interval)
        logger.info("Headless timer loop stopped")

    def start(self) -> None:
        """Run the loop on a daemon thread."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self.run_forever, name="pomosmart-ticks", daemon=True
        )
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
