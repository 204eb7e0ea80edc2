"""Tests for the headless (server) tick driver."""

import threading

import pytest

from pomosmart.database.db import get_session
from pomosmart.database.models import CompletedSession
from pomosmart.timer.cycle import Mode
from pomosmart.timer.engine import PomodoroEngine
from pomosmart.timer.errors import NoActiveTimer, PersistenceUnavailable
from pomosmart.timer.headless import HeadlessTickDriver


@pytest.fixture
def driver(engine):
    d = HeadlessTickDriver(engine, interval=0.01)
    yield d
    d.stop(timeout=2)


def _completed_users():
    with get_session() as db:
        return sorted(s.user_id for s in db.query(CompletedSession).all())


class TestRunOnce:

    def test_nothing_to_do(self, driver):
        assert driver.run_once() == []

    def test_completes_only_expired_timers(self, driver, engine, clock):
        engine.start("alice", Mode.WORK, 60)
        engine.start("bob", Mode.WORK, 1500)
        engine.start("carol", Mode.SHORT_BREAK, 30)
        clock.advance(60)

        results = driver.run_once()
        assert sorted(r.session.user_id for r in results) == ["alice", "carol"]
        assert engine.active_user_ids() == ["bob"]
        assert all(r.session.focus_rating is None for r in results)

    def test_paused_timer_is_not_completed(self, driver, engine, clock):
        engine.start("alice", Mode.WORK, 60)
        clock.advance(30)
        engine.pause("alice")
        clock.advance(3600)
        assert driver.run_once() == []
        assert engine.tick("alice").remaining_seconds == 30

    def test_completion_is_not_repeated(self, driver, engine, clock):
        engine.start("alice", Mode.WORK, 60)
        clock.advance(60)
        driver.run_once()
        driver.run_once()
        assert _completed_users() == ["alice"]

    def test_notifies_listeners(self, driver, engine, clock):
        events = []
        engine.add_listener(events.append)
        engine.start("alice", Mode.WORK, 60, "task:3")
        clock.advance(60)
        driver.run_once()
        assert [(e.user_id, e.mode, e.focus_target) for e in events] == [
            ("alice", Mode.WORK, "task:3"),
        ]

    def test_rejects_bad_interval(self, engine):
        with pytest.raises(ValueError):
            HeadlessTickDriver(engine, interval=0)


class TestRecovery:

    def test_recovery_runs_before_first_tick(self, clock):
        PomodoroEngine(clock=clock).start("alice", Mode.WORK, 1500)
        clock.advance(2 * 1500)

        restarted = PomodoroEngine(clock=clock)
        driver = HeadlessTickDriver(restarted)
        results = driver.recover_all()
        assert [r.session.user_id for r in results] == ["alice"]
        assert results[0].session.actual_duration_seconds == 1500
        assert driver.run_once() == []

    def test_run_once_recovers_implicitly(self, clock):
        PomodoroEngine(clock=clock).start("alice", Mode.WORK, 60)
        clock.advance(120)
        results = HeadlessTickDriver(PomodoroEngine(clock=clock)).run_once()
        assert len(results) == 1
        assert _completed_users() == ["alice"]

    def test_recovery_retried_after_store_failure(self, driver, engine, clock, monkeypatch):
        engine.start("alice", Mode.WORK, 60)
        clock.advance(60)
        real_recover = engine.recover

        def unavailable(user_id=None):
            raise PersistenceUnavailable("locked")

        monkeypatch.setattr(engine, "recover", unavailable)
        assert driver.run_once() == []
        assert engine.active_user_ids() == ["alice"]

        monkeypatch.setattr(engine, "recover", real_recover)
        assert len(driver.run_once()) == 1


class TestTolerance:

    def test_store_failure_during_tick(self, driver, engine, clock, monkeypatch):
        engine.start("alice", Mode.WORK, 60)
        driver.recover_all()
        clock.advance(60)

        def unavailable(user_id):
            raise PersistenceUnavailable("locked")

        monkeypatch.setattr(engine, "tick", unavailable)
        assert driver.run_once() == []
        assert engine.active_user_ids() == ["alice"]

    def test_store_failure_listing_users(self, driver, engine, monkeypatch):
        driver.recover_all()

        def unavailable():
            raise PersistenceUnavailable("locked")

        monkeypatch.setattr(engine, "active_user_ids", unavailable)
        assert driver.run_once() == []

    def test_timer_stopped_between_tick_and_complete(self, driver, engine, clock, monkeypatch):
        engine.start("alice", Mode.WORK, 60)
        driver.recover_all()
        clock.advance(60)

        def stopped(user_id, rating=None):
            raise NoActiveTimer(user_id=user_id)

        monkeypatch.setattr(engine, "complete", stopped)
        assert driver.run_once() == []


class TestThread:

    def test_background_loop_completes_expired_timer(self, driver, engine, clock):
        done = threading.Event()
        engine.add_listener(lambda event: done.set())
        engine.start("alice", Mode.WORK, 60)
        clock.advance(60)

        driver.start()
        assert driver.is_running
        assert done.wait(5)
        driver.stop(timeout=2)
        assert not driver.is_running
        assert _completed_users() == ["alice"]


class TestCycle:

    def test_long_break_after_fourth_headless_completion(self, driver, engine, clock):
        modes = []
        for _ in range(4):
            engine.start("bot", Mode.WORK, 60)
            clock.advance(61)
            [result] = driver.run_once()
            modes.append(result.next_mode)

        assert modes == [Mode.SHORT_BREAK] * 3 + [Mode.LONG_BREAK]
        assert engine.cycle("bot") == (Mode.LONG_BREAK, 4)

    def test_restarted_server_continues_cycle(self, clock):
        for _ in range(3):
            engine = PomodoroEngine(clock=clock)
            engine.start("bot", Mode.WORK, 60)
            clock.advance(61)
            HeadlessTickDriver(engine).run_once()

        engine = PomodoroEngine(clock=clock)
        engine.start("bot", Mode.WORK, 60)
        clock.advance(61)
        [result] = HeadlessTickDriver(engine).run_once()
        assert result.next_mode is Mode.LONG_BREAK
