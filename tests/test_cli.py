"""Tests for the ``python -m pomosmart`` command line."""

from pomosmart.__main__ import main
from pomosmart.database.db import get_session
from pomosmart.database.models import ActiveTimer, CompletedSession, TimerCycle

from helpers import T0


class TestCommands:

    def test_start_status_stop(self, capsys):
        assert main(["start", "--user", "alice", "--minutes", "25",
                     "--target", "task:1"]) == 0
        assert "work running 25:00 left on task:1" in capsys.readouterr().out

        assert main(["status", "--user", "alice"]) == 0
        assert "work running" in capsys.readouterr().out

        assert main(["stop", "--user", "alice"]) == 0
        assert "Stopped after" in capsys.readouterr().out
        with get_session() as db:
            assert db.query(ActiveTimer).count() == 0
            assert db.query(CompletedSession).one().status == "interrupted"

    def test_already_running_guidance(self, capsys):
        main(["start", "--user", "alice"])
        capsys.readouterr()
        assert main(["start", "--user", "alice"]) == 1
        assert "already running" in capsys.readouterr().err

    def test_pause_without_session(self, capsys):
        assert main(["pause", "--user", "alice"]) == 1
        assert "no active session" in capsys.readouterr().err

    def test_status_idle(self, capsys):
        assert main(["status", "--user", "nobody"]) == 0
        assert capsys.readouterr().out.strip() == "idle"

    def test_rate_unknown_session(self, capsys):
        assert main(["rate", "42", "5"]) == 1
        assert "could not be found" in capsys.readouterr().err

    def test_zero_minutes_is_rejected(self, capsys):
        assert main(["start", "--user", "alice", "--minutes", "0"]) == 1
        assert "greater than zero" in capsys.readouterr().err
        with get_session() as db:
            assert db.query(ActiveTimer).count() == 0

    def test_start_continues_stored_cycle(self, capsys):
        with get_session() as db:
            db.add(TimerCycle(user_id="alice", session_count=3,
                              next_mode="short_break", updated_at=T0))
        assert main(["start", "--user", "alice", "--minutes", "1"]) == 0
        with get_session() as db:
            assert db.get(ActiveTimer, "alice").session_count == 3
