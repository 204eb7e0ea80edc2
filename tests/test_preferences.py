"""Tests for per-user pomodoro cadence."""

import pytest

from pomosmart.database.db import get_session
from pomosmart.database.models import PomodoroSettings
from pomosmart.preferences import (
    DEFAULT_PREFERENCES, get_pomodoro_settings, update_pomodoro_settings,
)


class TestPreferences:

    def test_defaults_without_row(self):
        prefs = get_pomodoro_settings("alice")
        assert prefs == DEFAULT_PREFERENCES
        assert prefs.work_duration_min == 25
        assert prefs.short_break_min == 5
        assert prefs.long_break_min == 15
        assert prefs.sessions_before_long_break == 4
        assert prefs.auto_start_breaks is False

    def test_update_creates_row(self):
        update_pomodoro_settings("alice", work_duration_min=40, auto_start_breaks=True)
        with get_session() as db:
            row = db.get(PomodoroSettings, "alice")
            assert row.work_duration_min == 40
            assert row.auto_start_breaks is True
            assert row.short_break_min == 5

    def test_update_is_partial(self):
        update_pomodoro_settings("alice", long_break_min=20)
        update_pomodoro_settings("alice", short_break_min=7)
        prefs = get_pomodoro_settings("alice")
        assert (prefs.long_break_min, prefs.short_break_min) == (20, 7)

    def test_users_do_not_share_settings(self):
        update_pomodoro_settings("alice", work_duration_min=50)
        assert get_pomodoro_settings("bob").work_duration_min == 25

    def test_duration_seconds(self):
        assert DEFAULT_PREFERENCES.duration_seconds("work") == 1500
        assert DEFAULT_PREFERENCES.duration_seconds("long_break") == 900

    @pytest.mark.parametrize("value", [0, 1, -4])
    def test_long_break_spacing_must_be_at_least_two(self, value):
        with pytest.raises(ValueError):
            update_pomodoro_settings("alice", sessions_before_long_break=value)
        assert get_pomodoro_settings("alice") == DEFAULT_PREFERENCES

    def test_durations_must_be_positive(self):
        with pytest.raises(ValueError):
            update_pomodoro_settings("alice", short_break_min=0)

    def test_unknown_setting(self):
        with pytest.raises(TypeError):
            update_pomodoro_settings("alice", theme="dark")
