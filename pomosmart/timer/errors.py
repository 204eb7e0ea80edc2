"""Errors raised by the timer engine.

Every error carries a ``user_message`` that bot and UI front ends can show
as-is.
"""


class TimerError(Exception):
    user_message = "Something went wrong with the timer."

    def __init__(self, message: str | None = None, *, user_id: str | None = None) -> None:
        super().__init__(message or self.user_message)
        self.user_id = user_id


class AlreadyActive(TimerError):
    """``start`` while the user already has an active timer."""

    user_message = (
        "A session is already running. Pause or stop it before starting "
        "a new one."
    )


class NoActiveTimer(TimerError):
    user_message = "There is no active session."


class AlreadyPaused(TimerError):
    user_message = "The session is already paused."


class NotPaused(TimerError):
    user_message = "The session is not paused."


class SessionNotFound(TimerError):
    user_message = "That session could not be found."


class PersistenceUnavailable(TimerError):
    """The timer store could not be read or written."""

    user_message = "The timer store is unavailable right now. Try again shortly."
