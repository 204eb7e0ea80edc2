"""PomoSmart — pomodoro focus-session tracker shared by the bot and the client."""

__version__ = "0.1.0"
