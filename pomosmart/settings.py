"""Application settings with JSON persistence.

Settings are stored at:
    ~/.pomosmart/settings.json

(``POMOSMART_HOME`` overrides the directory.)

Usage::

    settings = load_settings()
    settings.headless_interval_seconds = 2.0
    save_settings(settings)

Per-user timer cadence (durations, long-break spacing, auto-start) is not
kept here; see :mod:`pomosmart.preferences`.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, asdict, fields
from pathlib import Path

logger = logging.getLogger(__name__)


def app_home() -> Path:
    override = os.environ.get("POMOSMART_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".pomosmart"


def settings_path() -> Path:
    return app_home() / "settings.json"


def ensure_home() -> Path:
    home = app_home()
    home.mkdir(parents=True, exist_ok=True)
    return home


def _default_database_url() -> str:
    return f"sqlite:///{app_home() / 'pomosmart.db'}"


@dataclass
class Settings:
    """Process-level preferences shared by both hosts."""

    # ── storage ───────────────────────────────────────────────────────
    database_url: str = ""                 # empty → sqlite file in app_home()

    # ── drivers ───────────────────────────────────────────────────────
    tick_interval_ms: int = 250            # interactive Qt cadence
    headless_interval_seconds: float = 1.0

    # ── logging ───────────────────────────────────────────────────────
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if not self.database_url:
            self.database_url = _default_database_url()


def load_settings() -> Settings:
    """Load settings from disk, falling back to defaults."""
    path = settings_path()
    if not path.exists():
        return Settings()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable settings file %s: %s", path, exc)
        return Settings()
    # Only use keys that exist in the dataclass
    valid_keys = {f.name for f in fields(Settings)}
    filtered = {k: v for k, v in data.items() if k in valid_keys}
    return Settings(**filtered)


def save_settings(settings: Settings) -> None:
    """Write settings to disk as JSON."""
    ensure_home()
    settings_path().write_text(
        json.dumps(asdict(settings), indent=2) + "\n",
        encoding="utf-8",
    )
