"""Command line for PomoSmart: python -m pomosmart <command>.

serve                 run the headless timer loop for every user
watch --user U        follow one user's countdown with the Qt driver
start/pause/resume/stop/status --user U
rate SESSION_ID RATING
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys

from .database.db import configure_engine, init_db
from .settings import load_settings
from .timer import HeadlessTickDriver, PomodoroEngine, TimerCompleted, TimerError
from .timer.engine import format_clock


def _print_completion(event: TimerCompleted) -> None:
    print(f"[{event.user_id}] {event.mode.value} finished"
          + (f" ({event.focus_target})" if event.focus_target else ""))


def _describe(snapshot) -> str:
    if snapshot is None:
        return "idle"
    state = "paused" if snapshot.is_paused else "running"
    line = f"{snapshot.mode.value} {state} {format_clock(snapshot.remaining_seconds)} left"
    if snapshot.focus_target:
        line += f" on {snapshot.focus_target}"
    return line


# ── commands ─────────────────────────────────────────────────────────────


def cmd_serve(engine: PomodoroEngine, args, settings) -> int:
    driver = HeadlessTickDriver(engine, interval=settings.headless_interval_seconds)
    engine.add_listener(_print_completion)
    signal.signal(signal.SIGTERM, lambda *_: driver.stop())
    try:
        driver.run_forever()
    except KeyboardInterrupt:
        driver.stop()
    return 0


def cmd_watch(engine: PomodoroEngine, args, settings) -> int:
    from PyQt6.QtCore import QCoreApplication
    from .timer.driver import TimerDriver

    app = QCoreApplication(sys.argv[:1])
    driver = TimerDriver(engine, args.user, interval_ms=settings.tick_interval_ms)

    last_shown = {"value": None}

    def show(remaining: int) -> None:
        if remaining != last_shown["value"]:
            last_shown["value"] = remaining
            print(f"\r{format_clock(remaining)}", end="", flush=True)

    def completed(result) -> None:
        print(f"\n{result.session.mode.value} complete "
              f"(session {result.session.id}); next: {result.next_mode.value}")
        if result.next_timer is None:
            app.quit()

    driver.tick.connect(show)
    driver.state_changed.connect(lambda state: print(f"\n{state.value}"))
    driver.session_completed.connect(completed)
    driver.persistence_error.connect(lambda msg: print(f"\nstore unavailable: {msg}"))

    signal.signal(signal.SIGINT, lambda *_: app.quit())
    driver.activate()
    if driver.snapshot is None:
        print("No active session.")
        return 0
    return app.exec()


def cmd_start(engine: PomodoroEngine, args, settings) -> int:
    duration = args.minutes * 60 if args.minutes is not None else None
    snapshot = engine.start(
        args.user, args.mode, duration, args.target,
        session_count=args.session_count,
    )
    print(_describe(snapshot))
    return 0


def cmd_pause(engine: PomodoroEngine, args, settings) -> int:
    print(_describe(engine.pause(args.user)))
    return 0


def cmd_resume(engine: PomodoroEngine, args, settings) -> int:
    print(_describe(engine.resume(args.user)))
    return 0


def cmd_stop(engine: PomodoroEngine, args, settings) -> int:
    record = engine.stop(args.user)
    if record is None:
        print("No active session.")
    else:
        print(f"Stopped after {record.actual_duration_seconds}s (session {record.id})")
    return 0


def cmd_status(engine: PomodoroEngine, args, settings) -> int:
    print(_describe(engine.status(args.user)))
    return 0


def cmd_rate(engine: PomodoroEngine, args, settings) -> int:
    record = engine.attach_rating(args.session_id, args.rating)
    print(f"Session {record.id} rated {record.focus_rating}/5")
    return 0


COMMANDS = {
    "serve": cmd_serve,
    "watch": cmd_watch,
    "start": cmd_start,
    "pause": cmd_pause,
    "resume": cmd_resume,
    "stop": cmd_stop,
    "status": cmd_status,
    "rate": cmd_rate,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pomosmart", description=__doc__.splitlines()[0])
    parser.add_argument("--database-url", help="override the configured database")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("serve", help="run the headless timer loop")

    for name in ("watch", "pause", "resume", "stop", "status"):
        p = sub.add_parser(name)
        p.add_argument("--user", required=True)

    p = sub.add_parser("start")
    p.add_argument("--user", required=True)
    p.add_argument("--mode", default="work",
                   choices=["work", "short_break", "long_break"])
    p.add_argument("--minutes", type=int, help="defaults to the user's setting")
    p.add_argument("--target", help="task/material/topic reference")
    p.add_argument("--session-count", type=int,
                   help="defaults to the stored cycle position")

    p = sub.add_parser("rate")
    p.add_argument("session_id", type=int)
    p.add_argument("rating", type=int, choices=range(1, 6))

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.database_url:
        configure_engine(args.database_url)
    init_db()

    engine = PomodoroEngine()
    try:
        return COMMANDS[args.command](engine, args, settings)
    except TimerError as exc:
        print(exc.user_message, file=sys.stderr)
        return 1
    except ValueError as exc:
        print(exc, file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
