"""CLI entrypoint for the freight delay monitor.

Commands:
- `check`: run the delay pipeline in-process and print its result
- `watch`: start a run and reconcile it until it is terminal
- `env-check`: report which providers will use fallback data
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time

from pydantic import ValidationError as SettingsError

from freight_delay_monitor import __version__
from freight_delay_monitor.config import MonitorSettings
from freight_delay_monitor.context import AppContext, build_context
from freight_delay_monitor.errors import ValidationError
from freight_delay_monitor.logging import configure_logging
from freight_delay_monitor.monitor.registry import RunPhase
from freight_delay_monitor.monitor.service import validate_start_request

logger = logging.getLogger(__name__)


def _add_route_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--origin", required=True, help="Route origin (address or place)")
    parser.add_argument("--destination", required=True, help="Route destination")
    parser.add_argument(
        "--threshold",
        type=int,
        required=True,
        help="Delay threshold in minutes; a notification is sent above it",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="freight-monitor",
        description="Monitor a freight route for traffic delay and notify the customer",
    )
    parser.add_argument(
        "--version", action="version", version=f"freight-delay-monitor {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    check = subparsers.add_parser("check", help="Run the delay pipeline once and print the result")
    _add_route_arguments(check)

    watch = subparsers.add_parser(
        "watch",
        help="Start a monitoring run and poll it until it completes or fails",
    )
    _add_route_arguments(watch)
    watch.add_argument(
        "--timeout-seconds",
        type=float,
        default=300.0,
        help="Give up waiting after this many seconds",
    )

    subparsers.add_parser("env-check", help="Report missing provider credentials")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = MonitorSettings()
    except SettingsError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(settings.log_level)

    if args.command == "env-check":
        missing = settings.missing_credentials()
        settings.report_credentials()
        if missing:
            print("Missing: " + ", ".join(missing) + " (fallback data will be used)")
        else:
            print("All provider credentials are set")
        return 0

    try:
        origin, destination, threshold = validate_start_request(
            args.origin, args.destination, args.threshold
        )
    except ValidationError as e:
        print(str(e), file=sys.stderr)
        return 2

    ctx = build_context(settings)
    try:
        if args.command == "check":
            result = ctx.pipeline.run(origin, destination, threshold)
            print(json.dumps(result.to_json(), indent=2, ensure_ascii=False))
            return 0

        if args.command == "watch":
            return _watch(ctx, origin, destination, threshold, args.timeout_seconds)

        logger.error("Unknown command", extra={"command": args.command})
        return 2

    except Exception:
        logger.exception("Command failed")
        return 1

    finally:
        ctx.close()


def _watch(
    ctx: AppContext, origin: str, destination: str, threshold: int, timeout_seconds: float
) -> int:
    run = ctx.service.start_run(origin, destination, threshold)
    print(f"Started run {run.id}: {run.route}")

    deadline = time.monotonic() + timeout_seconds
    while not run.is_terminal:
        if time.monotonic() >= deadline:
            print(f"Timed out waiting for run {run.id}", file=sys.stderr)
            return 1
        time.sleep(ctx.observer.interval_seconds)
        ctx.observer.tick()
        run = ctx.service.get_run(run.id)

    for event in reversed(ctx.service.notifications()):
        if event.run_id == run.id:
            print(f"🔔 {event.route}: {event.message} (+{event.delay_minutes} min)")

    if run.phase is RunPhase.FAILED:
        print(f"Run {run.id} failed", file=sys.stderr)
        return 1

    print(f"Run {run.id} completed: {run.message} (delay {run.delay_minutes} min)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
