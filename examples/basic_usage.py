#!/usr/bin/env python3
"""Programmatic monitoring example.

This demonstrates using the monitor components directly:

* load settings from `.env`
* start a run for one route
* reconcile until the run is terminal and print any notification

Without provider keys the traffic, message and email adapters fall back to
synthetic data, so this runs offline.
"""

from __future__ import annotations

import argparse
import time
from typing import Sequence

from freight_delay_monitor.config import MonitorSettings
from freight_delay_monitor.context import build_context
from freight_delay_monitor.logging import configure_logging


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Monitor one route (programmatic example).")
    parser.add_argument("--origin", required=True, help="Route origin")
    parser.add_argument("--destination", required=True, help="Route destination")
    parser.add_argument("--threshold", type=int, default=10, help="Delay threshold (minutes)")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = MonitorSettings()
    configure_logging(settings.log_level)

    ctx = build_context(settings)
    try:
        run = ctx.service.start_run(args.origin, args.destination, args.threshold)
        print(f"Started {run.id} for {run.route}")

        while not run.is_terminal:
            time.sleep(ctx.observer.interval_seconds)
            ctx.observer.tick()
            run = ctx.service.get_run(run.id)

        print(f"Run {run.id} {run.phase.value}: {run.message} (delay {run.delay_minutes} min)")
        for event in ctx.service.notifications():
            print(f"Notification: {event.message}")
    finally:
        ctx.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
