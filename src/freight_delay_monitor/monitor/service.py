"""Application service used by the HTTP API and the CLI."""

from __future__ import annotations

import logging
from collections.abc import Callable

from freight_delay_monitor.errors import RunStartFailed, ValidationError
from freight_delay_monitor.monitor.feed import NotificationEvent, NotificationFeed
from freight_delay_monitor.monitor.registry import Run, RunRegistry, new_run_id
from freight_delay_monitor.workflow.runtime import ExecutionRuntime

logger = logging.getLogger(__name__)


def _parse_threshold(value: object) -> int:
    if isinstance(value, bool):
        raise ValidationError("threshold must be a positive integer")
    if isinstance(value, int):
        threshold = value
    elif isinstance(value, float) and value.is_integer():
        threshold = int(value)
    elif isinstance(value, str) and value.strip().isascii() and value.strip().isdigit():
        # isdigit() alone also accepts superscripts and other non-decimal digits.
        threshold = int(value.strip())
    else:
        raise ValidationError("threshold must be a positive integer")
    if threshold <= 0:
        raise ValidationError("threshold must be a positive integer")
    return threshold


def validate_start_request(
    origin: object, destination: object, threshold: object
) -> tuple[str, str, int]:
    """Normalise start-run input.

    Raises:
        ValidationError: a field is missing, blank or non-positive.
    """

    if not isinstance(origin, str) or not origin.strip():
        raise ValidationError("origin is required")
    if not isinstance(destination, str) or not destination.strip():
        raise ValidationError("destination is required")
    return origin.strip(), destination.strip(), _parse_threshold(threshold)


class FreightMonitorService:
    """Start monitoring runs and read runs and notifications back.

    The runtime is started before the run is recorded, so a refused start
    leaves no record behind.
    """

    def __init__(
        self,
        *,
        registry: RunRegistry,
        runtime: ExecutionRuntime,
        feed: NotificationFeed,
        id_factory: Callable[[], str] = new_run_id,
    ) -> None:
        self._registry = registry
        self._runtime = runtime
        self._feed = feed
        self._id_factory = id_factory

    def start_run(self, origin: object, destination: object, threshold: object) -> Run:
        """Validate input, start a pipeline execution and record the run.

        Raises:
            ValidationError: malformed input; nothing is started.
            RunStartFailed: the runtime refused the run; nothing is recorded.
        """

        origin_s, destination_s, threshold_i = validate_start_request(
            origin, destination, threshold
        )
        run_id = self._id_factory()
        logger.info(
            "Starting run",
            extra={"run_id": run_id, "origin": origin_s, "destination": destination_s},
        )

        try:
            self._runtime.start(run_id, origin_s, destination_s, threshold_i)
        except Exception as e:
            logger.exception("Failed to start run", extra={"run_id": run_id})
            raise RunStartFailed(f"Failed to start run {run_id}") from e

        try:
            return self._registry.create(
                run_id=run_id,
                origin=origin_s,
                destination=destination_s,
                threshold_minutes=threshold_i,
            )
        except Exception:
            # The execution keeps running but the observer will never see it.
            logger.exception(
                "Run started but could not be recorded; execution is orphaned",
                extra={"run_id": run_id},
            )
            raise

    def list_runs(self) -> list[Run]:
        return self._registry.list()

    def get_run(self, run_id: str) -> Run:
        return self._registry.get(run_id)

    def notifications(self) -> list[NotificationEvent]:
        return self._feed.list()

    def dismiss_notification(self, event_id: str) -> bool:
        return self._feed.dismiss(event_id)

    def clear_notifications(self) -> int:
        return self._feed.clear()
