"""Status reconciliation loop.

Every tick pulls the runtime status of each Started run, applies terminal
outcomes to the registry and raises a notification event the first time a run
completes with a real delay message. Order within a run: registry update,
then dedup check, then emission. Ticks never overlap, so the dedup
check-then-emit sequence has a single writer. A run whose reconciliation
raises is logged and counted in `errors`; the remaining runs are still
reconciled in the same tick.

Dedup markers live for the lifetime of the observer; they are not persisted.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field

from freight_delay_monitor.logging import run_context
from freight_delay_monitor.monitor.feed import NotificationEvent, NotificationFeed
from freight_delay_monitor.monitor.registry import Run, RunPhase, RunRegistry
from freight_delay_monitor.workflow.models import NO_DELAY_MESSAGE, PipelineResult
from freight_delay_monitor.workflow.runtime import ExecutionRuntime, RunStatus

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TickSummary:
    ran: bool = True
    checked: int = 0
    completed: int = 0
    failed: int = 0
    errors: int = 0
    notified: list[str] = field(default_factory=list)

    def to_json(self) -> dict[str, object]:
        return {
            "ran": self.ran,
            "checked": self.checked,
            "completed": self.completed,
            "failed": self.failed,
            "errors": self.errors,
            "notified": list(self.notified),
        }


def qualifies_for_notification(run: Run) -> bool:
    """A completed run with a real delay message and a positive delay."""

    if run.phase is not RunPhase.COMPLETED:
        return False
    message = (run.message or "").strip()
    if not message or message == NO_DELAY_MESSAGE:
        return False
    return (run.delay_minutes or 0) > 0


class StatusObserver:
    """Poll the runtime for Started runs and mirror outcomes into the registry.

    Call :meth:`tick` directly, or :meth:`start` a background thread that
    ticks every `interval_seconds`.
    """

    def __init__(
        self,
        *,
        registry: RunRegistry,
        runtime: ExecutionRuntime,
        feed: NotificationFeed,
        interval_seconds: float = 3.0,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")

        self._registry = registry
        self._runtime = runtime
        self._feed = feed
        self._interval = interval_seconds

        self._tick_lock = threading.Lock()
        self._notified: set[str] = set()

        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def has_notified(self, run_id: str) -> bool:
        return run_id in self._notified

    def tick(self) -> TickSummary:
        """Reconcile every Started run once.

        If another tick is still in flight, this one is skipped (`ran=False`).
        """

        if not self._tick_lock.acquire(blocking=False):
            logger.debug("Reconciliation tick already in flight; skipping")
            return TickSummary(ran=False)
        try:
            summary = TickSummary()
            for run in self._registry.list():
                if run.phase is not RunPhase.STARTED:
                    continue
                summary.checked += 1
                with run_context(run.id):
                    try:
                        self._reconcile(run, summary)
                    except Exception:
                        summary.errors += 1
                        logger.exception("Failed to reconcile run", extra={"run_id": run.id})
            return summary
        finally:
            self._tick_lock.release()

    def _reconcile(self, run: Run, summary: TickSummary) -> None:
        try:
            status = self._runtime.describe(run.id)
        except Exception:
            logger.exception("Failed to get status for run", extra={"run_id": run.id})
            return

        if status is RunStatus.RUNNING:
            logger.debug("Run is still running", extra={"run_id": run.id})
            return

        if status is RunStatus.FAILED:
            self._registry.transition(run.id, RunPhase.FAILED)
            summary.failed += 1
            logger.info("Run failed", extra={"run_id": run.id})
            return

        result: PipelineResult | None
        try:
            result = self._runtime.result(run.id)
        except Exception:
            logger.exception("No result data available for run", extra={"run_id": run.id})
            result = None

        updated = self._registry.transition(run.id, RunPhase.COMPLETED, result)
        summary.completed += 1
        logger.info(
            "Run completed",
            extra={"run_id": run.id, "delay_minutes": updated.delay_minutes},
        )

        event = self._notify_once(updated)
        if event is not None:
            summary.notified.append(event.id)

    def _notify_once(self, run: Run) -> NotificationEvent | None:
        if not qualifies_for_notification(run) or run.id in self._notified:
            return None

        self._notified.add(run.id)
        assert run.message is not None and run.delay_minutes is not None
        assert run.completed_at is not None
        event = self._feed.publish(
            run_id=run.id,
            message=run.message,
            route=run.route,
            delay_minutes=run.delay_minutes,
            timestamp=run.completed_at,
        )
        logger.info(
            "Notification raised",
            extra={"run_id": run.id, "event_id": event.id, "route": run.route},
        )
        return event

    def start(self) -> None:
        """Run ticks on a background thread every `interval_seconds`."""

        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._loop, name="status-observer", daemon=True
        )
        self._thread.start()
        logger.info("Status observer started", extra={"interval_seconds": self._interval})

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        thread, self._thread = self._thread, None
        if thread is not None:
            thread.join(timeout)
            logger.info("Status observer stopped")

    def _loop(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self.tick()
            except Exception:
                logger.exception("Reconciliation tick failed")
