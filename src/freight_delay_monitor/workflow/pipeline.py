"""The delay pipeline.

fetch traffic -> compute delay -> threshold branch -> generate message ->
deliver notification -> result.

Each adapter call is a suspension point: its output is recorded in a
:class:`StepJournal` so a re-execution of the same run reuses completed steps
instead of calling the provider again. The threshold branch is never
journaled; it is re-derived from `delay` and `threshold` on every execution.
"""

from __future__ import annotations

import contextvars
import logging
import math
import threading
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, TypeVar

from freight_delay_monitor.adapters.delivery import NotificationSender
from freight_delay_monitor.adapters.messaging import MessageGenerator
from freight_delay_monitor.adapters.traffic import TrafficLookup
from freight_delay_monitor.errors import StepExhausted
from freight_delay_monitor.workflow.models import (
    NO_DELAY_MESSAGE,
    NotificationRecord,
    PipelineResult,
    TrafficSnapshot,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

STEP_FETCH_TRAFFIC = "fetch_traffic"
STEP_GENERATE_MESSAGE = "generate_message"
STEP_DELIVER_NOTIFICATION = "deliver_notification"


@dataclass(frozen=True, slots=True)
class StepPolicy:
    """Timeout and retry budget for the traffic lookup step."""

    timeout_seconds: float = 60.0
    max_attempts: int = 3
    backoff_seconds: float = 1.0

    def __post_init__(self) -> None:
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.backoff_seconds < 0:
            raise ValueError("backoff_seconds must not be negative")


class StepJournal:
    """Completed step outputs for one run, keyed by step name."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[str, Any] = {}

    def __contains__(self, step: str) -> bool:
        with self._lock:
            return step in self._entries

    def get(self, step: str) -> Any:
        with self._lock:
            return self._entries[step]

    def record(self, step: str, output: Any) -> None:
        with self._lock:
            self._entries[step] = output

    def steps(self) -> list[str]:
        with self._lock:
            return list(self._entries)


def compute_delay(snapshot: TrafficSnapshot) -> int:
    """Delay in whole minutes, never negative. Halves round up."""

    raw = max(0.0, snapshot.duration_in_traffic - snapshot.normal_duration)
    return int(math.floor(raw + 0.5))


class DelayPipeline:
    """Sequenced execution of one monitoring run.

    Adapters are constructed once at process start and injected here.
    """

    def __init__(
        self,
        *,
        traffic: TrafficLookup,
        messages: MessageGenerator,
        sender: NotificationSender,
        policy: StepPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._traffic = traffic
        self._messages = messages
        self._sender = sender
        self._policy = policy or StepPolicy()
        self._sleep = sleep

    def run(
        self,
        origin: str,
        destination: str,
        threshold_minutes: int,
        *,
        run_id: str | None = None,
        journal: StepJournal | None = None,
    ) -> PipelineResult:
        """Execute the pipeline and return its terminal result.

        Raises:
            StepExhausted: if the traffic lookup used up its retry budget.
        """

        journal = journal if journal is not None else StepJournal()
        log_extra: dict[str, object] = {
            "run_id": run_id,
            "origin": origin,
            "destination": destination,
        }

        snapshot: TrafficSnapshot = self._step(
            journal,
            STEP_FETCH_TRAFFIC,
            lambda: self._fetch_traffic(origin, destination, log_extra),
        )

        delay = compute_delay(snapshot)
        logger.info(
            "Calculated delay",
            extra={**log_extra, "delay_minutes": delay, "threshold_minutes": threshold_minutes},
        )

        if delay > threshold_minutes:
            logger.info(
                "Delay exceeds threshold, generating notification",
                extra={**log_extra, "delay_minutes": delay, "threshold_minutes": threshold_minutes},
            )
            record: NotificationRecord = self._step(
                journal,
                STEP_GENERATE_MESSAGE,
                lambda: self._messages.generate(
                    delay_minutes=delay, threshold_minutes=threshold_minutes, snapshot=snapshot
                ),
            )
            delivered: NotificationRecord = self._step(
                journal,
                STEP_DELIVER_NOTIFICATION,
                lambda: self._deliver(record, log_extra),
            )
            return PipelineResult(
                message=delivered.message,
                delay_minutes=delivered.delay_minutes,
                notification=delivered,
            )

        logger.info(
            "Delay does not exceed threshold, no notification",
            extra={**log_extra, "delay_minutes": delay, "threshold_minutes": threshold_minutes},
        )
        return PipelineResult(message=NO_DELAY_MESSAGE, delay_minutes=delay)

    def _step(self, journal: StepJournal, name: str, fn: Callable[[], T]) -> T:
        if name in journal:
            logger.debug("Reusing journaled step output", extra={"step": name})
            return journal.get(name)  # type: ignore[no-any-return]
        output = fn()
        journal.record(name, output)
        return output

    def _fetch_traffic(
        self, origin: str, destination: str, log_extra: dict[str, object]
    ) -> TrafficSnapshot:
        policy = self._policy
        last_error: BaseException | None = None
        for attempt in range(1, policy.max_attempts + 1):
            try:
                return self._call_with_timeout(self._traffic.lookup, origin, destination)
            except Exception as e:
                last_error = e
                logger.warning(
                    "Traffic lookup attempt failed",
                    extra={
                        **log_extra,
                        "attempt": attempt,
                        "max_attempts": policy.max_attempts,
                        "error": str(e) or type(e).__name__,
                    },
                )
                if attempt < policy.max_attempts and policy.backoff_seconds:
                    self._sleep(policy.backoff_seconds * 2 ** (attempt - 1))

        raise StepExhausted(STEP_FETCH_TRAFFIC, policy.max_attempts) from last_error

    def _call_with_timeout(self, fn: Callable[..., T], *args: Any) -> T:
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="pipeline-step")
        try:
            # Carry the caller's run context into the worker thread.
            future = executor.submit(contextvars.copy_context().run, fn, *args)
            try:
                return future.result(timeout=self._policy.timeout_seconds)
            except TimeoutError as e:
                future.cancel()
                raise TimeoutError(
                    f"Step exceeded {self._policy.timeout_seconds:g}s timeout"
                ) from e
        finally:
            # A timed-out call may still be running; don't block on it.
            executor.shutdown(wait=False)

    def _deliver(
        self, record: NotificationRecord, log_extra: dict[str, object]
    ) -> NotificationRecord:
        try:
            return self._sender.deliver(record)
        except Exception:
            logger.exception("Notification delivery failed", extra=log_extra)
            return record
