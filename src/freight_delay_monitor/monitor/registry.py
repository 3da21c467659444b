"""In-memory run registry.

The registry is the single writer of run phase and result fields. Phase
changes are monotonic: Started -> Completed or Started -> Failed, nothing
else. Writes are serialised per run id; distinct runs never block each other.
"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict

from freight_delay_monitor.errors import InvalidTransition, RunNotFound, ValidationError
from freight_delay_monitor.workflow.models import NotificationRecord, PipelineResult, route_label


class RunPhase(str, Enum):
    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_PHASES = frozenset({RunPhase.COMPLETED, RunPhase.FAILED})


class Run(BaseModel):
    """One monitoring run as seen by the client.

    Records are immutable; the registry swaps in a new copy on every transition.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    route: str
    origin: str
    destination: str
    threshold_minutes: int
    phase: RunPhase = RunPhase.STARTED
    started_at: datetime
    completed_at: datetime | None = None

    delay_minutes: int | None = None
    message: str | None = None
    notification_payload: NotificationRecord | None = None

    @property
    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES


def new_run_id() -> str:
    return f"traffic-delay-{uuid.uuid4().hex}"


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class RunRegistry:
    """Thread-safe in-memory store of :class:`Run` records.

    Records are immutable; :meth:`transition` replaces a record with an
    updated copy and is the only way a run's phase or result changes.
    """

    def __init__(self, *, clock: Callable[[], datetime] = _utc_now) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._run_locks: dict[str, threading.Lock] = {}
        self._runs: dict[str, Run] = {}
        # Most recently created first.
        self._order: list[str] = []

    def create(
        self,
        *,
        origin: str,
        destination: str,
        threshold_minutes: int,
        run_id: str | None = None,
    ) -> Run:
        run = Run(
            id=run_id or new_run_id(),
            route=route_label(origin, destination),
            origin=origin,
            destination=destination,
            threshold_minutes=threshold_minutes,
            started_at=self._clock(),
        )
        with self._lock:
            if run.id in self._runs:
                raise ValidationError(f"Run id already used: {run.id}")
            self._runs[run.id] = run
            self._run_locks[run.id] = threading.Lock()
            self._order.insert(0, run.id)
        return run

    def get(self, run_id: str) -> Run:
        with self._lock:
            run = self._runs.get(run_id)
        if run is None:
            raise RunNotFound(run_id)
        return run

    def list(self) -> list[Run]:
        with self._lock:
            return [self._runs[run_id] for run_id in self._order]

    def transition(
        self, run_id: str, phase: RunPhase, result: PipelineResult | None = None
    ) -> Run:
        """Move a Started run to a terminal phase.

        `completed_at` is stamped in the same write as the terminal phase.

        Raises:
            RunNotFound: unknown run id.
            InvalidTransition: the run is already terminal, the target phase is
                Started, or a result is supplied for a phase other than Completed.
        """

        with self._lock:
            run_lock = self._run_locks.get(run_id)
        if run_lock is None:
            raise RunNotFound(run_id)

        with run_lock:
            current = self.get(run_id)
            if current.is_terminal:
                raise InvalidTransition(
                    f"Run {run_id} is already {current.phase.value}; cannot move to {phase.value}"
                )
            if phase not in TERMINAL_PHASES:
                raise InvalidTransition(f"Run {run_id} cannot move to {phase.value}")
            if result is not None and phase is not RunPhase.COMPLETED:
                raise InvalidTransition(
                    f"Run {run_id}: result fields are only allowed on completion"
                )

            updates: dict[str, object] = {"phase": phase, "completed_at": self._clock()}
            if result is not None:
                updates.update(
                    delay_minutes=result.delay_minutes,
                    message=result.message,
                    notification_payload=result.notification,
                )
            updated = current.model_copy(update=updates)

            with self._lock:
                self._runs[run_id] = updated
            return updated
