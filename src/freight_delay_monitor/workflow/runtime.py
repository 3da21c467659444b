"""Execution runtime boundary.

The monitor only depends on :class:`ExecutionRuntime`: start a run, query its
externally observable status, fetch its terminal result. A durable runtime
(persisted state, crash recovery) can be plugged in behind the same protocol.

:class:`LocalRuntime` is the in-process implementation: one daemon thread per
run, with a step journal per run so a replay reuses completed steps.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from freight_delay_monitor.errors import ResultNotReady, RunNotFound, ValidationError
from freight_delay_monitor.logging import run_context
from freight_delay_monitor.workflow.models import PipelineResult
from freight_delay_monitor.workflow.pipeline import DelayPipeline, StepJournal

logger = logging.getLogger(__name__)


class RunStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ExecutionRuntime(Protocol):
    def start(self, run_id: str, origin: str, destination: str, threshold_minutes: int) -> None: ...

    def describe(self, run_id: str) -> RunStatus: ...

    def result(self, run_id: str) -> PipelineResult: ...


@dataclass
class _Execution:
    run_id: str
    origin: str
    destination: str
    threshold_minutes: int
    journal: StepJournal = field(default_factory=StepJournal)
    status: RunStatus = RunStatus.RUNNING
    result: PipelineResult | None = None
    error: BaseException | None = None
    done: threading.Event = field(default_factory=threading.Event)


class LocalRuntime:
    """Run pipelines on background threads inside this process."""

    def __init__(self, pipeline: DelayPipeline) -> None:
        self._pipeline = pipeline
        self._lock = threading.Lock()
        self._executions: dict[str, _Execution] = {}

    def start(self, run_id: str, origin: str, destination: str, threshold_minutes: int) -> None:
        execution = _Execution(
            run_id=run_id,
            origin=origin,
            destination=destination,
            threshold_minutes=threshold_minutes,
        )
        with self._lock:
            if run_id in self._executions:
                raise ValidationError(f"Run id already used: {run_id}")
            self._executions[run_id] = execution
        self._spawn(execution)

    def replay(self, run_id: str) -> None:
        """Re-execute a finished run, reusing its journaled step outputs."""

        with self._lock:
            execution = self._get_unlocked(run_id)
            if not execution.done.is_set():
                raise ResultNotReady(f"Run {run_id} is still running")
            execution.status = RunStatus.RUNNING
            execution.result = None
            execution.error = None
            execution.done.clear()
        self._spawn(execution)

    def describe(self, run_id: str) -> RunStatus:
        with self._lock:
            return self._get_unlocked(run_id).status

    def result(self, run_id: str) -> PipelineResult:
        """Return the terminal result.

        Raises:
            RunNotFound: unknown run id.
            ResultNotReady: the run is still executing.
            Exception: the error that failed the run.
        """

        with self._lock:
            execution = self._get_unlocked(run_id)
            status, result, error = execution.status, execution.result, execution.error
        if status is RunStatus.RUNNING:
            raise ResultNotReady(f"Run {run_id} is still running")
        if status is RunStatus.FAILED:
            assert error is not None
            raise error
        assert result is not None
        return result

    def wait(self, run_id: str, timeout: float | None = None) -> RunStatus:
        """Block until the run is terminal (or the timeout elapses)."""

        with self._lock:
            execution = self._get_unlocked(run_id)
        execution.done.wait(timeout)
        return self.describe(run_id)

    def journaled_steps(self, run_id: str) -> list[str]:
        with self._lock:
            execution = self._get_unlocked(run_id)
        return execution.journal.steps()

    def _get_unlocked(self, run_id: str) -> _Execution:
        execution = self._executions.get(run_id)
        if execution is None:
            raise RunNotFound(run_id)
        return execution

    def _spawn(self, execution: _Execution) -> None:
        thread = threading.Thread(
            target=self._execute,
            name=f"delay-pipeline-{execution.run_id}",
            daemon=True,
            args=(execution,),
        )
        thread.start()

    def _execute(self, execution: _Execution) -> None:
        with run_context(execution.run_id):
            self._run_pipeline(execution)

    def _run_pipeline(self, execution: _Execution) -> None:
        try:
            result = self._pipeline.run(
                execution.origin,
                execution.destination,
                execution.threshold_minutes,
                run_id=execution.run_id,
                journal=execution.journal,
            )
        except Exception as e:
            logger.exception("Delay pipeline failed", extra={"run_id": execution.run_id})
            with self._lock:
                execution.status = RunStatus.FAILED
                execution.error = e
        else:
            logger.info(
                "Delay pipeline completed",
                extra={
                    "run_id": execution.run_id,
                    "delay_minutes": result.delay_minutes,
                    "notified": result.notification is not None,
                },
            )
            with self._lock:
                execution.status = RunStatus.COMPLETED
                execution.result = result
        finally:
            execution.done.set()
