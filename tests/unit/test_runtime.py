"""Unit tests for the in-process execution runtime."""

from __future__ import annotations

import threading

import pytest
from fakes import FixedMessages, FixedTraffic, RecordingSender

from freight_delay_monitor.errors import ResultNotReady, RunNotFound, StepExhausted, ValidationError
from freight_delay_monitor.logging import current_run_id
from freight_delay_monitor.workflow.pipeline import DelayPipeline, StepPolicy
from freight_delay_monitor.workflow.runtime import LocalRuntime, RunStatus


class BrokenTraffic:
    def lookup(self, origin: str, destination: str):  # type: ignore[no-untyped-def]
        raise ConnectionError("down")


def test_completed_run_exposes_result(
    pipeline: DelayPipeline, sender: RecordingSender
) -> None:
    runtime = LocalRuntime(pipeline)
    runtime.start("run-1", "A", "B", 10)

    assert runtime.wait("run-1", timeout=5) is RunStatus.COMPLETED
    result = runtime.result("run-1")
    assert result.delay_minutes == 22
    assert result.notification is not None
    assert len(sender.delivered) == 1


def test_failed_run_reraises_step_exhausted() -> None:
    pipeline = DelayPipeline(
        traffic=BrokenTraffic(),
        messages=FixedMessages(),
        sender=RecordingSender(),
        policy=StepPolicy(max_attempts=2, backoff_seconds=0.0),
    )
    runtime = LocalRuntime(pipeline)
    runtime.start("run-1", "A", "B", 10)

    assert runtime.wait("run-1", timeout=5) is RunStatus.FAILED
    with pytest.raises(StepExhausted):
        runtime.result("run-1")


def test_unknown_run_raises() -> None:
    runtime = LocalRuntime(
        DelayPipeline(traffic=FixedTraffic(), messages=FixedMessages(), sender=RecordingSender())
    )

    with pytest.raises(RunNotFound):
        runtime.describe("nope")


def test_run_ids_are_never_reused(pipeline: DelayPipeline) -> None:
    runtime = LocalRuntime(pipeline)
    runtime.start("run-1", "A", "B", 10)
    runtime.wait("run-1", timeout=5)

    with pytest.raises(ValidationError):
        runtime.start("run-1", "A", "B", 10)


def test_result_before_completion_is_not_ready() -> None:
    gate = threading.Event()

    class GatedTraffic(FixedTraffic):
        def lookup(self, origin: str, destination: str):  # type: ignore[no-untyped-def]
            gate.wait(5)
            return super().lookup(origin, destination)

    runtime = LocalRuntime(
        DelayPipeline(traffic=GatedTraffic(), messages=FixedMessages(), sender=RecordingSender())
    )
    runtime.start("run-1", "A", "B", 10)
    try:
        assert runtime.describe("run-1") is RunStatus.RUNNING
        with pytest.raises(ResultNotReady):
            runtime.result("run-1")
    finally:
        gate.set()
    assert runtime.wait("run-1", timeout=5) is RunStatus.COMPLETED


def test_replay_reuses_journaled_steps(
    pipeline: DelayPipeline, traffic: FixedTraffic, sender: RecordingSender
) -> None:
    runtime = LocalRuntime(pipeline)
    runtime.start("run-1", "A", "B", 10)
    runtime.wait("run-1", timeout=5)
    first = runtime.result("run-1")

    runtime.replay("run-1")

    assert runtime.wait("run-1", timeout=5) is RunStatus.COMPLETED
    assert runtime.result("run-1") == first
    assert len(traffic.calls) == 1
    assert len(sender.delivered) == 1
    assert "deliver_notification" in runtime.journaled_steps("run-1")


class RunAwareTraffic(FixedTraffic):
    """Records the run id bound on the thread that performs the lookup."""

    def __init__(self) -> None:
        super().__init__()
        self.bound_run_ids: list[str | None] = []

    def lookup(self, origin: str, destination: str):  # type: ignore[no-untyped-def]
        self.bound_run_ids.append(current_run_id())
        return super().lookup(origin, destination)


def test_adapter_calls_run_inside_run_context() -> None:
    traffic = RunAwareTraffic()
    pipeline = DelayPipeline(
        traffic=traffic,
        messages=FixedMessages(),
        sender=RecordingSender(),
        policy=StepPolicy(timeout_seconds=5, backoff_seconds=0),
    )
    runtime = LocalRuntime(pipeline)

    runtime.start("run-ctx", "A", "B", 10)

    assert runtime.wait("run-ctx", timeout=5) is RunStatus.COMPLETED
    assert traffic.bound_run_ids == ["run-ctx"]
    assert current_run_id() is None
