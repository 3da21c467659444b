"""Unit tests for the delay pipeline."""

from __future__ import annotations

import threading

import pytest
from fakes import (
    ExplodingSender,
    FixedMessages,
    FixedTraffic,
    RecordingSender,
    make_snapshot,
)

from freight_delay_monitor.errors import StepExhausted
from freight_delay_monitor.workflow.models import NO_DELAY_MESSAGE, TrafficSnapshot
from freight_delay_monitor.workflow.pipeline import (
    STEP_DELIVER_NOTIFICATION,
    STEP_FETCH_TRAFFIC,
    STEP_GENERATE_MESSAGE,
    DelayPipeline,
    StepJournal,
    StepPolicy,
    compute_delay,
)


class FlakyTraffic:
    """Raises for the first `failures` calls, then succeeds."""

    def __init__(self, failures: int) -> None:
        self.failures = failures
        self.calls = 0

    def lookup(self, origin: str, destination: str) -> TrafficSnapshot:
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionError("provider unavailable")
        return make_snapshot(origin=origin, destination=destination)


class HangingTraffic:
    def __init__(self) -> None:
        self.release = threading.Event()

    def lookup(self, origin: str, destination: str) -> TrafficSnapshot:
        self.release.wait(5)
        return make_snapshot()


def _pipeline(traffic: object, *, sender: object | None = None, **policy: float) -> DelayPipeline:
    return DelayPipeline(
        traffic=traffic,  # type: ignore[arg-type]
        messages=FixedMessages(),
        sender=sender or RecordingSender(),  # type: ignore[arg-type]
        policy=StepPolicy(**{"backoff_seconds": 0.0, **policy}),  # type: ignore[arg-type]
    )


@pytest.mark.parametrize(
    ("normal", "in_traffic", "expected"),
    [
        (30, 52, 22),
        (30, 33, 3),
        (30, 25, 0),
        (30, 30.4, 0),
        (30, 30.5, 1),
        (30, 32.5, 3),
    ],
)
def test_compute_delay_is_rounded_and_never_negative(
    normal: float, in_traffic: float, expected: int
) -> None:
    assert compute_delay(make_snapshot(normal=normal, in_traffic=in_traffic)) == expected


def test_delay_above_threshold_generates_and_delivers(
    pipeline: DelayPipeline,
    traffic: FixedTraffic,
    messages: FixedMessages,
    sender: RecordingSender,
) -> None:
    result = pipeline.run("A", "B", 10)

    assert result.delay_minutes == 22
    assert result.message == "Heavy delay on Route X"
    assert result.notification is not None
    assert result.notification.route == "A → B"
    assert traffic.calls == [("A", "B")]
    assert messages.calls == [{"delay_minutes": 22, "threshold_minutes": 10}]
    assert sender.delivered == [result.notification]


def test_delay_within_threshold_returns_sentinel(
    pipeline: DelayPipeline,
    traffic: FixedTraffic,
    messages: FixedMessages,
    sender: RecordingSender,
) -> None:
    traffic.in_traffic = 33

    result = pipeline.run("A", "B", 10)

    assert result.message == NO_DELAY_MESSAGE
    assert result.delay_minutes == 3
    assert result.notification is None
    assert messages.calls == []
    assert sender.delivered == []


@pytest.mark.parametrize(("delay", "threshold"), [(10, 10), (11, 10), (0, 1), (1, 0), (9, 10)])
def test_notification_produced_iff_delay_exceeds_threshold(delay: int, threshold: int) -> None:
    sender = RecordingSender()
    pipeline = _pipeline(FixedTraffic(normal=30, in_traffic=30 + delay), sender=sender)

    result = pipeline.run("A", "B", threshold)

    produced = result.notification is not None
    assert produced is (delay > threshold)
    assert len(sender.delivered) == (1 if delay > threshold else 0)
    assert result.delay_minutes == delay


def test_delivery_exception_does_not_change_result() -> None:
    sender = ExplodingSender()
    pipeline = _pipeline(FixedTraffic(), sender=sender)

    result = pipeline.run("A", "B", 10)

    assert sender.calls == 1
    assert result.delay_minutes == 22
    assert result.message == "Heavy delay on Route X"
    assert result.notification is not None


def test_traffic_lookup_is_retried_until_success() -> None:
    traffic = FlakyTraffic(failures=2)
    pipeline = _pipeline(traffic, max_attempts=3)

    result = pipeline.run("A", "B", 10)

    assert traffic.calls == 3
    assert result.delay_minutes == 22


def test_traffic_lookup_exhaustion_raises_step_exhausted() -> None:
    traffic = FlakyTraffic(failures=5)
    pipeline = _pipeline(traffic, max_attempts=2)

    with pytest.raises(StepExhausted) as exc_info:
        pipeline.run("A", "B", 10)

    assert traffic.calls == 2
    assert exc_info.value.step == STEP_FETCH_TRAFFIC
    assert isinstance(exc_info.value.__cause__, ConnectionError)


def test_traffic_lookup_timeout_counts_as_failed_attempt() -> None:
    traffic = HangingTraffic()
    pipeline = _pipeline(traffic, timeout_seconds=0.05, max_attempts=1)

    try:
        with pytest.raises(StepExhausted) as exc_info:
            pipeline.run("A", "B", 10)
    finally:
        traffic.release.set()

    assert isinstance(exc_info.value.__cause__, TimeoutError)


def test_retry_backoff_doubles() -> None:
    sleeps: list[float] = []
    pipeline = DelayPipeline(
        traffic=FlakyTraffic(failures=2),
        messages=FixedMessages(),
        sender=RecordingSender(),
        policy=StepPolicy(max_attempts=3, backoff_seconds=0.5),
        sleep=sleeps.append,
    )

    pipeline.run("A", "B", 10)

    assert sleeps == [0.5, 1.0]


def test_replay_with_journal_reuses_completed_steps(
    pipeline: DelayPipeline,
    traffic: FixedTraffic,
    messages: FixedMessages,
    sender: RecordingSender,
) -> None:
    journal = StepJournal()
    first = pipeline.run("A", "B", 10, journal=journal)

    assert journal.steps() == [STEP_FETCH_TRAFFIC, STEP_GENERATE_MESSAGE, STEP_DELIVER_NOTIFICATION]

    second = pipeline.run("A", "B", 10, journal=journal)

    assert second == first
    assert len(traffic.calls) == 1
    assert len(messages.calls) == 1
    assert len(sender.delivered) == 1


def test_replay_rederives_threshold_branch(
    pipeline: DelayPipeline, messages: FixedMessages
) -> None:
    journal = StepJournal()
    journal.record(STEP_FETCH_TRAFFIC, make_snapshot(normal=30, in_traffic=33))

    result = pipeline.run("A", "B", 10, journal=journal)

    assert result.message == NO_DELAY_MESSAGE
    assert result.delay_minutes == 3
    assert messages.calls == []


def test_replay_after_crash_before_delivery_record_resends(
    pipeline: DelayPipeline, sender: RecordingSender
) -> None:
    journal = StepJournal()
    pipeline.run("A", "B", 10, journal=journal)
    # Simulate a crash between sending and recording the delivery step.
    replay_journal = StepJournal()
    replay_journal.record(STEP_FETCH_TRAFFIC, journal.get(STEP_FETCH_TRAFFIC))
    replay_journal.record(STEP_GENERATE_MESSAGE, journal.get(STEP_GENERATE_MESSAGE))

    pipeline.run("A", "B", 10, journal=replay_journal)

    assert len(sender.delivered) == 2


def test_step_policy_validation() -> None:
    with pytest.raises(ValueError):
        StepPolicy(timeout_seconds=0)
    with pytest.raises(ValueError):
        StepPolicy(max_attempts=0)
