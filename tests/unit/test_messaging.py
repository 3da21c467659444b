"""Unit tests for notification message generation."""

from __future__ import annotations

import random

from freight_delay_monitor.adapters.messaging import (
    EMPTY_COMPLETION_MESSAGE,
    FALLBACK_TEMPLATES,
    LLMMessageGenerator,
    traffic_context,
)
from freight_delay_monitor.errors import AdapterDegraded

from fakes import StubLLM, make_snapshot


def test_llm_message_is_used_and_record_carries_context() -> None:
    llm = StubLLM(reply="  🚚 Your freight from A to B is running 22 min late.  ")
    generator = LLMMessageGenerator(llm=llm, rng=random.Random(0))
    snapshot = make_snapshot(normal=30, in_traffic=52)

    record = generator.generate(delay_minutes=22, threshold_minutes=10, snapshot=snapshot)

    assert record.message == "🚚 Your freight from A to B is running 22 min late."
    assert record.route == "A → B"
    assert record.delay_minutes == 22
    assert record.traffic_level == "high"
    assert record.distance_km == 25
    assert record.estimated_time == 52

    system, user = llm.calls[0]
    assert system["role"] == "system"
    assert user["role"] == "user"
    assert "maximum 200 characters" in user["content"]
    assert '"delay": 22' in user["content"]


def test_empty_completion_gets_placeholder() -> None:
    generator = LLMMessageGenerator(llm=StubLLM(reply="   "))

    record = generator.generate(delay_minutes=20, threshold_minutes=10, snapshot=make_snapshot())

    assert record.message == EMPTY_COMPLETION_MESSAGE


def test_provider_error_falls_back_to_template() -> None:
    generator = LLMMessageGenerator(
        llm=StubLLM(error=AdapterDegraded("rate limited")), rng=random.Random(5)
    )

    record = generator.generate(
        delay_minutes=18, threshold_minutes=10, snapshot=make_snapshot(origin="X", destination="Y")
    )

    expected = {t.format(origin="X", destination="Y", delay=18) for t in FALLBACK_TEMPLATES}
    assert record.message in expected
    assert record.delay_minutes == 18


def test_no_provider_always_uses_templates() -> None:
    generator = LLMMessageGenerator(llm=None, rng=random.Random(9))

    messages = {
        generator.generate(
            delay_minutes=12, threshold_minutes=5, snapshot=make_snapshot()
        ).message
        for _ in range(30)
    }

    assert messages
    assert all("12" in m and "A" in m and "B" in m for m in messages)


def test_traffic_context_fields() -> None:
    snapshot = make_snapshot(normal=40, in_traffic=60)

    context = traffic_context(delay_minutes=20, threshold_minutes=10, snapshot=snapshot)

    assert context["delayPercentage"] == 50
    assert context["thresholdExceeded"] is True
    assert context["distance"] == "25.0"
    assert context["normalDuration"] == 40
    assert context["durationInTraffic"] == 60
