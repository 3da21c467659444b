"""Test configuration and fixtures."""

from __future__ import annotations

import random
from collections.abc import Iterator

import pytest
from fakes import FixedMessages, FixedTraffic, RecordingSender

from freight_delay_monitor.config import MonitorSettings
from freight_delay_monitor.context import AppContext, build_context
from freight_delay_monitor.workflow.pipeline import DelayPipeline, StepPolicy

_ENV_VARS = (
    "OPENAI_API_KEY",
    "GOOGLE_MAPS_API_KEY",
    "SENDGRID_API_KEY",
    "NOTIFICATION_EMAIL",
    "FROM_EMAIL",
    "LOG_LEVEL",
    "FREIGHT_OBSERVER_ENABLED",
    "FREIGHT_OBSERVER_INTERVAL_SECONDS",
    "FREIGHT_STEP_TIMEOUT_SECONDS",
    "FREIGHT_STEP_MAX_ATTEMPTS",
    "FREIGHT_STEP_RETRY_BACKOFF_SECONDS",
)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Remove monitor environment variables so defaults apply."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def settings(clean_env: pytest.MonkeyPatch) -> MonitorSettings:
    clean_env.setenv("FREIGHT_OBSERVER_ENABLED", "false")
    clean_env.setenv("FREIGHT_OBSERVER_INTERVAL_SECONDS", "0.01")
    clean_env.setenv("FREIGHT_STEP_RETRY_BACKOFF_SECONDS", "0")
    clean_env.setenv("FREIGHT_STEP_TIMEOUT_SECONDS", "5")
    return MonitorSettings(_env_file=None)


@pytest.fixture
def traffic() -> FixedTraffic:
    return FixedTraffic()


@pytest.fixture
def messages() -> FixedMessages:
    return FixedMessages()


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def pipeline(
    traffic: FixedTraffic, messages: FixedMessages, sender: RecordingSender
) -> DelayPipeline:
    return DelayPipeline(
        traffic=traffic,
        messages=messages,
        sender=sender,
        policy=StepPolicy(timeout_seconds=5.0, max_attempts=3, backoff_seconds=0.0),
    )


@pytest.fixture
def context(
    settings: MonitorSettings,
    traffic: FixedTraffic,
    messages: FixedMessages,
    sender: RecordingSender,
) -> Iterator[AppContext]:
    ctx = build_context(
        settings,
        rng=random.Random(7),
        traffic=traffic,
        messages=messages,
        sender=sender,
    )
    yield ctx
    ctx.close()
