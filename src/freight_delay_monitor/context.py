"""Process-wide wiring.

Adapters, pipeline, runtime and stores are constructed once at process start
and passed by reference. Tests substitute deterministic adapters through the
keyword overrides of :func:`build_context`.
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from freight_delay_monitor.adapters.delivery import (
    EmailDelivery,
    NotificationSender,
    SendGridMailer,
)
from freight_delay_monitor.adapters.messaging import LLMMessageGenerator, MessageGenerator
from freight_delay_monitor.adapters.traffic import (
    DistanceMatrixClient,
    GoogleMapsTrafficLookup,
    TrafficLookup,
)
from freight_delay_monitor.config import MonitorSettings
from freight_delay_monitor.llm.openai_provider import OpenAIProvider
from freight_delay_monitor.monitor.feed import NotificationFeed
from freight_delay_monitor.monitor.observer import StatusObserver
from freight_delay_monitor.monitor.registry import RunRegistry
from freight_delay_monitor.monitor.service import FreightMonitorService
from freight_delay_monitor.workflow.pipeline import DelayPipeline, StepPolicy
from freight_delay_monitor.workflow.runtime import LocalRuntime

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    settings: MonitorSettings
    pipeline: DelayPipeline
    runtime: LocalRuntime
    registry: RunRegistry
    feed: NotificationFeed
    observer: StatusObserver
    service: FreightMonitorService
    closers: list[Callable[[], None]] = field(default_factory=list)

    def close(self) -> None:
        self.observer.stop()
        for close in self.closers:
            close()


def build_context(
    settings: MonitorSettings,
    *,
    rng: random.Random | None = None,
    traffic: TrafficLookup | None = None,
    messages: MessageGenerator | None = None,
    sender: NotificationSender | None = None,
    sleep: Callable[[float], None] | None = None,
) -> AppContext:
    rng = rng or random.Random()
    closers: list[Callable[[], None]] = []

    if traffic is None:
        maps_client = None
        if settings.google_maps_api_key.strip():
            maps_client = DistanceMatrixClient(
                api_key=settings.google_maps_api_key,
                base_url=settings.google_maps_base_url,
            )
            closers.append(maps_client.close)
        traffic = GoogleMapsTrafficLookup(client=maps_client, rng=rng)

    if messages is None:
        llm = None
        if settings.openai_api_key.strip():
            llm = OpenAIProvider(
                api_key=settings.openai_api_key,
                model=settings.openai_model,
                temperature=settings.openai_temperature,
            )
        messages = LLMMessageGenerator(llm=llm, rng=rng)

    if sender is None:
        mailer = None
        if settings.sendgrid_api_key.strip():
            mailer = SendGridMailer(
                api_key=settings.sendgrid_api_key,
                from_email=settings.from_email,
                base_url=settings.sendgrid_base_url,
            )
            closers.append(mailer.close)
        sender = EmailDelivery(mailer=mailer, recipient=settings.notification_email)

    policy = StepPolicy(
        timeout_seconds=settings.step_timeout_seconds,
        max_attempts=settings.step_max_attempts,
        backoff_seconds=settings.step_retry_backoff_seconds,
    )
    pipeline = DelayPipeline(
        traffic=traffic,
        messages=messages,
        sender=sender,
        policy=policy,
        sleep=sleep or time.sleep,
    )
    runtime = LocalRuntime(pipeline)
    registry = RunRegistry()
    feed = NotificationFeed()
    observer = StatusObserver(
        registry=registry,
        runtime=runtime,
        feed=feed,
        interval_seconds=settings.observer_interval_seconds,
    )
    service = FreightMonitorService(registry=registry, runtime=runtime, feed=feed)

    logger.debug("Application context built")
    return AppContext(
        settings=settings,
        pipeline=pipeline,
        runtime=runtime,
        registry=registry,
        feed=feed,
        observer=observer,
        service=service,
        closers=closers,
    )
