"""Notification message generation.

The live path asks an LLM for a short customer-facing message. On any
provider failure the generator picks one of a few fixed templates, so the
result always carries a non-empty message.
"""

from __future__ import annotations

import json
import logging
import random
from typing import Protocol

from freight_delay_monitor.errors import AdapterDegraded
from freight_delay_monitor.llm.provider import LLMProvider
from freight_delay_monitor.workflow.models import NotificationRecord, TrafficSnapshot

logger = logging.getLogger(__name__)

EMPTY_COMPLETION_MESSAGE = "Delay notification generated"

FALLBACK_TEMPLATES: tuple[str, ...] = (
    "🚚 Delivery Alert: Freight from {origin} to {destination} delayed by {delay} minutes "
    "due to traffic.",
    "⚠️ Traffic Update: Route {origin} → {destination} has {delay}-minute delay.",
    "📦 Delivery Delay: {delay} minutes added to {origin} → {destination} route.",
)

SYSTEM_PROMPT = (
    "You are a professional freight delivery notification system. Generate clear, concise, "
    "and informative delay notifications for customers. Use the comprehensive traffic data "
    "provided to create personalized messages that help customers understand the delay "
    "situation and its impact on their delivery."
)


class MessageGenerator(Protocol):
    """Builds the notification record. Implementations should not raise."""

    def generate(
        self, *, delay_minutes: int, threshold_minutes: int, snapshot: TrafficSnapshot
    ) -> NotificationRecord: ...


def traffic_context(
    *, delay_minutes: int, threshold_minutes: int, snapshot: TrafficSnapshot
) -> dict[str, object]:
    """Materialise the facts the model is allowed to use."""

    delay_pct = (
        round(delay_minutes / snapshot.normal_duration * 100) if snapshot.normal_duration else 0
    )
    return {
        "origin": snapshot.origin,
        "destination": snapshot.destination,
        "currentTime": snapshot.captured_at.isoformat(),
        "estimatedTime": round(snapshot.estimated_time),
        "trafficLevel": snapshot.traffic_level,
        "distance": f"{snapshot.distance_km:.1f}",
        "normalDuration": round(snapshot.normal_duration),
        "durationInTraffic": round(snapshot.duration_in_traffic),
        "delay": delay_minutes,
        "delayPercentage": delay_pct,
        "threshold": threshold_minutes,
        "thresholdExceeded": delay_minutes > threshold_minutes,
    }


def build_prompt(context: dict[str, object]) -> str:
    return (
        "Generate a professional freight delivery delay notification message using the "
        "following comprehensive traffic data:\n\n"
        "TRAFFIC DATA CONTEXT:\n'''\n"
        f"{json.dumps(context, indent=2, ensure_ascii=False)}\n'''\n\n"
        "The message should:\n"
        "- Be professional and informative for freight delivery customers\n"
        "- Include relevant details about the delay and traffic conditions\n"
        "- Be concise but helpful (maximum 200 characters)\n"
        "- Use appropriate emojis sparingly\n"
        f"- Consider the traffic level ({context['trafficLevel']}) and delay severity\n"
        f"- Note that this delay ({context['delay']} min) exceeds the acceptable standards\n"
        "- Don't mention our threshold to the final message\n\n"
        "Return only the message text, no additional formatting."
    )


class LLMMessageGenerator:
    """Message generator backed by an :class:`LLMProvider`.

    `llm=None` means no key is configured; the templates are always used.
    """

    def __init__(
        self,
        *,
        llm: LLMProvider | None,
        rng: random.Random | None = None,
        max_tokens: int = 150,
    ) -> None:
        self._llm = llm
        self._rng = rng or random.Random()
        self._max_tokens = max_tokens

    def generate(
        self, *, delay_minutes: int, threshold_minutes: int, snapshot: TrafficSnapshot
    ) -> NotificationRecord:
        logger.info(
            "Generating notification message",
            extra={
                "route": snapshot.route,
                "delay_minutes": delay_minutes,
                "threshold_minutes": threshold_minutes,
            },
        )
        try:
            message = self._ask_llm(
                delay_minutes=delay_minutes,
                threshold_minutes=threshold_minutes,
                snapshot=snapshot,
            )
        except Exception as e:
            logger.warning(
                "Message generation degraded; using fallback template",
                extra={"route": snapshot.route, "error": str(e)},
            )
            message = self.fallback_message(delay_minutes=delay_minutes, snapshot=snapshot)

        return NotificationRecord(
            message=message,
            route=snapshot.route,
            delay_minutes=delay_minutes,
            traffic_level=snapshot.traffic_level,
            distance_km=snapshot.distance_km,
            estimated_time=snapshot.estimated_time,
        )

    def fallback_message(self, *, delay_minutes: int, snapshot: TrafficSnapshot) -> str:
        template = self._rng.choice(FALLBACK_TEMPLATES)
        return template.format(
            origin=snapshot.origin, destination=snapshot.destination, delay=delay_minutes
        )

    def _ask_llm(
        self, *, delay_minutes: int, threshold_minutes: int, snapshot: TrafficSnapshot
    ) -> str:
        if self._llm is None:
            raise AdapterDegraded("OPENAI_API_KEY is not set")

        context = traffic_context(
            delay_minutes=delay_minutes, threshold_minutes=threshold_minutes, snapshot=snapshot
        )
        content = self._llm.chat(
            [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(context)},
            ],
            max_tokens=self._max_tokens,
        )
        return content.strip() or EMPTY_COMPLETION_MESSAGE
