"""Lookup provider adapters.

Each adapter wraps one independently failing provider and owns its fallback,
so the pipeline degrades instead of aborting:

- traffic lookup (Google Maps Distance Matrix, synthetic snapshot fallback)
- message generation (OpenAI chat, templated fallback)
- notification delivery (SendGrid, failure logged and swallowed)
"""

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
    synthetic_snapshot,
)

__all__ = [
    "DistanceMatrixClient",
    "EmailDelivery",
    "GoogleMapsTrafficLookup",
    "LLMMessageGenerator",
    "MessageGenerator",
    "NotificationSender",
    "SendGridMailer",
    "TrafficLookup",
    "synthetic_snapshot",
]
