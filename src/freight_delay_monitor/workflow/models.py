"""Value types flowing through the delay pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict

TrafficLevel = Literal["low", "medium", "high"]

NO_DELAY_MESSAGE = "No significant delay detected"


def traffic_level_for_delay(delay_minutes: float) -> TrafficLevel:
    if delay_minutes < 5:
        return "low"
    if delay_minutes < 15:
        return "medium"
    return "high"


def route_label(origin: str, destination: str) -> str:
    return f"{origin} → {destination}"


@dataclass(frozen=True, slots=True)
class TrafficSnapshot:
    """Point-in-time traffic measurement for a route.

    Durations are minutes, distance is kilometres.
    """

    origin: str
    destination: str
    captured_at: datetime
    normal_duration: float
    duration_in_traffic: float
    traffic_level: TrafficLevel
    distance_km: float

    @property
    def estimated_time(self) -> float:
        return self.duration_in_traffic

    @property
    def route(self) -> str:
        return route_label(self.origin, self.destination)


class NotificationRecord(BaseModel):
    """The deliverable artifact produced when delay exceeds the threshold."""

    model_config = ConfigDict(frozen=True)

    message: str
    route: str
    delay_minutes: int
    traffic_level: TrafficLevel
    distance_km: float
    estimated_time: float


@dataclass(frozen=True, slots=True)
class PipelineResult:
    """Terminal result of one pipeline execution.

    `notification` is set only when the threshold branch produced one.
    """

    message: str
    delay_minutes: int
    notification: NotificationRecord | None = None

    def to_json(self) -> dict[str, object]:
        out: dict[str, object] = {"message": self.message, "delay_minutes": self.delay_minutes}
        if self.notification is not None:
            out["notification"] = self.notification.model_dump(mode="json")
        return out
