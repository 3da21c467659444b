"""Traffic-condition lookup.

The live path queries the Google Maps Distance Matrix API. When the key is
missing or the provider errors, a synthetic snapshot is produced from a
seedable random source so the pipeline stays operable without a live
provider.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, Protocol

import requests

from freight_delay_monitor.errors import AdapterDegraded
from freight_delay_monitor.workflow.models import (
    TrafficLevel,
    TrafficSnapshot,
    traffic_level_for_delay,
)

logger = logging.getLogger(__name__)

SYNTHETIC_BASELINE_MINUTES = 30.0
SYNTHETIC_DISTANCE_KM = 25.0
SYNTHETIC_MULTIPLIERS: dict[TrafficLevel, float] = {
    "low": 1.0,
    "medium": 1.5,
    "high": 2.5,
}


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class TrafficLookup(Protocol):
    """Returns a snapshot for a route. Implementations should not raise."""

    def lookup(self, origin: str, destination: str) -> TrafficSnapshot: ...


def draw_traffic_level(rng: random.Random) -> TrafficLevel:
    if rng.random() > 0.7:
        return "high"
    if rng.random() > 0.4:
        return "medium"
    return "low"


def synthetic_snapshot(
    origin: str,
    destination: str,
    *,
    rng: random.Random,
    now: datetime | None = None,
) -> TrafficSnapshot:
    level = draw_traffic_level(rng)
    in_traffic = SYNTHETIC_BASELINE_MINUTES * SYNTHETIC_MULTIPLIERS[level]
    return TrafficSnapshot(
        origin=origin,
        destination=destination,
        captured_at=now or _utc_now(),
        normal_duration=SYNTHETIC_BASELINE_MINUTES,
        duration_in_traffic=in_traffic,
        traffic_level=level,
        distance_km=SYNTHETIC_DISTANCE_KM,
    )


class DistanceMatrixClient:
    """Small wrapper around the Distance Matrix REST endpoint."""

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = "https://maps.googleapis.com/maps/api",
        session: requests.Session | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        if not api_key:
            raise ValueError("Google Maps API key is required")

        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._session = session or requests.Session()
        self._timeout = timeout_seconds

    def driving_element(
        self, *, origin: str, destination: str, departure_time: int
    ) -> dict[str, Any]:
        """Return the single origin/destination element of a driving query.

        Raises:
            AdapterDegraded: on a non-OK response or element status.
            requests.RequestException: on transport failure.
        """

        resp = self._session.get(
            f"{self._base_url}/distancematrix/json",
            params={
                "origins": origin,
                "destinations": destination,
                "mode": "driving",
                "traffic_model": "best_guess",
                "departure_time": str(departure_time),
                "key": self._api_key,
            },
            timeout=self._timeout,
        )
        resp.raise_for_status()
        data: dict[str, Any] = resp.json()

        status = data.get("status")
        if status != "OK":
            raise AdapterDegraded(f"Google Maps API error: {status}")

        try:
            element: dict[str, Any] = data["rows"][0]["elements"][0]
        except (KeyError, IndexError, TypeError) as e:
            raise AdapterDegraded("Unexpected Distance Matrix response shape") from e

        if element.get("status") != "OK":
            raise AdapterDegraded(f"Google Maps API error: {element.get('status')}")
        return element

    def close(self) -> None:
        self._session.close()


class GoogleMapsTrafficLookup:
    """Traffic lookup backed by Distance Matrix, with a synthetic fallback.

    `client=None` means no key is configured; every lookup then falls back.
    """

    def __init__(
        self,
        *,
        client: DistanceMatrixClient | None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._client = client
        self._rng = rng or random.Random()
        self._clock = clock

    def lookup(self, origin: str, destination: str) -> TrafficSnapshot:
        try:
            snapshot = self._live_lookup(origin, destination)
        except Exception as e:
            logger.warning(
                "Traffic lookup degraded; using synthetic snapshot",
                extra={"origin": origin, "destination": destination, "error": str(e)},
            )
            snapshot = synthetic_snapshot(origin, destination, rng=self._rng, now=self._clock())
        return snapshot

    def _live_lookup(self, origin: str, destination: str) -> TrafficSnapshot:
        if self._client is None:
            raise AdapterDegraded("GOOGLE_MAPS_API_KEY is not set")

        now = self._clock()
        element = self._client.driving_element(
            origin=origin, destination=destination, departure_time=int(now.timestamp())
        )
        try:
            duration = element["duration"]["value"] / 60
            distance = element["distance"]["value"] / 1000
        except (KeyError, TypeError) as e:
            raise AdapterDegraded("Distance Matrix element missing duration/distance") from e

        in_traffic_raw = (element.get("duration_in_traffic") or {}).get("value")
        in_traffic = in_traffic_raw / 60 if in_traffic_raw else duration

        snapshot = TrafficSnapshot(
            origin=origin,
            destination=destination,
            captured_at=now,
            normal_duration=duration,
            duration_in_traffic=in_traffic,
            traffic_level=traffic_level_for_delay(max(0.0, in_traffic - duration)),
            distance_km=distance,
        )
        logger.debug(
            "Traffic snapshot fetched",
            extra={
                "route": snapshot.route,
                "normal_duration": duration,
                "duration_in_traffic": in_traffic,
            },
        )
        return snapshot
