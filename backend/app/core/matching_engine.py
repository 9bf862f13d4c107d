"""Match a raw GPS sample against a vehicle's route variants.

Every sample is classified on its own: the active variant is the one whose
first stop is closest to the sample, the matched stop is the nearest stop of
that variant, and the motion status follows from the stop distance and the
reported speed. No trip progress is carried between samples.
"""

import datetime
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from zoneinfo import ZoneInfo

from app.core.exceptions import NotFoundError
from app.core.geo import distance_km
from app.core.route_catalog import RouteVariant
from app.core.state_store import MotionStatus, VehicleState

logger = logging.getLogger(__name__)

# Within this distance (km) of the matched stop the vehicle is "At Stop"
AT_STOP_RADIUS_KM = 0.1

DEFAULT_TIMEZONE = "Asia/Kolkata"


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


@dataclass(frozen=True)
class LocationSample:
    lat: float
    lon: float
    speed: float = 0.0  # km/h
    reported_time: datetime.time | None = None  # device clock, no date


@dataclass(frozen=True)
class StopMatch:
    index: int
    distance_km: float


def select_variant(
    lat: float,
    lon: float,
    variants: Mapping[str, RouteVariant],
    preferred: str | None = None,
) -> RouteVariant:
    """Pick the variant whose first stop is closest to (lat, lon).

    Exact ties keep ``preferred`` when it is one of the variants, otherwise
    the first declared variant wins.
    """
    candidates = list(variants.values())
    if preferred in variants:
        candidates.sort(key=lambda v: v.key != preferred)

    best = candidates[0]
    best_dist = distance_km(lat, lon, best.stops[0].lat, best.stops[0].lon)
    for variant in candidates[1:]:
        first = variant.stops[0]
        d = distance_km(lat, lon, first.lat, first.lon)
        if d < best_dist:
            best, best_dist = variant, d
    return best


def nearest_stop(lat: float, lon: float, variant: RouteVariant) -> StopMatch:
    """Index of the closest stop; ties resolve to the lowest index."""
    best_idx = 0
    best_dist = float("inf")
    for i, stop in enumerate(variant.stops):
        d = distance_km(lat, lon, stop.lat, stop.lon)
        if d < best_dist:
            best_dist = d
            best_idx = i
    return StopMatch(index=best_idx, distance_km=best_dist)


def motion_status(stop_distance_km: float, speed: float,
                  at_stop_radius_km: float = AT_STOP_RADIUS_KM) -> MotionStatus:
    if stop_distance_km < at_stop_radius_km:
        return MotionStatus.AT_STOP
    if speed > 0:
        return MotionStatus.MOVING
    return MotionStatus.STOPPED


def resolve_timestamp(
    reported_time: datetime.time | None,
    received_at: datetime.datetime,
    tz: datetime.tzinfo,
) -> datetime.datetime:
    """Turn a date-less device time into an absolute UTC instant.

    The date is taken from ``received_at`` in ``tz``. Of yesterday, today and
    tomorrow, the candidate nearest the receipt instant is used, so a report
    stamped 23:59 that arrives just after local midnight stays on the
    previous day.
    """
    if reported_time is None:
        return received_at.astimezone(datetime.timezone.utc)

    local_date = received_at.astimezone(tz).date()
    candidates = [
        datetime.datetime.combine(local_date + datetime.timedelta(days=offset), reported_time, tzinfo=tz)
        for offset in (0, -1, 1)
    ]
    best = min(candidates, key=lambda c: abs(c - received_at))
    return best.astimezone(datetime.timezone.utc)


class MatchingEngine:
    """Computes a vehicle's next state from a sample. Holds no per-vehicle data."""

    def __init__(
        self,
        at_stop_radius_km: float = AT_STOP_RADIUS_KM,
        timezone: str = DEFAULT_TIMEZONE,
        clock: Callable[[], datetime.datetime] = _utcnow,
    ) -> None:
        self.at_stop_radius_km = at_stop_radius_km
        self.tz = ZoneInfo(timezone)
        self._clock = clock

    def compute_update(
        self,
        vehicle_id: str,
        previous: VehicleState,
        sample: LocationSample,
        variants: Mapping[str, RouteVariant],
    ) -> VehicleState:
        if not variants:
            raise NotFoundError(f"Bus {vehicle_id} has no routes")

        variant = select_variant(sample.lat, sample.lon, variants, preferred=previous.variant)
        match = nearest_stop(sample.lat, sample.lon, variant)
        speed = sample.speed if sample.speed > 0 else 0.0
        status = motion_status(match.distance_km, speed, self.at_stop_radius_km)
        updated = resolve_timestamp(sample.reported_time, self._clock(), self.tz)

        if variant.key != previous.variant:
            logger.debug("%s: switched variant %s -> %s", vehicle_id, previous.variant, variant.key)
        logger.debug(
            "%s: nearest stop %s (%.3f km) on %s, status %s",
            vehicle_id, variant.stops[match.index].name, match.distance_km,
            variant.key, status.value,
        )

        return VehicleState(
            vehicle_id=vehicle_id,
            lat=sample.lat,
            lon=sample.lon,
            speed=speed,
            status=status,
            stop_index=match.index,
            variant=variant.key,
            updated=updated,
        )
