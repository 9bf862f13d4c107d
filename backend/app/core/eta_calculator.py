"""Read-time ETA and stop progress derived from a committed vehicle state."""

import logging
import math

from app.core.geo import distance_km
from app.core.route_catalog import RouteVariant, Stop
from app.core.state_store import MotionStatus, VehicleState

logger = logging.getLogger(__name__)

ETA_STOPPED = "Stopped"
ETA_UNKNOWN = "Unknown"

# Never report 0 minutes for a moving vehicle
MIN_MOVING_ETA_MINUTES = 1
# Maximum reasonable ETA (minutes)
MAX_ETA_MINUTES = 24 * 60


def next_stop(state: VehicleState, variant: RouteVariant) -> Stop | None:
    idx = state.stop_index + 1
    if idx < len(variant.stops):
        return variant.stops[idx]
    return None


def stop_progress(index: int, current_index: int) -> str:
    if index == current_index:
        return "current"
    if index < current_index:
        return "passed"
    return "upcoming"


class EtaCalculator:
    """Speed-based ETA to the stop after the matched one."""

    def calculate(self, state: VehicleState, variant: RouteVariant) -> int | str:
        """ETA in whole minutes, or "Stopped" / "Unknown"."""
        if state.status == MotionStatus.AT_STOP or state.speed <= 0:
            return ETA_STOPPED

        upcoming = next_stop(state, variant)
        if upcoming is None:
            return ETA_UNKNOWN

        dist = distance_km(state.lat, state.lon, upcoming.lat, upcoming.lon)
        raw_minutes = dist / state.speed * 60
        if not math.isfinite(raw_minutes) or raw_minutes > MAX_ETA_MINUTES:
            # Too far out to be reliable
            return ETA_UNKNOWN
        return max(math.ceil(raw_minutes), MIN_MOVING_ETA_MINUTES)
