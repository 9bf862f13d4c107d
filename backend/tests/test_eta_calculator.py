"""Tests for EtaCalculator and stop progress."""

import datetime
import math

from app.config import DEFAULT_ROUTES_FILE
from app.core.eta_calculator import EtaCalculator, next_stop, stop_progress
from app.core.geo import distance_km
from app.core.route_catalog import RouteCatalog, RouteVariant, Stop
from app.core.state_store import MotionStatus, VehicleState

NOW = datetime.datetime(2026, 3, 10, 4, 0, tzinfo=datetime.timezone.utc)


def make_variant() -> RouteVariant:
    """Stops ~1.11 km apart along a meridian."""
    return RouteVariant(
        key="morning",
        route="A - C",
        stops=(
            Stop(name="A", lat=11.00, lon=77.0, time="06:00 AM", order=0),
            Stop(name="B", lat=11.01, lon=77.0, time="06:05 AM", order=1),
            Stop(name="C", lat=11.02, lon=77.0, time="06:10 AM", order=2),
        ),
    )


def make_state(lat: float, speed: float, status: MotionStatus, stop_index: int) -> VehicleState:
    return VehicleState(
        vehicle_id="BUS_001", lat=lat, lon=77.0, speed=speed, status=status,
        stop_index=stop_index, variant="morning", updated=NOW,
    )


def test_basic_eta():
    calc = EtaCalculator()
    variant = make_variant()
    # ~0.78 km short of B at 30 km/h
    state = make_state(lat=11.003, speed=30, status=MotionStatus.MOVING, stop_index=0)
    dist = distance_km(11.003, 77.0, 11.01, 77.0)
    assert calc.calculate(state, variant) == math.ceil(dist / 30 * 60)


def test_moving_eta_never_zero():
    calc = EtaCalculator()
    variant = make_variant()
    # Sitting on the next stop coordinate while still flagged as moving
    state = make_state(lat=11.01, speed=50, status=MotionStatus.MOVING, stop_index=0)
    assert calc.calculate(state, variant) == 1


def test_at_stop_reports_stopped():
    calc = EtaCalculator()
    state = make_state(lat=11.0, speed=40, status=MotionStatus.AT_STOP, stop_index=0)
    assert calc.calculate(state, make_variant()) == "Stopped"


def test_zero_speed_reports_stopped():
    calc = EtaCalculator()
    state = make_state(lat=11.005, speed=0, status=MotionStatus.STOPPED, stop_index=0)
    assert calc.calculate(state, make_variant()) == "Stopped"


def test_last_stop_unknown():
    calc = EtaCalculator()
    state = make_state(lat=11.025, speed=25, status=MotionStatus.MOVING, stop_index=2)
    assert calc.calculate(state, make_variant()) == "Unknown"


def test_next_stop():
    variant = make_variant()
    assert next_stop(make_state(11.0, 0, MotionStatus.STOPPED, 0), variant).name == "B"
    assert next_stop(make_state(11.0, 0, MotionStatus.STOPPED, 2), variant) is None


def test_stop_progress():
    assert [stop_progress(i, 1) for i in range(3)] == ["passed", "current", "upcoming"]


def test_eta_near_rangampalayam_at_20_kmh():
    variants = RouteCatalog.load(DEFAULT_ROUTES_FILE).variants_for("BUS_001")
    evening = variants["evening"]
    idx = evening.stop_index("Rangampalayam")
    state = VehicleState(
        vehicle_id="BUS_001", lat=11.30695, lon=77.70235, speed=20,
        status=MotionStatus.MOVING, stop_index=idx, variant="evening", updated=NOW,
    )
    upcoming = evening.stops[idx + 1]
    expected = max(1, math.ceil(distance_km(11.30695, 77.70235, upcoming.lat, upcoming.lon) / 20 * 60))
    eta = EtaCalculator().calculate(state, evening)
    assert eta == expected
    assert eta >= 1


def test_tiny_speed_reports_unknown():
    calc = EtaCalculator()
    # Distance / 1e-320 overflows to infinity
    state = make_state(lat=11.003, speed=1e-320, status=MotionStatus.MOVING, stop_index=0)
    assert calc.calculate(state, make_variant()) == "Unknown"


def test_eta_beyond_a_day_reports_unknown():
    calc = EtaCalculator()
    # ~0.78 km at 0.0005 km/h is ~65 days
    state = make_state(lat=11.003, speed=0.0005, status=MotionStatus.MOVING, stop_index=0)
    assert calc.calculate(state, make_variant()) == "Unknown"
