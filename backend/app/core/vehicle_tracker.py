"""Main orchestrator: validates reports, runs the matching engine, serves views."""

import datetime
import logging
from collections.abc import Callable

from app.core.eta_calculator import EtaCalculator, next_stop, stop_progress
from app.core.exceptions import BadRequestError, NotFoundError
from app.core.matching_engine import LocationSample, MatchingEngine
from app.core.route_catalog import RouteCatalog, VehicleRoutes, normalize_vehicle_id
from app.core.state_store import MotionStatus, VehicleState, VehicleStateStore
from app.schemas.route import RouteStopInfo, RouteVariantInfo, VehicleRoutesInfo
from app.schemas.vehicle import (
    LocationReport,
    SearchMatch,
    StopProgress,
    VehicleDetail,
    VehicleLocation,
    VehicleSummary,
)

logger = logging.getLogger(__name__)

# How long a vehicle may stay silent before it is flagged as signal lost
STALE_AFTER_SECONDS = 120


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class VehicleTracker:
    """Orchestrates ingestion and the read views over catalog + state store."""

    def __init__(
        self,
        catalog: RouteCatalog,
        engine: MatchingEngine | None = None,
        store: VehicleStateStore | None = None,
        stale_after_seconds: int = STALE_AFTER_SECONDS,
        clock: Callable[[], datetime.datetime] = _utcnow,
    ) -> None:
        self.catalog = catalog
        self.engine = engine or MatchingEngine(clock=clock)
        self.store = store or VehicleStateStore()
        self.eta_calculator = EtaCalculator()
        self.stale_after_seconds = stale_after_seconds
        self._clock = clock

        loaded_at = clock()
        for entry in catalog:
            if entry.vehicle_id not in self.store:
                self.store.register(entry.vehicle_id, self._initial_state(entry, loaded_at))
        logger.info("Tracking %d vehicles", len(catalog))

    @staticmethod
    def _initial_state(entry: VehicleRoutes, at: datetime.datetime) -> VehicleState:
        variant = entry.default_variant
        first = variant.stops[0]
        return VehicleState(
            vehicle_id=entry.vehicle_id,
            lat=first.lat,
            lon=first.lon,
            speed=0.0,
            status=MotionStatus.OFFLINE,
            stop_index=0,
            variant=variant.key,
            updated=at,
        )

    # ------------------------------------------------------------------
    # Write path

    def ingest(self, report: LocationReport) -> VehicleState:
        """Apply one GPS report and return the committed state.

        Raises BadRequestError for missing fields and NotFoundError for
        vehicles without a catalog entry; neither touches stored state.
        """
        if not report.device_id or report.lat is None or report.lon is None:
            logger.warning("Rejected report with missing fields: %s", report.model_dump(exclude_none=True))
            raise BadRequestError("Missing required fields: device_id, lat, lon")

        vehicle_id = normalize_vehicle_id(report.device_id)
        try:
            variants = self.catalog.variants_for(vehicle_id)
        except NotFoundError:
            logger.warning("Rejected report from unknown bus %s", vehicle_id)
            raise

        sample = LocationSample(
            lat=report.lat,
            lon=report.lon,
            speed=report.speed,
            reported_time=report.reported_time,
        )
        state = self.store.update(
            vehicle_id,
            lambda previous: self.engine.compute_update(vehicle_id, previous, sample, variants),
        )
        logger.info(
            "Updated location for %s: %.5f, %.5f (speed %.1f km/h, %s, %s stop %d)",
            vehicle_id, state.lat, state.lon, state.speed,
            state.status.value, state.variant, state.stop_index,
        )
        return state

    # ------------------------------------------------------------------
    # Read path

    def _is_stale(self, state: VehicleState, now: datetime.datetime) -> bool:
        if state.status == MotionStatus.OFFLINE:
            return False
        return (now - state.updated).total_seconds() > self.stale_after_seconds

    @staticmethod
    def location(state: VehicleState) -> VehicleLocation:
        return VehicleLocation(
            bus_id=state.vehicle_id,
            lat=state.lat,
            lon=state.lon,
            speed=state.speed,
            status=state.status.value,
            current_stop_index=state.stop_index,
            variant=state.variant,
            updated=state.updated,
        )

    def _summary_fields(self, state: VehicleState, now: datetime.datetime) -> dict:
        entry = self.catalog.entry(state.vehicle_id)
        variant = entry.variants[state.variant]
        upcoming = next_stop(state, variant)
        return {
            **self.location(state).model_dump(),
            "driver": entry.driver,
            "route": variant.route,
            "current_stop": variant.stops[state.stop_index].name,
            "next_stop": upcoming.name if upcoming else None,
            "eta": self.eta_calculator.calculate(state, variant),
            "total_stops": len(variant.stops),
            "signal_lost": self._is_stale(state, now),
        }

    def summarize(self, state: VehicleState) -> VehicleSummary:
        return VehicleSummary(**self._summary_fields(state, self._clock()))

    def list_vehicles(self) -> list[VehicleSummary]:
        now = self._clock()
        return [
            VehicleSummary(**self._summary_fields(state, now))
            for state in self.store.snapshot().values()
        ]

    def list_locations(self) -> list[VehicleLocation]:
        return [self.location(s) for s in self.store.snapshot().values()]

    def get_vehicle(self, vehicle_id: str) -> VehicleDetail:
        """Summary plus every stop of the active variant with its progress."""
        vehicle_id = normalize_vehicle_id(vehicle_id)
        entry = self.catalog.entry(vehicle_id)
        state = self.store.get(vehicle_id)
        variant = entry.variants[state.variant]

        partner = self.catalog.partner_variant(vehicle_id, variant.key)
        stops = [
            StopProgress(
                name=s.name, lat=s.lat, lon=s.lon, time=s.time, order=s.order,
                progress=stop_progress(i, state.stop_index),
            )
            for i, s in enumerate(variant.stops)
        ]
        return VehicleDetail(
            **self._summary_fields(state, self._clock()),
            return_route=entry.variants[partner].route if partner else None,
            stops=stops,
        )

    @staticmethod
    def _routes_info(entry: VehicleRoutes) -> VehicleRoutesInfo:
        return VehicleRoutesInfo(
            bus_id=entry.vehicle_id,
            driver=entry.driver,
            variants=[
                RouteVariantInfo(
                    key=v.key,
                    route=v.route,
                    stops=[
                        RouteStopInfo(name=s.name, lat=s.lat, lon=s.lon, time=s.time, order=s.order)
                        for s in v.stops
                    ],
                )
                for v in entry.variants.values()
            ],
        )

    def list_routes(self) -> list[VehicleRoutesInfo]:
        return [self._routes_info(entry) for entry in self.catalog]

    def get_routes(self, vehicle_id: str) -> VehicleRoutesInfo:
        return self._routes_info(self.catalog.entry(vehicle_id))

    def search(self, from_stop: str, to_stop: str) -> list[SearchMatch]:
        """Vehicles with a variant that visits from_stop before to_stop."""
        now = self._clock()
        snapshot = self.store.snapshot()
        matches = []
        for entry in self.catalog:
            for variant in entry.variants.values():
                i = variant.stop_index(from_stop)
                j = variant.stop_index(to_stop)
                if i is None or j is None or i >= j:
                    continue
                state = snapshot[entry.vehicle_id]
                matches.append(SearchMatch(
                    bus=VehicleSummary(**self._summary_fields(state, now)),
                    variant=variant.key,
                    route=variant.route,
                    from_stop=variant.stops[i].name,
                    from_time=variant.stops[i].time,
                    to_stop=variant.stops[j].name,
                    to_time=variant.stops[j].time,
                ))
        logger.debug("Search %r -> %r: %d matches", from_stop, to_stop, len(matches))
        return matches
