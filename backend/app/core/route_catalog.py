"""Read-only catalog of route variants per vehicle, loaded once at startup."""

import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

import orjson

from app.core.exceptions import CatalogError, NotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Stop:
    name: str
    lat: float
    lon: float
    time: str  # scheduled time of day, display only
    order: int


@dataclass(frozen=True)
class RouteVariant:
    key: str  # e.g. "morning", "evening"
    route: str  # human label, e.g. "Boothapadi - Mpnmjec"
    stops: tuple[Stop, ...]

    def stop_index(self, name: str) -> int | None:
        """Index of the stop with the given name (case-insensitive)."""
        wanted = name.strip().casefold()
        for i, stop in enumerate(self.stops):
            if stop.name.casefold() == wanted:
                return i
        return None


@dataclass(frozen=True)
class VehicleRoutes:
    vehicle_id: str
    driver: str | None
    variants: Mapping[str, RouteVariant]
    # variant key -> the single other key (only for two-variant vehicles)
    partners: Mapping[str, str] = field(default_factory=dict)

    @property
    def default_variant(self) -> RouteVariant:
        return next(iter(self.variants.values()))


def normalize_vehicle_id(vehicle_id: str) -> str:
    return vehicle_id.strip().upper()


def _stop_order(value) -> int:
    # integers only: no bools, no truncated floats
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"order must be an integer, got {value!r}")
    return value


def _build_variant(vehicle_id: str, raw: dict) -> RouteVariant:
    if not isinstance(raw, dict):
        raise CatalogError(f"{vehicle_id}: route variant must be an object, got {type(raw).__name__}")
    key = str(raw.get("key") or "")
    if not key:
        raise CatalogError(f"{vehicle_id}: route variant without a key")

    raw_stops = raw.get("stops") or []
    if not isinstance(raw_stops, list):
        raise CatalogError(f"{vehicle_id}/{key}: stops must be a list")
    if not raw_stops:
        raise CatalogError(f"{vehicle_id}/{key}: route variant has no stops")

    try:
        stops = [
            Stop(
                name=str(s["name"]),
                lat=float(s["lat"]),
                lon=float(s["lon"]),
                time=str(s.get("time", "N/A")),
                order=_stop_order(s.get("order", i)),
            )
            for i, s in enumerate(raw_stops)
        ]
    except (KeyError, TypeError, ValueError) as e:
        raise CatalogError(f"{vehicle_id}/{key}: malformed stop ({e})") from e

    stops.sort(key=lambda s: s.order)
    for i, s in enumerate(stops):
        if s.order != i:
            raise CatalogError(
                f"{vehicle_id}/{key}: stop orders must be 0..{len(stops) - 1}, "
                f"got {s.order} at position {i}"
            )

    names = [s.name for s in stops]
    if len(set(names)) != len(names):
        raise CatalogError(f"{vehicle_id}/{key}: duplicate stop names")

    return RouteVariant(key=key, route=str(raw.get("route", "")), stops=tuple(stops))


def _build_vehicle(raw: dict) -> VehicleRoutes:
    if not isinstance(raw, dict):
        raise CatalogError(f"vehicle entry must be an object, got {type(raw).__name__}")
    raw_id = raw.get("id")
    if not raw_id:
        raise CatalogError("vehicle entry without an id")
    vehicle_id = normalize_vehicle_id(str(raw_id))

    variants: dict[str, RouteVariant] = {}
    raw_variants = raw.get("variants") or []
    if not isinstance(raw_variants, list):
        raise CatalogError(f"{vehicle_id}: variants must be a list")
    for raw_variant in raw_variants:
        variant = _build_variant(vehicle_id, raw_variant)
        if variant.key in variants:
            raise CatalogError(f"{vehicle_id}: duplicate variant {variant.key!r}")
        variants[variant.key] = variant
    if not variants:
        raise CatalogError(f"{vehicle_id}: no route variants")

    partners: dict[str, str] = {}
    if len(variants) == 2:
        first, second = variants
        partners = {first: second, second: first}

    return VehicleRoutes(
        vehicle_id=vehicle_id,
        driver=raw.get("driver"),
        variants=MappingProxyType(variants),
        partners=MappingProxyType(partners),
    )


class RouteCatalog:
    """Maps vehicle ids to their route variants. Never mutated after load."""

    def __init__(self, entries: list[VehicleRoutes]) -> None:
        self._entries: dict[str, VehicleRoutes] = {}
        for entry in entries:
            if entry.vehicle_id in self._entries:
                raise CatalogError(f"duplicate vehicle {entry.vehicle_id}")
            self._entries[entry.vehicle_id] = entry

    @classmethod
    def from_dict(cls, data: dict) -> "RouteCatalog":
        """Build a catalog from {"vehicles": [{id, driver, variants: [...]}]}."""
        if not isinstance(data, dict) or not isinstance(data.get("vehicles", []), list):
            raise CatalogError("route catalog must be an object with a \"vehicles\" list")
        catalog = cls([_build_vehicle(v) for v in data.get("vehicles", [])])
        logger.info(
            "Loaded route catalog: %d vehicles, %d variants",
            len(catalog._entries),
            sum(len(e.variants) for e in catalog._entries.values()),
        )
        return catalog

    @classmethod
    def load(cls, path: str | Path) -> "RouteCatalog":
        try:
            data = orjson.loads(Path(path).read_bytes())
        except (OSError, orjson.JSONDecodeError) as e:
            raise CatalogError(f"Cannot read route catalog {path}: {e}") from e
        return cls.from_dict(data)

    def __iter__(self) -> Iterator[VehicleRoutes]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def vehicle_ids(self) -> list[str]:
        return list(self._entries)

    def entry(self, vehicle_id: str) -> VehicleRoutes:
        entry = self._entries.get(normalize_vehicle_id(vehicle_id))
        if entry is None:
            raise NotFoundError(f"Bus {vehicle_id} not found")
        return entry

    def variants_for(self, vehicle_id: str) -> Mapping[str, RouteVariant]:
        return self.entry(vehicle_id).variants

    def partner_variant(self, vehicle_id: str, key: str) -> str | None:
        return self.entry(vehicle_id).partners.get(key)
