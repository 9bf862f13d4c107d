import datetime
import math

from pydantic import AliasChoices, BaseModel, Field, field_validator


class LocationReport(BaseModel):
    """GPS report posted by the on-board device."""

    device_id: str | None = None
    lat: float | None = None
    lon: float | None = None
    speed: float = 0.0  # km/h
    reported_time: datetime.time | None = Field(
        default=None,
        validation_alias=AliasChoices("time", "reported_time", "reportedTime"),
    )

    @field_validator("speed", mode="before")
    @classmethod
    def _coerce_speed(cls, v):
        # Missing, non-numeric or negative speeds count as stationary
        try:
            speed = float(v)
        except (TypeError, ValueError):
            return 0.0
        if not math.isfinite(speed) or speed < 0:
            return 0.0
        return speed

    @field_validator("lat", "lon")
    @classmethod
    def _finite(cls, v: float | None) -> float | None:
        if v is not None and not math.isfinite(v):
            raise ValueError("must be a finite number")
        return v

    @field_validator("reported_time", mode="before")
    @classmethod
    def _parse_time(cls, v):
        if v is None or v == "":
            return None
        if isinstance(v, datetime.time):
            return v
        if not isinstance(v, str):
            raise ValueError("time must be a HH:MM:SS string")
        return datetime.datetime.strptime(v.strip(), "%H:%M:%S").time()


class VehicleLocation(BaseModel):
    bus_id: str
    lat: float
    lon: float
    speed: float
    status: str
    current_stop_index: int
    variant: str
    updated: datetime.datetime


class VehicleSummary(VehicleLocation):
    driver: str | None = None
    route: str
    current_stop: str | None = None
    next_stop: str | None = None
    eta: int | str  # minutes, or "Stopped" / "Unknown"
    total_stops: int
    signal_lost: bool = False


class StopProgress(BaseModel):
    name: str
    lat: float
    lon: float
    time: str
    order: int
    progress: str  # passed / current / upcoming


class VehicleDetail(VehicleSummary):
    return_route: str | None = None
    stops: list[StopProgress] = []


class LocationAccepted(BaseModel):
    success: bool = True
    message: str = "Location updated successfully"
    data: VehicleLocation


class SearchMatch(BaseModel):
    bus: VehicleSummary
    variant: str
    route: str
    from_stop: str
    from_time: str
    to_stop: str
    to_time: str
