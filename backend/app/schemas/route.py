from pydantic import BaseModel


class RouteStopInfo(BaseModel):
    name: str
    lat: float
    lon: float
    time: str
    order: int


class RouteVariantInfo(BaseModel):
    key: str
    route: str
    stops: list[RouteStopInfo] = []


class VehicleRoutesInfo(BaseModel):
    bus_id: str
    driver: str | None = None
    variants: list[RouteVariantInfo] = []
