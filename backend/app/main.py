"""FastAPI application entry point."""

import datetime
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api import locations, routes, vehicles, ws
from app.config import settings
from app.core.broadcaster import Broadcaster
from app.core.exceptions import BadRequestError, NotFoundError
from app.core.matching_engine import MatchingEngine
from app.core.route_catalog import RouteCatalog
from app.core.vehicle_tracker import VehicleTracker

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    # A malformed catalog raises CatalogError here and the app never starts
    catalog = RouteCatalog.load(settings.routes_file)
    engine = MatchingEngine(
        at_stop_radius_km=settings.at_stop_radius_km,
        timezone=settings.reference_timezone,
    )
    tracker = VehicleTracker(
        catalog,
        engine=engine,
        stale_after_seconds=settings.stale_after_seconds,
    )
    broadcaster = Broadcaster()

    # Wire up API modules
    vehicles.tracker = tracker
    locations.tracker = tracker
    locations.broadcaster = broadcaster
    routes.tracker = tracker
    ws.tracker = tracker
    ws.broadcaster = broadcaster

    logger.info(
        "Bus Tracker started - %d buses, reference timezone %s",
        len(catalog), settings.reference_timezone,
    )

    yield

    for module in (vehicles, locations, routes, ws):
        module.tracker = None
    locations.broadcaster = None
    ws.broadcaster = None
    logger.info("Bus Tracker shut down")


app = FastAPI(
    title="Smart Bus Tracker",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(vehicles.router)
app.include_router(locations.router)
app.include_router(routes.router)
app.include_router(ws.router)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"error": str(exc)})


@app.exception_handler(BadRequestError)
async def bad_request_handler(request: Request, exc: BadRequestError):
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.exception_handler(RequestValidationError)
async def validation_handler(request: Request, exc: RequestValidationError):
    fields = ", ".join(".".join(str(p) for p in err["loc"][1:]) or "body" for err in exc.errors())
    logger.warning("Rejected request to %s: invalid %s", request.url.path, fields)
    return JSONResponse(status_code=400, content={"error": f"Invalid fields: {fields}"})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    detail = "Endpoint not found" if exc.status_code == 404 else exc.detail
    return JSONResponse(status_code=exc.status_code, content={"error": detail})


@app.get("/")
async def root():
    return {
        "message": "Welcome to the Smart Bus Tracker Backend API",
        "health": "/health",
        "buses": "/api/buses",
        "locations": "/api/locations",
        "routes": "/api/routes",
        "live": "/ws/buses",
    }


@app.get("/health")
async def health():
    return {
        "status": "OK",
        "message": "Smart Bus Tracker Backend is running",
        "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
    }
