"""Location ingestion and per-bus detail endpoints."""

from fastapi import APIRouter, HTTPException

from app.schemas.vehicle import LocationAccepted, LocationReport, VehicleDetail, VehicleLocation

router = APIRouter(prefix="/api/locations", tags=["locations"])

# Will be set by main.py
tracker = None
broadcaster = None


def _require_tracker():
    if tracker is None:
        raise HTTPException(status_code=503, detail="Tracker not initialized")
    return tracker


@router.get("", response_model=list[VehicleLocation])
async def list_locations():
    """Raw state of every bus."""
    if tracker is None:
        return []
    return tracker.list_locations()


@router.get("/{bus_id}", response_model=VehicleDetail)
async def get_location(bus_id: str):
    """Bus detail with route progress for every stop."""
    return _require_tracker().get_vehicle(bus_id)


@router.post("", response_model=LocationAccepted)
async def update_location(report: LocationReport):
    """Accept a GPS report from the on-board hardware."""
    t = _require_tracker()
    state = t.ingest(report)
    if broadcaster is not None:
        broadcaster.publish([t.summarize(state).model_dump(mode="json")])
    return LocationAccepted(data=t.location(state))
