"""Bus REST API endpoints."""

from fastapi import APIRouter, Query

from app.schemas.vehicle import SearchMatch, VehicleSummary

router = APIRouter(prefix="/api/buses", tags=["buses"])

# Will be set by main.py
tracker = None


@router.get("", response_model=list[VehicleSummary])
async def list_buses():
    """Get all buses with current stop, next stop and ETA."""
    if tracker is None:
        return []
    return tracker.list_vehicles()


@router.get("/search", response_model=list[SearchMatch])
async def search_buses(
    from_stop: str = Query(..., alias="from", min_length=1),
    to_stop: str = Query(..., alias="to", min_length=1),
):
    """Find buses whose route visits `from` before `to`."""
    if tracker is None:
        return []
    return tracker.search(from_stop, to_stop)
