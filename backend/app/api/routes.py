"""Route catalog REST API endpoints."""

from fastapi import APIRouter, HTTPException

from app.schemas.route import VehicleRoutesInfo

router = APIRouter(prefix="/api/routes", tags=["routes"])

# Will be set by main.py
tracker = None


@router.get("", response_model=list[VehicleRoutesInfo])
async def list_routes():
    """Get every bus with all of its route variants."""
    if tracker is None:
        return []
    return tracker.list_routes()


@router.get("/{bus_id}", response_model=VehicleRoutesInfo)
async def get_routes(bus_id: str):
    """Get the route variants of one bus."""
    if tracker is None:
        raise HTTPException(status_code=503, detail="Tracker not initialized")
    return tracker.get_routes(bus_id)
