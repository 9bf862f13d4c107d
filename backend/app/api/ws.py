"""WebSocket endpoint for real-time bus updates."""

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

router = APIRouter()

# Will be set by main.py on startup
broadcaster = None
tracker = None


@router.websocket("/ws/buses")
async def bus_ws(websocket: WebSocket) -> None:
    """Stream bus summaries: a snapshot first, then one frame per accepted report."""
    await websocket.accept()

    if broadcaster is None or tracker is None:
        await websocket.close(code=1011, reason="Service not ready")
        return

    # Subscribe before the snapshot so no update falls between the two
    queue = broadcaster.subscribe()
    try:
        buses = [s.model_dump(mode="json") for s in tracker.list_vehicles()]
        await websocket.send_bytes(broadcaster.snapshot_frame(buses))
        while True:
            data = await queue.get()
            await websocket.send_bytes(data)
    except WebSocketDisconnect:
        pass
    except asyncio.CancelledError:
        pass
    except Exception:
        logger.exception("WebSocket error")
    finally:
        broadcaster.unsubscribe(queue)
