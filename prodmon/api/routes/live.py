"""
Live feed (WebSocket prototype) endpoints
"""

from fastapi import APIRouter, HTTPException, Request

router = APIRouter()

def _buffer(request: Request):
    buffer = getattr(request.app.state, "live_buffer", None)
    if buffer is None:
        raise HTTPException(status_code=503, detail="Live feed is not configured")
    return buffer

@router.get("/live/devices")
async def live_devices(request: Request):
    """Devices announced at login and devices seen on the feed"""
    buffer = _buffer(request)
    directory = request.app.state.live_directory
    return {
        "devices": directory.devices,
        "streaming": buffer.devices(),
    }

@router.get("/live/{device_id}")
async def live_series(device_id: str, request: Request):
    """Rolling count chart for one device"""
    points = _buffer(request).series(device_id)
    return {
        "device_id": device_id,
        "labels": [p["time"] for p in points],
        "values": [p["value"] for p in points],
    }
