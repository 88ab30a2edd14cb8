"""
Device sidebar and status endpoints
"""

from fastapi import APIRouter, Depends
import structlog

from prodmon.api.dependencies import get_dashboard
from prodmon.dashboard.session import DashboardSession
from prodmon.schemas.device import BootstrapResponse, DeviceRegisterRequest, DeviceStatusResponse

logger = structlog.get_logger(__name__)
router = APIRouter()

@router.get("/me", response_model=BootstrapResponse)
async def get_me(dashboard: DashboardSession = Depends(get_dashboard)):
    """Logged-in user, device list and current selection"""
    return dashboard.bootstrap.snapshot()

@router.post("/devices/refresh", response_model=BootstrapResponse)
async def refresh_devices(dashboard: DashboardSession = Depends(get_dashboard)):
    """Reload the device list"""
    await dashboard.refresh_devices()
    return dashboard.bootstrap.snapshot()

@router.post("/devices", response_model=BootstrapResponse, status_code=201)
async def register_device(body: DeviceRegisterRequest, dashboard: DashboardSession = Depends(get_dashboard)):
    """Register a device to the caller's account"""
    await dashboard.register_device(body.device_id, body.nickname)
    return dashboard.bootstrap.snapshot()

@router.delete("/devices/{device_id}", response_model=BootstrapResponse)
async def remove_device(device_id: str, dashboard: DashboardSession = Depends(get_dashboard)):
    """Remove a device from the caller's account"""
    await dashboard.remove_device(device_id)
    return dashboard.bootstrap.snapshot()

@router.post("/devices/{device_id}/select", response_model=BootstrapResponse)
async def select_device(device_id: str, dashboard: DashboardSession = Depends(get_dashboard)):
    """Select a device; fetches its status and series once"""
    await dashboard.select_device(device_id)
    return dashboard.bootstrap.snapshot()

@router.get("/status", response_model=DeviceStatusResponse)
async def get_status(dashboard: DashboardSession = Depends(get_dashboard)):
    """Online/offline state of the selected device"""
    return dashboard.device_last.snapshot()

@router.post("/status/refresh", response_model=DeviceStatusResponse)
async def refresh_status(dashboard: DashboardSession = Depends(get_dashboard)):
    """Re-query the selected device's status"""
    await dashboard.refresh_status()
    return dashboard.device_last.snapshot()
