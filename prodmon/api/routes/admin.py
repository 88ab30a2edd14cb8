"""
Admin endpoints: device health overview and firmware updates
"""

from fastapi import APIRouter, Depends, HTTPException
import structlog

from prodmon.api.dependencies import get_admin_dashboard, get_manifest
from prodmon.clients.manifest import ManifestCache
from prodmon.dashboard.session import DashboardSession
from prodmon.schemas.ota import AdminDeviceListResponse, OtaState

logger = structlog.get_logger(__name__)
router = APIRouter()

@router.get("/admin/devices", response_model=AdminDeviceListResponse)
async def list_devices(
    dashboard: DashboardSession = Depends(get_admin_dashboard),
    manifest: ManifestCache = Depends(get_manifest)
):
    """Every device's last status, newest first; loads on first visit"""
    if not dashboard.admin.items and not dashboard.admin.error:
        await dashboard.admin.load()
    return dashboard.admin.snapshot(manifest.manifest, manifest.error)

@router.post("/admin/devices/refresh", response_model=AdminDeviceListResponse)
async def refresh_devices(
    dashboard: DashboardSession = Depends(get_admin_dashboard),
    manifest: ManifestCache = Depends(get_manifest)
):
    """Reload every device's last status"""
    await dashboard.admin.load()
    return dashboard.admin.snapshot(manifest.manifest, manifest.error)

@router.post("/admin/devices/{device_id}/ota", response_model=OtaState)
async def start_ota(
    device_id: str,
    dashboard: DashboardSession = Depends(get_admin_dashboard),
    manifest: ManifestCache = Depends(get_manifest)
):
    """Trigger a firmware update and start watching it"""
    row = dashboard.admin.find(device_id, manifest.manifest, manifest.error)
    if row is None:
        raise HTTPException(status_code=404, detail="Device not found")
    if not row.ota_enabled and not row.ota.active:
        raise HTTPException(status_code=409, detail=row.ota_disabled_reason or "Update not available")

    state = await dashboard.ota.start(device_id)
    logger.info("OTA requested", device_id=device_id, state=state.state)
    return state

@router.get("/admin/devices/{device_id}/ota", response_model=OtaState)
async def get_ota(device_id: str, dashboard: DashboardSession = Depends(get_admin_dashboard)):
    """Current OTA state with countdown"""
    return dashboard.ota.state(device_id)

@router.delete("/admin/devices/{device_id}/ota", response_model=OtaState)
async def stop_ota(device_id: str, dashboard: DashboardSession = Depends(get_admin_dashboard)):
    """Stop watching (the device keeps updating)"""
    return dashboard.ota.stop(device_id)
