"""
Firmware update (OTA) Pydantic schemas
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Literal

from prodmon.schemas.device import AdminDeviceLast, DeviceStatus

OtaPhase = Literal["idle", "requested", "started", "done", "timeout", "failed"]
ACTIVE_PHASES = ("requested", "started")
TERMINAL_PHASES = ("done", "timeout", "failed")


class ManifestInfo(BaseModel):
    """Latest published firmware"""
    version: str
    url: Optional[str] = None


class OtaState(BaseModel):
    """UI-side view of one device's firmware update"""
    state: OtaPhase = "idle"
    requested_at_ms: Optional[int] = Field(None, alias="requestedAtMs")
    started_at_ms: Optional[int] = Field(None, alias="startedAtMs")
    done_at_ms: Optional[int] = Field(None, alias="doneAtMs")
    message: Optional[str] = None
    remaining: Optional[str] = Field(None, description="m:ss left before timeout")

    class Config:
        populate_by_name = True

    @property
    def active(self) -> bool:
        return self.state in ACTIVE_PHASES


class AdminDeviceRow(BaseModel):
    """One row of the admin device list"""
    device: AdminDeviceLast
    status: DeviceStatus
    last_received: Optional[str] = Field(None, alias="lastReceived")
    ota_enabled: bool = Field(False, alias="otaEnabled")
    ota_disabled_reason: Optional[str] = Field(None, alias="otaDisabledReason")
    latest_version: Optional[str] = Field(None, alias="latestVersion")
    ota: OtaState

    class Config:
        populate_by_name = True


class AdminDeviceListResponse(BaseModel):
    """Admin page state"""
    loading: bool = False
    error: Optional[str] = None
    manifest: Optional[ManifestInfo] = None
    manifest_error: Optional[str] = Field(None, alias="manifestError")
    total: int = 0
    devices: List[AdminDeviceRow] = []

    class Config:
        populate_by_name = True
