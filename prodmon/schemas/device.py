"""
Device Pydantic schemas
"""

from pydantic import BaseModel, Field
from typing import Optional, Any, List, Literal

StatusTone = Literal["online", "warn", "offline", "unknown"]


class DeviceSummary(BaseModel):
    """Device owned by the current user"""
    device_id: str = Field(..., alias="deviceId", description="Unique device identifier")
    nickname: Optional[str] = Field("", description="Display name")

    class Config:
        populate_by_name = True


class DeviceRegisterRequest(BaseModel):
    """Schema for registering a device"""
    device_id: str = Field(..., alias="deviceId")
    nickname: str

    class Config:
        populate_by_name = True


class DeviceLast(BaseModel):
    """Latest server-side snapshot for one device"""
    device_id: str = Field(..., alias="deviceId")
    last_server_ts: Optional[float] = Field(None, alias="lastServerTs", description="Epoch s or ms")
    last_total: Optional[float] = Field(None, alias="lastTotal")
    last_reason: Optional[str] = Field(None, alias="lastReason")

    class Config:
        populate_by_name = True


class AdminDeviceLast(DeviceLast):
    """Snapshot row shown on the admin page"""
    last_delta: Optional[float] = Field(None, alias="lastDelta")
    boot: Optional[int] = None
    seq: Optional[int] = None
    sw_version: Optional[str] = Field(None, alias="swVersion")
    plc_hex: Optional[str] = Field(None, alias="plcHex")
    esp_hex: Optional[str] = Field(None, alias="espHex")


class DeviceEvent(BaseModel):
    """Device event log row"""
    device_id: str = Field(..., alias="deviceId")
    event_key: str = Field("", alias="eventKey")
    event_type: str = Field("", alias="eventType")
    ts: Optional[float] = None
    detail: Optional[Any] = None

    class Config:
        populate_by_name = True


class DeviceStatus(BaseModel):
    """Online/offline inference from the last server timestamp"""
    tone: StatusTone
    text: str


class DeviceStatusResponse(BaseModel):
    """Status panel for the selected device"""
    device_id: Optional[str] = Field(None, alias="deviceId")
    loading: bool = False
    error: Optional[str] = None
    last: Optional[DeviceLast] = None
    status: DeviceStatus
    last_server_ts_ms: Optional[int] = Field(None, alias="lastServerTsMs")
    last_received: Optional[str] = Field(None, alias="lastReceived")
    last_checked: Optional[str] = Field(None, alias="lastChecked")

    class Config:
        populate_by_name = True


class BootstrapResponse(BaseModel):
    """Logged-in user and the device sidebar"""
    me: Optional[str] = None
    is_logged_in: bool = Field(False, alias="isLoggedIn")
    devices: List[DeviceSummary] = []
    selected_device_id: Optional[str] = Field(None, alias="selectedDeviceId")
    error: Optional[str] = None

    class Config:
        populate_by_name = True
