"""
Session bootstrap: logged-in user, device list and selection
"""

from typing import List, Optional

import structlog
from pydantic import ValidationError

from prodmon.clients.queries import Q_ME, Q_LIST_MY_DEVICES, M_REGISTER_DEVICE, M_REMOVE_DEVICE
from prodmon.core.errors import DashboardError, DeviceNotFound, RegistrationError
from prodmon.schemas.device import BootstrapResponse, DeviceSummary

logger = structlog.get_logger(__name__)

DUPLICATE_MARKERS = ("AlreadyExists", "ConditionalCheckFailed")
MAX_ERROR_LENGTH = 220


def registration_error_message(error: Exception) -> str:
    """User-facing text for a failed registration"""
    raw = str(error or "")
    if any(marker in raw for marker in DUPLICATE_MARKERS):
        return "This device ID is already registered. Please enter a different device ID."
    if not raw:
        return "An error occurred while processing the request."
    if len(raw) > MAX_ERROR_LENGTH:
        return raw[:MAX_ERROR_LENGTH] + "..."
    return raw


class BootstrapStore:
    """Who is logged in, which devices they own, which one is selected"""

    def __init__(self, client):
        self.client = client
        self.me: Optional[str] = None
        self.devices: List[DeviceSummary] = []
        self.selected_device_id: Optional[str] = None
        self.error: Optional[str] = None
        self._started = False

    @property
    def is_logged_in(self) -> bool:
        return self.me is not None

    async def start(self) -> bool:
        """Load ``me`` and the device list; runs once unless it failed. Returns False if already run."""
        if self._started:
            return False
        self._started = True

        try:
            self.error = None
            data = await self.client.execute(Q_ME)
            self.me = data.get("me")
            await self.refresh_devices()
            logger.info("Session bootstrapped", me=self.me, devices=len(self.devices))
        except (DashboardError, ValidationError) as e:
            logger.warning("Bootstrap failed", error=str(e))
            self.error = str(e)
            self.me = None
            self.devices = []
            self.selected_device_id = None
            # next request bootstraps again
            self._started = False
        return True

    async def refresh_devices(self) -> None:
        """Reload devices; keep the selection if it still exists, else pick the first"""
        data = await self.client.execute(Q_LIST_MY_DEVICES)
        devices = [DeviceSummary.model_validate(d) for d in data.get("listMyDevices") or []]
        self.devices = devices

        ids = {d.device_id for d in devices}
        if self.selected_device_id and self.selected_device_id in ids:
            return
        self.selected_device_id = devices[0].device_id if devices else None

    def select(self, device_id: str) -> bool:
        """Select a device from the list. Returns True if the selection changed."""
        if not any(d.device_id == device_id for d in self.devices):
            raise DeviceNotFound(f"Device {device_id} is not registered to this account")
        changed = device_id != self.selected_device_id
        self.selected_device_id = device_id
        return changed

    async def register_device(self, device_id: str, nickname: str) -> DeviceSummary:
        did = (device_id or "").strip()
        name = (nickname or "").strip()
        if not did or not name:
            raise RegistrationError("Enter both a device ID and a nickname.")

        try:
            data = await self.client.execute(M_REGISTER_DEVICE, {"deviceId": did, "nickname": name})
        except DashboardError as e:
            logger.warning("Device registration failed", device_id=did, error=str(e))
            raise RegistrationError(registration_error_message(e)) from e

        registered = data.get("registerDevice") or {"deviceId": did, "nickname": name}
        logger.info("Device registered", device_id=did)
        await self.refresh_devices()
        return DeviceSummary.model_validate(registered)

    async def remove_device(self, device_id: str) -> None:
        await self.client.execute(M_REMOVE_DEVICE, {"deviceId": device_id})
        logger.info("Device removed", device_id=device_id)
        await self.refresh_devices()

    def snapshot(self) -> BootstrapResponse:
        return BootstrapResponse(
            me=self.me,
            is_logged_in=self.is_logged_in,
            devices=list(self.devices),
            selected_device_id=self.selected_device_id,
            error=self.error,
        )
