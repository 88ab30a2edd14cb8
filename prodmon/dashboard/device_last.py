"""
Selected-device status (device_last)
Only the selected device is queried, once per selection change or on manual refresh.
"""

from typing import Callable, Optional

import structlog
from pydantic import ValidationError

from prodmon.clients.queries import Q_GET_DEVICE_LAST
from prodmon.core.errors import DashboardError
from prodmon.dashboard.sequence import RequestSequence
from prodmon.dashboard.status import compute_status
from prodmon.dashboard.timeutil import format_datetime, normalize_epoch_ms, now_ms
from prodmon.schemas.device import DeviceLast, DeviceStatusResponse

logger = structlog.get_logger(__name__)


class DeviceLastStore:
    """Latest status row for the selected device"""

    def __init__(self, client, clock: Callable[[], int] = now_ms):
        self.client = client
        self.clock = clock
        self.device_id: Optional[str] = None
        self.last: Optional[DeviceLast] = None
        self.loading = False
        self.error: Optional[str] = None
        self.checked_at_ms: Optional[int] = None
        self._auto_checked_for: Optional[str] = None
        self._sequence = RequestSequence()

    async def refresh(self, device_id: Optional[str], manual: bool = False) -> None:
        self.device_id = device_id
        if not device_id:
            self._sequence.invalidate()
            self.last = None
            self.error = None
            self.loading = False
            return

        ticket = self._sequence.next()
        self.loading = True
        self.error = None

        try:
            data = await self.client.execute(Q_GET_DEVICE_LAST, {"deviceId": device_id})
            row = data.get("getDeviceLast")
            last = DeviceLast.model_validate(row) if row else None
        except (DashboardError, ValidationError) as e:
            if self._sequence.is_current(ticket):
                logger.warning("Device status fetch failed", device_id=device_id, error=str(e))
                self.error = str(e)
                self.last = None
                self.loading = False
            if manual:
                self.checked_at_ms = self.clock()
            return

        if self._sequence.is_current(ticket):
            self.last = last
            self.loading = False
            # first successful automatic check of a device also counts as "checked"
            if not manual and last is not None and self._auto_checked_for != device_id:
                self.checked_at_ms = self.clock()
                self._auto_checked_for = device_id
        else:
            logger.debug("Discarded stale device status", device_id=device_id, ticket=ticket)

        if manual:
            self.checked_at_ms = self.clock()

    def snapshot(self, current_ms: Optional[int] = None) -> DeviceStatusResponse:
        last_ms = normalize_epoch_ms(self.last.last_server_ts if self.last else None)
        return DeviceStatusResponse(
            device_id=self.device_id,
            loading=self.loading,
            error=self.error,
            last=self.last,
            status=compute_status(last_ms, current_ms),
            last_server_ts_ms=last_ms,
            last_received=format_datetime(last_ms) if last_ms else None,
            last_checked=format_datetime(self.checked_at_ms) if self.checked_at_ms else None,
        )
