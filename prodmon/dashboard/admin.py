"""
Admin device overview
"""

from typing import List, Optional

import structlog
from pydantic import ValidationError

from prodmon.clients.queries import Q_ADMIN_LIST_DEVICE_LAST
from prodmon.core.config import settings
from prodmon.core.errors import DashboardError
from prodmon.dashboard.ota import OtaTracker
from prodmon.dashboard.sequence import RequestSequence
from prodmon.dashboard.status import compute_status, ota_eligibility
from prodmon.dashboard.timeutil import format_datetime, normalize_epoch_ms, now_ms
from prodmon.schemas.device import AdminDeviceLast
from prodmon.schemas.ota import AdminDeviceListResponse, AdminDeviceRow, ManifestInfo

logger = structlog.get_logger(__name__)


def sort_by_last_seen(items: List[AdminDeviceLast]) -> List[AdminDeviceLast]:
    """Most recently heard-from devices first; never-seen devices last"""
    return sorted(items, key=lambda d: normalize_epoch_ms(d.last_server_ts) or 0, reverse=True)


class AdminStore:
    """device_last for every device, plus OTA controls"""

    def __init__(self, client, ota: OtaTracker, limit: Optional[int] = None):
        self.client = client
        self.ota = ota
        self.limit = settings.admin_list_limit if limit is None else limit
        self.items: List[AdminDeviceLast] = []
        self.loading = False
        self.error: Optional[str] = None
        self._sequence = RequestSequence()

    async def load(self) -> None:
        ticket = self._sequence.next()
        self.loading = True
        self.error = None

        try:
            data = await self.client.execute(Q_ADMIN_LIST_DEVICE_LAST, {"limit": self.limit})
            items = [AdminDeviceLast.model_validate(row) for row in data.get("adminListDeviceLast") or []]
        except (DashboardError, ValidationError) as e:
            if self._sequence.is_current(ticket):
                logger.warning("Admin device list failed", error=str(e))
                self.error = str(e)
                self.loading = False
            return

        if self._sequence.is_current(ticket):
            self.items = items
            self.loading = False
            logger.info("Admin device list loaded", count=len(items))

    def rows(self, manifest: Optional[ManifestInfo], manifest_error: Optional[str] = None,
             current_ms: Optional[int] = None) -> List[AdminDeviceRow]:
        current = now_ms() if current_ms is None else current_ms
        rows = []
        for item in sort_by_last_seen(self.items):
            last_ms = normalize_epoch_ms(item.last_server_ts)
            status = compute_status(last_ms, current)
            enabled, reason = ota_eligibility(status, item.sw_version, manifest, manifest_error)
            rows.append(AdminDeviceRow(
                device=item,
                status=status,
                last_received=format_datetime(last_ms) if last_ms else None,
                ota_enabled=enabled,
                ota_disabled_reason=reason,
                latest_version=manifest.version if manifest else None,
                ota=self.ota.state(item.device_id, current),
            ))
        return rows

    def find(self, device_id: str, manifest: Optional[ManifestInfo], manifest_error: Optional[str] = None,
             current_ms: Optional[int] = None) -> Optional[AdminDeviceRow]:
        rows = self.rows(manifest, manifest_error, current_ms)
        return next((row for row in rows if row.device.device_id == device_id), None)

    def snapshot(self, manifest: Optional[ManifestInfo], manifest_error: Optional[str] = None,
                 current_ms: Optional[int] = None) -> AdminDeviceListResponse:
        rows = self.rows(manifest, manifest_error, current_ms)
        return AdminDeviceListResponse(
            loading=self.loading,
            error=self.error,
            manifest=manifest,
            manifest_error=manifest_error,
            total=len(rows),
            devices=rows,
        )
