import unittest
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

from fakes import FakeAppSync
from prodmon.clients.queries import Q_ADMIN_LIST_DEVICE_LAST
from prodmon.core.errors import AppSyncError
from prodmon.dashboard.admin import AdminStore, sort_by_last_seen
from prodmon.dashboard.ota import OtaTracker
from prodmon.schemas.device import AdminDeviceLast
from prodmon.schemas.ota import ManifestInfo

NOW = 1_700_000_000_000

ROWS = [
    {"deviceId": "old", "lastServerTs": (NOW - 3_600_000) // 1000, "swVersion": "1.0.0"},
    {"deviceId": "fresh", "lastServerTs": NOW - 60_000, "swVersion": "1.0.0", "lastTotal": 500},
    {"deviceId": "never", "swVersion": "1.0.0"},
    {"deviceId": "latest", "lastServerTs": NOW - 30_000, "swVersion": "1.2.0"},
]

class TestAdminStore(unittest.IsolatedAsyncioTestCase):
    """Admin overview rows"""

    def setUp(self):
        self.client = FakeAppSync({Q_ADMIN_LIST_DEVICE_LAST: {"adminListDeviceLast": list(ROWS)}})
        self.ota = OtaTracker(self.client, clock=lambda: NOW, poll_interval=0)
        self.store = AdminStore(self.client, self.ota)
        self.manifest = ManifestInfo(version="1.2.0")

    async def asyncTearDown(self):
        await self.ota.close()

    async def test_load_uses_limit(self):
        await self.store.load()
        self.assertEqual(self.client.calls_for(Q_ADMIN_LIST_DEVICE_LAST), [{"limit": 300}])
        self.assertEqual(len(self.store.items), 4)
        self.assertIsNone(self.store.error)

    async def test_rows_sorted_newest_first(self):
        await self.store.load()
        rows = self.store.rows(self.manifest, current_ms=NOW)
        self.assertEqual([r.device.device_id for r in rows], ["latest", "fresh", "old", "never"])

    async def test_row_eligibility(self):
        await self.store.load()
        rows = {r.device.device_id: r for r in self.store.rows(self.manifest, current_ms=NOW)}

        self.assertTrue(rows["fresh"].ota_enabled)
        self.assertIsNone(rows["fresh"].ota_disabled_reason)
        self.assertEqual(rows["latest"].ota_disabled_reason, "Already on the latest version")
        self.assertEqual(rows["old"].status.tone, "offline")
        self.assertEqual(rows["old"].ota_disabled_reason, "Offline (or unstable)")
        self.assertEqual(rows["never"].status.tone, "unknown")
        self.assertEqual(rows["fresh"].latest_version, "1.2.0")
        self.assertEqual(rows["fresh"].ota.state, "idle")

    async def test_manifest_error_disables_updates(self):
        await self.store.load()
        row = self.store.find("fresh", None, "manifest HTTP 404", current_ms=NOW)
        self.assertFalse(row.ota_enabled)
        self.assertEqual(row.ota_disabled_reason, "Manifest fetch failed (manifest HTTP 404)")
        self.assertIsNone(self.store.find("missing", self.manifest, current_ms=NOW))

    async def test_load_error(self):
        self.client.responses[Q_ADMIN_LIST_DEVICE_LAST] = AppSyncError("Not authorized")
        await self.store.load()
        snapshot = self.store.snapshot(self.manifest, current_ms=NOW)
        self.assertEqual(snapshot.error, "Not authorized")
        self.assertFalse(snapshot.loading)
        self.assertEqual(snapshot.total, 0)

class TestSortByLastSeen(unittest.TestCase):
    """Mixed second and millisecond timestamps"""

    def test_mixed_units(self):
        items = [
            AdminDeviceLast(deviceId="s", lastServerTs=1_700_000_100),
            AdminDeviceLast(deviceId="ms", lastServerTs=1_700_000_000_000),
        ]
        self.assertEqual([d.device_id for d in sort_by_last_seen(items)], ["s", "ms"])

if __name__ == '__main__':
    unittest.main()
