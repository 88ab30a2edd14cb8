import unittest
import sys
import os
from unittest.mock import patch

from fastapi.testclient import TestClient

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

from fakes import FakeAppSync, FakeRegistry, make_token
from prodmon.clients.manifest import ManifestCache
from prodmon.clients.queries import (
    M_ADMIN_TRIGGER_OTA, M_REGISTER_DEVICE, Q_ADMIN_LIST_DEVICE_LAST, Q_DAILY, Q_GET_DEVICE_EVENTS,
    Q_GET_DEVICE_LAST, Q_LIST_MY_DEVICES, Q_ME, Q_MONTHLY,
)
from prodmon.core.config import settings
from prodmon.core.errors import AppSyncError
from prodmon.dashboard.session import DashboardSession
from prodmon.dashboard.timeutil import now_ms
from prodmon.main import app
from prodmon.schemas.ota import ManifestInfo

USER_TOKEN = make_token({"sub": "user-1"})
ADMIN_TOKEN = make_token({"sub": "admin-1", "cognito:groups": ["admins"]})

def responses():
    now = now_ms()
    return {
        Q_ME: {"me": "user-1"},
        Q_LIST_MY_DEVICES: {"listMyDevices": [
            {"deviceId": "dev-001", "nickname": "Press line 1"},
            {"deviceId": "dev-002", "nickname": "Press line 2"},
        ]},
        Q_GET_DEVICE_LAST: lambda v: {"getDeviceLast": {"deviceId": v["deviceId"], "lastServerTs": now_ms()}},
        Q_DAILY: {"getDailySeries": [{"x": "09", "y": 12}]},
        Q_MONTHLY: {"getMonthlySeries": [{"x": "2024-02-29", "y": 4}]},
        M_REGISTER_DEVICE: AppSyncError("DynamoDB:ConditionalCheckFailedException"),
        Q_ADMIN_LIST_DEVICE_LAST: {"adminListDeviceLast": [
            {"deviceId": "dev-001", "lastServerTs": now, "swVersion": "1.0.0"},
            {"deviceId": "dev-002", "lastServerTs": now - 3_600_000, "swVersion": "1.0.0"},
        ]},
        M_ADMIN_TRIGGER_OTA: {"adminTriggerOta": {"ok": True}},
        Q_GET_DEVICE_EVENTS: lambda v: {"getDeviceEvents": [{
            "deviceId": v["deviceId"],
            "eventKey": f"ts#{now_ms() + 60_000}#OTA_DONE",
            "eventType": "OTA_DONE",
        }]},
    }

class TestRoutes(unittest.TestCase):
    """HTTP surface with a fake AppSync backend"""

    def setUp(self):
        self.client = TestClient(app)
        self.client.__enter__()
        self.registry = FakeRegistry(lambda token: DashboardSession(FakeAppSync(responses(), id_token=token)))
        app.state.sessions = self.registry
        app.state.manifest = ManifestCache(None)
        app.state.manifest.manifest = ManifestInfo(version="1.2.0")

    def tearDown(self):
        self.client.__exit__(None, None, None)

    def get(self, path, token=USER_TOKEN, **kwargs):
        return self.client.get(path, headers={"Authorization": f"Bearer {token}"}, **kwargs)

    def post(self, path, token=USER_TOKEN, **kwargs):
        return self.client.post(path, headers={"Authorization": f"Bearer {token}"}, **kwargs)

    def test_health(self):
        response = self.client.get("/api/v1/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "healthy")
        self.assertEqual(self.client.get("/").status_code, 200)

    def test_detailed_health(self):
        self.get("/api/v1/me")
        body = self.client.get("/api/v1/health/detailed").json()
        self.assertEqual(body["manifest"], "1.2.0")
        self.assertEqual(body["sessions"], 1)
        self.assertEqual(body["live_feed"], "off")

    def test_auth_urls(self):
        body = self.client.get("/api/v1/auth/urls").json()
        self.assertIn("login_url", body)
        self.assertIn("logout_url", body)

    def test_login_required(self):
        with patch.object(settings, "id_token", None):
            response = self.client.get("/api/v1/me")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["detail"], "Login required (no idToken)")

    def test_me(self):
        body = self.get("/api/v1/me").json()
        self.assertTrue(body["isLoggedIn"])
        self.assertEqual(body["me"], "user-1")
        self.assertEqual(body["selectedDeviceId"], "dev-001")
        self.assertEqual([d["deviceId"] for d in body["devices"]], ["dev-001", "dev-002"])

    def test_select_and_status(self):
        body = self.post("/api/v1/devices/dev-002/select").json()
        self.assertEqual(body["selectedDeviceId"], "dev-002")

        status = self.get("/api/v1/status").json()
        self.assertEqual(status["deviceId"], "dev-002")
        self.assertEqual(status["status"]["tone"], "online")
        self.assertIsNotNone(status["lastReceived"])

    def test_select_unknown_device(self):
        response = self.post("/api/v1/devices/dev-999/select")
        self.assertEqual(response.status_code, 404)

    def test_register_duplicate(self):
        response = self.post("/api/v1/devices", json={"deviceId": "dev-001", "nickname": "Again"})
        self.assertEqual(response.status_code, 400)
        self.assertIn("already registered", response.json()["detail"])

    def test_series_month_view(self):
        body = self.get("/api/v1/series", params={"tab": "month", "year_month": "2024-02"}).json()
        chart = body["chart"]
        self.assertEqual(chart["period"], "2024-02")
        self.assertEqual(len(chart["points"]), 29)
        self.assertEqual(chart["total"], 4)

        moved = self.post("/api/v1/view/move", params={"delta": 1}).json()
        self.assertEqual(moved["chart"]["period"], "2024-03")
        self.assertEqual(len(moved["chart"]["points"]), 31)

    def test_series_invalid_tab(self):
        response = self.get("/api/v1/series", params={"tab": "week"})
        self.assertEqual(response.status_code, 400)

    def test_move_past_last_day(self):
        self.get("/api/v1/series", params={"tab": "day", "date": "9999-12-31"})
        response = self.post("/api/v1/view/move", params={"delta": 1})
        self.assertEqual(response.status_code, 400)

    def test_admin_requires_group(self):
        response = self.get("/api/v1/admin/devices")
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["detail"], "Admin access only")

    def test_admin_devices(self):
        body = self.get("/api/v1/admin/devices", token=ADMIN_TOKEN).json()
        self.assertEqual(body["total"], 2)
        rows = {r["device"]["deviceId"]: r for r in body["devices"]}
        self.assertTrue(rows["dev-001"]["otaEnabled"])
        self.assertFalse(rows["dev-002"]["otaEnabled"])
        self.assertEqual(rows["dev-002"]["otaDisabledReason"], "Offline (or unstable)")

    def test_admin_ota(self):
        self.get("/api/v1/admin/devices", token=ADMIN_TOKEN)

        done = self.post("/api/v1/admin/devices/dev-001/ota", token=ADMIN_TOKEN)
        self.assertEqual(done.status_code, 200)
        self.assertEqual(done.json()["state"], "done")

        offline = self.post("/api/v1/admin/devices/dev-002/ota", token=ADMIN_TOKEN)
        self.assertEqual(offline.status_code, 409)

        missing = self.post("/api/v1/admin/devices/dev-404/ota", token=ADMIN_TOKEN)
        self.assertEqual(missing.status_code, 404)

        state = self.get("/api/v1/admin/devices/dev-001/ota", token=ADMIN_TOKEN).json()
        self.assertEqual(state["state"], "done")

    def test_admin_with_rejected_token(self):
        self.registry.factory = lambda token: DashboardSession(
            FakeAppSync({Q_ME: AppSyncError("Unauthorized")}, id_token=token))
        response = self.get("/api/v1/admin/devices", token=ADMIN_TOKEN)
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["detail"], "Unauthorized")

    def test_live_feed_not_configured(self):
        self.assertEqual(self.client.get("/api/v1/live/devices").status_code, 503)

if __name__ == '__main__':
    unittest.main()
