import unittest
import sys
import os
import json
import asyncio
from unittest.mock import MagicMock, AsyncMock

import aiohttp
from aiohttp import test_utils, web

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from prodmon.clients.appsync import AppSyncClient, mask_token
from prodmon.clients.queries import Q_GET_DEVICE_LAST, Q_ME
from prodmon.core.errors import AppSyncError, AuthenticationRequired
from prodmon.dashboard.device_last import DeviceLastStore

ENDPOINT = "https://example.appsync-api.ap-northeast-2.amazonaws.com/graphql"

def mock_session(status=200, payload=None, json_error=None, text=""):
    """aiohttp session whose post() yields a canned response"""
    response = MagicMock()
    response.status = status
    if json_error is not None:
        response.json = AsyncMock(side_effect=json_error)
    else:
        response.json = AsyncMock(return_value=payload)
    response.text = AsyncMock(return_value=text)

    session = MagicMock()
    session.post.return_value.__aenter__.return_value = response
    session.post.return_value.__aexit__.return_value = False
    return session

class TestAppSyncClient(unittest.IsolatedAsyncioTestCase):
    """GraphQL calls with the caller's ID token"""

    async def test_missing_token_never_calls_out(self):
        session = mock_session(payload={"data": {}})
        client = AppSyncClient(session, ENDPOINT, None)

        with self.assertRaises(AuthenticationRequired):
            await client.execute(Q_ME)
        session.post.assert_not_called()

    async def test_success_returns_data(self):
        session = mock_session(payload={"data": {"me": "user-1"}})
        client = AppSyncClient(session, ENDPOINT, "raw.jwt.token")

        data = await client.execute(Q_GET_DEVICE_LAST, {"deviceId": "dev-001"})

        self.assertEqual(data, {"me": "user-1"})
        args, kwargs = session.post.call_args
        self.assertEqual(args[0], ENDPOINT)
        self.assertEqual(kwargs["headers"]["Authorization"], "raw.jwt.token")
        self.assertEqual(kwargs["json"], {"query": Q_GET_DEVICE_LAST, "variables": {"deviceId": "dev-001"}})

    async def test_null_data_becomes_empty_dict(self):
        client = AppSyncClient(mock_session(payload={"data": None}), ENDPOINT, "t")
        self.assertEqual(await client.execute(Q_ME), {})

    async def test_graphql_errors_are_raised_as_json(self):
        errors = [{"message": "Unauthorized", "errorType": "UnauthorizedException"}]
        client = AppSyncClient(mock_session(payload={"data": None, "errors": errors}), ENDPOINT, "t")

        with self.assertRaises(AppSyncError) as ctx:
            await client.execute(Q_ME)
        self.assertEqual(json.loads(str(ctx.exception)), errors)
        self.assertEqual(ctx.exception.status_code, 502)

    async def test_http_error_without_errors_array(self):
        client = AppSyncClient(mock_session(status=500, payload={"message": "boom"}), ENDPOINT, "t")

        with self.assertRaises(AppSyncError) as ctx:
            await client.execute(Q_ME)
        self.assertEqual(str(ctx.exception), "HTTP 500")

    async def test_non_json_body(self):
        session = mock_session(status=502, json_error=json.JSONDecodeError("bad", "", 0), text="<html>Bad Gateway</html>")
        client = AppSyncClient(session, ENDPOINT, "t")

        with self.assertRaises(AppSyncError) as ctx:
            await client.execute(Q_ME)
        self.assertIn("HTTP 502", str(ctx.exception))

    async def test_transport_failure(self):
        session = MagicMock()
        session.post.side_effect = aiohttp.ClientConnectionError("connection refused")
        client = AppSyncClient(session, ENDPOINT, "t")

        with self.assertRaises(AppSyncError) as ctx:
            await client.execute(Q_ME)
        self.assertIn("connection refused", str(ctx.exception))

    async def test_timeout_is_raised_as_appsync_error(self):
        session = MagicMock()
        session.post.side_effect = asyncio.TimeoutError()
        client = AppSyncClient(session, ENDPOINT, "t", timeout=0.1)

        with self.assertRaises(AppSyncError) as ctx:
            await client.execute(Q_ME)
        self.assertEqual(str(ctx.exception), "Request timed out")

class TestSlowServer(unittest.IsolatedAsyncioTestCase):
    """Client timeout against a real aiohttp server"""

    async def asyncSetUp(self):
        async def slow_graphql(request):
            await asyncio.sleep(1)
            return web.json_response({"data": {"getDeviceLast": None}})

        app = web.Application()
        app.router.add_post("/graphql", slow_graphql)
        self.server = test_utils.TestServer(app)
        await self.server.start_server()
        self.session = aiohttp.ClientSession()

    async def asyncTearDown(self):
        await self.session.close()
        await self.server.close()

    async def test_store_records_timeout(self):
        client = AppSyncClient(self.session, str(self.server.make_url("/graphql")), "t", timeout=0.2)
        store = DeviceLastStore(client)

        await store.refresh("dev-001")

        self.assertEqual(store.error, "Request timed out")
        self.assertFalse(store.loading)
        self.assertIsNone(store.last)

class TestMaskToken(unittest.TestCase):
    """Token masking for logs"""

    def test_long_token(self):
        token = "a" * 12 + "b" * 30 + "c" * 8
        self.assertEqual(mask_token(token), "a" * 12 + "..." + "c" * 8)

    def test_short_token_unchanged(self):
        self.assertEqual(mask_token("short"), "short")

if __name__ == '__main__':
    unittest.main()
