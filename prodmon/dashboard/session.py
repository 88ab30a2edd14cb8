"""
Per-user dashboard session

Holds the state each dashboard view needs and fires the automatic fetches:
a selection change triggers one status fetch and one series fetch, and a
tab/period change triggers one series fetch.
"""

import asyncio
import hashlib
import time
from datetime import date
from typing import Any, Callable, Dict, Optional

import aiohttp
import structlog

from prodmon.clients.appsync import AppSyncClient
from prodmon.clients.queries import Q_ME
from prodmon.core.config import settings
from prodmon.core.errors import AuthenticationRequired, DashboardError
from prodmon.dashboard.admin import AdminStore
from prodmon.dashboard.auth import subject
from prodmon.dashboard.bootstrap import BootstrapStore
from prodmon.dashboard.device_last import DeviceLastStore
from prodmon.dashboard.ota import OtaTracker
from prodmon.dashboard.series import SeriesStore
from prodmon.dashboard.timeutil import now_ms
from prodmon.schemas.device import DeviceSummary

logger = structlog.get_logger(__name__)


class DashboardSession:
    """Everything one logged-in user sees"""

    def __init__(self, client, clock=now_ms, start_day: Optional[date] = None,
                 ota_poll_interval: Optional[float] = None, ota_timeout: Optional[float] = None):
        self.client = client
        self.bootstrap = BootstrapStore(client)
        self.device_last = DeviceLastStore(client, clock=clock)
        self.series = SeriesStore(client, start=start_day)
        self.ota = OtaTracker(client, clock=clock, poll_interval=ota_poll_interval, timeout=ota_timeout)
        self.admin = AdminStore(client, self.ota)
        self._start_lock = asyncio.Lock()

    @property
    def selected_device_id(self) -> Optional[str]:
        return self.bootstrap.selected_device_id

    async def start(self) -> None:
        """Bootstrap once; concurrent callers wait for the first one"""
        async with self._start_lock:
            before = self.selected_device_id
            ran = await self.bootstrap.start()
        if ran:
            await self._follow_selection(before)

    async def _follow_selection(self, before: Optional[str]) -> None:
        after = self.selected_device_id
        if after == before:
            return
        logger.info("Device selected", device_id=after)
        await asyncio.gather(
            self.device_last.refresh(after),
            self.series.set_view(device_id=after, clear_device=after is None),
        )

    async def select_device(self, device_id: str) -> None:
        before = self.selected_device_id
        self.bootstrap.select(device_id)
        await self._follow_selection(before)

    async def register_device(self, device_id: str, nickname: str) -> DeviceSummary:
        before = self.selected_device_id
        device = await self.bootstrap.register_device(device_id, nickname)
        await self._follow_selection(before)
        return device

    async def remove_device(self, device_id: str) -> None:
        before = self.selected_device_id
        await self.bootstrap.remove_device(device_id)
        await self._follow_selection(before)

    async def refresh_devices(self) -> None:
        before = self.selected_device_id
        await self.bootstrap.refresh_devices()
        await self._follow_selection(before)

    async def refresh_status(self) -> None:
        await self.device_last.refresh(self.selected_device_id, manual=True)

    async def set_view(self, tab: Optional[str] = None, day_date: Optional[str] = None,
                       year_month: Optional[str] = None, year: Optional[str] = None) -> bool:
        return await self.series.set_view(tab=tab, day_date=day_date, year_month=year_month, year=year)

    def snapshot(self) -> Dict[str, Any]:
        """Sidebar, status panel and chart in one render-ready dict"""
        return {
            "bootstrap": self.bootstrap.snapshot().model_dump(by_alias=True),
            "status": self.device_last.snapshot().model_dump(by_alias=True),
            "series": self.series.snapshot().model_dump(by_alias=True),
        }

    async def close(self) -> None:
        await self.ota.close()


class SessionRegistry:
    """
    One DashboardSession per token subject.

    Claims are never trusted on their own: a session is only kept after
    AppSync accepted its token for ``me``, and a different token presented
    for an existing session must resolve to the same ``me`` before it is
    let in. Sessions idle for ``idle_timeout`` seconds are closed.
    """

    def __init__(self, http_session: aiohttp.ClientSession, endpoint: str, timeout: float = 15.0,
                 idle_timeout: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self.http_session = http_session
        self.endpoint = endpoint
        self.timeout = timeout
        self.idle_timeout = settings.session_idle_timeout if idle_timeout is None else idle_timeout
        self.clock = clock
        self._sessions: Dict[str, DashboardSession] = {}
        self._last_used: Dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    @staticmethod
    def session_key(token: str) -> str:
        sub = subject(token)
        if sub:
            return f"sub:{sub}"
        # unparseable token: key on its digest, never on the token itself
        return "token:" + hashlib.sha256(token.encode("utf-8")).hexdigest()

    def _client(self, token: str) -> AppSyncClient:
        return AppSyncClient(self.http_session, self.endpoint, token, timeout=self.timeout)

    async def _verify_owner(self, session: DashboardSession, token: str) -> None:
        """
        Raises:
            AuthenticationRequired: AppSync rejected the token or it belongs to someone else
        """
        try:
            data = await self._client(token).execute(Q_ME)
        except DashboardError as e:
            logger.warning("Token rejected for existing session", error=str(e))
            raise AuthenticationRequired("Token could not be verified") from e
        if data.get("me") != session.bootstrap.me:
            logger.warning("Token subject does not match session owner")
            raise AuthenticationRequired("Token could not be verified")

    async def _evict_idle(self) -> None:
        now = self.clock()
        idle = [key for key, used in self._last_used.items() if now - used > self.idle_timeout]
        for key in idle:
            self._last_used.pop(key, None)
            session = self._sessions.pop(key, None)
            if session is not None:
                await session.close()
        if idle:
            logger.info("Idle dashboard sessions closed", count=len(idle))

    async def get(self, token: str) -> DashboardSession:
        await self._evict_idle()
        key = self.session_key(token)
        session = self._sessions.get(key)

        if session is None:
            session = DashboardSession(self._client(token))
            await session.start()
            if session.bootstrap.error:
                # not kept: the next request bootstraps from scratch
                await session.close()
                logger.warning("Bootstrap failed, session not kept", session=key)
                return session
            # a concurrent request may have registered the same user meanwhile
            existing = self._sessions.get(key)
            if existing is not None:
                await session.close()
                session = existing
            else:
                self._sessions[key] = session
                logger.info("Dashboard session created", session=key)
        else:
            if token != session.client.id_token:
                await self._verify_owner(session, token)
                # refreshed tokens for the same user replace the old one
                session.client.id_token = token
            await session.start()

        self._last_used[key] = self.clock()
        return session

    async def close_all(self) -> None:
        sessions = list(self._sessions.values())
        self._sessions.clear()
        self._last_used.clear()
        await asyncio.gather(*(s.close() for s in sessions), return_exceptions=True)
        logger.info("Dashboard sessions closed", count=len(sessions))
