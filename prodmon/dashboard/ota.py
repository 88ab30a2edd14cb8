"""
Firmware update (OTA) trigger and progress polling

State per device:

    idle -> requested -> started -> done | timeout | failed

After the trigger mutation the device event log is polled (immediately,
then every ``poll_interval`` seconds). ``OTA_START`` after the request moves
to started, ``OTA_DONE`` to done, ``OTA_FAIL`` to failed. No terminal event
within ``timeout`` seconds of the request is a timeout. Polling only
observes the device; stopping it does not stop the update itself.
"""

import asyncio
import json
import re
from typing import Callable, Dict, Iterable, Optional

import structlog
from pydantic import ValidationError

from prodmon.clients.queries import M_ADMIN_TRIGGER_OTA, Q_GET_DEVICE_EVENTS
from prodmon.core.config import settings
from prodmon.core.errors import DashboardError
from prodmon.dashboard.timeutil import format_left, normalize_epoch_ms, now_ms
from prodmon.schemas.device import DeviceEvent
from prodmon.schemas.ota import OtaState

logger = structlog.get_logger(__name__)

EVENT_KEY_TS = re.compile(r"ts#(\d{10,16})")


def parse_event_ms(event: DeviceEvent) -> Optional[int]:
    """Event time from an ``ts#<epoch>#...`` event key, else the ``ts`` field"""
    match = EVENT_KEY_TS.search(event.event_key or "")
    if match:
        return normalize_epoch_ms(int(match.group(1)))
    if event.ts is not None:
        return normalize_epoch_ms(event.ts)
    return None


def failure_message(detail) -> Optional[str]:
    """``detail.reason`` when present, else the detail itself"""
    if isinstance(detail, str):
        # AWSJSON arrives as a string
        try:
            parsed = json.loads(detail)
        except ValueError:
            return detail or None
        if not isinstance(parsed, dict):
            return detail or None
        detail = parsed
    if isinstance(detail, dict):
        reason = detail.get("reason")
        return str(reason) if reason is not None else json.dumps(detail, ensure_ascii=False)
    if detail is None:
        return None
    return str(detail)


def _earliest(a: Optional[int], b: Optional[int]) -> Optional[int]:
    if a is None:
        return b
    if b is None:
        return a
    return min(a, b)


def evaluate_events(events: Iterable[DeviceEvent], requested_at_ms: int,
                    clock_skew_ms: int = 2000) -> Optional[OtaState]:
    """
    Fold the event log into an OTA state for a given request.

    Events timestamped before the request (minus clock skew) are ignored.
    Failure wins over done, done over started. Returns None when nothing
    relevant has happened yet.
    """
    has_start = has_done = has_fail = False
    start_ms = done_ms = None
    fail_msg = None

    for event in events:
        t = parse_event_ms(event)
        if t and t + clock_skew_ms < requested_at_ms:
            continue
        if event.event_type == "OTA_START":
            has_start = True
            start_ms = _earliest(start_ms, t)
        elif event.event_type == "OTA_DONE":
            has_done = True
            done_ms = _earliest(done_ms, t)
        elif event.event_type == "OTA_FAIL":
            has_fail = True
            fail_msg = failure_message(event.detail)

    if has_fail:
        return OtaState(state="failed", requested_at_ms=requested_at_ms, message=fail_msg)
    if has_done:
        return OtaState(state="done", requested_at_ms=requested_at_ms, done_at_ms=done_ms)
    if has_start:
        return OtaState(state="started", requested_at_ms=requested_at_ms, started_at_ms=start_ms)
    return None


class OtaTracker:
    """Per-device OTA state machine with background polling tasks"""

    def __init__(self, client, clock: Callable[[], int] = now_ms,
                 poll_interval: Optional[float] = None, timeout: Optional[float] = None,
                 event_limit: Optional[int] = None, clock_skew_ms: Optional[int] = None):
        self.client = client
        self.clock = clock
        self.poll_interval = settings.ota_poll_interval if poll_interval is None else poll_interval
        self.timeout_ms = int((settings.ota_timeout if timeout is None else timeout) * 1000)
        self.event_limit = settings.ota_event_limit if event_limit is None else event_limit
        self.clock_skew_ms = settings.ota_clock_skew_ms if clock_skew_ms is None else clock_skew_ms
        self._states: Dict[str, OtaState] = {}
        self._tasks: Dict[str, asyncio.Task] = {}

    def state(self, device_id: str, current_ms: Optional[int] = None) -> OtaState:
        """Current state with the countdown filled in while active"""
        st = self._states.get(device_id) or OtaState()
        if st.active and st.requested_at_ms is not None:
            current = self.clock() if current_ms is None else current_ms
            left = self.timeout_ms - (current - st.requested_at_ms)
            return st.model_copy(update={"remaining": format_left(left)})
        return st

    def is_polling(self, device_id: str) -> bool:
        task = self._tasks.get(device_id)
        return task is not None and not task.done()

    def _is_tracking(self, device_id: str, requested_at_ms: int) -> bool:
        st = self._states.get(device_id)
        return st is not None and st.active and st.requested_at_ms == requested_at_ms

    async def start(self, device_id: str) -> OtaState:
        """Trigger an update and begin watching its progress; no-op while one is active"""
        current = self._states.get(device_id)
        if current is not None and current.active:
            logger.info("OTA already in progress", device_id=device_id, state=current.state)
            return self.state(device_id)

        requested_at = self.clock()
        self._states[device_id] = OtaState(state="requested", requested_at_ms=requested_at)

        try:
            await self.client.execute(M_ADMIN_TRIGGER_OTA, {"deviceId": device_id})
        except DashboardError as e:
            logger.error("OTA trigger failed", device_id=device_id, error=str(e))
            self._states[device_id] = OtaState()
            raise

        logger.info("OTA triggered", device_id=device_id, requested_at_ms=requested_at)

        # first check right away
        try:
            if await self.poll_once(device_id, requested_at):
                return self.state(device_id)
        except (DashboardError, ValidationError) as e:
            logger.warning("OTA poll failed", device_id=device_id, error=str(e))

        if not self._is_tracking(device_id, requested_at):
            return self.state(device_id)

        self._cancel_task(device_id)
        self._tasks[device_id] = asyncio.create_task(self._poll_loop(device_id, requested_at))
        return self.state(device_id)

    async def poll_once(self, device_id: str, requested_at_ms: int) -> bool:
        """
        Read the event log once and advance the state.

        Returns:
            True when polling should stop (terminal state or no longer tracked)
        """
        data = await self.client.execute(Q_GET_DEVICE_EVENTS, {"deviceId": device_id, "limit": self.event_limit})
        events = [DeviceEvent.model_validate(e) for e in data.get("getDeviceEvents") or []]

        if not self._is_tracking(device_id, requested_at_ms):
            return True

        outcome = evaluate_events(events, requested_at_ms, self.clock_skew_ms)
        if outcome is None:
            return False

        previous = self._states[device_id].state
        self._states[device_id] = outcome
        if outcome.state != previous:
            logger.info("OTA state changed", device_id=device_id, old_state=previous, new_state=outcome.state,
                        message=outcome.message)
        return not outcome.active

    async def _poll_loop(self, device_id: str, requested_at_ms: int) -> None:
        deadline = requested_at_ms + self.timeout_ms
        try:
            while True:
                await asyncio.sleep(self.poll_interval)
                if not self._is_tracking(device_id, requested_at_ms):
                    return
                if self.clock() > deadline:
                    self._states[device_id] = OtaState(state="timeout", requested_at_ms=requested_at_ms)
                    logger.warning("OTA timed out", device_id=device_id)
                    return
                try:
                    if await self.poll_once(device_id, requested_at_ms):
                        return
                except (DashboardError, ValidationError) as e:
                    logger.warning("OTA poll failed, retrying next tick", device_id=device_id, error=str(e))
        finally:
            if self._tasks.get(device_id) is asyncio.current_task():
                del self._tasks[device_id]

    def _cancel_task(self, device_id: str) -> Optional[asyncio.Task]:
        task = self._tasks.pop(device_id, None)
        if task is not None and not task.done():
            task.cancel()
        return task

    def stop(self, device_id: str) -> OtaState:
        """Stop watching a device; the update on the device keeps running"""
        self._cancel_task(device_id)
        current = self._states.get(device_id)
        if current is not None and current.active:
            self._states[device_id] = OtaState()
            logger.info("OTA polling stopped", device_id=device_id)
        return self.state(device_id)

    async def close(self) -> None:
        tasks = [t for t in (self._cancel_task(d) for d in list(self._tasks)) if t is not None]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
