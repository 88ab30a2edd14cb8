"""
Live production feed (WebSocket prototype)
Receives DynamoDB-stream-shaped count updates from an API Gateway WebSocket
and keeps a short rolling chart per device.
"""

import asyncio
import json
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional

import aiohttp
import structlog

from prodmon.core.config import settings

logger = structlog.get_logger(__name__)

MessageHandler = Callable[[Dict[str, Any]], None]


def _string_attr(attr) -> Optional[str]:
    if isinstance(attr, dict) and attr.get("S"):
        return attr["S"]
    return None


def _number_attr(attr) -> Optional[float]:
    if isinstance(attr, dict) and attr.get("N"):
        try:
            n = float(attr["N"])
        except (TypeError, ValueError):
            return None
        return int(n) if n.is_integer() else n
    return None


def parse_dynamo_data(data) -> Optional[Dict[str, Any]]:
    """Unwrap DynamoDB attribute values (``{"S": ...}``, ``{"N": ...}``) of a count update"""
    if not isinstance(data, dict):
        return None
    return {
        "action": data.get("action") or None,
        "device_id": _string_attr(data.get("device_id")),
        "on_time": _number_attr(data.get("on_time")),
        "cnt": _number_attr(data.get("cnt")),
        "timestamp": _string_attr(data.get("timestamp")),
    }


class LiveChartBuffer:
    """Latest ``size`` points per device, skipping repeated timestamps"""

    def __init__(self, size: Optional[int] = None):
        self.size = size or settings.live_buffer_size
        self._points: Dict[str, Deque[Dict[str, Any]]] = {}

    def __call__(self, message: Dict[str, Any]) -> None:
        if message.get("action") != "data" or not message.get("device_id"):
            return
        self.add(message["device_id"], message.get("timestamp"), message.get("cnt"))

    def add(self, device_id: str, timestamp: Optional[str], count) -> bool:
        points = self._points.setdefault(device_id, deque(maxlen=self.size))
        if any(p["time"] == timestamp for p in points):
            logger.warning("Duplicate live data", device_id=device_id, timestamp=timestamp)
            return False
        try:
            value = float(count) if count is not None else None
        except (TypeError, ValueError):
            value = None
        points.append({"time": timestamp, "value": value})
        return True

    def devices(self) -> List[str]:
        return sorted(self._points)

    def series(self, device_id: str) -> List[Dict[str, Any]]:
        return list(self._points.get(device_id, ()))


class LiveDeviceDirectory:
    """Device list from the login response; detaches after the first one"""

    def __init__(self, client: "LiveFeedClient"):
        self.client = client
        self.devices: List[str] = []
        self.received = False

    def __call__(self, message: Dict[str, Any]) -> None:
        if message.get("action") != "login":
            return
        self.devices = [str(d) for d in message.get("devices") or []]
        self.received = True
        self.client.unregister_handler(self)


class LiveFeedClient:
    """WebSocket client for the live count feed"""

    def __init__(self, url: Optional[str] = None, login_id: Optional[str] = None,
                 reconnect_delay: Optional[float] = None):
        self.url = url or settings.live_ws_url
        self.login_id = login_id or settings.live_login_id
        self.reconnect_delay = settings.live_reconnect_delay if reconnect_delay is None else reconnect_delay
        self.handlers: List[MessageHandler] = []
        self.running = False
        self.session: Optional[aiohttp.ClientSession] = None
        self.ws: Optional[aiohttp.ClientWebSocketResponse] = None

    def register_handler(self, handler: MessageHandler) -> bool:
        if handler in self.handlers:
            logger.warning("Duplicate handler detected, skipping registration")
            return False
        self.handlers.append(handler)
        return True

    def unregister_handler(self, handler: MessageHandler) -> None:
        self.handlers = [h for h in self.handlers if h is not handler]

    def _emit(self, message: Dict[str, Any]) -> None:
        # handlers may unregister themselves while being called
        for handler in list(self.handlers):
            handler(message)

    def handle_text(self, text: str) -> None:
        """Decode one frame and dispatch it by ``action``"""
        try:
            raw = json.loads(text)
        except ValueError:
            logger.error("Invalid JSON received", data=text[:200])
            return
        if not isinstance(raw, dict):
            logger.warning("Unexpected message shape", data=text[:200])
            return

        action = raw.get("action")
        if action in ("login", "registration"):
            self._emit(raw)
        elif action == "data":
            parsed = parse_dynamo_data(raw)
            if parsed:
                self._emit(parsed)
        elif action == "one_day_data":
            for item in raw.get("items") or []:
                parsed = parse_dynamo_data(item)
                if parsed:
                    parsed["action"] = "data"
                    self._emit(parsed)
        else:
            logger.warning("Unknown action", action=action)

    async def send(self, payload: Dict[str, Any]) -> None:
        if self.ws is None or self.ws.closed:
            raise ConnectionError("Live feed is not connected")
        await self.ws.send_str(json.dumps(payload))

    async def send_registration(self, device_id: str) -> None:
        await self.send({"action": "registration", "login_id": self.login_id, "device_id": device_id})

    async def start(self):
        """Connect and keep the feed running until stopped"""
        self.running = True
        logger.info("Starting live feed", url=self.url, login_id=self.login_id)

        async with aiohttp.ClientSession() as session:
            self.session = session
            await self._listen_loop()

    async def stop(self):
        self.running = False
        if self.ws is not None and not self.ws.closed:
            await self.ws.close()
        logger.info("Live feed stopped")

    async def _listen_loop(self):
        while self.running:
            try:
                await self._listen_once()
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                logger.error("Live feed connection error", error=str(e))
            if self.running:
                await asyncio.sleep(self.reconnect_delay)

    async def _listen_once(self):
        async with self.session.ws_connect(self.url, heartbeat=30) as ws:
            self.ws = ws
            logger.info("WebSocket connected")
            await self.send({"action": "login", "login_id": self.login_id})

            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    self.handle_text(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    logger.error("WebSocket error", error=str(ws.exception()))
                    break
        self.ws = None
        logger.info("WebSocket disconnected")


async def main():
    """Run the live feed standalone, logging each update"""
    client = LiveFeedClient()
    buffer = LiveChartBuffer()
    client.register_handler(LiveDeviceDirectory(client))
    client.register_handler(buffer)
    client.register_handler(lambda message: logger.info("Message recv", **message))

    try:
        await client.start()
    except KeyboardInterrupt:
        logger.info("Received interrupt signal")
    finally:
        await client.stop()

if __name__ == "__main__":
    asyncio.run(main())
