"""Gateway websocket transport using aiohttp.

The session manager talks to GatewayConnection objects only, so tests can
swap in an in-memory transport.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional, Protocol

import aiohttp

from floorbot.domain.errors import TransportError

logger = logging.getLogger(__name__)

GATEWAY_VERSION = 10
GATEWAY_QUERY = f"?v={GATEWAY_VERSION}&encoding=json"

# Close code reported when the socket drops without a close frame
ABNORMAL_CLOSURE = 1006


class GatewayConnection(Protocol):
    close_code: Optional[int]

    async def receive(self) -> Optional[Dict[str, Any]]:
        """Next decoded payload, or None once the socket is closed."""
        ...

    async def send(self, payload: Dict[str, Any]) -> None: ...

    async def close(self, code: int = 1000) -> None: ...


class GatewayTransport(Protocol):
    async def connect(self, url: str) -> GatewayConnection: ...


def gateway_endpoint(base_url: str) -> str:
    """Append the version/encoding query to a gateway or resume URL."""
    if "?" in base_url:
        return base_url
    return base_url.rstrip("/") + "/" + GATEWAY_QUERY


class AiohttpGatewayConnection:
    """One websocket connection; owns its ClientSession."""

    def __init__(self, session: aiohttp.ClientSession, ws: aiohttp.ClientWebSocketResponse):
        self._session = session
        self._ws = ws
        self.close_code: Optional[int] = None
        self._close_lock = asyncio.Lock()

    async def receive(self) -> Optional[Dict[str, Any]]:
        msg = await self._ws.receive()

        if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
            try:
                raw = msg.data if isinstance(msg.data, str) else msg.data.decode("utf-8")
                payload = json.loads(raw)
            except ValueError as e:
                raise TransportError(f"undecodable gateway frame: {e}") from e
            if not isinstance(payload, dict):
                raise TransportError("gateway frame is not a JSON object")
            return payload

        if msg.type == aiohttp.WSMsgType.ERROR:
            self.close_code = self._ws.close_code or ABNORMAL_CLOSURE
            raise TransportError(f"websocket error: {self._ws.exception()}", self.close_code)

        if msg.type == aiohttp.WSMsgType.CLOSING:
            # Our own close() woke this reader; it still has to write the close frame
            if self.close_code is None:
                self.close_code = self._ws.close_code or ABNORMAL_CLOSURE
            return None

        # CLOSE / CLOSED: the server ended the connection
        if msg.type == aiohttp.WSMsgType.CLOSE and isinstance(msg.data, int):
            self.close_code = msg.data
        else:
            self.close_code = self._ws.close_code or ABNORMAL_CLOSURE
        await self._release()
        return None

    async def send(self, payload: Dict[str, Any]) -> None:
        if self._ws.closed:
            raise TransportError("websocket is closed", self._ws.close_code)
        try:
            await self._ws.send_str(json.dumps(payload, separators=(",", ":")))
        except (aiohttp.ClientError, ConnectionResetError, RuntimeError) as e:
            raise TransportError(f"send failed: {e}") from e

    async def close(self, code: int = 1000) -> None:
        # The heartbeat task and the read loop may both close; the second waits
        async with self._close_lock:
            if self.close_code is None:
                self.close_code = code
            try:
                if not self._ws.closed:
                    await self._ws.close(code=code)
            finally:
                await self._release()

    async def _release(self) -> None:
        if not self._session.closed:
            await self._session.close()


class AiohttpGatewayTransport:
    """Opens gateway websockets with a fresh ClientSession per connection."""

    def __init__(self, connect_timeout: float = 30.0):
        self._connect_timeout = connect_timeout

    async def connect(self, url: str) -> AiohttpGatewayConnection:
        session = aiohttp.ClientSession()
        try:
            ws = await asyncio.wait_for(
                session.ws_connect(
                    url,
                    heartbeat=None,  # gateway heartbeats are protocol-level
                    max_msg_size=0,
                ),
                self._connect_timeout,
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            await session.close()
            raise TransportError(f"could not connect to gateway: {e}") from e
        except BaseException:
            await session.close()
            raise
        logger.debug("Gateway websocket open: %s", url)
        return AiohttpGatewayConnection(session, ws)
