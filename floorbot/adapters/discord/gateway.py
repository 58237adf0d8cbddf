"""Discord gateway session manager.

Owns the single gateway websocket. Responsibilities:
- handshake (Hello -> Identify / Resume) and initial guild sync
- protocol heartbeats, zombie-connection detection
- reconnect with capped, jittered exponential backoff and session resume
- relay MESSAGE_CREATE events to registered callbacks while READY
- expose send_reply() as the only way for other components to talk back

Nothing outside this module touches the connection.
"""

import asyncio
import logging
import random
import sys
import time
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, Set

import discord

from floorbot.adapters.discord.backoff import ReconnectBackoff
from floorbot.adapters.discord.rest import MAX_MESSAGE_LENGTH, DiscordRestClient
from floorbot.adapters.discord.transport import (
    AiohttpGatewayTransport,
    GatewayConnection,
    GatewayTransport,
    gateway_endpoint,
)
from floorbot.domain.errors import FatalGatewayError, SendError, TransportError
from floorbot.domain.models import HealthStatus, SessionState
from floorbot.ports.inbound import MessageEvent

logger = logging.getLogger(__name__)

DISCORD_GATEWAY_URL = "wss://gateway.discord.gg"

# Gateway opcodes
OP_DISPATCH = 0
OP_HEARTBEAT = 1
OP_IDENTIFY = 2
OP_RESUME = 6
OP_RECONNECT = 7
OP_INVALID_SESSION = 9
OP_HELLO = 10
OP_HEARTBEAT_ACK = 11

# Authentication failed, invalid shard, sharding required, invalid API
# version, invalid intents, disallowed intents
FATAL_CLOSE_CODES = frozenset({4004, 4010, 4011, 4012, 4013, 4014})
# Invalid seq, session timed out: the session cannot be resumed
SESSION_RESET_CLOSE_CODES = frozenset({4007, 4009})
# Close code for self-initiated drops; anything but 1000/1001 keeps the session resumable
RESUMABLE_CLOSE_CODE = 4000

MAX_MISSED_ACKS = 2
MAX_BUFFERED_EVENTS = 100

MessageCallback = Callable[[MessageEvent], Awaitable[None]]
StateListener = Callable[[SessionState], None]


def default_intents() -> int:
    """Guild + DM messages with content, plus guilds for the initial sync."""
    intents = discord.Intents.none()
    intents.guilds = True
    intents.guild_messages = True
    intents.dm_messages = True
    intents.message_content = True
    return intents.value


class GatewaySessionManager:
    """State machine over one persistent gateway connection.

    DISCONNECTED -> CONNECTING -> AUTHENTICATED -> READY, with RECONNECTING
    entered on any connection loss and FAILED when the gateway refuses the
    session for good or the reconnect budget runs out.
    """

    def __init__(
        self,
        token: str,
        *,
        rest: DiscordRestClient,
        transport: Optional[GatewayTransport] = None,
        backoff: Optional[ReconnectBackoff] = None,
        gateway_url: str = DISCORD_GATEWAY_URL,
        intents: Optional[int] = None,
        hello_timeout: float = 30.0,
        guild_ready_timeout: float = 2.0,
        rng: Optional[random.Random] = None,
    ):
        self._token = token
        self._rest = rest
        self._transport = transport or AiohttpGatewayTransport()
        self._backoff = backoff or ReconnectBackoff()
        self._gateway_url = gateway_url
        self._intents = default_intents() if intents is None else intents
        self._hello_timeout = hello_timeout
        self._guild_ready_timeout = guild_ready_timeout
        self._rng = rng or random.Random()

        self._state = SessionState.DISCONNECTED
        self._message_callbacks: List[MessageCallback] = []
        self._state_listeners: List[StateListener] = []
        self._ready_event = asyncio.Event()
        self._close_event: Optional[asyncio.Event] = None
        self._closing = False
        self._conn: Optional[GatewayConnection] = None

        # Resumable session
        self._session_id: Optional[str] = None
        self._resume_url: Optional[str] = None
        self._seq: Optional[int] = None
        self.user_id: Optional[str] = None

        # Heartbeat
        self._heartbeat_task: Optional[asyncio.Task] = None
        self._awaiting_ack = False
        self._missed_acks = 0
        self._last_heartbeat_sent: Optional[float] = None
        self.latency: Optional[float] = None

        # Initial sync
        self._pending_guilds: Set[str] = set()
        self._guild_sync_task: Optional[asyncio.Task] = None
        self._marking_ready = False
        self._buffer: Deque[MessageEvent] = deque(maxlen=MAX_BUFFERED_EVENTS)

    # --------------------------------------------------
    # Registration / introspection
    # --------------------------------------------------

    def on_message(self, callback: MessageCallback) -> MessageCallback:
        """Register a coroutine called with every MessageEvent while READY."""
        self._message_callbacks.append(callback)
        return callback

    def add_state_listener(self, listener: StateListener) -> None:
        self._state_listeners.append(listener)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    @property
    def sequence(self) -> Optional[int]:
        return self._seq

    @property
    def reconnect_attempts(self) -> int:
        return self._backoff.attempts

    def health(self) -> HealthStatus:
        if self._state == SessionState.FAILED:
            return HealthStatus.DEGRADED
        return HealthStatus.OK

    def snapshot(self) -> Dict[str, Any]:
        return {
            "state": self._state.value,
            "health": self.health().value,
            "session": self._session_id is not None,
            "sequence": self._seq,
            "reconnect_attempts": self._backoff.attempts,
            "latency_ms": round(self.latency * 1000, 1) if self.latency is not None else None,
            "user_id": self.user_id,
        }

    async def wait_until_ready(self) -> None:
        await self._ready_event.wait()

    def _set_state(self, state: SessionState) -> None:
        if state == self._state:
            return
        previous, self._state = self._state, state
        logger.info("Gateway state %s -> %s", previous.value, state.value)
        if state == SessionState.READY:
            self._ready_event.set()
        else:
            self._ready_event.clear()
        for listener in list(self._state_listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Gateway state listener failed")

    # --------------------------------------------------
    # Lifecycle
    # --------------------------------------------------

    async def run(self) -> None:
        """Drive the connection until close() or a permanent failure."""
        self._closing = False
        self._close_event = asyncio.Event()
        try:
            while not self._closing:
                self._set_state(SessionState.CONNECTING)
                try:
                    await self._run_connection()
                except FatalGatewayError as e:
                    logger.error("Gateway refused the session: %s", e)
                    self._set_state(SessionState.FAILED)
                    return
                except TransportError as e:
                    if not self._closing:
                        logger.warning("Gateway connection lost: %s", e)
                except Exception:
                    logger.exception("Gateway connection failed unexpectedly")
                    self._set_state(SessionState.FAILED)
                    return

                if self._closing:
                    break

                self._set_state(SessionState.RECONNECTING)
                delay = self._backoff.next_delay()
                if delay is None:
                    logger.error(
                        "Gateway reconnect attempts exhausted after %d tries",
                        self._backoff.attempts,
                    )
                    self._set_state(SessionState.FAILED)
                    return
                logger.info("Reconnecting in %.2fs (attempt %d)", delay, self._backoff.attempts)
                await self._sleep_unless_closing(delay)
        finally:
            await self._teardown_connection()
            if self._state != SessionState.FAILED:
                self._set_state(SessionState.DISCONNECTED)

    async def close(self) -> None:
        """Send a normal close frame and stop. Idempotent."""
        if self._closing:
            return
        self._closing = True
        if self._close_event is not None:
            self._close_event.set()

        conn = self._conn
        await self._stop_heartbeat()
        if conn is not None:
            logger.info("Closing gateway connection")
            try:
                await conn.close(1000)
            except TransportError as e:
                logger.warning("Error while closing gateway connection: %s", e)

        if self._state != SessionState.FAILED:
            self._set_state(SessionState.DISCONNECTED)

    async def _sleep_unless_closing(self, delay: float) -> None:
        try:
            await asyncio.wait_for(self._close_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    # --------------------------------------------------
    # One connection
    # --------------------------------------------------

    def _can_resume(self) -> bool:
        return self._session_id is not None and self._seq is not None

    def _reset_session(self) -> None:
        self._session_id = None
        self._resume_url = None
        self._seq = None

    async def _run_connection(self) -> None:
        resuming = self._can_resume()
        url = gateway_endpoint((self._resume_url or self._gateway_url) if resuming else self._gateway_url)
        conn = await self._transport.connect(url)
        if self._closing:
            await conn.close(1000)
            return
        self._conn = conn
        self._marking_ready = False
        try:
            interval = await self._receive_hello(conn)
            self._start_heartbeat(conn, interval)

            if resuming:
                logger.info("Resuming gateway session %s at seq %s", self._session_id, self._seq)
                await conn.send(self._resume_payload())
            else:
                await conn.send(self._identify_payload())

            while True:
                payload = await conn.receive()
                if payload is None:
                    self._raise_for_close(conn.close_code)
                    return
                await self._handle_payload(conn, payload)
        finally:
            if not self._closing:
                try:
                    await conn.close(RESUMABLE_CLOSE_CODE)
                except TransportError:
                    pass
            await self._teardown_connection()

    async def _receive_hello(self, conn: GatewayConnection) -> float:
        try:
            payload = await asyncio.wait_for(conn.receive(), timeout=self._hello_timeout)
        except asyncio.TimeoutError as e:
            raise TransportError(f"no Hello within {self._hello_timeout}s") from e
        if payload is None:
            self._raise_for_close(conn.close_code)
            raise TransportError("connection closed before Hello")
        if payload.get("op") != OP_HELLO:
            raise TransportError(f"expected Hello, got op {payload.get('op')}")
        interval_ms = (payload.get("d") or {}).get("heartbeat_interval")
        if not interval_ms:
            raise TransportError("Hello without heartbeat_interval")
        return float(interval_ms) / 1000.0

    def _raise_for_close(self, code: Optional[int]) -> None:
        if self._closing:
            return
        if code in FATAL_CLOSE_CODES:
            raise FatalGatewayError(f"gateway closed with code {code}", code)
        if code in SESSION_RESET_CLOSE_CODES:
            logger.info("Gateway close code %s invalidated the session", code)
            self._reset_session()
        raise TransportError(f"gateway closed with code {code}", code)

    async def _teardown_connection(self) -> None:
        await self._stop_heartbeat()
        task, self._guild_sync_task = self._guild_sync_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        self._conn = None

    def _identify_payload(self) -> Dict[str, Any]:
        return {
            "op": OP_IDENTIFY,
            "d": {
                "token": self._token,
                "intents": self._intents,
                "properties": {
                    "os": sys.platform,
                    "browser": "floorbot",
                    "device": "floorbot",
                },
            },
        }

    def _resume_payload(self) -> Dict[str, Any]:
        return {
            "op": OP_RESUME,
            "d": {
                "token": self._token,
                "session_id": self._session_id,
                "seq": self._seq,
            },
        }

    # --------------------------------------------------
    # Inbound frames
    # --------------------------------------------------

    async def _handle_payload(self, conn: GatewayConnection, payload: Dict[str, Any]) -> None:
        op = payload.get("op")
        seq = payload.get("s")
        if seq is not None:
            self._seq = seq

        if op == OP_DISPATCH:
            await self._handle_dispatch(payload.get("t"), payload.get("d") or {})
        elif op == OP_HEARTBEAT_ACK:
            self._on_heartbeat_ack()
        elif op == OP_HEARTBEAT:
            await self._send_heartbeat(conn)
        elif op == OP_RECONNECT:
            logger.info("Gateway asked for a reconnect")
            await conn.close(RESUMABLE_CLOSE_CODE)
            raise TransportError("gateway requested reconnect")
        elif op == OP_INVALID_SESSION:
            resumable = bool(payload.get("d"))
            logger.warning("Gateway invalidated the session (resumable=%s)", resumable)
            if not resumable:
                self._reset_session()
            await conn.close(RESUMABLE_CLOSE_CODE)
            raise TransportError("invalid session")
        else:
            logger.debug("Ignoring gateway op %s", op)

    async def _handle_dispatch(self, event_type: Optional[str], data: Dict[str, Any]) -> None:
        if event_type == "READY":
            self._session_id = data.get("session_id")
            self._resume_url = data.get("resume_gateway_url")
            user_id = (data.get("user") or {}).get("id")
            self.user_id = str(user_id) if user_id is not None else None
            self._pending_guilds = {
                str(g["id"]) for g in data.get("guilds") or [] if isinstance(g, dict) and "id" in g
            }
            self._set_state(SessionState.AUTHENTICATED)
            logger.info(
                "Gateway session %s established as user %s (%d guilds to sync)",
                self._session_id,
                self.user_id,
                len(self._pending_guilds),
            )
            if self._pending_guilds:
                self._guild_sync_task = asyncio.create_task(self._guild_sync_timeout())
            else:
                await self._mark_ready()

        elif event_type == "RESUMED":
            self._set_state(SessionState.AUTHENTICATED)
            logger.info("Gateway session %s resumed", self._session_id)
            await self._mark_ready()

        elif event_type == "GUILD_CREATE":
            self._pending_guilds.discard(str(data.get("id")))
            if self._state == SessionState.AUTHENTICATED and not self._pending_guilds:
                await self._mark_ready()

        elif event_type == "MESSAGE_CREATE":
            event = MessageEvent.from_payload(data)
            if self.user_id is not None and event.author_id == self.user_id:
                return
            if self._state == SessionState.READY:
                await self._relay(event)
            else:
                # Replayed on resume or sent during the initial sync
                self._buffer.append(event)

    async def _guild_sync_timeout(self) -> None:
        await asyncio.sleep(self._guild_ready_timeout)
        if self._state == SessionState.AUTHENTICATED:
            logger.info("Guild sync timed out with %d guilds pending", len(self._pending_guilds))
            await self._mark_ready()

    async def _mark_ready(self) -> None:
        if self._marking_ready or self._state == SessionState.READY:
            return
        self._marking_ready = True

        task = self._guild_sync_task
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            self._guild_sync_task = None

        # No await between the emptiness check and the READY transition
        while self._buffer:
            await self._relay(self._buffer.popleft())
        self._set_state(SessionState.READY)
        self._backoff.reset()

    async def _relay(self, event: MessageEvent) -> None:
        for callback in list(self._message_callbacks):
            try:
                await callback(event)
            except Exception:
                logger.exception("Message callback failed for message %s", event.message_id)

    # --------------------------------------------------
    # Heartbeat
    # --------------------------------------------------

    def _start_heartbeat(self, conn: GatewayConnection, interval: float) -> None:
        self._awaiting_ack = False
        self._missed_acks = 0
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop(conn, interval))

    async def _stop_heartbeat(self) -> None:
        task, self._heartbeat_task = self._heartbeat_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    async def _heartbeat_loop(self, conn: GatewayConnection, interval: float) -> None:
        try:
            await asyncio.sleep(interval * self._rng.random())
            while True:
                if self._awaiting_ack:
                    self._missed_acks += 1
                    if self._missed_acks >= MAX_MISSED_ACKS:
                        logger.warning(
                            "No heartbeat ACK for %d intervals, dropping connection",
                            self._missed_acks,
                        )
                        await conn.close(RESUMABLE_CLOSE_CODE)
                        return
                await self._send_heartbeat(conn)
                await asyncio.sleep(interval)
        except TransportError as e:
            logger.warning("Heartbeat failed: %s", e)
            await conn.close(RESUMABLE_CLOSE_CODE)

    async def _send_heartbeat(self, conn: GatewayConnection) -> None:
        await conn.send({"op": OP_HEARTBEAT, "d": self._seq})
        self._awaiting_ack = True
        self._last_heartbeat_sent = time.perf_counter()

    def _on_heartbeat_ack(self) -> None:
        self._awaiting_ack = False
        self._missed_acks = 0
        if self._last_heartbeat_sent is not None:
            self.latency = time.perf_counter() - self._last_heartbeat_sent

    # --------------------------------------------------
    # Outbound
    # --------------------------------------------------

    async def send_reply(self, channel_id: str, text: str) -> None:
        """Post text to a channel. Raises SendError unless READY or if Discord rejects it.

        Text over Discord's 2000 character cap is truncated, not rejected.
        """
        if self._state != SessionState.READY:
            raise SendError(f"gateway not ready (state={self._state.value})")
        if not text or not text.strip():
            raise SendError("refusing to send an empty message")
        if len(text) > MAX_MESSAGE_LENGTH:
            logger.info("Truncating %d character reply to %d", len(text), MAX_MESSAGE_LENGTH)
            text = DiscordRestClient.truncate_text(text)
        await self._rest.create_message(channel_id, text)
