"""Tests for the aiohttp gateway transport against a local websocket server."""

import asyncio
import contextlib

import pytest
from aiohttp import test_utils, web

from floorbot.adapters.discord.transport import AiohttpGatewayTransport
from floorbot.domain.errors import TransportError


@contextlib.asynccontextmanager
async def _ws_server(behaviour):
    """Serve /ws, run `behaviour(ws)` per connection and record the close code it saw."""
    seen = {"codes": [], "done": asyncio.Event()}

    async def handler(request):
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        try:
            await behaviour(ws)
            async for _ in ws:
                pass
        finally:
            seen["codes"].append(ws.close_code)
            seen["done"].set()
        return ws

    app = web.Application()
    app.router.add_get("/ws", handler)
    server = test_utils.TestServer(app)
    await server.start_server()
    try:
        yield str(server.make_url("/ws")), seen
    finally:
        await server.close()


async def _idle(ws):
    pass


async def _connect(url):
    return await AiohttpGatewayTransport(connect_timeout=5).connect(url)


class TestClose:
    @pytest.mark.asyncio
    async def test_close_frame_sent_while_receive_pending(self):
        async with _ws_server(_idle) as (url, seen):
            conn = await _connect(url)
            pending = asyncio.create_task(conn.receive())
            await asyncio.sleep(0.05)

            await conn.close(1000)

            assert await asyncio.wait_for(pending, 2) is None
            await asyncio.wait_for(seen["done"].wait(), 2)
            assert seen["codes"] == [1000]
            assert conn.close_code == 1000

    @pytest.mark.asyncio
    async def test_resumable_close_code_reaches_server(self):
        async with _ws_server(_idle) as (url, seen):
            conn = await _connect(url)
            pending = asyncio.create_task(conn.receive())
            await asyncio.sleep(0.05)

            # heartbeat task and read loop both closing
            await asyncio.gather(conn.close(4000), conn.close(4000))

            assert await asyncio.wait_for(pending, 2) is None
            await asyncio.wait_for(seen["done"].wait(), 2)
            assert seen["codes"] == [4000]

    @pytest.mark.asyncio
    async def test_server_close_code_reported(self):
        async def reject(ws):
            await ws.close(code=4004, message=b"Authentication failed")

        async with _ws_server(reject) as (url, _):
            conn = await _connect(url)
            assert await asyncio.wait_for(conn.receive(), 2) is None
            assert conn.close_code == 4004
            await conn.close()


class TestFrames:
    @pytest.mark.asyncio
    async def test_json_object_round_trip(self):
        async def echo(ws):
            msg = await ws.receive()
            await ws.send_str(msg.data)

        async with _ws_server(echo) as (url, _):
            conn = await _connect(url)
            await conn.send({"op": 1, "d": 7})
            assert await asyncio.wait_for(conn.receive(), 2) == {"op": 1, "d": 7}
            await conn.close()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("frame", ["[1, 2]", "not json", b"\xff\xfe"])
    async def test_bad_frames_raise(self, frame):
        async def send_bad(ws):
            if isinstance(frame, bytes):
                await ws.send_bytes(frame)
            else:
                await ws.send_str(frame)

        async with _ws_server(send_bad) as (url, _):
            conn = await _connect(url)
            with pytest.raises(TransportError):
                await asyncio.wait_for(conn.receive(), 2)
            await conn.close()

    @pytest.mark.asyncio
    async def test_send_after_close_raises(self):
        async with _ws_server(_idle) as (url, _):
            conn = await _connect(url)
            await conn.close()
            with pytest.raises(TransportError):
                await conn.send({"op": 1, "d": None})


class TestConnect:
    @pytest.mark.asyncio
    async def test_handshake_rejected(self):
        async with _ws_server(_idle) as (url, _):
            bad_url = url.replace("/ws", "/missing")
            with pytest.raises(TransportError):
                await _connect(bad_url)
