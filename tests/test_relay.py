"""
Tests for the relay hub.

These tests cover:
- Broadcast policy (exclude / include sender)
- Verbatim forwarding
- Non-JSON messages
- Closed connections
"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
import websockets
from websockets.asyncio.client import connect

from smsimg.core.config import BroadcastPolicy
from smsimg.network.relay import RelayHub
from smsimg.server.server import RelayServer


def make_conn():
    ws = MagicMock()
    ws.send = AsyncMock()
    return ws


async def wait_for_clients(server: RelayServer, count: int) -> None:
    for _ in range(100):
        if len(server.hub) >= count:
            return
        await asyncio.sleep(0.01)
    raise AssertionError(f"expected {count} clients, have {len(server.hub)}")


class TestRelayHub:
    """Tests for RelayHub.relay()."""

    @pytest.mark.asyncio
    async def test_exclude_sender(self):
        """Default policy skips the sender."""
        hub = RelayHub()
        a, b, c = make_conn(), make_conn(), make_conn()
        for ws in (a, b, c):
            hub.add(ws)

        sent = await hub.relay('{"type":"NEW_IMAGE"}', a)

        assert sent == 2
        a.send.assert_not_awaited()
        b.send.assert_awaited_once_with('{"type":"NEW_IMAGE"}')
        c.send.assert_awaited_once_with('{"type":"NEW_IMAGE"}')

    @pytest.mark.asyncio
    async def test_include_sender(self):
        """Include policy echoes to the sender too."""
        hub = RelayHub(BroadcastPolicy.INCLUDE_SENDER)
        a, b = make_conn(), make_conn()
        hub.add(a)
        hub.add(b)

        assert await hub.relay("{}", a) == 2
        a.send.assert_awaited_once_with("{}")

    @pytest.mark.asyncio
    async def test_non_json_dropped(self):
        """Non-JSON is not forwarded."""
        hub = RelayHub()
        a, b = make_conn(), make_conn()
        hub.add(a)
        hub.add(b)

        assert await hub.relay("hello?", a) == 0
        b.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_closed_connection_skipped(self):
        """A closed target does not stop the broadcast."""
        hub = RelayHub()
        a, b, c = make_conn(), make_conn(), make_conn()
        b.send.side_effect = websockets.ConnectionClosed(None, None)
        for ws in (a, b, c):
            hub.add(ws)

        assert await hub.relay("{}", a) == 1
        c.send.assert_awaited_once()

    def test_add_remove(self):
        """Connection set bookkeeping."""
        hub = RelayHub()
        ws = make_conn()
        hub.add(ws)
        assert len(hub) == 1
        hub.remove(ws)
        hub.remove(ws)
        assert len(hub) == 0


class TestRelayOverWebSocket:
    """End-to-end tests against a running relay."""

    @pytest.mark.asyncio
    async def test_broadcast_to_others(self, relay_server):
        """Message reaches the other client verbatim, not the sender."""
        text = json.dumps({"type": "NEW_IMAGE", "payload": "QUJD", "checksum": "ff", "enc": 0, "total": 1})

        async with connect(relay_server.url) as a, connect(relay_server.url) as b:
            await wait_for_clients(relay_server, 2)
            await a.send(text)

            assert await asyncio.wait_for(b.recv(), 2) == text
            with pytest.raises(asyncio.TimeoutError):
                await asyncio.wait_for(a.recv(), 0.2)

    @pytest.mark.asyncio
    async def test_include_sender_policy(self):
        """Sender gets its own message back under the include policy."""
        server = RelayServer(host="127.0.0.1", port=0, policy=BroadcastPolicy.INCLUDE_SENDER)
        await server.start()
        try:
            async with connect(server.url) as a:
                await wait_for_clients(server, 1)
                await a.send('{"type":"SMS"}')
                assert await asyncio.wait_for(a.recv(), 2) == '{"type":"SMS"}'
        finally:
            await server.stop()

    @pytest.mark.asyncio
    async def test_malformed_message_keeps_connection(self, relay_server):
        """Non-JSON is dropped and the sender stays connected."""
        async with connect(relay_server.url) as a, connect(relay_server.url) as b:
            await wait_for_clients(relay_server, 2)
            await a.send("this is not json")
            await a.send('{"type":"SMS","text":"after"}')

            assert await asyncio.wait_for(b.recv(), 2) == '{"type":"SMS","text":"after"}'
            assert len(relay_server.hub) == 2

    @pytest.mark.asyncio
    async def test_disconnect_removes_client(self, relay_server):
        """Closed clients leave the connection set."""
        async with connect(relay_server.url):
            await wait_for_clients(relay_server, 1)

        for _ in range(100):
            if len(relay_server.hub) == 0:
                break
            await asyncio.sleep(0.01)
        assert len(relay_server.hub) == 0
