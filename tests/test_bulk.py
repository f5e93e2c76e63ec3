"""
Tests for the bulk-channel client.

These tests cover:
- Connecting and status
- Message and payload dispatch
- Sending while disconnected
- Reconnection
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from websockets.asyncio.client import connect

from smsimg.core.exceptions import BulkChannelNotConnectedError
from smsimg.core.message import BulkPayloadMessage
from smsimg.network.bulk import BulkChannel, ChannelStatus
from smsimg.server.server import RelayServer


async def wait_until(predicate, timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.01)


class TestDispatch:
    """Tests for _dispatch() without a socket."""

    @pytest.mark.asyncio
    async def test_payload_message(self):
        """NEW_IMAGE goes to message and payload handlers."""
        channel = BulkChannel("ws://127.0.0.1:1")
        on_message = AsyncMock()
        on_payload = AsyncMock()
        channel.on_message(on_message)
        channel.on_payload(on_payload)

        data = {"type": "NEW_IMAGE", "payload": "QUJD", "checksum": "ff", "enc": 0, "total": 1}
        await channel._dispatch(json.dumps(data))

        on_message.assert_awaited_once_with(data)
        on_payload.assert_awaited_once()
        assert on_payload.await_args.args[0] == BulkPayloadMessage(**data)

    @pytest.mark.asyncio
    async def test_other_message(self):
        """Other types reach message handlers only."""
        channel = BulkChannel("ws://127.0.0.1:1")
        on_message = AsyncMock()
        on_payload = AsyncMock()
        channel.on_message(on_message)
        channel.on_payload(on_payload)

        await channel._dispatch('{"type":"SMS","to":"+1","text":"hi"}')

        on_message.assert_awaited_once()
        on_payload.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_messages_ignored(self):
        """Non-JSON and incomplete NEW_IMAGE messages are dropped."""
        channel = BulkChannel("ws://127.0.0.1:1")
        on_payload = AsyncMock()
        channel.on_payload(on_payload)

        await channel._dispatch("not json")
        await channel._dispatch("[1, 2, 3]")
        await channel._dispatch('{"type":"NEW_IMAGE","payload":"x"}')

        on_payload.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_send_when_disconnected(self):
        """Sending without a connection raises."""
        channel = BulkChannel("ws://127.0.0.1:1")
        assert channel.status == ChannelStatus.DISCONNECTED
        with pytest.raises(BulkChannelNotConnectedError):
            await channel.send_json({"type": "SMS"})


class TestConnection:
    """Tests against a running relay."""

    @pytest.mark.asyncio
    async def test_connect_and_receive(self, relay_server):
        """Payloads sent by another client arrive at the payload handler."""
        channel = BulkChannel(relay_server.url, reconnect_interval=0.05)
        received = []

        async def on_payload(message):
            received.append(message)

        channel.on_payload(on_payload)
        await channel.start()
        try:
            assert await channel.wait_connected(2)
            assert channel.is_connected
            assert channel.status == ChannelStatus.CONNECTED

            message = BulkPayloadMessage(payload="QUJD", checksum="ff", enc=0, total=1)
            async with connect(relay_server.url) as other:
                await wait_until(lambda: len(relay_server.hub) == 2)
                await other.send(message.to_json())
                await wait_until(lambda: len(received) == 1)

            assert received[0] == message
        finally:
            await channel.stop()

        assert channel.status == ChannelStatus.DISCONNECTED
        assert not channel.is_running

    @pytest.mark.asyncio
    async def test_send_payload(self, relay_server):
        """send_payload puts the NEW_IMAGE JSON on the wire."""
        channel = BulkChannel(relay_server.url)
        await channel.start()
        try:
            assert await channel.wait_connected(2)
            async with connect(relay_server.url) as other:
                await wait_until(lambda: len(relay_server.hub) == 2)
                message = BulkPayloadMessage(payload="QUJD", checksum="ff", enc=1, total=3)
                await channel.send_payload(message)

                data = json.loads(await asyncio.wait_for(other.recv(), 2))
                assert data == message.to_dict()
        finally:
            await channel.stop()

    @pytest.mark.asyncio
    async def test_unreachable(self, free_port):
        """No relay: not connected within the timeout."""
        channel = BulkChannel(f"ws://127.0.0.1:{free_port}", reconnect_interval=0.05)
        await channel.start()
        try:
            assert not await channel.wait_connected(0.3)
            assert not channel.is_connected
        finally:
            await channel.stop()

    @pytest.mark.asyncio
    async def test_reconnects(self, free_port):
        """Channel connects once a relay appears on its port."""
        channel = BulkChannel(f"ws://127.0.0.1:{free_port}", reconnect_interval=0.05)
        await channel.start()
        server = RelayServer(host="127.0.0.1", port=free_port)
        try:
            assert not await channel.wait_connected(0.2)
            await server.start()
            assert await channel.wait_connected(3)
        finally:
            await channel.stop()
            await server.stop()
