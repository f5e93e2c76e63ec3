"""
Bulk-channel client.

Keeps one WebSocket connection to the relay open, reconnecting after a
fixed delay for as long as the channel runs.
"""

import asyncio
import json
import logging
from enum import Enum
from typing import Any, Callable, Coroutine, Optional

import websockets
from websockets import ClientConnection

from ..core.config import RECONNECT_INTERVAL
from ..core.exceptions import BulkChannelNotConnectedError
from ..core.message import BulkPayloadMessage

logger = logging.getLogger(__name__)


# Type aliases
MessageHandler = Callable[[dict[str, Any]], Coroutine[Any, Any, None]]
PayloadHandler = Callable[[BulkPayloadMessage], Coroutine[Any, Any, None]]


class ChannelStatus(str, Enum):
    """Connection status of the bulk channel."""

    DISCONNECTED = "Disconnected"
    CONNECTING = "Connecting..."
    CONNECTED = "Connected (Ready)"
    ERROR = "Connection Error"


class BulkChannel:
    """
    Relay connection with automatic reconnection.

    Decoded JSON messages go to message handlers; NEW_IMAGE messages are
    additionally parsed and given to payload handlers.
    """

    def __init__(
        self,
        url: str,
        reconnect_interval: float = RECONNECT_INTERVAL
    ) -> None:
        """
        Initialize bulk channel.

        Args:
            url: Relay WebSocket URL
            reconnect_interval: Seconds between reconnection attempts
        """
        self.url = url
        self.reconnect_interval = reconnect_interval
        self.status = ChannelStatus.DISCONNECTED

        self._ws: Optional[ClientConnection] = None
        self._connected = asyncio.Event()
        self._message_handlers: list[MessageHandler] = []
        self._payload_handlers: list[PayloadHandler] = []

        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def is_connected(self) -> bool:
        return self._ws is not None and self.status == ChannelStatus.CONNECTED

    @property
    def is_running(self) -> bool:
        return self._running

    def on_message(self, handler: MessageHandler) -> None:
        """Register a handler for every decoded relay message."""
        self._message_handlers.append(handler)

    def on_payload(self, handler: PayloadHandler) -> None:
        """Register a handler for NEW_IMAGE messages."""
        self._payload_handlers.append(handler)

    async def start(self) -> None:
        """Start the connection loop."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the connection loop and close the socket."""
        if not self._running:
            return

        self._running = False

        if self._ws:
            await self._ws.close()

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        self._set_status(ChannelStatus.DISCONNECTED)

    async def wait_connected(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until the channel is connected.

        Returns:
            True if connected within the timeout
        """
        try:
            await asyncio.wait_for(self._connected.wait(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False

    async def _run(self) -> None:
        """Connect, read until closed, wait, repeat."""
        while self._running:
            self._set_status(ChannelStatus.CONNECTING)
            try:
                async with websockets.connect(self.url) as ws:
                    self._ws = ws
                    self._set_status(ChannelStatus.CONNECTED)
                    self._connected.set()

                    async for data in ws:
                        await self._dispatch(data)

            except (websockets.WebSocketException, OSError, asyncio.TimeoutError) as e:
                logger.warning(f"Bulk channel error ({self.url}): {e}")
                self._set_status(ChannelStatus.ERROR)
            finally:
                self._ws = None
                self._connected.clear()

            if self._running:
                self._set_status(ChannelStatus.DISCONNECTED)
                logger.info(f"Disconnected. Retrying in {self.reconnect_interval}s...")
                await asyncio.sleep(self.reconnect_interval)

    def _set_status(self, status: ChannelStatus) -> None:
        if status != self.status:
            logger.debug(f"Bulk channel: {status.value}")
        self.status = status

    async def _dispatch(self, data: str | bytes) -> None:
        """Decode one relay message and notify handlers."""
        if isinstance(data, bytes):
            data = data.decode("utf-8", errors="replace")

        try:
            message = json.loads(data)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse message: {e}")
            return

        if not isinstance(message, dict):
            return

        for handler in self._message_handlers:
            try:
                await handler(message)
            except Exception as e:
                logger.error(f"Message handler failed: {e}")

        try:
            payload = BulkPayloadMessage.from_dict(message)
        except ValueError as e:
            logger.error(f"Dropping bad NEW_IMAGE message: {e}")
            return

        if payload is None:
            return

        logger.info(f"Received payload: total={payload.total} enc={payload.enc}")
        for handler in self._payload_handlers:
            try:
                await handler(payload)
            except Exception as e:
                logger.error(f"Payload handler failed: {e}")

    async def send_json(self, message: dict[str, Any]) -> None:
        """
        Send a JSON message to the relay.

        Raises:
            BulkChannelNotConnectedError: If the socket is not open
        """
        ws = self._ws
        if ws is None or not self.is_connected:
            raise BulkChannelNotConnectedError()

        try:
            await ws.send(json.dumps(message))
        except websockets.ConnectionClosed as e:
            raise BulkChannelNotConnectedError(f"Bulk channel closed: {e}") from e

    async def send_payload(self, message: BulkPayloadMessage) -> None:
        """Send a NEW_IMAGE message."""
        await self.send_json(message.to_dict())
