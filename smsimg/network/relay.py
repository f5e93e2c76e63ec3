"""
Broadcast relay for the bulk channel.

The hub moves messages between connected endpoints without interpreting
them. It parses each message only to log and validate it; a message that
is not JSON is dropped, and the connection it came from stays open.
"""

import json
import logging
from typing import Union

import websockets
from websockets import ServerConnection

from ..core.config import BroadcastPolicy

logger = logging.getLogger(__name__)


class RelayHub:
    """
    Connection set plus broadcast.

    With EXCLUDE_SENDER a message goes to every other open connection;
    with INCLUDE_SENDER the sender receives its own message too.
    """

    def __init__(self, policy: BroadcastPolicy = BroadcastPolicy.EXCLUDE_SENDER) -> None:
        """
        Initialize hub.

        Args:
            policy: Broadcast policy, fixed for the lifetime of the hub
        """
        self.policy = policy
        self._connections: set[ServerConnection] = set()

    def __len__(self) -> int:
        return len(self._connections)

    @property
    def connections(self) -> list[ServerConnection]:
        return list(self._connections)

    def add(self, ws: ServerConnection) -> None:
        self._connections.add(ws)
        logger.info(f"Client connected ({len(self._connections)} open)")

    def remove(self, ws: ServerConnection) -> None:
        if ws in self._connections:
            self._connections.discard(ws)
            logger.info(f"Client disconnected ({len(self._connections)} open)")

    async def handle_connection(self, ws: ServerConnection) -> None:
        """Serve one endpoint until it disconnects."""
        self.add(ws)
        try:
            async for data in ws:
                try:
                    await self.relay(data, ws)
                except Exception as e:
                    logger.error(f"Error relaying message: {e}")
        except websockets.ConnectionClosed:
            pass
        finally:
            self.remove(ws)

    def _targets(self, sender: ServerConnection) -> list[ServerConnection]:
        if self.policy == BroadcastPolicy.INCLUDE_SENDER:
            return list(self._connections)
        return [ws for ws in self._connections if ws is not sender]

    async def relay(self, data: Union[str, bytes], sender: ServerConnection) -> int:
        """
        Forward a message verbatim according to the broadcast policy.

        Args:
            data: Message exactly as received
            sender: Connection the message came from

        Returns:
            Number of connections the message was sent to
        """
        try:
            message = json.loads(data)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.error(f"Error parsing message, not relayed: {e}")
            return 0

        msg_type = message.get("type") if isinstance(message, dict) else None
        logger.info(f"Relaying {msg_type or 'untyped'} message ({len(data)} bytes)")

        sent = 0
        for ws in self._targets(sender):
            try:
                await ws.send(data)
                sent += 1
            except websockets.ConnectionClosed:
                logger.debug("Skipping closed connection")

        return sent
