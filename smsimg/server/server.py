"""
Relay server entry point.

This module provides:
- RelayServer: WebSocket server hosting a RelayHub
- CLI for running the relay
"""

import argparse
import asyncio
import logging
import signal
from http import HTTPStatus
from typing import Optional

from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.http11 import Request, Response

from ..core.config import DEFAULT_RELAY_PORT, BroadcastPolicy, SmsImgConfig
from ..network.relay import RelayHub

logger = logging.getLogger(__name__)


class RelayServer:
    """
    Broadcast relay for the bulk channel.

    Serves WebSocket endpoints on any path and answers /healthz over
    plain HTTP.
    """

    def __init__(
        self,
        host: str = "0.0.0.0",
        port: int = DEFAULT_RELAY_PORT,
        policy: BroadcastPolicy = BroadcastPolicy.EXCLUDE_SENDER,
        ping_interval: float = 30,
        ping_timeout: float = 10
    ) -> None:
        """
        Initialize relay server.

        Args:
            host: Host address to bind
            port: Port to listen on (0 picks a free port)
            policy: Broadcast policy for the hub
            ping_interval: Seconds between keepalive pings
            ping_timeout: Seconds to wait for a pong before closing
        """
        self.host = host
        self.port = port
        self.hub = RelayHub(policy)
        self.ping_interval = ping_interval
        self.ping_timeout = ping_timeout

        self._server: Optional[Server] = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def url(self) -> str:
        host = "localhost" if self.host in ("0.0.0.0", "") else self.host
        return f"ws://{host}:{self.port}"

    async def _process_request(
        self,
        connection: ServerConnection,
        request: Request
    ) -> Optional[Response]:
        """Answer health checks before the WebSocket handshake."""
        if request.path == "/healthz":
            return connection.respond(HTTPStatus.OK, "OK\n")
        return None

    async def start(self) -> None:
        """Start the relay server."""
        if self._running:
            return

        self._running = True

        self._server = await serve(
            self.hub.handle_connection,
            self.host,
            self.port,
            ping_interval=self.ping_interval,
            ping_timeout=self.ping_timeout,
            process_request=self._process_request
        )

        if self.port == 0:
            self.port = list(self._server.sockets)[0].getsockname()[1]

        logger.info(f"Relay listening on {self.host}:{self.port} (policy={self.hub.policy.value})")

    async def stop(self) -> None:
        """Stop the relay server."""
        if not self._running:
            return

        self._running = False

        for ws in self.hub.connections:
            await ws.close()

        if self._server:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

        logger.info("Relay stopped")

    async def run_forever(self) -> None:
        """Run server until interrupted."""
        await self.start()

        loop = asyncio.get_running_loop()
        stop_event = asyncio.Event()

        def handle_signal():
            logger.info("Received shutdown signal...")
            stop_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, handle_signal)

        await stop_event.wait()
        await self.stop()


def main():
    """CLI entry point for the relay."""
    parser = argparse.ArgumentParser(
        description="SMS image relay",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    parser.add_argument(
        "--host",
        default="0.0.0.0",
        help="Host address to bind"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=DEFAULT_RELAY_PORT,
        help="Port to listen on"
    )

    parser.add_argument(
        "--include-sender",
        action="store_true",
        help="Echo each message back to its sender as well"
    )

    parser.add_argument(
        "--debug", "-d",
        action="store_true",
        help="Enable debug logging"
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    policy = BroadcastPolicy.INCLUDE_SENDER if args.include_sender else SmsImgConfig().broadcast_policy
    server = RelayServer(host=args.host, port=args.port, policy=policy)

    try:
        asyncio.run(server.run_forever())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
