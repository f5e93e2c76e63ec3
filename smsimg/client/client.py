"""
Endpoint wiring for the dual-channel image protocol.

This module provides:
- Endpoint: one phone's view of the system, sending and receiving
"""

import logging
from typing import Optional

from ..core.config import SmsImgConfig
from ..engine.media import ImageResizer
from ..engine.reconciler import ErrorCallback, ImageCallback, ProgressCallback, ReconciliationEngine
from ..engine.sender import ConfirmCallback, SenderPipeline, SendResult
from ..network.bulk import BulkChannel, ChannelStatus
from ..network.narrow import NarrowChannelAdapter, NarrowTransport, RelayNarrowTransport

logger = logging.getLogger(__name__)


class Endpoint:
    """
    A phone taking part in transmissions.

    Manages:
    - The bulk channel (relay connection)
    - The narrow channel (SMS transport)
    - The sender pipeline
    - The receiver reconciliation engine
    """

    def __init__(
        self,
        phone: str,
        narrow_transport: Optional[NarrowTransport],
        config: Optional[SmsImgConfig] = None,
        bulk: Optional[BulkChannel] = None,
        resizer: Optional[ImageResizer] = None
    ) -> None:
        """
        Initialize endpoint.

        Args:
            phone: This endpoint's narrow-channel address
            narrow_transport: SMS transport, or None if not installed
            config: Optional configuration
            bulk: Optional pre-built bulk channel
            resizer: Optional resize collaborator
        """
        self.phone = phone
        self.config = config or SmsImgConfig()
        self.bulk = bulk or BulkChannel(self.config.relay_url, self.config.reconnect_interval)
        self.narrow = NarrowChannelAdapter(narrow_transport, self.config.prefix)
        self.sender = SenderPipeline(self.bulk, self.narrow, resizer, self.config)
        self.receiver = ReconciliationEngine(self.config.settle_delay)

        self.narrow.on_frame(self.receiver.submit_header)
        self.bulk.on_payload(self.receiver.submit_payload)

        self._running = False

    @classmethod
    def over_relay(
        cls,
        phone: str,
        config: Optional[SmsImgConfig] = None,
        resizer: Optional[ImageResizer] = None
    ) -> "Endpoint":
        """Endpoint whose SMS is simulated over its relay connection."""
        config = config or SmsImgConfig()
        bulk = BulkChannel(config.relay_url, config.reconnect_interval)
        transport = RelayNarrowTransport(phone, bulk)
        return cls(phone, transport, config=config, bulk=bulk, resizer=resizer)

    @property
    def passphrase(self) -> Optional[str]:
        return self.receiver.passphrase

    @passphrase.setter
    def passphrase(self, value: Optional[str]) -> None:
        self.receiver.passphrase = value or None

    @property
    def status(self) -> ChannelStatus:
        return self.bulk.status

    @property
    def is_running(self) -> bool:
        return self._running

    def on_image(self, handler: ImageCallback) -> None:
        self.receiver.on_image(handler)

    def on_error(self, handler: ErrorCallback) -> None:
        self.receiver.on_error(handler)

    def on_progress(self, handler: ProgressCallback) -> None:
        self.sender.on_progress(handler)
        self.receiver.on_progress(handler)

    async def start(self) -> None:
        """Connect to the relay and start receiving."""
        if self._running:
            return

        self._running = True
        await self.receiver.start()
        await self.bulk.start()
        logger.info(f"Endpoint {self.phone} started ({self.config.relay_url})")

    async def stop(self) -> None:
        """Disconnect and stop receiving."""
        if not self._running:
            return

        self._running = False
        await self.bulk.stop()
        await self.receiver.stop()
        logger.info(f"Endpoint {self.phone} stopped")

    async def send(
        self,
        recipient: str,
        image_uri: str,
        confirm: Optional[ConfirmCallback] = None
    ) -> SendResult:
        """
        Send an image to a recipient.

        Any in-progress receive session is dropped first.

        Args:
            recipient: Recipient phone number
            image_uri: Source image path or file URI
            confirm: Gate called with the SMS count; False cancels

        Returns:
            SendResult from the sender pipeline
        """
        self.sender.check_preconditions(recipient)
        self.receiver.reset()
        return await self.sender.send(recipient, image_uri, self.passphrase, confirm)
