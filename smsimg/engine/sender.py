"""
Sender pipeline.

Resize -> [encrypt] -> checksum -> chunk -> confirm -> bulk send ->
narrow witness send. Input errors abort before any side effect; a missing
bulk channel is fatal to the attempt; narrow-channel failures are logged
and never undo a bulk send that already happened.
"""

import logging
from enum import Enum, auto
from typing import Any, Awaitable, Callable, Coroutine, Optional

from pydantic import BaseModel

from ..core.config import SmsImgConfig
from ..core.exceptions import NoRecipientError, SmsImgError, TransportUnavailableError
from ..core.message import BulkPayloadMessage, TransmissionHeader, new_transmission_id
from ..network.bulk import BulkChannel
from ..network.narrow import NarrowChannelAdapter, witness_indices
from .chunker import fragment
from .codec import PreparedImage, digest, encode, protect
from .media import ImageResizer, MediaError, PillowResizer

logger = logging.getLogger(__name__)


class SenderState(Enum):
    """Stages of one send attempt."""

    IDLE = auto()
    RESIZING = auto()
    ENCRYPTING = auto()
    CHECKSUMMING = auto()
    CHUNKING = auto()
    AWAITING_CONFIRMATION = auto()
    BULK_SENDING = auto()
    NARROW_SENDING = auto()
    DONE = auto()
    CANCELLED = auto()
    FAILED = auto()


class SendResult(BaseModel):
    """Outcome of a send attempt."""

    id: str
    total: int
    checksum: str
    enc: int
    witnesses_attempted: int = 0
    witnesses_sent: int = 0
    cancelled: bool = False

    @property
    def narrow_complete(self) -> bool:
        return self.witnesses_sent == self.witnesses_attempted


# Type aliases
ConfirmCallback = Callable[[int], Awaitable[bool]]
ProgressCallback = Callable[[str], Coroutine[Any, Any, None]]


class SenderPipeline:
    """
    Prepares an image and dispatches it over both channels.

    One pipeline serves one endpoint; concurrent sends are not supported.
    """

    def __init__(
        self,
        bulk: BulkChannel,
        narrow: NarrowChannelAdapter,
        resizer: Optional[ImageResizer] = None,
        config: Optional[SmsImgConfig] = None
    ) -> None:
        """
        Initialize pipeline.

        Args:
            bulk: Relay connection for the full payload
            narrow: Narrow-channel adapter for the witness subset
            resizer: Resize collaborator (Pillow by default)
            config: Endpoint configuration
        """
        self.bulk = bulk
        self.narrow = narrow
        self.resizer = resizer or PillowResizer()
        self.config = config or SmsImgConfig()
        self.state = SenderState.IDLE

        self._progress_handlers: list[ProgressCallback] = []

    def on_progress(self, handler: ProgressCallback) -> None:
        """Register a handler for progress messages."""
        self._progress_handlers.append(handler)

    async def _progress(self, text: str) -> None:
        logger.info(text)
        for handler in self._progress_handlers:
            try:
                await handler(text)
            except Exception as e:
                logger.error(f"Progress handler failed: {e}")

    def check_preconditions(self, recipient: str) -> None:
        """
        Validate a send before anything happens.

        Raises:
            NoRecipientError: Empty recipient
            TransportUnavailableError: No narrow-channel transport
        """
        if not recipient or not recipient.strip():
            raise NoRecipientError()
        if not self.narrow.available:
            raise TransportUnavailableError()

    async def prepare(self, image_uri: str, passphrase: Optional[str] = None) -> PreparedImage:
        """Resize, optionally encrypt, checksum and chunk an image."""
        self.state = SenderState.RESIZING
        await self._progress("Resizing image...")
        canonical = await encode(
            image_uri,
            self.resizer,
            self.config.max_dimension,
            self.config.quality
        )

        if passphrase:
            self.state = SenderState.ENCRYPTING
            await self._progress("Encrypting payload...")
        payload, checksum_source = protect(canonical, passphrase)

        self.state = SenderState.CHECKSUMMING
        checksum = digest(checksum_source)

        self.state = SenderState.CHUNKING
        fragments = fragment(payload.text, self.config.fragment_size)

        return PreparedImage(
            canonical=canonical,
            payload=payload,
            checksum=checksum,
            fragments=fragments,
        )

    async def send(
        self,
        recipient: str,
        image_uri: str,
        passphrase: Optional[str] = None,
        confirm: Optional[ConfirmCallback] = None
    ) -> SendResult:
        """
        Run the whole pipeline for one image.

        Args:
            recipient: Narrow-channel address (phone number)
            image_uri: Source image path or file URI
            passphrase: Optional passphrase; enables payload encryption
            confirm: Gate called with the fragment count; False cancels

        Returns:
            SendResult (cancelled=True if the gate declined)

        Raises:
            NoRecipientError, TransportUnavailableError: Before any side effect
            BulkChannelNotConnectedError: Relay not connected at send time
            MediaError: Image could not be read or resized
        """
        self.state = SenderState.IDLE
        self.check_preconditions(recipient)

        try:
            prepared = await self.prepare(image_uri, passphrase)

            header = TransmissionHeader(
                id=new_transmission_id(),
                total=prepared.total,
                checksum=prepared.checksum,
                enc=prepared.enc,
            )

            self.state = SenderState.AWAITING_CONFIRMATION
            if confirm is not None and not await confirm(prepared.total):
                self.state = SenderState.CANCELLED
                logger.info("Send cancelled at confirmation")
                return SendResult(
                    id=header.id,
                    total=header.total,
                    checksum=header.checksum,
                    enc=header.enc,
                    cancelled=True
                )

            self.state = SenderState.BULK_SENDING
            await self.bulk.send_payload(BulkPayloadMessage(
                payload=prepared.payload.text,
                checksum=prepared.checksum,
                enc=prepared.enc,
                total=prepared.total,
            ))

            self.state = SenderState.NARROW_SENDING
            await self._progress("Sending SMS")
            attempted = len(witness_indices(prepared.total))
            sent = await self.narrow.send_witnesses(
                recipient,
                header,
                prepared.fragments,
                self.config.pacing_delay
            )

        except (SmsImgError, MediaError) as e:
            self.state = SenderState.FAILED
            logger.error(f"Send failed: {e}")
            raise

        self.state = SenderState.DONE
        if sent == attempted:
            await self._progress("All SMS parts sent!")
        else:
            logger.warning(f"Only {sent}/{attempted} SMS parts sent to {recipient}")

        return SendResult(
            id=header.id,
            total=header.total,
            checksum=header.checksum,
            enc=header.enc,
            witnesses_attempted=attempted,
            witnesses_sent=sent,
        )
