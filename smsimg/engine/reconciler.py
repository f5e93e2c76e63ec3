"""
Receiver reconciliation engine.

Narrow-channel triggers, bulk-channel payloads and settle-timer expiries
arrive as tagged events on one queue and are handled one at a time. After
every event the engine checks whether it holds a trigger, a payload and an
expired timer together; only then does it compare the two channels and,
if they agree on (total, checksum), reconstruct the image.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Callable, Coroutine, Optional, Union

from pydantic import BaseModel

from ..core.config import SETTLE_DELAY
from ..core.exceptions import (
    ChecksumMismatchError,
    DecryptionFailedError,
    MissingPassphraseError,
    SmsImgError,
)
from ..core.message import (
    BulkPayloadMessage,
    NarrowChannelTrigger,
    PendingPayload,
    TransmissionHeader,
)
from .codec import digest, unprotect, verify
from .media import ReconstructedImage

logger = logging.getLogger(__name__)


class EngineState(Enum):
    """Receiver states."""

    IDLE = auto()
    AWAITING_PAIR = auto()
    RECONCILED = auto()
    RESETTING = auto()


# Events

@dataclass(frozen=True)
class TriggerReceived:
    trigger: NarrowChannelTrigger


@dataclass(frozen=True)
class PayloadReceived:
    pending: PendingPayload


@dataclass(frozen=True)
class SettleTimerElapsed:
    generation: int


EngineEvent = Union[TriggerReceived, PayloadReceived, SettleTimerElapsed]


class ReconciliationSession(BaseModel):
    """The single in-flight reconciliation."""

    generation: int = 0
    trigger: Optional[NarrowChannelTrigger] = None
    pending: Optional[PendingPayload] = None
    timer_done: bool = False

    @property
    def is_empty(self) -> bool:
        return self.trigger is None and self.pending is None and not self.timer_done

    @property
    def is_complete(self) -> bool:
        return self.trigger is not None and self.pending is not None and self.timer_done


# Type aliases
ImageCallback = Callable[[ReconstructedImage], Coroutine[Any, Any, None]]
ErrorCallback = Callable[[SmsImgError], Coroutine[Any, Any, None]]
ProgressCallback = Callable[[str], Coroutine[Any, Any, None]]


def reconstruct(pending: PendingPayload, passphrase: Optional[str] = None) -> ReconstructedImage:
    """
    Recover and verify the image carried by an agreed payload.

    Raises:
        MissingPassphraseError: Encrypted payload, no passphrase
        DecryptionFailedError: Wrong passphrase or damaged ciphertext
        ChecksumMismatchError: Recovered plaintext fails the checksum
    """
    canonical = unprotect(pending.payload, pending.enc, passphrase)
    if not verify(canonical, pending.checksum):
        raise ChecksumMismatchError(expected=pending.checksum, actual=digest(canonical))

    return ReconstructedImage(
        canonical=canonical,
        checksum=pending.checksum,
        encrypted=bool(pending.enc),
    )


class ReconciliationEngine:
    """
    Merges the two channels of a transmission into one verified image.

    Holds at most one session. A second trigger while a trigger is held is
    dropped; payloads replace each other (last write wins).
    """

    def __init__(
        self,
        settle_delay: float = SETTLE_DELAY,
        passphrase: Optional[str] = None
    ) -> None:
        """
        Initialize engine.

        Args:
            settle_delay: Seconds to wait after a trigger before reconciling
            passphrase: Passphrase used to decrypt encrypted payloads
        """
        self.settle_delay = settle_delay
        self.passphrase = passphrase
        self.state = EngineState.IDLE
        self.session = ReconciliationSession()

        self._queue: asyncio.Queue[EngineEvent] = asyncio.Queue()
        self._timer: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task] = None

        self._image_handlers: list[ImageCallback] = []
        self._error_handlers: list[ErrorCallback] = []
        self._progress_handlers: list[ProgressCallback] = []

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def on_image(self, handler: ImageCallback) -> None:
        """Register a handler for reconstructed images."""
        self._image_handlers.append(handler)

    def on_error(self, handler: ErrorCallback) -> None:
        """Register a handler for reconstruction failures."""
        self._error_handlers.append(handler)

    def on_progress(self, handler: ProgressCallback) -> None:
        """Register a handler for progress messages."""
        self._progress_handlers.append(handler)

    async def start(self) -> None:
        """Start consuming events."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop consuming events and drop any session."""
        self.reset()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def join(self) -> None:
        """Wait until every queued event has been handled."""
        await self._queue.join()

    def submit(self, event: EngineEvent) -> None:
        """Queue an event for the engine."""
        self._queue.put_nowait(event)

    async def submit_header(
        self,
        header: TransmissionHeader,
        fragment_text: str = "",
        sender: str = ""
    ) -> None:
        """Narrow-channel frame handler."""
        self.submit(TriggerReceived(header.to_trigger()))

    async def submit_payload(self, message: BulkPayloadMessage) -> None:
        """Bulk-channel payload handler."""
        self.submit(PayloadReceived(message.to_pending()))

    def reset(self) -> None:
        """Drop any in-flight session immediately."""
        self._clear()
        self.state = EngineState.IDLE

    def _clear(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        if not self.session.is_empty:
            logger.debug("Clearing reconciliation session")

        self.session = ReconciliationSession(generation=self.session.generation + 1)

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self.dispatch(event)
            except Exception as e:
                logger.error(f"Error handling {type(event).__name__}: {e}")
            finally:
                self._queue.task_done()

    async def dispatch(self, event: EngineEvent) -> None:
        """Apply one event, then run the reconciliation check."""
        if isinstance(event, TriggerReceived):
            await self._on_trigger(event.trigger)
        elif isinstance(event, PayloadReceived):
            self._on_payload(event.pending)
        elif isinstance(event, SettleTimerElapsed):
            self._on_timer(event.generation)

        await self._check()

    async def _on_trigger(self, trigger: NarrowChannelTrigger) -> None:
        if self.session.trigger is not None:
            logger.debug("Ignoring subsequent SMS for this transaction")
            return

        self.session.trigger = trigger
        self.state = EngineState.AWAITING_PAIR
        await self._progress("Receiving SMS...")

        generation = self.session.generation
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(
            self.settle_delay,
            self.submit,
            SettleTimerElapsed(generation)
        )
        logger.info(f"Trigger received: total={trigger.total}, settling for {self.settle_delay}s")

    def _on_payload(self, pending: PendingPayload) -> None:
        if self.session.pending is not None:
            logger.debug("Replacing pending payload")
        self.session.pending = pending
        self.state = EngineState.AWAITING_PAIR

    def _on_timer(self, generation: int) -> None:
        if generation != self.session.generation:
            logger.debug("Ignoring settle timer of a cleared session")
            return
        self._timer = None
        self.session.timer_done = True

    async def _check(self) -> None:
        """Reconcile when trigger, payload and timer are all present."""
        if not self.session.is_complete:
            return

        trigger = self.session.trigger
        pending = self.session.pending

        if not pending.matches(trigger):
            self.state = EngineState.RESETTING
            logger.info("Mismatch between SMS header and pending image payload")
            self._clear()
            self.state = EngineState.IDLE
            return

        self.state = EngineState.RECONCILED
        self._clear()
        try:
            await self._reconstruct(pending)
        finally:
            self.state = EngineState.IDLE

    async def _reconstruct(self, pending: PendingPayload) -> None:
        await self._progress("Reconstructing image...")
        if pending.enc and self.passphrase:
            await self._progress("Decrypting image...")

        try:
            image = await asyncio.to_thread(reconstruct, pending, self.passphrase)
        except (MissingPassphraseError, DecryptionFailedError, ChecksumMismatchError) as e:
            logger.warning(f"Reconstruction failed: {e.message}")
            await self._emit_error(e)
            return

        await self._progress("Image reconstructed!")
        for handler in self._image_handlers:
            try:
                await handler(image)
            except Exception as e:
                logger.error(f"Image handler failed: {e}")

    async def _emit_error(self, error: SmsImgError) -> None:
        for handler in self._error_handlers:
            try:
                await handler(error)
            except Exception as e:
                logger.error(f"Error handler failed: {e}")

    async def _progress(self, text: str) -> None:
        for handler in self._progress_handlers:
            try:
                await handler(text)
            except Exception as e:
                logger.error(f"Progress handler failed: {e}")
