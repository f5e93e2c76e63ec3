"""
Narrow-channel (SMS) adapter and transports.

This module provides:
- NarrowTransport: the "send text" / "text received" primitives
- LoopbackNetwork / LoopbackNarrowTransport: in-process transport
- RelayNarrowTransport: SMS simulated over the relay connection
- witness_indices: which fragments go over the narrow channel
- NarrowChannelAdapter: protocol framing and witness sending

Wire frame: PREFIX + JSON(header) + fragment text, with no separator.
The header is a flat JSON object, so its end is the first closing brace.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Coroutine, Optional

from ..core.config import PACING_DELAY, PROTOCOL_PREFIX
from ..core.exceptions import BulkChannelNotConnectedError, MalformedFrameError, NarrowSendError
from ..core.message import MessageType, TransmissionHeader
from .bulk import BulkChannel

logger = logging.getLogger(__name__)


def witness_indices(total: int) -> list[int]:
    """
    Fragment indices sent over the narrow channel.

    Always the first fragment, the middle one when there are at least two,
    and the last one when there are at least three.

    Args:
        total: Fragment count

    Returns:
        Ordered, distinct indices (at most three)
    """
    if total <= 0:
        return []

    indices = [0]
    if total > 1:
        indices.append(total // 2)
    if total > 2:
        indices.append(total - 1)

    return indices


# Type aliases
TextHandler = Callable[[str, str], Coroutine[Any, Any, None]]
FrameHandler = Callable[[TransmissionHeader, str, str], Coroutine[Any, Any, None]]


class NarrowTransport(ABC):
    """
    Send/receive primitives of a text-message transport.

    Received texts are delivered to handlers as (sender, text).
    """

    def __init__(self) -> None:
        self._handlers: list[TextHandler] = []

    @property
    def available(self) -> bool:
        """Whether the transport can send at all."""
        return True

    @abstractmethod
    async def send_text(self, recipient: str, text: str) -> bool:
        """
        Send one text message.

        Returns:
            True if the transport accepted the message
        """

    def on_text_received(self, handler: TextHandler) -> None:
        """Register a handler for incoming texts."""
        self._handlers.append(handler)

    async def _emit(self, sender: str, text: str) -> None:
        for handler in self._handlers:
            try:
                await handler(sender, text)
            except Exception as e:
                logger.error(f"Text handler failed: {e}")


class LoopbackNetwork:
    """An in-process stand-in for the phone network."""

    def __init__(self) -> None:
        self._endpoints: dict[str, "LoopbackNarrowTransport"] = {}

    def attach(self, number: str) -> "LoopbackNarrowTransport":
        """Create a transport reachable at the given number."""
        transport = LoopbackNarrowTransport(number, self)
        self._endpoints[number] = transport
        return transport

    async def deliver(self, sender: str, recipient: str, text: str) -> bool:
        transport = self._endpoints.get(recipient)
        if transport is None:
            return False
        await transport._emit(sender, text)
        return True


class LoopbackNarrowTransport(NarrowTransport):
    """Transport attached to a LoopbackNetwork."""

    def __init__(self, number: str, network: LoopbackNetwork) -> None:
        super().__init__()
        self.number = number
        self.network = network
        self.sent: list[tuple[str, str]] = []

    async def send_text(self, recipient: str, text: str) -> bool:
        self.sent.append((recipient, text))
        return await self.network.deliver(self.number, recipient, text)


class RelayNarrowTransport(NarrowTransport):
    """
    Simulated SMS carried over the relay.

    Messages are {"type": "SMS", "to", "from", "text"}; bulk-payload
    receivers ignore them because of their type.
    """

    def __init__(self, number: str, channel: BulkChannel) -> None:
        super().__init__()
        self.number = number
        self.channel = channel
        channel.on_message(self._on_relay_message)

    async def send_text(self, recipient: str, text: str) -> bool:
        try:
            await self.channel.send_json({
                "type": MessageType.SMS.value,
                "to": recipient,
                "from": self.number,
                "text": text,
            })
            return True
        except BulkChannelNotConnectedError as e:
            logger.warning(f"Could not send SMS to {recipient}: {e}")
            return False

    async def _on_relay_message(self, message: dict[str, Any]) -> None:
        if message.get("type") != MessageType.SMS.value:
            return
        if message.get("to") != self.number:
            return
        await self._emit(str(message.get("from", "")), str(message.get("text", "")))


class NarrowChannelAdapter:
    """
    Frames protocol messages onto a narrow transport and parses them back.

    Unparseable texts are treated as channel noise and dropped.
    """

    def __init__(
        self,
        transport: Optional[NarrowTransport],
        prefix: str = PROTOCOL_PREFIX
    ) -> None:
        """
        Initialize adapter.

        Args:
            transport: Underlying transport, or None if not installed
            prefix: Literal frame prefix shared by both ends
        """
        self.transport = transport
        self.prefix = prefix
        self._frame_handlers: list[FrameHandler] = []

        if transport is not None:
            transport.on_text_received(self.on_receive)

    @property
    def available(self) -> bool:
        return self.transport is not None and self.transport.available

    def on_frame(self, handler: FrameHandler) -> None:
        """Register a handler for (header, fragment_text, sender)."""
        self._frame_handlers.append(handler)

    def frame(self, header: TransmissionHeader, fragment_text: str) -> str:
        """Build the wire text for one fragment."""
        header_json = header.to_json()
        if header_json.count("}") != 1:
            raise ValueError("Header must serialize to a flat JSON object")
        return self.prefix + header_json + fragment_text

    def parse(self, raw: str) -> tuple[TransmissionHeader, str]:
        """
        Split a wire text into header and fragment.

        Raises:
            MalformedFrameError: Prefix missing or header unparseable
        """
        if not raw.startswith(self.prefix):
            raise MalformedFrameError("Missing protocol prefix")

        body = raw[len(self.prefix):]
        header_end = body.find("}") + 1
        if header_end == 0:
            raise MalformedFrameError("Unterminated header")

        try:
            header = TransmissionHeader.from_json(body[:header_end])
        except ValueError as e:
            raise MalformedFrameError(str(e)) from e

        return header, body[header_end:]

    async def send(
        self,
        recipient: str,
        header: TransmissionHeader,
        fragment_text: str
    ) -> None:
        """
        Send one framed fragment.

        Raises:
            NarrowSendError: The transport refused or failed
        """
        if self.transport is None:
            raise NarrowSendError("No narrow-channel transport", recipient)

        text = self.frame(header, fragment_text)
        try:
            accepted = await self.transport.send_text(recipient, text)
        except Exception as e:
            raise NarrowSendError(f"Could not send SMS: {e}", recipient) from e

        if not accepted:
            raise NarrowSendError("Transport did not accept SMS", recipient)

    async def send_witnesses(
        self,
        recipient: str,
        header: TransmissionHeader,
        fragments: list[str],
        pacing_delay: float = PACING_DELAY
    ) -> int:
        """
        Send the witness subset of a payload's fragments.

        The index field counts messages within this send, starting at 0.
        Failures are logged per message and do not stop the batch.

        Returns:
            Number of messages the transport accepted
        """
        indices = witness_indices(len(fragments))
        sent = 0

        for index, fragment_idx in enumerate(indices):
            if index > 0:
                await asyncio.sleep(pacing_delay)
            try:
                await self.send(recipient, header.with_index(index), fragments[fragment_idx])
                sent += 1
                logger.debug(f"Sent witness {fragment_idx}/{len(fragments)} to {recipient}")
            except NarrowSendError as e:
                logger.warning(f"Witness {fragment_idx} not sent: {e.message}")

        return sent

    async def on_receive(self, sender: str, raw: str) -> None:
        """Transport callback: parse and hand frames to handlers."""
        try:
            header, fragment_text = self.parse(raw)
        except MalformedFrameError as e:
            logger.debug(f"Ignoring non-protocol SMS from {sender}: {e.message}")
            return

        for handler in self._frame_handlers:
            try:
                await handler(header, fragment_text, sender)
            except Exception as e:
                logger.error(f"Frame handler failed: {e}")
