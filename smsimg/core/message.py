"""
Message definitions for the dual-channel image protocol.

This module defines:
- MessageType: bulk-channel message types
- TransmissionHeader: the header carried by every narrow-channel frame
- BulkPayloadMessage: the full payload carried over the relay
- NarrowChannelTrigger / PendingPayload: what a receiver keeps of each
"""

import json
import time
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class MessageType(str, Enum):
    """Types of messages on the bulk channel."""

    NEW_IMAGE = "NEW_IMAGE"
    # Simulated narrow-channel text carried over the relay
    SMS = "SMS"


_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def to_base36(value: int) -> str:
    """Render a non-negative integer in base 36."""
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def new_transmission_id() -> str:
    """Attempt ID derived from the current time in milliseconds."""
    return to_base36(int(time.time() * 1000))


class TransmissionHeader(BaseModel):
    """
    Header attached to every narrow-channel frame.

    The header must serialize to a flat JSON object: receivers find its end
    at the first closing brace.
    """

    id: str
    total: int
    checksum: str
    enc: int = Field(ge=0, le=1)
    index: int = 0

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def to_json(self) -> str:
        """Compact JSON in field order: id, total, checksum, enc, index."""
        return json.dumps(self.model_dump(), separators=(",", ":"))

    @classmethod
    def from_json(cls, text: str) -> "TransmissionHeader":
        """
        Parse a header.

        Raises:
            ValueError: If the text is not a valid header object
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid header JSON: {e}") from e
        if not isinstance(data, dict):
            raise ValueError("Header is not a JSON object")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ValueError(f"Invalid header: {e}") from e

    def with_index(self, index: int) -> "TransmissionHeader":
        """Copy of this header carrying a different index."""
        return self.model_copy(update={"index": index})

    def to_trigger(self) -> "NarrowChannelTrigger":
        return NarrowChannelTrigger(total=self.total, checksum=self.checksum)


class BulkPayloadMessage(BaseModel):
    """A NEW_IMAGE message carried by the relay."""

    type: MessageType = MessageType.NEW_IMAGE
    payload: str
    checksum: str
    enc: int = Field(ge=0, le=1)
    total: int

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "payload": self.payload,
            "checksum": self.checksum,
            "enc": self.enc,
            "total": self.total,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Optional["BulkPayloadMessage"]:
        """
        Build from a decoded relay message.

        Returns:
            The message, or None if it is not a NEW_IMAGE message with a payload

        Raises:
            ValueError: If a NEW_IMAGE message is missing fields
        """
        if data.get("type") != MessageType.NEW_IMAGE.value or not data.get("payload"):
            return None
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ValueError(f"Invalid NEW_IMAGE message: {e}") from e

    def to_pending(self) -> "PendingPayload":
        return PendingPayload(
            payload=self.payload,
            checksum=self.checksum,
            enc=self.enc,
            total=self.total
        )


class NarrowChannelTrigger(BaseModel):
    """What the receiver keeps of the first narrow-channel header."""

    total: int
    checksum: str


class PendingPayload(BaseModel):
    """What the receiver keeps of the latest bulk payload."""

    payload: str
    checksum: str
    enc: int
    total: int

    def matches(self, trigger: NarrowChannelTrigger) -> bool:
        """True when both channels agree on total and checksum."""
        return self.total == trigger.total and self.checksum == trigger.checksum
