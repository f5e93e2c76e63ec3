"""
Core components shared by both channels.

This package provides:
- Configuration with environment overrides
- Error taxonomy
- Passphrase encryption and hashing
- Wire message models
"""

from .config import (
    SmsImgConfig,
    BroadcastPolicy,
    PROTOCOL_PREFIX,
    FRAGMENT_SIZE,
    MAX_DIMENSION,
    JPEG_QUALITY,
    SETTLE_DELAY,
    PACING_DELAY,
    RECONNECT_INTERVAL,
)

from .crypto import (
    encrypt_with_passphrase,
    decrypt_with_passphrase,
    hash_data,
    hash_string,
)

from .exceptions import (
    SmsImgError,
    NoRecipientError,
    TransportUnavailableError,
    BulkChannelNotConnectedError,
    NarrowSendError,
    MissingPassphraseError,
    DecryptionFailedError,
    ChecksumMismatchError,
    MalformedFrameError,
)

from .message import (
    MessageType,
    TransmissionHeader,
    BulkPayloadMessage,
    NarrowChannelTrigger,
    PendingPayload,
    new_transmission_id,
)

__all__ = [
    # Config
    "SmsImgConfig",
    "BroadcastPolicy",
    "PROTOCOL_PREFIX",
    "FRAGMENT_SIZE",
    "MAX_DIMENSION",
    "JPEG_QUALITY",
    "SETTLE_DELAY",
    "PACING_DELAY",
    "RECONNECT_INTERVAL",
    # Crypto
    "encrypt_with_passphrase",
    "decrypt_with_passphrase",
    "hash_data",
    "hash_string",
    # Exceptions
    "SmsImgError",
    "NoRecipientError",
    "TransportUnavailableError",
    "BulkChannelNotConnectedError",
    "NarrowSendError",
    "MissingPassphraseError",
    "DecryptionFailedError",
    "ChecksumMismatchError",
    "MalformedFrameError",
    # Messages
    "MessageType",
    "TransmissionHeader",
    "BulkPayloadMessage",
    "NarrowChannelTrigger",
    "PendingPayload",
    "new_transmission_id",
]
