"""
Transmission engine: codec, sender pipeline and receiver reconciliation.

This package provides:
- Codec: canonical encoding, optional encryption, digest, fragmenting
- SenderPipeline: prepares an image and dispatches it over both channels
- ReconciliationEngine: merges both channels into one verified image
- Image collaborators: resizing and reconstructed-image output
"""

from .chunker import (
    Fragment,
    PayloadFragmenter,
    fragment,
)

from .codec import (
    Payload,
    PlainPayload,
    EncryptedPayload,
    PreparedImage,
    encode,
    protect,
    digest,
    unprotect,
    verify,
)

from .media import (
    ImageResizer,
    PillowResizer,
    ReconstructedImage,
    MediaError,
    ImageNotFoundError,
    UnsupportedImageError,
    format_file_size,
)

from .sender import (
    SenderPipeline,
    SenderState,
    SendResult,
)

from .reconciler import (
    ReconciliationEngine,
    ReconciliationSession,
    EngineState,
    TriggerReceived,
    PayloadReceived,
    SettleTimerElapsed,
    reconstruct,
)

__all__ = [
    # Chunker
    "Fragment",
    "PayloadFragmenter",
    "fragment",
    # Codec
    "Payload",
    "PlainPayload",
    "EncryptedPayload",
    "PreparedImage",
    "encode",
    "protect",
    "digest",
    "unprotect",
    "verify",
    # Media
    "ImageResizer",
    "PillowResizer",
    "ReconstructedImage",
    "MediaError",
    "ImageNotFoundError",
    "UnsupportedImageError",
    "format_file_size",
    # Sender
    "SenderPipeline",
    "SenderState",
    "SendResult",
    # Receiver
    "ReconciliationEngine",
    "ReconciliationSession",
    "EngineState",
    "TriggerReceived",
    "PayloadReceived",
    "SettleTimerElapsed",
    "reconstruct",
]
