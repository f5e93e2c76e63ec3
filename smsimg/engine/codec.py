"""
Image codec: canonical encoding, optional encryption, digest, fragments.

The checksum of a transmission is always computed over the canonical
plaintext (base64 of the resized image), never over the encrypted payload,
so encryption never changes what the receiver validates against.
"""

import base64
import binascii
import logging
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict

from ..core.config import JPEG_QUALITY, MAX_DIMENSION
from ..core.crypto import decrypt_with_passphrase, encrypt_with_passphrase, hash_string
from ..core.exceptions import DecryptionFailedError, MissingPassphraseError
from .media import ImageResizer, PillowResizer

logger = logging.getLogger(__name__)


class PlainPayload(BaseModel):
    """Payload sent as the canonical plaintext itself."""

    text: str
    enc: Literal[0] = 0


class EncryptedPayload(BaseModel):
    """Payload carrying the text-encoded encryption of the canonical plaintext."""

    text: str
    enc: Literal[1] = 1


Payload = Union[PlainPayload, EncryptedPayload]


class PreparedImage(BaseModel):
    """Everything the sender needs to dispatch one image."""

    canonical: str
    payload: Payload
    checksum: str
    fragments: list[str]

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def total(self) -> int:
        return len(self.fragments)

    @property
    def enc(self) -> int:
        return self.payload.enc


async def encode(
    uri: str,
    resizer: Optional[ImageResizer] = None,
    max_dimension: int = MAX_DIMENSION,
    quality: int = JPEG_QUALITY
) -> str:
    """
    Resize an image and return its canonical plaintext.

    Args:
        uri: Source image path or file URI
        resizer: Resize collaborator (Pillow by default)
        max_dimension: Width and height of the bounding box
        quality: JPEG quality

    Returns:
        Base64 text of the resized image
    """
    resizer = resizer or PillowResizer()
    data = await resizer.resize(uri, max_dimension, max_dimension, quality)
    return base64.b64encode(data).decode("ascii")


def protect(canonical: str, passphrase: Optional[str] = None) -> tuple[Payload, str]:
    """
    Optionally encrypt the canonical plaintext.

    Args:
        canonical: Canonical plaintext
        passphrase: Optional passphrase; empty means no encryption

    Returns:
        Tuple of (payload, checksum source). The checksum source is always
        the canonical plaintext.
    """
    if not passphrase:
        return PlainPayload(text=canonical), canonical

    envelope = encrypt_with_passphrase(base64.b64decode(canonical), passphrase)
    text = base64.b64encode(envelope.encode("utf-8")).decode("ascii")
    return EncryptedPayload(text=text), canonical


def digest(text: str) -> str:
    """SHA-256 of the text as lowercase hex."""
    return hash_string(text)


def unprotect(payload: str, enc: int, passphrase: Optional[str] = None) -> str:
    """
    Recover the canonical plaintext from a received payload.

    Args:
        payload: Payload text as received on the bulk channel
        enc: 1 if the payload is encrypted, else 0
        passphrase: Passphrase for encrypted payloads

    Returns:
        Canonical plaintext

    Raises:
        MissingPassphraseError: Encrypted payload and no passphrase
        DecryptionFailedError: Decryption produced nothing usable
    """
    if not enc:
        return payload

    if not passphrase:
        raise MissingPassphraseError()

    try:
        envelope = base64.b64decode(payload, validate=True).decode("utf-8")
        plaintext = decrypt_with_passphrase(envelope, passphrase)
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        logger.debug(f"Decryption failed: {e}")
        raise DecryptionFailedError() from e

    if not plaintext:
        raise DecryptionFailedError()

    return base64.b64encode(plaintext).decode("ascii")


def verify(canonical: str, checksum: str) -> bool:
    """Exact, case-sensitive comparison of the recomputed digest."""
    return digest(canonical) == checksum

