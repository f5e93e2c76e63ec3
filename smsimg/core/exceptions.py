"""
smsimg exceptions.

All exceptions inherit from SmsImgError for easy catching.

Errors fall into four groups:
- Input errors: raised before a send has any side effect
- Transport errors: bulk channel absence is fatal, narrow failures are logged
- Integrity errors: reset the receiver session, never crash the engine
- Framing errors: dropped as narrow-channel noise
"""


class SmsImgError(Exception):
    """Base exception for all smsimg errors."""

    def __init__(self, message: str, code: str = "SMSIMG_ERROR"):
        super().__init__(message)
        self.code = code
        self.message = message


# Input errors

class NoRecipientError(SmsImgError):
    """No recipient number was given for a send."""

    def __init__(self, message: str = "Please enter a recipient phone number."):
        super().__init__(message, "NO_RECIPIENT")


class TransportUnavailableError(SmsImgError):
    """The narrow-channel transport is not installed or not usable."""

    def __init__(self, message: str = "Narrow-channel transport is not available."):
        super().__init__(message, "TRANSPORT_UNAVAILABLE")


# Transport errors

class BulkChannelNotConnectedError(SmsImgError):
    """The relay connection is not open."""

    def __init__(self, message: str = "Bulk channel is not connected."):
        super().__init__(message, "BULK_NOT_CONNECTED")


class NarrowSendError(SmsImgError):
    """A single narrow-channel message could not be sent."""

    def __init__(self, message: str, recipient: str = None):
        super().__init__(message, "NARROW_SEND_ERROR")
        self.recipient = recipient


# Integrity errors

class MissingPassphraseError(SmsImgError):
    """Payload is encrypted and no passphrase was supplied."""

    def __init__(self, message: str = "Encrypted image. Enter passphrase to decrypt."):
        super().__init__(message, "MISSING_PASSPHRASE")


class DecryptionFailedError(SmsImgError):
    """Decryption produced nothing usable (usually a wrong passphrase)."""

    def __init__(self, message: str = "Could not decrypt image. Wrong passphrase?"):
        super().__init__(message, "DECRYPTION_FAILED")


class ChecksumMismatchError(SmsImgError):
    """Reconstructed plaintext does not match the agreed checksum."""

    def __init__(
        self,
        message: str = "Corrupted image.",
        expected: str = None,
        actual: str = None
    ):
        super().__init__(message, "CHECKSUM_MISMATCH")
        self.expected = expected
        self.actual = actual


# Framing errors

class MalformedFrameError(SmsImgError):
    """Narrow-channel text is not a protocol frame."""

    def __init__(self, message: str):
        super().__init__(message, "MALFORMED_FRAME")
