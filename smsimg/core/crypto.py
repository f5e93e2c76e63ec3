"""
Cryptographic utilities for image payloads.

This module provides:
- Passphrase-based AES-256-CBC encryption in the OpenSSL "Salted__" envelope
  (the format CryptoJS produces for AES.encrypt(data, passphrase))
- Hash utilities for integrity verification
"""

import base64
import binascii
import hashlib
import os

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes


SALTED_MAGIC = b"Salted__"
SALT_SIZE = 8
KEY_SIZE = 32
IV_SIZE = 16
BLOCK_SIZE = 128


def derive_key_and_iv(
    passphrase: bytes,
    salt: bytes,
    key_size: int = KEY_SIZE,
    iv_size: int = IV_SIZE
) -> tuple[bytes, bytes]:
    """
    Derive an AES key and IV with OpenSSL's EVP_BytesToKey (MD5, one round).

    Args:
        passphrase: User passphrase bytes
        salt: 8-byte salt
        key_size: Key length in bytes
        iv_size: IV length in bytes

    Returns:
        Tuple of (key, iv)
    """
    derived = b""
    block = b""
    while len(derived) < key_size + iv_size:
        block = hashlib.md5(block + passphrase + salt).digest()
        derived += block
    return derived[:key_size], derived[key_size:key_size + iv_size]


def encrypt_with_passphrase(
    plaintext: bytes,
    passphrase: str,
    salt: bytes = None
) -> str:
    """
    Encrypt data with a passphrase.

    Args:
        plaintext: Data to encrypt
        passphrase: Non-empty passphrase
        salt: Optional 8-byte salt (generated if not provided)

    Returns:
        Base64 text of the "Salted__" envelope
    """
    if salt is None:
        salt = os.urandom(SALT_SIZE)

    key, iv = derive_key_and_iv(passphrase.encode("utf-8"), salt)

    padder = padding.PKCS7(BLOCK_SIZE).padder()
    padded = padder.update(plaintext) + padder.finalize()

    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()

    return base64.b64encode(SALTED_MAGIC + salt + ciphertext).decode("ascii")


def decrypt_with_passphrase(envelope: str, passphrase: str) -> bytes:
    """
    Decrypt a "Salted__" envelope produced by encrypt_with_passphrase.

    Args:
        envelope: Base64 text of the envelope
        passphrase: Passphrase used for encryption

    Returns:
        Decrypted plaintext

    Raises:
        ValueError: If the envelope is malformed or the padding is invalid
            (the usual symptom of a wrong passphrase)
    """
    try:
        raw = base64.b64decode(envelope, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Envelope is not base64: {e}") from e

    header_size = len(SALTED_MAGIC) + SALT_SIZE
    if not raw.startswith(SALTED_MAGIC) or len(raw) <= header_size:
        raise ValueError("Missing salted envelope header")

    salt = raw[len(SALTED_MAGIC):header_size]
    ciphertext = raw[header_size:]
    if len(ciphertext) % (BLOCK_SIZE // 8):
        raise ValueError("Ciphertext is not a whole number of blocks")

    key, iv = derive_key_and_iv(passphrase.encode("utf-8"), salt)

    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()

    unpadder = padding.PKCS7(BLOCK_SIZE).unpadder()
    return unpadder.update(padded) + unpadder.finalize()


def hash_data(data: bytes) -> str:
    """
    Calculate SHA-256 hash of data.

    Args:
        data: Data to hash

    Returns:
        Hex-encoded hash string
    """
    return hashlib.sha256(data).hexdigest()


def hash_string(text: str) -> str:
    """
    Calculate SHA-256 hash of a string.

    Args:
        text: String to hash

    Returns:
        Hex-encoded hash string
    """
    return hash_data(text.encode())
