"""
Envelope encryption for vaultsync payloads.

Every metadata payload is wrapped in an AES-GCM envelope before it is
stored or sent:

    base64( nonce[12] || ciphertext || tag[16] )

A fresh random nonce is drawn for every encryption. The key is a single
symmetric secret held by the server process; rotating it would mean
re-encrypting every stored payload, which this module does not do.
"""

import base64
import binascii
import logging
import os
import secrets
import string
from typing import Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

logger = logging.getLogger(__name__)

NONCE_SIZE = 12
TAG_SIZE = 16
VALID_KEY_SIZES = (16, 24, 32)

_KEY_ALPHABET = string.ascii_letters + string.digits


class EnvelopeError(Exception):
    """Base exception for envelope errors."""

    pass


class CryptoFailure(EnvelopeError):
    """Key material is unusable or encryption could not run."""

    pass


class DecodeFailure(EnvelopeError):
    """Envelope is not valid base64."""

    pass


class EnvelopeTooShort(EnvelopeError):
    """Decoded envelope is shorter than a nonce."""

    pass


class AuthenticationFailure(EnvelopeError):
    """Authentication tag did not verify."""

    pass


def generate_key(length: int = 32) -> str:
    """Generate a random alphanumeric secret usable as an AES key.

    Args:
        length: Number of characters (16, 24 or 32)

    Returns:
        Secret string whose UTF-8 bytes are the key
    """
    if length not in VALID_KEY_SIZES:
        raise CryptoFailure(f"Unsupported key length: {length}")
    return "".join(secrets.choice(_KEY_ALPHABET) for _ in range(length))


class EnvelopeCodec:
    """Encrypts and decrypts opaque payloads with AES-GCM.

    Args:
        key: 16, 24 or 32 bytes of key material. A string is UTF-8 encoded,
            so a 32-character secret selects AES-256.
    """

    def __init__(self, key: Union[bytes, str]):
        if isinstance(key, str):
            key = key.encode("utf-8")
        if not isinstance(key, (bytes, bytearray)) or len(key) not in VALID_KEY_SIZES:
            raise CryptoFailure(
                f"Encryption key must be one of {VALID_KEY_SIZES} bytes"
            )
        self._aesgcm = AESGCM(bytes(key))

    def encrypt(self, plaintext: bytes) -> str:
        """Encrypt plaintext into a base64 envelope.

        Raises:
            CryptoFailure: If no randomness is available or the cipher fails
        """
        try:
            nonce = os.urandom(NONCE_SIZE)
            sealed = self._aesgcm.encrypt(nonce, bytes(plaintext), None)
        except (OSError, NotImplementedError, TypeError, ValueError, OverflowError) as e:
            logger.error(f"Envelope encryption failed: {e}")
            raise CryptoFailure(f"Failed to encrypt payload: {e}") from e
        return base64.b64encode(nonce + sealed).decode("ascii")

    def decrypt(self, envelope: str) -> bytes:
        """Open a base64 envelope and return the plaintext.

        Raises:
            DecodeFailure: Input is not base64
            EnvelopeTooShort: Decoded input is shorter than a nonce
            AuthenticationFailure: Tag check failed (tampering or wrong key)
        """
        try:
            raw = base64.b64decode(envelope, validate=True)
        except (binascii.Error, ValueError, TypeError) as e:
            raise DecodeFailure("Envelope is not valid base64") from e

        if len(raw) < NONCE_SIZE:
            raise EnvelopeTooShort(
                f"Envelope is {len(raw)} bytes, need at least {NONCE_SIZE}"
            )

        # Trailing pad bits are ignored by the decoder; a string that does not
        # round-trip has been altered even though its bytes still verify.
        if base64.b64encode(raw).decode("ascii") != envelope:
            raise AuthenticationFailure("Envelope authentication failed")

        nonce, sealed = raw[:NONCE_SIZE], raw[NONCE_SIZE:]
        try:
            return self._aesgcm.decrypt(nonce, sealed, None)
        except InvalidTag:
            logger.debug("Envelope tag verification failed")
            raise AuthenticationFailure("Envelope authentication failed") from None

    def self_check(self) -> bool:
        """Round-trip a random probe through the codec."""
        probe = secrets.token_bytes(32)
        return self.decrypt(self.encrypt(probe)) == probe
