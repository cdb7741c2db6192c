"""
Message signing for authenticated sessions.

Messages are first serialized, then all bytes are XOR-ed into a one-byte
checksum. The checksum, zero-padded to one block, is encrypted with the
sender's key. The result is the signature.

## Security

The signature only protects the XOR of the payload bytes. Any change that
leaves the XOR unchanged (two bytes swapped, two equal flips) still verifies.
It detects accidental corruption and rejects tags made without the key, but it
is not a MAC and must not be relied upon against a deliberate forger.
"""

import hmac
import logging
from dataclasses import dataclass
from typing import Union

from .cipher import KeyedCipher
from .message import Message
from .types import (
    BLOCK_SIZE,
    SIGNATURE_SIZE,
    InvalidSignedMessageError,
    SignatureMismatchError,
)

log = logging.getLogger(__name__)


@dataclass
class SignedMessage:
    """A serialized message and its signature."""
    serialized_message: bytes
    signature: bytes  # SIGNATURE_SIZE bytes


def checksum(data: bytes) -> int:
    """XOR all bytes of `data` together."""
    xor = 0
    for byte in data:
        xor ^= byte
    return xor


class BlowfishSigner:
    """Signs and verifies messages with a Blowfish-encrypted checksum."""

    def __init__(self, key: Union[bytes, KeyedCipher]) -> None:
        """
        Args:
            key: A secret, or a cipher already keyed with one.
        """
        self._cipher = key if isinstance(key, KeyedCipher) else KeyedCipher(key)

    def _signature_for(self, data: bytes) -> bytes:
        block = bytes([checksum(data)]) + bytes(BLOCK_SIZE - 1)
        return self._cipher.encrypt_block(block)

    def sign(self, message: Message) -> SignedMessage:
        """
        Serialize and sign a message.

        Raises:
            SerializationError: If the message cannot be serialized or is too large.
        """
        data = message.serialize()
        return SignedMessage(serialized_message=data, signature=self._signature_for(data))

    def verify(self, signed: SignedMessage) -> None:
        """
        Check a signature against the payload it accompanies.

        Raises:
            SignatureMismatchError: If the signature is wrong.
        """
        expected = self._signature_for(signed.serialized_message)
        if not hmac.compare_digest(expected, bytes(signed.signature)):
            log.debug("Signature mismatch on %d-byte message", len(signed.serialized_message))
            raise SignatureMismatchError(
                "The provided signature and the computed signature don't match"
            )


def encode_signed_message(signed: SignedMessage) -> bytes:
    """Encode as serialized message followed by the signature."""
    return bytes(signed.serialized_message) + bytes(signed.signature)


def decode_signed_message(data: bytes) -> SignedMessage:
    """
    Split an encoded signed message.

    Raises:
        InvalidSignedMessageError: If data is shorter than a signature.
    """
    if len(data) < SIGNATURE_SIZE:
        raise InvalidSignedMessageError(
            f"Data too short: {len(data)} bytes (minimum {SIGNATURE_SIZE})"
        )
    return SignedMessage(
        serialized_message=bytes(data[:-SIGNATURE_SIZE]),
        signature=bytes(data[-SIGNATURE_SIZE:]),
    )
