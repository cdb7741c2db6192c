"""Blowfish single-block cipher keyed by a principal's secret."""

from cryptography.hazmat.decrepit.ciphers.algorithms import Blowfish
from cryptography.hazmat.primitives.ciphers import Cipher, modes

from .types import BLOCK_SIZE, InvalidKeyError, ProtocolError


class KeyedCipher:
    """
    A Blowfish instance bound to one secret.

    Every operation in the protocol works on exactly one block, so ECB over a
    single block is plain Blowfish encryption with no chaining and no padding.
    """

    def __init__(self, secret: bytes) -> None:
        if not secret:
            raise InvalidKeyError("Key must not be empty")
        try:
            self._cipher = Cipher(Blowfish(bytes(secret)), modes.ECB())
        except ValueError as e:
            raise InvalidKeyError(f"Invalid Blowfish key: {e}") from e

    def encrypt_block(self, block: bytes) -> bytes:
        """
        Encrypt one block.

        Args:
            block: Exactly BLOCK_SIZE bytes.

        Returns:
            The BLOCK_SIZE-byte ciphertext.

        Raises:
            ProtocolError: If the input is not one block long.
        """
        if len(block) != BLOCK_SIZE:
            raise ProtocolError(
                f"Block must be {BLOCK_SIZE} bytes, got {len(block)}"
            )
        encryptor = self._cipher.encryptor()
        return encryptor.update(bytes(block)) + encryptor.finalize()


def key(secret: bytes) -> KeyedCipher:
    """Return a cipher keyed with `secret`."""
    return KeyedCipher(secret)
