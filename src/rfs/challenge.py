"""Challenge generation for the authentication handshake."""

import os

from .types import CHALLENGE_SIZE


def generate_challenge() -> bytes:
    """Return a fresh CHALLENGE_SIZE-byte nonce from the OS random source."""
    return os.urandom(CHALLENGE_SIZE)
