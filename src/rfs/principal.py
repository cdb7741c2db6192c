"""Named principals holding a pre-shared secret."""

from dataclasses import dataclass, field
from typing import Optional, Tuple, Union

from .types import MAX_KEY_SIZE, MIN_KEY_SIZE, InvalidKeyError


@dataclass(frozen=True)
class Client:
    """A client identity."""
    name: str
    secret: bytes = field(repr=False)


@dataclass(frozen=True)
class Server:
    """A server identity, reachable at address:port."""
    name: str
    secret: bytes = field(repr=False)
    address: str
    port: int


Principal = Union[Client, Server]


def check_secret(secret: bytes) -> None:
    """
    Reject secrets that cannot key the cipher.

    Raises:
        InvalidKeyError: If the secret is empty or outside MIN_KEY_SIZE..MAX_KEY_SIZE.
    """
    if not MIN_KEY_SIZE <= len(secret) <= MAX_KEY_SIZE:
        raise InvalidKeyError(
            f"Key must be {MIN_KEY_SIZE} to {MAX_KEY_SIZE} bytes, got {len(secret)}"
        )


def endpoint_of(principal: Principal) -> Optional[Tuple[str, int]]:
    """Return (address, port) for a server, None for a client."""
    if isinstance(principal, Server):
        return principal.address, principal.port
    return None
