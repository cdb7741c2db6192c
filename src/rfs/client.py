"""RFS client: connects to a server and authenticates."""

import asyncio
import logging

from .cipher import KeyedCipher
from .handshake import ClientHandshake
from .registry import Registry
from .session import Session
from .types import ConfigError, ConnectError

log = logging.getLogger(__name__)


class RfsClient:
    """
    A client identity able to open authenticated sessions.

    Example usage:
        ```python
        client = RfsClient.from_registry(registry, "cli1")
        session = await client.connect("localhost", 4242)
        await session.send_message(WriteFile.new(b"data", 0, "notes.txt"))
        await session.close()
        ```
    """

    def __init__(self, name: str, secret: bytes) -> None:
        """
        Raises:
            InvalidKeyError: If the secret cannot key the cipher.
        """
        KeyedCipher(secret)
        self.name = name
        self._secret = bytes(secret)

    @classmethod
    def from_registry(cls, registry: Registry, name: str) -> "RfsClient":
        """Build a client from its registry entry."""
        principal = registry.lookup(name)
        return cls(principal.name, principal.secret)

    async def connect(self, host: str, port: int) -> Session:
        """
        Connect to a server and run the handshake.

        Raises:
            ConnectError: If the connection cannot be established.
            AuthenticationError: If the server rejects us.
            ProtocolError: If the exchange is malformed or cut short.
        """
        try:
            reader, writer = await asyncio.open_connection(host, port)
        except OSError as e:
            raise ConnectError(f"Error connecting to server {host}:{port}. Reason: {e}") from e

        log.info("Connection to %s:%d successful", host, port)
        return await ClientHandshake(self.name, self._secret, reader, writer).run()


async def connect_to_server(registry: Registry, server_name: str, client_name: str) -> Session:
    """
    Open a session to a registered server as a registered client.

    Raises:
        ConfigError: If the server is unknown or is not a server entry.
    """
    endpoint = registry.server_endpoint(server_name)
    if endpoint is None:
        raise ConfigError(f"No server address for {server_name!r}")
    host, port = endpoint
    client = RfsClient.from_registry(registry, client_name)
    return await client.connect(host, port)
