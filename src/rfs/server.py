"""RFS server: authenticates clients, then accepts signed write requests."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from .handshake import ServerHandshake
from .message import WriteFile
from .principal import Server
from .registry import Registry
from .session import Session
from .types import ConfigError, ConnectError, RfsError

log = logging.getLogger(__name__)

WriteHandler = Callable[[Session, WriteFile], Awaitable[None]]


async def log_write_request(session: Session, request: WriteFile) -> None:
    """Default handler: record the request without touching the disk."""
    log.info(
        "Write request from %s: %d byte(s) at offset %d in %s",
        session.peer_name,
        len(request.content),
        request.position,
        request.filename_str,
    )


class RfsServer:
    """
    Listens on the endpoint registered for `name` and serves each connection
    in its own task.

    Example usage:
        ```python
        registry = load_registry("assets/rfs_config")
        server = RfsServer("srv1", registry)
        await server.serve_forever()
        ```
    """

    def __init__(
        self,
        name: str,
        registry: Registry,
        handler: Optional[WriteHandler] = None,
        host: Optional[str] = None,
        port: Optional[int] = None,
    ) -> None:
        """
        Args:
            name: Server principal name in the registry.
            registry: Principals allowed to connect.
            handler: Called with each verified WriteFile request.
            host: Override the registered address.
            port: Override the registered port (0 picks a free one).

        Raises:
            ConfigError: If `name` is unknown or is not a server entry.
        """
        principal = registry.lookup(name)
        if not isinstance(principal, Server):
            raise ConfigError(f"Item {name} is a client")

        self.name = name
        self.registry = registry
        self.handler = handler or log_write_request
        self.host = host if host is not None else principal.address
        self.port = port if port is not None else principal.port
        self._server: Optional[asyncio.AbstractServer] = None

    @property
    def sockets(self):
        return self._server.sockets if self._server is not None else ()

    async def start(self) -> None:
        """
        Bind the listening socket.

        Raises:
            ConnectError: If the address cannot be bound.
        """
        try:
            self._server = await asyncio.start_server(self.handle_connection, self.host, self.port)
        except OSError as e:
            raise ConnectError(f"Can not create RfsServer. Reason: {e}") from e

        addrs = ", ".join(str(sock.getsockname()) for sock in self._server.sockets or [])
        log.info("Server %s listening on %s", self.name, addrs)

    async def serve_forever(self) -> None:
        if self._server is None:
            await self.start()
        async with self._server:
            await self._server.serve_forever()

    async def close(self) -> None:
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

    async def handle_connection(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        """Authenticate one client and serve its requests until it disconnects."""
        peer = writer.get_extra_info("peername")
        log.info("New tcp client: %s", peer)

        try:
            session = await ServerHandshake(self.registry, reader, writer).run()
        except RfsError as e:
            log.warning("Authentication failure from %s: %s", peer, e)
            return

        try:
            while True:
                request = await session.receive_message(WriteFile)
                if request is None:
                    break
                await self.handler(session, request)
        except RfsError as e:
            log.warning("Session with %s aborted: %s", session.peer_name, e)
        finally:
            await session.close()
            log.info("Connection closed")
