"""
Challenge-response authentication handshake.

The server proves nothing; the client proves it holds the secret registered
for the name it claims. Lines are UTF-8, newline-terminated; binary values are
base64-encoded.

    server -> Please identify yourself
    server -> Challenge is: "<base64 challenge>"
    client -> <name>
    client -> <base64 Blowfish(secret, challenge)>
    server -> Client authenticated | Authentication failure. Aborting.

Both sides run a small state machine. Any failure moves it to REJECTED,
closes the transport and raises; a Session only exists once the state is
AUTHENTICATED.
"""

import asyncio
import base64
import binascii
import hmac
import logging
from enum import Enum
from typing import Optional

from .challenge import generate_challenge
from .cipher import KeyedCipher
from .principal import Client
from .registry import Registry
from .session import Session, close_writer
from .types import (
    AUTH_FAILURE,
    AUTH_SUCCESS,
    BLOCK_SIZE,
    CHALLENGE_PREFIX,
    CHALLENGE_SIZE,
    IDENTIFY_PROMPT,
    AuthenticationError,
    InvalidKeyError,
    ProtocolError,
    RfsError,
    UnknownPrincipalError,
)

log = logging.getLogger(__name__)


class ServerState(Enum):
    LISTENING = "listening"
    CHALLENGE_SENT = "challenge_sent"
    IDENTITY_RECEIVED = "identity_received"
    RESPONSE_RECEIVED = "response_received"
    AUTHENTICATED = "authenticated"
    REJECTED = "rejected"


class ClientState(Enum):
    CONNECTED = "connected"
    AWAITING_CHALLENGE = "awaiting_challenge"
    IDENTITY_SENT = "identity_sent"
    RESPONSE_SENT = "response_sent"
    AUTHENTICATED = "authenticated"
    REJECTED = "rejected"


async def read_line(reader: asyncio.StreamReader) -> str:
    """
    Read one line and strip its terminator.

    Raises:
        ProtocolError: On disconnect, an overlong line or invalid UTF-8.
    """
    try:
        raw = await reader.readline()
    except (asyncio.LimitOverrunError, ValueError) as e:
        raise ProtocolError(f"Line too long: {e}") from e
    except (ConnectionError, OSError) as e:
        raise ProtocolError(f"Could not read line: {e}") from e

    if not raw.endswith(b"\n"):
        raise ProtocolError("Connection closed by peer")

    try:
        return raw.decode("utf-8").rstrip("\r\n")
    except UnicodeDecodeError as e:
        raise ProtocolError(f"Line is not valid UTF-8: {e}") from e


async def write_line(writer: asyncio.StreamWriter, line: str) -> None:
    """
    Write one newline-terminated line.

    Raises:
        ProtocolError: If the connection is lost.
    """
    try:
        writer.write(line.encode("utf-8") + b"\n")
        await writer.drain()
    except (ConnectionError, OSError) as e:
        raise ProtocolError(f"Could not write line: {e}") from e


def decode_block(text: str, what: str) -> bytes:
    """
    Decode a base64 value that must be exactly one cipher block.

    Raises:
        ProtocolError: If the text is not base64 or has the wrong length.
    """
    try:
        value = base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ProtocolError(f"Can not decode {what}: {e}") from e
    if len(value) != BLOCK_SIZE:
        raise ProtocolError(f"{what.capitalize()} must be {BLOCK_SIZE} bytes, got {len(value)}")
    return value


def format_challenge_line(challenge: bytes) -> str:
    encoded = base64.b64encode(challenge).decode("ascii")
    return f'{CHALLENGE_PREFIX}"{encoded}"'


def parse_challenge_line(line: str) -> bytes:
    """
    Extract the challenge from a `Challenge is: "<base64>"` line.

    Raises:
        ProtocolError: If there is no quote-delimited value or it does not decode.
    """
    parts = line.split('"')
    if len(parts) < 3:
        raise ProtocolError(f"Malformed challenge line: {line!r}")
    return decode_block(parts[1], "challenge")


class ServerHandshake:
    """
    Server side of the handshake for one accepted connection.

    Example usage:
        ```python
        handshake = ServerHandshake(registry, reader, writer)
        session = await handshake.run()
        ```
    """

    def __init__(
        self,
        registry: Registry,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        challenge: Optional[bytes] = None,
    ) -> None:
        """
        Args:
            registry: Principals allowed to authenticate.
            reader: Stream from the client.
            writer: Stream to the client.
            challenge: Fixed challenge, for tests. A fresh one is drawn otherwise.
        """
        if challenge is not None and len(challenge) != CHALLENGE_SIZE:
            raise ValueError(f"Challenge must be {CHALLENGE_SIZE} bytes, got {len(challenge)}")
        self.registry = registry
        self.reader = reader
        self.writer = writer
        self.state = ServerState.LISTENING
        self.claimed_name: Optional[str] = None
        self._challenge = challenge

    async def run(self) -> Session:
        """
        Run the handshake to completion.

        Returns:
            The authenticated Session; it owns the transport from now on.

        Raises:
            AuthenticationError: If the client did not prove its identity.
            ProtocolError: If the exchange was malformed or cut short.
        """
        try:
            return await self._run()
        except RfsError:
            self.state = ServerState.REJECTED
            await self._send_failure()
            await close_writer(self.writer)
            raise

    async def _run(self) -> Session:
        challenge = self._challenge if self._challenge is not None else generate_challenge()
        self._challenge = None

        log.debug("Challenge proposed: %s", challenge.hex())
        await write_line(self.writer, IDENTIFY_PROMPT)
        await write_line(self.writer, format_challenge_line(challenge))
        self.state = ServerState.CHALLENGE_SENT

        name = await read_line(self.reader)
        self.claimed_name = name
        self.state = ServerState.IDENTITY_RECEIVED
        log.info("Identity pretended: %s", name)

        principal = None
        cipher = None
        expected = None
        try:
            principal = self.registry.lookup(name)
            cipher = KeyedCipher(principal.secret)
            expected = cipher.encrypt_block(challenge)
        except (UnknownPrincipalError, InvalidKeyError) as e:
            # Keep going so the client sees the same exchange either way.
            log.warning("Can not get client identity. Reason: %s", e)

        response = decode_block(await read_line(self.reader), "challenge response")
        self.state = ServerState.RESPONSE_RECEIVED

        if expected is None:
            raise AuthenticationError(f"Unknown identity {name!r}")
        if not hmac.compare_digest(response, expected):
            log.warning("Wrong challenge response from %s", name)
            raise AuthenticationError(f"Wrong challenge response from {name!r}")

        await write_line(self.writer, AUTH_SUCCESS)
        self.state = ServerState.AUTHENTICATED
        log.info("Client %s authenticated", name)
        return Session(self.reader, self.writer, principal, cipher)

    async def _send_failure(self) -> None:
        try:
            await write_line(self.writer, AUTH_FAILURE)
        except ProtocolError as e:
            log.debug("NAUTH not sent: %s", e)


class ClientHandshake:
    """Client side of the handshake: prove we hold the secret for `name`."""

    def __init__(
        self,
        name: str,
        secret: bytes,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        self.name = name
        self.reader = reader
        self.writer = writer
        self.state = ClientState.CONNECTED
        self._secret = bytes(secret)

    async def run(self) -> Session:
        """
        Run the handshake to completion.

        Returns:
            The authenticated Session.

        Raises:
            AuthenticationError: If the server rejected us.
            ProtocolError: If the exchange was malformed or cut short.
            InvalidKeyError: If the secret cannot key the cipher.
        """
        try:
            return await self._run()
        except RfsError:
            self.state = ClientState.REJECTED
            await close_writer(self.writer)
            raise

    async def _run(self) -> Session:
        cipher = KeyedCipher(self._secret)
        self.state = ClientState.AWAITING_CHALLENGE
        await read_line(self.reader)  # prompt
        challenge = parse_challenge_line(await read_line(self.reader))
        log.debug("Challenge is: %s", challenge.hex())

        await write_line(self.writer, self.name)
        self.state = ClientState.IDENTITY_SENT

        response = cipher.encrypt_block(challenge)
        await write_line(self.writer, base64.b64encode(response).decode("ascii"))
        self.state = ClientState.RESPONSE_SENT

        verdict = await read_line(self.reader)
        if verdict != AUTH_SUCCESS:
            log.warning("Server rejected authentication as %s: %s", self.name, verdict)
            raise AuthenticationError(f"Authentication as {self.name!r} rejected")

        self.state = ClientState.AUTHENTICATED
        log.info("Authenticated as %s", self.name)
        return Session(self.reader, self.writer, Client(self.name, self._secret), cipher)


async def authenticate_client(
    registry: Registry,
    reader: asyncio.StreamReader,
    writer: asyncio.StreamWriter,
) -> Session:
    """Run the server side of the handshake."""
    return await ServerHandshake(registry, reader, writer).run()


async def authenticate_to_server(
    name: str,
    secret: bytes,
    reader: asyncio.StreamReader,
    writer: asyncio.StreamWriter,
) -> Session:
    """Run the client side of the handshake."""
    return await ClientHandshake(name, secret, reader, writer).run()
