"""Authenticated per-connection state."""

import asyncio
import logging
import struct
from typing import Optional, Type

from .cipher import KeyedCipher
from .message import Message, WriteFile
from .principal import Principal
from .signer import BlowfishSigner, decode_signed_message, encode_signed_message
from .types import MAX_MESSAGE_SIZE, SIGNATURE_SIZE, ProtocolError

log = logging.getLogger(__name__)

# Frames carry one encoded signed message behind a 4-byte length.
LENGTH_STRUCT = struct.Struct(">I")
MAX_FRAME_SIZE = MAX_MESSAGE_SIZE + SIGNATURE_SIZE


class Session:
    """
    The result of a successful handshake.

    Holds the transport, the principal whose secret was proven, and a cipher
    keyed with that secret. Only the handshake creates sessions.

    On the server side `principal` is the authenticated client. On the client
    side it is the local identity the client proved, since the server never
    proves its own.

    Example usage:
        ```python
        session = await client.connect("localhost", 4242)
        await session.send_message(WriteFile.new(b"hello", 0, "notes.txt"))
        await session.close()
        ```
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        principal: Principal,
        cipher: KeyedCipher,
    ) -> None:
        self.reader = reader
        self.writer = writer
        self.principal = principal
        self.cipher = cipher
        self._signer = BlowfishSigner(cipher)
        self._closed = False

    @property
    def peer_name(self) -> str:
        """Name of the proven principal: the remote client on a server session,
        our own name on a client session."""
        return self.principal.name

    @property
    def signer(self) -> BlowfishSigner:
        return self._signer

    @property
    def closed(self) -> bool:
        return self._closed

    async def send_message(self, message: Message) -> None:
        """
        Sign a message and write it as one frame.

        Raises:
            SerializationError: If the message cannot be serialized.
            ProtocolError: If the connection is lost.
        """
        payload = encode_signed_message(self._signer.sign(message))
        try:
            self.writer.write(LENGTH_STRUCT.pack(len(payload)) + payload)
            await self.writer.drain()
        except (ConnectionError, OSError) as e:
            raise ProtocolError(f"Could not send message: {e}") from e
        log.debug("Sent %d-byte signed message to %s", len(payload), self.peer_name)

    async def receive_message(self, message_type: Type[Message] = WriteFile) -> Optional[Message]:
        """
        Read one frame, verify its signature and decode it.

        Returns:
            The message, or None if the peer closed the connection between frames.

        Raises:
            ProtocolError: On a truncated or oversized frame.
            SignatureMismatchError: If the signature does not verify.
            SerializationError: If the payload does not decode.
        """
        try:
            header = await self.reader.readexactly(LENGTH_STRUCT.size)
        except asyncio.IncompleteReadError as e:
            if not e.partial:
                return None
            raise ProtocolError("Connection closed inside a frame header") from e
        except (ConnectionError, OSError) as e:
            raise ProtocolError(f"Could not read message: {e}") from e

        (length,) = LENGTH_STRUCT.unpack(header)
        if length > MAX_FRAME_SIZE:
            raise ProtocolError(f"Frame too large: {length} > {MAX_FRAME_SIZE}")

        try:
            payload = await self.reader.readexactly(length)
        except asyncio.IncompleteReadError as e:
            raise ProtocolError("Connection closed inside a frame") from e
        except (ConnectionError, OSError) as e:
            raise ProtocolError(f"Could not read message: {e}") from e

        signed = decode_signed_message(payload)
        self._signer.verify(signed)
        return message_type.deserialize(signed.serialized_message)

    async def close(self) -> None:
        """Close the transport. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        await close_writer(self.writer)


async def close_writer(writer: asyncio.StreamWriter) -> None:
    """Close a stream writer, ignoring errors from an already dead peer."""
    writer.close()
    try:
        await writer.wait_closed()
    except (ConnectionError, OSError) as e:
        log.debug("Error while closing transport: %s", e)
