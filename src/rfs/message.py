"""Application messages exchanged over an authenticated session."""

import struct
from abc import ABC, abstractmethod
from dataclasses import dataclass

from .types import MAX_MESSAGE_SIZE, PayloadTooLargeError, SerializationError

_U64 = struct.Struct("<Q")


class Message(ABC):
    """A record that can be turned into bytes and back."""

    @abstractmethod
    def serialize(self) -> bytes:
        """Serialize to at most MAX_MESSAGE_SIZE bytes."""
        ...

    @classmethod
    @abstractmethod
    def deserialize(cls, data: bytes) -> "Message":
        """Rebuild a message from `serialize` output."""
        ...


@dataclass
class WriteFile(Message):
    """Request to write `content` at `position` in `filename`.

    Wire format (little-endian, length-prefixed):
        [0..7]    len(content) (u64)
        [8..]     content
        [..+8]    position (u64)
        [..+8]    len(filename) (u64)
        [..]      filename
    """

    content: bytes
    position: int
    filename: bytes

    @classmethod
    def new(cls, content: bytes, position: int, filename: str) -> "WriteFile":
        return cls(content=bytes(content), position=position, filename=filename.encode("utf-8"))

    def serialize(self) -> bytes:
        """
        Encode the message.

        Raises:
            PayloadTooLargeError: If the encoding exceeds MAX_MESSAGE_SIZE.
            SerializationError: If the position does not fit in a u64.
        """
        try:
            data = (
                _U64.pack(len(self.content))
                + bytes(self.content)
                + _U64.pack(self.position)
                + _U64.pack(len(self.filename))
                + bytes(self.filename)
            )
        except struct.error as e:
            raise SerializationError(f"Could not serialize WriteFile message: {e}") from e

        if len(data) > MAX_MESSAGE_SIZE:
            raise PayloadTooLargeError(len(data))
        return data

    @classmethod
    def deserialize(cls, data: bytes) -> "WriteFile":
        """
        Decode a message.

        Raises:
            SerializationError: If the data is truncated or has trailing bytes.
        """
        offset = 0

        def take(n: int) -> bytes:
            nonlocal offset
            if offset + n > len(data):
                raise SerializationError(
                    f"Could not deserialize WriteFile message: truncated at byte {offset}"
                )
            chunk = data[offset : offset + n]
            offset += n
            return chunk

        (content_len,) = _U64.unpack(take(_U64.size))
        content = take(content_len)
        (position,) = _U64.unpack(take(_U64.size))
        (filename_len,) = _U64.unpack(take(_U64.size))
        filename = take(filename_len)

        if offset != len(data):
            raise SerializationError(
                f"Could not deserialize WriteFile message: {len(data) - offset} trailing bytes"
            )
        return cls(content=bytes(content), position=position, filename=bytes(filename))

    @property
    def filename_str(self) -> str:
        return self.filename.decode("utf-8", errors="replace")
