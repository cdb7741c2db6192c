"""Tests for sessions, the server and the client."""

import asyncio
import logging

import pytest

from rfs.cipher import KeyedCipher
from rfs.client import RfsClient, connect_to_server
from rfs.message import WriteFile
from rfs.principal import Client, Server
from rfs.registry import Registry, parse_registry
from rfs.server import RfsServer
from rfs.session import LENGTH_STRUCT, Session
from rfs.signer import BlowfishSigner, encode_signed_message
from rfs.types import (
    AuthenticationError,
    ConfigError,
    ConnectError,
    InvalidKeyError,
    ProtocolError,
    SignatureMismatchError,
    UnknownPrincipalError,
)
from .test_vectors import (
    CLIENT_KEY,
    OTHER_KEY,
    REGISTRY_LINES,
    SERVER_KEY,
    RecordingWriter,
    make_reader,
)


@pytest.fixture
def registry():
    return parse_registry(REGISTRY_LINES)


def frame(payload: bytes) -> bytes:
    return LENGTH_STRUCT.pack(len(payload)) + payload


def signed_frame(message: WriteFile, secret: bytes = CLIENT_KEY) -> bytes:
    return frame(encode_signed_message(BlowfishSigner(secret).sign(message)))


def receive(data: bytes):
    """Feed `data` to a session and return what receive_message gives back."""

    async def scenario():
        session = Session(
            make_reader(data), RecordingWriter(), Client("alice", CLIENT_KEY), KeyedCipher(CLIENT_KEY)
        )
        return await session.receive_message(WriteFile)

    return asyncio.run(scenario())


class TestSession:
    """Framed, signed message exchange on an authenticated session."""

    def test_send_writes_signed_frame(self) -> None:
        message = WriteFile.new(b"hello", 0, "notes.txt")

        async def scenario():
            writer = RecordingWriter()
            session = Session(make_reader(b""), writer, Client("alice", CLIENT_KEY),
                              KeyedCipher(CLIENT_KEY))
            await session.send_message(message)
            return writer

        writer = asyncio.run(scenario())
        assert bytes(writer.buffer) == signed_frame(message)

    def test_signer_uses_session_key(self) -> None:
        """The session signer is keyed with the authenticated principal's secret."""
        message = WriteFile.new(b"hello", 0, "notes.txt")

        async def scenario():
            session = Session(make_reader(b""), RecordingWriter(), Client("alice", CLIENT_KEY),
                              KeyedCipher(CLIENT_KEY))
            return session.signer.sign(message)

        assert asyncio.run(scenario()) == BlowfishSigner(CLIENT_KEY).sign(message)

    def test_receive_verified_message(self) -> None:
        message = WriteFile.new(b"hello", 7, "notes.txt")
        assert receive(signed_frame(message)) == message

    def test_receive_eof_between_frames(self) -> None:
        assert receive(b"") is None

    def test_receive_wrong_key(self) -> None:
        with pytest.raises(SignatureMismatchError):
            receive(signed_frame(WriteFile.new(b"hello", 0, "f"), secret=OTHER_KEY))

    def test_receive_tampered_payload(self) -> None:
        data = bytearray(signed_frame(WriteFile.new(b"hello", 0, "f")))
        data[LENGTH_STRUCT.size + 8] ^= 0x20
        with pytest.raises(SignatureMismatchError):
            receive(bytes(data))

    def test_receive_truncated_header(self) -> None:
        with pytest.raises(ProtocolError, match="header"):
            receive(b"\x00\x00")

    def test_receive_truncated_frame(self) -> None:
        with pytest.raises(ProtocolError):
            receive(signed_frame(WriteFile.new(b"hello", 0, "f"))[:-1])

    def test_receive_oversized_frame(self) -> None:
        with pytest.raises(ProtocolError, match="too large"):
            receive(LENGTH_STRUCT.pack(10_000))

    def test_send_on_dead_connection(self) -> None:
        async def scenario():
            session = Session(make_reader(b""), RecordingWriter(fail_writes=True),
                              Client("alice", CLIENT_KEY), KeyedCipher(CLIENT_KEY))
            await session.send_message(WriteFile.new(b"x", 0, "f"))

        with pytest.raises(ProtocolError):
            asyncio.run(scenario())

    def test_close_is_idempotent(self) -> None:
        async def scenario():
            writer = RecordingWriter()
            session = Session(make_reader(b""), writer, Client("alice", CLIENT_KEY),
                              KeyedCipher(CLIENT_KEY))
            await session.close()
            await session.close()
            return session, writer

        session, writer = asyncio.run(scenario())
        assert session.closed
        assert writer.closed


class TestRfsServerConfig:
    """Server construction from the registry."""

    def test_requires_server_entry(self, registry) -> None:
        with pytest.raises(ConfigError, match="client"):
            RfsServer("alice", registry)

    def test_unknown_name(self, registry) -> None:
        with pytest.raises(UnknownPrincipalError):
            RfsServer("nobody", registry)

    def test_uses_registered_endpoint(self, registry) -> None:
        server = RfsServer("srv1", registry)
        assert (server.host, server.port) == ("127.0.0.1", 4242)


class TestRfsClientConfig:
    """Client construction."""

    def test_from_registry(self, registry) -> None:
        client = RfsClient.from_registry(registry, "alice")
        assert client.name == "alice"

    def test_from_registry_unknown(self, registry) -> None:
        with pytest.raises(UnknownPrincipalError):
            RfsClient.from_registry(registry, "nobody")

    def test_empty_secret(self) -> None:
        with pytest.raises(InvalidKeyError):
            RfsClient("alice", b"")


class TestEndToEnd:
    """A real server and client over loopback TCP."""

    def _serve(self, registry, client_coro):
        """Start srv1 on a free port, run `client_coro(port)`, collect requests."""

        async def scenario():
            received = []
            got_request = asyncio.Event()

            async def handler(session, request):
                received.append((session.peer_name, request))
                got_request.set()

            server = RfsServer("srv1", registry, handler=handler, host="127.0.0.1", port=0)
            await server.start()
            port = server.sockets[0].getsockname()[1]
            try:
                result = await client_coro(port, got_request)
            finally:
                await server.close()
            return result, received

        return asyncio.run(scenario())

    def test_authenticated_write_request(self, registry) -> None:
        request = WriteFile.new(b"hello", 3, "notes.txt")

        async def client(port, got_request):
            session = await RfsClient("alice", CLIENT_KEY).connect("127.0.0.1", port)
            await session.send_message(request)
            await asyncio.wait_for(got_request.wait(), timeout=5)
            await session.close()

        _, received = self._serve(registry, client)
        assert received == [("alice", request)]

    def test_wrong_secret_rejected(self, registry) -> None:
        async def client(port, got_request):
            with pytest.raises(AuthenticationError):
                await RfsClient("alice", OTHER_KEY).connect("127.0.0.1", port)

        _, received = self._serve(registry, client)
        assert received == []

    def test_unknown_client_rejected(self, registry) -> None:
        async def client(port, got_request):
            with pytest.raises(AuthenticationError):
                await RfsClient("mallory", CLIENT_KEY).connect("127.0.0.1", port)

        self._serve(registry, client)

    def test_bad_signature_ends_session(self, registry, caplog) -> None:
        """A message signed with the wrong key is dropped and the session closed."""

        async def client(port, got_request):
            session = await RfsClient("alice", CLIENT_KEY).connect("127.0.0.1", port)
            forged = signed_frame(WriteFile.new(b"evil", 0, "f"), secret=OTHER_KEY)
            session.writer.write(forged)
            await session.writer.drain()
            # Server closes its side once verification fails.
            assert await session.reader.read() == b""
            await session.close()

        with caplog.at_level(logging.WARNING, logger="rfs.server"):
            _, received = self._serve(registry, client)
        assert received == []
        assert "aborted" in caplog.text

    def test_concurrent_clients(self, registry) -> None:
        async def client(port, got_request):
            sessions = await asyncio.gather(
                RfsClient("alice", CLIENT_KEY).connect("127.0.0.1", port),
                RfsClient("bob", bytes([4, 0, 0, 0])).connect("127.0.0.1", port),
            )
            for session in sessions:
                await session.close()
            return [session.peer_name for session in sessions]

        names, _ = self._serve(registry, client)
        assert names == ["alice", "bob"]

    def test_connect_to_server_from_registry(self, registry) -> None:
        async def client(port, got_request):
            client_registry = Registry([
                Server("srv1", SERVER_KEY, "127.0.0.1", port),
                Client("alice", CLIENT_KEY),
            ])
            session = await connect_to_server(client_registry, "srv1", "alice")
            await session.close()
            return session.peer_name

        name, _ = self._serve(registry, client)
        assert name == "alice"

    def test_connect_to_client_entry_fails(self, registry) -> None:
        with pytest.raises(ConfigError):
            asyncio.run(connect_to_server(registry, "alice", "bob"))

    def test_connection_refused(self) -> None:
        async def scenario():
            server = await asyncio.start_server(lambda r, w: None, "127.0.0.1", 0)
            port = server.sockets[0].getsockname()[1]
            server.close()
            await server.wait_closed()
            await RfsClient("alice", CLIENT_KEY).connect("127.0.0.1", port)

        with pytest.raises(ConnectError):
            asyncio.run(scenario())
