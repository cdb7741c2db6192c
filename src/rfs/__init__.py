"""
RFS - Remote File Service

Pre-shared-key challenge-response authentication and signed write requests,
using Blowfish keyed by each principal's secret.
"""

from .types import (
    BLOCK_SIZE,
    CHALLENGE_SIZE,
    SIGNATURE_SIZE,
    MAX_MESSAGE_SIZE,
    RfsError,
    ConfigError,
    UnknownPrincipalError,
    DuplicateNameError,
    ConnectError,
    ProtocolError,
    InvalidSignedMessageError,
    AuthenticationError,
    SerializationError,
    PayloadTooLargeError,
    SignatureMismatchError,
    InvalidKeyError,
)
from .principal import Client, Server, Principal, endpoint_of
from .registry import Registry, parse_registry, load_registry
from .cipher import KeyedCipher, key
from .challenge import generate_challenge
from .message import Message, WriteFile
from .signer import (
    SignedMessage,
    BlowfishSigner,
    checksum,
    encode_signed_message,
    decode_signed_message,
)
from .session import Session
from .handshake import (
    ServerState,
    ClientState,
    ServerHandshake,
    ClientHandshake,
    authenticate_client,
    authenticate_to_server,
)
from .server import RfsServer
from .client import RfsClient, connect_to_server
from .config import Settings

__version__ = "0.1.0"

__all__ = [
    # Constants
    "BLOCK_SIZE",
    "CHALLENGE_SIZE",
    "SIGNATURE_SIZE",
    "MAX_MESSAGE_SIZE",
    # Errors
    "RfsError",
    "ConfigError",
    "UnknownPrincipalError",
    "DuplicateNameError",
    "ConnectError",
    "ProtocolError",
    "InvalidSignedMessageError",
    "AuthenticationError",
    "SerializationError",
    "PayloadTooLargeError",
    "SignatureMismatchError",
    "InvalidKeyError",
    # Principals
    "Client",
    "Server",
    "Principal",
    "endpoint_of",
    # Registry
    "Registry",
    "parse_registry",
    "load_registry",
    # Cipher
    "KeyedCipher",
    "key",
    "generate_challenge",
    # Messages
    "Message",
    "WriteFile",
    "SignedMessage",
    "BlowfishSigner",
    "checksum",
    "encode_signed_message",
    "decode_signed_message",
    # Session / handshake
    "Session",
    "ServerState",
    "ClientState",
    "ServerHandshake",
    "ClientHandshake",
    "authenticate_client",
    "authenticate_to_server",
    # Network
    "RfsServer",
    "RfsClient",
    "connect_to_server",
    # Config
    "Settings",
]
