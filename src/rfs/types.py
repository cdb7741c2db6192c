"""Type definitions and protocol constants for RFS."""


# Cipher constants
BLOCK_SIZE = 8  # Blowfish block size
CHALLENGE_SIZE = BLOCK_SIZE
SIGNATURE_SIZE = BLOCK_SIZE

# Message constants
MAX_MESSAGE_SIZE = 512

# Blowfish accepts keys of 32 to 448 bits
MIN_KEY_SIZE = 4
MAX_KEY_SIZE = 56

# Handshake lines
IDENTIFY_PROMPT = "Please identify yourself"
CHALLENGE_PREFIX = "Challenge is: "
AUTH_SUCCESS = "Client authenticated"
AUTH_FAILURE = "Authentication failure. Aborting."

# Registry file
DEFAULT_REGISTRY_PATH = "assets/rfs_config"
FIELD_SEPARATOR = ":"


# Exception types
class RfsError(Exception):
    """Base exception for RFS errors."""
    pass


class ConfigError(RfsError):
    """Registry or configuration problem."""
    pass


class UnknownPrincipalError(ConfigError):
    """No client or server with that name in the registry."""

    def __init__(self, name: str) -> None:
        super().__init__(f"No client or server named {name!r} in the registry")
        self.name = name


class DuplicateNameError(ConfigError):
    """A principal with that name is already registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Duplicate name {name!r}")
        self.name = name


class ConnectError(RfsError):
    """Transport could not be established."""
    pass


class ProtocolError(RfsError):
    """Malformed line, decode failure or unexpected disconnect."""
    pass


class InvalidSignedMessageError(ProtocolError):
    """Signed message blob is too short to hold a signature."""
    pass


class AuthenticationError(RfsError):
    """Challenge-response did not match."""
    pass


class SerializationError(RfsError):
    """Message could not be encoded or decoded."""
    pass


class PayloadTooLargeError(SerializationError):
    """Serialized message exceeds MAX_MESSAGE_SIZE."""

    def __init__(self, size: int) -> None:
        super().__init__(f"Message too large: {size} bytes (max {MAX_MESSAGE_SIZE})")
        self.size = size


class SignatureMismatchError(RfsError):
    """The provided signature and the computed signature don't match."""
    pass


class InvalidKeyError(RfsError):
    """Secret cannot be used as a cipher key."""
    pass
