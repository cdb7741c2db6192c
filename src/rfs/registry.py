"""
Principal registry and its file loader.

The registry maps a principal name to its `Client` or `Server` entry. It is
populated once, at startup, then only read: handshakes running concurrently
share it without locking.

## File Format

One principal per line, colon-separated:

    server:<name>:<base64 key>:<address>:<port>
    client:<name>:<base64 key>

Lines with any other prefix are ignored. Malformed lines are logged and
skipped; a bad line never aborts the load.
"""

import base64
import binascii
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from .principal import Client, Principal, Server, check_secret, endpoint_of
from .types import (
    DuplicateNameError,
    FIELD_SEPARATOR,
    InvalidKeyError,
    UnknownPrincipalError,
)

log = logging.getLogger(__name__)


class Registry:
    """Mapping from principal name to `Client` or `Server`."""

    def __init__(self, principals: Iterable[Principal] = ()) -> None:
        self._principals: Dict[str, Principal] = {}
        for principal in principals:
            self.insert(principal)

    def lookup(self, name: str) -> Principal:
        """
        Return the principal registered under `name`.

        Raises:
            UnknownPrincipalError: If there is no such name.
        """
        principal = self._principals.get(name)
        if principal is None:
            raise UnknownPrincipalError(name)
        return principal

    def insert(self, principal: Principal) -> None:
        """
        Register a principal. Existing entries are never overwritten.

        Raises:
            InvalidKeyError: If the secret cannot key the cipher.
            DuplicateNameError: If the name is already registered.
        """
        check_secret(principal.secret)
        if principal.name in self._principals:
            raise DuplicateNameError(principal.name)
        self._principals[principal.name] = principal

    def server_endpoint(self, name: str) -> Optional[Tuple[str, int]]:
        """Return (address, port) of a server entry, None otherwise."""
        try:
            principal = self.lookup(name)
        except UnknownPrincipalError as e:
            log.warning("Can not retrieve server address. Reason: %s", e)
            return None
        return endpoint_of(principal)

    def server_address(self, name: str) -> Optional[str]:
        """Return "address:port" of a server entry, None otherwise."""
        endpoint = self.server_endpoint(name)
        if endpoint is None:
            return None
        address, port = endpoint
        return f"{address}:{port}"

    def names(self) -> List[str]:
        return list(self._principals.keys())

    def __contains__(self, name: object) -> bool:
        return name in self._principals

    def __len__(self) -> int:
        return len(self._principals)


def _decode_key(encoded: str) -> bytes:
    key = base64.b64decode(encoded, validate=True)
    check_secret(key)
    return key


def _parse_line(fields: List[str]) -> Optional[Principal]:
    """Build a principal from split fields; None for ignored prefixes."""
    kind = fields[0]
    if kind == "server":
        if len(fields) < 5:
            raise ValueError("does not contain enough fields")
        return Server(
            name=fields[1],
            secret=_decode_key(fields[2]),
            address=fields[3],
            port=int(fields[4]),
        )
    if kind == "client":
        if len(fields) < 3:
            raise ValueError("does not contain enough fields")
        return Client(name=fields[1], secret=_decode_key(fields[2]))
    return None


def parse_registry(lines: Iterable[str], source: str = "<lines>") -> Registry:
    """
    Build a registry from registry-file lines.

    Args:
        lines: Lines of the registry file, with or without terminators.
        source: Name used in log messages.

    Returns:
        The populated Registry. Bad lines and duplicates are skipped.
    """
    registry = Registry()
    for line_nb, line in enumerate(lines, start=1):
        fields = line.rstrip("\r\n").split(FIELD_SEPARATOR)
        try:
            principal = _parse_line(fields)
        except (ValueError, binascii.Error, InvalidKeyError) as e:
            log.warning("Line %d of %s skipped. Reason: %s", line_nb, source, e)
            continue

        if principal is None:
            continue

        try:
            registry.insert(principal)
        except DuplicateNameError:
            log.warning("Duplicate name \"%s\" on line %d of %s.", principal.name, line_nb, source)
    return registry


def load_registry(path: Union[str, Path]) -> Registry:
    """
    Load a registry file.

    A file that cannot be read yields an empty registry, logged as a warning.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            registry = parse_registry(f, source=str(path))
    except (OSError, UnicodeDecodeError) as e:
        log.warning("Could not read registry file %s. Reason: %s", path, e)
        return Registry()

    log.info("Loaded %d principal(s) from %s", len(registry), path)
    return registry
