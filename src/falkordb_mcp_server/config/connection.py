"""Parsing of ``falkordb://[username:password@]host:port`` connection strings."""

from dataclasses import dataclass
from typing import Optional

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 6379
SCHEME = "falkordb://"


@dataclass
class ConnectionOptions:
    """Parsed connection options."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    username: Optional[str] = None
    password: Optional[str] = None


def _parse_port(value: str) -> int:
    try:
        port = int(value)
    except ValueError:
        return DEFAULT_PORT
    return port or DEFAULT_PORT


def parse_falkordb_connection_string(connection_string: str) -> ConnectionOptions:
    """
    Parse a FalkorDB connection string.

    The last ``@`` separates credentials from the address so that passwords
    may contain ``@``; the first ``:`` in the credentials separates username
    from password so that passwords may contain ``:``. A credential part
    without ``:`` is a password.

    Args:
        connection_string: String to parse; empty means defaults

    Returns:
        Parsed connection options
    """
    if not connection_string:
        return ConnectionOptions()

    remainder = connection_string
    if remainder.startswith(SCHEME):
        remainder = remainder[len(SCHEME):]

    auth, sep, host_port = remainder.rpartition("@")
    if not sep:
        auth, host_port = "", remainder

    host, _, port_text = host_port.partition(":")
    options = ConnectionOptions(
        host=host or DEFAULT_HOST,
        port=_parse_port(port_text) if port_text else DEFAULT_PORT,
    )

    if auth and ":" in auth:
        username, _, password = auth.partition(":")
        options.username = username or None
        options.password = password or None
    elif auth:
        options.password = auth

    return options
