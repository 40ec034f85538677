"""Ephemeral port allocation and redirect URI helpers.

:func:`allocate_port` asks the OS for a free loopback port by binding to
port 0 and releasing the socket straight away. Another process may claim
the port between that release and the listener's real bind; the
allocation is best-effort and a lost race surfaces later as a
:class:`~loopauth.exceptions.BindError`.
"""

from __future__ import annotations

import socket
from urllib.parse import urlparse

from loopauth.exceptions import InvalidUsageError
from loopauth.models import LOOPBACK_HOST


def allocate_port(host: str = LOOPBACK_HOST) -> int:
    """Find a free TCP port on *host*.

    Returns:
        The port number the OS assigned. The socket used to discover it is
        already closed.
    """
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind((host, 0))
        return s.getsockname()[1]


def build_redirect_uri(port: int, host: str = LOOPBACK_HOST) -> str:
    """Return the redirect URI for a loopback listener, e.g. ``http://127.0.0.1:8765/``."""
    return f"http://{host}:{port}/"


def parse_redirect_uri(uri: str) -> tuple[str, int]:
    """Split a redirect URI into the ``(host, port)`` pair to bind.

    Args:
        uri: An ``http://`` URI with an explicit host and port.

    Returns:
        A ``(host, port)`` tuple.

    Raises:
        InvalidUsageError: If the scheme is not ``http`` or the host or
            port is missing or out of range.
    """
    parsed = urlparse(uri)
    if parsed.scheme != "http":
        raise InvalidUsageError(
            f"Redirect URI must use the http scheme, got: {uri!r}"
        )
    if not parsed.hostname:
        raise InvalidUsageError(f"Redirect URI has no host: {uri!r}")
    try:
        port = parsed.port
    except ValueError as exc:
        raise InvalidUsageError(f"Redirect URI has an invalid port: {uri!r}") from exc
    if not port:
        raise InvalidUsageError(f"Redirect URI must include a port: {uri!r}")
    return parsed.hostname, port
