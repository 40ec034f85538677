"""Loopback redirect listener and its port helpers.

Exports :class:`LoopbackAuthorizationListener` plus the helpers it is built
from, so callers can compute a redirect URI before constructing a listener.
"""

from loopauth.listener.loopback import (
    CONFIRMATION_PAGE,
    LoopbackAuthorizationListener,
    evaluate_redirect,
    open_in_browser,
)
from loopauth.listener.ports import allocate_port, build_redirect_uri, parse_redirect_uri

__all__ = [
    "CONFIRMATION_PAGE",
    "LoopbackAuthorizationListener",
    "allocate_port",
    "build_redirect_uri",
    "evaluate_redirect",
    "open_in_browser",
    "parse_redirect_uri",
]
