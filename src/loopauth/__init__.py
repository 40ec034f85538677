"""loopauth -- capture OAuth2 authorization-code redirects on a loopback port.

Native and command-line applications cannot receive an OAuth2 redirect on a
public URL, so they register ``http://127.0.0.1:<port>/`` with the identity
provider instead. This package runs the client side of that handshake:
bind a one-shot HTTP listener on the loopback address, open the
authorization URL in the user's browser, wait for the provider to redirect
back, and validate the ``code`` / ``state`` / ``error`` parameters.

Typical usage::

    from loopauth import LoopbackAuthorizationListener

    listener = LoopbackAuthorizationListener()
    result = await listener.start(authorization_url, state=expected_state)
    if result.is_successful:
        exchange_code(result.code, redirect_uri=listener.redirect_uri)

Modules:
    listener: The loopback listener, port allocation, redirect URI helpers.
    serialization: JSON encode/decode and zip-compressed persistence.
    app: Typer application factory and CLI entry point.
    models: Pydantic models shared across the package.
    config: XDG-aware configuration and precedence resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"

from loopauth.listener import LoopbackAuthorizationListener  # noqa: E402
from loopauth.models import AuthorizationResult, ListenerConfig, Rejection  # noqa: E402

__all__ = [
    "AuthorizationResult",
    "ListenerConfig",
    "LoopbackAuthorizationListener",
    "Rejection",
    "__version__",
]
