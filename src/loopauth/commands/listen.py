"""Listener commands -- run the loopback redirect capture from the shell.

Provides three top-level commands:

* ``loopauth listen`` -- open an authorization URL, wait for the provider
  to redirect back to the loopback address, and print the captured code.
* ``loopauth port`` -- print a free loopback port.
* ``loopauth redirect-uri`` -- print the redirect URI a listener would use,
  so it can be registered with the provider or embedded in the
  authorization URL.

Typical workflow::

    REDIRECT=$(loopauth redirect-uri --port 8765)
    CODE=$(loopauth listen --port 8765 --state "$STATE" \\
        "https://idp.example.com/authorize?client_id=...&redirect_uri={redirect_uri}&state=$STATE")
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Optional
from urllib.parse import quote

import typer

from loopauth.exceptions import LoopauthError
from loopauth.exit_codes import EXIT_BIND_FAILURE
from loopauth.models import AuthorizationResult, Rejection
from loopauth.output import (
    OutputFormat,
    error,
    format_response,
    get_output,
    info,
    print_data,
    success,
    suggest,
)

if TYPE_CHECKING:
    from loopauth.listener import LoopbackAuthorizationListener

REDIRECT_PLACEHOLDER = "{redirect_uri}"
"""Placeholder in ``SERVICE_URL`` replaced by the URL-encoded redirect URI."""


def listen_command(
    service_url: str = typer.Argument(
        help="Authorization URL to open. '{redirect_uri}' is replaced by the listener's redirect URI."
    ),
    state: Optional[str] = typer.Option(
        None, "--state", "-s", help="Expected anti-forgery state value."
    ),
    port: Optional[int] = typer.Option(
        None, "--port", help="Redirect port (default: a free ephemeral port)."
    ),
    host: Optional[str] = typer.Option(None, "--host", help="Loopback address to bind."),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", "-t", help="Seconds to wait for the redirect (default: no limit)."
    ),
    no_browser: bool = typer.Option(
        False, "--no-browser", help="Print the URL instead of opening a browser."
    ),
) -> None:
    """Capture one authorization-code redirect on a loopback port.

    Starts a one-shot HTTP listener on the redirect URI, opens
    ``SERVICE_URL`` in the default browser, waits for the provider to
    redirect back, and prints the authorization code to stdout (or a JSON
    document with ``--json``).

    Args:
        service_url: The provider's authorization URL.
        state: Expected ``state`` value; a mismatch rejects the redirect.
        port: Redirect port override.
        host: Bind address override.
        timeout: Maximum seconds to wait for the redirect.
        no_browser: Print the URL instead of launching a browser.

    Raises:
        typer.Exit: With code 3 if the redirect is rejected or does not
            arrive in time, 6 if the port cannot be bound, 2 for invalid
            arguments.

    Example::

        loopauth listen --state abc123 "https://idp.example.com/authorize?state=abc123"
    """
    from loopauth.config import resolve_config
    from loopauth.listener import LoopbackAuthorizationListener, open_in_browser

    try:
        config = resolve_config(
            cli_port=port,
            cli_host=host,
            cli_timeout=timeout,
            cli_open_browser=False if no_browser else None,
        )
        listener = LoopbackAuthorizationListener(
            config.port,
            host=config.host,
            launcher=open_in_browser if config.open_browser else _show_url,
        )
        url = service_url.replace(REDIRECT_PLACEHOLDER, quote(listener.redirect_uri, safe=""))
        result = asyncio.run(_capture(listener, url, state, config.timeout))
        result.raise_for_rejection()
    except LoopauthError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    assert result.code is not None
    if get_output().format == OutputFormat.JSON:
        format_response(
            {
                "code": result.code,
                "state": result.state,
                "redirect_uri": listener.redirect_uri,
            }
        )
    else:
        print_data(result.code)
    success("Authorization code received.")


async def _capture(
    listener: LoopbackAuthorizationListener,
    url: str,
    state: Optional[str],
    timeout: Optional[float],
) -> AuthorizationResult:
    """Run ``listener.start``, turning an expired *timeout* into a cancelled result."""
    if timeout is None:
        return await listener.start(url, state)
    try:
        return await asyncio.wait_for(listener.start(url, state), timeout)
    except asyncio.TimeoutError:
        return AuthorizationResult.rejected(
            Rejection.CANCELLED, f"No redirect received within {timeout:g} seconds"
        )


def _show_url(url: str) -> None:
    info(f"Open this URL in your browser to continue:\n{url}")


def port_command(
    host: Optional[str] = typer.Option(None, "--host", help="Loopback address to check for a free port."),
) -> None:
    """Print a free TCP port on the loopback address.

    The port is released immediately, so another process may take it
    before it is used.

    Example::

        loopauth port
    """
    from loopauth.listener import allocate_port
    from loopauth.models import LOOPBACK_HOST

    try:
        print_data(str(allocate_port(host or LOOPBACK_HOST)))
    except OSError as exc:
        error(f"Cannot allocate a port: {exc}")
        raise typer.Exit(code=EXIT_BIND_FAILURE) from None


def redirect_uri_command(
    port: Optional[int] = typer.Option(
        None, "--port", help="Redirect port (default: configured port or a free one)."
    ),
    host: Optional[str] = typer.Option(None, "--host", help="Loopback address."),
) -> None:
    """Print the redirect URI a listener would use.

    Uses the resolved configuration (CLI flags, environment, project and
    user config). Without a configured port a free ephemeral port is
    picked, so pass ``--port`` when the value must match a later
    ``loopauth listen`` call.

    Example::

        loopauth redirect-uri --port 8765
    """
    from loopauth.config import resolve_config
    from loopauth.listener import allocate_port, build_redirect_uri

    try:
        config = resolve_config(cli_port=port, cli_host=host)
    except LoopauthError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    chosen = config.port if config.port is not None else allocate_port(config.host)
    print_data(build_redirect_uri(chosen, config.host))
    if config.port is None:
        suggest(f"Pin it for 'listen' with: --port {chosen}")
