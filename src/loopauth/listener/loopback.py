"""Loopback redirect capture for the OAuth2 authorization code flow.

This module provides :class:`LoopbackAuthorizationListener`, which performs
the client side of the loopback redirect handshake:

1. Binds a short-lived HTTP server on ``http://127.0.0.1:<port>/``.
2. Opens the provider's authorization URL in the user's browser.
3. Waits for exactly one redirect back to the loopback address.
4. Answers it with a static "return to the app" page and stops the server.
5. Validates the redirect's ``error`` / ``code`` / ``state`` parameters.

The HTTP server runs on a daemon thread (``http.server``); the waiting side
is a coroutine bridged to the server through an :class:`asyncio.Future`, so
``await listener.start(...)`` never blocks the event loop while the user is
busy in the browser.

Plumbing failures raise (:class:`~loopauth.exceptions.BindError`,
:class:`~loopauth.exceptions.ListenerBusyError`). Handshake rejections do
not: they are recorded on the returned
:class:`~loopauth.models.AuthorizationResult`, so callers must check
``is_successful``.

Token exchange is out of scope: the caller takes ``result.code`` to the
provider's token endpoint.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import webbrowser
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable, Mapping, Optional
from urllib.parse import parse_qs, urlparse

from loopauth.exceptions import BindError, InvalidUsageError, ListenerBusyError
from loopauth.listener.ports import allocate_port, build_redirect_uri, parse_redirect_uri
from loopauth.models import LOOPBACK_HOST, AuthorizationResult, ListenerConfig, Rejection


CONFIRMATION_PAGE = (
    "<html><head><title>Authorization received</title></head>"
    "<body><h2>Please return to the app.</h2>"
    "<p>You can close this window.</p></body></html>"
)
"""Static body sent back to the browser for the captured redirect."""

BrowserLauncher = Callable[[str], Any]

_POLL_INTERVAL = 0.05
_REQUEST_TIMEOUT = 10.0


def open_in_browser(url: str) -> None:
    """Open *url* in the default browser without blocking the caller."""
    threading.Thread(target=webbrowser.open, args=(url,), daemon=True).start()


def evaluate_redirect(
    params: Mapping[str, str], expected_state: Optional[str] = None
) -> AuthorizationResult:
    """Turn the query parameters of a captured redirect into a result.

    Checks run in a fixed order and the first match decides:

    1. ``error`` present, even blank --
       :attr:`~loopauth.models.Rejection.PROVIDER_ERROR`.
    2. ``code`` missing or blank, or ``state`` missing --
       :attr:`~loopauth.models.Rejection.MALFORMED_RESPONSE`.
    3. *expected_state* given and different from ``state`` --
       :attr:`~loopauth.models.Rejection.STATE_MISMATCH`.
    4. Otherwise success, carrying ``code``.

    Args:
        params: Single-valued query parameters, blank values included.
        expected_state: The anti-forgery token sent with the authorization
            request, or ``None`` to skip the comparison.

    Returns:
        A new :class:`~loopauth.models.AuthorizationResult`.
    """
    state = params.get("state")
    if "error" in params:
        detail = f"OAuth authorization error: {params['error']}"
        description = params.get("error_description")
        if description:
            detail += f" - {description}"
        return AuthorizationResult.rejected(Rejection.PROVIDER_ERROR, detail, state)

    code = params.get("code")
    if not code or state is None:
        missing = [name for name, absent in (("code", not code), ("state", state is None)) if absent]
        return AuthorizationResult.rejected(
            Rejection.MALFORMED_RESPONSE,
            f"Malformed authorization response, missing: {', '.join(missing)}",
            state,
        )

    if expected_state is not None and state != expected_state:
        return AuthorizationResult.rejected(
            Rejection.STATE_MISMATCH,
            f"Received request with invalid state ({state})",
            state,
        )

    return AuthorizationResult.success(code, state)


class _Capture:
    """One-shot hand-off of a redirect's query parameters to the waiting coroutine.

    The server thread calls :meth:`claim` and :meth:`deliver`; :meth:`cancel`
    may be called from any thread. ``None`` is delivered for a cancelled wait.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        self._future: asyncio.Future[Optional[dict[str, str]]] = loop.create_future()
        self._lock = threading.Lock()
        self._claimed = False

    def claim(self) -> bool:
        """Return True for the first request only."""
        with self._lock:
            if self._claimed:
                return False
            self._claimed = True
            return True

    def deliver(self, params: dict[str, str]) -> None:
        self._loop.call_soon_threadsafe(self._set, params)

    def cancel(self) -> None:
        with self._lock:
            if self._claimed:
                return
            self._claimed = True
        self._loop.call_soon_threadsafe(self._set, None)

    async def wait(self) -> Optional[dict[str, str]]:
        return await self._future

    def _set(self, value: Optional[dict[str, str]]) -> None:
        if not self._future.done():
            self._future.set_result(value)


class _CaptureServer(ThreadingHTTPServer):
    """Threaded server that reports handler failures through the listener's logger.

    Each connection gets its own daemon thread, so a client that connects
    and never sends a request (a browser preconnect, say) cannot hold up
    the redirect or the shutdown.
    """

    daemon_threads = True
    block_on_close = False

    def __init__(
        self,
        address: tuple[str, int],
        handler: type[BaseHTTPRequestHandler],
        on_error: Callable[[str], None],
    ) -> None:
        self._on_error = on_error
        super().__init__(address, handler)

    def handle_error(self, request: Any, client_address: Any) -> None:
        self._on_error(f"Error while answering redirect from {client_address[0]}")


class LoopbackAuthorizationListener:
    """Capture one OAuth2 authorization-code redirect on a loopback port.

    The port is fixed when the listener is created: either the one given
    or an ephemeral port picked once by
    :func:`~loopauth.listener.ports.allocate_port`. Every :meth:`start` call
    binds that port afresh and releases it before returning, so a listener
    can be reused for as many handshakes as needed, one at a time.

    Args:
        port: Explicit redirect port. ``None`` picks a free ephemeral port.
        host: Loopback address to bind and to put in the redirect URI.
        launcher: Called with the authorization URL once the server is
            listening. Defaults to :func:`open_in_browser`.
        logger: Receives a message for every transition and validation
            outcome. Defaults to this module's logger.
        response_body: HTML sent back to the browser.

    Raises:
        InvalidUsageError: If *port* is outside ``1..65535``.

    Example::

        listener = LoopbackAuthorizationListener()
        url = build_authorization_url(redirect_uri=listener.redirect_uri, state=state)
        result = await listener.start(url, state)
        if result.is_successful:
            tokens = exchange(result.code)
    """

    def __init__(
        self,
        port: Optional[int] = None,
        *,
        host: str = LOOPBACK_HOST,
        launcher: Optional[BrowserLauncher] = None,
        logger: Optional[logging.Logger] = None,
        response_body: str = CONFIRMATION_PAGE,
    ) -> None:
        if port is not None and not 1 <= port <= 65535:
            raise InvalidUsageError(f"Port must be between 1 and 65535, got: {port}")
        self._logger = logger if logger is not None else logging.getLogger(__name__)
        self._launcher = launcher or open_in_browser
        self._response_body = response_body.encode("utf-8")
        self._result = AuthorizationResult()
        self._capture: Optional[_Capture] = None
        self._redirect_uri = build_redirect_uri(
            port if port is not None else allocate_port(host), host
        )
        self._log(f"Redirect URI: {self._redirect_uri}")

    @classmethod
    def from_config(
        cls, config: ListenerConfig, **kwargs: Any
    ) -> LoopbackAuthorizationListener:
        """Create a listener from a :class:`~loopauth.models.ListenerConfig`."""
        return cls(config.port, host=config.host, **kwargs)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def redirect_uri(self) -> str:
        """The URI the provider must redirect to.

        Assigning a new value logs the change. The value is read once at
        the beginning of each :meth:`start` call, so changing it while a
        call is waiting only affects the next call.
        """
        return self._redirect_uri

    @redirect_uri.setter
    def redirect_uri(self, value: str) -> None:
        if value == self._redirect_uri:
            return
        parse_redirect_uri(value)
        self._log(f"Changing redirect URI: {self._redirect_uri} -> {value}")
        self._redirect_uri = value

    @property
    def result(self) -> AuthorizationResult:
        """The result of the most recent :meth:`start` call."""
        return self._result

    @property
    def code(self) -> Optional[str]:
        return self._result.code

    @property
    def is_successful(self) -> bool:
        return self._result.is_successful

    @property
    def is_listening(self) -> bool:
        """Whether a :meth:`start` call is currently waiting for its redirect."""
        return self._capture is not None

    # ------------------------------------------------------------------
    # Flow
    # ------------------------------------------------------------------

    async def start(
        self, service_url: str, state: Optional[str] = None
    ) -> AuthorizationResult:
        """Open *service_url* and wait for the provider to redirect back.

        The result is reset before anything else happens. The server is
        bound and accepting before the launcher is called, and it is
        released before this coroutine returns or raises, whatever the
        outcome.

        There is no built-in timeout. Bound the wait with
        :func:`asyncio.wait_for` (the socket is released on cancellation)
        or call :meth:`stop` from elsewhere.

        Args:
            service_url: The provider's authorization URL, already carrying
                ``redirect_uri`` and ``state``.
            state: Expected anti-forgery token. ``None`` skips the check.

        Returns:
            The new :class:`~loopauth.models.AuthorizationResult`, also
            available afterwards as :attr:`result`.

        Raises:
            ListenerBusyError: If another call on this listener is still
                waiting.
            BindError: If the redirect endpoint cannot be bound. The
                launcher is not called.
        """
        if self._capture is not None:
            raise ListenerBusyError(
                "This listener is already waiting for a redirect; "
                "await the previous start() call first"
            )

        self._result = AuthorizationResult()
        redirect_uri = self._redirect_uri
        address = parse_redirect_uri(redirect_uri)
        capture = _Capture(asyncio.get_running_loop())

        try:
            server = _CaptureServer(address, self._make_handler(capture), self._log_debug)
        except OSError as exc:
            self._log(f"Cannot listen on {redirect_uri}: {exc}")
            raise BindError(f"Cannot listen on {redirect_uri}: {exc}") from exc

        self._capture = capture
        thread = threading.Thread(
            target=server.serve_forever,
            kwargs={"poll_interval": _POLL_INTERVAL},
            name="loopauth-redirect",
            daemon=True,
        )
        thread.start()
        try:
            self._log(f"Listening on {redirect_uri}...")
            self._open(service_url)
            params = await capture.wait()
        except asyncio.CancelledError:
            self._result = AuthorizationResult.rejected(
                Rejection.CANCELLED, "Wait for the redirect was cancelled"
            )
            self._log("Wait for the redirect was cancelled.")
            raise
        finally:
            try:
                await asyncio.to_thread(server.shutdown)
            finally:
                server.server_close()
                self._capture = None
                self._log("HTTP server stopped.")

        if params is None:
            self._result = AuthorizationResult.rejected(
                Rejection.CANCELLED, "Listener stopped before any redirect arrived"
            )
        else:
            self._result = evaluate_redirect(params, state)

        if self._result.is_successful:
            self._log("Authorization code received.")
        else:
            self._log(self._result.detail or "Authorization rejected.")
        return self._result

    def stop(self) -> None:
        """Stop a waiting :meth:`start` call; safe from any thread.

        The waiting call returns a result rejected with
        :attr:`~loopauth.models.Rejection.CANCELLED`. Does nothing when no
        call is waiting or its redirect has already arrived.
        """
        capture = self._capture
        if capture is not None:
            capture.cancel()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _open(self, url: str) -> None:
        try:
            self._launcher(url)
        except Exception as exc:
            self._log(f"Could not open the browser ({exc}); open this URL manually: {url}")

    def _make_handler(self, capture: _Capture) -> type[BaseHTTPRequestHandler]:
        body = self._response_body
        log_debug = self._log_debug

        class RedirectHandler(BaseHTTPRequestHandler):
            timeout = _REQUEST_TIMEOUT

            def do_GET(self) -> None:
                if not capture.claim():
                    self.send_error(410, "Authorization response already received")
                    return

                query = parse_qs(urlparse(self.path).query, keep_blank_values=True)
                params = {name: values[0] for name, values in query.items()}
                try:
                    self.send_response(200)
                    self.send_header("Content-Type", "text/html; charset=utf-8")
                    self.send_header("Content-Length", str(len(body)))
                    self.end_headers()
                    self.wfile.write(body)
                finally:
                    capture.deliver(params)

            def log_message(self, format: str, *args: Any) -> None:
                log_debug(format % args)

        return RedirectHandler

    def _log(self, message: str, level: int = logging.INFO) -> None:
        try:
            self._logger.log(level, message)
        except Exception:
            # A broken log sink must not break the handshake.
            pass

    def _log_debug(self, message: str) -> None:
        self._log(message, logging.DEBUG)
