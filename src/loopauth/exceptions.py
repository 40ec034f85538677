"""Exception hierarchy for loopauth.

All exceptions inherit from :class:`LoopauthError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`loopauth.exit_codes`.
The top-level error handler in :func:`loopauth.app.main` catches
``LoopauthError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Two families matter to library callers:

* **Plumbing failures** (:class:`BindError`, :class:`ListenerBusyError`) are
  raised from :meth:`~loopauth.listener.LoopbackAuthorizationListener.start`.
* **Handshake rejections** (:class:`ProviderError`,
  :class:`MalformedResponseError`, :class:`StateMismatchError`,
  :class:`CancelledAuthorizationError`) are *never* raised by ``start``.
  They are recorded on the :class:`~loopauth.models.AuthorizationResult`
  and only raised on request via
  :meth:`~loopauth.models.AuthorizationResult.raise_for_rejection`.

Subclass hierarchy::

    LoopauthError (exit 1)
    +-- InvalidUsageError            (exit 2)
    |   +-- ConstructionError        (exit 2)
    |   +-- ListenerBusyError        (exit 2)
    +-- AuthorizationError           (exit 3)
    |   +-- ProviderError
    |   +-- MalformedResponseError
    |   +-- StateMismatchError
    |   +-- CancelledAuthorizationError
    +-- BindError                    (exit 6)
    +-- ConfigError                  (exit 1)
    +-- SerializationError           (exit 1)
"""

from loopauth.exit_codes import (
    EXIT_AUTHORIZATION_REJECTED,
    EXIT_BIND_FAILURE,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
)


class LoopauthError(Exception):
    """Base exception for all loopauth errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`loopauth.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(LoopauthError):
    """Raised for invalid CLI arguments or invalid API arguments (e.g. a malformed redirect URI)."""

    exit_code = EXIT_INVALID_USAGE


class ConstructionError(InvalidUsageError):
    """Raised when a required constructor dependency is ``None``."""

    def __init__(self, argument: str):
        super().__init__(f"Argument '{argument}' must not be None")
        self.argument = argument


class ListenerBusyError(InvalidUsageError):
    """Raised when ``start`` is called while another call on the same listener is in flight."""


class AuthorizationError(LoopauthError):
    """Base class for handshake rejections recorded on an authorization result."""

    exit_code = EXIT_AUTHORIZATION_REJECTED


class ProviderError(AuthorizationError):
    """The provider redirected back with an ``error`` query parameter."""


class MalformedResponseError(AuthorizationError):
    """The redirect was missing the ``code`` or ``state`` query parameter."""


class StateMismatchError(AuthorizationError):
    """The ``state`` echoed by the provider does not match the expected value."""


class CancelledAuthorizationError(AuthorizationError):
    """The listener was stopped before any redirect arrived."""


class BindError(LoopauthError):
    """Raised when the redirect endpoint cannot be bound (port in use, permission denied)."""

    exit_code = EXIT_BIND_FAILURE


class ConfigError(LoopauthError):
    """Raised for configuration problems (invalid JSON, invalid values)."""

    exit_code = EXIT_GENERIC_FAILURE


class SerializationError(LoopauthError):
    """Raised when a payload cannot be decoded, validated, or read back from disk."""

    exit_code = EXIT_GENERIC_FAILURE
