"""Canonical Pydantic models shared across all loopauth modules.

This is the single source of truth for data shapes in the project. The models
fall into two groups:

**Listener models** -- inputs to and outputs from the loopback capture flow:
    :class:`ListenerConfig`, :class:`Rejection`, and
    :class:`AuthorizationResult`.

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`OutputConfig` and :class:`GlobalConfig`.

All models use Pydantic v2. The listener models are frozen: the listener
replaces its result wholesale instead of mutating fields in place.
"""

from __future__ import annotations

import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from loopauth.exceptions import (
    AuthorizationError,
    CancelledAuthorizationError,
    MalformedResponseError,
    ProviderError,
    StateMismatchError,
)

LOOPBACK_HOST = "127.0.0.1"
"""The IPv4 loopback address every redirect endpoint binds to by default."""


# --- Listener ---


class ListenerConfig(BaseModel):
    """Immutable input for a :class:`~loopauth.listener.LoopbackAuthorizationListener`.

    When ``port`` is ``None`` an ephemeral port is picked once, when the
    listener is constructed.
    """

    model_config = ConfigDict(frozen=True)

    port: Optional[int] = Field(default=None, ge=1, le=65535)
    host: str = LOOPBACK_HOST


class Rejection(str, enum.Enum):
    """Why a captured redirect did not produce an authorization code."""

    PROVIDER_ERROR = "provider_error"
    MALFORMED_RESPONSE = "malformed_response"
    STATE_MISMATCH = "state_mismatch"
    CANCELLED = "cancelled"


_REJECTION_ERRORS: dict[Rejection, type[AuthorizationError]] = {
    Rejection.PROVIDER_ERROR: ProviderError,
    Rejection.MALFORMED_RESPONSE: MalformedResponseError,
    Rejection.STATE_MISMATCH: StateMismatchError,
    Rejection.CANCELLED: CancelledAuthorizationError,
}


class AuthorizationResult(BaseModel):
    """Outcome of one :meth:`~loopauth.listener.LoopbackAuthorizationListener.start` call.

    The zero value (``AuthorizationResult()``) is the state every ``start``
    call begins from: no code, not successful. A successful result always
    carries a non-empty ``code``.

    Protocol rejections are *recorded* here rather than raised. Callers that
    prefer exceptions call :meth:`raise_for_rejection` after awaiting
    ``start``::

        result = await listener.start(url, state=expected)
        result.raise_for_rejection()
        exchange(result.code)
    """

    model_config = ConfigDict(frozen=True)

    code: Optional[str] = None
    is_successful: bool = False
    state: Optional[str] = None
    rejection: Optional[Rejection] = None
    detail: Optional[str] = Field(
        default=None, description="Human-readable reason for a rejection"
    )

    @classmethod
    def success(cls, code: str, state: Optional[str]) -> AuthorizationResult:
        if not code:
            raise ValueError("A successful result requires a non-empty code")
        return cls(code=code, state=state, is_successful=True)

    @classmethod
    def rejected(
        cls, rejection: Rejection, detail: str, state: Optional[str] = None
    ) -> AuthorizationResult:
        return cls(rejection=rejection, detail=detail, state=state)

    def raise_for_rejection(self) -> None:
        """Raise the :class:`~loopauth.exceptions.AuthorizationError` matching this result.

        Does nothing for a successful result.

        Raises:
            ProviderError: The provider redirected with ``error``.
            MalformedResponseError: ``code`` or ``state`` was missing.
            StateMismatchError: The anti-forgery check failed.
            CancelledAuthorizationError: The listener was stopped before a
                redirect arrived.
            AuthorizationError: The result is the zero value (``start`` has
                not completed).
        """
        if self.is_successful:
            return
        if self.rejection is None:
            raise AuthorizationError("No authorization result has been captured")
        raise _REJECTION_ERRORS[self.rejection](self.detail or self.rejection.value)


# --- Global config ---


class OutputConfig(BaseModel):
    """Output format defaults."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class GlobalConfig(BaseModel):
    """User-level defaults persisted in ``config.json``.

    Loaded by :func:`~loopauth.config.load_global_config` and saved by
    :func:`~loopauth.config.save_global_config`. Every field has a default,
    so a missing file yields a fully usable configuration.
    """

    port: Optional[int] = Field(
        default=None,
        ge=1,
        le=65535,
        description="Fixed redirect port; an ephemeral port is used when unset",
    )
    host: str = Field(default=LOOPBACK_HOST, description="Loopback address to bind")
    timeout: Optional[float] = Field(
        default=None,
        gt=0,
        description="Seconds to wait for the redirect; wait forever when unset",
    )
    open_browser: bool = Field(
        default=True, description="Open the authorization URL in the default browser"
    )
    output: OutputConfig = Field(default_factory=OutputConfig)
