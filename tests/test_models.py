"""Tests for the shared Pydantic models and exception mapping."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from loopauth.exceptions import (
    AuthorizationError,
    CancelledAuthorizationError,
    MalformedResponseError,
    ProviderError,
    StateMismatchError,
)
from loopauth.exit_codes import EXIT_AUTHORIZATION_REJECTED
from loopauth.models import AuthorizationResult, GlobalConfig, ListenerConfig, Rejection


class TestAuthorizationResult:
    def test_zero_value(self) -> None:
        result = AuthorizationResult()
        assert result.code is None
        assert not result.is_successful
        assert result.rejection is None

    def test_success_requires_code(self) -> None:
        with pytest.raises(ValueError, match="non-empty code"):
            AuthorizationResult.success("", "S1")

    def test_frozen(self) -> None:
        result = AuthorizationResult.success("XYZ", "S1")
        with pytest.raises(ValidationError):
            result.code = "other"  # type: ignore[misc]

    def test_raise_for_rejection_success_is_noop(self) -> None:
        AuthorizationResult.success("XYZ", "S1").raise_for_rejection()

    @pytest.mark.parametrize(
        ("rejection", "error_type"),
        [
            (Rejection.PROVIDER_ERROR, ProviderError),
            (Rejection.MALFORMED_RESPONSE, MalformedResponseError),
            (Rejection.STATE_MISMATCH, StateMismatchError),
            (Rejection.CANCELLED, CancelledAuthorizationError),
        ],
    )
    def test_raise_for_rejection_maps_reason(
        self, rejection: Rejection, error_type: type[AuthorizationError]
    ) -> None:
        result = AuthorizationResult.rejected(rejection, "went wrong")
        with pytest.raises(error_type, match="went wrong") as exc_info:
            result.raise_for_rejection()
        assert exc_info.value.exit_code == EXIT_AUTHORIZATION_REJECTED

    def test_raise_for_rejection_on_zero_value(self) -> None:
        with pytest.raises(AuthorizationError, match="No authorization result"):
            AuthorizationResult().raise_for_rejection()


class TestListenerConfig:
    def test_defaults(self) -> None:
        config = ListenerConfig()
        assert config.port is None
        assert config.host == "127.0.0.1"

    @pytest.mark.parametrize("port", [0, 65536])
    def test_port_range(self, port: int) -> None:
        with pytest.raises(ValidationError):
            ListenerConfig(port=port)


class TestGlobalConfig:
    def test_defaults(self) -> None:
        config = GlobalConfig()
        assert config.port is None
        assert config.timeout is None
        assert config.open_browser is True
        assert config.output.format == "auto"

    def test_timeout_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            GlobalConfig(timeout=0)
