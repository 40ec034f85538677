"""Tests for loopback port allocation and redirect URI helpers."""

from __future__ import annotations

import socket

import pytest

from loopauth.exceptions import InvalidUsageError
from loopauth.listener import allocate_port, build_redirect_uri, parse_redirect_uri


class TestAllocatePort:
    def test_returns_port_in_range(self) -> None:
        port = allocate_port()
        assert 1 <= port <= 65535

    def test_port_is_released(self) -> None:
        port = allocate_port()
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.bind(("127.0.0.1", port))


class TestBuildRedirectUri:
    def test_default_host(self) -> None:
        assert build_redirect_uri(8765) == "http://127.0.0.1:8765/"

    def test_custom_host(self) -> None:
        assert build_redirect_uri(8765, "localhost") == "http://localhost:8765/"


class TestParseRedirectUri:
    def test_round_trip(self) -> None:
        assert parse_redirect_uri("http://127.0.0.1:8765/") == ("127.0.0.1", 8765)

    def test_path_is_ignored(self) -> None:
        assert parse_redirect_uri("http://localhost:9000/callback") == ("localhost", 9000)

    @pytest.mark.parametrize(
        ("uri", "match"),
        [
            ("https://127.0.0.1:8765/", "http scheme"),
            ("http://:8765/", "no host"),
            ("http://127.0.0.1/", "must include a port"),
            ("http://127.0.0.1:99999/", "invalid port"),
            ("not a uri", "http scheme"),
        ],
    )
    def test_rejects_unusable_uri(self, uri: str, match: str) -> None:
        with pytest.raises(InvalidUsageError, match=match):
            parse_redirect_uri(uri)
