"""Unit tests for signaling endpoint derivation and channel guards."""

from __future__ import annotations

import asyncio

import pytest

from nekoctl.client.signaling import (
    SignalingChannel,
    SignalingClosed,
    SignalingError,
    endpointUrl_derive,
)


class TestEndpointUrlDerive:
    """Tests for address-to-WebSocket URL mapping."""

    @pytest.mark.parametrize(
        ("address", "url"),
        [
            ("http://10.0.0.5:8080", "ws://10.0.0.5:8080/ws"),
            ("https://neko.example.com/", "wss://neko.example.com/ws"),
            ("neko.example.com", "wss://neko.example.com/ws"),
            ("  neko.example.com:8443  ", "wss://neko.example.com:8443/ws"),
            ("ws://localhost:8080", "ws://localhost:8080/ws"),
            ("wss://neko.example.com/ws", "wss://neko.example.com/ws"),
        ],
    )
    def test_derivation(self, address: str, url: str) -> None:
        """Scheme is mapped, trailing slash dropped and `/ws` appended once."""
        assert endpointUrl_derive(address) == url


class TestSignalingChannelGuards:
    """Tests for channel behavior before it is opened."""

    def test_not_open_initially(self) -> None:
        """A fresh channel cannot send."""
        channel = SignalingChannel("ws://localhost:1/ws")
        assert channel.is_open is False

    def test_send_before_open_raises(self) -> None:
        """Sending on an unopened channel raises SignalingError."""
        channel = SignalingChannel("ws://localhost:1/ws")
        with pytest.raises(SignalingError):
            asyncio.run(channel.text_send("{}"))

    def test_receive_before_open_reports_closed(self) -> None:
        """Receiving on an unopened channel raises SignalingClosed."""
        channel = SignalingChannel("ws://localhost:1/ws")
        with pytest.raises(SignalingClosed) as exc_info:
            asyncio.run(channel.text_receive())
        assert exc_info.value.code == 1006

    def test_close_is_idempotent(self) -> None:
        """Closing twice is harmless."""
        channel = SignalingChannel("ws://localhost:1/ws")

        async def scenario() -> None:
            await channel.connection_close()
            await channel.connection_close()

        asyncio.run(scenario())
        assert channel.is_open is False

    def test_closed_error_fields(self) -> None:
        """SignalingClosed keeps code and reason."""
        exc = SignalingClosed(4001, "bad password")
        assert isinstance(exc, SignalingError)
        assert (exc.code, exc.reason) == (4001, "bad password")
