"""
WebSocket signaling transport for nekoctl.

This module owns endpoint derivation and text-frame I/O on the signaling
channel. Session policy (what to send, how to react) lives in the session.
"""

from __future__ import annotations

import asyncio
import logging

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

logger = logging.getLogger(__name__)

__all__ = [
    "SignalingChannel",
    "SignalingClosed",
    "SignalingError",
    "endpointUrl_derive",
]

ENDPOINT_PATH: str = "/ws"

# Close code reported when the transport dropped without a close frame
ABNORMAL_CLOSURE: int = 1006


class SignalingError(ConnectionError):
    """Raised when the signaling transport fails"""


class SignalingClosed(SignalingError):
    """Raised when the signaling channel is closed"""

    def __init__(self, code: int, reason: str = "") -> None:
        super().__init__(f"Signaling channel closed ({code}): {reason or 'no reason'}")
        self.code: int = code
        self.reason: str = reason


def endpointUrl_derive(address: str) -> str:
    """
    Derive the signaling WebSocket URL from a user-supplied address.

    Args:
        address:
            Host address, with or without scheme (e.g. `neko.example.com`,
            `http://10.0.0.5:8080/`).

    Returns:
        WebSocket URL ending in `/ws`.
    """
    url: str = address.strip()
    if url.endswith("/"):
        url = url[:-1]

    if url.startswith("http://"):
        url = "ws://" + url[len("http://"):]
    elif url.startswith("https://"):
        url = "wss://" + url[len("https://"):]
    elif not url.startswith(("ws://", "wss://")):
        url = "wss://" + url

    if not url.endswith(ENDPOINT_PATH):
        url += ENDPOINT_PATH
    return url


class SignalingChannel:
    """
    Text-frame WebSocket channel to the host.

    One JSON document per frame; no batching.
    """

    def __init__(self, url: str, open_timeout: float | None = None) -> None:
        """
        Initialize channel configuration.

        Args:
            url:
                WebSocket endpoint URL.
            open_timeout:
                Optional opening-handshake timeout in seconds.
        """
        self.url: str = url
        self.open_timeout: float | None = open_timeout
        self._socket = None
        self._closed: bool = False

    @property
    def is_open(self) -> bool:
        """Whether the channel is open for sending."""
        return self._socket is not None and not self._closed

    async def connection_establish(self) -> None:
        """
        Open the WebSocket connection.

        Raises:
            SignalingError:
                Raised when the connection cannot be opened.
        """
        try:
            self._socket = await websockets.connect(self.url, open_timeout=self.open_timeout)
        except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
            self._closed = True
            raise SignalingError(f"Failed to open {self.url}: {exc}") from exc
        logger.info("Signaling channel open: %s", self.url)

    async def text_send(self, text: str) -> None:
        """
        Send one text frame.

        Args:
            text:
                Serialized message.

        Raises:
            SignalingError:
                Raised when the channel is not open or the write fails.
        """
        socket = self._socket
        if socket is None or self._closed:
            raise SignalingError("Signaling channel is not open")
        try:
            await socket.send(text)
        except ConnectionClosed as exc:
            self._closed = True
            raise self._closedError_build(exc) from exc

    async def text_receive(self) -> str:
        """
        Wait for the next text frame.

        Binary frames are not part of the signaling protocol and are skipped.

        Returns:
            Frame text.

        Raises:
            SignalingClosed:
                Raised when the channel closes.
        """
        socket = self._socket
        if socket is None:
            raise SignalingClosed(ABNORMAL_CLOSURE, "not connected")
        while True:
            try:
                frame = await socket.recv()
            except ConnectionClosed as exc:
                self._closed = True
                raise self._closedError_build(exc) from exc
            if isinstance(frame, str):
                return frame
            logger.warning("Ignoring %d-byte binary frame on signaling channel", len(frame))

    async def connection_close(self) -> None:
        """
        Close the channel.

        This method is idempotent.
        """
        self._closed = True
        if self._socket is None:
            return
        socket, self._socket = self._socket, None
        try:
            await socket.close()
        except (OSError, WebSocketException) as exc:
            logger.error("Error closing signaling channel: %s", exc)
        logger.info("Signaling channel closed")

    @staticmethod
    def _closedError_build(exc: ConnectionClosed) -> SignalingClosed:
        close_frame = exc.rcvd
        if close_frame is None:
            return SignalingClosed(ABNORMAL_CLOSURE, "connection lost")
        return SignalingClosed(close_frame.code, close_frame.reason)
