"""
Session state machine for nekoctl.

`NekoSession` owns the signaling channel and the peer session of one
connection attempt, drives the offer/answer handshake, applies host control
broadcasts, and exposes an immutable state snapshot plus event subscription.

Lifecycle:

    IDLE -> CONNECTING -> NEGOTIATING -> CONNECTED -> IDLE

CONNECTING lasts until the host offer arrives, NEGOTIATING until the peer
transport reports `connected`. Every phase returns to IDLE on disconnect or
failure.

All callbacks run on one asyncio loop, so state is mutated without locks.
Callbacks from torn-down resources are dropped by identity checks against the
currently owned channel and peer.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import replace
from enum import Enum
from typing import Any, Callable, Coroutine, Protocol

from nekoctl.client.control import ControlArbiter
from nekoctl.client.events import EventRegistry, SessionEvent
from nekoctl.client.peer import PeerCallbacks, PeerSession
from nekoctl.client.signaling import (
    SignalingChannel,
    SignalingClosed,
    SignalingError,
    endpointUrl_derive,
)
from nekoctl.common.settings import settings
from nekoctl.common.types import SessionConfig, SessionPhase, SessionState
from nekoctl.input.keymap import keysym_get, mouseButton_get
from nekoctl.protocol.codec import (
    key_encode,
    mouseButton_encode,
    mouseMove_encode,
    mouseScroll_encode,
)
from nekoctl.protocol.message import (
    Message,
    MessageBuilder,
    MessageDecodeError,
    MessageKind,
    MessageParser,
    UnknownMessageError,
)

logger = logging.getLogger(__name__)

__all__ = ["ConnectError", "ConnectErrorReason", "NekoSession"]

# Peer connection states treated as loss of the whole session
_PEER_LOST_STATES: frozenset[str] = frozenset({"failed", "disconnected", "closed"})


class ConnectErrorReason(Enum):
    """Why connect() failed"""

    TIMEOUT = "timeout"
    CHANNEL_FAILED = "channel_failed"
    AUTH_REJECTED = "auth_rejected"
    CANCELLED = "cancelled"


class ConnectError(ConnectionError):
    """Raised by connect() when no session could be negotiated"""

    def __init__(self, reason: ConnectErrorReason, message: str) -> None:
        super().__init__(message)
        self.reason: ConnectErrorReason = reason


class SignalingChannelProtocol(Protocol):
    """Signaling transport contract used by the session."""

    @property
    def is_open(self) -> bool:
        """Whether text can be sent."""
        ...

    async def connection_establish(self) -> None:
        """Open the channel, raising SignalingError on failure."""
        ...

    async def text_send(self, text: str) -> None:
        """Send one text frame."""
        ...

    async def text_receive(self) -> str:
        """Receive one text frame, raising SignalingClosed on close."""
        ...

    async def connection_close(self) -> None:
        """Close the channel."""
        ...


class PeerSessionProtocol(Protocol):
    """Peer session contract used by the session."""

    async def offer_answer(self, sdp: str) -> str:
        """Apply remote offer and return local answer SDP."""
        ...

    async def candidate_add(self, candidate: dict[str, Any]) -> None:
        """Add remote ICE candidate."""
        ...

    def data_send(self, payload: bytes) -> bool:
        """Send binary input; `False` when dropped."""
        ...

    def dataChannel_close(self) -> None:
        """Close the data channel."""
        ...

    async def close(self) -> None:
        """Close the peer connection."""
        ...


ChannelFactory = Callable[[str], SignalingChannelProtocol]
PeerFactory = Callable[[list[dict[str, Any]], PeerCallbacks], PeerSessionProtocol]


class NekoSession:
    """
    One client's session with a Neko host.

    Observers subscribe through `events`; state is read with `state_get()`.
    """

    def __init__(
        self,
        channel_factory: ChannelFactory | None = None,
        peer_factory: PeerFactory | None = None,
        connect_timeout: float | None = None,
    ) -> None:
        """
        Initialize an idle session.

        Args:
            channel_factory:
                Builds the signaling channel for an endpoint URL.
            peer_factory:
                Builds the peer session for offer ICE servers and callbacks.
            connect_timeout:
                Seconds to wait for the host offer; defaults to
                `settings.CONNECT_TIMEOUT_SEC`.
        """
        self.events: EventRegistry = EventRegistry()
        self.connect_timeout: float = (
            connect_timeout if connect_timeout is not None else settings.CONNECT_TIMEOUT_SEC
        )
        self._channel_factory: ChannelFactory = channel_factory or SignalingChannel
        self._peer_factory: PeerFactory = peer_factory or PeerSession
        self._arbiter: ControlArbiter = ControlArbiter()

        self._state: SessionState = SessionState()
        self._phase: SessionPhase = SessionPhase.IDLE
        self._config: SessionConfig | None = None
        self._member_id: str | None = None
        self._video_track: Any = None

        self._channel: SignalingChannelProtocol | None = None
        self._peer: PeerSessionProtocol | None = None
        self._peer_callbacks: PeerCallbacks | None = None
        self._reader_task: asyncio.Task | None = None
        self._ready: asyncio.Future | None = None
        self._identity_sent: bool = False
        self._host_error: str | None = None
        self._pending_candidates: list[dict[str, Any]] = []
        self._tasks: set[asyncio.Task] = set()

    # =========================================================================
    # Observable state
    # =========================================================================

    def state_get(self) -> SessionState:
        """Return the current immutable state snapshot."""
        return self._state

    @property
    def phase(self) -> SessionPhase:
        """Current lifecycle phase."""
        return self._phase

    @property
    def member_id(self) -> str | None:
        """Member id assigned by the host, if identified."""
        return self._member_id

    @property
    def video_track(self) -> Any:
        """Most recent remote video track, if any."""
        return self._video_track

    def _phase_set(self, phase: SessionPhase) -> None:
        if phase is self._phase:
            return
        logger.debug("Phase %s -> %s", self._phase.value, phase.value)
        self._phase = phase
        self.events.emit(SessionEvent.PHASE_CHANGED, phase)

    # =========================================================================
    # Connect / disconnect
    # =========================================================================

    async def connect(self, config: SessionConfig) -> None:
        """
        Open a session with the host.

        Returns once the host offer has been answered; the `CONNECTED` event
        follows when the peer transport is up.

        Args:
            config:
                Connection parameters.

        Raises:
            ConnectError:
                Raised on timeout, channel failure, authentication rejection,
                or when disconnect() cancels the attempt.
        """
        if self._phase is not SessionPhase.IDLE:
            await self.disconnect()

        self._config = config
        self._identity_sent = False
        self._host_error = None
        self._state = SessionState(connecting=True)
        ready: asyncio.Future = asyncio.get_running_loop().create_future()
        self._ready = ready
        self._phase_set(SessionPhase.CONNECTING)

        url: str = endpointUrl_derive(config.server_address)
        logger.info("Connecting to %s", url)
        channel: SignalingChannelProtocol = self._channel_factory(url)
        self._channel = channel
        self._reader_task = asyncio.ensure_future(self._channel_run(channel, config))

        error: ConnectError
        try:
            await asyncio.wait_for(ready, timeout=self.connect_timeout)
            return
        except asyncio.TimeoutError:
            error = ConnectError(ConnectErrorReason.TIMEOUT, "Connection timeout")
        except ConnectError as exc:
            if exc.reason is ConnectErrorReason.CANCELLED:
                raise
            error = exc
        except asyncio.CancelledError:
            if ready is self._ready:
                await self.disconnect()
            raise

        await self._connectFailure_handle(error)
        raise error

    async def _connectFailure_handle(self, error: ConnectError) -> None:
        """
        Tear down a failed attempt and surface the error.

        An authentication rejection whose host error was already emitted is
        not emitted again.

        Args:
            error:
                Failure to record in `last_error`.
        """
        logger.error("Connect failed: %s", error)
        resources = self._resources_detach()
        self._arbiter.reset()
        self._state = SessionState(last_error=str(error))
        self._phase_set(SessionPhase.IDLE)
        await self._resources_close(*resources)
        if error.reason is ConnectErrorReason.AUTH_REJECTED and self._host_error is not None:
            return
        self.events.emit(SessionEvent.ERROR, str(error))

    def _connectAttempt_fail(self, reason: ConnectErrorReason, message: str) -> None:
        """Reject the pending connect() if it is still waiting."""
        if self._ready is not None and not self._ready.done():
            self._ready.set_exception(ConnectError(reason, message))

    async def disconnect(self) -> None:
        """
        Close the session.

        Idempotent. Closes data channel, peer session and signaling channel
        in that order and resets state to defaults. A pending connect() is
        rejected with `ConnectErrorReason.CANCELLED`. `DISCONNECTED` is
        emitted only when the session was connected.
        """
        was_connected: bool = self._state.connected
        self._connectAttempt_fail(ConnectErrorReason.CANCELLED, "Connection cancelled")

        resources = self._resources_detach()
        self._arbiter.reset()
        self._state = SessionState()
        self._config = None
        self._phase_set(SessionPhase.IDLE)
        await self._resources_close(*resources)

        if was_connected:
            logger.info("Disconnected")
            self.events.emit(SessionEvent.DISCONNECTED, "Disconnected by client")

    def _session_lose(self, reason: str) -> None:
        """
        Handle involuntary loss of an established or negotiating session.

        Args:
            reason:
                Loss reason surfaced through events and `last_error`.
        """
        was_connected: bool = self._state.connected
        logger.warning("Session lost: %s", reason)
        resources = self._resources_detach()
        self._arbiter.reset()
        self._state = SessionState(last_error=reason)
        self._phase_set(SessionPhase.IDLE)
        self._task_spawn(self._resources_close(*resources))

        if was_connected:
            self.events.emit(SessionEvent.DISCONNECTED, reason)
        else:
            self.events.emit(SessionEvent.ERROR, reason)

    def _resources_detach(
        self,
    ) -> tuple[SignalingChannelProtocol | None, PeerSessionProtocol | None, asyncio.Task | None]:
        """Drop ownership of channel, peer and reader; return them for closing."""
        resources = (self._channel, self._peer, self._reader_task)
        self._channel = None
        self._peer = None
        self._peer_callbacks = None
        self._reader_task = None
        self._pending_candidates = []
        self._member_id = None
        self._video_track = None
        return resources

    async def _resources_close(
        self,
        channel: SignalingChannelProtocol | None,
        peer: PeerSessionProtocol | None,
        reader: asyncio.Task | None,
    ) -> None:
        """Stop the reader, then close data channel, peer and signaling channel."""
        if reader is not None and reader is not asyncio.current_task() and not reader.done():
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reader

        if peer is not None:
            peer.dataChannel_close()
            try:
                await peer.close()
            except Exception as exc:
                logger.error("Error closing peer session: %s", exc)

        if channel is not None:
            await channel.connection_close()

    def _task_spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # =========================================================================
    # Signaling channel
    # =========================================================================

    async def _channel_run(self, channel: SignalingChannelProtocol, config: SessionConfig) -> None:
        """
        Open the channel, authenticate, then process messages in arrival order.

        Args:
            channel:
                Channel owned by this attempt.
            config:
                Attempt configuration.
        """
        try:
            await channel.connection_establish()
        except SignalingError as exc:
            if channel is self._channel:
                self._connectAttempt_fail(
                    ConnectErrorReason.CHANNEL_FAILED, f"Signaling channel failed: {exc}"
                )
            return

        if channel is not self._channel:
            return
        if config.password:
            self._identity_sent = True
            await self._message_send(
                MessageBuilder.identityMessage_create(config.password, config.display_name)
            )

        while True:
            try:
                text: str = await channel.text_receive()
            except SignalingError as exc:
                self._channelClosed_handle(channel, exc)
                return
            if channel is not self._channel:
                return
            await self._text_handle(text)

    def _channelClosed_handle(self, channel: SignalingChannelProtocol, exc: SignalingError) -> None:
        """
        React to the host or transport closing the signaling channel.

        Args:
            channel:
                Channel that closed.
            exc:
                Close error.
        """
        if channel is not self._channel:
            return
        reason: str = exc.reason if isinstance(exc, SignalingClosed) and exc.reason else str(exc)
        logger.info("Signaling channel closed: %s", reason)

        if self._ready is not None and not self._ready.done():
            if self._identity_sent and self._phase is SessionPhase.CONNECTING:
                detail: str = self._host_error or reason
                self._connectAttempt_fail(
                    ConnectErrorReason.AUTH_REJECTED, f"Authentication rejected: {detail}"
                )
            else:
                self._connectAttempt_fail(
                    ConnectErrorReason.CHANNEL_FAILED, f"Signaling channel closed: {reason}"
                )
            return

        self._session_lose(reason or "Connection closed")

    async def _message_send(self, message: Message) -> None:
        """
        Send a signaling message, logging instead of raising on failure.

        Args:
            message:
                Message to send.
        """
        channel = self._channel
        if channel is None or not channel.is_open:
            logger.debug("Dropping %s: signaling channel not open", message.kind.value)
            return
        try:
            await channel.text_send(message.json_serialize())
        except SignalingError as exc:
            logger.warning("Failed to send %s: %s", message.kind.value, exc)

    async def _text_handle(self, text: str) -> None:
        """
        Decode and dispatch one signaling frame; never raises.

        Args:
            text:
                Raw frame text.
        """
        try:
            message: Message = Message.json_deserialize(text)
        except UnknownMessageError as exc:
            logger.debug("Unhandled message: %s", exc.event)
            return
        except MessageDecodeError as exc:
            logger.error("Message parse error: %s", exc)
            return

        try:
            await self._message_handle(message)
        except (KeyError, TypeError, ValueError) as exc:
            logger.error("Failed to handle %s: %s", message.kind.value, exc)

    async def _message_handle(self, message: Message) -> None:
        """
        Apply one host message.

        Args:
            message:
                Decoded message.
        """
        logger.debug("Received %s from host", message.kind.value)

        if message.kind == MessageKind.IDENTITY:
            self._member_id = MessageParser.memberId_parse(message)
            logger.info("Member ID: %s", self._member_id)
            return
        if message.kind == MessageKind.RESOLUTION:
            resolution = MessageParser.resolution_parse(message)
            self._state = replace(
                self._state, video_width=resolution.width, video_height=resolution.height
            )
            logger.info(
                "Screen resolution %sx%s@%s", resolution.width, resolution.height, resolution.rate
            )
            self.events.emit(SessionEvent.RESIZE, resolution.width, resolution.height)
            return
        if message.kind == MessageKind.SIGNAL_OFFER:
            await self._offer_handle(message)
            return
        if message.kind == MessageKind.ICE_CANDIDATE:
            await self._candidate_handle(message)
            return
        if message.kind == MessageKind.CONTROL_GRANT:
            self._state, granted = self._arbiter.grant_apply(self._state)
            if granted:
                self.events.emit(SessionEvent.CONTROL_GRANTED)
            return
        if message.kind == MessageKind.CONTROL_RELEASE:
            self._state = self._arbiter.release_apply(self._state, "host")
            self.events.emit(SessionEvent.CONTROL_RELEASED)
            return
        if message.kind == MessageKind.MEMBER_LIST:
            self.events.emit(SessionEvent.MEMBER_LIST, MessageParser.members_parse(message))
            return
        if message.kind == MessageKind.ERROR:
            error_text: str = MessageParser.error_parse(message)
            logger.error("Host error: %s", error_text)
            self._host_error = error_text
            self._state = replace(self._state, last_error=error_text)
            self.events.emit(SessionEvent.ERROR, error_text)
            return

        self.events.emit(SessionEvent.MESSAGE, message)

    async def _offer_handle(self, message: Message) -> None:
        """
        Answer the host offer: create the peer session, apply the remote
        description, send the local answer.

        Args:
            message:
                Offer message.
        """
        if self._peer is not None or self._phase is not SessionPhase.CONNECTING:
            logger.warning("Ignoring offer: negotiation already in progress")
            return

        offer = MessageParser.offer_parse(message)
        logger.info("Received SDP offer")
        callbacks: PeerCallbacks = self._peerCallbacks_build()
        peer: PeerSessionProtocol = self._peer_factory(offer.ice_servers, callbacks)
        self._peer = peer
        self._peer_callbacks = callbacks
        self._phase_set(SessionPhase.NEGOTIATING)

        pending, self._pending_candidates = self._pending_candidates, []
        for candidate in pending:
            await peer.candidate_add(candidate)

        try:
            answer_sdp: str = await peer.offer_answer(offer.sdp)
        except Exception as exc:
            logger.error("Failed to answer offer: %s", exc)
            self._connectAttempt_fail(ConnectErrorReason.CHANNEL_FAILED, f"Negotiation failed: {exc}")
            return

        if peer is not self._peer:
            return
        await self._message_send(MessageBuilder.answerMessage_create(answer_sdp))
        logger.info("Sent SDP answer")
        if self._ready is not None and not self._ready.done():
            self._ready.set_result(None)

    async def _candidate_handle(self, message: Message) -> None:
        """Add a remote candidate, buffering it when no peer exists yet."""
        candidate: dict[str, Any] = MessageParser.candidate_parse(message)
        if self._peer is None:
            self._pending_candidates.append(candidate)
            logger.debug("Buffered ICE candidate before offer")
            return
        await self._peer.candidate_add(candidate)

    # =========================================================================
    # Peer session
    # =========================================================================

    def _peerCallbacks_build(self) -> PeerCallbacks:
        """Build callbacks that are ignored once their peer is torn down."""
        callbacks: PeerCallbacks

        def current() -> bool:
            return self._peer_callbacks is callbacks

        def on_candidate(candidate: dict[str, Any]) -> None:
            if current():
                self._task_spawn(
                    self._message_send(MessageBuilder.candidateMessage_create(candidate))
                )

        def on_state(state: str) -> None:
            if current():
                self._peerState_handle(state)

        def on_track(track: Any) -> None:
            if not current():
                return
            if getattr(track, "kind", None) == "video":
                self._video_track = track
            self.events.emit(SessionEvent.TRACK, track)

        def on_data_open() -> None:
            if current():
                logger.debug("Input channel ready")

        def on_data_close() -> None:
            if current():
                self._dataChannelLost_handle()

        callbacks = PeerCallbacks(
            candidate_gathered=on_candidate,
            connection_state_changed=on_state,
            track_received=on_track,
            data_channel_opened=on_data_open,
            data_channel_closed=on_data_close,
        )
        return callbacks

    def _peerState_handle(self, state: str) -> None:
        """
        Apply a peer connection state change.

        Transport loss is treated as loss of the whole session.

        Args:
            state:
                Peer connection state name.
        """
        if state == "connected":
            if self._phase is not SessionPhase.NEGOTIATING:
                return
            self._state = replace(self._state, connected=True, connecting=False)
            self._phase_set(SessionPhase.CONNECTED)
            logger.info("Connected")
            self.events.emit(SessionEvent.CONNECTED)
            self._state, granted = self._arbiter.connected_apply(self._state)
            if granted:
                self.events.emit(SessionEvent.CONTROL_GRANTED)
            return

        if state not in _PEER_LOST_STATES:
            return
        if self._ready is not None and not self._ready.done():
            self._connectAttempt_fail(ConnectErrorReason.CHANNEL_FAILED, "Peer connection failed")
            return
        self._session_lose("Peer connection failed")

    def _dataChannelLost_handle(self) -> None:
        """Input path gone: drop control, keep signaling."""
        if not self._state.controlling:
            return
        self._state = self._arbiter.release_apply(self._state, "data channel closed")
        self.events.emit(SessionEvent.CONTROL_RELEASED)

    # =========================================================================
    # Control
    # =========================================================================

    async def control_request(self) -> None:
        """Ask the host for control; the grant arrives as a broadcast."""
        logger.info("Requesting control")
        await self._message_send(MessageBuilder.controlRequestMessage_create())

    async def control_release(self) -> None:
        """
        Give up control.

        The local flag is cleared and `CONTROL_RELEASED` emitted immediately,
        without waiting for the host.
        """
        self._state = self._arbiter.release_apply(self._state, "local")
        self.events.emit(SessionEvent.CONTROL_RELEASED)
        await self._message_send(MessageBuilder.controlReleaseMessage_create())

    # =========================================================================
    # Input
    # =========================================================================

    def _input_send(self, payload: bytes) -> bool:
        peer = self._peer
        if peer is None:
            return False
        return peer.data_send(payload)

    def mouseMove_send(self, x: float, y: float) -> bool:
        """
        Send absolute pointer position in host pixels.

        Returns:
            `True` when transmitted; `False` when not controlling or the
            data channel is not open.
        """
        if not self._state.controlling:
            return False
        return self._input_send(mouseMove_encode(x, y))

    def mouseScroll_send(self, dx: float, dy: float) -> bool:
        """Send scroll delta; same drop rules as mouseMove_send()."""
        if not self._state.controlling:
            return False
        return self._input_send(mouseScroll_encode(dx, dy))

    def mouseButton_send(self, button_index: int, pressed: bool) -> bool:
        """
        Send mouse button press/release.

        Args:
            button_index:
                Browser button index (0=left .. 4=forward).
            pressed:
                Press or release.

        Returns:
            `True` when transmitted.
        """
        if not self._state.controlling:
            return False
        return self._input_send(mouseButton_encode(mouseButton_get(button_index), pressed))

    def keyEvent_send(
        self,
        code: str,
        pressed: bool,
        key: str | None = None,
        shift_pressed: bool = False,
    ) -> bool:
        """
        Send key press/release.

        Args:
            code:
                Physical key identifier (e.g. "KeyA").
            pressed:
                Press or release.
            key:
                Produced character, used when `code` is unmapped.
            shift_pressed:
                Whether shift is held.

        Returns:
            `True` when transmitted; `False` also when the key is unmapped.
        """
        if not self._state.controlling:
            return False
        keysym: int | None = keysym_get(code, key, shift_pressed)
        if keysym is None:
            logger.debug("Dropping unmapped key %r/%r", code, key)
            return False
        return self._input_send(key_encode(keysym, pressed))
