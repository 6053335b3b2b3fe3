"""
WebRTC peer session for nekoctl.

Wraps an `aiortc.RTCPeerConnection` answering the host's offer: media tracks
arrive from the host, and the host-created data channel carries binary input
events back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from aiortc import (
    RTCConfiguration,
    RTCIceCandidate,
    RTCIceServer,
    RTCPeerConnection,
    RTCSessionDescription,
)
from aiortc.sdp import candidate_from_sdp, candidate_to_sdp

from nekoctl.common.settings import settings

logger = logging.getLogger(__name__)

__all__ = ["PeerCallbacks", "PeerSession", "candidateInit_parse", "iceServers_build"]


@dataclass
class PeerCallbacks:
    """
    Callback bundle through which the peer session reports to its owner.

    Attributes:
        candidate_gathered:
            Local ICE candidate ready to send (candidate-init mapping).
        connection_state_changed:
            Peer connection state name (`connected`, `failed`, ...).
        track_received:
            Remote media track.
        data_channel_opened:
            Binary input channel became usable.
        data_channel_closed:
            Binary input channel closed.
    """

    candidate_gathered: Callable[[dict[str, Any]], None]
    connection_state_changed: Callable[[str], None]
    track_received: Callable[[Any], None]
    data_channel_opened: Callable[[], None]
    data_channel_closed: Callable[[], None]


def iceServers_build(servers: list[dict[str, Any]]) -> list[RTCIceServer]:
    """
    Build ICE server list from offer entries.

    Args:
        servers:
            Offer `iceServers` entries (`urls`/`url`, `username`,
            `credential`/`password`).

    Returns:
        ICE servers; the default STUN server when none are usable.
    """
    ice_servers: list[RTCIceServer] = []
    for srv in servers:
        urls = srv.get("urls") or srv.get("url")
        if not urls:
            continue
        ice_servers.append(
            RTCIceServer(
                urls=urls,
                username=srv.get("username"),
                credential=srv.get("credential") or srv.get("password"),
            )
        )
    if not ice_servers:
        ice_servers = [RTCIceServer(urls=url) for url in settings.DEFAULT_ICE_SERVER_URLS]
    return ice_servers


def candidateInit_parse(candidate: dict[str, Any]) -> RTCIceCandidate | None:
    """
    Convert a candidate-init mapping to an aiortc candidate.

    Args:
        candidate:
            Mapping with `candidate` (with or without `candidate:` prefix),
            `sdpMid` and `sdpMLineIndex`.

    Returns:
        Candidate, or None for the end-of-candidates marker.
    """
    cand_str: str = candidate.get("candidate") or ""
    cand_sdp: str = cand_str.split(":", 1)[-1] if cand_str.startswith("candidate:") else cand_str
    if not cand_sdp:
        return None
    ice: RTCIceCandidate = candidate_from_sdp(cand_sdp)
    ice.sdpMid = candidate.get("sdpMid")
    sdp_mline = candidate.get("sdpMLineIndex")
    if isinstance(sdp_mline, str) and sdp_mline.isdigit():
        sdp_mline = int(sdp_mline)
    ice.sdpMLineIndex = sdp_mline
    return ice


class PeerSession:
    """Answering side of one WebRTC session with the host."""

    def __init__(self, ice_servers: list[dict[str, Any]], callbacks: PeerCallbacks) -> None:
        """
        Create the peer connection and register its handlers.

        Args:
            ice_servers:
                ICE server entries from the host offer.
            callbacks:
                Owner callbacks.
        """
        self.callbacks: PeerCallbacks = callbacks
        self.pc: RTCPeerConnection = RTCPeerConnection(
            RTCConfiguration(iceServers=iceServers_build(ice_servers))
        )
        self.data_channel = None
        self._remote_description_set: bool = False
        self._pending_candidates: list[dict[str, Any]] = []
        self._handlers_register()

    def _handlers_register(self) -> None:
        pc = self.pc

        @pc.on("connectionstatechange")
        def on_connection_state() -> None:
            logger.info("Peer connection state is %s", pc.connectionState)
            self.callbacks.connection_state_changed(pc.connectionState)

        @pc.on("iceconnectionstatechange")
        def on_ice_state() -> None:
            logger.debug("ICE connection state is %s", pc.iceConnectionState)

        @pc.on("icecandidate")
        def on_candidate(cand: RTCIceCandidate | None) -> None:
            if cand is None:
                return
            self.callbacks.candidate_gathered(
                {
                    "candidate": "candidate:" + candidate_to_sdp(cand),
                    "sdpMid": cand.sdpMid,
                    "sdpMLineIndex": cand.sdpMLineIndex,
                }
            )

        @pc.on("track")
        def on_track(track) -> None:
            logger.info("Received track: kind=%s id=%s", track.kind, getattr(track, "id", "unknown"))
            self.callbacks.track_received(track)

        @pc.on("datachannel")
        def on_datachannel(channel) -> None:
            logger.info("Data channel received: %s", channel.label)
            self.dataChannel_attach(channel)

    def dataChannel_attach(self, channel) -> None:
        """
        Adopt the host-created data channel.

        Args:
            channel:
                aiortc data channel.
        """
        self.data_channel = channel

        @channel.on("open")
        def on_open() -> None:
            logger.info("Data channel open")
            self.callbacks.data_channel_opened()

        @channel.on("close")
        def on_close() -> None:
            logger.info("Data channel closed")
            if channel is self.data_channel:
                self.callbacks.data_channel_closed()

        # Remotely created channels are usually open before the event fires
        if channel.readyState == "open":
            self.callbacks.data_channel_opened()

    @property
    def connection_state(self) -> str:
        """Current peer connection state name."""
        return self.pc.connectionState

    @property
    def data_channel_open(self) -> bool:
        """Whether binary input can be sent."""
        return self.data_channel is not None and self.data_channel.readyState == "open"

    async def offer_answer(self, sdp: str) -> str:
        """
        Apply the host offer and produce the local answer.

        Args:
            sdp:
                Remote offer SDP.

        Returns:
            Local answer SDP.
        """
        await self.pc.setRemoteDescription(RTCSessionDescription(sdp=sdp, type="offer"))
        self._remote_description_set = True
        await self.pendingCandidates_flush()

        answer = await self.pc.createAnswer()
        await self.pc.setLocalDescription(answer)
        return self.pc.localDescription.sdp

    async def candidate_add(self, candidate: dict[str, Any]) -> None:
        """
        Add a remote ICE candidate.

        Candidates arriving before the offer are buffered. Failures are
        logged and never propagate.

        Args:
            candidate:
                Candidate-init mapping.
        """
        if not self._remote_description_set:
            self._pending_candidates.append(candidate)
            logger.debug("Buffered ICE candidate (%d pending)", len(self._pending_candidates))
            return
        try:
            ice = candidateInit_parse(candidate)
            if ice is None:
                return
            await self.pc.addIceCandidate(ice)
        except Exception as exc:
            logger.warning("Failed to add ICE candidate: %s", exc)

    async def pendingCandidates_flush(self) -> None:
        """Add candidates buffered before the remote description."""
        pending, self._pending_candidates = self._pending_candidates, []
        for candidate in pending:
            await self.candidate_add(candidate)

    def data_send(self, payload: bytes) -> bool:
        """
        Send one binary input message.

        Args:
            payload:
                Encoded input event.

        Returns:
            `True` when sent; `False` when the channel is not open (dropped).
        """
        if not self.data_channel_open:
            return False
        self.data_channel.send(payload)
        return True

    def dataChannel_close(self) -> None:
        """Close the data channel if present."""
        channel, self.data_channel = self.data_channel, None
        if channel is not None:
            channel.close()

    async def close(self) -> None:
        """Close the peer connection."""
        await self.pc.close()
