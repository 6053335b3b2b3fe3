"""Signaling channel messages for host communication"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from nekoctl.common.types import DEFAULT_DISPLAY_NAME


class MessageKind(Enum):
    """Signaling message kinds, valued by their wire `event` string"""

    IDENTITY = "member/identity"
    RESOLUTION = "screen/resolution"
    SIGNAL_OFFER = "signal/provide"
    SIGNAL_ANSWER = "signal/answer"
    ICE_CANDIDATE = "signal/candidate"
    CONTROL_REQUEST = "control/request"
    CONTROL_RELEASE = "control/release"
    CONTROL_GRANT = "control/give"
    CONTROL_REQUESTING = "control/requesting"
    MEMBER_LIST = "member/list"
    MEMBER_CONNECTED = "member/connected"
    MEMBER_DISCONNECTED = "member/disconnected"
    ERROR = "system/error"


class MessageDecodeError(ValueError):
    """Raised when signaling text is not a valid message envelope"""


class UnknownMessageError(MessageDecodeError):
    """Raised for well-formed envelopes carrying an unsupported event"""

    def __init__(self, event: str) -> None:
        super().__init__(f"Unsupported event: {event}")
        self.event: str = event


@dataclass
class Message:
    """Signaling envelope: `event` discriminant plus flat fields"""

    kind: MessageKind
    payload: Dict[str, Any] = field(default_factory=dict)

    def json_serialize(self) -> str:
        """
        Serialize message to JSON string

        Returns:
            JSON document with the `event` field first.
        """
        data = {"event": self.kind.value}
        data.update(self.payload)
        return json.dumps(data)

    @staticmethod
    def json_deserialize(data: str) -> "Message":
        """
        Deserialize message from JSON string

        Args:
            data: JSON string

        Returns:
            Deserialized Message object

        Raises:
            MessageDecodeError: If text is not a JSON object with a string `event`.
            UnknownMessageError: If `event` names an unsupported kind.
        """
        try:
            parsed = json.loads(data)
        except (TypeError, ValueError) as exc:
            raise MessageDecodeError(f"Invalid JSON: {exc}") from exc

        if not isinstance(parsed, dict):
            raise MessageDecodeError("Message must be a JSON object")
        event = parsed.pop("event", None)
        if not isinstance(event, str):
            raise MessageDecodeError("Message has no 'event' field")

        try:
            kind = MessageKind(event)
        except ValueError:
            raise UnknownMessageError(event) from None
        return Message(kind=kind, payload=parsed)


@dataclass(frozen=True)
class SignalOffer:
    """Host session-description offer"""

    sdp: str
    ice_servers: List[Dict[str, Any]]


@dataclass(frozen=True)
class Resolution:
    """Host screen resolution"""

    width: int
    height: int
    rate: Optional[int] = None


class MessageBuilder:
    """Builds client-to-host signaling messages"""

    @staticmethod
    def identityMessage_create(password: str, display_name: Optional[str] = None) -> Message:
        """
        Create authentication message sent right after the channel opens.

        Args:
            password: Session password.
            display_name: Name shown to other members.

        Returns:
            Identity message.
        """
        return Message(
            kind=MessageKind.IDENTITY,
            payload={
                "displayname": display_name or DEFAULT_DISPLAY_NAME,
                "password": password,
            },
        )

    @staticmethod
    def answerMessage_create(sdp: str) -> Message:
        """Create session-description answer message"""
        return Message(kind=MessageKind.SIGNAL_ANSWER, payload={"sdp": sdp})

    @staticmethod
    def candidateMessage_create(candidate: Dict[str, Any]) -> Message:
        """
        Create local ICE candidate message.

        Args:
            candidate: Mapping with `candidate`, `sdpMid`, `sdpMLineIndex`.

        Returns:
            Candidate message.
        """
        return Message(kind=MessageKind.ICE_CANDIDATE, payload={"candidate": candidate})

    @staticmethod
    def controlRequestMessage_create() -> Message:
        """Create control request message"""
        return Message(kind=MessageKind.CONTROL_REQUEST)

    @staticmethod
    def controlReleaseMessage_create() -> Message:
        """Create control release message"""
        return Message(kind=MessageKind.CONTROL_RELEASE)


class MessageParser:
    """Extracts typed data from host-to-client messages"""

    @staticmethod
    def offer_parse(msg: Message) -> SignalOffer:
        """
        Parse host offer.

        Args:
            msg: Protocol message

        Returns:
            SignalOffer object

        Raises:
            ValueError: If the offer carries no SDP.
        """
        sdp = msg.payload.get("sdp")
        if not isinstance(sdp, str) or not sdp:
            raise ValueError("Offer message must contain 'sdp'")
        ice_servers = msg.payload.get("iceServers") or []
        return SignalOffer(
            sdp=sdp,
            ice_servers=[srv for srv in ice_servers if isinstance(srv, dict)],
        )

    @staticmethod
    def resolution_parse(msg: Message) -> Resolution:
        """
        Parse screen resolution.

        Args:
            msg: Protocol message

        Returns:
            Resolution object
        """
        payload = msg.payload
        rate = payload.get("rate")
        return Resolution(
            width=int(payload["width"]),
            height=int(payload["height"]),
            rate=int(rate) if rate is not None else None,
        )

    @staticmethod
    def candidate_parse(msg: Message) -> Dict[str, Any]:
        """
        Parse remote ICE candidate into a candidate-init mapping.

        Accepts the candidate as a mapping, a bare SDP string, or a JSON
        string of a mapping.

        Args:
            msg: Protocol message

        Returns:
            Mapping with at least `candidate`.
        """
        candidate = msg.payload.get("candidate")
        if isinstance(candidate, str) and candidate.startswith("{"):
            candidate = json.loads(candidate)
        if isinstance(candidate, str):
            return {
                "candidate": candidate,
                "sdpMid": msg.payload.get("sdpMid"),
                "sdpMLineIndex": msg.payload.get("sdpMLineIndex"),
            }
        if isinstance(candidate, dict):
            return candidate
        raise ValueError("Candidate message must contain 'candidate'")

    @staticmethod
    def memberId_parse(msg: Message) -> Optional[str]:
        """Parse assigned member id from identity message"""
        member_id = msg.payload.get("id")
        return str(member_id) if member_id is not None else None

    @staticmethod
    def members_parse(msg: Message) -> List[Dict[str, Any]]:
        """Parse member list"""
        members = msg.payload.get("members") or []
        return [member for member in members if isinstance(member, dict)]

    @staticmethod
    def error_parse(msg: Message) -> str:
        """Parse human-readable text from host error message"""
        for key in ("message", "error", "reason"):
            text = msg.payload.get(key)
            if text:
                return str(text)
        return "Host reported an error"
