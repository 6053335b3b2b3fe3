"""Unit tests for signaling message serialization/deserialization"""

import json

import pytest

from nekoctl.protocol.message import (
    Message,
    MessageBuilder,
    MessageDecodeError,
    MessageKind,
    MessageParser,
    UnknownMessageError,
)


class TestMessageSerialization:
    """Test Message JSON serialization"""

    def test_serialize_deserialize_round_trip(self):
        """Test message can be serialized and deserialized"""
        msg = Message(kind=MessageKind.RESOLUTION, payload={"width": 1920, "height": 1080})

        restored = Message.json_deserialize(msg.json_serialize())

        assert restored.kind == msg.kind
        assert restored.payload == msg.payload

    def test_serialize_is_flat_with_event_field(self):
        """Test payload fields sit beside the event discriminant"""
        msg = Message(kind=MessageKind.SIGNAL_ANSWER, payload={"sdp": "v=0"})
        assert json.loads(msg.json_serialize()) == {"event": "signal/answer", "sdp": "v=0"}

    def test_deserialize_unknown_event(self):
        """Test unknown event raises UnknownMessageError carrying the event"""
        with pytest.raises(UnknownMessageError) as exc_info:
            Message.json_deserialize('{"event": "chat/message", "content": "hi"}')
        assert exc_info.value.event == "chat/message"

    @pytest.mark.parametrize(
        "text",
        ["not json", "[1, 2]", '{"sdp": "v=0"}', '{"event": 5}'],
    )
    def test_deserialize_malformed(self, text):
        """Test malformed envelopes raise MessageDecodeError"""
        with pytest.raises(MessageDecodeError):
            Message.json_deserialize(text)

    def test_unknown_is_decode_error(self):
        """Test unknown events are a MessageDecodeError subtype"""
        with pytest.raises(MessageDecodeError):
            Message.json_deserialize('{"event": "nope"}')


class TestMessageBuilder:
    """Test MessageBuilder creates correct messages"""

    def test_identity_message(self):
        """Test identity carries password and display name"""
        msg = MessageBuilder.identityMessage_create("secret", "Alice")

        assert msg.kind == MessageKind.IDENTITY
        assert msg.payload == {"displayname": "Alice", "password": "secret"}

    def test_identity_message_default_name(self):
        """Test identity falls back to the default display name"""
        msg = MessageBuilder.identityMessage_create("secret")
        assert msg.payload["displayname"] == "User"

    def test_answer_message(self):
        """Test answer carries the SDP"""
        msg = MessageBuilder.answerMessage_create("v=0 answer")
        assert json.loads(msg.json_serialize()) == {"event": "signal/answer", "sdp": "v=0 answer"}

    def test_candidate_message(self):
        """Test candidate is nested under 'candidate'"""
        candidate = {"candidate": "candidate:1 1 udp 1 1.2.3.4 5 typ host", "sdpMid": "0"}
        msg = MessageBuilder.candidateMessage_create(candidate)

        assert msg.kind == MessageKind.ICE_CANDIDATE
        assert msg.payload == {"candidate": candidate}

    def test_control_messages_have_no_fields(self):
        """Test control request/release are bare envelopes"""
        request = json.loads(MessageBuilder.controlRequestMessage_create().json_serialize())
        release = json.loads(MessageBuilder.controlReleaseMessage_create().json_serialize())

        assert request == {"event": "control/request"}
        assert release == {"event": "control/release"}


class TestMessageParser:
    """Test MessageParser extracts typed data"""

    def test_offer_parse(self):
        """Test offer yields SDP and dict ICE servers"""
        msg = Message.json_deserialize(
            json.dumps(
                {
                    "event": "signal/provide",
                    "sdp": "v=0 offer",
                    "iceServers": [{"urls": ["stun:example.org"]}, "junk"],
                }
            )
        )
        offer = MessageParser.offer_parse(msg)

        assert offer.sdp == "v=0 offer"
        assert offer.ice_servers == [{"urls": ["stun:example.org"]}]

    def test_offer_without_sdp_raises(self):
        """Test offer without SDP raises ValueError"""
        with pytest.raises(ValueError):
            MessageParser.offer_parse(Message(kind=MessageKind.SIGNAL_OFFER))

    def test_resolution_parse(self):
        """Test resolution width, height and optional rate"""
        msg = Message(kind=MessageKind.RESOLUTION, payload={"width": 1920, "height": 1080, "rate": 30})
        resolution = MessageParser.resolution_parse(msg)

        assert (resolution.width, resolution.height, resolution.rate) == (1920, 1080, 30)

    def test_resolution_missing_field_raises(self):
        """Test resolution without height raises KeyError"""
        with pytest.raises(KeyError):
            MessageParser.resolution_parse(Message(kind=MessageKind.RESOLUTION, payload={"width": 1}))

    def test_candidate_parse_mapping(self):
        """Test candidate given as a mapping is returned as is"""
        candidate = {"candidate": "candidate:abc", "sdpMid": "0", "sdpMLineIndex": 0}
        msg = Message(kind=MessageKind.ICE_CANDIDATE, payload={"candidate": candidate})
        assert MessageParser.candidate_parse(msg) == candidate

    def test_candidate_parse_json_string(self):
        """Test candidate given as JSON text is decoded"""
        candidate = {"candidate": "candidate:abc", "sdpMid": "1", "sdpMLineIndex": 1}
        msg = Message(kind=MessageKind.ICE_CANDIDATE, payload={"candidate": json.dumps(candidate)})
        assert MessageParser.candidate_parse(msg) == candidate

    def test_candidate_parse_bare_string(self):
        """Test bare candidate string picks up sibling sdpMid/sdpMLineIndex"""
        msg = Message(
            kind=MessageKind.ICE_CANDIDATE,
            payload={"candidate": "candidate:abc", "sdpMid": "0", "sdpMLineIndex": 0},
        )
        assert MessageParser.candidate_parse(msg) == {
            "candidate": "candidate:abc",
            "sdpMid": "0",
            "sdpMLineIndex": 0,
        }

    def test_member_id_and_members(self):
        """Test member id and member list extraction"""
        identity = Message(kind=MessageKind.IDENTITY, payload={"id": 42})
        members = Message(
            kind=MessageKind.MEMBER_LIST, payload={"members": [{"id": "a"}, None, {"id": "b"}]}
        )

        assert MessageParser.memberId_parse(identity) == "42"
        assert MessageParser.members_parse(members) == [{"id": "a"}, {"id": "b"}]

    def test_error_parse(self):
        """Test error text lookup order and fallback"""
        assert MessageParser.error_parse(
            Message(kind=MessageKind.ERROR, payload={"message": "bad password"})
        ) == "bad password"
        assert MessageParser.error_parse(
            Message(kind=MessageKind.ERROR, payload={"reason": "kicked"})
        ) == "kicked"
        assert MessageParser.error_parse(Message(kind=MessageKind.ERROR)) == "Host reported an error"
