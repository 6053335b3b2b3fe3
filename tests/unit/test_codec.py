"""Unit tests for the binary input-event codec"""

import pytest

from nekoctl.common.types import Key, MouseButton, MouseMove, MouseScroll
from nekoctl.protocol.codec import (
    DecodeError,
    DecodeErrorReason,
    Opcode,
    inputEvent_decode,
    inputEvent_encode,
    key_encode,
    messageSize_get,
    mouseButton_encode,
    mouseMove_encode,
    mouseScroll_encode,
)


class TestEncodeLayout:
    """Test exact wire bytes per opcode"""

    def test_mouse_move_layout(self):
        """Test MouseMove is opcode 0x01 followed by little-endian uint16 x, y"""
        assert mouseMove_encode(100, 50) == bytes([0x01, 0x64, 0x00, 0x32, 0x00])

    def test_mouse_scroll_negative_two_complement(self):
        """Test negative scroll deltas are two's complement int16"""
        assert mouseScroll_encode(-1, 3) == bytes([0x02, 0xFF, 0xFF, 0x03, 0x00])

    def test_mouse_button_press_and_release_opcodes(self):
        """Test press uses 0x03 and release uses 0x04"""
        assert mouseButton_encode(1, True) == bytes([0x03, 0x01])
        assert mouseButton_encode(3, False) == bytes([0x04, 0x03])

    def test_key_layout(self):
        """Test KeyDown/KeyUp carry a little-endian uint32 keysym"""
        assert key_encode(0xFF0D, True) == bytes([0x05, 0x0D, 0xFF, 0x00, 0x00])
        assert key_encode(0x61, False) == bytes([0x06, 0x61, 0x00, 0x00, 0x00])

    def test_message_sizes(self):
        """Test fixed sizes include the opcode byte"""
        assert messageSize_get(Opcode.MOUSE_MOVE) == 5
        assert messageSize_get(Opcode.MOUSE_SCROLL) == 5
        assert messageSize_get(Opcode.MOUSE_DOWN) == 2
        assert messageSize_get(Opcode.MOUSE_UP) == 2
        assert messageSize_get(Opcode.KEY_DOWN) == 5
        assert messageSize_get(Opcode.KEY_UP) == 5


class TestEncodeRoundingAndWrap:
    """Test numeric conversion to field width"""

    def test_fractional_coordinates_round_half_up(self):
        """Test 10.5 rounds to 11 and 10.4 to 10"""
        assert inputEvent_decode(mouseMove_encode(10.5, 10.4)) == MouseMove(x=11, y=10)

    def test_out_of_range_coordinates_wrap_modulo_16_bits(self):
        """Test coordinates truncate to the low 16 bits"""
        assert inputEvent_decode(mouseMove_encode(65536 + 7, -1)) == MouseMove(x=7, y=65535)

    def test_scroll_wraps_into_signed_range(self):
        """Test 32768 wraps to -32768 in an int16 field"""
        assert inputEvent_decode(mouseScroll_encode(32768, -32769)) == MouseScroll(
            dx=-32768, dy=32767
        )

    def test_negative_half_rounds_up(self):
        """Test -1.5 rounds toward positive infinity to -1"""
        assert inputEvent_decode(mouseScroll_encode(-1.5, 0)) == MouseScroll(dx=-1, dy=0)


class TestDecode:
    """Test decoding and malformed input"""

    @pytest.mark.parametrize(
        "event",
        [
            MouseMove(x=640, y=360),
            MouseScroll(dx=-120, dy=120),
            MouseButton(code=8, pressed=True),
            MouseButton(code=9, pressed=False),
            Key(code=0xFFE1, pressed=True),
            Key(code=0x41, pressed=False),
        ],
    )
    def test_in_range_events_round_trip(self, event):
        """Test in-range integer events decode to the same value"""
        assert inputEvent_decode(inputEvent_encode(event)) == event

    def test_empty_buffer_is_truncated(self):
        """Test empty input reports truncation"""
        with pytest.raises(DecodeError) as exc_info:
            inputEvent_decode(b"")
        assert exc_info.value.reason == DecodeErrorReason.TRUNCATED

    def test_unknown_opcode(self):
        """Test unknown first byte reports unknown opcode"""
        with pytest.raises(DecodeError) as exc_info:
            inputEvent_decode(bytes([0x07, 0x00]))
        assert exc_info.value.reason == DecodeErrorReason.UNKNOWN_OPCODE

    @pytest.mark.parametrize("opcode", list(Opcode))
    def test_short_buffer_is_truncated(self, opcode):
        """Test every opcode rejects a buffer one byte short"""
        data = bytes([opcode]) + bytes(messageSize_get(opcode) - 2)
        with pytest.raises(DecodeError) as exc_info:
            inputEvent_decode(data)
        assert exc_info.value.reason == DecodeErrorReason.TRUNCATED

    def test_trailing_bytes_ignored(self):
        """Test bytes past the fixed size are ignored"""
        assert inputEvent_decode(bytes([0x03, 0x02, 0xAA, 0xBB])) == MouseButton(
            code=2, pressed=True
        )

    def test_decode_error_is_value_error(self):
        """Test DecodeError can be caught as ValueError"""
        with pytest.raises(ValueError):
            inputEvent_decode(bytes([0x01, 0x00]))


class TestInputEventEncode:
    """Test generic event dispatch"""

    def test_dispatch_matches_specific_encoder(self):
        """Test inputEvent_encode delegates by event type"""
        assert inputEvent_encode(MouseMove(x=1, y=2)) == mouseMove_encode(1, 2)
        assert inputEvent_encode(Key(code=0x61, pressed=True)) == key_encode(0x61, True)

    def test_unsupported_type_raises(self):
        """Test non-event values raise TypeError"""
        with pytest.raises(TypeError):
            inputEvent_encode("click")
