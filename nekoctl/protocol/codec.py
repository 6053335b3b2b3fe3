"""Binary input-event codec for the host data channel

Every input event is one data-channel message: an opcode byte followed by a
fixed little-endian layout per opcode.

    0x01 MouseMove    uint16 x, uint16 y
    0x02 MouseScroll  int16 dx, int16 dy
    0x03 MouseDown    uint8 button
    0x04 MouseUp      uint8 button
    0x05 KeyDown      uint32 keysym
    0x06 KeyUp        uint32 keysym
"""

from __future__ import annotations

import math
import struct
from enum import Enum, IntEnum

from nekoctl.common.types import InputEvent, Key, MouseButton, MouseMove, MouseScroll

__all__ = [
    "DecodeError",
    "DecodeErrorReason",
    "Opcode",
    "inputEvent_decode",
    "inputEvent_encode",
    "key_encode",
    "mouseButton_encode",
    "mouseMove_encode",
    "mouseScroll_encode",
]


class Opcode(IntEnum):
    """First byte of every input-event message"""

    MOUSE_MOVE = 0x01
    MOUSE_SCROLL = 0x02
    MOUSE_DOWN = 0x03
    MOUSE_UP = 0x04
    KEY_DOWN = 0x05
    KEY_UP = 0x06


class DecodeErrorReason(Enum):
    """Why a binary message could not be decoded"""

    UNKNOWN_OPCODE = "unknown_opcode"
    TRUNCATED = "truncated"


class DecodeError(ValueError):
    """Raised when a binary input-event message is malformed"""

    def __init__(self, reason: DecodeErrorReason, detail: str) -> None:
        super().__init__(f"{reason.value}: {detail}")
        self.reason: DecodeErrorReason = reason


# Payload layout after the opcode byte
_LAYOUTS: dict[Opcode, struct.Struct] = {
    Opcode.MOUSE_MOVE: struct.Struct("<HH"),
    Opcode.MOUSE_SCROLL: struct.Struct("<hh"),
    Opcode.MOUSE_DOWN: struct.Struct("<B"),
    Opcode.MOUSE_UP: struct.Struct("<B"),
    Opcode.KEY_DOWN: struct.Struct("<I"),
    Opcode.KEY_UP: struct.Struct("<I"),
}


def messageSize_get(opcode: Opcode) -> int:
    """
    Fixed message size for an opcode, opcode byte included.

    Args:
        opcode: Message opcode.

    Returns:
        Total message length in bytes.
    """
    return 1 + _LAYOUTS[opcode].size


def _unsigned_wrap(value: float, bits: int) -> int:
    """Round half-up and truncate to an unsigned field of `bits` width."""
    return math.floor(value + 0.5) & ((1 << bits) - 1)


def _signed_wrap(value: float, bits: int) -> int:
    """Round half-up and truncate to a two's-complement field of `bits` width."""
    unsigned: int = _unsigned_wrap(value, bits)
    if unsigned >= 1 << (bits - 1):
        return unsigned - (1 << bits)
    return unsigned


def _pack(opcode: Opcode, *fields: int) -> bytes:
    return bytes((opcode,)) + _LAYOUTS[opcode].pack(*fields)


def mouseMove_encode(x: float, y: float) -> bytes:
    """
    Encode absolute pointer position.

    Args:
        x: Horizontal position in host pixels.
        y: Vertical position in host pixels.

    Returns:
        5-byte message.
    """
    return _pack(Opcode.MOUSE_MOVE, _unsigned_wrap(x, 16), _unsigned_wrap(y, 16))


def mouseScroll_encode(dx: float, dy: float) -> bytes:
    """
    Encode scroll delta.

    Args:
        dx: Horizontal delta.
        dy: Vertical delta.

    Returns:
        5-byte message.
    """
    return _pack(Opcode.MOUSE_SCROLL, _signed_wrap(dx, 16), _signed_wrap(dy, 16))


def mouseButton_encode(code: int, pressed: bool) -> bytes:
    """
    Encode mouse button press/release.

    Args:
        code: Host button code (1=left, 2=middle, 3=right, 8=back, 9=forward).
        pressed: True for press, False for release.

    Returns:
        2-byte message.
    """
    opcode: Opcode = Opcode.MOUSE_DOWN if pressed else Opcode.MOUSE_UP
    return _pack(opcode, _unsigned_wrap(code, 8))


def key_encode(keysym: int, pressed: bool) -> bytes:
    """
    Encode key press/release.

    Args:
        keysym: X11 keysym.
        pressed: True for press, False for release.

    Returns:
        5-byte message.
    """
    opcode: Opcode = Opcode.KEY_DOWN if pressed else Opcode.KEY_UP
    return _pack(opcode, _unsigned_wrap(keysym, 32))


def inputEvent_encode(event: InputEvent) -> bytes:
    """
    Encode any input event to its wire form.

    Args:
        event: Input event.

    Returns:
        Encoded message bytes.

    Raises:
        TypeError: If `event` is not an input event type.
    """
    if isinstance(event, MouseMove):
        return mouseMove_encode(event.x, event.y)
    if isinstance(event, MouseScroll):
        return mouseScroll_encode(event.dx, event.dy)
    if isinstance(event, MouseButton):
        return mouseButton_encode(event.code, event.pressed)
    if isinstance(event, Key):
        return key_encode(event.code, event.pressed)
    raise TypeError(f"Unsupported input event: {event!r}")


def inputEvent_decode(data: bytes) -> InputEvent:
    """
    Decode a wire message into an input event.

    Bytes past the opcode's fixed size are ignored.

    Args:
        data: Raw message bytes.

    Returns:
        Decoded input event.

    Raises:
        DecodeError: On unknown opcode or short buffer.
    """
    if len(data) == 0:
        raise DecodeError(DecodeErrorReason.TRUNCATED, "empty message")

    try:
        opcode = Opcode(data[0])
    except ValueError:
        raise DecodeError(
            DecodeErrorReason.UNKNOWN_OPCODE, f"opcode {data[0]:#04x}"
        ) from None

    size: int = messageSize_get(opcode)
    if len(data) < size:
        raise DecodeError(
            DecodeErrorReason.TRUNCATED,
            f"{opcode.name} needs {size} bytes, got {len(data)}",
        )

    fields = _LAYOUTS[opcode].unpack_from(data, 1)
    if opcode == Opcode.MOUSE_MOVE:
        return MouseMove(x=fields[0], y=fields[1])
    if opcode == Opcode.MOUSE_SCROLL:
        return MouseScroll(dx=fields[0], dy=fields[1])
    if opcode in (Opcode.MOUSE_DOWN, Opcode.MOUSE_UP):
        return MouseButton(code=fields[0], pressed=opcode == Opcode.MOUSE_DOWN)
    return Key(code=fields[0], pressed=opcode == Opcode.KEY_DOWN)
