"""Browser key-code to X11 keysym mapping helpers."""

from __future__ import annotations

from typing import Optional

# Offset between lowercase and uppercase ASCII letter keysyms
_SHIFT_LETTER_OFFSET: int = 0x20

_KEYSYM_BY_CODE: dict[str, int] = {
    # Letters (lowercase; shifted variant derived)
    **{f"Key{chr(c)}": c + _SHIFT_LETTER_OFFSET for c in range(ord("A"), ord("Z") + 1)},
    # Digits row
    **{f"Digit{d}": ord(str(d)) for d in range(10)},
    # Function keys F1..F12 (XK_F1 = 0xffbe)
    **{f"F{n}": 0xFFBE + n - 1 for n in range(1, 13)},
    "Space": 0x0020,
    "Enter": 0xFF0D,
    "Tab": 0xFF09,
    "Escape": 0xFF1B,
    "Backspace": 0xFF08,
    "Delete": 0xFFFF,
    "Insert": 0xFF63,
    "Home": 0xFF50,
    "End": 0xFF57,
    "PageUp": 0xFF55,
    "PageDown": 0xFF56,
    "ArrowUp": 0xFF52,
    "ArrowDown": 0xFF54,
    "ArrowLeft": 0xFF51,
    "ArrowRight": 0xFF53,
    "ShiftLeft": 0xFFE1,
    "ShiftRight": 0xFFE2,
    "ControlLeft": 0xFFE3,
    "ControlRight": 0xFFE4,
    "AltLeft": 0xFFE9,
    "AltRight": 0xFFEA,
    "MetaLeft": 0xFFEB,
    "MetaRight": 0xFFEC,
    "CapsLock": 0xFFE5,
    "NumLock": 0xFF7F,
    "ScrollLock": 0xFF14,
    "PrintScreen": 0xFF61,
    "Pause": 0xFF13,
    "ContextMenu": 0xFF67,
    "Minus": 0x002D,
    "Equal": 0x003D,
    "BracketLeft": 0x005B,
    "BracketRight": 0x005D,
    "Backslash": 0x005C,
    "Semicolon": 0x003B,
    "Quote": 0x0027,
    "Backquote": 0x0060,
    "Comma": 0x002C,
    "Period": 0x002E,
    "Slash": 0x002F,
    # Numpad (XK_KP_0 = 0xffb0)
    **{f"Numpad{d}": 0xFFB0 + d for d in range(10)},
    "NumpadAdd": 0xFFAB,
    "NumpadSubtract": 0xFFAD,
    "NumpadMultiply": 0xFFAA,
    "NumpadDivide": 0xFFAF,
    "NumpadDecimal": 0xFFAE,
    "NumpadEnter": 0xFF8D,
}

# Browser MouseEvent.button index -> X11 button number
_MOUSE_BUTTONS: tuple[int, ...] = (
    1,  # left
    2,  # middle
    3,  # right
    8,  # back
    9,  # forward
)

LEFT_BUTTON: int = _MOUSE_BUTTONS[0]


def keysym_get(
    code: str, key: Optional[str] = None, shift_pressed: bool = False
) -> Optional[int]:
    """
    Resolve X11 keysym for a browser keyboard event.

    Args:
        code: Physical key identifier (`KeyboardEvent.code`, e.g. "KeyA").
        key: Produced character (`KeyboardEvent.key`), used as fallback.
        shift_pressed: Whether shift is held.

    Returns:
        X11 keysym, or None when the event should be dropped.
    """
    keysym: int | None = _KEYSYM_BY_CODE.get(code)
    if keysym is not None:
        if shift_pressed and code.startswith("Key"):
            return keysym - _SHIFT_LETTER_OFFSET
        return keysym

    if key is not None and len(key) == 1 and key.isprintable():
        return ord(key)
    return None


def mouseButton_get(index: int) -> int:
    """
    Map browser mouse button index to host button code.

    Args:
        index: `MouseEvent.button` value (0=left .. 4=forward).

    Returns:
        Host button code; left for unknown indices.
    """
    if 0 <= index < len(_MOUSE_BUTTONS):
        return _MOUSE_BUTTONS[index]
    return LEFT_BUTTON
