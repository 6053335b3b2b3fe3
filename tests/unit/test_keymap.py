"""Unit tests for browser key-code and mouse-button mapping."""

from __future__ import annotations

import pytest

from nekoctl.input import keysym_get, mouseButton_get


class TestKeysymGet:
    """Tests for key-code to X11 keysym resolution."""

    def test_letter_unshifted_is_lowercase(self) -> None:
        """`KeyA` without shift maps to `a` (0x61)."""
        assert keysym_get("KeyA") == 0x61

    def test_letter_shifted_is_uppercase(self) -> None:
        """`KeyA` with shift maps to `A` (0x41)."""
        assert keysym_get("KeyA", shift_pressed=True) == 0x41

    def test_shift_does_not_change_non_letters(self) -> None:
        """Shift only affects letter codes."""
        assert keysym_get("Digit1", shift_pressed=True) == ord("1")
        assert keysym_get("Enter", shift_pressed=True) == 0xFF0D

    @pytest.mark.parametrize(
        ("code", "keysym"),
        [
            ("Enter", 0xFF0D),
            ("Escape", 0xFF1B),
            ("Backspace", 0xFF08),
            ("ArrowLeft", 0xFF51),
            ("F1", 0xFFBE),
            ("F12", 0xFFC9),
            ("ShiftLeft", 0xFFE1),
            ("Space", 0x20),
            ("Numpad5", 0xFFB5),
        ],
    )
    def test_named_keys(self, code: str, keysym: int) -> None:
        """Named physical keys map to their X11 keysyms."""
        assert keysym_get(code) == keysym

    def test_unmapped_code_falls_back_to_printable_character(self) -> None:
        """Unknown codes use the produced character's code point."""
        assert keysym_get("IntlBackslash", key="<") == ord("<")
        assert keysym_get("", key="é") == ord("é")

    def test_unmapped_code_without_character_is_none(self) -> None:
        """Events with no mapping and no single character are dropped."""
        assert keysym_get("LaunchMail") is None
        assert keysym_get("LaunchMail", key="LaunchMail") is None
        assert keysym_get("", key="\n") is None


class TestMouseButtonGet:
    """Tests for browser button index to host button mapping."""

    @pytest.mark.parametrize(
        ("index", "code"),
        [(0, 1), (1, 2), (2, 3), (3, 8), (4, 9)],
    )
    def test_known_indices(self, index: int, code: int) -> None:
        """Browser indices 0..4 map to host buttons 1,2,3,8,9."""
        assert mouseButton_get(index) == code

    @pytest.mark.parametrize("index", [-1, 5, 42])
    def test_unknown_index_is_left(self, index: int) -> None:
        """Unknown indices fall back to the left button."""
        assert mouseButton_get(index) == 1
