"""Local input translation for the host's input-injection layer."""

from nekoctl.input.keymap import keysym_get, mouseButton_get

__all__ = [
    "keysym_get",
    "mouseButton_get",
]
