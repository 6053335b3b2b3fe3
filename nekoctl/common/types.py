"""Common types and data structures for nekoctl"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

DEFAULT_DISPLAY_NAME = "User"
DEFAULT_VIDEO_WIDTH = 1280
DEFAULT_VIDEO_HEIGHT = 720


class SessionPhase(Enum):
    """Lifecycle phase of a host session"""
    IDLE = "idle"
    CONNECTING = "connecting"    # Signaling channel opening, waiting for offer
    NEGOTIATING = "negotiating"  # Answer sent, peer transport not up yet
    CONNECTED = "connected"      # Peer transport reported connected


@dataclass(frozen=True)
class SessionConfig:
    """Connection parameters supplied once per connection attempt"""
    server_address: str
    password: Optional[str] = None
    display_name: str = DEFAULT_DISPLAY_NAME


@dataclass(frozen=True)
class SessionState:
    """Snapshot of observable session state

    The session replaces its record on every change, so any instance handed
    to an observer stays valid. `connecting` and `connected` are never both
    set and `controlling` implies `connected`.
    """
    connected: bool = False
    connecting: bool = False
    controlling: bool = False
    video_width: int = DEFAULT_VIDEO_WIDTH
    video_height: int = DEFAULT_VIDEO_HEIGHT
    last_error: Optional[str] = None


@dataclass(frozen=True)
class MouseMove:
    """Absolute pointer position on the host screen"""
    x: float
    y: float


@dataclass(frozen=True)
class MouseScroll:
    """Scroll wheel delta"""
    dx: float
    dy: float


@dataclass(frozen=True)
class MouseButton:
    """Mouse button press or release (host button code)"""
    code: int
    pressed: bool


@dataclass(frozen=True)
class Key:
    """Keyboard press or release (X11 keysym)"""
    code: int
    pressed: bool


InputEvent = Union[MouseMove, MouseScroll, MouseButton, Key]
