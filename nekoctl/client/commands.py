"""
Headless command policies.

This module parses the line-oriented commands accepted by the headless
runtime and applies them to a session through its public input and control
methods.
"""

from __future__ import annotations

import logging
import math
import shlex
from dataclasses import dataclass
from enum import Enum

from nekoctl.client.session import NekoSession

logger = logging.getLogger(__name__)

__all__ = ["Command", "CommandType", "HELP_TEXT", "commandLine_parse", "command_execute"]

HELP_TEXT: str = """Commands:
  move X Y          pointer to host pixel position
  scroll DX DY      scroll wheel delta
  click [BUTTON]    press+release (0=left 1=middle 2=right 3=back 4=forward)
  down BUTTON       press mouse button
  up BUTTON         release mouse button
  key CODE [KEY]    press+release key (e.g. "key KeyA", "key Enter")
  type TEXT         type text character by character
  request           request control from host
  release           release control
  state             show session state
  quit              disconnect and exit"""


class CommandType(Enum):
    """Headless command verbs"""

    MOVE = "move"
    SCROLL = "scroll"
    CLICK = "click"
    DOWN = "down"
    UP = "up"
    KEY = "key"
    TYPE = "type"
    REQUEST = "request"
    RELEASE = "release"
    STATE = "state"
    HELP = "help"
    QUIT = "quit"


# (min, max) positional argument counts; None max means unbounded
_ARITY: dict[CommandType, tuple[int, int | None]] = {
    CommandType.MOVE: (2, 2),
    CommandType.SCROLL: (2, 2),
    CommandType.CLICK: (0, 1),
    CommandType.DOWN: (1, 1),
    CommandType.UP: (1, 1),
    CommandType.KEY: (1, 2),
    CommandType.TYPE: (1, None),
    CommandType.REQUEST: (0, 0),
    CommandType.RELEASE: (0, 0),
    CommandType.STATE: (0, 0),
    CommandType.HELP: (0, 0),
    CommandType.QUIT: (0, 0),
}


@dataclass(frozen=True)
class Command:
    """Parsed headless command"""

    command_type: CommandType
    args: tuple[str, ...] = ()


def commandLine_parse(line: str) -> Command | None:
    """
    Parse one input line.

    Args:
        line:
            Raw line.

    Returns:
        Parsed command, or None for blank lines.

    Raises:
        ValueError:
            Raised for unknown verbs, wrong argument counts, or bad numbers.
    """
    tokens: list[str] = shlex.split(line)
    if not tokens:
        return None

    verb: str = tokens[0].lower()
    try:
        command_type = CommandType(verb)
    except ValueError:
        raise ValueError(f"Unknown command: {verb}") from None

    args: list[str] = tokens[1:]
    if command_type == CommandType.TYPE:
        args = [" ".join(args)] if args else []
    minimum, maximum = _ARITY[command_type]
    if len(args) < minimum or (maximum is not None and len(args) > maximum):
        raise ValueError(f"Wrong number of arguments for '{verb}'")

    if command_type in (CommandType.MOVE, CommandType.SCROLL):
        for arg in args:
            if not math.isfinite(float(arg)):
                raise ValueError(f"Not a finite number: {arg}")
    if command_type in (CommandType.CLICK, CommandType.DOWN, CommandType.UP):
        for arg in args:
            int(arg)

    return Command(command_type=command_type, args=tuple(args))


async def command_execute(session: NekoSession, command: Command) -> str | None:
    """
    Apply a parsed command to the session.

    Args:
        session:
            Target session.
        command:
            Parsed command.

    Returns:
        Text to show the user, or None.
    """
    command_type: CommandType = command.command_type
    args: tuple[str, ...] = command.args

    if command_type == CommandType.MOVE:
        sent = session.mouseMove_send(float(args[0]), float(args[1]))
        return None if sent else _notSent_describe(session)
    if command_type == CommandType.SCROLL:
        sent = session.mouseScroll_send(float(args[0]), float(args[1]))
        return None if sent else _notSent_describe(session)
    if command_type == CommandType.CLICK:
        button: int = int(args[0]) if args else 0
        sent = session.mouseButton_send(button, True)
        session.mouseButton_send(button, False)
        return None if sent else _notSent_describe(session)
    if command_type in (CommandType.DOWN, CommandType.UP):
        sent = session.mouseButton_send(int(args[0]), command_type == CommandType.DOWN)
        return None if sent else _notSent_describe(session)
    if command_type == CommandType.KEY:
        key: str | None = args[1] if len(args) > 1 else None
        sent = session.keyEvent_send(args[0], True, key=key)
        session.keyEvent_send(args[0], False, key=key)
        return None if sent else _notSent_describe(session)
    if command_type == CommandType.TYPE:
        count: int = 0
        for char in args[0]:
            if session.keyEvent_send("", True, key=char):
                session.keyEvent_send("", False, key=char)
                count += 1
        return f"Typed {count}/{len(args[0])} characters"
    if command_type == CommandType.REQUEST:
        await session.control_request()
        return "Control requested"
    if command_type == CommandType.RELEASE:
        await session.control_release()
        return "Control released"
    if command_type == CommandType.STATE:
        state = session.state_get()
        return (
            f"phase={session.phase.value} connected={state.connected} "
            f"connecting={state.connecting} controlling={state.controlling} "
            f"video={state.video_width}x{state.video_height} error={state.last_error}"
        )
    if command_type == CommandType.HELP:
        return HELP_TEXT
    return None


def _notSent_describe(session: NekoSession) -> str:
    if not session.state_get().controlling:
        return "Not controlling; use 'request' first"
    return "Input dropped: data channel not open"
