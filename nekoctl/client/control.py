"""
Host-authoritative control arbitration.

The client never decides locally whether it may control the host: it only
requests and releases, and trusts the host's grant and release broadcasts.
The host serializes grants, so viewers cannot disagree about who controls.

Transitions are pure functions over SessionState so the session can apply
them as single record replacements.
"""

from __future__ import annotations

import logging
from dataclasses import replace

from nekoctl.common.types import SessionState

logger = logging.getLogger(__name__)

__all__ = ["ControlArbiter"]


class ControlArbiter:
    """
    Control-flag transitions for one session.

    A grant that arrives before the peer transport is connected is held and
    applied on connect, so `controlling` never holds while disconnected.
    """

    def __init__(self) -> None:
        self.grant_pending: bool = False

    def reset(self) -> None:
        """Forget any pending grant."""
        self.grant_pending = False

    def grant_apply(self, state: SessionState) -> tuple[SessionState, bool]:
        """
        Apply a host grant.

        Args:
            state:
                Current state.

        Returns:
            `(new_state, granted)`; `granted` is `True` when control was
            taken and `CONTROL_GRANTED` should be emitted.
        """
        if not state.connected:
            logger.info("Control granted before transport is up; holding grant")
            self.grant_pending = True
            return state, False
        self.grant_pending = False
        logger.info("Control granted")
        return replace(state, controlling=True), True

    def connected_apply(self, state: SessionState) -> tuple[SessionState, bool]:
        """
        Apply a held grant once the transport is connected.

        Args:
            state:
                State with `connected` already set.

        Returns:
            `(new_state, granted)`.
        """
        if not self.grant_pending:
            return state, False
        return self.grant_apply(state)

    def release_apply(self, state: SessionState, source: str) -> SessionState:
        """
        Clear control, for a host broadcast or an optimistic local release.

        Args:
            state:
                Current state.
            source:
                Log label for the release origin.

        Returns:
            State with `controlling` cleared.
        """
        self.grant_pending = False
        if state.controlling:
            logger.info("Control released (%s)", source)
        return replace(state, controlling=False)
