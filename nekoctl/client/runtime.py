"""
Client runtime coordinator.

This module runs one headless client: it connects a session, logs session
events, optionally requests control, reconnects after involuntary
disconnects, and feeds console commands to the session.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from nekoctl import __version__
from nekoctl.client.commands import (
    Command,
    CommandType,
    commandLine_parse,
    command_execute,
)
from nekoctl.client.events import SessionEvent
from nekoctl.client.session import ConnectError, NekoSession
from nekoctl.common.types import SessionConfig, SessionPhase

logger = logging.getLogger(__name__)

__all__ = ["ClientRuntime", "ReconnectPolicy", "consoleLine_read"]

PROMPT: str = "neko> "


@dataclass
class ReconnectPolicy:
    """
    Linear-backoff reconnect budget.

    Attributes:
        enabled:
            Whether reconnects are attempted at all.
        max_attempts:
            Attempts per outage.
        delay_seconds:
            Base delay; attempt N waits N * delay_seconds.
        attempts:
            Attempts used in the current outage.
    """

    enabled: bool = True
    max_attempts: int = 5
    delay_seconds: float = 2.0
    attempts: int = 0

    def delayNext_get(self) -> float | None:
        """
        Consume one attempt.

        Returns:
            Delay before the attempt, or None when the budget is spent.
        """
        if not self.enabled or self.attempts >= self.max_attempts:
            return None
        self.attempts += 1
        return self.delay_seconds * self.attempts

    def reset(self) -> None:
        """Restore the full budget after a successful connection."""
        self.attempts = 0


async def consoleLine_read() -> str:
    """
    Read one console line without blocking the event loop.

    The read runs on a daemon thread so an unanswered prompt never holds the
    process open after the runtime has finished.

    Returns:
        Line text; empty string on end of input.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future = loop.create_future()

    def line_deliver(line: str) -> None:
        if not future.done():
            future.set_result(line)

    def reader() -> None:
        try:
            line: str = input(PROMPT) + "\n"
        except EOFError:
            line = ""
        try:
            loop.call_soon_threadsafe(line_deliver, line)
        except RuntimeError:
            # loop already closed
            pass

    threading.Thread(target=reader, name="nekoctl-console", daemon=True).start()
    return await future


class ClientRuntime:
    """Headless client lifecycle around one NekoSession."""

    def __init__(
        self,
        session: NekoSession,
        session_config: SessionConfig,
        reconnect: ReconnectPolicy,
        request_control: bool = False,
        line_read: Callable[[], Awaitable[str]] | None = None,
        output: Callable[[str], None] = print,
    ) -> None:
        """
        Initialize runtime.

        Args:
            session:
                Session to drive.
            session_config:
                Connection parameters, reused for reconnects.
            reconnect:
                Reconnect policy.
            request_control:
                Request control after every successful connect.
            line_read:
                Console reader; None runs without a command loop.
            output:
                Sink for command results.
        """
        self.session: NekoSession = session
        self.session_config: SessionConfig = session_config
        self.reconnect: ReconnectPolicy = reconnect
        self.request_control: bool = request_control
        self.line_read = line_read
        self.output = output

        self.finished: asyncio.Event = asyncio.Event()
        self.exit_code: int = 0
        self._stopping: bool = False
        self._reconnect_task: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()
        self._unsubscribers: list[Callable[[], None]] = []

    def observers_register(self) -> None:
        """Subscribe logging and lifecycle observers."""
        events = self.session.events
        handlers: dict[SessionEvent, Callable[..., Any]] = {
            SessionEvent.CONNECTED: self.connected_handle,
            SessionEvent.DISCONNECTED: self.disconnected_handle,
            SessionEvent.ERROR: self.error_handle,
            SessionEvent.CONTROL_GRANTED: lambda: logger.info("Control granted"),
            SessionEvent.CONTROL_RELEASED: lambda: logger.info("Control released"),
            SessionEvent.RESIZE: lambda w, h: logger.info("Host screen %sx%s", w, h),
            SessionEvent.MEMBER_LIST: lambda members: logger.info("%d members", len(members)),
            SessionEvent.TRACK: lambda track: logger.info("Media track: %s", track.kind),
            SessionEvent.MESSAGE: lambda message: logger.debug("Host: %s", message.kind.value),
        }
        for event, handler in handlers.items():
            self._unsubscribers.append(events.subscribe(event, handler))

    def observers_unregister(self) -> None:
        """Remove all runtime observers."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    def connected_handle(self) -> None:
        """Reset reconnect budget and request control if configured."""
        logger.info("Connected to %s", self.session_config.server_address)
        self.reconnect.reset()
        if self.request_control:
            self._task_spawn(self.session.control_request())

    def error_handle(self, message: str) -> None:
        """
        Log session errors; resume reconnecting when a reconnect attempt
        failed after its offer was answered.

        Args:
            message:
                Error text.
        """
        logger.error("Session error: %s", message)
        if self._stopping or self.reconnect.attempts == 0:
            return
        if self.session.phase is not SessionPhase.IDLE:
            return
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return
        self._reconnect_task = asyncio.ensure_future(self.reconnection_run())

    def disconnected_handle(self, reason: str) -> None:
        """
        Schedule reconnection after an involuntary disconnect.

        Args:
            reason:
                Disconnect reason.
        """
        logger.warning("Disconnected: %s", reason)
        if self._stopping:
            return
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return
        self._reconnect_task = asyncio.ensure_future(self.reconnection_run())

    async def reconnection_run(self) -> bool:
        """
        Retry connecting until success or the policy budget is spent.

        Returns:
            `True` when reconnected.
        """
        while not self._stopping:
            delay: float | None = self.reconnect.delayNext_get()
            if delay is None:
                logger.error("Reconnection failed, giving up")
                self.exit_code = 1
                self.finished.set()
                return False
            logger.info(
                "Reconnecting (attempt %s/%s) in %.1fs",
                self.reconnect.attempts,
                self.reconnect.max_attempts,
                delay,
            )
            await asyncio.sleep(delay)
            if self._stopping:
                return False
            try:
                await self.session.connect(self.session_config)
                return True
            except ConnectError as exc:
                logger.warning("Reconnect attempt failed: %s", exc)
        return False

    async def run(self) -> int:
        """
        Connect and serve until quit, end of input, or reconnect give-up.

        Returns:
            Process exit code.
        """
        logger.info("nekoctl client v%s", __version__)
        self.observers_register()
        try:
            try:
                await self.session.connect(self.session_config)
            except ConnectError as exc:
                logger.error("Failed to connect: %s", exc)
                return 1

            if self.line_read is None:
                await self.finished.wait()
            else:
                await self.commandLoop_run()
            return self.exit_code
        finally:
            await self.stop()

    async def commandLoop_run(self) -> None:
        """Read and execute console commands until quit or end of input."""
        self.output("Type 'help' for commands. Ctrl+D or 'quit' to exit.")
        while not self.finished.is_set():
            line: str | None = await self.lineOrFinish_await()
            if not line:
                return
            try:
                command: Command | None = commandLine_parse(line)
            except ValueError as exc:
                self.output(str(exc))
                continue
            if command is None:
                continue
            if command.command_type == CommandType.QUIT:
                return
            result: str | None = await command_execute(self.session, command)
            if result:
                self.output(result)

    async def lineOrFinish_await(self) -> str | None:
        """
        Wait for the next console line or for the runtime to finish.

        Returns:
            Line text; empty string on end of input; None once finished
            (e.g. reconnects exhausted) before a line arrived.
        """
        line_task: asyncio.Task = asyncio.ensure_future(self.line_read())
        finished_task: asyncio.Task = asyncio.ensure_future(self.finished.wait())
        try:
            await asyncio.wait(
                {line_task, finished_task}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            finished_task.cancel()
            if not line_task.done():
                line_task.cancel()
        if line_task.done() and not line_task.cancelled():
            return line_task.result()
        return None

    async def stop(self) -> None:
        """Stop reconnecting and disconnect the session."""
        self._stopping = True
        if self._reconnect_task is not None and not self._reconnect_task.done():
            self._reconnect_task.cancel()
        await self.session.disconnect()
        self.observers_unregister()
        self.finished.set()

    def _task_spawn(self, coro: Awaitable[None]) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
