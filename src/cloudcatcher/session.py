"""Session controller: the loop tying the link, the display and the local task together.

Every iteration first gives the display a chance to go out, then waits for
the next event on the shared queue and routes it by source:

- redraw timer      -> deferred frame
- link closed       -> close with "Connection lost"
- link message      -> keepalive echo, input events, file edits
- anything else     -> resume the local task, if it is waiting for it

The loop ends when the local task finishes or the connection goes away.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import signal
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional, Protocol, TextIO

from .cloud import CloudCommand, SessionApi
from .config import SessionConfig
from .constants import EV_LINK_MESSAGE, EV_START, MAX_PACKET_SIZE, REDRAW_COALESCE_S
from .display import AnsiTerminal, FrameBuffer, HeadlessDisplay, Terminal
from .display_sync import DisplaySync
from .errors import ConnectionLost, ProtocolDecodeError, SessionFailed
from .events import Event, EventQueue, Source
from .filesync import FileSync, Filesystem, LocalFilesystem
from .input import INPUT_TYPES, InputDispatcher
from .net import WebSocketLink
from .packet import FileEditPacket, Packet, PacketType
from .shell import Shell
from .task import LocalTask, TaskBody

log = logging.getLogger(__name__)

CONNECTION_LOST = "Connection lost"


class SessionState(enum.Enum):
    CONNECTING = "connecting"
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"


class Link(Protocol):
    def send(self, data: bytes) -> None: ...


@dataclass(frozen=True, slots=True)
class SessionResult:
    ok: bool
    reason: Optional[str] = None
    exit_code: object = None


@dataclass(slots=True)
class SessionMetrics:
    packets_received: int = 0
    packets_dropped: int = 0
    pings: int = 0
    input_events: int = 0
    frames_sent: int = 0
    bytes_sent: int = 0
    edits_applied: int = 0
    edits_rejected: int = 0
    start_ts: float = field(default_factory=time.monotonic)
    end_ts: float | None = None

    @property
    def duration_s(self) -> float:
        if self.end_ts is None:
            return 0.0
        return max(0.0, self.end_ts - self.start_ts)


class Session:
    """One attached session, from the first frame to teardown.

    ``parent`` is the display the active buffer mirrors to. When it is the
    real terminal (``owns_terminal``) it is cleared and handed back on close.
    """

    def __init__(
        self,
        link: Link,
        events: EventQueue,
        parent: Terminal,
        fs: Filesystem,
        *,
        owns_terminal: bool = False,
        window: float = REDRAW_COALESCE_S,
        max_packet_size: int = MAX_PACKET_SIZE,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.state = SessionState.CONNECTING
        self.link = link
        self.events = events
        self.parent = parent
        self.owns_terminal = owns_terminal
        self.buffer = FrameBuffer(parent)
        if self.buffer.get_size() != parent.get_size():
            log.info("mirroring %dx%d of the %dx%d terminal", *self.buffer.get_size(), *parent.get_size())
        self.display = DisplaySync(self.buffer, self.send, events.start_timer, window=window, clock=clock)
        self.filesync = FileSync(fs, self.send, max_packet_size=max_packet_size)
        self.input = InputDispatcher(events)
        self.metrics = SessionMetrics()
        self.task: Optional[LocalTask] = None
        self.failure: Optional[str] = None

    def send(self, data: bytes) -> None:
        self.link.send(data)
        self.metrics.bytes_sent += len(data)

    def acquire_display(self) -> None:
        if self.owns_terminal and isinstance(self.parent, AnsiTerminal):
            self.parent.begin_private_mode()

    def release_display(self) -> None:
        if not self.owns_terminal:
            return
        self.parent.clear()
        self.parent.set_cursor_pos(1, 1)
        end_private_mode = getattr(self.parent, "end_private_mode", None)
        if callable(end_private_mode):
            end_private_mode()

    async def run(self, factory: Callable[[Event], TaskBody]) -> SessionResult:
        self.task = LocalTask(factory)
        self.state = SessionState.ACTIVE
        self.acquire_display()
        try:
            self.task.start(Event(EV_START))
            while self.state is SessionState.ACTIVE and not self.task.done:
                self.display.tick()
                event = await self.events.get()
                self.handle(event)
        finally:
            self.state = SessionState.CLOSING
            self.release_display()
            self.metrics.frames_sent = self.display.frames_sent
            self.metrics.edits_applied = self.filesync.applied
            self.metrics.edits_rejected = self.filesync.rejected
            self.metrics.end_ts = time.monotonic()
            log.info(
                "session closed after %.1fs: %d packets in (%d dropped), %d frames out, %d bytes out, edits %d applied / %d rejected",
                self.metrics.duration_s,
                self.metrics.packets_received,
                self.metrics.packets_dropped,
                self.metrics.frames_sent,
                self.metrics.bytes_sent,
                self.metrics.edits_applied,
                self.metrics.edits_rejected,
            )

        return self.result()

    def result(self) -> SessionResult:
        if self.failure is not None:
            return SessionResult(ok=False, reason=self.failure)
        if self.task is not None and self.task.done and not self.task.ok:
            return SessionResult(ok=False, reason=self.task.failure)
        return SessionResult(ok=True, exit_code=self.task.result if self.task else None)

    def close(self, reason: str) -> None:
        self.failure = reason
        self.state = SessionState.CLOSING

    def handle(self, event: Event) -> None:
        if event.source is Source.TIMER and self.display.on_timer(event.args[0]):
            return
        if event.source is Source.LINK:
            if event.name == EV_LINK_MESSAGE:
                self.handle_message(event.args[0])
            else:
                log.warning("link closed by the server")
                self.close(CONNECTION_LOST)
            return

        assert self.task is not None
        if self.task.accepts(event):
            self.task.resume(event)

    def handle_message(self, message: bytes | str) -> None:
        self.metrics.packets_received += 1
        try:
            packet = Packet.from_bytes(message)
        except ProtocolDecodeError:
            self.metrics.packets_dropped += 1
            return

        if packet.is_reserved:
            self.close(CONNECTION_LOST)
        elif packet.code == PacketType.PING:
            self.metrics.pings += 1
            self.send(Packet.ping().to_bytes())
        elif packet.code in INPUT_TYPES:
            decoded = self.input.dispatch(packet)
            if not decoded:
                self.metrics.packets_dropped += 1
            self.metrics.input_events += len(decoded)
        elif packet.code == PacketType.FILE_CONTENTS:
            try:
                command = FileEditPacket.from_body(packet.body)
            except ProtocolDecodeError:
                self.metrics.packets_dropped += 1
                return
            self.filesync.apply_edit(command)
        else:
            log.debug("ignoring packet type %#04x", packet.code)
            self.metrics.packets_dropped += 1


@contextmanager
def terminate_on_interrupt(events: EventQueue) -> Iterator[None]:
    """Deliver Ctrl-C to the local task as a ``terminate`` event."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, events.terminate)
    except (NotImplementedError, RuntimeError):
        # No signal handlers on this platform/thread; Ctrl-C stays a KeyboardInterrupt.
        yield
        return
    try:
        yield
    finally:
        loop.remove_signal_handler(signal.SIGINT)


async def run_session(config: SessionConfig, stream: TextIO) -> SessionResult:
    """Connect, run the shell until it exits or the link drops, then tear down.

    Raises ConnectionLost or SessionFailed after the display is restored.
    """
    events = EventQueue()
    link = await WebSocketLink.connect(config.url, events, max_packet_size=config.max_packet_size)

    size = config.headless_size
    parent: Terminal = AnsiTerminal(stream) if size is None else HeadlessDisplay(*size)
    fs = LocalFilesystem(config.root)
    session = Session(
        link,
        events,
        parent,
        fs,
        owns_terminal=size is None,
        window=config.window,
        max_packet_size=config.max_packet_size,
    )

    shell = Shell(session.buffer)
    api = SessionApi(config.token, session.filesync)
    command = CloudCommand(api, fs, default_extension=config.default_extension)
    try:
        with shell.install("cloudcatcher", command, aliases=("cloud",)), terminate_on_interrupt(events):
            result = await session.run(shell.run)
    finally:
        await link.close()
        session.state = SessionState.CLOSED

    if not result.ok:
        if result.reason == CONNECTION_LOST:
            raise ConnectionLost(result.reason)
        raise SessionFailed(result.reason or "session failed")
    return result
