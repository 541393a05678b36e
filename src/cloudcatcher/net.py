from __future__ import annotations

import asyncio
import logging
from typing import Optional

import websockets
from websockets.exceptions import ConnectionClosed

from .constants import MAX_PACKET_SIZE
from .errors import ConnectionLost, SizeLimitExceeded
from .events import EventQueue

log = logging.getLogger(__name__)


def session_url(host: str, token: str, secure: bool = True) -> str:
    scheme = "wss" if secure else "ws"
    return f"{scheme}://{host}/host?id={token}"


class WebSocketLink:
    """The session's one connection to the viewer server.

    Inbound messages and closure are posted to the event queue; outbound
    packets are queued and written in order by a background task, so
    ``send`` never blocks the session loop.
    """

    def __init__(
        self,
        ws,
        events: EventQueue,
        max_packet_size: int = MAX_PACKET_SIZE,
        close_timeout: float = 5,
    ):
        self.ws = ws
        self.events = events
        self.max_packet_size = max_packet_size
        self.close_timeout = close_timeout
        self.bytes_sent = 0
        self.closed = False
        # None asks the writer to stop once everything before it is sent.
        self._outbox: asyncio.Queue[Optional[bytes]] = asyncio.Queue()
        self._reader: Optional[asyncio.Task[None]] = None
        self._writer: Optional[asyncio.Task[None]] = None

    @classmethod
    async def connect(
        cls,
        url: str,
        events: EventQueue,
        *,
        open_timeout: float = 10,
        max_packet_size: int = MAX_PACKET_SIZE,
    ) -> "WebSocketLink":
        try:
            ws = await websockets.connect(
                url,
                max_size=max_packet_size,
                open_timeout=open_timeout,
                close_timeout=5,
            )
        except (OSError, asyncio.TimeoutError, websockets.exceptions.WebSocketException) as e:
            raise ConnectionLost(f"Cannot connect to cloud catcher server: {e}") from e

        log.info("connected to %s", url)
        link = cls(ws, events, max_packet_size=max_packet_size)
        link.start()
        return link

    def start(self) -> None:
        self._reader = asyncio.create_task(self._read_loop())
        self._writer = asyncio.create_task(self._write_loop())

    def send(self, data: bytes) -> None:
        if len(data) > self.max_packet_size:
            raise SizeLimitExceeded(f"packet of {len(data)} bytes exceeds {self.max_packet_size}")
        if self.closed:
            return
        self._outbox.put_nowait(data)

    async def _read_loop(self) -> None:
        try:
            async for message in self.ws:
                self.events.post_message(message)
        except ConnectionClosed as e:
            log.info("connection closed: %s", e)
        finally:
            self.closed = True
            self.events.post_closed()

    async def _write_loop(self) -> None:
        while True:
            data = await self._outbox.get()
            if data is None:
                return
            try:
                await self.ws.send(data)
            except ConnectionClosed:
                return
            self.bytes_sent += len(data)

    async def close(self) -> None:
        """Send what is already queued, then close the socket."""
        self.closed = True
        if self._writer is not None and not self._writer.done():
            self._outbox.put_nowait(None)
            try:
                await asyncio.wait_for(self._writer, self.close_timeout)
            except asyncio.TimeoutError:
                log.warning("gave up sending queued packets after %.1fs", self.close_timeout)
        if self._reader is not None and not self._reader.done():
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
        await self.ws.close()
        log.debug("link closed after %d bytes sent", self.bytes_sent)
