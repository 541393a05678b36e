from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Protocol

from .constants import REDRAW_COALESCE_S
from .errors import SizeLimitExceeded
from .packet import encode_frame

log = logging.getLogger(__name__)


class DirtyDisplay(Protocol):
    def is_dirty(self) -> bool: ...

    def clear_dirty(self) -> None: ...

    def serialise(self) -> bytes: ...


class DisplaySync:
    """Decides when the active display is serialised and sent to the viewer.

    A dirty buffer is sent straight away unless the previous frame went out
    less than ``window`` seconds ago. In that case one timer is armed for
    the rest of the window, and everything drawn meanwhile goes out as a
    single frame when it fires.
    """

    def __init__(
        self,
        buffer: DirtyDisplay,
        send: Callable[[bytes], None],
        start_timer: Callable[[float], int],
        *,
        window: float = REDRAW_COALESCE_S,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.buffer = buffer
        self.send = send
        self.start_timer = start_timer
        self.window = window
        self.clock = clock
        self.last_send = clock()
        self.pending_timer: Optional[int] = None
        self.frames_sent = 0

    def tick(self) -> None:
        if self.pending_timer is not None or not self.buffer.is_dirty():
            return

        elapsed = self.clock() - self.last_send
        if elapsed < self.window:
            self.pending_timer = self.start_timer(self.window - elapsed)
        else:
            self.flush()

    def on_timer(self, timer_id: object) -> bool:
        if self.pending_timer is None or timer_id != self.pending_timer:
            return False
        self.pending_timer = None
        self.flush()
        return True

    def flush(self) -> None:
        self.buffer.clear_dirty()
        self.last_send = self.clock()
        try:
            self.send(encode_frame(self.buffer.serialise()))
        except SizeLimitExceeded as e:
            log.warning("dropping display frame: %s", e)
            return
        self.frames_sent += 1
