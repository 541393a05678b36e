from __future__ import annotations

import asyncio
import enum
import itertools
from dataclasses import dataclass
from typing import Tuple, Union

from .constants import EV_LINK_CLOSED, EV_LINK_MESSAGE, EV_TERMINATE, EV_TIMER


class Source(enum.Enum):
    LOCAL = "local"
    LINK = "link"
    TIMER = "timer"


@dataclass(frozen=True, slots=True)
class Event:
    name: str
    args: Tuple[object, ...] = ()
    source: Source = Source.LOCAL


class EventQueue:
    """The single queue every event source feeds and the session drains.

    Ordering is FIFO per source. Timers are armed on the running loop and
    post a ``timer`` event carrying their id when they fire.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Event] = asyncio.Queue()
        self._timer_ids = itertools.count(1)

    def put(self, event: Event) -> None:
        self._queue.put_nowait(event)

    def queue_event(self, name: str, *args: object) -> None:
        self.put(Event(name, args))

    def post_message(self, message: bytes | str) -> None:
        self.put(Event(EV_LINK_MESSAGE, (message,), Source.LINK))

    def post_closed(self) -> None:
        self.put(Event(EV_LINK_CLOSED, (), Source.LINK))

    def terminate(self) -> None:
        self.put(Event(EV_TERMINATE))

    def start_timer(self, delay: float) -> int:
        timer_id = next(self._timer_ids)
        loop = asyncio.get_running_loop()
        loop.call_later(max(0.0, delay), self.put, Event(EV_TIMER, (timer_id,), Source.TIMER))
        return timer_id

    async def get(self) -> Event:
        return await self._queue.get()


@dataclass(frozen=True, slots=True)
class Paste:
    text: str

    def to_event(self) -> Event:
        return Event("paste", (self.text,))


@dataclass(frozen=True, slots=True)
class KeyDown:
    code: int
    is_repeat: bool = False

    def to_event(self) -> Event:
        return Event("key", (self.code, self.is_repeat))


@dataclass(frozen=True, slots=True)
class KeyUp:
    code: int

    def to_event(self) -> Event:
        return Event("key_up", (self.code,))


@dataclass(frozen=True, slots=True)
class Char:
    text: str

    def to_event(self) -> Event:
        return Event("char", (self.text,))


@dataclass(frozen=True, slots=True)
class MouseClick:
    button: int
    x: int
    y: int

    def to_event(self) -> Event:
        return Event("mouse_click", (self.button, self.x, self.y))


@dataclass(frozen=True, slots=True)
class MouseUp:
    button: int
    x: int
    y: int

    def to_event(self) -> Event:
        return Event("mouse_up", (self.button, self.x, self.y))


@dataclass(frozen=True, slots=True)
class MouseDrag:
    button: int
    x: int
    y: int

    def to_event(self) -> Event:
        return Event("mouse_drag", (self.button, self.x, self.y))


@dataclass(frozen=True, slots=True)
class MouseScroll:
    delta: int
    x: int
    y: int

    def to_event(self) -> Event:
        return Event("mouse_scroll", (self.delta, self.x, self.y))


InputEvent = Union[Paste, KeyDown, KeyUp, Char, MouseClick, MouseUp, MouseDrag, MouseScroll]
