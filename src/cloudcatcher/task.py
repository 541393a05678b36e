from __future__ import annotations

import logging
from typing import Any, Callable, Generator, Optional

from .constants import EV_TERMINATE
from .events import Event

log = logging.getLogger(__name__)

TaskBody = Generator[Optional[str], Event, Any]


class LocalTask:
    """A resumable unit driven one event at a time.

    ``factory`` receives the first event and returns a generator. Each
    ``yield`` suspends the task and names the event it waits for, or
    ``None`` to accept any event. Returning finishes the task; raising
    fails it.
    """

    def __init__(self, factory: Callable[[Event], TaskBody]):
        self.factory = factory
        self.filter: Optional[str] = None
        self.done = False
        self.result: Any = None
        self.error: Optional[BaseException] = None
        self._body: Optional[TaskBody] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def failure(self) -> Optional[str]:
        if self.error is None:
            return None
        return str(self.error) or type(self.error).__name__

    def accepts(self, event: Event) -> bool:
        return self.filter is None or event.name == self.filter or event.name == EV_TERMINATE

    def start(self, first_event: Event) -> None:
        self._step(lambda: next(self._create(first_event)))

    def resume(self, event: Event) -> None:
        if self.done or self._body is None:
            raise RuntimeError("cannot resume a task that is not running")
        body = self._body
        self._step(lambda: body.send(event))

    def _create(self, first_event: Event) -> TaskBody:
        self._body = self.factory(first_event)
        return self._body

    def _step(self, advance: Callable[[], Optional[str]]) -> None:
        try:
            self.filter = advance()
        except StopIteration as stop:
            self.done = True
            self.result = stop.value
        except Exception as e:
            log.debug("local task failed", exc_info=True)
            self.done = True
            self.error = e
