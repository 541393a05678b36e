from __future__ import annotations

from dataclasses import dataclass
from typing import List

from .constants import PKT_KEY, PKT_MOUSE, PKT_PASTE
from .errors import ProtocolDecodeError
from .events import (
    Char,
    EventQueue,
    InputEvent,
    KeyDown,
    KeyUp,
    MouseClick,
    MouseDrag,
    MouseScroll,
    MouseUp,
    Paste,
)
from .packet import KeyPacket, MousePacket, Packet, PastePacket

INPUT_TYPES = frozenset({PKT_PASTE, PKT_KEY, PKT_MOUSE})

KEY_PRESS = 0
KEY_REPEAT = 1
KEY_RELEASE = 2

MOUSE_CLICK = 0
MOUSE_UP = 1
MOUSE_DRAG = 2
MOUSE_SCROLL = 3


def _text(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace")


def decode_input(packet: Packet) -> List[InputEvent]:
    """Translate one input packet into the events it stands for.

    Raises ProtocolDecodeError when the fields do not match; unknown kinds
    decode to no events.
    """
    if packet.code == PKT_PASTE:
        return [Paste(_text(PastePacket.from_body(packet.body).text))]

    if packet.code == PKT_KEY:
        key = KeyPacket.from_body(packet.body)
        if key.kind in (KEY_PRESS, KEY_REPEAT):
            events: List[InputEvent] = [KeyDown(key.code, is_repeat=key.kind == KEY_REPEAT)]
            if key.char:
                events.append(Char(_text(key.char)))
            return events
        if key.kind == KEY_RELEASE:
            return [KeyUp(key.code)]
        return []

    if packet.code == PKT_MOUSE:
        mouse = MousePacket.from_body(packet.body)
        if mouse.kind == MOUSE_CLICK:
            return [MouseClick(mouse.button, mouse.x, mouse.y)]
        if mouse.kind == MOUSE_UP:
            return [MouseUp(mouse.button, mouse.x, mouse.y)]
        if mouse.kind == MOUSE_DRAG:
            return [MouseDrag(mouse.button, mouse.x, mouse.y)]
        if mouse.kind == MOUSE_SCROLL:
            return [MouseScroll(mouse.button - 1, mouse.x, mouse.y)]
        return []

    raise ProtocolDecodeError(f"not an input packet: {packet.code:#04x}")


@dataclass(slots=True)
class InputDispatcher:
    events: EventQueue

    def dispatch(self, packet: Packet) -> List[InputEvent]:
        try:
            decoded = decode_input(packet)
        except ProtocolDecodeError:
            return []

        for item in decoded:
            self.events.put(item.to_event())
        return decoded
