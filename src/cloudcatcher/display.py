from __future__ import annotations

import json
import re
import shutil
from typing import List, Optional, Protocol, TextIO, Tuple

from .constants import MAX_TERM_CELLS, MAX_TERM_SIDE

HEX_COLOURS = "0123456789abcdef"
DEFAULT_FORE = "0"
DEFAULT_BACK = "f"

# Palette index -> ANSI SGR foreground code; background is +10.
ANSI_COLOURS = {
    "0": 97, "1": 33, "2": 95, "3": 94,
    "4": 93, "5": 92, "6": 95, "7": 90,
    "8": 37, "9": 36, "a": 35, "b": 34,
    "c": 33, "d": 32, "e": 31, "f": 30,
}

_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f]")
_TOKEN_RE = re.compile(r"\n|[ \t]+|[^\s]+")


class Terminal(Protocol):
    def get_size(self) -> Tuple[int, int]: ...

    def get_cursor_pos(self) -> Tuple[int, int]: ...

    def set_cursor_pos(self, x: int, y: int) -> None: ...

    def set_cursor_blink(self, blink: bool) -> None: ...

    def write(self, text: str) -> None: ...

    def clear(self) -> None: ...

    def clear_line(self) -> None: ...

    def scroll(self, n: int) -> None: ...

    def set_text_colour(self, colour: str) -> None: ...

    def set_background_colour(self, colour: str) -> None: ...


def clamp_size(width: int, height: int) -> Tuple[int, int]:
    """Largest size within (width, height) whose frame fits in one packet."""
    width = max(1, min(width, MAX_TERM_SIDE))
    height = max(1, min(height, MAX_TERM_SIDE, MAX_TERM_CELLS // width))
    return width, height


def _colour(colour: str) -> str:
    colour = colour.lower()
    if len(colour) != 1 or colour not in HEX_COLOURS:
        raise ValueError(f"invalid colour: {colour!r}")
    return colour


class HeadlessDisplay:
    """Fixed-size sink for sessions that are only watched remotely."""

    def __init__(self, width: int, height: int):
        if width <= 0 or height <= 0:
            raise ValueError("display cannot have 0 size")
        self.width = width
        self.height = height
        self.cursor = (1, 1)

    def get_size(self) -> Tuple[int, int]:
        return self.width, self.height

    def get_cursor_pos(self) -> Tuple[int, int]:
        return self.cursor

    def set_cursor_pos(self, x: int, y: int) -> None:
        self.cursor = (x, y)

    def set_cursor_blink(self, blink: bool) -> None:
        pass

    def write(self, text: str) -> None:
        x, y = self.cursor
        self.cursor = (x + len(text), y)

    def clear(self) -> None:
        pass

    def clear_line(self) -> None:
        pass

    def scroll(self, n: int) -> None:
        pass

    def set_text_colour(self, colour: str) -> None:
        _colour(colour)

    def set_background_colour(self, colour: str) -> None:
        _colour(colour)


class AnsiTerminal:
    """The real terminal, driven with ANSI escape sequences."""

    def __init__(self, stream: TextIO, size: Optional[Tuple[int, int]] = None):
        self.stream = stream
        self._size = size
        self.cursor = (1, 1)

    def _emit(self, data: str) -> None:
        self.stream.write(data)
        self.stream.flush()

    def get_size(self) -> Tuple[int, int]:
        if self._size is not None:
            return self._size
        size = shutil.get_terminal_size()
        return size.columns, size.lines

    def get_cursor_pos(self) -> Tuple[int, int]:
        return self.cursor

    def set_cursor_pos(self, x: int, y: int) -> None:
        self.cursor = (x, y)
        if x >= 1 and y >= 1:
            self._emit(f"\x1b[{y};{x}H")

    def set_cursor_blink(self, blink: bool) -> None:
        self._emit("\x1b[?25h" if blink else "\x1b[?25l")

    def write(self, text: str) -> None:
        x, y = self.cursor
        width, height = self.get_size()
        self.cursor = (x + len(text), y)
        if y < 1 or y > height or x > width:
            return
        if x < 1:
            text = text[1 - x :]
            x = 1
            self._emit(f"\x1b[{y};1H")
        self._emit(_CONTROL_RE.sub("?", text[: width - x + 1]))

    def clear(self) -> None:
        self._emit("\x1b[2J")

    def clear_line(self) -> None:
        self._emit("\x1b[2K")

    def scroll(self, n: int) -> None:
        if n > 0:
            self._emit(f"\x1b[{n}S")
        elif n < 0:
            self._emit(f"\x1b[{-n}T")

    def set_text_colour(self, colour: str) -> None:
        self._emit(f"\x1b[{ANSI_COLOURS[_colour(colour)]}m")

    def set_background_colour(self, colour: str) -> None:
        self._emit(f"\x1b[{ANSI_COLOURS[_colour(colour)] + 10}m")

    def begin_private_mode(self) -> None:
        self._emit("\x1b[?1049h")

    def end_private_mode(self) -> None:
        self._emit("\x1b[0m\x1b[?25h\x1b[?1049l")


class FrameBuffer:
    """Active display: keeps a cell grid and mirrors every call to its parent.

    Any change marks the buffer dirty; the session serialises it and sends
    the frame to the viewer.
    """

    def __init__(self, parent: Terminal):
        self.parent = parent
        self.width, self.height = clamp_size(*parent.get_size())
        self.cursor_x, self.cursor_y = 1, 1
        self.cursor_blink = False
        self.fore = DEFAULT_FORE
        self.back = DEFAULT_BACK
        self.text: List[str] = []
        self.fore_lines: List[str] = []
        self.back_lines: List[str] = []
        self._reset_lines()
        self._dirty = True

    def _reset_lines(self) -> None:
        self.text = [" " * self.width for _ in range(self.height)]
        self.fore_lines = [self.fore * self.width for _ in range(self.height)]
        self.back_lines = [self.back * self.width for _ in range(self.height)]

    def _blank(self) -> Tuple[str, str, str]:
        return " " * self.width, self.fore * self.width, self.back * self.width

    def is_dirty(self) -> bool:
        return self._dirty

    def clear_dirty(self) -> None:
        self._dirty = False

    def get_size(self) -> Tuple[int, int]:
        return self.width, self.height

    def get_cursor_pos(self) -> Tuple[int, int]:
        return self.cursor_x, self.cursor_y

    def set_cursor_pos(self, x: int, y: int) -> None:
        self.cursor_x, self.cursor_y = x, y
        self.parent.set_cursor_pos(x, y)
        self._dirty = True

    def set_cursor_blink(self, blink: bool) -> None:
        self.cursor_blink = bool(blink)
        self.parent.set_cursor_blink(blink)
        self._dirty = True

    def set_text_colour(self, colour: str) -> None:
        self.fore = _colour(colour)
        self.parent.set_text_colour(self.fore)

    def set_background_colour(self, colour: str) -> None:
        self.back = _colour(colour)
        self.parent.set_background_colour(self.back)

    def write(self, text: str) -> None:
        text = _CONTROL_RE.sub("?", str(text))
        x, y = self.cursor_x, self.cursor_y
        self.cursor_x = x + len(text)
        self.parent.write(text)
        if not text or y < 1 or y > self.height or x > self.width or x + len(text) <= 1:
            return

        start = x - 1
        if start < 0:
            text = text[-start:]
            start = 0
        text = text[: self.width - start]
        end = start + len(text)

        row = y - 1
        self.text[row] = self.text[row][:start] + text + self.text[row][end:]
        self.fore_lines[row] = self.fore_lines[row][:start] + self.fore * len(text) + self.fore_lines[row][end:]
        self.back_lines[row] = self.back_lines[row][:start] + self.back * len(text) + self.back_lines[row][end:]
        self._dirty = True

    def clear(self) -> None:
        self._reset_lines()
        self.parent.clear()
        self._dirty = True

    def clear_line(self) -> None:
        if 1 <= self.cursor_y <= self.height:
            row = self.cursor_y - 1
            self.text[row], self.fore_lines[row], self.back_lines[row] = self._blank()
            self._dirty = True
        self.parent.clear_line()

    def scroll(self, n: int) -> None:
        if n == 0:
            return
        self.parent.scroll(n)
        for lines, fill in zip((self.text, self.fore_lines, self.back_lines), self._blank()):
            if abs(n) >= self.height:
                lines[:] = [fill] * self.height
            elif n > 0:
                lines[:] = lines[n:] + [fill] * n
            else:
                lines[:] = [fill] * -n + lines[:n]
        self._dirty = True

    def serialise(self) -> bytes:
        frame = {
            "width": self.width,
            "height": self.height,
            "cursorX": self.cursor_x,
            "cursorY": self.cursor_y,
            "cursorBlink": self.cursor_blink,
            "curFore": self.fore,
            "curBack": self.back,
            "text": self.text,
            "fore": self.fore_lines,
            "back": self.back_lines,
        }
        return json.dumps(frame, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def write_wrapped(term: Terminal, text: str) -> int:
    """Write ``text`` at the cursor, wrapping words and scrolling at the bottom.

    Returns the number of line breaks produced.
    """
    width, height = term.get_size()
    x, y = term.get_cursor_pos()
    lines = 0

    def newline() -> None:
        nonlocal x, y, lines
        if y < height:
            y += 1
        else:
            term.scroll(1)
        x = 1
        term.set_cursor_pos(x, y)
        lines += 1

    for token in _TOKEN_RE.findall(text):
        if token == "\n":
            newline()
            continue

        if not token.isspace():
            if x > 1 and x + len(token) > width + 1:
                newline()
            while len(token) > width - x + 1:
                room = max(width - x + 1, 0)
                term.write(token[:room])
                token = token[room:]
                newline()

        term.write(token)
        x += len(token)

    return lines


def print_line(term: Terminal, text: str = "") -> int:
    return write_wrapped(term, text + "\n")
