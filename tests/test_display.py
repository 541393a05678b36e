from __future__ import annotations

import io
import json

import pytest

from cloudcatcher.constants import MAX_PACKET_SIZE, MAX_TERM_CELLS
from cloudcatcher.display import AnsiTerminal, FrameBuffer, HeadlessDisplay, clamp_size, print_line, write_wrapped
from cloudcatcher.packet import encode_frame


def make_buffer(width=10, height=3):
    return FrameBuffer(HeadlessDisplay(width, height))


def test_starts_dirty_and_blank():
    buf = make_buffer()
    assert buf.is_dirty()
    assert buf.text == [" " * 10] * 3
    assert buf.fore_lines == ["0" * 10] * 3
    assert buf.back_lines == ["f" * 10] * 3


def test_write_marks_dirty_and_clips():
    buf = make_buffer()
    buf.clear_dirty()
    buf.set_cursor_pos(8, 2)
    buf.clear_dirty()
    buf.set_text_colour("e")
    buf.write("hello")
    assert buf.is_dirty()
    assert buf.text[1] == "       hel"
    assert buf.fore_lines[1] == "0000000eee"
    assert buf.get_cursor_pos() == (13, 2)


def test_write_off_screen_left():
    buf = make_buffer()
    buf.set_cursor_pos(-1, 1)
    buf.write("abcd")
    assert buf.text[0] == "cd        "


def test_write_off_screen_is_ignored():
    buf = make_buffer()
    buf.set_cursor_pos(1, 5)
    buf.clear_dirty()
    buf.write("abc")
    assert not buf.is_dirty()


def test_scroll():
    buf = make_buffer()
    for y, word in enumerate(["one", "two", "three"], start=1):
        buf.set_cursor_pos(1, y)
        buf.write(word)
    buf.scroll(1)
    assert [line.rstrip() for line in buf.text] == ["two", "three", ""]
    buf.scroll(-1)
    assert [line.rstrip() for line in buf.text] == ["", "two", "three"]


def test_clear_line():
    buf = make_buffer()
    buf.write("abc")
    buf.clear_line()
    assert buf.text[0] == " " * 10


def test_serialise():
    buf = make_buffer(4, 2)
    buf.write("hi")
    buf.set_cursor_blink(True)
    frame = json.loads(buf.serialise())
    assert frame["width"] == 4
    assert frame["height"] == 2
    assert frame["text"] == ["hi  ", "    "]
    assert frame["cursorX"] == 3
    assert frame["cursorBlink"] is True
    assert frame["curFore"] == "0"


def test_invalid_colour():
    with pytest.raises(ValueError):
        make_buffer().set_text_colour("g")


def test_write_wrapped():
    buf = make_buffer()
    lines = write_wrapped(buf, "aaaa bbbb cccc")
    assert lines == 1
    assert buf.text[0] == "aaaa bbbb "
    assert buf.text[1].rstrip() == "cccc"


def test_write_wrapped_long_word_and_scroll():
    buf = make_buffer(4, 2)
    print_line(buf, "abcdefghij")
    assert [line.rstrip() for line in buf.text] == ["ij", ""]


def test_headless_display_size():
    with pytest.raises(ValueError):
        HeadlessDisplay(0, 5)


def test_ansi_terminal():
    out = io.StringIO()
    term = AnsiTerminal(out, size=(10, 3))
    term.set_cursor_pos(2, 3)
    term.write("hi\x07")
    term.set_text_colour("e")
    term.set_cursor_pos(1, 9)
    term.write("skipped")
    assert out.getvalue() == "\x1b[3;2Hhi?\x1b[31m\x1b[9;1H"


def test_large_terminal_is_clamped():
    buf = FrameBuffer(AnsiTerminal(io.StringIO(), size=(160, 50)))
    assert buf.get_size() == (160, 12)
    assert clamp_size(2000, 1) == (255, 1)
    assert clamp_size(1, 2000) == (1, 255)
    assert clamp_size(51, 19) == (51, 19)


@pytest.mark.parametrize("size", [(8, 250), (40, 50), (255, 7), (1, 255), (160, 50)])
def test_full_frame_fits_in_one_packet(size):
    buf = FrameBuffer(HeadlessDisplay(*size))
    assert buf.width * buf.height <= MAX_TERM_CELLS
    for y in range(1, buf.height + 1):
        buf.set_cursor_pos(1, y)
        buf.write("\U0001d11e" * buf.width)
    assert len(encode_frame(buf.serialise())) <= MAX_PACKET_SIZE
