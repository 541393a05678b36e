from __future__ import annotations

import io

import pytest

from cloudcatcher.display import AnsiTerminal, FrameBuffer
from cloudcatcher.display_sync import DisplaySync
from cloudcatcher.errors import SizeLimitExceeded
from cloudcatcher.events import EventQueue
from cloudcatcher.net import WebSocketLink


class FakeBuffer:
    def __init__(self):
        self.dirty = False

    def is_dirty(self):
        return self.dirty

    def clear_dirty(self):
        self.dirty = False

    def serialise(self):
        return b"{}"


class Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class Timers:
    def __init__(self):
        self.delays = []

    def __call__(self, delay):
        self.delays.append(delay)
        return len(self.delays)


def make_sync(send):
    buf, clock, timers = FakeBuffer(), Clock(), Timers()
    sync = DisplaySync(buf, send, timers, window=0.04, clock=clock)
    return sync, buf, clock, timers


def test_coalesces_within_window():
    sent = []
    sync, buf, clock, timers = make_sync(sent.append)

    buf.dirty = True
    sync.tick()
    assert sent == []
    assert timers.delays == [pytest.approx(0.04)]

    clock.now = 0.010
    buf.dirty = True
    sync.tick()
    assert len(timers.delays) == 1

    clock.now = 0.040
    assert sync.on_timer(1) is True
    assert sent == [b"10{}"]

    clock.now = 0.050
    buf.dirty = True
    sync.tick()
    assert sent == [b"10{}"]
    assert timers.delays[1] == pytest.approx(0.03)

    clock.now = 0.080
    assert sync.on_timer(2) is True
    assert len(sent) == 2
    assert sync.frames_sent == 2


def test_sends_immediately_after_window():
    sent = []
    sync, buf, clock, timers = make_sync(sent.append)
    clock.now = 1.0
    buf.dirty = True
    sync.tick()
    assert sent == [b"10{}"]
    assert timers.delays == []
    assert buf.dirty is False


def test_clean_buffer_sends_nothing():
    sent = []
    sync, buf, clock, timers = make_sync(sent.append)
    clock.now = 1.0
    sync.tick()
    assert sent == []
    assert timers.delays == []


def test_stale_timer_ignored():
    sent = []
    sync, buf, clock, timers = make_sync(sent.append)
    assert sync.on_timer(7) is False
    buf.dirty = True
    sync.tick()
    assert sync.on_timer(99) is False
    assert sent == []


def test_oversized_frame_dropped():
    def send(data):
        raise SizeLimitExceeded("too big")

    sync, buf, clock, timers = make_sync(send)
    clock.now = 1.0
    buf.dirty = True
    sync.tick()
    assert sync.frames_sent == 0
    assert buf.dirty is False


def test_large_terminal_frame_accepted_by_link():
    link = WebSocketLink(object(), EventQueue())
    buf = FrameBuffer(AnsiTerminal(io.StringIO(), size=(160, 50)))
    clock, timers = Clock(), Timers()
    sync = DisplaySync(buf, link.send, timers, window=0.04, clock=clock)
    buf.write("x" * 200)
    clock.now = 1.0
    sync.tick()
    assert sync.frames_sent == 1
