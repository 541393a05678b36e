from __future__ import annotations

import enum
import re
from dataclasses import dataclass

from .constants import (
    FLAG_FORCE,
    FLAG_READ_ONLY,
    PKT_CONNECTION_ABUSE,
    PKT_CONNECTION_UPDATE,
    PKT_FILE_ACCEPT,
    PKT_FILE_CONTENTS,
    PKT_FILE_REJECT,
    PKT_KEY,
    PKT_MOUSE,
    PKT_PASTE,
    PKT_PING,
    PKT_TERMINAL_CONTENTS,
)
from .errors import ProtocolDecodeError


class PacketType(enum.IntEnum):
    CONNECTION_UPDATE = PKT_CONNECTION_UPDATE
    CONNECTION_ABUSE = PKT_CONNECTION_ABUSE
    PING = PKT_PING
    TERMINAL_CONTENTS = PKT_TERMINAL_CONTENTS
    PASTE = PKT_PASTE
    KEY = PKT_KEY
    MOUSE = PKT_MOUSE
    FILE_CONTENTS = PKT_FILE_CONTENTS
    FILE_ACCEPT = PKT_FILE_ACCEPT
    FILE_REJECT = PKT_FILE_REJECT


RESERVED_TYPES = frozenset({PKT_CONNECTION_UPDATE, PKT_CONNECTION_ABUSE})

_TYPE_RE = re.compile(rb"[0-9a-fA-F]{2}")
_KEY_RE = re.compile(rb"([0-9a-fA-F])([0-9a-fA-F]{2})(.*)", re.DOTALL)
_MOUSE_RE = re.compile(rb"([0-9a-fA-F])([0-9a-fA-F])([0-9a-fA-F]{2})([0-9a-fA-F]{2})")
_FILE_RE = re.compile(rb"([0-9a-fA-F]{2})([0-9a-fA-F]{8})([^\x00]+)\x00(.*)", re.DOTALL)


def _hex(value: int, width: int) -> bytes:
    if value < 0 or value >= 16**width:
        raise ValueError(f"{value} does not fit in {width} hex digits")
    return format(value, f"0{width}x").encode("ascii")


def _path(raw: bytes) -> str:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ProtocolDecodeError(f"path is not valid utf-8: {e}") from e


def encode(code: int, body: bytes = b"") -> bytes:
    return _hex(code, 2) + body


@dataclass(frozen=True, slots=True)
class Packet:
    code: int
    body: bytes = b""

    @property
    def is_reserved(self) -> bool:
        return self.code in RESERVED_TYPES

    def to_bytes(self) -> bytes:
        return encode(self.code, self.body)

    @staticmethod
    def from_bytes(raw: bytes | str) -> "Packet":
        if isinstance(raw, str):
            raw = raw.encode("utf-8")
        if not _TYPE_RE.fullmatch(raw[:2]):
            raise ProtocolDecodeError("message does not start with a hex type code")
        return Packet(code=int(raw[:2], 16), body=raw[2:])

    @staticmethod
    def ping() -> "Packet":
        return Packet(code=PKT_PING)


def encode_frame(blob: bytes) -> bytes:
    return encode(PKT_TERMINAL_CONTENTS, blob)


@dataclass(frozen=True, slots=True)
class PastePacket:
    text: bytes

    def to_bytes(self) -> bytes:
        return encode(PKT_PASTE, self.text)

    @staticmethod
    def from_body(body: bytes) -> "PastePacket":
        return PastePacket(text=body)


@dataclass(frozen=True, slots=True)
class KeyPacket:
    """Key press (kind 0), repeat (kind 1) or release (kind 2)."""

    kind: int
    code: int
    char: bytes = b""

    def to_bytes(self) -> bytes:
        return encode(PKT_KEY, _hex(self.kind, 1) + _hex(self.code, 2) + self.char)

    @staticmethod
    def from_body(body: bytes) -> "KeyPacket":
        m = _KEY_RE.fullmatch(body)
        if m is None:
            raise ProtocolDecodeError("malformed key packet")
        kind, code, char = m.groups()
        return KeyPacket(kind=int(kind, 16), code=int(code, 16), char=char)


@dataclass(frozen=True, slots=True)
class MousePacket:
    """Click (0), up (1), drag (2) or scroll (3).

    For scrolls ``button`` carries the wheel delta offset by one, so that -1
    fits in a single unsigned hex digit.
    """

    kind: int
    button: int
    x: int
    y: int

    def to_bytes(self) -> bytes:
        return encode(
            PKT_MOUSE,
            _hex(self.kind, 1) + _hex(self.button, 1) + _hex(self.x, 2) + _hex(self.y, 2),
        )

    @staticmethod
    def from_body(body: bytes) -> "MousePacket":
        m = _MOUSE_RE.fullmatch(body)
        if m is None:
            raise ProtocolDecodeError("malformed mouse packet")
        kind, button, x, y = (int(g, 16) for g in m.groups())
        return MousePacket(kind=kind, button=button, x=x, y=y)


@dataclass(frozen=True, slots=True)
class FileEditPacket:
    flags: int
    checksum: int
    path: str
    contents: bytes = b""

    @property
    def force(self) -> bool:
        return bool(self.flags & FLAG_FORCE)

    @property
    def read_only(self) -> bool:
        return bool(self.flags & FLAG_READ_ONLY)

    def to_bytes(self) -> bytes:
        return encode(
            PKT_FILE_CONTENTS,
            _hex(self.flags, 2) + _hex(self.checksum, 8) + self.path.encode("utf-8") + b"\x00" + self.contents,
        )

    @staticmethod
    def from_body(body: bytes) -> "FileEditPacket":
        m = _FILE_RE.fullmatch(body)
        if m is None:
            raise ProtocolDecodeError("malformed file contents packet")
        flags, checksum, path, contents = m.groups()
        return FileEditPacket(
            flags=int(flags, 16),
            checksum=int(checksum, 16),
            path=_path(path),
            contents=contents,
        )


@dataclass(frozen=True, slots=True)
class FileAck:
    """Outcome of an inbound edit: 0x31 when applied, 0x32 when rejected."""

    accepted: bool
    checksum: int
    path: str

    @property
    def code(self) -> int:
        return PKT_FILE_ACCEPT if self.accepted else PKT_FILE_REJECT

    def to_bytes(self) -> bytes:
        return encode(self.code, _hex(self.checksum, 8) + self.path.encode("utf-8"))
