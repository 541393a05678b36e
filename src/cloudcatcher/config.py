from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Tuple

from .constants import (
    DEFAULT_HOST,
    DEFAULT_TERM_SIZE,
    MAX_PACKET_SIZE,
    MAX_TERM_CELLS,
    MAX_TERM_SIDE,
    REDRAW_COALESCE_S,
    TOKEN_LENGTH,
)
from .net import session_url

_TOKEN_RE = re.compile(rf"[A-Za-z0-9]{{{TOKEN_LENGTH}}}")
_SIZE_RE = re.compile(r"(\d+)x(\d+)")


def parse_token(value: str) -> str:
    if not _TOKEN_RE.fullmatch(value):
        raise ValueError(f"Invalid token (must be {TOKEN_LENGTH} alpha-numeric characters)")
    return value


def parse_term(value: str) -> Optional[Tuple[int, int]]:
    """``none`` -> None (default headless size), ``WxH`` -> (W, H)."""
    if value == "none":
        return None
    m = _SIZE_RE.fullmatch(value)
    if m is None:
        raise ValueError('Unknown format for term: expected "none" or "wxh"')
    width, height = int(m.group(1)), int(m.group(2))
    if width == 0 or height == 0:
        raise ValueError("Terminal cannot have 0 size")
    if width * height > MAX_TERM_CELLS or max(width, height) > MAX_TERM_SIDE:
        raise ValueError("Terminal is too large to handle")
    return width, height


@dataclass(frozen=True, slots=True)
class SessionConfig:
    token: str
    host: str = DEFAULT_HOST
    secure: bool = True
    # None: mirror the real terminal. "none": headless at the default size.
    term: Optional[str] = None
    root: str = "."
    default_extension: str = ""
    window: float = REDRAW_COALESCE_S
    max_packet_size: int = MAX_PACKET_SIZE

    @property
    def url(self) -> str:
        return session_url(self.host, self.token, self.secure)

    @property
    def headless_size(self) -> Optional[Tuple[int, int]]:
        """Size of the substituted display, or None to use the real terminal."""
        if self.term is None:
            return None
        return parse_term(self.term) or DEFAULT_TERM_SIZE
