from __future__ import annotations

# Packet type codes, two hex digits at the start of every message.
PKT_CONNECTION_UPDATE = 0x00
PKT_CONNECTION_ABUSE = 0x01
PKT_PING = 0x02
PKT_TERMINAL_CONTENTS = 0x10
PKT_PASTE = 0x20
PKT_KEY = 0x21
PKT_MOUSE = 0x22
PKT_FILE_CONTENTS = 0x30
PKT_FILE_ACCEPT = 0x31
PKT_FILE_REJECT = 0x32

# File contents flags
FLAG_FORCE = 0x01
FLAG_EDIT = 0x02
FLAG_READ_ONLY = 0x08

MAX_PACKET_SIZE = 16384

REDRAW_COALESCE_S = 0.04

DEFAULT_HOST = "localhost:8080"
TOKEN_LENGTH = 32
MAX_TERM_CELLS = 2000
# Mouse coordinates are two hex digits.
MAX_TERM_SIDE = 0xFF
DEFAULT_TERM_SIZE = (51, 19)

# Host event vocabulary
EV_START = "start"
EV_TERMINATE = "terminate"
EV_TIMER = "timer"
EV_LINK_MESSAGE = "link_message"
EV_LINK_CLOSED = "link_closed"
