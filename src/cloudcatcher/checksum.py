from __future__ import annotations


def fletcher_32(data: bytes) -> int:
    """Fletcher-32 over little-endian 16-bit words, zero-padding odd input."""
    if len(data) % 2:
        data = data + b"\x00"

    s1 = 0
    s2 = 0
    for i in range(0, len(data), 2):
        s1 = (s1 + data[i] + (data[i + 1] << 8)) % 0xFFFF
        s2 = (s2 + s1) % 0xFFFF
    return (s2 << 16) | s1
