"""Small string and input helpers of the user library."""

from __future__ import annotations

from typing import BinaryIO, Union

_Text = Union[str, bytes, bytearray]


def _c_bytes(s: _Text) -> bytes:
    data = s.encode("utf-8") if isinstance(s, str) else bytes(s)
    return data.split(b"\0", 1)[0]


def atoi(s: _Text) -> int:
    """Value of the leading decimal digits of ``s``; no sign, no blanks, 0 if none."""
    n = 0
    for byte in _c_bytes(s):
        if not 0x30 <= byte <= 0x39:
            break
        n = n * 10 + (byte - 0x30)
    n &= 0xFFFFFFFF
    return n - (1 << 32) if n & 0x80000000 else n


def strcmp(p: _Text, q: _Text) -> int:
    """Compare two strings bytewise; negative, zero or positive like C strcmp."""
    a, b = _c_bytes(p), _c_bytes(q)
    for x, y in zip(a, b):
        if x != y:
            return x - y
    first = a[len(b)] if len(a) > len(b) else 0
    second = b[len(a)] if len(b) > len(a) else 0
    return first - second


def gets(stream: BinaryIO, limit: int) -> bytes:
    """Read one line of at most ``limit - 1`` bytes, keeping its ``\\n`` or ``\\r``."""
    out = bytearray()
    while len(out) + 1 < limit:
        c = stream.read(1)
        if not c:
            break
        out += c
        if c in (b"\n", b"\r"):
            break
    return bytes(out)