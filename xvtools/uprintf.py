"""Formatted output understanding only ``%d %l %x %p %s %c`` and ``%%``."""

from __future__ import annotations

import operator
import sys
from typing import Any, Iterator, TextIO

_NULL = "(null)"
_MASK32 = 0xFFFFFFFF
_MASK64 = 0xFFFFFFFFFFFFFFFF


def _int32(value: int) -> int:
    value &= _MASK32
    return value - (1 << 32) if value & 0x80000000 else value


def _format_int(value: Any, base: int, signed: bool) -> str:
    number = operator.index(value)
    if signed:
        number = _int32(number)
        sign = "-" if number < 0 else ""
        magnitude = abs(number)
    else:
        sign = ""
        magnitude = number & _MASK32
    digits = str(magnitude) if base == 10 else format(magnitude, "X")
    return sign + digits


def _format_ptr(value: Any) -> str:
    return "0x" + format(operator.index(value) & _MASK64, "016X")


def _format_str(value: Any) -> str:
    if value is None:
        return _NULL
    if isinstance(value, (bytes, bytearray)):
        value = bytes(value).decode("latin-1")
    return str(value).split("\0", 1)[0]


def _format_char(value: Any) -> str:
    if isinstance(value, str):
        return value[0] if value else "\0"
    return chr(operator.index(value) & 0xFF)


def format_string(fmt: str, *args: Any) -> str:
    """Expand ``fmt`` with ``args`` the way the user-level printf does.

    Integers are taken as 32-bit values; unknown conversions are copied
    through with their ``%`` so that they stand out.
    """
    supply: Iterator[Any] = iter(args)

    def next_arg() -> Any:
        try:
            return next(supply)
        except StopIteration:
            raise TypeError("not enough arguments for format string") from None

    out = []
    pending = False
    for c in fmt.split("\0", 1)[0]:
        if not pending:
            if c == "%":
                pending = True
            else:
                out.append(c)
            continue
        pending = False
        if c == "d":
            out.append(_format_int(next_arg(), 10, True))
        elif c == "l":
            out.append(_format_int(next_arg(), 10, False))
        elif c == "x":
            out.append(_format_int(next_arg(), 16, False))
        elif c == "p":
            out.append(_format_ptr(next_arg()))
        elif c == "s":
            out.append(_format_str(next_arg()))
        elif c == "c":
            out.append(_format_char(next_arg()))
        elif c == "%":
            out.append("%")
        else:
            out.append("%" + c)
    return "".join(out)


def fprintf(stream: TextIO, fmt: str, *args: Any) -> None:
    """Write the expansion of ``fmt`` to ``stream``."""
    stream.write(format_string(fmt, *args))


def printf(fmt: str, *args: Any) -> None:
    """Write the expansion of ``fmt`` to standard output."""
    fprintf(sys.stdout, fmt, *args)