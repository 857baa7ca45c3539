"""The Park-Miller minimal standard pseudo-random generator."""

from __future__ import annotations

from typing import Iterator

_MASK64 = 0xFFFFFFFFFFFFFFFF


class ParkMiller:
    """Generator computing ``16807 * x mod (2**31 - 1)`` without overflow."""

    def __init__(self, seed: int = 1) -> None:
        self.state = seed & _MASK64

    def rand(self) -> int:
        """Advance the generator and return a value in ``[0, 0x7ffffffd]``."""
        x = self.state % 0x7FFFFFFE + 1
        hi, lo = divmod(x, 127773)
        x = 16807 * lo - 2836 * hi
        if x < 0:
            x += 0x7FFFFFFF
        x -= 1
        self.state = x
        return x

    def __iter__(self) -> Iterator[int]:
        while True:
            yield self.rand()