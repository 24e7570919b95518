"""
Bit accumulator for hexadecimal (4-bit) and base64 (6-bit) regions.

Bits are pushed and taken MSB-first. The scanner pushes digit-sized groups and
takes octets; the printer pushes octets and takes digit-sized groups.
"""

from __future__ import annotations


def _mask(width: int) -> int:
    return (1 << width) - 1


class BitBuffer:
    """Bits waiting to be used, plus how many there are."""

    __slots__ = ("bits", "n_bits")

    def __init__(self) -> None:
        self.bits = 0
        self.n_bits = 0

    def push(self, value: int, width: int) -> None:
        self.bits = (self.bits << width) | (value & _mask(width))
        self.n_bits += width

    def has(self, width: int) -> bool:
        return self.n_bits >= width

    def take(self, width: int) -> int:
        """Remove and return the oldest ``width`` bits."""
        if width > self.n_bits:
            raise ValueError(f"Cannot take {width} bits, only {self.n_bits} held")
        self.n_bits -= width
        value = (self.bits >> self.n_bits) & _mask(width)
        self.bits &= _mask(self.n_bits)
        return value

    def leftover(self) -> int:
        """Value of the bits still held (the ones a region end would discard)."""
        return self.bits & _mask(self.n_bits)

    def drain(self, width: int) -> int | None:
        """Left-align the held bits in a ``width``-bit group, zero-filled, and reset.

        Returns None when nothing is held.
        """
        if self.n_bits == 0:
            return None
        value = (self.bits << (width - self.n_bits)) & _mask(width)
        self.reset()
        return value

    def reset(self) -> None:
        self.bits = 0
        self.n_bits = 0

    def __repr__(self) -> str:
        return f"BitBuffer(bits={self.bits:#x}, n_bits={self.n_bits})"
