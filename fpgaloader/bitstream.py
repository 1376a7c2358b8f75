"""Helpers shared by the bitstream file parsers."""

from __future__ import annotations

__all__ = ["BitstreamError", "reverse_byte", "bits_to_int"]


class BitstreamError(ValueError):
    """Raised when a configuration file cannot be parsed."""


def reverse_byte(value: int) -> int:
    """Return ``value`` (a byte) with its bit order reversed."""
    return int(f"{value & 0xFF:08b}"[::-1], 2)


def bits_to_int(bits: str) -> int:
    """Convert an MSB-first string of '1'/'0' characters to an integer.

    Any character other than '1' counts as a zero bit.
    """
    value = 0
    for char in bits:
        value = (value << 1) | (char == "1")
    return value