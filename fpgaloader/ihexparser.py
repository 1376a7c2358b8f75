"""Parser for Intel HEX data files."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Union

from .bitstream import BitstreamError, reverse_byte

__all__ = ["DataSection", "IhexParser"]

_LEN_BASE = 1
_ADDR_BASE = 3
_TYPE_BASE = 7
_DATA_BASE = 9

_RECORD_DATA = 0x00
_RECORD_EOF = 0x01

_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


@dataclass(frozen=True)
class DataSection:
    """A run of consecutive data bytes starting at ``addr``."""

    addr: int
    length: int
    data: bytes


def _as_text(data: Union[str, bytes]) -> str:
    if isinstance(data, (bytes, bytearray)):
        return bytes(data).decode("latin-1")
    return data


def _lines(text: str) -> Iterator[str]:
    parts = text.split("\n")
    # a trailing newline does not start another line
    if parts and parts[-1] == "":
        parts.pop()
    yield from parts


def _hex_field(line: str, start: int, width: int) -> int:
    field = line[start:start + width]
    if len(field) != width or not set(field) <= _HEX_DIGITS:
        raise BitstreamError(f"malformed record: {line!r}")
    return int(field, 16)


class IhexParser:
    """Read an Intel HEX file into a flat byte image and address sections."""

    def __init__(self, data: Union[str, bytes], reverse_order: bool = False,
                 verbose: bool = False) -> None:
        self._raw = _as_text(data)
        self._reverse = reverse_order
        self.verbose = verbose
        self._base_addr = 0
        self.bit_data = b""
        self.bit_length = 0
        self.sections: list[DataSection] = []

    def parse(self) -> None:
        """Parse the file; raise BitstreamError on a malformed record."""
        self.sections = []
        self.bit_length = 0
        image = bytearray()
        section_addr: int | None = None
        section = bytearray()
        next_addr = 0

        def close_section() -> None:
            self.sections.append(
                DataSection(section_addr, len(section) & 0xFFFF, bytes(section)))

        try:
            for line in _lines(self._raw):
                line = line.removesuffix("\r")
                if line.startswith("#"):
                    continue
                if not line.startswith(":"):
                    raise BitstreamError("a line must start with ':'")

                byte_len = _hex_field(line, _LEN_BASE, 2)
                addr = _hex_field(line, _ADDR_BASE, 4)
                rtype = _hex_field(line, _TYPE_BASE, 2)
                total = byte_len + rtype + (addr & 0xFF) + ((addr >> 8) & 0xFF)

                if rtype == _RECORD_EOF:
                    if section:
                        close_section()
                    return
                if rtype != _RECORD_DATA:
                    raise BitstreamError(f"unknown record type {rtype:02x}")

                loc_addr = self._base_addr + addr
                # a gap in addresses starts a new section
                if section_addr is None or next_addr != addr:
                    if section_addr is not None:
                        close_section()
                    section_addr = loc_addr & 0xFFFF
                    section = bytearray()

                end = loc_addr + byte_len
                if len(image) < end:
                    image.extend(bytes(end - len(image)))
                for i in range(byte_len):
                    value = _hex_field(line, _DATA_BASE + 2 * i, 2)
                    stored = reverse_byte(value) if self._reverse else value
                    image[loc_addr + i] = stored
                    section.append(stored)
                    total += value
                next_addr = (addr + byte_len) & 0xFFFF
                self.bit_length += byte_len * 8

                checksum = _hex_field(line, _DATA_BASE + byte_len * 2, 2)
                if checksum != (-total) & 0xFF:
                    raise BitstreamError("wrong checksum")
        finally:
            self.bit_data = bytes(image)