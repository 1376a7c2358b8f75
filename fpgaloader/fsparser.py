"""Parser for Gowin ``.fs`` bitstream files."""

from __future__ import annotations

import logging
from typing import Union

from .bitstream import BitstreamError, bits_to_int
from .bitstream import reverse_byte as _flip_byte

__all__ = ["FsParser"]

_log = logging.getLogger(__name__)

_MASK64 = (1 << 64) - 1

# Number of configuration address lines for each known IDCODE.
_NB_LINES = {
    0x0900281B: 274,  # GW1N-1
    0x0900381B: 274,  # GW1N-1S
    0x0100681B: 274,  # GW1NZ-1
    0x0100181B: 494,  # GW1N-2
    0x1100181B: 494,  # GW1N-2B
    0x0300081B: 494,  # GW1NS-2
    0x0300181B: 494,  # GW1NSx-2C
    0x0100981B: 494,  # GW1NSR-4C
    0x0100381B: 494,  # GW1N-4(ES)
    0x1100381B: 494,  # GW1N-4B
    0x0100481B: 712,  # GW1N-6
    0x1100481B: 712,  # GW1N-9C
    0x0100581B: 712,  # GW1N-9(ES)
    0x1100581B: 712,  # GW1N-9
    0x0000081B: 1342,  # GW2A-18
    0x0000281B: 2038,  # GW2A-55
}

# Devices whose address length is not a multiple of a byte.
_PADDED = {0x0100481B, 0x1100481B, 0x0100581B, 0x1100581B}


def _as_text(data: Union[str, bytes]) -> str:
    if isinstance(data, (bytes, bytearray)):
        return bytes(data).decode("latin-1")
    return data


def _byte_at(bits: str, pos: int, width: int = 8) -> int:
    return bits_to_int(bits[pos:pos + width].ljust(width, "0"))


class FsParser:
    """Read an ASCII ``.fs`` file: header fields, raw data and data checksum."""

    def __init__(self, data: Union[str, bytes], reverse_byte: bool = False,
                 verbose: bool = False) -> None:
        self._raw = _as_text(data)
        self._reverse = reverse_byte
        self.verbose = verbose
        self.header: dict[str, str] = {}
        self.bit_data = b""
        self.bit_length = 0
        self.checksum = 0
        self.idcode = 0
        self.compressed = False
        self._zero8 = 0xFF
        self._zero4 = 0xFF
        self._zero2 = 0xFF
        self._end_header = 0
        self._lines: list[str] = []

    def header_value(self, key: str) -> str:
        """Return a header field; raise KeyError when it is absent."""
        try:
            return self.header[key]
        except KeyError:
            raise KeyError(f"header field {key!r} not found") from None

    def _parse_header(self) -> None:
        self._lines = []
        in_header = True
        line_index = 0
        for line in self._raw.split("\n"):
            if not line:
                break
            if line.startswith("/"):
                continue
            if line.endswith("\r"):
                line = line[:-1]
            self._lines.append(line)
            if not in_header:
                continue

            key = _byte_at(line, 0) & 0x7F
            val = bits_to_int(line) & _MASK64

            if key == 0x06:
                self.idcode = val & 0xFFFFFFFF
                self.header["idcode"] = f"{self.idcode:08x}"
            elif key == 0x0A:
                self.header["CheckSum"] = f"{val & 0xFFFFFFFF:08x}"
            elif key == 0x0B:
                self.header["SecurityBit"] = "ON"
            elif key == 0x10:
                self.header["loading_rate"] = str(0xFF & (val >> 16))
                self.compressed = bool(0x01 & (val >> 13))
                self.header["Compress"] = "ON" if self.compressed else "OFF"
                self.header["ProgramDoneBypass"] = (
                    "ON" if 0x01 & (val >> 12) else "OFF")
            elif key == 0x51:
                # replacement codes for 8, 4 and 2 zero bytes (compress mode)
                self._zero8 = 0xFF & (val >> 16)
                self._zero4 = 0xFF & (val >> 8)
                self._zero2 = 0xFF & val
            elif key == 0x52:
                self.header["SPIAddr"] = f"{val & 0xFFFFFFFF:08x}"
            elif key == 0x3B:
                # last header line: crc flag and configuration data length
                in_header = False
                self.header["CRCCheck"] = "ON" if 0x01 & (val >> 23) else "OFF"
                self.header["ConfDataLength"] = str(0xFFFF & val)
                self._end_header = line_index
            line_index += 1

    def parse(self) -> None:
        """Parse the file, filling header, bit_data and checksum."""
        self._parse_header()

        out = bytearray()
        for line in self._lines:
            for pos in range(0, len(line), 8):
                value = _byte_at(line, pos)
                out.append(_flip_byte(value) if self._reverse else value)
        self.bit_data = bytes(out)
        self.bit_length = len(self.bit_data) * 8

        if self.idcode == 0:
            _log.warning("IDCODE not found")

        nb_line = _NB_LINES.get(self.idcode)
        padding = 0
        if nb_line is None:
            _log.warning("unknown IDCODE 0x%08x", self.idcode)
            nb_line = 0
        elif self.idcode in _PADDED:
            padding = 4
            if self.compressed:
                padding += 5 * 8

        conf_len = self.header.get("ConfDataLength")
        if conf_len is None:
            raise BitstreamError("configuration data length not found")
        # the real number of lines may be smaller than the documented one
        nb_line = min(nb_line, int(conf_len))

        body = self._lines[self._end_header + 1:]
        body = (body + [""] * nb_line)[:nb_line]

        drop = 6 * 8
        if self.header.get("CRCCheck") == "ON":
            drop += 2 * 8

        payload: list[str] = []
        for line in body:
            if self.compressed:
                parts = []
                for pos in range(0, len(line) - drop, 8):
                    code = _byte_at(line, pos)
                    if code == self._zero8:
                        parts.append("0" * 64)
                    elif code == self._zero4:
                        parts.append("0" * 32)
                    elif code == self._zero2:
                        parts.append("0" * 16)
                    else:
                        parts.append(line[pos:pos + 8])
                chunk = "".join(parts)
            else:
                chunk = line if len(line) < drop else line[:len(line) - drop]
            payload.append(chunk[padding:])

        bits = "".join(payload)
        total = sum(_byte_at(bits, pos, 16) for pos in range(0, len(bits), 16))
        self.checksum = total & 0xFFFF

        if self.verbose:
            print(f"checksum 0x{self.checksum:04x}")