"""Parser for JEDEC (``.jed``) fuse map files."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional, Union

from .bitstream import BitstreamError, reverse_byte

__all__ = ["JedSection", "JedParser"]

_STX = "\x02"
_ETX = "\x03"

_INT_RE = re.compile(r"\s*([+-]?\d+)")
_HEX_RE = re.compile(r"\s*([+-]?)(?:0[xX])?([0-9a-fA-F]+)")

_BOOT_MODES = {
    0: "Single Boot from Configuration Flash",
    1: "Dual Boot from Configuration Flash then External if there is a failure",
    3: "Single Boot from External Flash",
}


@dataclass
class JedSection:
    """Fuse data of one ``L`` field, with the note that preceded it."""

    offset: int
    data: list[bytes] = field(default_factory=list)
    length: int = 0
    note: str = ""


def _as_text(data: Union[str, bytes]) -> str:
    if isinstance(data, (bytes, bytearray)):
        return bytes(data).decode("latin-1")
    return data


def _char(text: str, index: int) -> str:
    return text[index] if index < len(text) else "\0"


def _scan_int(text: str) -> Optional[int]:
    match = _INT_RE.match(text)
    return int(match.group(1)) if match else None


def _scan_hex(text: str) -> Optional[int]:
    match = _HEX_RE.match(text)
    if not match:
        return None
    value = int(match.group(2), 16)
    return -value if match.group(1) == "-" else value


def _bit(char: str) -> int:
    if char not in "01":
        raise BitstreamError(f"invalid binary digit: {char!r}")
    return int(char)


def _lsb_first_byte(bits: str) -> int:
    return sum(1 << i for i, char in enumerate(bits[:8]) if char == "1")


class _LineReader:
    def __init__(self, text: str) -> None:
        parts = text.split("\n")
        if parts and parts[-1] == "":
            parts.pop()
        self._lines = parts
        self._pos = 0

    @property
    def exhausted(self) -> bool:
        return self._pos >= len(self._lines)

    def readline(self) -> str:
        if self.exhausted:
            return ""
        line = self._lines[self._pos]
        self._pos += 1
        return line.removesuffix("\r")


class JedParser:
    """Read a JEDEC fuse file: header fields, fuse sections and checksum."""

    def __init__(self, data: Union[str, bytes], verbose: bool = False) -> None:
        self._raw = _as_text(data)
        self.verbose = verbose
        self._reset()

    def _reset(self) -> None:
        self.sections: list[JedSection] = []
        self.fuse_count = 0
        self.pin_count = 0
        self.max_vect_test = 0
        self.features_row = 0
        self.feabits = 0
        self.has_feabits = False
        self.checksum = 0
        self.computed_checksum = 0
        self.user_code = 0
        self.security_settings = 0
        self.default_fuse_state = 0
        self.default_test_condition = 0
        self.arch_code = 0
        self.pinout_code = 0
        self._fuses: list[str] = []

    @property
    def fuselist(self) -> str:
        """All fuse bits, as '0'/'1' characters, in file order."""
        return "".join(self._fuses)

    @staticmethod
    def _read_field(reader: _LineReader) -> list[str]:
        # consecutive lines up to the one ending with '*' (or a blank line)
        lines: list[str] = []
        while True:
            line = reader.readline()
            if not line:
                break
            if line.endswith("*"):
                lines.append(line[:-1])
                break
            lines.append(line)
        return lines

    def _add_block(self, section: JedSection, bits: str) -> None:
        self._fuses.append(bits)
        section.data.append(bytes(_lsb_first_byte(bits[i:i + 8])
                                  for i in range(0, len(bits), 8)))
        section.length += len(bits)

    def _add_tokens(self, section: JedSection, tokens: list[str]) -> None:
        out = bytearray()
        for token in tokens:
            self._fuses.append(token)
            out.append(_lsb_first_byte(token))
            section.length += len(token)
        section.data.append(bytes(out))

    def _parse_e_field(self, lines: list[str]) -> None:
        if len(lines) < 2:
            raise BitstreamError("E field needs a feature row and FEAbits")
        row = 0
        for i, char in enumerate(lines[0][1:]):
            row |= _bit(char) << i
        self.features_row = row & ((1 << 64) - 1)
        feabits = 0
        for i, char in enumerate(lines[1]):
            feabits |= _bit(char) << i
        self.feabits = feabits & 0xFFFF
        self.has_feabits = True

    def _parse_l_field(self, lines: list[str], note: str) -> None:
        offset = _scan_int(lines[0][1:])
        if offset is None:
            raise BitstreamError(f"invalid fuse offset: {lines[0]!r}")
        section = JedSection(offset, note=note)
        if len(lines) > 1:
            for line in lines[1:]:
                if line:
                    self._add_block(section, line)
        else:
            self._add_tokens(section, lines[0].split()[1:])
        self.sections.append(section)

    def _parse_user_code(self, line: str) -> None:
        kind = _char(line, 1)
        if kind == "H":
            value = _scan_hex(line[2:])
            if value is not None:
                self.user_code = value & 0xFFFFFFFF
        elif kind == "A":
            value = _scan_int(line[2:])
            if value is not None:
                self.user_code = value & 0xFFFFFFFF
        else:
            code = self.user_code
            for char in line[1:]:
                code = ((code << 1) | _bit(char)) & 0xFFFFFFFF
            self.user_code = code

    def parse(self) -> None:
        """Parse the file; raise BitstreamError on malformed or inconsistent data."""
        self._reset()

        # anything before STX is free text
        stx = self._raw.find(_STX)
        if stx < 0:
            raise BitstreamError("STX not found: wrong file")
        rest = self._raw[stx + 1:]
        if rest.startswith("*"):
            newline = rest.find("\n")
            rest = "" if newline < 0 else rest[newline + 1:]

        reader = _LineReader(rest)
        previous_note = ""
        while True:
            lines = self._read_field(reader)
            if not lines:
                if reader.exhausted:
                    break
                continue
            first = lines[0]
            instr = _char(first, 0)

            if instr == _ETX:
                if self.verbose:
                    print("end")
                break
            if instr == "N":
                previous_note = first[first.find(" ") + 1:]
            elif instr == "Q":
                count = _scan_int(first[2:])
                qualifier = _char(first, 1)
                if qualifier not in ("F", "P", "V"):
                    raise BitstreamError(f"unknown qualifier for 'Q': {first!r}")
                if count is None:
                    raise BitstreamError(f"invalid count: {first!r}")
                if qualifier == "F":
                    self.fuse_count = count
                elif qualifier == "P":
                    self.pin_count = count
                else:
                    self.max_vect_test = count
            elif instr == "G":
                self.security_settings = (ord(_char(first, 1)) - ord("0")) & 0xFF
            elif instr == "F":
                self.default_fuse_state = (ord(_char(first, 1)) - ord("0")) & 0xFF
            elif instr == "J":
                arch = _scan_int(first[1:])
                if arch is not None:
                    self.arch_code = arch
                pinout = _scan_int(first[3:])
                if pinout is not None:
                    self.pinout_code = pinout
            elif instr == "C":
                value = _scan_hex(first[1:])
                if value is not None:
                    self.checksum = value & 0xFFFF
            elif instr == "E":
                self._parse_e_field(lines)
            elif instr == "L":
                self._parse_l_field(lines, previous_note)
            elif instr == "U":
                self._parse_user_code(first)
            elif instr == "X":
                value = _scan_int(first[1:])
                if value is not None:
                    self.default_test_condition = value
            else:
                raise BitstreamError(f"unknown field: {first!r}")

        size = sum(section.length for section in self.sections)

        fuses = self.fuselist
        if len(fuses) % 8:
            fuses += "0" * (8 - len(fuses) % 8)
        total = 0
        for pos in range(0, len(fuses), 8):
            try:
                total += reverse_byte(int(fuses[pos:pos + 8], 2))
            except ValueError:
                raise BitstreamError("invalid fuse data") from None
        self.computed_checksum = total & 0xFFFF

        if self.verbose:
            print(f"theorical checksum {self.checksum:x} -> "
                  f"{self.computed_checksum:x}")
        if self.checksum != self.computed_checksum:
            raise BitstreamError("wrong checksum")

        if self.verbose and self.sections:
            print(f"array size {len(self.sections[0].data)}")

        if self.fuse_count != size:
            raise BitstreamError("not all fuses are programmed")

    def describe(self) -> str:
        """Return a readable description of the header and fuse sections."""
        out: list[str] = []
        if self.has_feabits:
            fea = self.feabits

            def bit(shift: int) -> int:
                return (fea >> shift) & 0x01

            out.append("feabits :\n")
            out.append(f"{fea:04x} <-> {fea}\n")
            out.append("\tBoot Mode       : "
                       + _BOOT_MODES.get((fea >> 11) & 0x07, "Error") + "\n")
            out.append(f"\tMaster Mode SPI : {'enable' if bit(11) else 'disable'}\n")
            out.append(f"\tI2c port        : {'disable' if bit(10) else 'enable'}\n")
            out.append(f"\tSlave SPI port  : {'disable' if bit(9) else 'enable'}\n")
            out.append(f"\tJTAG port       : {'disable' if bit(8) else 'enable'}\n")
            out.append(f"\tDONE            : {'enable' if bit(7) else 'disable'}\n")
            out.append(f"\tINITN           : {'enable' if bit(6) else 'disable'}\n")
            out.append(f"\tPROGRAMN        : {'disable' if bit(5) else 'enable'}\n")
            out.append(f"\tMy_ASSP         : {'enable' if bit(4) else 'disable'}\n")

        out.append(f"Pin Count  : {self.pin_count}\n")
        out.append(f"Fuse Count : {self.fuse_count}\n")

        for index, section in enumerate(self.sections):
            hex_data = "".join(chunk.hex() for chunk in section.data)
            out.append(f"area[{index}] {section.offset:4d} {section.length:4d} "
                       f"{len(section.data)} {hex_data} {section.note}\n")
            if section.offset == 2656:
                break
        return "".join(out)