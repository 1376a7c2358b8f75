"""Parser for MachXO3D ``.fea`` files (feature row and FEAbits)."""

from __future__ import annotations

from typing import Union

from .bitstream import BitstreamError

__all__ = ["FeaParser"]

_FEA_I2C_DG_FIL_EN = 1 << 0
_FEA_MY_ASSP_EN = 1 << 4
_FEA_PROG_PERSIST = 1 << 5
_FEA_INITN_PERSIST = 1 << 6
_FEA_DONE_PERSIST = 1 << 7
_FEA_JTAG_PERSIST = 1 << 8
_FEA_SSPI_PERSIST = 1 << 9
_FEA_I2C_PERSIST = 1 << 10
_FEA_MSPI_PERSIST = 1 << 11
_FEA_I2C_DG_RANGE_SEL = 1 << 15
_FEA_VERSION_RB_PROT = 1 << 16

_FEATURE_SFDP_CONT_FAIL = 1 << 14
_FEATURE_SFDP_EN = 1 << 15
_FEATURE_BULK_ERASE_DISABLE = 1 << 16
_FEATURE_32BIT_SPIM = 1 << 17
_FEATURE_MCLK_BYPASS = 1 << 18
_FEATURE_LSBF = 1 << 19
_FEATURE_RX_EDGE = 1 << 20
_FEATURE_TX_EDGE = 1 << 21
_FEATURE_CPOL = 1 << 22
_FEATURE_CPHA = 1 << 23
_FEATURE_EBR_ENABLE = 1 << 26
_FEATURE_SSPI_AUTO = 1 << 28
_FEATURE_CPU = 1 << 29

_BOOT_INTERNAL = {
    0: "Dual Boot, CFG0 - CFG1",
    1: "Dual Boot, CFG1 - CFG0",
    2: "Dual Boot, No Boot",
    3: "Single Boot, CFG0",
    4: "Single Boot, CFG1",
    5: "Dual Boot, Boot from former bitstream first",
    6: "Dual Boot, No Boot",
    7: "Dual Boot, Boot from latter bitstream first",
}

_BOOT_EXTERNAL = {
    0: "Dual Boot, CFG0 - Ext",
    1: "Single Boot, Ext",
    2: "Dual Boot, Ext - CFG0",
    3: "Dual Boot, Ext - Ext",
    4: "Dual Boot, CFG1 - Ext",
    5: "Single Boot, Ext",
    6: "Dual Boot, Ext - CFG1",
    7: "Dual Boot, Ext - Ext",
}


def _as_text(data: Union[str, bytes]) -> str:
    if isinstance(data, (bytes, bytearray)):
        return bytes(data).decode("latin-1")
    return data


def _binary(value: str) -> list[int]:
    if any(char not in "01" for char in value):
        raise BitstreamError(f"invalid binary field: {value!r}")
    return [int(char) for char in value]


class FeaParser:
    """Read the 96-bit feature row and the 32-bit FEAbits of a ``.fea`` file."""

    def __init__(self, data: Union[str, bytes], verbose: bool = False) -> None:
        self._raw = _as_text(data)
        self.verbose = verbose
        self.features_row: tuple[int, int, int] = (0, 0, 0)
        self.feabits = 0
        self.has_feabits = False

    def _read_lines(self) -> list[str]:
        lines = []
        for line in self._raw.split("\n"):
            if not line:
                break
            if line.endswith("\r"):
                line = line[:-1]
            if line[:1] in ("0", "1"):
                lines.append(line)
        return lines

    def parse(self) -> None:
        """Parse the file content; a file with no data lines leaves no FEAbits."""
        lines = self._read_lines()
        if not lines:
            return
        if len(lines) < 2:
            raise BitstreamError("FEAbits line missing")

        row_bits = _binary(lines[0])
        if len(row_bits) > 96:
            raise BitstreamError("feature row longer than 96 bits")
        words = [0, 0, 0]
        for i, bit in enumerate(row_bits):
            words[2 - i // 32] |= bit << (31 - i % 32)
        self.features_row = (words[0], words[1], words[2])

        feabits = 0
        fea_bits = _binary(lines[1])
        for i, bit in enumerate(fea_bits):
            feabits |= bit << (len(fea_bits) - i - 1)
        self.feabits = feabits & 0xFFFFFFFF
        self.has_feabits = True

    def describe(self) -> str:
        """Return a readable description of the feature row and FEAbits."""
        if not self.has_feabits:
            return ""
        row = self.features_row
        fea = self.feabits

        def flag(value: int, mask: int, on: str = "Enabled",
                 off: str = "Disabled") -> str:
            return on if value & mask else off

        out = ["\nFeature Row: [0x"]
        out.extend(f"{row[i]:08x}" for i in (2, 1, 0))
        out.append("]\n")
        r2 = row[2]
        out += [
            f"\tCore Clock Select     : 0x{(r2 >> 30) & 0x03:x}\n",
            f"\tCPU                   : {1 if r2 & _FEATURE_CPU else 0}\n",
            f"\tSSPI Auto             : {flag(r2, _FEATURE_SSPI_AUTO)}\n",
            f"\tReserved Zero (1)     : 0x{(r2 >> 27) & 0x01:x}\n",
            f"\tEBR Enable            : {flag(r2, _FEATURE_EBR_ENABLE, 'Yes', 'No')}\n",
            f"\tHSE Clock Select      : 0x{(r2 >> 24) & 0x03:x}\n",
            f"\tCPHA                  : {flag(r2, _FEATURE_CPHA)}\n",
            f"\tCPOL                  : {flag(r2, _FEATURE_CPOL)}\n",
            f"\tTx Edge               : {flag(r2, _FEATURE_TX_EDGE)}\n",
            f"\tRx Edge               : {flag(r2, _FEATURE_RX_EDGE)}\n",
            f"\tLSBF                  : {flag(r2, _FEATURE_LSBF)}\n",
            f"\tMClock Bypass         : {flag(r2, _FEATURE_MCLK_BYPASS)}\n",
            f"\t32-bit SPIM           : {flag(r2, _FEATURE_32BIT_SPIM)}\n",
            f"\tBulk Erase Disable    : {flag(r2, _FEATURE_BULK_ERASE_DISABLE, 'Yes', 'No')}\n",
            f"\tSFDP Enable           : {flag(r2, _FEATURE_SFDP_EN, 'Yes', 'No')}\n",
            f"\tSFDP Continue on Fail : {flag(r2, _FEATURE_SFDP_CONT_FAIL, 'Yes', 'No')}\n",
            f"\tReserved Zero (2)     : 0x{(r2 >> 12) & 0x03:x}\n",
            f"\tSlave Idle Timer Count: {(r2 >> 8) & 0x0F}\n",
            f"\tMaster Timer Count    : {(r2 >> 4) & 0x0F}\n",
            f"\tMaster Retry Count    : {(r2 >> 2) & 0x03}\n",
            f"\tReserved Zero (2)     : 0x{r2 & 0x03:x}\n",
            f"\tDual Boot Address     : 0x{(row[1] >> 16) & 0xFFFF:x}\n",
            f"\tI2C Slave Address     : 0x{(row[1] >> 8) & 0xFF:x}\n",
            f"\tCustom Trace ID       : 0x{row[1] & 0xFF:x}\n",
            f"\tCustom ID Code        : 0x{row[0]:x}\n",
            f"\nFEAbits: [0x{fea:08x}]\n",
            f"\tReserved Zero (16)\t: 0x{(fea >> 17) & 0xFFFF:x}\n",
            f"\tRollback Protection   : {flag(fea, _FEA_VERSION_RB_PROT)}\n",
            "\tI2C Deglitch Range\t: "
            + flag(fea, _FEA_I2C_DG_RANGE_SEL, "(1) 16 to 50 ns", "(0) 8 to 25 ns")
            + "\n",
        ]
        boot_mode = (fea >> 12) & 0x07
        table = _BOOT_EXTERNAL if fea & _FEA_MSPI_PERSIST else _BOOT_INTERNAL
        out.append("\tBoot Mode             : "
                   + table.get(boot_mode, "Unknown boot sequence selection")
                   + "\n")
        out += [
            f"\tMSPI Enable          : {flag(fea, _FEA_MSPI_PERSIST, 'Yes', 'No')}\n",
            f"\tI2C Disable          : {flag(fea, _FEA_I2C_PERSIST, 'Yes', 'No')}\n",
            f"\tSSPI Disable         : {flag(fea, _FEA_SSPI_PERSIST, 'Yes', 'No')}\n",
            f"\tJTAG Disable         : {flag(fea, _FEA_JTAG_PERSIST, 'Yes', 'No')}\n",
            f"\tDONE Enable          : {flag(fea, _FEA_DONE_PERSIST, 'Yes', 'No')}\n",
            f"\tINIT Enable          : {flag(fea, _FEA_INITN_PERSIST, 'Yes', 'No')}\n",
            f"\tPROGRAM Disable      : {flag(fea, _FEA_PROG_PERSIST, 'Yes', 'No')}\n",
            f"\tCustom ID Enable     : {flag(fea, _FEA_MY_ASSP_EN, 'Yes', 'No')}\n",
        ]
        flash_prot = (fea >> 1) & 0x07
        out.append("\tFlash Protection     : ")
        if flash_prot == 0:
            out.append("None\n")
        else:
            if flash_prot & 0x04:
                out.append("CFG0 & CFG1 ")
            if flash_prot & 0x02:
                out.append("Feature, Security Keys ")
            if flash_prot & 0x01:
                out.append("All UFMs")
            out.append("\n")
        out.append(f"\tI2C Deglitch Filter   : {flag(fea, _FEA_I2C_DG_FIL_EN)}\n")
        return "".join(out)