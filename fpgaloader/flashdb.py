"""Database of supported SPI flash chips, indexed by JEDEC id."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional

__all__ = ["TbRegister", "FlashInfo", "FLASHES", "lookup_flash"]


class TbRegister(enum.IntEnum):
    """Register holding the TOP/BOTTOM protection bit."""

    STATR = 0
    FUNCR = 1
    CONFR = 2
    NONER = 99


@dataclass(frozen=True)
class FlashInfo:
    """Capabilities and protection bit layout of one flash chip."""

    manufacturer: str
    model: str
    nr_sector: int
    sector_erase: bool
    """64 KB erase support."""
    subsector_erase: bool
    """4 KB erase support."""
    has_extended: bool
    tb_otp: bool
    """TOP/BOTTOM bit is one-time programmable."""
    tb_offset: int
    tb_register: TbRegister
    bp_len: int
    bp_offset: tuple[int, int, int, int]


_BP3 = (1 << 2, 1 << 3, 1 << 4, 0)
_BP4_5 = (1 << 2, 1 << 3, 1 << 4, 1 << 5)
_BP4_6 = (1 << 2, 1 << 3, 1 << 4, 1 << 6)
_NO_BP = (0, 0, 0, 0)


def _spansion(model, nr_sector, subsector, tb_otp):
    return FlashInfo("spansion", model, nr_sector, True, subsector, True,
                     tb_otp, 1 << 5, TbRegister.CONFR, 3, _BP3)


def _micron(model, nr_sector, bp_len, bp_offset):
    return FlashInfo("micron", model, nr_sector, True, True, True, False,
                     1 << 5, TbRegister.STATR, bp_len, bp_offset)


def _issi(model, nr_sector):
    return FlashInfo("ISSI", model, nr_sector, True, True, False, True,
                     1 << 1, TbRegister.FUNCR, 4, _BP4_5)


def _winbond(model, nr_sector):
    return FlashInfo("Winbond", model, nr_sector, True, True, False, False,
                     1 << 5, TbRegister.STATR, 3, _BP3)


FLASHES: Mapping[int, FlashInfo] = MappingProxyType({
    0x010216: _spansion("S25FL064P / EPCS64", 128, True, False),
    0x010219: _spansion("S25FL256S", 512, False, True),
    0x010220: _spansion("S25FL512S", 1024, False, True),
    0x012018: _spansion("S25FL128S", 256, False, True),
    0x016019: FlashInfo("spansion", "S25FL256L", 512, True, False, True,
                        False, 1 << 6, TbRegister.STATR, 4, _BP4_5),
    0x0020BA16: _micron("N25Q32", 64, 3, _BP3),
    0x0020BA17: _micron("N25Q64", 128, 4, _BP4_6),
    0x0020BA18: _micron("N25Q128", 256, 4, _BP4_6),
    0x0020BA19: _micron("N25Q256", 512, 4, _BP4_6),
    0x0020BB21: _micron("MT25QU01G", 2048, 4, _BP4_6),
    0x0020BB22: _micron("MT25QU02G", 4096, 4, _BP4_6),
    0xBF258D: FlashInfo("microchip", "SST25VF040B", 8, True, True, False,
                        False, 0, TbRegister.NONER, 4, _BP4_5),
    0xBF2642: FlashInfo("microchip", "SST26VF032B", 64, False, True, False,
                        False, 0, TbRegister.NONER, 0, _NO_BP),
    0xBF2643: FlashInfo("microchip", "SST26VF064B", 128, True, True, False,
                        False, 0, TbRegister.NONER, 0, _NO_BP),
    0x9D6016: _issi("IS25LP032", 64),
    0x9D6017: _issi("IS25LP064", 128),
    0x9D6018: _issi("IS25LP128", 256),
    0xEF4015: _winbond("W25Q16", 32),
    0xEF4016: _winbond("W25Q32", 64),
    0xEF4017: _winbond("W25Q64", 128),
    0xEF4018: _winbond("W25Q128", 256),
})


def lookup_flash(jedec_id: int) -> Optional[FlashInfo]:
    """Return the description of the flash with ``jedec_id``, or None."""
    return FLASHES.get(jedec_id)