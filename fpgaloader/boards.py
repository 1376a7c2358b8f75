"""Known development boards with their cable, FPGA part and pin layout."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

__all__ = [
    "Ft232rlPin",
    "CommMode",
    "JtagPins",
    "SpiPins",
    "Board",
    "BOARDS",
    "CABLE_DEFAULT",
    "get_board",
    "board_names",
]


class Ft232rlPin(enum.IntEnum):
    """Bit-bang pin numbers of an FT232R/FT245R style device."""

    TXD = 0
    RXD = 1
    RTS = 2
    CTS = 3
    DTR = 4
    DSR = 5
    DCD = 6
    RI = 7


# MPSSE GPIO bit masks: low byte is DBUS, high byte is CBUS.
DBUS0, DBUS1, DBUS2, DBUS3, DBUS4, DBUS5, DBUS6, DBUS7 = (1 << i for i in range(8))
CBUS0, CBUS1, CBUS2, CBUS3, CBUS4, CBUS5, CBUS6, CBUS7 = (1 << i for i in range(8, 16))


class CommMode(enum.IntFlag):
    """Communication type used to reach the FPGA."""

    JTAG = 1 << 0
    SPI = 1 << 1
    DFU = 1 << 2


@dataclass(frozen=True)
class JtagPins:
    """Pin numbers of the JTAG signals in bit-bang mode."""

    tms: int = 0
    tck: int = 0
    tdi: int = 0
    tdo: int = 0


@dataclass(frozen=True)
class SpiPins:
    """Pin masks of the SPI signals."""

    cs: int = 0
    sck: int = 0
    miso: int = 0
    mosi: int = 0
    holdn: int = 0
    wpn: int = 0


@dataclass(frozen=True)
class Board:
    """A board: its target cable and, optionally, its pin configuration."""

    manufacturer: str
    cable_name: str
    fpga_part: str
    reset_pin: int
    done_pin: int
    oe_pin: int
    mode: CommMode
    jtag_pins: JtagPins = field(default_factory=JtagPins)
    spi_pins: SpiPins = field(default_factory=SpiPins)
    default_freq: int = 0
    """Default clock speed in Hz; 0 means the cable default."""
    vid: int = 0
    pid: int = 0
    altsetting: int = -1


CABLE_DEFAULT = 0


def _mhz(value: int) -> int:
    return value * 1_000_000


def _jtag(fpga_part: str, cable: str, rst: int, done: int, freq: int) -> Board:
    return Board("", cable, fpga_part, rst, done, 0, CommMode.JTAG,
                 default_freq=freq)


def _jtag_bitbang(fpga_part: str, cable: str, rst: int, done: int,
                  tms: int, tck: int, tdi: int, tdo: int, freq: int) -> Board:
    return Board("", cable, fpga_part, rst, done, 0, CommMode.JTAG,
                 jtag_pins=JtagPins(tms, tck, tdi, tdo), default_freq=freq)


def _spi(manufacturer: str, cable: str, rst: int, done: int, oe: int,
         cs: int, sck: int, si: int, so: int, holdn: int, wpn: int,
         freq: int) -> Board:
    return Board(manufacturer, cable, "", rst, done, oe, CommMode.SPI,
                 spi_pins=SpiPins(cs=cs, sck=sck, miso=so, mosi=si,
                                  holdn=holdn, wpn=wpn),
                 default_freq=freq)


def _dfu(fpga_part: str, cable: str, vid: int, pid: int, alt: int) -> Board:
    return Board("", cable, fpga_part, 0, 0, 0, CommMode.DFU,
                 vid=vid, pid=pid, altsetting=alt)


_ENTRIES: list[tuple[str, Board]] = [
    ("ac701", _jtag("xc7a200t2fbg676c", "digilent", 0, 0, CABLE_DEFAULT)),
    ("acornCle215", _jtag("xc7a200tsbg484", "", 0, 0, CABLE_DEFAULT)),
    ("analogMax", _jtag("", "ft2232", 0, 0, CABLE_DEFAULT)),
    ("litex-acorn-baseboard-mini", _jtag("xc7a200tsbg484", "", 0, 0, CABLE_DEFAULT)),
    ("alchitry_au", _jtag("xc7a35tftg256", "ft2232", 0, 0, CABLE_DEFAULT)),
    ("alchitry_au_plus", _jtag("xc7a100tftg256", "ft2232", 0, 0, CABLE_DEFAULT)),
    ("alinx_ax516", _jtag("xc6slx16csg324", "", 0, 0, CABLE_DEFAULT)),
    # kept for backward compatibility; arty_a7_35t is the proper name
    ("arty", _jtag("xc7a35tcsg324", "digilent", 0, 0, _mhz(10))),
    ("arty_a7_35t", _jtag("xc7a35tcsg324", "digilent", 0, 0, _mhz(10))),
    ("arty_a7_100t", _jtag("xc7a100tcsg324", "digilent", 0, 0, _mhz(10))),
    ("arty_s7_25", _jtag("xc7s25csga324", "digilent", 0, 0, CABLE_DEFAULT)),
    ("arty_s7_50", _jtag("xc7s50csga324", "digilent", 0, 0, CABLE_DEFAULT)),
    ("arty_z7_10", _jtag("xc7z010clg400", "digilent", 0, 0, CABLE_DEFAULT)),
    ("arty_z7_20", _jtag("xc7z020clg400", "digilent", 0, 0, CABLE_DEFAULT)),
    ("axu2cga", _jtag("xczu2cg", "", 0, 0, CABLE_DEFAULT)),
    ("basys3", _jtag("xc7a35tcpg236", "digilent", 0, 0, CABLE_DEFAULT)),
    ("c5g", _jtag("", "usb-blaster", 0, 0, CABLE_DEFAULT)),
    ("cmod_s7", _jtag("xc7s25csga225", "digilent", 0, 0, CABLE_DEFAULT)),
    ("cmoda7_35t", _jtag("xc7a35tcpg236", "digilent", 0, 0, CABLE_DEFAULT)),
    ("colorlight", _jtag("", "", 0, 0, CABLE_DEFAULT)),
    ("colorlight-i5", _jtag("", "cmsisdap", 0, 0, CABLE_DEFAULT)),
    ("colorlight-i9", _jtag("", "cmsisdap", 0, 0, CABLE_DEFAULT)),
    ("crosslinknx_evn", _jtag("", "ft2232", 0, 0, CABLE_DEFAULT)),
    ("cyc1000", _jtag("10cl025256", "ft2232", 0, 0, CABLE_DEFAULT)),
    ("c10lp-refkit", _jtag("10cl055484", "ft2232", 0, 0, CABLE_DEFAULT)),
    ("de0", _jtag("", "usb-blaster", 0, 0, CABLE_DEFAULT)),
    ("de0nano", _jtag("ep4ce2217", "usb-blaster", 0, 0, CABLE_DEFAULT)),
    ("de0nanoSoc", _jtag("", "usb-blasterII", 0, 0, CABLE_DEFAULT)),
    ("de10lite", _jtag("", "usb-blaster", 0, 0, CABLE_DEFAULT)),
    ("de10nano", _jtag("", "usb-blasterII", 0, 0, CABLE_DEFAULT)),
    ("de1Soc", _jtag("5CSEMA5", "usb-blasterII", 0, 0, CABLE_DEFAULT)),
    ("deca", _jtag("10M50DA", "usb-blasterII", 0, 0, CABLE_DEFAULT)),
    ("ecp5_evn", _jtag("", "ft2232", 0, 0, CABLE_DEFAULT)),
    ("ecpix5", _jtag("", "ecpix5-debug", 0, 0, CABLE_DEFAULT)),
    ("fireant", _spi("efinix", "ft232",
                     DBUS4, DBUS5, 0, DBUS3, DBUS0, DBUS1, DBUS2, DBUS6, 0,
                     CABLE_DEFAULT)),
    ("fomu", _dfu("", "dfu", 0x1209, 0x5BF0, 0)),
    ("ft2232_spi", _spi("none", "ft2232",
                        DBUS7, DBUS6, 0, DBUS4, DBUS0, DBUS1, DBUS2, 0, 0,
                        CABLE_DEFAULT)),
    ("gatemate_pgm_spi", _spi("colognechip", "gatemate_pgm",
                              DBUS4, DBUS5, CBUS0, DBUS3, DBUS0, DBUS1, DBUS2,
                              0, 0, CABLE_DEFAULT)),
    ("gatemate_evb_jtag", _jtag("", "gatemate_evb_jtag", 0, 0, CABLE_DEFAULT)),
    ("gatemate_evb_spi", _spi("colognechip", "gatemate_evb_spi",
                              DBUS4, DBUS5, CBUS0, DBUS3, DBUS0, DBUS1, DBUS2,
                              0, 0, CABLE_DEFAULT)),
    ("genesys2", _jtag("xc7k325tffg900", "digilent_b", 0, 0, CABLE_DEFAULT)),
    # most ice40 boards share this pinout
    ("ice40_generic", _spi("lattice", "ft2232",
                           DBUS7, DBUS6, 0, DBUS4, DBUS0, DBUS1, DBUS2, 0, 0,
                           CABLE_DEFAULT)),
    ("icebreaker-bitsy", _dfu("", "dfu", 0x1D50, 0x6146, 0)),
    ("kc705", _jtag("", "digilent", 0, 0, CABLE_DEFAULT)),
    ("LD-SCHOKO", _jtag("LFE5U-45F-6CABGA256", "", 0, 0, _mhz(6))),
    ("LD-SCHOKO", _dfu("", "dfu", 0x16D0, 0x116D, 0)),
    ("LD-KONFEKT", _jtag("LFE5U-12F-6BG256C", "", 0, 0, _mhz(6))),
    ("LD-KONFEKT", _dfu("", "dfu", 0x16D0, 0x116D, 0)),
    ("licheeTang", _jtag("", "anlogicCable", 0, 0, CABLE_DEFAULT)),
    # kept for backward compatibility; tec0117 is the proper name
    ("littleBee", _jtag("", "ft2232", 0, 0, CABLE_DEFAULT)),
    ("machXO2EVN", _jtag("", "ft2232", 0, 0, CABLE_DEFAULT)),
    ("machXO3SK", _jtag("", "ft2232", 0, 0, CABLE_DEFAULT)),
    ("machXO3EVN", _jtag("", "ft2232", 0, 0, CABLE_DEFAULT)),
    ("minispartan6", _jtag("", "ft2232", 0, 0, CABLE_DEFAULT)),
    ("nexys_a7_50", _jtag("xc7a50tcsg324", "digilent", 0, 0, CABLE_DEFAULT)),
    ("nexys_a7_100", _jtag("xc7a100tcsg324", "digilent", 0, 0, CABLE_DEFAULT)),
    ("nexysVideo", _jtag("xc7a200tsbg484", "digilent_b", 0, 0, CABLE_DEFAULT)),
    ("orangeCrab", _dfu("", "dfu", 0x1209, 0x5AF0, 0)),
    ("orbtrace_dfu", _dfu("", "dfu", 0x1209, 0x3442, 1)),
    ("papilio_one", _jtag("xc3s500evq100", "papilio", 0, 0, CABLE_DEFAULT)),
    ("pipistrello", _jtag("xc6slx45csg324", "ft2232", 0, 0, CABLE_DEFAULT)),
    ("pynq_z2", _jtag("xc7z020clg400", "ft2232", 0, 0, CABLE_DEFAULT)),
    ("qmtechCycloneIV", _jtag("ep4ce1523", "", 0, 0, CABLE_DEFAULT)),
    ("qmtechCycloneV", _jtag("5ce223", "", 0, 0, CABLE_DEFAULT)),
    ("qmtechCycloneV_5ce523", _jtag("5ce523", "", 0, 0, CABLE_DEFAULT)),
    ("qmtechKintex7", _jtag("xc7k325tffg676", "", 0, 0, CABLE_DEFAULT)),
    ("runber", _jtag("", "ft232", 0, 0, CABLE_DEFAULT)),
    ("spartanEdgeAccelBoard", _jtag("", "", 0, 0, CABLE_DEFAULT)),
    ("spec150", _jtag("xc6slx150tfgg484", "", 0, 0, CABLE_DEFAULT)),
    ("stlv7325", _jtag("xc7k325tffg676", "ft4232", 0, 0, _mhz(3))),
    ("tangnano", _jtag("", "ch552_jtag", 0, 0, CABLE_DEFAULT)),
    ("tangnano1k", _jtag("", "ft2232", 0, 0, CABLE_DEFAULT)),
    ("tangnano4k", _jtag("", "ft2232", 0, 0, CABLE_DEFAULT)),
    ("tangnano9k", _jtag("", "ft2232", 0, 0, CABLE_DEFAULT)),
    ("tangprimer20k", _jtag("", "ft2232", 0, 0, CABLE_DEFAULT)),
    ("tec0117", _jtag("", "ft2232", 0, 0, CABLE_DEFAULT)),
    ("titanium_ti60_f225", _spi("efinix", "efinix_spi_ft4232",
                                DBUS4, DBUS5, DBUS7, DBUS3, DBUS0, DBUS1,
                                DBUS2, DBUS6, 0, CABLE_DEFAULT)),
    ("titanium_ti60_f225_jtag", _jtag("", "efinix_jtag_ft4232", 0, 0, CABLE_DEFAULT)),
    ("trion_t120_bga576", _spi("efinix", "efinix_spi_ft2232",
                               DBUS4, DBUS5, DBUS7, DBUS3, DBUS0, DBUS1,
                               DBUS2, DBUS6, 0, CABLE_DEFAULT)),
    ("trion_t120_bga576_jtag", _jtag("", "ft2232_b", 0, 0, CABLE_DEFAULT)),
    ("ulx2s", _jtag_bitbang("", "ft232RL", 0, 0,
                            Ft232rlPin.RI, Ft232rlPin.DSR, Ft232rlPin.CTS,
                            Ft232rlPin.DCD, CABLE_DEFAULT)),
    ("ulx3s", _jtag_bitbang("", "ft231X", 0, 0,
                            Ft232rlPin.DCD, Ft232rlPin.DSR, Ft232rlPin.RI,
                            Ft232rlPin.CTS, CABLE_DEFAULT)),
    ("ulx3s_dfu", _dfu("", "dfu", 0x1D50, 0x614B, 0)),
    ("usrpx300", _jtag("xc7k325tffg900", "digilent", 0, 0, _mhz(15))),
    ("usrpx310", _jtag("xc7k410tffg900", "digilent", 0, 0, _mhz(15))),
    ("vcu118", _jtag("xcvu9p-flga2104", "jtag-smt2-nc", 0, 0, CABLE_DEFAULT)),
    ("vcu128", _jtag("xcvu37p-fsvh2892", "ft4232", 0, 0, CABLE_DEFAULT)),
    ("xyloni_jtag", _jtag("", "efinix_jtag_ft4232", 0, 0, CABLE_DEFAULT)),
    ("xyloni_spi", _spi("efinix", "efinix_spi_ft4232",
                        DBUS4, DBUS5, DBUS7, DBUS3, DBUS0, DBUS1, DBUS2,
                        DBUS6, 0, CABLE_DEFAULT)),
    ("xtrx", _jtag("xc7a50tcpg236", "", 0, 0, CABLE_DEFAULT)),
    ("zc702", _jtag("xc7z020clg484", "digilent", 0, 0, CABLE_DEFAULT)),
    ("zc706", _jtag("xc7z045ffg900", "jtag-smt2-nc", 0, 0, CABLE_DEFAULT)),
    ("zcu102", _jtag("xczu9egffvb1156", "jtag-smt2-nc", 0, 0, CABLE_DEFAULT)),
    ("zcu106", _jtag("xczu7evffvc1156", "jtag-smt2-nc", 0, 0, CABLE_DEFAULT)),
    ("zedboard", _jtag("xc7z020clg484", "digilent_hs2", 0, 0, CABLE_DEFAULT)),
    ("zybo_z7_10", _jtag("xc7z010clg400", "digilent", 0, 0, CABLE_DEFAULT)),
    ("zybo_z7_20", _jtag("xc7z020clg400", "digilent", 0, 0, CABLE_DEFAULT)),
]


def _build(entries: list[tuple[str, Board]]) -> dict[str, Board]:
    # The first entry for a name wins; later duplicates are ignored.
    table: dict[str, Board] = {}
    for name, board in entries:
        table.setdefault(name, board)
    return dict(sorted(table.items()))


BOARDS: Mapping[str, Board] = MappingProxyType(_build(_ENTRIES))


def get_board(name: str) -> Board:
    """Return the board registered under ``name``; raise KeyError if unknown."""
    try:
        return BOARDS[name]
    except KeyError:
        raise KeyError(f"unknown board: {name!r}") from None


def board_names() -> list[str]:
    """Return all board names in sorted order."""
    return list(BOARDS)