"""JTAG over the asynchronous/synchronous bit-bang mode of FTDI chips."""

from __future__ import annotations

import logging
from typing import Optional, Union

from .mpsse import BitConfig, BitMode, MpsseEngine, MpsseError, Transport

__all__ = ["FtdiJtagBitbang"]

_log = logging.getLogger(__name__)

BytesLike = Union[bytes, bytearray]

_MAX_PIN = 7  # FT232R RI
_MAX_CLK = 3_000_000
_BUFFER_SIZE = 4096

# FTDI TX FIFO sizes by product id
_RX_SIZES = {0x6001: 256, 0x6015: 512}  # FT232R, FT231X


def _require(data: Optional[BytesLike], length: int, name: str) -> None:
    if data is not None and len(data) < (length + 7) // 8:
        raise ValueError(f"{name} holds fewer than {length} bits")


class FtdiJtagBitbang:
    """Drive a JTAG chain by toggling FTDI pins one sample at a time.

    ``pins`` is an object with ``tms_pin``, ``tck_pin``, ``tdi_pin`` and
    ``tdo_pin`` attributes holding pin numbers 0 to 7.
    """

    def __init__(self, transport: Transport, pins, clk_hz: int,
                 pid: int = 0, verbose: int = 0) -> None:
        for pin in (pins.tck_pin, pins.tms_pin, pins.tdi_pin, pins.tdo_pin):
            if not 0 <= pin <= _MAX_PIN:
                raise ValueError(f"invalid pin ID {pin}")
        self.transport = transport
        self.verbose = verbose
        self._tck = 1 << pins.tck_pin
        self._tms = 1 << pins.tms_pin
        self._tdi = 1 << pins.tdi_pin
        self._tdo = 1 << pins.tdo_pin
        self._curr_tms = 0
        self._bitmode = 0
        self._buffer = bytearray()
        self._rx_size = _RX_SIZES.get(pid, transport.max_packet_size)
        self._buffer_size = _BUFFER_SIZE

        self.engine = MpsseEngine(transport, BitConfig(), clk_hz,
                                  buffer_size=_BUFFER_SIZE, verbose=verbose)
        self.set_clk_freq(clk_hz)
        self.engine.init(1, self._tck | self._tms | self._tdi, BitMode.BITBANG)
        self._set_bitmode(BitMode.BITBANG)

    def __enter__(self) -> "FtdiJtagBitbang":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def buffer_size(self) -> int:
        """Bits that fit in the sample buffer, in bytes (two samples a bit)."""
        return self._buffer_size // 8 // 2

    @property
    def is_full(self) -> bool:
        """True when the sample buffer holds as many bits as it can."""
        return len(self._buffer) == 8 * self.buffer_size

    def close(self) -> None:
        """Reset the pins and release the device."""
        self.engine.close()

    def set_clk_freq(self, clk_hz: int) -> int:
        """Set the bit-bang clock (limited to 3 MHz); return the driver status."""
        real = clk_hz
        if clk_hz > _MAX_CLK:
            _log.warning("Jtag probe limited to 3MHz")
            real = _MAX_CLK
        _log.info("Jtag frequency : requested %dHz -> real %dHz", clk_hz, real)
        return self.transport.set_baudrate(real)

    def _set_bitmode(self, mode: int) -> None:
        if self._bitmode == mode:
            return
        self._bitmode = mode
        self.transport.set_bitmode(self._tck | self._tms | self._tdi, mode)
        self.transport.purge_buffers()

    def _write(self, tdo: Optional[bytearray] = None, byte_offset: int = 0,
               nb_bit: int = 0) -> int:
        """Send the buffered samples; decode ``nb_bit`` TDO bits when reading."""
        if not self._buffer:
            return 0
        reading = tdo is not None
        self._set_bitmode(BitMode.SYNCBB if reading else BitMode.BITBANG)
        num = len(self._buffer)
        written = self.transport.write_data(bytes(self._buffer))
        if written != num:
            raise MpsseError(f"write failed: {written} of {num} bytes sent")
        if reading:
            samples = self.transport.read_data(num)
            if len(samples) != num:
                raise MpsseError(f"read failed: {len(samples)} of {num} bytes")
            # TDO is sampled on the rising edge: keep odd samples only.
            # Bits enter each byte from the MSB, as JTAG is LSB first.
            for offset, i in enumerate(range(num - nb_bit * 2 + 1, num, 2)):
                index = byte_offset + (offset >> 3)
                tdo[index] = ((0x80 if samples[i] & self._tdo else 0x00)
                              | (tdo[index] >> 1))
        self._buffer.clear()
        return written

    def _full(self) -> bool:
        return len(self._buffer) + 2 > self._buffer_size

    def flush(self) -> int:
        """Send the buffered samples; return the number of bytes sent."""
        return self._write()

    def write_tms(self, tms: BytesLike, length: int,
                  flush_buffer: bool = False) -> int:
        """Shift ``length`` TMS bits (LSB first) with TDI high; return ``length``."""
        if length == 0:
            if flush_buffer:
                return self.flush()
            return 0
        _require(tms, length, "tms")
        if self._full():
            self.flush()
        for i in range(length):
            self._curr_tms = self._tms if tms[i >> 3] & (1 << (i & 0x07)) else 0
            val = self._tdi | self._curr_tms
            self._buffer += bytes([val, val | self._tck])
            if self._full():
                self._write()
        if flush_buffer:
            self._write()
        return length

    def write_tdi(self, tdi: Optional[BytesLike], length: int,
                  end: bool = False, read: bool = False) -> bytes:
        """Shift ``length`` TDI bits, LSB first; return TDO bits when ``read``.

        With ``end`` TMS goes high with the last bit. ``tdi`` None shifts zeros.
        """
        if length == 0:
            return b""
        _require(tdi, length, "tdi")
        xfer_size = self._rx_size if read else self._buffer_size
        if length * 2 + 1 < xfer_size:
            chunk = length
        else:
            chunk = ((xfer_size >> 1) // 8) * 8  # two samples per bit

        rx = bytearray((length + 7) // 8)
        target = rx if read else None
        rx_offset = 0

        if self._buffer:
            self.flush()

        pos = 0
        for i in range(length):
            if end and i == length - 1:
                self._curr_tms = self._tms
            val = self._curr_tms
            if tdi is not None and tdi[i >> 3] & (1 << (i & 0x07)):
                val |= self._tdi
            self._buffer += bytes([val, val | self._tck])
            pos += 1
            if pos == chunk:
                pos = 0
                self._write(target, rx_offset, chunk)
                if read:
                    rx_offset += chunk // 8

        if self._buffer:
            num = len(self._buffer)
            self._write(target if num > 1 else None, rx_offset, num // 2)

        return bytes(rx) if read else b""

    def toggle_clk(self, tms: int, tdi: int, clk_len: int) -> int:
        """Generate ``clk_len`` TCK cycles with TMS/TDI held; return ``clk_len``."""
        val = (self._tms if tms else 0) | (self._tdi if tdi else 0)
        for _ in range(clk_len):
            if self._full():
                self._write()
            self._buffer += bytes([val | self._tck, val])
        self._write()
        return clk_len