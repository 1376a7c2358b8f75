"""JTAG access through the MPSSE engine of an FTDI device."""

from __future__ import annotations

import logging
from typing import Optional, Union

from .mpsse import (
    LOOPBACK_END,
    LOOPBACK_START,
    MPSSE_BITMODE,
    MPSSE_DO_READ,
    MPSSE_DO_WRITE,
    MPSSE_LSB,
    MPSSE_READ_NEG,
    MPSSE_WRITE_NEG,
    MPSSE_WRITE_TMS,
    SET_BITS_HIGH,
    SET_BITS_LOW,
    BitConfig,
    BitMode,
    ChipType,
    MpsseEngine,
    Transport,
)

__all__ = ["FtdiJtagMpsse"]

_log = logging.getLogger(__name__)

BytesLike = Union[bytes, bytearray]

# chips able to generate clock cycles without data transfer
_CLOCK_ONLY_CHIPS = (ChipType.FT2232H, ChipType.FT4232H, ChipType.FT232H)

_CLK_BYTES = 0x8F
_CLK_BITS = 0x8E

# writeTMSTDI accumulation modes
_MODE_NONE = 0
_MODE_TDI = 1
_MODE_TMS = 2

_TDI_BUF_BYTES = 1024


def _bit(data: BytesLike, index: int) -> int:
    return (data[index >> 3] >> (index & 0x07)) & 0x01


def _set_bit(data: bytearray, index: int, value: int) -> None:
    mask = 1 << (index & 0x07)
    if value:
        data[index >> 3] |= mask
    else:
        data[index >> 3] &= ~mask & 0xFF


def _require(data: Optional[BytesLike], length: int, name: str) -> None:
    if data is not None and len(data) < (length + 7) // 8:
        raise ValueError(f"{name} holds fewer than {length} bits")


class FtdiJtagMpsse:
    """Drive TMS, TDI and TDO of a JTAG chain with MPSSE commands."""

    def __init__(self, transport: Transport, config: BitConfig, clk_hz: int,
                 invert_read_edge: bool = False, product: Optional[str] = None,
                 verbose: int = 0) -> None:
        self.engine = MpsseEngine(transport, config, clk_hz, verbose=verbose)
        self.verbose = verbose > 2
        self.product = transport.product if product is None else product
        self._invert_read_edge = invert_read_edge
        self._write_mode = MPSSE_WRITE_NEG  # always write on falling edge
        self._read_mode = 0
        self._tdo_pos = 0
        self._tms_tmp = 0
        # the SiPeed tangNano adapter answers every write
        self._ch552_workaround = self.product.startswith("Sipeed-Debug")

        self.engine.init(5, 0xFB, BitMode.MPSSE)
        self._config_edge()
        low = self.engine.config.bit_low_val
        self._curr_tms = (low >> 3) & 0x01
        self._curr_tdi = (low >> 1) & 0x01

    def __enter__(self) -> "FtdiJtagMpsse":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def clk_hz(self) -> int:
        """Current TCK frequency in Hz."""
        return self.engine.clk_hz

    @property
    def buffer_size(self) -> int:
        """Room for data in one command, in bytes."""
        return self.engine.buffer_size - 3

    @property
    def is_full(self) -> bool:
        """The command buffer is never reported as full."""
        return False

    @property
    def read_edge_negative(self) -> bool:
        """True when TDO is sampled on the falling edge."""
        return self._read_mode == MPSSE_READ_NEG

    def _config_edge(self) -> None:
        # at high speed digilent cables need opposite edges
        if self._invert_read_edge or (
                self.engine.clk_hz >= 15_000_000
                and self.product.startswith("Digilent USB Device")):
            self._read_mode = MPSSE_READ_NEG
        else:
            self._read_mode = 0

    def _drain(self, length: int) -> None:
        self.engine.transport.read_data(length)

    def set_clk_freq(self, clk_hz: int) -> int:
        """Set the TCK frequency; return the real frequency."""
        real = self.engine.set_clk_freq(clk_hz)
        self._config_edge()
        return real

    def flush(self) -> int:
        """Send buffered commands; return the number of bytes sent."""
        return self.engine.write()

    def close(self) -> None:
        """Wait until every command is shifted out, then release the device."""
        # loopback: write something and wait until it comes back
        self.engine.store([
            SET_BITS_LOW, 0xFF, 0x00,
            SET_BITS_HIGH, 0xFF, 0x00,
            LOOPBACK_START,
            MPSSE_DO_READ | self._read_mode | MPSSE_DO_WRITE
            | self._write_mode | MPSSE_LSB,
            0x04, 0x00,
            0xAA, 0x55, 0x00, 0xFF, 0xAA,
            LOOPBACK_END,
        ])
        received = self.engine.read(5)
        if len(received) != 5:
            _log.error("Loopback failed, expect problems on later runs %d",
                       len(received))
        self.engine.close()

    def write_tms(self, tms: BytesLike, length: int,
                  flush_buffer: bool = False) -> int:
        """Shift ``length`` TMS bits (LSB first); return ``length``."""
        if length == 0:
            return 0
        _require(tms, length, "tms")
        engine = self.engine
        cmd = MPSSE_WRITE_TMS | MPSSE_LSB | MPSSE_BITMODE | self._write_mode
        commands_per_packet = engine.buffer_size // 3
        pending_commands = 0
        offset = 0
        remaining = length
        while remaining > 0:
            count = min(6, remaining)
            value = 0x80
            for i in range(count):
                value |= _bit(tms, offset) << i
                offset += 1
            engine.store([cmd, count - 1, value])
            pending_commands += 1
            if pending_commands == commands_per_packet:
                pending_commands = 0
                engine.write()
                if self._ch552_workaround:
                    self._drain(length // 8 + 1)
            remaining -= count
        if flush_buffer:
            engine.write()
        if self._ch552_workaround:
            self._drain(length // 8 + 1)
        return length

    def toggle_clk(self, tms: int, tdi: int, clk_len: int) -> int:
        """Generate ``clk_len`` TCK cycles with TMS held; return ``clk_len``."""
        if self.engine.transport.chip_type not in _CLOCK_ONLY_CHIPS:
            byte_len = (clk_len + 7) // 8
            pattern = bytes([0xFF if tms else 0x00]) * byte_len
            return self.write_tms(pattern, clk_len, False)

        remaining = clk_len
        while remaining:
            chunk = min(remaining, 0x10000 * 8)
            if chunk > 8:
                cycles8 = chunk // 8
                remaining -= cycles8 * 8
                cycles8 -= 1
                self.engine.store([_CLK_BYTES, cycles8 & 0xFF,
                                   (cycles8 >> 8) & 0xFF])
            if remaining and remaining < 9:
                self.engine.store([_CLK_BITS, remaining - 1])
                remaining = 0
        return clk_len

    def write_tdi(self, tdi: Optional[BytesLike], length: int,
                  last: bool = False, read: bool = False) -> bytes:
        """Shift ``length`` TDI bits, LSB first; return TDO bits when ``read``.

        With ``last`` the final bit is sent together with TMS high, moving the
        TAP out of its shift state. ``tdi`` None shifts zeros.
        """
        if length == 0:
            if last:
                raise ValueError("last bit requested for an empty transfer")
            return b""
        _require(tdi, length, "tdi")
        engine = self.engine
        rx = bytearray((length + 7) // 8)

        real_len = length - 1 if last else length
        nb_byte = real_len >> 3
        nb_bit = real_len & 0x07
        xfer = engine.buffer_size - 3
        cmd = (MPSSE_LSB
               | ((MPSSE_DO_WRITE | self._write_mode) if tdi is not None else 0)
               | ((MPSSE_DO_READ | self._read_mode) if read else 0))

        if nb_byte + len(engine.pending) + 3 > engine.buffer_size:
            engine.write()

        # a single full byte is cheaper as a bit command
        if nb_byte == 1 and nb_bit == 0:
            nb_byte = 0
            nb_bit = 8

        tx_pos = 0
        rx_pos = 0
        while nb_byte:
            xfer_len = min(nb_byte, xfer)
            engine.store([cmd, (xfer_len - 1) & 0xFF,
                          ((xfer_len - 1) >> 8) & 0xFF])
            if tdi is not None:
                engine.store(tdi[tx_pos:tx_pos + xfer_len])
                tx_pos += xfer_len
            if read:
                rx[rx_pos:rx_pos + xfer_len] = engine.read(xfer_len)
                rx_pos += xfer_len
            elif self._ch552_workaround:
                engine.write()
                self._drain(xfer_len)
            elif not last:
                engine.write()
            nb_byte -= xfer_len

        double_read = nb_bit != 0
        if nb_bit:
            engine.store([cmd | MPSSE_BITMODE, nb_bit - 1])
            if tdi is not None:
                engine.store([tdi[tx_pos]])
            if read and (not last or self._ch552_workaround):
                # bits enter from the left: realign them
                rx[rx_pos] = engine.read(1)[0] >> (8 - nb_bit)
                double_read = False
            elif self._ch552_workaround:
                engine.write()
                self._drain(nb_bit)
            elif not last:
                engine.write()

        if last:
            byte_index = tx_pos + nb_bit // 8
            last_bit = 0
            if tdi is not None and byte_index < len(tdi):
                last_bit = (tdi[byte_index] >> (nb_bit % 8)) & 0x01
            tms_cmd = (MPSSE_WRITE_TMS | MPSSE_LSB | MPSSE_BITMODE
                       | self._write_mode
                       | ((MPSSE_DO_READ | self._read_mode) if read else 0))
            # TDI travels in bit 7, TMS = 1 moves to EXIT1
            engine.store([tms_cmd, 0x00, 0x81 if last_bit else 0x01])
            if read:
                received = engine.read(2 if double_read else 1)
                index = 0
                if double_read:
                    rx[rx_pos] = received[0] >> (8 - nb_bit)
                    index = 1
                target = rx_pos + nb_bit // 8
                rx[target] |= ((received[index] >> 7) & 0x01) << (nb_bit % 8)
            elif self._ch552_workaround:
                engine.write()
                self._drain(1)
            else:
                engine.write()

        if self.verbose and read:
            _log.debug("tdo: %s", rx.hex())
        return bytes(rx) if read else b""

    def _update_tdo_buff(self, source: BytesLike, tdo: bytearray,
                         length: int) -> int:
        if self.verbose:
            _log.debug("update tdo %d %d %s", self._tdo_pos, length,
                       bytes(source[:(length + 7) // 8]).hex())
        for i in range(length):
            _set_bit(tdo, self._tdo_pos, _bit(source, i))
            self._tdo_pos += 1
        return self._tdo_pos

    def _update_tms_buff(self, bit: int, offset: int, tdi: int,
                         tdo: bytearray, end: bool = False) -> int:
        """Append a TMS bit; send the sequence when it holds 6 bits or on end.

        Return the number of bits still buffered.
        """
        if self.verbose:
            _log.debug("update tms %d %02x %d", offset, self._tms_tmp, end)
        if not end:
            mask = 1 << offset
            if bit:
                self._tms_tmp |= mask
            else:
                self._tms_tmp &= ~mask & 0xFF
            offset += 1
        if offset == 6 or end:
            if tdi:
                self._tms_tmp |= 0x80
            else:
                self._tms_tmp &= 0x7F
            cmd = (MPSSE_WRITE_TMS | MPSSE_LSB | MPSSE_BITMODE
                   | self._write_mode | MPSSE_DO_READ | self._read_mode)
            self.engine.store([cmd, (offset - 1) & 0xFF, self._tms_tmp])
            received = self.engine.read(1)
            self._update_tdo_buff(received, tdo, offset)
            offset = 0
            self._tms_tmp = 0
        return offset

    def write_tms_tdi(self, tms: BytesLike, tdi: BytesLike,
                      length: int) -> bytes:
        """Shift ``length`` TMS and TDI bits together; return the TDO bits."""
        _require(tms, length, "tms")
        _require(tdi, length, "tdi")
        max_bits = 8 * _TDI_BUF_BYTES
        mode = _MODE_NONE
        tdi_buf = bytearray(_TDI_BUF_BYTES)
        tdo = bytearray((length + 7) // 8)
        self._tms_tmp = 0
        self._tdo_pos = 0
        buff_len = 0

        def flush_tdi(is_end: bool) -> None:
            received = self.write_tdi(bytes(tdi_buf), buff_len, is_end,
                                      read=True)
            self._update_tdo_buff(received, tdo, buff_len)

        for pos in range(length):
            tms_bit = _bit(tms, pos)
            tdi_bit = _bit(tdi, pos)
            if self.verbose:
                _log.debug("tms %d -> %d tdi %d -> %d mode %d %d/%d (%d)",
                           self._curr_tms, tms_bit, self._curr_tdi, tdi_bit,
                           mode, pos, length, buff_len)

            if tms_bit == self._curr_tms:
                if (mode == _MODE_TMS and buff_len != 0
                        and tdi_bit == self._curr_tdi):
                    buff_len = self._update_tms_buff(tms_bit, buff_len,
                                                     tdi_bit, tdo)
                else:
                    if mode != _MODE_TDI and buff_len != 0:
                        buff_len = self._update_tms_buff(
                            0, buff_len, self._curr_tdi, tdo, end=True)
                    _set_bit(tdi_buf, buff_len, tdi_bit)
                    buff_len += 1
                    mode = _MODE_TDI
            else:
                if mode == _MODE_TDI and buff_len > 0:
                    is_end = False
                    # TMS 0 -> 1 is handled by write_tdi with the last bit
                    if self._curr_tms == 0 and tms_bit == 1:
                        _set_bit(tdi_buf, buff_len, tdi_bit)
                        buff_len += 1
                        is_end = True
                    flush_tdi(is_end)
                    tdi_buf = bytearray(_TDI_BUF_BYTES)
                    buff_len = 0
                    if is_end:
                        self._curr_tdi = tdi_bit
                        mode = _MODE_TDI
                        continue
                elif (tdi_bit != self._curr_tdi and mode == _MODE_TMS
                        and buff_len > 0):
                    buff_len = self._update_tms_buff(
                        0, buff_len, self._curr_tdi, tdo, end=True)
                    self._tms_tmp = 0
                buff_len = self._update_tms_buff(tms_bit, buff_len,
                                                 tdi_bit, tdo)
                mode = _MODE_TMS

            if buff_len == max_bits and mode == _MODE_TDI:
                flush_tdi(False)
                tdi_buf = bytearray(_TDI_BUF_BYTES)
                buff_len = 0
            elif buff_len == 6 and mode == _MODE_TMS:
                buff_len = self._update_tms_buff(0, buff_len,
                                                 self._curr_tdi, tdo, end=True)
                self._tms_tmp = 0
            self._curr_tdi = tdi_bit
            self._curr_tms = tms_bit

        if buff_len > 0:
            if mode == _MODE_TDI:
                flush_tdi(False)
            elif mode == _MODE_TMS:
                self._update_tms_buff(0, buff_len, self._curr_tdi, tdo,
                                      end=True)

        if self.verbose:
            _log.debug("end state: tdi %d tms %d", self._curr_tdi,
                       self._curr_tms)
        return bytes(tdo)