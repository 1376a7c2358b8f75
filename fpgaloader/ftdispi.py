"""SPI master built on the MPSSE engine of an FTDI device."""

from __future__ import annotations

import enum
import logging
from typing import Optional, Union

from .mpsse import (
    MPSSE_DO_READ,
    MPSSE_DO_WRITE,
    MPSSE_READ_NEG,
    MPSSE_WRITE_NEG,
    BitConfig,
    BitMode,
    MpsseEngine,
    Transport,
)

__all__ = ["CsMode", "FtdiSpi"]

_log = logging.getLogger(__name__)

BytesLike = Union[bytes, bytearray]

_DEFAULT_CS = 1 << 3
_DEFAULT_CLK = 1 << 0
_WRITE_ONLY_CHUNK = 4096


class CsMode(enum.IntEnum):
    """Chip select handling: per transfer or left to the caller."""

    AUTO = 0
    MANUAL = 1


class FtdiSpi:
    """SPI transfers with a GPIO driven chip select.

    ``pins`` is an object with ``cs_pin``, ``sck_pin``, ``holdn_pin`` and
    ``wpn_pin`` attributes (pin masks); a zero or missing ``pins`` keeps the
    default pinout (SCK on DBUS0, CS on DBUS3).
    """

    def __init__(self, transport: Transport, config: BitConfig,
                 pins=None, clk_hz: int = 6_000_000,
                 verbose: bool = False) -> None:
        self.engine = MpsseEngine(transport, config, clk_hz,
                                  verbose=int(verbose))
        self.verbose = verbose
        self._cs_bits = _DEFAULT_CS
        self._clk = _DEFAULT_CLK
        self._holdn = 0
        self._wpn = 0
        if pins is not None:
            if pins.cs_pin:
                self._cs_bits = pins.cs_pin & 0xFFFF
            if pins.sck_pin:
                self._clk = pins.sck_pin & 0xFF
            if pins.holdn_pin:
                self._holdn = pins.holdn_pin & 0xFFFF
            if pins.wpn_pin:
                self._wpn = pins.wpn_pin & 0xFFFF
        self._cs = 0
        self._clk_idle = 0
        self._wr_mode = MPSSE_WRITE_NEG
        self._rd_mode = 0
        self.mode = 0
        self.cs_mode = CsMode.AUTO

        # SCK belongs to the MPSSE engine; CS, HOLDn and WPn are plain GPIOs
        free_pins = self._cs_bits | self._holdn | self._wpn
        self.engine.gpio_set_output(free_pins)
        self.engine.gpio_set(free_pins)

        self.set_mode(0)
        self.cs_mode = CsMode.AUTO
        self.engine.init(1, 0x00, BitMode.MPSSE)

    @property
    def cs_asserted(self) -> bool:
        """True while chip select is driven low."""
        return self._cs == 0

    def set_mode(self, mode: int) -> None:
        """Select SPI mode 0 to 3 (clock polarity and sampling edges)."""
        if mode == 0:
            self._clk_idle, self._wr_mode, self._rd_mode = 0, MPSSE_WRITE_NEG, 0
        elif mode == 1:
            self._clk_idle, self._wr_mode, self._rd_mode = 0, 0, MPSSE_READ_NEG
        elif mode == 2:
            self._clk_idle, self._wr_mode, self._rd_mode = (
                self._clk, 0, MPSSE_READ_NEG)
        elif mode == 3:
            self._clk_idle, self._wr_mode, self._rd_mode = (
                self._clk, MPSSE_WRITE_NEG, 0)
        else:
            raise ValueError(f"invalid SPI mode {mode}")
        self.mode = mode
        # put the clock pin in its idle state
        if self._clk_idle:
            self.engine.gpio_set(self._clk)
        else:
            self.engine.gpio_clear(self._clk)

    def _conf_cs(self, high: bool) -> None:
        # sent twice, as some adapters miss a single update
        for _ in range(2):
            if high:
                self.engine.gpio_set(self._cs_bits)
            else:
                self.engine.gpio_clear(self._cs_bits)

    def set_cs(self) -> None:
        """Release chip select (drive it high)."""
        self._cs = self._cs_bits
        self._conf_cs(True)

    def clear_cs(self) -> None:
        """Assert chip select (drive it low)."""
        self._cs = 0
        self._conf_cs(False)

    def write_then_read(self, tx: BytesLike, rx_len: int) -> bytes:
        """Write ``tx`` then read ``rx_len`` bytes under one chip select."""
        self.cs_mode = CsMode.MANUAL
        self.clear_cs()
        try:
            self.write_and_read(len(tx), tx, False)
            return self.write_and_read(rx_len, None, True)
        finally:
            self.set_cs()
            self.cs_mode = CsMode.AUTO

    def write_and_read(self, length: int, tx: Optional[BytesLike] = None,
                       read: bool = False) -> bytes:
        """Shift ``length`` bytes; return what was read when ``read``."""
        if length < 0:
            raise ValueError("length must not be negative")
        if tx is not None and len(tx) < length:
            raise ValueError(f"tx holds fewer than {length} bytes")
        engine = self.engine
        max_xfer = engine.buffer_size if read else _WRITE_ONLY_CHUNK
        cmd = (((MPSSE_DO_READ | self._rd_mode) if read else 0)
               | ((MPSSE_DO_WRITE | self._wr_mode) if tx is not None else 0))

        if self.cs_mode == CsMode.AUTO:
            self.clear_cs()
        engine.write()

        rx = bytearray()
        pos = 0
        remaining = length
        while remaining > 0:
            xfer = min(remaining, max_xfer)
            packet = bytearray([cmd, (xfer - 1) & 0xFF, ((xfer - 1) >> 8) & 0xFF])
            if tx is not None:
                packet += tx[pos:pos + xfer]
            engine.store(packet)
            if read:
                received = engine.read(xfer)
                if len(received) != xfer:
                    _log.error("get_buf failed: %d", len(received))
                rx += received
            else:
                sent = engine.write()
                if sent != xfer + 3:
                    _log.debug("partial packet sent: %d of %d", sent, xfer + 3)
            pos += xfer
            remaining -= xfer

        if self.cs_mode == CsMode.AUTO:
            self.set_cs()
        return bytes(rx)

    def spi_put(self, cmd: int, tx: Optional[BytesLike] = None,
                rx_len: Optional[int] = None) -> bytes:
        """Send ``cmd`` followed by ``tx``; return ``rx_len`` bytes read after it.

        Without ``tx``, zeros are sent; without ``rx_len``, nothing is read.
        """
        if tx is None and rx_len is None:
            length = 0
        elif tx is None:
            length = rx_len
        else:
            length = len(tx)
            if rx_len is not None and rx_len != length:
                raise ValueError("rx_len must match the length of tx")
        payload = bytes([cmd & 0xFF]) + (bytes(tx) if tx is not None
                                         else bytes(length))
        read = rx_len is not None
        rx = self.write_and_read(length + 1, payload, read)
        return rx[1:] if read else b""

    def spi_put_raw(self, tx: Optional[BytesLike] = None,
                    rx_len: Optional[int] = None) -> bytes:
        """Shift ``tx`` (or ``rx_len`` bytes); return the bytes read if any."""
        if tx is None and rx_len is None:
            return b""
        if tx is not None and rx_len is not None and rx_len != len(tx):
            raise ValueError("rx_len must match the length of tx")
        length = len(tx) if tx is not None else rx_len
        return self.write_and_read(length, tx, rx_len is not None)

    def spi_wait(self, cmd: int, mask: int, cond: int, timeout: int,
                 verbose: bool = False) -> int:
        """Send ``cmd`` then poll its answer until ``answer & mask == cond``.

        Return the last answer; raise TimeoutError after ``timeout`` reads.
        """
        count = 0
        status = 0
        self.cs_mode = CsMode.MANUAL
        self.clear_cs()
        try:
            self.write_and_read(1, bytes([cmd & 0xFF]), False)
            while True:
                status = self.write_and_read(1, None, True)[0]
                count += 1
                if count == timeout:
                    _log.error("timeout: %02x %d", status, count)
                    break
                if verbose:
                    print(f"{status:02x} {mask:02x} {cond:02x} {count:02x}")
                if status & mask == cond:
                    break
        finally:
            self.set_cs()
            self.cs_mode = CsMode.AUTO

        if count == timeout:
            raise TimeoutError(f"wait: status 0x{status:02x} after {count} reads")
        return status