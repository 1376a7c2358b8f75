"""Buffered MPSSE command engine for FTDI devices, with GPIO access."""

from __future__ import annotations

import abc
import enum
import logging
from dataclasses import dataclass, replace
from typing import Iterable, Optional, Union

__all__ = [
    "ChipType",
    "BitMode",
    "MpsseError",
    "BitConfig",
    "Transport",
    "MpsseEngine",
    "compute_prescaler",
    "MPSSE_WRITE_NEG",
    "MPSSE_BITMODE",
    "MPSSE_READ_NEG",
    "MPSSE_LSB",
    "MPSSE_DO_WRITE",
    "MPSSE_DO_READ",
    "MPSSE_WRITE_TMS",
    "SET_BITS_LOW",
    "GET_BITS_LOW",
    "SET_BITS_HIGH",
    "GET_BITS_HIGH",
    "LOOPBACK_START",
    "LOOPBACK_END",
    "TCK_DIVISOR",
    "SEND_IMMEDIATE",
    "DIS_DIV_5",
    "EN_DIV_5",
]

_log = logging.getLogger(__name__)

# MPSSE shifting flags
MPSSE_WRITE_NEG = 0x01
MPSSE_BITMODE = 0x02
MPSSE_READ_NEG = 0x04
MPSSE_LSB = 0x08
MPSSE_DO_WRITE = 0x10
MPSSE_DO_READ = 0x20
MPSSE_WRITE_TMS = 0x40

# MPSSE opcodes
SET_BITS_LOW = 0x80
GET_BITS_LOW = 0x81
SET_BITS_HIGH = 0x82
GET_BITS_HIGH = 0x83
LOOPBACK_START = 0x84
LOOPBACK_END = 0x85
TCK_DIVISOR = 0x86
SEND_IMMEDIATE = 0x87
DIS_DIV_5 = 0x8A
EN_DIV_5 = 0x8B


class ChipType(enum.IntEnum):
    """FTDI chip families."""

    AM = 0
    BM = 1
    FT2232C = 2
    R = 3
    FT2232H = 4
    FT4232H = 5
    FT232H = 6
    FT230X = 7


class BitMode(enum.IntEnum):
    """FTDI bit modes."""

    RESET = 0x00
    BITBANG = 0x01
    MPSSE = 0x02
    SYNCBB = 0x04
    MCU = 0x08
    OPTO = 0x10
    CBUS = 0x20
    SYNCFF = 0x40


class MpsseError(RuntimeError):
    """Raised when the FTDI device does not accept or return data."""


@dataclass
class BitConfig:
    """Interface selection and initial value/direction of the GPIO banks."""

    interface: int = 0
    bit_low_val: int = 0
    bit_low_dir: int = 0
    bit_high_val: int = 0
    bit_high_dir: int = 0
    index: int = 0


class Transport(abc.ABC):
    """Low level access to an opened FTDI interface."""

    chip_type: ChipType = ChipType.FT2232H
    max_packet_size: int = 64
    product: str = ""

    @abc.abstractmethod
    def write_data(self, data: bytes) -> int:
        """Send ``data``; return the number of bytes written."""

    @abc.abstractmethod
    def read_data(self, length: int) -> bytes:
        """Read up to ``length`` bytes."""

    @abc.abstractmethod
    def usb_reset(self) -> None:
        """Reset the device."""

    @abc.abstractmethod
    def set_bitmode(self, bitmask: int, mode: int) -> None:
        """Select the bit mode and the output pins."""

    @abc.abstractmethod
    def purge_buffers(self) -> None:
        """Drop pending data in both directions."""

    @abc.abstractmethod
    def set_latency_timer(self, latency: int) -> None:
        """Set the latency timer in milliseconds."""

    @abc.abstractmethod
    def set_chunksize(self, size: int) -> None:
        """Set the read and write chunk size."""

    @abc.abstractmethod
    def set_baudrate(self, baudrate: int) -> int:
        """Set the baud rate (bit-bang clock)."""

    def close(self) -> None:
        """Release the device, dropping any data still pending."""
        self.purge_buffers()


def compute_prescaler(base_freq: int, clk_hz: int) -> tuple[int, int]:
    """Return ``(prescaler, real_freq)`` for a TCK divisor from ``base_freq``.

    The real frequency never exceeds the requested one.
    """
    if clk_hz <= 0:
        raise ValueError("clock frequency must be positive")
    presc = (((base_freq // clk_hz) - 1) // 2) & 0xFFFF
    real = base_freq // ((1 + presc) * 2)
    if real > clk_hz:
        presc = (presc + 1) & 0xFFFF
    real = base_freq // ((1 + presc) * 2)
    return presc, real


def _format_freq(hz: float) -> str:
    if hz >= 1e6:
        return f"{hz / 1e6:2.2f}MHz"
    if hz >= 1e3:
        return f"{hz / 1e3:3.2f}KHz"
    return f"{hz:3.2f}Hz"


BytesLike = Union[bytes, bytearray, Iterable[int]]


class MpsseEngine:
    """Buffer MPSSE commands and exchange them with an FTDI transport."""

    def __init__(self, transport: Transport, config: BitConfig,
                 clk_hz: int, buffer_size: Optional[int] = None,
                 verbose: int = 0) -> None:
        self.transport = transport
        self.config = replace(config)
        self.clk_hz = clk_hz
        self.buffer_size = (transport.max_packet_size if buffer_size is None
                            else buffer_size)
        if self.buffer_size <= 0:
            raise ValueError("buffer size must be positive")
        self.verbose = verbose > 2
        self._buffer = bytearray()

    def __enter__(self) -> "MpsseEngine":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def pending(self) -> bytes:
        """Commands stored but not yet sent."""
        return bytes(self._buffer)

    def close(self) -> None:
        """Reset the pins and release the transport."""
        self.transport.set_bitmode(0, BitMode.RESET)
        self.transport.usb_reset()
        self.transport.close()

    def init(self, latency: int, bitmask: int, mode: int) -> None:
        """Reset the device and configure bit mode, clock and GPIO banks."""
        transport = self.transport
        transport.usb_reset()
        transport.set_bitmode(0x00, BitMode.RESET)
        transport.purge_buffers()
        transport.set_latency_timer(latency)
        transport.set_bitmode(bitmask, mode)
        if mode == BitMode.MPSSE:
            transport.read_data(5)
            self.set_clk_freq(self.clk_hz)
            cmd = [SET_BITS_LOW, self.config.bit_low_val & 0xFF,
                   self.config.bit_low_dir & 0xFF]
            if transport.chip_type != ChipType.FT4232H:
                cmd += [SET_BITS_HIGH, self.config.bit_high_val & 0xFF,
                        self.config.bit_high_dir & 0xFF]
            self.store(cmd)
            self.write()
        transport.set_chunksize(self.buffer_size)

    def set_clk_freq(self, clk_hz: int) -> int:
        """Program the TCK divisor; return the real frequency obtained."""
        if clk_hz <= 0:
            raise ValueError("clock frequency must be positive")
        target = clk_hz
        if self.transport.chip_type != ChipType.FT2232C:
            base_freq = 60_000_000
            # divide by 5 gives a finer resolution below 6 MHz
            if clk_hz > 6_000_000:
                use_divide_by_5 = False
                self.store([DIS_DIV_5])
            else:
                use_divide_by_5 = True
                base_freq //= 5
                self.store([EN_DIV_5])
        else:
            base_freq = 12_000_000
            use_divide_by_5 = False

        limit = 6_000_000 if use_divide_by_5 else 30_000_000
        if target > limit:
            _log.warning("Jtag probe limited to %dMHz", limit // 1_000_000)
            target = limit

        presc, real_freq = compute_prescaler(base_freq, target)
        _log.info("Jtag frequency : requested %s -> real %s",
                  _format_freq(clk_hz), _format_freq(real_freq))
        if self.verbose:
            _log.debug("presc : %d input freq : %d requested freq : %d "
                       "real freq : %d", presc, base_freq, target, real_freq)

        self.store([TCK_DIVISOR, presc & 0xFF, (presc >> 8) & 0xFF])
        self.write()
        self.transport.read_data(4)
        self.transport.purge_buffers()
        self.clk_hz = real_freq
        return real_freq

    def store(self, data: BytesLike) -> None:
        """Append commands, sending full buffers as they fill up."""
        chunk = bytes(data)
        size = self.buffer_size
        if len(self._buffer) + len(chunk) > size:
            if len(self._buffer) == size:
                self.write()
            while len(self._buffer) + len(chunk) > size:
                room = size - len(self._buffer)
                self._buffer += chunk[:room]
                chunk = chunk[room:]
                self.write()
        self._buffer += chunk

    def write(self) -> int:
        """Send the buffered commands; return the number of bytes sent."""
        if not self._buffer:
            return 0
        expected = len(self._buffer)
        written = self.transport.write_data(bytes(self._buffer))
        if written != expected:
            raise MpsseError(
                f"write failed: {written} of {expected} bytes sent")
        self._buffer.clear()
        return written

    def read(self, length: int) -> bytes:
        """Flush pending commands and read exactly ``length`` bytes."""
        self.store([SEND_IMMEDIATE])
        self.write()
        received = bytearray()
        while len(received) < length:
            received += self.transport.read_data(length - len(received))
        return bytes(received)

    # GPIO access -----------------------------------------------------------

    def _gpio_store(self, low_pins: bool) -> None:
        cfg = self.config
        if low_pins:
            self.store([SET_BITS_LOW, cfg.bit_low_val & 0xFF,
                        cfg.bit_low_dir & 0xFF])
        else:
            self.store([SET_BITS_HIGH, cfg.bit_high_val & 0xFF,
                        cfg.bit_high_dir & 0xFF])

    def gpio_get(self) -> int:
        """Read both banks; DBUS in the low byte, CBUS in the high byte."""
        self.store([GET_BITS_LOW, GET_BITS_HIGH])
        rx = self.read(2)
        return (rx[1] << 8) | rx[0]

    def gpio_get_half(self, low_pins: bool) -> int:
        """Read the low (DBUS) or high (CBUS) bank."""
        self.store([GET_BITS_LOW if low_pins else GET_BITS_HIGH])
        return self.read(1)[0]

    def gpio_set(self, gpios: int) -> None:
        """Drive high the pins of ``gpios`` (16-bit mask)."""
        if gpios & 0x00FF:
            self.config.bit_low_val |= gpios & 0xFF
            self._gpio_store(True)
        if gpios & 0xFF00:
            self.config.bit_high_val |= (gpios >> 8) & 0xFF
            self._gpio_store(False)
        self.write()

    def gpio_set_half(self, gpios: int, low_pins: bool) -> None:
        """Drive high the pins of ``gpios`` in one bank."""
        if low_pins:
            self.config.bit_low_val |= gpios & 0xFF
        else:
            self.config.bit_high_val |= gpios & 0xFF
        self._gpio_store(low_pins)
        self.write()

    def gpio_clear(self, gpios: int) -> None:
        """Drive low the pins of ``gpios`` (16-bit mask)."""
        if gpios & 0x00FF:
            self.config.bit_low_val &= ~gpios & 0xFF
            self._gpio_store(True)
        if gpios & 0xFF00:
            self.config.bit_high_val &= ~(gpios >> 8) & 0xFF
            self._gpio_store(False)
        self.write()

    def gpio_clear_half(self, gpios: int, low_pins: bool) -> None:
        """Drive low the pins of ``gpios`` in one bank."""
        if low_pins:
            self.config.bit_low_val &= ~gpios & 0xFF
        else:
            self.config.bit_high_val &= ~gpios & 0xFF
        self._gpio_store(low_pins)
        self.write()

    def gpio_write(self, gpios: int) -> None:
        """Set the state of every pin of both banks."""
        self.config.bit_low_val = gpios & 0xFF
        self.config.bit_high_val = (gpios >> 8) & 0xFF
        self._gpio_store(True)
        self._gpio_store(False)
        self.write()

    def gpio_write_half(self, gpios: int, low_pins: bool) -> None:
        """Set the state of every pin of one bank."""
        if low_pins:
            self.config.bit_low_val = gpios & 0xFF
        else:
            self.config.bit_high_val = gpios & 0xFF
        self._gpio_store(low_pins)
        self.write()

    def gpio_set_dir(self, direction: int) -> None:
        """Set both banks' directions (1 output, 0 input); nothing is sent."""
        self.config.bit_low_dir = direction & 0xFF
        self.config.bit_high_dir = (direction >> 8) & 0xFF

    def gpio_set_dir_half(self, direction: int, low_pins: bool) -> None:
        """Set one bank's directions; nothing is sent."""
        if low_pins:
            self.config.bit_low_dir = direction & 0xFF
        else:
            self.config.bit_high_dir = direction & 0xFF

    def gpio_set_input(self, gpios: int) -> None:
        """Configure the pins of ``gpios`` (16-bit mask) as inputs."""
        if gpios & 0x00FF:
            self.config.bit_low_dir &= ~gpios & 0xFF
        if gpios & 0xFF00:
            self.config.bit_high_dir &= ~(gpios >> 8) & 0xFF

    def gpio_set_input_half(self, gpios: int, low_pins: bool) -> None:
        """Configure the pins of ``gpios`` in one bank as inputs."""
        if low_pins:
            self.config.bit_low_dir &= ~gpios & 0xFF
        else:
            self.config.bit_high_dir &= ~gpios & 0xFF

    def gpio_set_output(self, gpios: int) -> None:
        """Configure the pins of ``gpios`` (16-bit mask) as outputs."""
        if gpios & 0x00FF:
            self.config.bit_low_dir |= gpios & 0xFF
        if gpios & 0xFF00:
            self.config.bit_high_dir |= (gpios >> 8) & 0xFF

    def gpio_set_output_half(self, gpios: int, low_pins: bool) -> None:
        """Configure the pins of ``gpios`` in one bank as outputs."""
        if low_pins:
            self.config.bit_low_dir |= gpios & 0xFF
        else:
            self.config.bit_high_dir |= gpios & 0xFF