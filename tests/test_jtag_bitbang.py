from types import SimpleNamespace

import pytest

from fpgaloader.jtag_bitbang import FtdiJtagBitbang
from fpgaloader.mpsse import BitMode, ChipType, MpsseError, Transport

# TMS on DCD, TCK on DSR, TDI on RI, TDO on CTS
PINS = SimpleNamespace(tms_pin=6, tck_pin=5, tdi_pin=7, tdo_pin=3)
TMS = 1 << 6
TCK = 1 << 5
TDI = 1 << 7
TDO = 1 << 3


class LoopbackTransport(Transport):
    """Fake device whose TDO follows TDI in each sample."""

    chip_type = ChipType.R
    max_packet_size = 64
    product = "fake"

    def __init__(self, short_write=False):
        self.writes = []
        self.bitmode = None
        self.baudrate = None
        self.short_write = short_write

    def write_data(self, data):
        self.writes.append(bytes(data))
        return len(data) - 1 if self.short_write else len(data)

    def read_data(self, length):
        last = self.writes[-1]
        return bytes(TDO if b & TDI else 0 for b in last[:length])

    def usb_reset(self):
        pass

    def set_bitmode(self, bitmask, mode):
        self.bitmode = mode

    def purge_buffers(self):
        pass

    def set_latency_timer(self, latency):
        pass

    def set_chunksize(self, size):
        pass

    def set_baudrate(self, baudrate):
        self.baudrate = baudrate
        return 0


def make(pid=0x6001, **kwargs):
    transport = LoopbackTransport(**kwargs)
    return FtdiJtagBitbang(transport, PINS, 1_000_000, pid, 0), transport


def test_invalid_pin():
    pins = SimpleNamespace(tms_pin=8, tck_pin=5, tdi_pin=7, tdo_pin=3)
    with pytest.raises(ValueError):
        FtdiJtagBitbang(LoopbackTransport(), pins, 1_000_000, 0, 0)


def test_clock_is_limited():
    dev, transport = make()
    dev.set_clk_freq(10_000_000)
    assert transport.baudrate == 3_000_000
    dev.set_clk_freq(1_000_000)
    assert transport.baudrate == 1_000_000


def test_starts_in_bitbang_mode():
    _, transport = make()
    assert transport.bitmode == BitMode.BITBANG


def test_write_tms_samples():
    dev, transport = make()
    assert dev.write_tms(b"\x05", 3, True) == 3
    samples = transport.writes[-1]
    assert len(samples) == 6
    for index, expected in enumerate([1, 0, 1]):
        low, high = samples[2 * index], samples[2 * index + 1]
        assert low & TCK == 0
        assert high == low | TCK
        assert bool(low & TMS) == bool(expected)
        assert low & TDI


def test_write_tms_empty():
    dev, transport = make()
    count = len(transport.writes)
    assert dev.write_tms(b"", 0, False) == 0
    assert len(transport.writes) == count


def test_flush_empty_returns_zero():
    dev, _ = make()
    assert dev.flush() == 0


def test_loopback_round_trip():
    dev, transport = make()
    data = bytes(range(1, 65))
    start = len(transport.writes)
    assert dev.write_tdi(data, len(data) * 8, False, True) == data
    assert transport.bitmode == BitMode.SYNCBB
    assert all(len(chunk) == 256 for chunk in transport.writes[start:])


def test_small_read_round_trip():
    dev, _ = make(pid=0x6015)
    assert dev.write_tdi(b"\x3c\x81", 16, False, True) == b"\x3c\x81"


def test_write_without_read_returns_empty():
    dev, transport = make()
    assert dev.write_tdi(b"\xff", 8, False, False) == b""
    assert transport.bitmode == BitMode.BITBANG
    assert all(s & TDI for s in transport.writes[-1])


def test_end_raises_tms_on_last_bit():
    dev, transport = make()
    dev.write_tdi(b"\x00", 8, True, False)
    samples = transport.writes[-1]
    assert all(s & TMS == 0 for s in samples[:-2])
    assert samples[-2] & TMS and samples[-1] & TMS


def test_toggle_clk():
    dev, transport = make()
    assert dev.toggle_clk(1, 0, 5) == 5
    samples = transport.writes[-1]
    assert len(samples) == 10
    for high, low in zip(samples[::2], samples[1::2]):
        assert high == low | TCK
        assert low & TMS
        assert low & TDI == 0


def test_buffer_size_and_full():
    dev, _ = make()
    assert dev.buffer_size == 4096 // 8 // 2
    assert not dev.is_full


def test_short_write_raises():
    transport = LoopbackTransport()
    dev = FtdiJtagBitbang(transport, PINS, 1_000_000, 0x6001, 0)
    transport.short_write = True
    with pytest.raises(MpsseError):
        dev.write_tms(b"\x01", 1, True)


def test_short_tdi_buffer():
    dev, _ = make()
    with pytest.raises(ValueError):
        dev.write_tdi(b"\x00", 16, False, False)