import pytest

from fpgaloader.jtag_mpsse import FtdiJtagMpsse
from fpgaloader.mpsse import (
    LOOPBACK_START,
    MPSSE_BITMODE,
    MPSSE_DO_READ,
    MPSSE_DO_WRITE,
    MPSSE_LSB,
    MPSSE_READ_NEG,
    MPSSE_WRITE_NEG,
    MPSSE_WRITE_TMS,
    SEND_IMMEDIATE,
    BitConfig,
    ChipType,
    Transport,
    compute_prescaler,
)

TMS_CMD = MPSSE_WRITE_TMS | MPSSE_LSB | MPSSE_BITMODE | MPSSE_WRITE_NEG


class FakeTransport(Transport):
    def __init__(self, chip_type=ChipType.FT2232H, product="", packet=512):
        self.chip_type = chip_type
        self.product = product
        self.max_packet_size = packet
        self.chunks = []
        self.replies = bytearray()
        self.read_calls = 0
        self.closed = False

    @property
    def written(self):
        return b"".join(self.chunks)

    def reset_log(self):
        self.chunks.clear()
        self.read_calls = 0

    def write_data(self, data):
        self.chunks.append(bytes(data))
        return len(data)

    def read_data(self, length):
        self.read_calls += 1
        out = bytes(self.replies[:length])
        del self.replies[:length]
        return out.ljust(length, b"\x00")

    def usb_reset(self):
        pass

    def set_bitmode(self, bitmask, mode):
        pass

    def purge_buffers(self):
        pass

    def set_latency_timer(self, latency):
        pass

    def set_chunksize(self, size):
        pass

    def set_baudrate(self, baudrate):
        return baudrate

    def close(self):
        self.closed = True


def make(chip_type=ChipType.FT2232H, product="", invert=False,
         clk=1_000_000):
    transport = FakeTransport(chip_type, product)
    jtag = FtdiJtagMpsse(transport, BitConfig(), clk, invert)
    transport.reset_log()
    return jtag, transport


def test_write_tms_flush_sends_single_command():
    jtag, t = make()
    assert jtag.write_tms(b"\x05", 3, True) == 3
    assert t.written == bytes([TMS_CMD, 2, 0x80 | 0b101])


def test_write_tms_zero_length_does_nothing():
    jtag, t = make()
    assert jtag.write_tms(b"", 0, True) == 0
    assert t.written == b""
    assert jtag.engine.pending == b""


def test_write_tms_splits_into_six_bit_commands():
    jtag, t = make()
    jtag.write_tms(b"\xff", 8, True)
    data = t.written
    assert len(data) == 6
    assert data[0] == TMS_CMD and data[1] == 5
    assert data[3] == TMS_CMD and data[4] == 1


def test_write_tms_without_flush_stays_pending():
    jtag, t = make()
    jtag.write_tms(b"\x01", 1, False)
    assert t.written == b""
    assert jtag.engine.pending == bytes([TMS_CMD, 0, 0x81])


def test_write_tms_rejects_short_buffer():
    jtag, _ = make()
    with pytest.raises(ValueError):
        jtag.write_tms(b"\x01", 9, True)


def test_toggle_clk_on_high_speed_chip():
    jtag, _ = make()
    assert jtag.toggle_clk(0, 0, 20) == 20
    assert jtag.engine.pending == bytes([0x8F, 1, 0, 0x8E, 3])


def test_toggle_clk_short_uses_bit_command():
    jtag, _ = make()
    jtag.toggle_clk(0, 0, 3)
    assert jtag.engine.pending == bytes([0x8E, 2])


def test_toggle_clk_falls_back_to_tms_on_other_chips():
    jtag, _ = make(chip_type=ChipType.R)
    assert jtag.toggle_clk(1, 0, 4) == 4
    assert jtag.engine.pending == bytes([TMS_CMD, 3, 0x8F])


def test_write_tdi_single_byte_uses_bit_mode():
    jtag, t = make()
    assert jtag.write_tdi(b"\xa5", 8, False, False) == b""
    cmd = MPSSE_LSB | MPSSE_DO_WRITE | MPSSE_WRITE_NEG | MPSSE_BITMODE
    assert t.written == bytes([cmd, 7, 0xA5])


def test_write_tdi_bytes_with_read():
    jtag, t = make()
    t.replies += b"\xab\xcd"
    result = jtag.write_tdi(b"\x12\x34", 16, False, True)
    assert result == b"\xab\xcd"
    cmd = MPSSE_LSB | MPSSE_DO_WRITE | MPSSE_WRITE_NEG | MPSSE_DO_READ
    assert t.written == bytes([cmd, 1, 0, 0x12, 0x34, SEND_IMMEDIATE])


def test_write_tdi_last_bit_goes_with_tms():
    jtag, t = make()
    jtag.write_tdi(b"\x01", 1, True, False)
    assert t.written == bytes([TMS_CMD, 0, 0x81])


def test_write_tdi_last_with_read_rebuilds_all_bits():
    jtag, t = make()
    t.replies += b"\xe0\x80"
    result = jtag.write_tdi(b"\x0f", 4, True, True)
    assert result == bytes([(1 << 4) - 1])


def test_write_tdi_errors():
    jtag, _ = make()
    with pytest.raises(ValueError):
        jtag.write_tdi(b"", 0, True, False)
    with pytest.raises(ValueError):
        jtag.write_tdi(b"\x00", 16, False, False)


def test_inverted_read_edge_is_used():
    jtag, t = make(invert=True)
    assert jtag.read_edge_negative
    jtag.write_tdi(None, 16, False, True)
    assert t.written[0] & MPSSE_READ_NEG


def test_digilent_edge_depends_on_frequency():
    slow, _ = make(product="Digilent USB Device", clk=1_000_000)
    assert not slow.read_edge_negative
    fast, _ = make(product="Digilent USB Device", clk=30_000_000)
    assert fast.read_edge_negative


def test_set_clk_freq_returns_real_frequency_and_updates_edge():
    jtag, _ = make(product="Digilent USB Device")
    real = jtag.set_clk_freq(30_000_000)
    assert real == compute_prescaler(60_000_000, 30_000_000)[1]
    assert jtag.clk_hz == real
    assert jtag.read_edge_negative


def test_ch552_workaround_reads_after_tms():
    jtag, t = make(product="Sipeed-Debug")
    jtag.write_tms(b"\x01", 1, True)
    assert t.read_calls == 1


def test_write_tms_tdi_constant_tms_is_a_tdi_shift():
    jtag, t = make()
    t.replies += b"\x5a"
    assert jtag.write_tms_tdi(b"\x00", b"\xa5", 8) == b"\x5a"
    cmd = (MPSSE_LSB | MPSSE_DO_WRITE | MPSSE_WRITE_NEG | MPSSE_DO_READ
           | MPSSE_BITMODE)
    assert t.written.startswith(bytes([cmd, 7, 0xA5]))


def test_write_tms_tdi_tms_only_sequence():
    jtag, t = make()
    t.replies += b"\x05"
    assert jtag.write_tms_tdi(b"\x07", b"\x00", 3) == b"\x05"
    assert t.written.startswith(bytes([TMS_CMD | MPSSE_DO_READ, 2, 0x07]))


def test_write_tms_tdi_rejects_short_buffers():
    jtag, _ = make()
    with pytest.raises(ValueError):
        jtag.write_tms_tdi(b"\x00", b"\x00\x00", 16)


def test_close_runs_loopback_and_releases():
    jtag, t = make()
    jtag.close()
    assert LOOPBACK_START in t.written
    assert t.closed


def test_buffer_size_and_full_flag():
    jtag, _ = make()
    assert jtag.buffer_size == jtag.engine.buffer_size - 3
    assert jtag.is_full is False