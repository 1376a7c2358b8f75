import pytest

from fpgaloader.mpsse import (
    DIS_DIV_5,
    EN_DIV_5,
    GET_BITS_HIGH,
    GET_BITS_LOW,
    SEND_IMMEDIATE,
    SET_BITS_HIGH,
    SET_BITS_LOW,
    TCK_DIVISOR,
    BitConfig,
    BitMode,
    ChipType,
    MpsseEngine,
    MpsseError,
    Transport,
    compute_prescaler,
)


class FakeTransport(Transport):
    def __init__(self, chip_type=ChipType.FT2232H, responses=b"",
                 short_write=False):
        self.chip_type = chip_type
        self.max_packet_size = 512
        self.writes = []
        self.calls = []
        self._rx = bytearray(responses)
        self._short = short_write

    def write_data(self, data):
        self.writes.append(bytes(data))
        return len(data) - 1 if self._short else len(data)

    def read_data(self, length):
        chunk = bytes(self._rx[:min(length, 1)])
        del self._rx[:len(chunk)]
        return chunk

    def usb_reset(self):
        self.calls.append("reset")

    def set_bitmode(self, bitmask, mode):
        self.calls.append(("bitmode", bitmask, mode))

    def purge_buffers(self):
        self.calls.append("purge")

    def set_latency_timer(self, latency):
        self.calls.append(("latency", latency))

    def set_chunksize(self, size):
        self.calls.append(("chunk", size))

    def set_baudrate(self, baudrate):
        return baudrate

    def close(self):
        self.calls.append("close")


def make(chip=ChipType.FT2232H, responses=b"", buffer_size=64, **cfg):
    transport = FakeTransport(chip, responses)
    engine = MpsseEngine(transport, BitConfig(**cfg), 6_000_000, buffer_size)
    return transport, engine


def test_set_clk_freq_divide_by_5_wire_bytes():
    transport, engine = make()
    assert engine.set_clk_freq(6_000_000) == 6_000_000
    assert b"".join(transport.writes) == bytes([EN_DIV_5, TCK_DIVISOR, 0, 0])
    assert engine.clk_hz == 6_000_000


def test_set_clk_freq_full_speed_uses_dis_div5():
    transport, engine = make()
    real = engine.set_clk_freq(10_000_000)
    sent = b"".join(transport.writes)
    assert sent[0] == DIS_DIV_5
    assert sent[1] == TCK_DIVISOR
    assert real <= 10_000_000


def test_set_clk_freq_clamped_to_30mhz():
    _, engine = make()
    assert engine.set_clk_freq(50_000_000) == 30_000_000


def test_ft2232c_has_no_divide_by_5_command():
    transport, engine = make(chip=ChipType.FT2232C)
    real = engine.set_clk_freq(1_000_000)
    assert b"".join(transport.writes)[0] == TCK_DIVISOR
    assert real <= 1_000_000


@pytest.mark.parametrize("clk", [1000, 123_456, 1_000_000, 2_500_000, 6_000_000])
def test_compute_prescaler_invariants(clk):
    presc, real = compute_prescaler(12_000_000, clk)
    assert real <= clk
    assert real == 12_000_000 // ((1 + presc) * 2)


def test_compute_prescaler_rejects_zero():
    with pytest.raises(ValueError):
        compute_prescaler(60_000_000, 0)


def test_store_flushes_full_buffers():
    transport, engine = make(buffer_size=4)
    data = bytes(range(10))
    engine.store(data)
    assert [len(w) for w in transport.writes] == [4, 4]
    assert engine.pending == data[8:]
    assert engine.write() == 2
    assert b"".join(transport.writes) == data
    assert engine.pending == b""


def test_write_empty_returns_zero():
    transport, engine = make()
    assert engine.write() == 0
    assert transport.writes == []


def test_short_write_raises():
    transport = FakeTransport(short_write=True)
    engine = MpsseEngine(transport, BitConfig(), 1_000_000, 16)
    engine.store([1, 2, 3])
    with pytest.raises(MpsseError):
        engine.write()


def test_read_sends_immediate_and_collects_all_bytes():
    transport, engine = make(responses=b"\xaa\xbb\xcc")
    engine.store([0x20])
    assert engine.read(3) == b"\xaa\xbb\xcc"
    assert transport.writes[-1] == bytes([0x20, SEND_IMMEDIATE])


def test_gpio_get_combines_banks():
    transport, engine = make(responses=b"\x34\x12")
    assert engine.gpio_get() == 0x1234
    assert transport.writes[-1] == bytes([GET_BITS_LOW, GET_BITS_HIGH,
                                          SEND_IMMEDIATE])


def test_gpio_get_half_selects_bank():
    transport, engine = make(responses=b"\x5a")
    assert engine.gpio_get_half(False) == 0x5A
    assert transport.writes[-1][0] == GET_BITS_HIGH


def test_gpio_set_and_clear_full_bank():
    transport, engine = make(bit_low_dir=0x0B, bit_high_dir=0x01)
    engine.gpio_set(0x0102)
    assert engine.config.bit_low_val == 0x02
    assert engine.config.bit_high_val == 0x01
    assert transport.writes[-1] == bytes([SET_BITS_LOW, 0x02, 0x0B,
                                          SET_BITS_HIGH, 0x01, 0x01])
    engine.gpio_clear(0x0100)
    assert engine.config.bit_high_val == 0
    assert engine.config.bit_low_val == 0x02
    assert transport.writes[-1] == bytes([SET_BITS_HIGH, 0x00, 0x01])


def test_gpio_half_set_clear_write():
    _, engine = make()
    engine.gpio_set_half(0x81, True)
    engine.gpio_clear_half(0x01, True)
    assert engine.config.bit_low_val == 0x80
    engine.gpio_write_half(0x3C, False)
    assert engine.config.bit_high_val == 0x3C
    engine.gpio_write(0xBEEF)
    assert (engine.config.bit_high_val << 8) | engine.config.bit_low_val == 0xBEEF


def test_gpio_directions():
    _, engine = make()
    engine.gpio_set_dir(0xF00F)
    assert engine.config.bit_low_dir == 0x0F
    assert engine.config.bit_high_dir == 0xF0
    engine.gpio_set_input(0x1001)
    assert engine.config.bit_low_dir == 0x0E
    assert engine.config.bit_high_dir == 0xE0
    engine.gpio_set_output(0x0110)
    assert engine.config.bit_low_dir == 0x1E
    assert engine.config.bit_high_dir == 0xE1
    engine.gpio_set_dir_half(0x55, False)
    engine.gpio_set_input_half(0x01, False)
    engine.gpio_set_output_half(0x80, True)
    assert engine.config.bit_high_dir == 0x54
    assert engine.config.bit_low_dir == 0x9E


def test_config_is_copied():
    config = BitConfig(bit_low_val=0)
    engine = MpsseEngine(FakeTransport(), config, 1_000_000, 16)
    engine.gpio_set(0x01)
    assert config.bit_low_val == 0
    assert engine.config.bit_low_val == 1


@pytest.mark.parametrize("chip, high_sent", [(ChipType.FT2232H, True),
                                             (ChipType.FT4232H, False)])
def test_init_mpsse_writes_gpio_banks(chip, high_sent):
    transport, engine = make(chip=chip, bit_low_val=0x08, bit_low_dir=0x0B,
                             bit_high_val=0x08, bit_high_dir=0x0B)
    engine.init(1, 0xFB, BitMode.MPSSE)
    last = transport.writes[-1]
    assert last[:3] == bytes([SET_BITS_LOW, 0x08, 0x0B])
    assert (SET_BITS_HIGH in last) == high_sent
    assert ("bitmode", 0xFB, BitMode.MPSSE) in transport.calls
    assert transport.calls[-1] == ("chunk", 64)


def test_init_bitbang_sends_nothing():
    transport, engine = make()
    engine.init(1, 0x07, BitMode.BITBANG)
    assert transport.writes == []
    assert transport.calls[0] == "reset"


def test_context_manager_closes_transport():
    transport = FakeTransport()
    with MpsseEngine(transport, BitConfig(), 1_000_000, 16):
        pass
    assert transport.calls[-1] == "close"
    assert ("bitmode", 0, BitMode.RESET) in transport.calls