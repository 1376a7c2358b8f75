# fpgaloader

Building blocks for loading FPGAs and their configuration flash.

## What is in the package

- **Databases**
  - `fpgaloader.boards` lists known boards. Each `Board` records its cable name, FPGA part and communication mode (`CommMode.JTAG`, `SPI` or `DFU`). It also holds the JTAG bit-bang pins (`JtagPins`), the SPI pin masks (`SpiPins`), the default clock and, for DFU boards, the USB vid/pid/altsetting. Use `get_board(name)`, which raises `KeyError` for an unknown name, and `board_names()`.
  - `fpgaloader.flashdb` lists SPI NOR flash chips. `lookup_flash(jedec_id)` returns a `FlashInfo` or `None`.
- **Bitstream parsers.** Each one takes the file content as `str` or `bytes` and raises `fpgaloader.bitstream.BitstreamError` on malformed input.
  - `fsparser.FsParser` reads Gowin `.fs` files. It gives the header fields (`header`, `header_value(key)`), the raw data (`bit_data`) and the configuration data checksum (`checksum`).
  - `feaparser.FeaParser` reads MachXO3D `.fea` files. It gives `features_row`, `feabits` and `describe()`.
  - `ihexparser.IhexParser` reads Intel HEX files. It gives a flat image in `bit_data` and runs of consecutive addresses in `sections`, a list of `DataSection`.
  - `jedparser.JedParser` reads JEDEC fuse maps. It gives `sections`, a list of `JedSection`, the `fuselist` and the header fields, checks the checksum and the fuse count, and offers `describe()`.
  - `bitstream.reverse_byte` and `bitstream.bits_to_int` are small helpers shared by the parsers.
- **Protocol engines**
  - `mpsse.MpsseEngine` buffers MPSSE commands and programs the TCK divisor (`set_clk_freq`, see also `compute_prescaler`). It also gives GPIO access: `gpio_get`, `gpio_set`, `gpio_clear`, `gpio_write`, direction setters, and a `*_half` variant of each for a single bank.
  - `jtag_mpsse.FtdiJtagMpsse` shifts TMS/TDI and reads TDO over MPSSE: `write_tms`, `write_tdi`, `write_tms_tdi` and `toggle_clk`.
  - `jtag_bitbang.FtdiJtagBitbang` does the same job with FTDI bit-bang mode, for boards such as `ulx3s`.
  - `ftdispi.FtdiSpi` is an SPI master with a GPIO chip select. It offers SPI modes 0 to 3, `spi_put`, `spi_put_raw`, `write_then_read` and `spi_wait`. `spi_wait` raises `TimeoutError` when the wanted status never comes.

## Installation

```
pip install .
```

With the test dependencies:

```
pip install .[test]
```

## Examples

Look up a board and a flash chip:

```python
from fpgaloader.boards import get_board
from fpgaloader.flashdb import lookup_flash

board = get_board("arty_a7_35t")
print(board.fpga_part, board.cable_name, board.default_freq)

flash = lookup_flash(0xEF4018)
print(flash.manufacturer, flash.model, flash.nr_sector)
```

Parse a Gowin bitstream:

```python
from pathlib import Path
from fpgaloader.fsparser import FsParser

parser = FsParser(Path("design.fs").read_text(), reverse_byte=True, verbose=False)
parser.parse()
print(parser.header_value("idcode"), hex(parser.checksum))
```

Parse a JEDEC file:

```python
from pathlib import Path
from fpgaloader.jedparser import JedParser

jed = JedParser(Path("design.jed").read_bytes(), verbose=False)
jed.parse()
print(jed.describe())
```

Drive GPIOs through a transport. The transport here is an in-memory stand-in:

```python
from fpgaloader.mpsse import BitConfig, ChipType, MpsseEngine, Transport

class MemoryTransport(Transport):
    chip_type = ChipType.FT2232H
    max_packet_size = 512

    def __init__(self):
        self.sent = bytearray()

    def write_data(self, data):
        self.sent += data
        return len(data)

    def read_data(self, length):
        return bytes(length)

    def usb_reset(self): pass
    def set_bitmode(self, bitmask, mode): pass
    def purge_buffers(self): pass
    def set_latency_timer(self, latency): pass
    def set_chunksize(self, size): pass
    def set_baudrate(self, baudrate): return 0

transport = MemoryTransport()
engine = MpsseEngine(transport, BitConfig(bit_low_dir=0x0B), 6_000_000)
engine.gpio_set(0x0008)
print(transport.sent.hex())   # 800808: SET_BITS_LOW, value, direction
```

## What the package does not do

- **No USB access.** The engines never open a device. Every byte goes through a `fpgaloader.mpsse.Transport` object that you supply: an FTDI driver wrapper of your own, or an in-memory fake for tests.
- **No programming flow.** The package does not erase, program or verify an FPGA or its SPI flash. Nothing drives a JTAG TAP state machine either. It gives the parsers, the databases and the cable-level engines those flows are built on.
- **No command-line tool.** The package installs no command. It is a library.