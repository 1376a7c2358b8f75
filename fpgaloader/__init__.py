"""FPGA bitstream parsers, board and SPI flash databases, and FTDI MPSSE/bitbang JTAG and SPI engines."""

__version__ = "0.1.0"