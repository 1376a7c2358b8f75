[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fpgaloader"
version = "0.1.0"
description = "FPGA bitstream parsers, board and SPI flash databases, and FTDI MPSSE/bitbang JTAG and SPI protocol engines"
requires-python = ">=3.10"
dependencies = []
keywords = ["fpga", "jtag", "spi", "ftdi", "mpsse", "bitstream", "jedec", "intel-hex", "gowin"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Embedded Systems",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["fpgaloader"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
