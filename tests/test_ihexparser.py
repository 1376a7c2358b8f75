import pytest

from fpgaloader.bitstream import BitstreamError, reverse_byte
from fpgaloader.ihexparser import DataSection, IhexParser

LINE1 = ":10010000214601360121470136007EFE09D2190140"
LINE2 = ":100110002146017E17C20001FF5F16002148011928"
LINE3 = ":0300300002337A1E"
EOF = ":00000001FF"

DATA1 = bytes.fromhex("214601360121470136007EFE09D21901")
DATA2 = bytes.fromhex("2146017E17C20001FF5F160021480119")
DATA3 = bytes.fromhex("02337A")


def _parse(*lines, reverse=False, sep="\n"):
    parser = IhexParser(sep.join(lines) + sep, reverse, False)
    parser.parse()
    return parser


def test_single_record():
    parser = _parse(LINE1, EOF)
    assert parser.sections == [DataSection(0x0100, len(DATA1), DATA1)]
    assert parser.bit_length == len(DATA1) * 8
    assert parser.bit_data[0x100:0x100 + len(DATA1)] == DATA1


def test_contiguous_records_share_section():
    parser = _parse(LINE1, LINE2, EOF)
    assert len(parser.sections) == 1
    assert parser.sections[0].addr == 0x0100
    assert parser.sections[0].data == DATA1 + DATA2
    assert parser.sections[0].length == len(DATA1) + len(DATA2)


def test_address_gap_starts_new_section():
    parser = _parse(LINE1, LINE3, EOF)
    assert [s.addr for s in parser.sections] == [0x0100, 0x0030]
    assert parser.sections[1].data == DATA3
    assert parser.bit_data[0x30:0x33] == DATA3


def test_reverse_order():
    parser = _parse(LINE3, EOF, reverse=True)
    assert parser.sections[0].data == bytes(reverse_byte(b) for b in DATA3)


def test_comments_and_crlf():
    parser = _parse("# a comment", LINE3, EOF, sep="\r\n")
    assert parser.sections[0].data == DATA3


def test_bytes_input():
    parser = IhexParser(("\n".join([LINE3, EOF]) + "\n").encode(), False, False)
    parser.parse()
    assert parser.sections[0].data == DATA3


def test_missing_eof_keeps_image_but_no_section():
    parser = _parse(LINE3)
    assert parser.sections == []
    assert parser.bit_data[0x30:0x33] == DATA3


def test_wrong_checksum():
    with pytest.raises(BitstreamError):
        _parse(":0300300002337A1F", EOF)


def test_missing_colon():
    with pytest.raises(BitstreamError):
        _parse("0300300002337A1E", EOF)


def test_unknown_record_type():
    with pytest.raises(BitstreamError):
        _parse(":020000021000EC", EOF)


def test_truncated_record():
    with pytest.raises(BitstreamError):
        _parse(":03003000", EOF)