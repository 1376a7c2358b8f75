import dataclasses

import pytest

from fpgaloader.flashdb import FLASHES, FlashInfo, TbRegister, lookup_flash


def test_winbond_entry():
    info = lookup_flash(0xEF4018)
    assert info.model == "W25Q128"
    assert info.manufacturer == "Winbond"
    assert info.nr_sector == 256
    assert info.tb_register == TbRegister.STATR
    assert info.bp_len == 3


def test_micron_fourth_bp_bit():
    info = lookup_flash(0x0020BA17)
    assert info.model == "N25Q64"
    assert info.bp_len == 4
    assert info.bp_offset[3] == 1 << 6


def test_spansion_configuration_register():
    info = lookup_flash(0x010219)
    assert info.model == "S25FL256S"
    assert info.tb_register == TbRegister.CONFR
    assert info.tb_otp is True
    assert info.subsector_erase is False


def test_sst26_without_sector_erase():
    info = lookup_flash(0xBF2642)
    assert info.model == "SST26VF032B"
    assert info.sector_erase is False
    assert info.bp_offset == (0, 0, 0, 0)


def test_unknown_id_returns_none():
    assert lookup_flash(0x123456) is None


@pytest.mark.parametrize("jedec_id", sorted(FLASHES))
def test_bp_len_matches_nonzero_offsets(jedec_id):
    info = lookup_flash(jedec_id)
    assert sum(1 for bit in info.bp_offset if bit) == info.bp_len
    assert len(info.bp_offset) == 4


def test_none_register_has_no_tb_offset():
    for info in FLASHES.values():
        if info.tb_register == TbRegister.NONER:
            assert info.tb_offset == 0
        else:
            assert info.tb_offset != 0


def test_flash_info_is_immutable():
    info = lookup_flash(0xEF4015)
    assert isinstance(info, FlashInfo)
    with pytest.raises(dataclasses.FrozenInstanceError):
        info.nr_sector = 1
    assert info.nr_sector == 32
    assert lookup_flash(0xEF4015).nr_sector == 32


def test_database_is_read_only():
    with pytest.raises(TypeError):
        FLASHES[0x000001] = lookup_flash(0xEF4015)
    assert lookup_flash(0x000001) is None