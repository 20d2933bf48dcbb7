import struct

import pytest

from canprobe.tstamp import (
    HWTSTAMP_CONFIG_SIZE,
    HWTSTAMP_FILTER_ALL,
    HWTSTAMP_TX_ON,
    SCM_TIMESTAMPING_SIZE,
    SOCK_EXTENDED_ERR_SIZE,
    ErrOrigin,
    HwTstampConfig,
    SockExtendedErr,
    unpack_scm_timestamping,
)


def test_extended_err_round_trip():
    entry = SockExtendedErr(105, ErrOrigin.LOCAL, 1, 2, 3, 4)
    packed = entry.pack()
    assert len(packed) == SOCK_EXTENDED_ERR_SIZE
    assert SockExtendedErr.unpack(packed) == entry


def test_extended_err_ignores_offender():
    entry = SockExtendedErr(ee_errno=42, ee_origin=ErrOrigin.TXSTATUS, ee_info=7)
    assert SockExtendedErr.unpack(entry.pack() + b"\xAA" * 16) == entry


def test_extended_err_short_buffer():
    with pytest.raises(ValueError):
        SockExtendedErr.unpack(b"\x00" * (SOCK_EXTENDED_ERR_SIZE - 1))


def test_extended_err_rejects_large_origin():
    with pytest.raises(ValueError):
        SockExtendedErr(ee_origin=256)


def test_timestamping_origin_packs_as_txstatus():
    packed = SockExtendedErr(ee_origin=ErrOrigin.TIMESTAMPING).pack()
    assert packed[4] == 4
    assert SockExtendedErr.unpack(packed).ee_origin == ErrOrigin.TXSTATUS


def test_hwtstamp_config_round_trip():
    config = HwTstampConfig(0, HWTSTAMP_TX_ON, HWTSTAMP_FILTER_ALL)
    packed = config.pack()
    assert len(packed) == HWTSTAMP_CONFIG_SIZE
    assert HwTstampConfig.unpack(packed) == config


def test_hwtstamp_config_rejects_overflow():
    with pytest.raises(ValueError):
        HwTstampConfig(flags=1 << 31)


def test_hwtstamp_config_unpack_wrong_size():
    with pytest.raises(ValueError):
        HwTstampConfig.unpack(b"\x00" * (HWTSTAMP_CONFIG_SIZE + 1))


def test_scm_timestamping():
    data = struct.pack("@llllll", 1, 5, 0, 0, 3, 0)
    software, _legacy, hardware = unpack_scm_timestamping(data)
    assert software == 1_000_000_005
    assert hardware == 3 * 10**9
    assert _legacy == 0


def test_scm_timestamping_wrong_size():
    with pytest.raises(ValueError):
        unpack_scm_timestamping(b"\x00" * (SCM_TIMESTAMPING_SIZE - 1))