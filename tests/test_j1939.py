import pytest

from canprobe.j1939 import (
    J1939_FILTER_SIZE,
    J1939_NO_PGN,
    J1939_PGN_ADDRESS_CLAIMED,
    J1939_PGN_ADDRESS_COMMANDED,
    J1939_PGN_REQUEST,
    J1939Filter,
    J1939Name,
    pgn_is_pdu1,
)


@pytest.mark.parametrize(
    "value", [0, 1 << 63, (1 << 64) - 1, 0x8000_0000_0001_2345, 1 << 48]
)
def test_name_round_trip(value):
    assert J1939Name.from_int(value).to_int() == value


def test_name_fields_from_int():
    name = J1939Name.from_int((1 << 63) | 0x1FFFFF)
    assert name.arbitrary_address_capable is True
    assert name.identity_number == 0x1FFFFF
    assert name.manufacturer_code == 0
    assert name.industry_group == 0


def test_name_industry_group_lands_in_top_bits():
    value = J1939Name(industry_group=7).to_int()
    assert value >> 60 == 7
    assert J1939Name.from_int(value).industry_group == 7


def test_name_field_out_of_range():
    with pytest.raises(ValueError):
        J1939Name(identity_number=1 << 21)
    with pytest.raises(ValueError):
        J1939Name(ecu_instance=8)


@pytest.mark.parametrize("value", [-1, 1 << 64])
def test_name_from_int_rejects_out_of_range(value):
    with pytest.raises(ValueError):
        J1939Name.from_int(value)


def test_filter_round_trip():
    flt = J1939Filter(
        name=0x1234_5678_9ABC_DEF0,
        name_mask=(1 << 64) - 1,
        pgn=J1939_PGN_REQUEST,
        pgn_mask=0x3FFFF,
        addr=0x80,
        addr_mask=0xFF,
    )
    packed = flt.pack()
    assert len(packed) == J1939_FILTER_SIZE
    assert J1939Filter.unpack(packed) == flt


def test_filter_unpack_wrong_size():
    with pytest.raises(ValueError):
        J1939Filter.unpack(b"\x00" * (J1939_FILTER_SIZE - 1))


def test_filter_rejects_large_address():
    with pytest.raises(ValueError):
        J1939Filter(addr=256)


@pytest.mark.parametrize(
    "pgn, expected",
    [
        (J1939_PGN_REQUEST, True),
        (J1939_PGN_ADDRESS_CLAIMED, True),
        (J1939_PGN_ADDRESS_COMMANDED, False),
    ],
)
def test_pgn_is_pdu1(pgn, expected):
    assert pgn_is_pdu1(pgn) is expected


def test_pgn_is_pdu1_rejects_no_pgn():
    with pytest.raises(ValueError):
        pgn_is_pdu1(J1939_NO_PGN)