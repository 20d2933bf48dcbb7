import struct

import pytest

from canprobe.canlink import (
    CAN_BERR_COUNTER_SIZE,
    CAN_BITTIMING_CONST_SIZE,
    CAN_BITTIMING_SIZE,
    CAN_DEVICE_STATS_SIZE,
    CanBerrCounter,
    CanBittiming,
    CanBittimingConst,
    CanDeviceStats,
    CanState,
    CtrlMode,
)


def test_bittiming_round_trip():
    timing = CanBittiming(500000, 875, 125, 6, 7, 2, 1, 4)
    packed = timing.pack()
    assert len(packed) == CAN_BITTIMING_SIZE
    assert CanBittiming.unpack(packed) == timing


def test_bittiming_rejects_large_value():
    with pytest.raises(ValueError):
        CanBittiming(bitrate=1 << 32)


def test_bittiming_unpack_wrong_size():
    with pytest.raises(ValueError):
        CanBittiming.unpack(b"\x00" * (CAN_BITTIMING_SIZE + 1))


def test_bittiming_const_round_trip():
    limits = CanBittimingConst("sja1000", 1, 16, 1, 8, 4, 1, 64, 1)
    packed = limits.pack()
    assert len(packed) == CAN_BITTIMING_CONST_SIZE
    assert packed.startswith(b"sja1000\x00")
    assert CanBittimingConst.unpack(packed) == limits


def test_bittiming_const_rejects_long_name():
    with pytest.raises(ValueError):
        CanBittimingConst("controller-name-x")


def test_berr_counter_round_trip():
    counter = CanBerrCounter(txerr=96, rxerr=128)
    packed = counter.pack()
    assert len(packed) == CAN_BERR_COUNTER_SIZE
    assert CanBerrCounter.unpack(packed) == counter


def test_berr_counter_rejects_overflow():
    with pytest.raises(ValueError):
        CanBerrCounter(txerr=70000)


def test_device_stats_unpack():
    values = (1, 2, 3, 4, 5, 6)
    stats = CanDeviceStats.unpack(struct.pack("=6I", *values))
    assert (
        stats.bus_error,
        stats.error_warning,
        stats.error_passive,
        stats.bus_off,
        stats.arbitration_lost,
        stats.restarts,
    ) == values


def test_device_stats_unpack_wrong_size():
    with pytest.raises(ValueError):
        CanDeviceStats.unpack(b"\x00" * (CAN_DEVICE_STATS_SIZE - 4))


def test_state_and_ctrlmode_values():
    assert CanState(3) is CanState.BUS_OFF
    assert CtrlMode(0x20) is CtrlMode.FD
    assert CtrlMode.FD in (CtrlMode.FD | CtrlMode.LISTENONLY)