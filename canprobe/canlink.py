"""CAN device configuration carried over rtnetlink."""

from __future__ import annotations

import dataclasses
import struct
from dataclasses import dataclass
from enum import IntEnum, IntFlag

_BITTIMING = struct.Struct("=8I")
_BITTIMING_CONST = struct.Struct("=16s8I")
_BERR_COUNTER = struct.Struct("=HH")
_DEVICE_STATS = struct.Struct("=6I")

CAN_BITTIMING_SIZE = _BITTIMING.size
CAN_BITTIMING_CONST_SIZE = _BITTIMING_CONST.size
CAN_BERR_COUNTER_SIZE = _BERR_COUNTER.size
CAN_DEVICE_STATS_SIZE = _DEVICE_STATS.size
CAN_CONTROLLER_NAME_SIZE = 16

CAN_TERMINATION_DISABLED = 0

# Transmitter delay compensation attributes (nested in IFLA_CAN_TDC).
IFLA_CAN_TDC_UNSPEC = 0
IFLA_CAN_TDC_TDCV_MIN = 1
IFLA_CAN_TDC_TDCV_MAX = 2
IFLA_CAN_TDC_TDCO_MIN = 3
IFLA_CAN_TDC_TDCO_MAX = 4
IFLA_CAN_TDC_TDCF_MIN = 5
IFLA_CAN_TDC_TDCF_MAX = 6
IFLA_CAN_TDC_TDCV = 7
IFLA_CAN_TDC_TDCO = 8
IFLA_CAN_TDC_TDCF = 9
IFLA_CAN_TDC_MAX = 9

# Extended controller mode attributes (nested in IFLA_CAN_CTRLMODE_EXT).
IFLA_CAN_CTRLMODE_UNSPEC = 0
IFLA_CAN_CTRLMODE_SUPPORTED = 1
IFLA_CAN_CTRLMODE_MAX = 1

# Link info attributes of vxcan tunnels.
VXCAN_INFO_UNSPEC = 0
VXCAN_INFO_PEER = 1
VXCAN_INFO_MAX = 1


class CanState(IntEnum):
    """Operational and error states of a CAN controller."""

    ERROR_ACTIVE = 0
    ERROR_WARNING = 1
    ERROR_PASSIVE = 2
    BUS_OFF = 3
    STOPPED = 4
    SLEEPING = 5


class CtrlMode(IntFlag):
    """Controller mode flags."""

    LOOPBACK = 0x01
    LISTENONLY = 0x02
    THREE_SAMPLES = 0x04
    ONE_SHOT = 0x08
    BERR_REPORTING = 0x10
    FD = 0x20
    PRESUME_ACK = 0x40
    FD_NON_ISO = 0x80
    CC_LEN8_DLC = 0x100
    TDC_AUTO = 0x200
    TDC_MANUAL = 0x400


class CanLinkAttr(IntEnum):
    """Netlink attributes of a CAN device."""

    UNSPEC = 0
    BITTIMING = 1
    BITTIMING_CONST = 2
    CLOCK = 3
    STATE = 4
    CTRLMODE = 5
    RESTART_MS = 6
    RESTART = 7
    BERR_COUNTER = 8
    DATA_BITTIMING = 9
    DATA_BITTIMING_CONST = 10
    TERMINATION = 11
    TERMINATION_CONST = 12
    BITRATE_CONST = 13
    DATA_BITRATE_CONST = 14
    BITRATE_MAX = 15
    TDC = 16
    CTRLMODE_EXT = 17


IFLA_CAN_MAX = CanLinkAttr.CTRLMODE_EXT


def _check_fields(obj, bits: int, skip=()) -> None:
    for field in dataclasses.fields(obj):
        if field.name in skip:
            continue
        value = getattr(obj, field.name)
        if not 0 <= value < (1 << bits):
            raise ValueError(f"{field.name} {value} does not fit in {bits} bits")


def _check_size(what: str, data: bytes, size: int) -> None:
    if len(data) != size:
        raise ValueError(f"{what} takes {size} bytes, got {len(data)}")


@dataclass(frozen=True)
class CanBittiming:
    """Bit timing parameters of a CAN controller."""

    bitrate: int = 0
    sample_point: int = 0
    tq: int = 0
    prop_seg: int = 0
    phase_seg1: int = 0
    phase_seg2: int = 0
    sjw: int = 0
    brp: int = 0

    def __post_init__(self) -> None:
        _check_fields(self, 32)

    def pack(self) -> bytes:
        """Return the parameters in the kernel's struct can_bittiming layout."""
        return _BITTIMING.pack(*dataclasses.astuple(self))

    @classmethod
    def unpack(cls, data: bytes) -> "CanBittiming":
        """Build parameters from a struct can_bittiming buffer."""
        _check_size("can_bittiming", data, CAN_BITTIMING_SIZE)
        return cls(*_BITTIMING.unpack(data))


@dataclass(frozen=True)
class CanBittimingConst:
    """Hardware limits used to calculate and check bit timing."""

    name: str = ""
    tseg1_min: int = 0
    tseg1_max: int = 0
    tseg2_min: int = 0
    tseg2_max: int = 0
    sjw_max: int = 0
    brp_min: int = 0
    brp_max: int = 0
    brp_inc: int = 0

    def __post_init__(self) -> None:
        encoded = self.name.encode("ascii")
        if len(encoded) >= CAN_CONTROLLER_NAME_SIZE:
            raise ValueError(
                f"controller name must be shorter than {CAN_CONTROLLER_NAME_SIZE} bytes"
            )
        _check_fields(self, 32, skip=("name",))

    def pack(self) -> bytes:
        """Return the limits in the kernel's struct can_bittiming_const layout."""
        values = dataclasses.astuple(self)
        return _BITTIMING_CONST.pack(self.name.encode("ascii"), *values[1:])

    @classmethod
    def unpack(cls, data: bytes) -> "CanBittimingConst":
        """Build limits from a struct can_bittiming_const buffer."""
        _check_size("can_bittiming_const", data, CAN_BITTIMING_CONST_SIZE)
        raw_name, *limits = _BITTIMING_CONST.unpack(data)
        name = raw_name.split(b"\x00", 1)[0].decode("ascii", errors="replace")
        return cls(name, *limits)


@dataclass(frozen=True)
class CanBerrCounter:
    """Transmit and receive error counters."""

    txerr: int = 0
    rxerr: int = 0

    def __post_init__(self) -> None:
        _check_fields(self, 16)

    def pack(self) -> bytes:
        """Return the counters in the kernel's struct can_berr_counter layout."""
        return _BERR_COUNTER.pack(self.txerr, self.rxerr)

    @classmethod
    def unpack(cls, data: bytes) -> "CanBerrCounter":
        """Build counters from a struct can_berr_counter buffer."""
        _check_size("can_berr_counter", data, CAN_BERR_COUNTER_SIZE)
        return cls(*_BERR_COUNTER.unpack(data))


@dataclass(frozen=True)
class CanDeviceStats:
    """CAN specific device statistics."""

    bus_error: int = 0
    error_warning: int = 0
    error_passive: int = 0
    bus_off: int = 0
    arbitration_lost: int = 0
    restarts: int = 0

    def __post_init__(self) -> None:
        _check_fields(self, 32)

    @classmethod
    def unpack(cls, data: bytes) -> "CanDeviceStats":
        """Build statistics from a struct can_device_stats buffer."""
        _check_size("can_device_stats", data, CAN_DEVICE_STATS_SIZE)
        return cls(*_DEVICE_STATS.unpack(data))