"""Socket error queue entries and packet timestamping structures."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum, IntFlag
from typing import Tuple

_EXTENDED_ERR = struct.Struct("=IBBBBII")
_HWTSTAMP_CONFIG = struct.Struct("=iii")
_SCM_TIMESTAMPING = struct.Struct("@llllll")

SOCK_EXTENDED_ERR_SIZE = _EXTENDED_ERR.size
HWTSTAMP_CONFIG_SIZE = _HWTSTAMP_CONFIG.size
SCM_TIMESTAMPING_SIZE = _SCM_TIMESTAMPING.size

SO_EE_CODE_ZEROCOPY_COPIED = 1
SO_EE_CODE_TXTIME_INVALID_PARAM = 1
SO_EE_CODE_TXTIME_MISSED = 2

# Kind of timestamp reported in sock_extended_err.ee_info.
SCM_TSTAMP_SND = 0
SCM_TSTAMP_SCHED = 1
SCM_TSTAMP_ACK = 2

# hwtstamp_config.tx_type values.
HWTSTAMP_TX_OFF = 0
HWTSTAMP_TX_ON = 1
HWTSTAMP_TX_ONESTEP_SYNC = 2

# hwtstamp_config.rx_filter values.
HWTSTAMP_FILTER_NONE = 0
HWTSTAMP_FILTER_ALL = 1
HWTSTAMP_FILTER_SOME = 2
HWTSTAMP_FILTER_PTP_V1_L4_EVENT = 3
HWTSTAMP_FILTER_PTP_V1_L4_SYNC = 4
HWTSTAMP_FILTER_PTP_V1_L4_DELAY_REQ = 5
HWTSTAMP_FILTER_PTP_V2_L4_EVENT = 6
HWTSTAMP_FILTER_PTP_V2_L4_SYNC = 7
HWTSTAMP_FILTER_PTP_V2_L4_DELAY_REQ = 8
HWTSTAMP_FILTER_PTP_V2_L2_EVENT = 9
HWTSTAMP_FILTER_PTP_V2_L2_SYNC = 10
HWTSTAMP_FILTER_PTP_V2_L2_DELAY_REQ = 11
HWTSTAMP_FILTER_PTP_V2_EVENT = 12
HWTSTAMP_FILTER_PTP_V2_SYNC = 13
HWTSTAMP_FILTER_PTP_V2_DELAY_REQ = 14
HWTSTAMP_FILTER_NTP_ALL = 15

# SO_TXTIME flags.
SOF_TXTIME_DEADLINE_MODE = 1 << 0
SOF_TXTIME_REPORT_ERRORS = 1 << 1
SOF_TXTIME_FLAGS_LAST = SOF_TXTIME_REPORT_ERRORS
SOF_TXTIME_FLAGS_MASK = (SOF_TXTIME_FLAGS_LAST - 1) | SOF_TXTIME_FLAGS_LAST


class ErrOrigin(IntEnum):
    """Origin of an error queue entry."""

    NONE = 0
    LOCAL = 1
    ICMP = 2
    ICMP6 = 3
    TXSTATUS = 4
    ZEROCOPY = 5
    TXTIME = 6
    TIMESTAMPING = 4


class TimestampingFlag(IntFlag):
    """Bits of the SO_TIMESTAMPING socket option."""

    TX_HARDWARE = 1 << 0
    TX_SOFTWARE = 1 << 1
    RX_HARDWARE = 1 << 2
    RX_SOFTWARE = 1 << 3
    SOFTWARE = 1 << 4
    SYS_HARDWARE = 1 << 5
    RAW_HARDWARE = 1 << 6
    OPT_ID = 1 << 7
    TX_SCHED = 1 << 8
    TX_ACK = 1 << 9
    OPT_CMSG = 1 << 10
    OPT_TSONLY = 1 << 11
    OPT_STATS = 1 << 12
    OPT_PKTINFO = 1 << 13
    OPT_TX_SWHW = 1 << 14


SOF_TIMESTAMPING_LAST = TimestampingFlag.OPT_TX_SWHW
SOF_TIMESTAMPING_MASK = TimestampingFlag(
    (int(SOF_TIMESTAMPING_LAST) - 1) | int(SOF_TIMESTAMPING_LAST)
)
SOF_TIMESTAMPING_TX_RECORD_MASK = (
    TimestampingFlag.TX_HARDWARE
    | TimestampingFlag.TX_SOFTWARE
    | TimestampingFlag.TX_SCHED
    | TimestampingFlag.TX_ACK
)


def _check(name: str, value: int, bits: int) -> None:
    if not 0 <= value < (1 << bits):
        raise ValueError(f"{name} {value} does not fit in {bits} bits")


def _check_signed(name: str, value: int) -> None:
    if not -(1 << 31) <= value < (1 << 31):
        raise ValueError(f"{name} {value} does not fit in a signed 32 bit integer")


@dataclass(frozen=True)
class SockExtendedErr:
    """An entry read from a socket's error queue."""

    ee_errno: int = 0
    ee_origin: int = ErrOrigin.NONE
    ee_type: int = 0
    ee_code: int = 0
    ee_info: int = 0
    ee_data: int = 0

    def __post_init__(self) -> None:
        _check("ee_errno", self.ee_errno, 32)
        _check("ee_origin", int(self.ee_origin), 8)
        _check("ee_type", self.ee_type, 8)
        _check("ee_code", self.ee_code, 8)
        _check("ee_info", self.ee_info, 32)
        _check("ee_data", self.ee_data, 32)

    def pack(self) -> bytes:
        """Return the entry in the kernel's struct sock_extended_err layout."""
        return _EXTENDED_ERR.pack(
            self.ee_errno,
            int(self.ee_origin),
            self.ee_type,
            self.ee_code,
            0,
            self.ee_info,
            self.ee_data,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "SockExtendedErr":
        """Read an entry; an offender address may follow and is ignored."""
        if len(data) < SOCK_EXTENDED_ERR_SIZE:
            raise ValueError("incomplete sock_extended_err")
        errno_, origin, ee_type, code, _pad, info, ee_data = _EXTENDED_ERR.unpack_from(
            data
        )
        return cls(errno_, origin, ee_type, code, info, ee_data)


@dataclass(frozen=True)
class HwTstampConfig:
    """Hardware timestamping configuration of a network device."""

    flags: int = 0
    tx_type: int = HWTSTAMP_TX_OFF
    rx_filter: int = HWTSTAMP_FILTER_NONE

    def __post_init__(self) -> None:
        _check_signed("flags", self.flags)
        _check_signed("tx_type", self.tx_type)
        _check_signed("rx_filter", self.rx_filter)

    def pack(self) -> bytes:
        """Return the configuration in the kernel's struct hwtstamp_config layout."""
        return _HWTSTAMP_CONFIG.pack(self.flags, self.tx_type, self.rx_filter)

    @classmethod
    def unpack(cls, data: bytes) -> "HwTstampConfig":
        """Build a configuration from a struct hwtstamp_config buffer."""
        if len(data) != HWTSTAMP_CONFIG_SIZE:
            raise ValueError(
                f"hwtstamp_config takes {HWTSTAMP_CONFIG_SIZE} bytes, got {len(data)}"
            )
        return cls(*_HWTSTAMP_CONFIG.unpack(data))


def unpack_scm_timestamping(data: bytes) -> Tuple[int, int, int]:
    """Return the three timestamps of a SCM_TIMESTAMPING message in nanoseconds."""
    if len(data) != SCM_TIMESTAMPING_SIZE:
        raise ValueError(
            f"scm_timestamping takes {SCM_TIMESTAMPING_SIZE} bytes, got {len(data)}"
        )
    values = _SCM_TIMESTAMPING.unpack(data)
    return tuple(
        sec * 1_000_000_000 + nsec for sec, nsec in zip(values[0::2], values[1::2])
    )