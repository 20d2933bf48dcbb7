"""SAE J1939 addressing, NAME fields and socket filters."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum

from .frames import SOL_CAN_BASE, CanProtocol

J1939_MAX_UNICAST_ADDR = 0xFD
J1939_IDLE_ADDR = 0xFE
J1939_NO_ADDR = 0xFF
J1939_NO_NAME = 0
J1939_PGN_REQUEST = 0x0EA00
J1939_PGN_ADDRESS_CLAIMED = 0x0EE00
J1939_PGN_ADDRESS_COMMANDED = 0x0FED8
J1939_PGN_PDU1_MAX = 0x3FF00
J1939_PGN_MAX = 0x3FFFF
J1939_NO_PGN = 0x40000

J1939_FILTER_MAX = 512

SOL_CAN_J1939 = SOL_CAN_BASE + CanProtocol.J1939

# Control message types.
SCM_J1939_DEST_ADDR = 1
SCM_J1939_DEST_NAME = 2
SCM_J1939_PRIO = 3
SCM_J1939_ERRQUEUE = 4

# Netlink attributes reported with error queue messages.
J1939_NLA_PAD = 0
J1939_NLA_BYTES_ACKED = 1
J1939_NLA_TOTAL_SIZE = 2
J1939_NLA_PGN = 3
J1939_NLA_SRC_NAME = 4
J1939_NLA_DEST_NAME = 5
J1939_NLA_SRC_ADDR = 6
J1939_NLA_DEST_ADDR = 7

# Values of sock_extended_err.ee_info for J1939 sockets.
J1939_EE_INFO_NONE = 0
J1939_EE_INFO_TX_ABORT = 1
J1939_EE_INFO_RX_RTS = 2
J1939_EE_INFO_RX_DPO = 3
J1939_EE_INFO_RX_ABORT = 4

# Native layout; the trailing "0Q" pads the struct to its 64 bit alignment.
_FILTER = struct.Struct("@QQIIBB0Q")
J1939_FILTER_SIZE = _FILTER.size


class J1939Option(IntEnum):
    """Socket options at level SOL_CAN_J1939."""

    FILTER = 1
    PROMISC = 2
    SEND_PRIO = 3
    ERRQUEUE = 4


# (field, first bit, width) of the 64 bit NAME.
_NAME_FIELDS = (
    ("identity_number", 0, 21),
    ("manufacturer_code", 21, 11),
    ("ecu_instance", 32, 3),
    ("function_instance", 35, 5),
    ("function", 40, 8),
    ("reserved", 48, 1),
    ("vehicle_system", 49, 7),
    ("vehicle_system_instance", 56, 4),
    ("industry_group", 60, 3),
    ("arbitrary_address_capable", 63, 1),
)

_U64_MAX = (1 << 64) - 1


@dataclass(frozen=True)
class J1939Name:
    """The fields of a 64 bit J1939 NAME."""

    identity_number: int = 0
    manufacturer_code: int = 0
    ecu_instance: int = 0
    function_instance: int = 0
    function: int = 0
    reserved: int = 0
    vehicle_system: int = 0
    vehicle_system_instance: int = 0
    industry_group: int = 0
    arbitrary_address_capable: bool = False

    def __post_init__(self) -> None:
        for name, _shift, width in _NAME_FIELDS:
            value = int(getattr(self, name))
            if not 0 <= value < (1 << width):
                raise ValueError(f"{name} {value} does not fit in {width} bits")
        object.__setattr__(
            self, "arbitrary_address_capable", bool(self.arbitrary_address_capable)
        )

    @classmethod
    def from_int(cls, value: int) -> "J1939Name":
        """Split a 64 bit NAME into its fields."""
        if not 0 <= value <= _U64_MAX:
            raise ValueError(f"NAME {value} does not fit in 64 bits")
        fields = {
            name: (value >> shift) & ((1 << width) - 1)
            for name, shift, width in _NAME_FIELDS
        }
        fields["arbitrary_address_capable"] = bool(fields["arbitrary_address_capable"])
        return cls(**fields)

    def to_int(self) -> int:
        """Combine the fields into a 64 bit NAME."""
        value = 0
        for name, shift, _width in _NAME_FIELDS:
            value |= int(getattr(self, name)) << shift
        return value


def _check_range(name: str, value: int, bits: int) -> None:
    if not 0 <= value < (1 << bits):
        raise ValueError(f"{name} {value} does not fit in {bits} bits")


@dataclass(frozen=True)
class J1939Filter:
    """A receive filter on NAME, PGN and address, each with its mask."""

    name: int = 0
    name_mask: int = 0
    pgn: int = 0
    pgn_mask: int = 0
    addr: int = 0
    addr_mask: int = 0

    def __post_init__(self) -> None:
        _check_range("name", self.name, 64)
        _check_range("name_mask", self.name_mask, 64)
        _check_range("pgn", self.pgn, 32)
        _check_range("pgn_mask", self.pgn_mask, 32)
        _check_range("addr", self.addr, 8)
        _check_range("addr_mask", self.addr_mask, 8)

    def pack(self) -> bytes:
        """Return the filter in the kernel's struct j1939_filter layout."""
        return _FILTER.pack(
            self.name, self.name_mask, self.pgn, self.pgn_mask, self.addr, self.addr_mask
        )

    @classmethod
    def unpack(cls, data: bytes) -> "J1939Filter":
        """Build a filter from a struct j1939_filter buffer."""
        if len(data) != J1939_FILTER_SIZE:
            raise ValueError(
                f"a J1939 filter takes {J1939_FILTER_SIZE} bytes, got {len(data)}"
            )
        return cls(*_FILTER.unpack(data))


def pgn_is_pdu1(pgn: int) -> bool:
    """Tell whether a PGN uses the PDU1 (destination specific) format."""
    if not 0 <= pgn <= J1939_PGN_MAX:
        raise ValueError(f"PGN {pgn:#x} outside 0..{J1939_PGN_MAX:#x}")
    return (pgn & 0xFF00) < 0xF000