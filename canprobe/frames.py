"""CAN frame, CAN FD frame, CAN XL frame and raw socket filter structures."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, List

# Flags carried in the upper bits of a CAN identifier.
CAN_EFF_FLAG = 0x80000000
CAN_RTR_FLAG = 0x40000000
CAN_ERR_FLAG = 0x20000000

# Valid identifier bits per frame format.
CAN_SFF_MASK = 0x000007FF
CAN_EFF_MASK = 0x1FFFFFFF
CAN_ERR_MASK = 0x1FFFFFFF
CANXL_PRIO_MASK = CAN_SFF_MASK

CAN_SFF_ID_BITS = 11
CAN_EFF_ID_BITS = 29
CANXL_PRIO_BITS = CAN_SFF_ID_BITS

# Payload lengths and DLC ranges.
CAN_MAX_DLC = 8
CAN_MAX_RAW_DLC = 15
CAN_MAX_DLEN = 8
CANFD_MAX_DLC = 15
CANFD_MAX_DLEN = 64
CANXL_MIN_DLC = 0
CANXL_MAX_DLC = 2047
CANXL_MAX_DLC_MASK = 0x07FF
CANXL_MIN_DLEN = 1
CANXL_MAX_DLEN = 2048

# CAN FD frame flags.
CANFD_BRS = 0x01
CANFD_ESI = 0x02
CANFD_FDF = 0x04

# CAN XL frame flags.
CANXL_XLF = 0x80
CANXL_SEC = 0x01

_CAN_STRUCT = struct.Struct("=IBBBB8s")
_CANFD_STRUCT = struct.Struct("=IBBBB64s")
_CANXL_HEADER = struct.Struct("=IBBHI")
_FILTER_STRUCT = struct.Struct("=II")

CAN_MTU = _CAN_STRUCT.size
CANFD_MTU = _CANFD_STRUCT.size
CANXL_HDR_SIZE = _CANXL_HEADER.size
CANXL_MTU = CANXL_HDR_SIZE + CANXL_MAX_DLEN
CANXL_MIN_MTU = CANXL_HDR_SIZE + 64
CANXL_MAX_MTU = CANXL_MTU

SOL_CAN_BASE = 100
CAN_NPROTO = 8

CAN_INV_FILTER = 0x20000000
CAN_RAW_FILTER_MAX = 512
CAN_FILTER_SIZE = _FILTER_STRUCT.size

SCM_CAN_RAW_ERRQUEUE = 1


class CanProtocol(IntEnum):
    """Protocols of the CAN protocol family."""

    RAW = 1
    BCM = 2
    TP16 = 3
    TP20 = 4
    MCNET = 5
    ISOTP = 6
    J1939 = 7


SOL_CAN_RAW = SOL_CAN_BASE + CanProtocol.RAW


class RawOption(IntEnum):
    """Socket options of raw CAN sockets (level SOL_CAN_RAW)."""

    FILTER = 1
    ERR_FILTER = 2
    LOOPBACK = 3
    RECV_OWN_MSGS = 4
    FD_FRAMES = 5
    JOIN_FILTERS = 6
    XL_FRAMES = 7


def _check_u32(name: str, value: int) -> None:
    if not 0 <= value <= 0xFFFFFFFF:
        raise ValueError(f"{name} {value:#x} does not fit in 32 bits")


def _check_u8(name: str, value: int) -> None:
    if not 0 <= value <= 0xFF:
        raise ValueError(f"{name} {value} does not fit in 8 bits")


class _IdentifierMixin:
    can_id: int

    @property
    def is_extended(self) -> bool:
        """True for a 29 bit identifier."""
        return bool(self.can_id & CAN_EFF_FLAG)

    @property
    def is_remote(self) -> bool:
        """True for a remote transmission request."""
        return bool(self.can_id & CAN_RTR_FLAG)

    @property
    def is_error(self) -> bool:
        """True for an error message frame."""
        return bool(self.can_id & CAN_ERR_FLAG)

    @property
    def arbitration_id(self) -> int:
        """The identifier without flag bits."""
        mask = CAN_EFF_MASK if self.is_extended else CAN_SFF_MASK
        return self.can_id & mask


@dataclass(frozen=True)
class CanFrame(_IdentifierMixin):
    """A Classical CAN frame with up to 8 bytes of payload."""

    can_id: int = 0
    data: bytes = b""
    len8_dlc: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "data", bytes(self.data))
        _check_u32("can_id", self.can_id)
        if len(self.data) > CAN_MAX_DLEN:
            raise ValueError(
                f"CAN frame payload of {len(self.data)} bytes exceeds {CAN_MAX_DLEN}"
            )
        if self.len8_dlc and not (
            CAN_MAX_DLC < self.len8_dlc <= CAN_MAX_RAW_DLC
            and len(self.data) == CAN_MAX_DLEN
        ):
            raise ValueError(
                f"len8_dlc {self.len8_dlc} requires 8 data bytes and a value of 9..15"
            )

    @property
    def dlc(self) -> int:
        """Payload length in bytes."""
        return len(self.data)

    def pack(self) -> bytes:
        """Return the frame in the kernel's struct can_frame layout."""
        return _CAN_STRUCT.pack(
            self.can_id, len(self.data), 0, 0, self.len8_dlc, self.data
        )

    @classmethod
    def unpack(cls, data: bytes) -> "CanFrame":
        """Build a frame from a struct can_frame buffer."""
        if len(data) < CAN_MTU:
            raise ValueError("incomplete CAN frame")
        can_id, length, _pad, _res0, len8_dlc, payload = _CAN_STRUCT.unpack_from(data)
        if length > CAN_MAX_DLEN:
            raise ValueError(f"invalid CAN frame length {length}")
        return cls(can_id, payload[:length], len8_dlc)


@dataclass(frozen=True)
class CanFdFrame(_IdentifierMixin):
    """A CAN FD frame with up to 64 bytes of payload."""

    can_id: int = 0
    data: bytes = b""
    flags: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "data", bytes(self.data))
        _check_u32("can_id", self.can_id)
        _check_u8("flags", self.flags)
        if len(self.data) > CANFD_MAX_DLEN:
            raise ValueError(
                f"CAN FD frame payload of {len(self.data)} bytes exceeds {CANFD_MAX_DLEN}"
            )

    def pack(self) -> bytes:
        """Return the frame in the kernel's struct canfd_frame layout."""
        return _CANFD_STRUCT.pack(
            self.can_id, len(self.data), self.flags, 0, 0, self.data
        )

    @classmethod
    def unpack(cls, data: bytes) -> "CanFdFrame":
        """Build a frame from a struct canfd_frame buffer."""
        if len(data) < CANFD_MTU:
            raise ValueError("incomplete CAN FD frame")
        can_id, length, flags, _res0, _res1, payload = _CANFD_STRUCT.unpack_from(data)
        if length > CANFD_MAX_DLEN:
            raise ValueError(f"invalid CAN FD frame length {length}")
        return cls(can_id, payload[:length], flags)


@dataclass(frozen=True)
class CanXlFrame:
    """A CAN XL frame with 1 to 2048 bytes of payload."""

    prio: int = 0
    data: bytes = b"\x00"
    flags: int = CANXL_XLF
    sdt: int = 0
    af: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "data", bytes(self.data))
        if self.prio & ~CANXL_PRIO_MASK or self.prio < 0:
            raise ValueError(f"CAN XL priority {self.prio:#x} exceeds 11 bits")
        _check_u8("flags", self.flags)
        _check_u8("sdt", self.sdt)
        _check_u32("af", self.af)
        if not CANXL_MIN_DLEN <= len(self.data) <= CANXL_MAX_DLEN:
            raise ValueError(
                f"CAN XL payload of {len(self.data)} bytes outside "
                f"{CANXL_MIN_DLEN}..{CANXL_MAX_DLEN}"
            )

    def pack(self) -> bytes:
        """Return the header followed by exactly the payload bytes."""
        header = _CANXL_HEADER.pack(
            self.prio, self.flags, self.sdt, len(self.data), self.af
        )
        return header + self.data

    @classmethod
    def unpack(cls, data: bytes) -> "CanXlFrame":
        """Build a frame from a struct canxl_frame buffer."""
        if len(data) < CANXL_HDR_SIZE:
            raise ValueError("incomplete CAN XL frame header")
        prio, flags, sdt, length, af = _CANXL_HEADER.unpack_from(data)
        if not flags & CANXL_XLF:
            raise ValueError("CAN XL frame without XLF flag")
        if not CANXL_MIN_DLEN <= length <= CANXL_MAX_DLEN:
            raise ValueError(f"invalid CAN XL frame length {length}")
        payload = bytes(data[CANXL_HDR_SIZE:CANXL_HDR_SIZE + length])
        if len(payload) < length:
            raise ValueError("incomplete CAN XL frame")
        return cls(prio, payload, flags, sdt, af)


@dataclass(frozen=True)
class CanFilter:
    """An identifier filter: matches when received & mask == can_id & mask."""

    can_id: int
    can_mask: int

    def __post_init__(self) -> None:
        _check_u32("can_id", self.can_id)
        _check_u32("can_mask", self.can_mask)

    @property
    def inverted(self) -> bool:
        """True when the filter passes frames that do not match."""
        return bool(self.can_id & CAN_INV_FILTER)

    def matches(self, can_id: int) -> bool:
        """Tell whether a received identifier passes this filter."""
        wanted = self.can_id & ~CAN_INV_FILTER
        hit = (can_id & self.can_mask) == (wanted & self.can_mask)
        return hit != self.inverted

    def pack(self) -> bytes:
        """Return the filter in the kernel's struct can_filter layout."""
        return _FILTER_STRUCT.pack(self.can_id, self.can_mask)

    @classmethod
    def unpack(cls, data: bytes) -> "CanFilter":
        """Build a filter from an 8 byte struct can_filter."""
        if len(data) != CAN_FILTER_SIZE:
            raise ValueError(f"a CAN filter takes {CAN_FILTER_SIZE} bytes, got {len(data)}")
        return cls(*_FILTER_STRUCT.unpack(data))


def pack_filters(filters: Iterable[CanFilter]) -> bytes:
    """Pack filters into the buffer that CAN_RAW_FILTER expects."""
    filters = list(filters)
    if len(filters) > CAN_RAW_FILTER_MAX:
        raise ValueError(
            f"{len(filters)} filters exceed the maximum of {CAN_RAW_FILTER_MAX}"
        )
    return b"".join(f.pack() for f in filters)


def unpack_filters(data: bytes) -> List[CanFilter]:
    """Split a CAN_RAW_FILTER buffer into filters."""
    if len(data) % CAN_FILTER_SIZE:
        raise ValueError(
            f"filter buffer of {len(data)} bytes is not a multiple of {CAN_FILTER_SIZE}"
        )
    return [CanFilter(*fields) for fields in _FILTER_STRUCT.iter_unpack(data)]


def max_payload_for_mtu(mtu: int) -> int:
    """Return the largest payload a frame of the given size can carry."""
    if mtu == CAN_MTU:
        return CAN_MAX_DLEN
    if mtu == CANFD_MTU:
        return CANFD_MAX_DLEN
    if CANXL_MIN_MTU <= mtu <= CANXL_MAX_MTU:
        return mtu - CANXL_HDR_SIZE
    raise ValueError("incomplete CAN frame")