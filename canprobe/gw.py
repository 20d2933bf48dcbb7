"""CAN gateway routing messages, frame modifications and checksums."""

from __future__ import annotations

import dataclasses
import struct
from dataclasses import dataclass
from enum import IntEnum, IntFlag
from typing import Optional, Tuple, Union

from .frames import CAN_MTU, CANFD_MTU, CanFdFrame, CanFrame

AF_CAN = 29

_RTCANMSG = struct.Struct("=BBH")
_CSUM_XOR = struct.Struct("=bbbB")
_CSUM_CRC8 = struct.Struct("=bbbBB256sB20s")

CGW_MOD_FUNCS = 4
CGW_FRAME_MODS = 4
MAX_MODFUNCTIONS = CGW_MOD_FUNCS * CGW_FRAME_MODS

CGW_MODATTR_LEN = CAN_MTU + 1
CGW_FDMODATTR_LEN = CANFD_MTU + 1
CGW_CS_XOR_LEN = _CSUM_XOR.size
CGW_CS_CRC8_LEN = _CSUM_CRC8.size

CRC8_TABLE_SIZE = 256
CRC8_PROFILE_DATA_SIZE = 20


class GwType(IntEnum):
    """Gateway types."""

    UNSPEC = 0
    CAN_CAN = 1


CGW_TYPE_MAX = GwType.CAN_CAN


class GwAttr(IntEnum):
    """Netlink attribute types of a gateway rule."""

    UNSPEC = 0
    MOD_AND = 1
    MOD_OR = 2
    MOD_XOR = 3
    MOD_SET = 4
    CS_XOR = 5
    CS_CRC8 = 6
    HANDLED = 7
    DROPPED = 8
    SRC_IF = 9
    DST_IF = 10
    FILTER = 11
    DELETED = 12
    LIM_HOPS = 13
    MOD_UID = 14
    FDMOD_AND = 15
    FDMOD_OR = 16
    FDMOD_XOR = 17
    FDMOD_SET = 18


CGW_MAX = GwAttr.FDMOD_SET


class GwFlag(IntFlag):
    """Flags of a gateway rule."""

    CAN_ECHO = 0x01
    CAN_SRC_TSTAMP = 0x02
    CAN_IIF_TX_OK = 0x04
    CAN_FD = 0x08


class ModType(IntFlag):
    """Frame elements touched by a modification."""

    ID = 0x01
    DLC = 0x02
    LEN = 0x02
    DATA = 0x04
    FLAGS = 0x08


_MODTYPE_ALL = 0x0F


class Crc8Profile(IntEnum):
    """Profiles that feed additional data into a CRC8 checksum."""

    UNSPEC = 0
    ONE_U8 = 1
    SIXTEEN_U8 = 2
    SFFID_XOR = 3


CGW_CRC8PRF_MAX = Crc8Profile.SFFID_XOR


def _check_u8(name: str, value: int) -> None:
    if not 0 <= value <= 0xFF:
        raise ValueError(f"{name} {value} does not fit in 8 bits")


def _check_s8(name: str, value: int) -> None:
    if not -128 <= value <= 127:
        raise ValueError(f"{name} {value} does not fit in a signed byte")


def _check_modtype(value: int) -> ModType:
    if value & ~_MODTYPE_ALL or value < 0:
        raise ValueError(f"unknown modification type bits in {value:#x}")
    return ModType(value)


@dataclass(frozen=True)
class RtCanMsg:
    """The routing message header of a gateway netlink request."""

    can_family: int = AF_CAN
    gwtype: GwType = GwType.CAN_CAN
    flags: GwFlag = GwFlag(0)

    def __post_init__(self) -> None:
        _check_u8("can_family", self.can_family)
        object.__setattr__(self, "gwtype", GwType(self.gwtype))
        if not 0 <= int(self.flags) <= 0xFFFF:
            raise ValueError(f"flags {int(self.flags):#x} do not fit in 16 bits")
        object.__setattr__(self, "flags", GwFlag(self.flags))

    def pack(self) -> bytes:
        """Return the header in the kernel's struct rtcanmsg layout."""
        return _RTCANMSG.pack(self.can_family, int(self.gwtype), int(self.flags))

    @classmethod
    def unpack(cls, data: bytes) -> "RtCanMsg":
        """Build a header from a struct rtcanmsg buffer."""
        if len(data) != _RTCANMSG.size:
            raise ValueError(f"rtcanmsg takes {_RTCANMSG.size} bytes, got {len(data)}")
        family, gwtype, flags = _RTCANMSG.unpack(data)
        return cls(family, GwType(gwtype), GwFlag(flags))


@dataclass(frozen=True)
class FrameMod:
    """A Classical CAN frame operand and the elements it modifies."""

    frame: CanFrame
    modtype: ModType

    def __post_init__(self) -> None:
        object.__setattr__(self, "modtype", _check_modtype(int(self.modtype)))

    def pack(self) -> bytes:
        """Return the packed struct cgw_frame_mod."""
        return self.frame.pack() + bytes([int(self.modtype)])

    @classmethod
    def unpack(cls, data: bytes) -> "FrameMod":
        """Build a modification from a packed struct cgw_frame_mod."""
        if len(data) != CGW_MODATTR_LEN:
            raise ValueError(f"frame modification takes {CGW_MODATTR_LEN} bytes")
        return cls(CanFrame.unpack(data[:CAN_MTU]), ModType(data[CAN_MTU]))


@dataclass(frozen=True)
class FdFrameMod:
    """A CAN FD frame operand and the elements it modifies."""

    frame: CanFdFrame
    modtype: ModType

    def __post_init__(self) -> None:
        object.__setattr__(self, "modtype", _check_modtype(int(self.modtype)))

    def pack(self) -> bytes:
        """Return the packed struct cgw_fdframe_mod."""
        return self.frame.pack() + bytes([int(self.modtype)])

    @classmethod
    def unpack(cls, data: bytes) -> "FdFrameMod":
        """Build a modification from a packed struct cgw_fdframe_mod."""
        if len(data) != CGW_FDMODATTR_LEN:
            raise ValueError(f"FD frame modification takes {CGW_FDMODATTR_LEN} bytes")
        return cls(CanFdFrame.unpack(data[:CANFD_MTU]), ModType(data[CANFD_MTU]))


Payload = Union[bytes, bytearray, CanFrame, CanFdFrame]


def _resolve(index: int, length: int) -> int:
    position = index + length if index < 0 else index
    if not 0 <= position < length:
        raise IndexError(f"index {index} outside a payload of {length} bytes")
    return position


def _span(start: int, stop: int) -> range:
    step = 1 if stop >= start else -1
    return range(start, stop + step, step)


def _split(data: Payload) -> Tuple[bytearray, Optional[int]]:
    if isinstance(data, (CanFrame, CanFdFrame)):
        return bytearray(data.data), data.can_id
    return bytearray(data), None


def _merge(original: Payload, payload: bytearray) -> Payload:
    if isinstance(original, (CanFrame, CanFdFrame)):
        return dataclasses.replace(original, data=bytes(payload))
    return bytes(payload)


@dataclass(frozen=True)
class XorChecksum:
    """XOR of data[from_idx..to_idx] and an initial value, stored at data[result_idx]."""

    from_idx: int
    to_idx: int
    result_idx: int
    init_xor_val: int = 0

    def __post_init__(self) -> None:
        _check_s8("from_idx", self.from_idx)
        _check_s8("to_idx", self.to_idx)
        _check_s8("result_idx", self.result_idx)
        _check_u8("init_xor_val", self.init_xor_val)

    def pack(self) -> bytes:
        """Return the packed struct cgw_csum_xor."""
        return _CSUM_XOR.pack(self.from_idx, self.to_idx, self.result_idx, self.init_xor_val)

    @classmethod
    def unpack(cls, data: bytes) -> "XorChecksum":
        """Build a checksum rule from a packed struct cgw_csum_xor."""
        if len(data) != CGW_CS_XOR_LEN:
            raise ValueError(f"XOR checksum takes {CGW_CS_XOR_LEN} bytes")
        return cls(*_CSUM_XOR.unpack(data))

    def apply(self, data: Payload) -> Payload:
        """Return the payload (or frame) with the checksum written into it."""
        payload, _can_id = _split(data)
        length = len(payload)
        start = _resolve(self.from_idx, length)
        stop = _resolve(self.to_idx, length)
        result = _resolve(self.result_idx, length)
        value = self.init_xor_val
        for position in _span(start, stop):
            value ^= payload[position]
        payload[result] = value
        return _merge(data, payload)


@dataclass(frozen=True)
class Crc8Checksum:
    """Table driven CRC8 of data[from_idx..to_idx] stored at data[result_idx]."""

    from_idx: int
    to_idx: int
    result_idx: int
    init_crc_val: int = 0
    final_xor_val: int = 0
    crctab: bytes = bytes(CRC8_TABLE_SIZE)
    profile: Crc8Profile = Crc8Profile.UNSPEC
    profile_data: bytes = bytes(CRC8_PROFILE_DATA_SIZE)

    def __post_init__(self) -> None:
        _check_s8("from_idx", self.from_idx)
        _check_s8("to_idx", self.to_idx)
        _check_s8("result_idx", self.result_idx)
        _check_u8("init_crc_val", self.init_crc_val)
        _check_u8("final_xor_val", self.final_xor_val)
        table = bytes(self.crctab)
        if len(table) != CRC8_TABLE_SIZE:
            raise ValueError(f"a CRC8 table holds {CRC8_TABLE_SIZE} entries")
        extra = bytes(self.profile_data)
        if len(extra) > CRC8_PROFILE_DATA_SIZE:
            raise ValueError(f"profile data holds at most {CRC8_PROFILE_DATA_SIZE} bytes")
        object.__setattr__(self, "crctab", table)
        object.__setattr__(self, "profile_data", extra.ljust(CRC8_PROFILE_DATA_SIZE, b"\x00"))
        object.__setattr__(self, "profile", Crc8Profile(self.profile))

    def pack(self) -> bytes:
        """Return the packed struct cgw_csum_crc8."""
        return _CSUM_CRC8.pack(
            self.from_idx,
            self.to_idx,
            self.result_idx,
            self.init_crc_val,
            self.final_xor_val,
            self.crctab,
            int(self.profile),
            self.profile_data,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "Crc8Checksum":
        """Build a checksum rule from a packed struct cgw_csum_crc8."""
        if len(data) != CGW_CS_CRC8_LEN:
            raise ValueError(f"CRC8 checksum takes {CGW_CS_CRC8_LEN} bytes")
        fields = _CSUM_CRC8.unpack(data)
        return cls(*fields[:6], Crc8Profile(fields[6]), fields[7])

    def apply(self, data: Payload) -> Payload:
        """Return the payload (or frame) with the CRC8 written into it.

        The SFFID_XOR profile needs the identifier and so takes a frame.
        """
        payload, can_id = _split(data)
        length = len(payload)
        start = _resolve(self.from_idx, length)
        stop = _resolve(self.to_idx, length)
        result = _resolve(self.result_idx, length)
        crc = self.init_crc_val
        for position in _span(start, stop):
            crc = self.crctab[crc ^ payload[position]]

        if self.profile is Crc8Profile.ONE_U8:
            crc = self.crctab[crc ^ self.profile_data[0]]
        elif self.profile is Crc8Profile.SIXTEEN_U8:
            if length < 2:
                raise IndexError("the 16U8 profile reads data[1]")
            crc = self.crctab[crc ^ self.profile_data[payload[1] & 0x0F]]
        elif self.profile is Crc8Profile.SFFID_XOR:
            if can_id is None:
                raise ValueError("the SFFID_XOR profile needs a frame with an identifier")
            crc = self.crctab[crc ^ ((can_id & 0xFF) ^ ((can_id >> 8) & 0xFF))]

        payload[result] = crc ^ self.final_xor_val
        return _merge(data, payload)