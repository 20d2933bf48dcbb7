"""Socket options of ISO 15765-2 transport protocol sockets."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum, IntFlag

from .frames import CAN_MAX_DLEN, CAN_MTU, CANFD_MTU, SOL_CAN_BASE, CanProtocol

SOL_CAN_ISOTP = SOL_CAN_BASE + CanProtocol.ISOTP

CAN_ISOTP_DEFAULT_FLAGS = 0
CAN_ISOTP_DEFAULT_EXT_ADDRESS = 0x00
CAN_ISOTP_DEFAULT_PAD_CONTENT = 0xCC
CAN_ISOTP_DEFAULT_FRAME_TXTIME = 50000
CAN_ISOTP_DEFAULT_RECV_BS = 0
CAN_ISOTP_DEFAULT_RECV_STMIN = 0x00
CAN_ISOTP_DEFAULT_RECV_WFTMAX = 0
CAN_ISOTP_DEFAULT_LL_MTU = CAN_MTU
CAN_ISOTP_DEFAULT_LL_TX_DL = CAN_MAX_DLEN
CAN_ISOTP_DEFAULT_LL_TX_FLAGS = 0

# frame_txtime value that really means zero; zero itself means "unchanged".
CAN_ISOTP_FRAME_TXTIME_ZERO = 0xFFFFFFFF

VALID_TX_DL = (8, 12, 16, 20, 24, 32, 48, 64)

_OPTIONS = struct.Struct("=IIBBBB")
_FC_OPTIONS = struct.Struct("=BBB")
_LL_OPTIONS = struct.Struct("=BBB")


class IsotpOption(IntEnum):
    """Socket options at level SOL_CAN_ISOTP."""

    OPTS = 1
    RECV_FC = 2
    TX_STMIN = 3
    RX_STMIN = 4
    LL_OPTS = 5


class IsotpFlag(IntFlag):
    """Behaviour flags in IsotpOptions.flags."""

    LISTEN_MODE = 0x0001
    EXTEND_ADDR = 0x0002
    TX_PADDING = 0x0004
    RX_PADDING = 0x0008
    CHK_PAD_LEN = 0x0010
    CHK_PAD_DATA = 0x0020
    HALF_DUPLEX = 0x0040
    FORCE_TXSTMIN = 0x0080
    FORCE_RXSTMIN = 0x0100
    RX_EXT_ADDR = 0x0200
    WAIT_TX_DONE = 0x0400
    SF_BROADCAST = 0x0800
    CF_BROADCAST = 0x1000


def _check_u8(name: str, value: int) -> None:
    if not 0 <= value <= 0xFF:
        raise ValueError(f"{name} {value} does not fit in 8 bits")


def _check_u32(name: str, value: int) -> None:
    if not 0 <= value <= 0xFFFFFFFF:
        raise ValueError(f"{name} {value} does not fit in 32 bits")


def _check_size(what: str, data: bytes, size: int) -> None:
    if len(data) != size:
        raise ValueError(f"{what} takes {size} bytes, got {len(data)}")


@dataclass(frozen=True)
class IsotpOptions:
    """General behaviour of an isotp socket (CAN_ISOTP_OPTS)."""

    flags: IsotpFlag = IsotpFlag(CAN_ISOTP_DEFAULT_FLAGS)
    frame_txtime: int = CAN_ISOTP_DEFAULT_FRAME_TXTIME
    ext_address: int = CAN_ISOTP_DEFAULT_EXT_ADDRESS
    txpad_content: int = CAN_ISOTP_DEFAULT_PAD_CONTENT
    rxpad_content: int = CAN_ISOTP_DEFAULT_PAD_CONTENT
    rx_ext_address: int = CAN_ISOTP_DEFAULT_EXT_ADDRESS

    def __post_init__(self) -> None:
        _check_u32("flags", int(self.flags))
        object.__setattr__(self, "flags", IsotpFlag(self.flags))
        _check_u32("frame_txtime", self.frame_txtime)
        _check_u8("ext_address", self.ext_address)
        _check_u8("txpad_content", self.txpad_content)
        _check_u8("rxpad_content", self.rxpad_content)
        _check_u8("rx_ext_address", self.rx_ext_address)

    def pack(self) -> bytes:
        """Return the options in the kernel's struct can_isotp_options layout."""
        return _OPTIONS.pack(
            int(self.flags),
            self.frame_txtime,
            self.ext_address,
            self.txpad_content,
            self.rxpad_content,
            self.rx_ext_address,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "IsotpOptions":
        """Build options from a struct can_isotp_options buffer."""
        _check_size("can_isotp_options", data, _OPTIONS.size)
        flags, *rest = _OPTIONS.unpack(data)
        return cls(IsotpFlag(flags), *rest)


@dataclass(frozen=True)
class FlowControlOptions:
    """Values sent in flow control frames (CAN_ISOTP_RECV_FC)."""

    bs: int = CAN_ISOTP_DEFAULT_RECV_BS
    stmin: int = CAN_ISOTP_DEFAULT_RECV_STMIN
    wftmax: int = CAN_ISOTP_DEFAULT_RECV_WFTMAX

    def __post_init__(self) -> None:
        # stmin is intentionally passed through unchecked beyond its size.
        _check_u8("bs", self.bs)
        _check_u8("stmin", self.stmin)
        _check_u8("wftmax", self.wftmax)

    def pack(self) -> bytes:
        """Return the options in the kernel's struct can_isotp_fc_options layout."""
        return _FC_OPTIONS.pack(self.bs, self.stmin, self.wftmax)

    @classmethod
    def unpack(cls, data: bytes) -> "FlowControlOptions":
        """Build options from a struct can_isotp_fc_options buffer."""
        _check_size("can_isotp_fc_options", data, _FC_OPTIONS.size)
        return cls(*_FC_OPTIONS.unpack(data))


@dataclass(frozen=True)
class LinkLayerOptions:
    """Link layer frame type and payload length (CAN_ISOTP_LL_OPTS)."""

    mtu: int = CAN_ISOTP_DEFAULT_LL_MTU
    tx_dl: int = CAN_ISOTP_DEFAULT_LL_TX_DL
    tx_flags: int = CAN_ISOTP_DEFAULT_LL_TX_FLAGS

    def __post_init__(self) -> None:
        if self.mtu not in (CAN_MTU, CANFD_MTU):
            raise ValueError(f"link layer MTU must be {CAN_MTU} or {CANFD_MTU}")
        if self.tx_dl not in VALID_TX_DL:
            raise ValueError(f"tx_dl {self.tx_dl} is not one of {VALID_TX_DL}")
        if self.mtu == CAN_MTU and self.tx_dl > CAN_MAX_DLEN:
            raise ValueError("Classical CAN frames carry at most 8 bytes")
        _check_u8("tx_flags", self.tx_flags)

    def pack(self) -> bytes:
        """Return the options in the kernel's struct can_isotp_ll_options layout."""
        return _LL_OPTIONS.pack(self.mtu, self.tx_dl, self.tx_flags)

    @classmethod
    def unpack(cls, data: bytes) -> "LinkLayerOptions":
        """Build options from a struct can_isotp_ll_options buffer."""
        _check_size("can_isotp_ll_options", data, _LL_OPTIONS.size)
        return cls(*_LL_OPTIONS.unpack(data))