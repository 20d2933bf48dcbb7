"""Broadcast manager (BCM) message heads and their frames."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum, IntFlag
from typing import Iterable, Tuple, Union

from .frames import CAN_MTU, CANFD_MTU, CanFdFrame, CanFrame

_TIMEVAL = struct.Struct("@ll")
_HEAD = struct.Struct("@IIIllllII")
_FRAME_ALIGN = 8

BCM_TIMEVAL_SIZE = _TIMEVAL.size
# The frame array that follows the head is aligned to 8 bytes.
BCM_HEAD_SIZE = (_HEAD.size + _FRAME_ALIGN - 1) & ~(_FRAME_ALIGN - 1)


class BcmOpcode(IntEnum):
    """Operations sent to and reported by the broadcast manager."""

    TX_SETUP = 1
    TX_DELETE = 2
    TX_READ = 3
    TX_SEND = 4
    RX_SETUP = 5
    RX_DELETE = 6
    RX_READ = 7
    TX_STATUS = 8
    TX_EXPIRED = 9
    RX_STATUS = 10
    RX_TIMEOUT = 11
    RX_CHANGED = 12


class BcmFlag(IntFlag):
    """Flags of a broadcast manager message head."""

    SETTIMER = 0x0001
    STARTTIMER = 0x0002
    TX_COUNTEVT = 0x0004
    TX_ANNOUNCE = 0x0008
    TX_CP_CAN_ID = 0x0010
    RX_FILTER_ID = 0x0020
    RX_CHECK_DLC = 0x0040
    RX_NO_AUTOTIMER = 0x0080
    RX_ANNOUNCE_RESUME = 0x0100
    TX_RESET_MULTI_IDX = 0x0200
    RX_RTR_FRAME = 0x0400
    CAN_FD_FRAME = 0x0800


def _check_u32(name: str, value: int) -> None:
    if not 0 <= value <= 0xFFFFFFFF:
        raise ValueError(f"{name} {value} does not fit in 32 bits")


@dataclass(frozen=True)
class BcmTimeval:
    """An interval given in seconds and microseconds."""

    tv_sec: int = 0
    tv_usec: int = 0

    @classmethod
    def from_seconds(cls, seconds: float) -> "BcmTimeval":
        """Build an interval from a number of seconds."""
        if seconds < 0:
            raise ValueError("an interval cannot be negative")
        whole = int(seconds)
        return cls(whole, round((seconds - whole) * 1_000_000))

    @property
    def seconds(self) -> float:
        """The interval in seconds."""
        return self.tv_sec + self.tv_usec / 1_000_000

    def pack(self) -> bytes:
        """Return the interval in the kernel's struct bcm_timeval layout."""
        try:
            return _TIMEVAL.pack(self.tv_sec, self.tv_usec)
        except struct.error as exc:
            raise ValueError(f"interval out of range: {exc}") from exc

    @classmethod
    def unpack(cls, data: bytes) -> "BcmTimeval":
        """Build an interval from a struct bcm_timeval buffer."""
        if len(data) != BCM_TIMEVAL_SIZE:
            raise ValueError(
                f"a BCM timeval takes {BCM_TIMEVAL_SIZE} bytes, got {len(data)}"
            )
        return cls(*_TIMEVAL.unpack(data))


AnyFrame = Union[CanFrame, CanFdFrame]


@dataclass(frozen=True)
class BcmMsgHead:
    """A broadcast manager message head followed by its frames."""

    opcode: BcmOpcode
    flags: BcmFlag = BcmFlag(0)
    count: int = 0
    ival1: BcmTimeval = BcmTimeval()
    ival2: BcmTimeval = BcmTimeval()
    can_id: int = 0
    frames: Tuple[AnyFrame, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "opcode", BcmOpcode(self.opcode))
        _check_u32("flags", int(self.flags))
        object.__setattr__(self, "flags", BcmFlag(self.flags))
        _check_u32("count", self.count)
        _check_u32("can_id", self.can_id)
        frames = tuple(self.frames)
        wanted = CanFdFrame if self.is_fd else CanFrame
        for frame in frames:
            if type(frame) is not wanted:
                raise ValueError(
                    f"{type(frame).__name__} in a message that carries "
                    f"{wanted.__name__} frames"
                )
        object.__setattr__(self, "frames", frames)

    @property
    def is_fd(self) -> bool:
        """True when the message carries CAN FD frames."""
        return bool(self.flags & BcmFlag.CAN_FD_FRAME)

    @property
    def nframes(self) -> int:
        """Number of frames appended to the head."""
        return len(self.frames)

    @property
    def frame_size(self) -> int:
        """Size in bytes of each appended frame."""
        return CANFD_MTU if self.is_fd else CAN_MTU

    def pack(self) -> bytes:
        """Return the head and frames as written to a BCM socket."""
        try:
            head = _HEAD.pack(
                int(self.opcode),
                int(self.flags),
                self.count,
                self.ival1.tv_sec,
                self.ival1.tv_usec,
                self.ival2.tv_sec,
                self.ival2.tv_usec,
                self.can_id,
                self.nframes,
            )
        except struct.error as exc:
            raise ValueError(f"message head out of range: {exc}") from exc
        return head.ljust(BCM_HEAD_SIZE, b"\x00") + b"".join(
            frame.pack() for frame in self.frames
        )

    @classmethod
    def unpack(cls, data: bytes) -> "BcmMsgHead":
        """Build a message from the bytes read from a BCM socket."""
        if len(data) < BCM_HEAD_SIZE:
            raise ValueError("incomplete BCM message head")
        (opcode, flags, count, sec1, usec1, sec2, usec2, can_id,
         nframes) = _HEAD.unpack_from(data)
        fd = bool(flags & BcmFlag.CAN_FD_FRAME)
        size = CANFD_MTU if fd else CAN_MTU
        needed = BCM_HEAD_SIZE + nframes * size
        if len(data) < needed:
            raise ValueError(
                f"BCM message announces {nframes} frames but holds "
                f"{(len(data) - BCM_HEAD_SIZE) // size}"
            )
        parser = CanFdFrame.unpack if fd else CanFrame.unpack
        frames = _parse_frames(data[BCM_HEAD_SIZE:needed], size, parser)
        return cls(
            opcode,
            BcmFlag(flags),
            count,
            BcmTimeval(sec1, usec1),
            BcmTimeval(sec2, usec2),
            can_id,
            frames,
        )


def _parse_frames(data: bytes, size: int, parser) -> Tuple[AnyFrame, ...]:
    view = memoryview(data)
    chunks: Iterable[memoryview] = (
        view[start:start + size] for start in range(0, len(view), size)
    )
    return tuple(parser(bytes(chunk)) for chunk in chunks)