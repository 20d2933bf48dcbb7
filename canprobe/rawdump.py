"""Dump frames passing a fixed filter set, with optional loopback settings."""

from __future__ import annotations

import argparse
import contextlib
import sys
from typing import List, Optional, Sequence, Tuple, Union

from .frames import CAN_EFF_MASK, CAN_SFF_MASK, CanFdFrame, CanFilter, CanFrame
from .rawsock import RawSocket

DEFAULT_INTERFACE = "vcan2"

CAN_RAW_LOOPBACK = 3
CAN_RAW_RECV_OWN_MSGS = 4

Frame = Union[CanFrame, CanFdFrame]


def default_filters() -> List[CanFilter]:
    """Return the filters installed before binding."""
    return [
        CanFilter(0x123, CAN_SFF_MASK),
        CanFilter(0x200, 0x700),
        CanFilter(0x80123456, 0x1FFFF000),
        CanFilter(0x80333333, CAN_EFF_MASK),
    ]


def format_frame(frame: Frame, timestamp: Optional[Tuple[int, int]] = None) -> str:
    """Describe a frame, led by its (seconds, microseconds) timestamp if known."""
    line = ""
    if timestamp is not None:
        seconds, micros = timestamp
        line = f"({seconds}.{micros:06d}) "
    if frame.is_extended:
        line += f"{frame.can_id & CAN_EFF_MASK:8X}  "
    else:
        line += f"{frame.can_id & CAN_SFF_MASK:3X}  "
    line += f"[{len(frame.data)}] "
    line += "".join(f"{byte:02X} " for byte in frame.data)
    if frame.is_remote:
        line += "remote request"
    return line


def _perror(what: str, exc: OSError) -> None:
    print(f"{what}: {exc.strerror or exc}", file=sys.stderr)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Print filtered frames; optionally tune loopback and send one frame first."""
    parser = argparse.ArgumentParser(description="Dump filtered CAN frames.")
    parser.add_argument("-i", dest="interface", default=DEFAULT_INTERFACE)
    parser.add_argument("-l", dest="loopback", type=int)
    parser.add_argument("-r", dest="recv_own_msgs", type=int)
    parser.add_argument("-s", dest="send_one", action="store_true")
    parser.add_argument("-e", dest="ignore_errors", action="store_true")
    args, unknown = parser.parse_known_args(argv)
    for option in unknown:
        print(f"Unknown option {option}", file=sys.stderr)

    try:
        sock = RawSocket()
    except OSError as exc:
        _perror("socket", exc)
        return 1

    with sock:
        with contextlib.suppress(OSError):
            sock.set_filters(default_filters())
        if args.loopback is not None:
            with contextlib.suppress(OSError):
                sock.set_option(CAN_RAW_LOOPBACK, args.loopback)
        if args.recv_own_msgs is not None:
            with contextlib.suppress(OSError):
                sock.set_option(CAN_RAW_RECV_OWN_MSGS, args.recv_own_msgs)

        try:
            sock.bind(args.interface)
        except OSError as exc:
            _perror("bind", exc)
            return 1

        if args.send_one:
            with contextlib.suppress(OSError):
                sock.send_frame(CanFrame(0x123, bytes([0x11, 0x22])))

        while True:
            try:
                frame, _ifname = sock.recv_frame()
            except OSError as exc:
                _perror("read", exc)
                if not args.ignore_errors:
                    return 1
                continue
            except ValueError as exc:
                print(f"read: {exc}", file=sys.stderr)
                return 1
            try:
                stamp: Optional[Tuple[int, int]] = sock.timestamp()
            except OSError as exc:
                _perror("SIOCGSTAMP", exc)
                stamp = None
            print(format_frame(frame, stamp), flush=True)