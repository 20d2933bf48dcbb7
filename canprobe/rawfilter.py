"""Receive CAN frames through configurable filters, optionally peeking first."""

from __future__ import annotations

import argparse
import sys
from typing import Optional, Sequence, Union

from .frames import CAN_EFF_MASK, CAN_SFF_MASK, CanFdFrame, CanFilter, CanFrame
from .rawsock import ANY_INTERFACE, RawSocket

MAX_FILTERS = 32

Frame = Union[CanFrame, CanFdFrame]


def parse_filter(text: str) -> CanFilter:
    """Parse a filter written as hexadecimal "can_id:can_mask"."""
    parts = text.split(":")
    if len(parts) < 2 or not parts[0] or not parts[1]:
        raise ValueError(f"filter {text!r} is not of the form can_id:can_mask")
    return CanFilter(int(parts[0], 16), int(parts[1], 16))


def format_filtered_frame(ifname: str, frame: Frame, peeked: bool = False) -> str:
    """Describe a received frame with the interface it arrived on."""
    if frame.is_extended:
        ident = f"{frame.can_id & CAN_EFF_MASK:8X}  "
    else:
        ident = f"{frame.can_id & CAN_SFF_MASK:3X}  "
    line = f" {ifname:<5} {ident}[{len(frame.data)}] "
    line += "".join(f"{byte:02X} " for byte in frame.data)
    if frame.is_remote:
        line += "remote request"
    if peeked:
        line += " (MSG_PEEK)"
    return line


def _perror(what: str, exc: OSError) -> None:
    print(f"{what}: {exc.strerror or exc}", file=sys.stderr)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Print the frames that pass the given filters on an interface."""
    parser = argparse.ArgumentParser(description="Receive CAN frames through filters.")
    parser.add_argument("-i", dest="interface", default=ANY_INTERFACE)
    parser.add_argument("-p", dest="peek", type=int, default=0)
    parser.add_argument("-f", dest="filters", type=parse_filter, action="append", default=[])
    parser.add_argument("-d", dest="use_default", action="store_true")
    args, unknown = parser.parse_known_args(argv)
    for option in unknown:
        print(f"Unknown option {option}", file=sys.stderr)

    filters = args.filters
    for _ in filters[MAX_FILTERS:]:
        print("too many filters", file=sys.stderr)
    filters = filters[:MAX_FILTERS]

    try:
        sock = RawSocket()
    except OSError as exc:
        _perror("socket", exc)
        return 1

    with sock:
        if args.use_default:
            print(f"{parser.prog}: using CAN_RAW socket default filter.")
        else:
            print(f"{parser.prog}: setting {len(filters)} CAN filter(s).")
            try:
                sock.set_filters(filters)
            except OSError as exc:
                _perror("setsockopt", exc)
        try:
            sock.bind(args.interface)
        except OSError as exc:
            _perror("bind", exc)
            return 1

        peek = args.peek
        while True:
            peeked = bool(peek)
            if peek:
                peek -= 1
            try:
                frame, ifname = sock.recv_frame(peeked)
            except OSError as exc:
                _perror("read", exc)
                return 1
            except ValueError as exc:
                print(f"read: {exc}", file=sys.stderr)
                return 1
            print(format_filtered_frame(ifname, frame, peeked), flush=True)