"""Print CAN error frames received on an interface."""

from __future__ import annotations

import argparse
import sys
from typing import Optional, Sequence, Tuple

from .errors import describe_error_frame
from .frames import CAN_ERR_MASK, CAN_INV_FILTER, CanFilter, CanFrame
from .rawsock import RawSocket

DEFAULT_INTERFACE = "vcan2"


def format_error_line(frame: CanFrame, timestamp: Optional[Tuple[int, int]] = None) -> str:
    """Describe an error frame, led by its (seconds, microseconds) timestamp."""
    prefix = ""
    if timestamp is not None:
        seconds, micros = timestamp
        prefix = f"({seconds}.{micros:06d}) "
    return prefix + "".join(f"{part} " for part in describe_error_frame(frame))


def _hex_mask(text: str) -> int:
    try:
        value = int(text, 16)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid error mask {text!r}") from None
    if not 0 <= value <= 0xFFFFFFFF:
        raise argparse.ArgumentTypeError(f"error mask {text!r} does not fit in 32 bits")
    return value


def _perror(what: str, exc: OSError) -> None:
    print(f"{what}: {exc.strerror or exc}", file=sys.stderr)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Receive only error frames and print what each one reports."""
    parser = argparse.ArgumentParser(description="Print CAN error frames.")
    parser.add_argument("-i", dest="interface", default=DEFAULT_INTERFACE)
    parser.add_argument("-m", dest="err_mask", type=_hex_mask, default=CAN_ERR_MASK)
    args, unknown = parser.parse_known_args(argv)
    for option in unknown:
        print(f"Unknown option {option}", file=sys.stderr)

    try:
        sock = RawSocket()
    except OSError as exc:
        _perror("socket", exc)
        return 1

    with sock:
        try:
            # An inverted filter on everything lets no data frame through.
            sock.set_filters([CanFilter(CAN_INV_FILTER, 0)])
            sock.set_error_filter(args.err_mask)
        except OSError as exc:
            _perror("setsockopt", exc)
        try:
            sock.bind(args.interface)
        except OSError as exc:
            _perror("bind", exc)
            return 1
        while True:
            try:
                frame, _ifname = sock.recv_frame()
            except OSError as exc:
                _perror("read", exc)
                return 1
            except ValueError as exc:
                print(f"read: {exc}", file=sys.stderr)
                return 1
            try:
                stamp: Optional[Tuple[int, int]] = sock.timestamp()
            except OSError as exc:
                _perror("SIOCGSTAMP", exc)
                stamp = None
            print(format_error_line(frame, stamp), flush=True)