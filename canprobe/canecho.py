"""Echo every received CAN frame back with its identifier increased by one."""

from __future__ import annotations

import argparse
import dataclasses
import signal
import socket
import sys
from typing import Optional, Sequence, Union

from .frames import CAN_EFF_MASK, CanFdFrame, CanFrame
from .rawsock import AF_CAN, CAN_RAW, RawSocket

Frame = Union[CanFrame, CanFdFrame]

_STOP_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGTERM", "SIGHUP") if hasattr(signal, name)
)


def format_echo_line(frame: Frame) -> str:
    """Describe a received frame the way the verbose mode prints it."""
    head = f"{frame.can_id & CAN_EFF_MASK:03X}: "
    if frame.is_remote:
        return head + "remote request"
    return head + f"[{len(frame.data)}]" + "".join(f" {byte:02X}" for byte in frame.data)


def echo_frame(frame: Frame) -> Frame:
    """Return the reply to a frame: the same frame with the next identifier."""
    return dataclasses.replace(frame, can_id=(frame.can_id + 1) & 0xFFFFFFFF)


def _perror(what: str, exc: OSError) -> None:
    print(f"{what}: {exc.strerror or exc}", file=sys.stderr)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Answer every frame on an interface until a read or write fails."""
    parser = argparse.ArgumentParser(description="Echo CAN frames with identifier + 1.")
    parser.add_argument("-f", dest="family", type=int, default=AF_CAN)
    parser.add_argument("-t", dest="sock_type", type=int, default=socket.SOCK_RAW)
    parser.add_argument("-p", dest="proto", type=int, default=CAN_RAW)
    parser.add_argument("-v", dest="verbose", action="store_true")
    parser.add_argument("interface", nargs="?")
    args, unknown = parser.parse_known_args(argv)
    for option in unknown:
        print(f"Unknown option {option}", file=sys.stderr)

    if args.interface is None:
        print(f"Usage: {parser.prog} [can-interface]", file=sys.stderr)
        return 0

    print(
        f"interface = {args.interface}, family = {args.family}, "
        f"type = {args.sock_type}, proto = {args.proto}"
    )
    try:
        sock = RawSocket(family=args.family, sock_type=args.sock_type, proto=args.proto)
    except OSError as exc:
        _perror("socket", exc)
        return 1

    running = True

    def stop(signo, _frame):
        nonlocal running
        print(f"got signal {signo}")
        running = False

    previous = {sig: signal.signal(sig, stop) for sig in _STOP_SIGNALS}
    try:
        with sock:
            try:
                sock.bind(args.interface)
            except OSError as exc:
                _perror("bind", exc)
                return 1
            while running:
                try:
                    frame, _ifname = sock.recv_frame()
                except OSError as exc:
                    _perror("read", exc)
                    return 1
                except ValueError as exc:
                    print(f"read: {exc}", file=sys.stderr)
                    return 1
                if args.verbose:
                    print(format_echo_line(frame))
                try:
                    sock.send_frame(echo_frame(frame))
                except OSError as exc:
                    _perror("write", exc)
                    return 1
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
    return 0