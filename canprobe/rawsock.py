"""Raw CAN sockets, interface lookup and a tool that sends one test frame."""

from __future__ import annotations

import argparse
import socket
import struct
import sys
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from .frames import (
    CAN_MTU,
    SOL_CAN_RAW,
    CanFdFrame,
    CanFilter,
    CanFrame,
    CanProtocol,
    RawOption,
    pack_filters,
    unpack_filters,
)

AF_CAN = getattr(socket, "AF_CAN", 29)
CAN_RAW = int(CanProtocol.RAW)
ANY_INTERFACE = "any"
DEFAULT_INTERFACE = "vcan2"

SIOCGSTAMP = 0x8906

_TIMEVAL = struct.Struct("@ll")
_INT = struct.Struct("=i")
_U32 = struct.Struct("=I")

Interface = Union[str, int]
Frame = Union[CanFrame, CanFdFrame]


def interface_index(name: str) -> int:
    """Return the index of a network interface; "any" stands for index 0."""
    if name == ANY_INTERFACE:
        return 0
    return socket.if_nametoindex(name)


def interface_name(index: int) -> str:
    """Return the name of a network interface; index 0 stands for "any"."""
    if index < 0:
        raise ValueError(f"interface index {index} is negative")
    if index == 0:
        return ANY_INTERFACE
    return socket.if_indextoname(index)


def _address_name(address) -> str:
    if isinstance(address, tuple):
        return str(address[0]) if address else ""
    if isinstance(address, str):
        return address
    return ""


def _socket_name(interface: Interface) -> str:
    if isinstance(interface, int):
        interface = interface_name(interface)
    return "" if interface == ANY_INTERFACE else interface


class RawSocket:
    """A raw CAN socket that reads and writes Classical CAN frames."""

    def __init__(
        self,
        sock: Optional[socket.socket] = None,
        family: int = AF_CAN,
        sock_type: int = socket.SOCK_RAW,
        proto: int = CAN_RAW,
    ) -> None:
        self._sock = sock if sock is not None else socket.socket(family, sock_type, proto)

    def __enter__(self) -> "RawSocket":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def fileno(self) -> int:
        """Return the underlying file descriptor."""
        return self._sock.fileno()

    def bind(self, interface: Interface) -> None:
        """Bind to an interface given by name or index; "any" binds to all."""
        self._sock.bind((_socket_name(interface),))

    def set_filters(self, filters: Iterable[CanFilter]) -> None:
        """Install receive filters; an empty list receives no frames."""
        self._sock.setsockopt(SOL_CAN_RAW, RawOption.FILTER, pack_filters(filters))

    def get_filters(self, size: int) -> List[CanFilter]:
        """Read the installed filters into a buffer of the given size."""
        if size <= 0:
            raise ValueError("the filter buffer size must be positive")
        data = self._sock.getsockopt(SOL_CAN_RAW, RawOption.FILTER, size)
        return unpack_filters(data)

    def set_error_filter(self, mask: int) -> None:
        """Choose the error classes delivered as error frames."""
        if not 0 <= mask <= 0xFFFFFFFF:
            raise ValueError(f"error mask {mask:#x} does not fit in 32 bits")
        self._sock.setsockopt(SOL_CAN_RAW, RawOption.ERR_FILTER, _U32.pack(mask))

    def set_option(self, option: RawOption, value: Union[int, bool, bytes]) -> None:
        """Set a raw socket option to an integer (or a prepared buffer)."""
        option = RawOption(option)
        payload = bytes(value) if isinstance(value, (bytes, bytearray)) else _INT.pack(int(value))
        self._sock.setsockopt(SOL_CAN_RAW, option, payload)

    def recv_frame(self, peek: bool = False) -> Tuple[CanFrame, str]:
        """Receive one frame and the name of the interface it came from."""
        flags = socket.MSG_PEEK if peek else 0
        data, address = self._sock.recvfrom(CAN_MTU, flags)
        if len(data) < CAN_MTU:
            raise ValueError("incomplete CAN frame")
        return CanFrame.unpack(data), _address_name(address)

    def send_frame(self, frame: Frame, interface: Optional[Interface] = None) -> int:
        """Send a frame on the bound interface or via the one given."""
        data = frame.pack()
        if interface is None:
            return self._sock.send(data)
        return self._sock.sendto(data, (_socket_name(interface),))

    def timestamp(self) -> Tuple[int, int]:
        """Return (seconds, microseconds) of the last frame received."""
        import fcntl

        raw = fcntl.ioctl(self._sock.fileno(), SIOCGSTAMP, bytes(_TIMEVAL.size))
        return _TIMEVAL.unpack(raw)

    def close(self) -> None:
        """Close the socket."""
        self._sock.close()


def build_test_frame() -> CanFrame:
    """Return the frame that the send tool puts on the bus."""
    return CanFrame(0x123, bytes([0x11, 0x22, 0x33]))


def _perror(what: str, exc: OSError) -> None:
    print(f"{what}: {exc.strerror or exc}", file=sys.stderr)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Send one test frame via the chosen interface from a socket bound to all."""
    parser = argparse.ArgumentParser(
        description="Send a single CAN frame via an interface with sendto()."
    )
    parser.add_argument("-i", dest="interface", default=DEFAULT_INTERFACE)
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
            sock.bind(ANY_INTERFACE)
        except OSError as exc:
            _perror("bind", exc)
            return 1
        try:
            sock.send_frame(build_test_frame(), args.interface)
        except OSError as exc:
            _perror("sendto", exc)
            return 1
    return 0