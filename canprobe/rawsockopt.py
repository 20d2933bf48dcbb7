"""Check how a raw CAN socket reports its filter list through getsockopt()."""

from __future__ import annotations

import argparse
import errno
import os
import sys
from typing import Iterator, Optional, Sequence, Tuple

from .frames import CanFilter
from .rawsock import RawSocket

MAX_FILTERS = 32
FILTER_SIZE = len(CanFilter(0, 0).pack())

MAX_SIZE = MAX_FILTERS * FILTER_SIZE
RIGHT_SIZE = 16 * FILTER_SIZE  # filters installed with setsockopt()
LESS_SIZE = 10 * FILTER_SIZE  # read back into a smaller buffer
MORE_SIZE = 20 * FILTER_SIZE  # read back into a bigger buffer


class SockoptCheckError(Exception):
    """Raised when the socket does not behave as a current kernel should."""


def _strerror(code: int) -> str:
    return os.strerror(code)


def _read(sock: RawSocket, size: int) -> Tuple[Optional[int], int]:
    """Read the filters into a buffer; return (bytes read or None, errno)."""
    try:
        filters = sock.get_filters(size)
    except OSError as exc:
        return None, exc.errno or 0
    return len(filters) * FILTER_SIZE, 0


def _read_step(
    sock: RawSocket, label: str, size: int
) -> Iterator[str]:
    optlen, code = _read(sock, size)
    yield f"{label}: read {RIGHT_SIZE} byte into {size} byte buffer -> {_strerror(code)}"
    if optlen is not None and optlen != RIGHT_SIZE:
        yield f"{label}: optlen {optlen} expected {RIGHT_SIZE}"
    if code:
        raise SockoptCheckError(f"{label}: Unexpected error {_strerror(code)}")


def run_checks(sock: RawSocket) -> Iterator[str]:
    """Install 16 filters and read them back into buffers of several sizes.

    Yields one report line per step and raises SockoptCheckError on the
    first step that fails.
    """
    code = 0
    try:
        sock.set_filters([CanFilter(0, 0)] * (RIGHT_SIZE // FILTER_SIZE))
    except OSError as exc:
        code = exc.errno or 0
    yield f"setsockopt: write {RIGHT_SIZE} byte -> {_strerror(code)}"
    if code:
        raise SockoptCheckError(f"setsockopt: Unexpected error {_strerror(code)}")

    yield from _read_step(sock, "getsockopt1", RIGHT_SIZE)
    yield from _read_step(sock, "getsockopt2", MORE_SIZE)

    optlen, code = _read(sock, LESS_SIZE)
    yield (
        f"getsockopt3: read {RIGHT_SIZE} byte into {LESS_SIZE} byte buffer "
        f"-> {_strerror(code)}"
    )
    if optlen is not None:
        # Older kernels silently truncate the filter set.
        if optlen != LESS_SIZE:
            raise SockoptCheckError(f"getsockopt3: optlen {optlen} expected {LESS_SIZE}")
        raise SockoptCheckError("getsockopt3: buffer too small for filter but no error")
    if code != errno.ERANGE:
        raise SockoptCheckError(f"getsockopt3: Unexpected error {_strerror(code)}")

    # ERANGE announces that the full set needs RIGHT_SIZE bytes: retry with it.
    yield from _read_step(sock, "getsockopt4", RIGHT_SIZE)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the filter sockopt checks on an unbound raw CAN socket."""
    parser = argparse.ArgumentParser(
        description="Check CAN_RAW_FILTER getsockopt() buffer handling."
    )
    parser.parse_args(argv)

    try:
        sock = RawSocket()
    except OSError as exc:
        print(f"socket: {exc.strerror or exc}", file=sys.stderr)
        return 1

    with sock:
        try:
            for line in run_checks(sock):
                print(line)
        except SockoptCheckError as exc:
            print(exc)
            return 1
    return 0