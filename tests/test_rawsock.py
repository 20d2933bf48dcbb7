import errno
import os
import socket
import struct
from unittest import mock

import pytest

from canprobe.frames import SOL_CAN_RAW, CanFilter, CanFrame, RawOption, pack_filters
from canprobe.rawsock import (
    RawSocket,
    build_test_frame,
    interface_index,
    interface_name,
    main,
)


class FakeSocket:
    def __init__(self, incoming=(), fd=None):
        self.incoming = list(incoming)
        self.sent = []
        self.options = []
        self.bound = None
        self.closed = False
        self.recv_flags = []
        self.filter_buffer = b""
        self.fd = fd

    def bind(self, address):
        self.bound = address

    def setsockopt(self, level, option, value):
        self.options.append((level, option, value))
        if option == RawOption.FILTER:
            self.filter_buffer = value

    def getsockopt(self, level, option, size):
        if size < len(self.filter_buffer):
            raise OSError(errno.ERANGE, os.strerror(errno.ERANGE))
        return self.filter_buffer

    def recvfrom(self, bufsize, flags=0):
        self.recv_flags.append(flags)
        if not self.incoming:
            raise OSError(errno.ENETDOWN, os.strerror(errno.ENETDOWN))
        return self.incoming.pop(0)

    def send(self, data):
        self.sent.append((data, None))
        return len(data)

    def sendto(self, data, address):
        self.sent.append((data, address))
        return len(data)

    def fileno(self):
        return self.fd

    def close(self):
        self.closed = True


def test_build_test_frame_matches_source_frame():
    assert build_test_frame() == CanFrame(0x123, b"\x11\x22\x33")


def test_any_interface_is_index_zero():
    assert interface_index("any") == 0
    assert interface_name(0) == "any"


def test_interface_lookup_round_trip():
    index, name = socket.if_nameindex()[0]
    assert interface_index(name) == index
    assert interface_name(index) == name


def test_unknown_interface_raises():
    with pytest.raises(OSError):
        interface_index("nosuchif77")


def test_negative_index_raises():
    with pytest.raises(ValueError):
        interface_name(-1)


def test_bind_any_uses_empty_name():
    fake = FakeSocket()
    RawSocket(fake).bind("any")
    assert fake.bound == ("",)


def test_bind_named_interface():
    fake = FakeSocket()
    RawSocket(fake).bind("vcan0")
    assert fake.bound == ("vcan0",)


def test_set_filters_passes_packed_buffer():
    fake = FakeSocket()
    filters = [CanFilter(0x123, 0x7FF), CanFilter(0x200, 0x700)]
    RawSocket(fake).set_filters(filters)
    assert fake.options == [(SOL_CAN_RAW, RawOption.FILTER, pack_filters(filters))]


def test_get_filters_round_trip():
    fake = FakeSocket()
    sock = RawSocket(fake)
    filters = [CanFilter(0x123, 0x7FF), CanFilter(0x200, 0x700)]
    sock.set_filters(filters)
    assert sock.get_filters(len(pack_filters(filters))) == filters


def test_get_filters_small_buffer_raises_erange():
    fake = FakeSocket()
    sock = RawSocket(fake)
    sock.set_filters([CanFilter(1, 2), CanFilter(3, 4)])
    with pytest.raises(OSError) as info:
        sock.get_filters(len(CanFilter(1, 2).pack()))
    assert info.value.errno == errno.ERANGE


def test_get_filters_rejects_zero_size():
    with pytest.raises(ValueError):
        RawSocket(FakeSocket()).get_filters(0)


def test_set_error_filter_packs_u32():
    fake = FakeSocket()
    RawSocket(fake).set_error_filter(0x1FF)
    assert fake.options == [(SOL_CAN_RAW, RawOption.ERR_FILTER, struct.pack("=I", 0x1FF))]


def test_set_error_filter_out_of_range():
    with pytest.raises(ValueError):
        RawSocket(FakeSocket()).set_error_filter(1 << 32)


def test_set_option_packs_int():
    fake = FakeSocket()
    RawSocket(fake).set_option(RawOption.LOOPBACK, 0)
    assert fake.options == [(SOL_CAN_RAW, RawOption.LOOPBACK, struct.pack("=i", 0))]


def test_recv_frame_returns_frame_and_interface():
    frame = CanFrame(0x321, b"\x01\x02")
    fake = FakeSocket([(frame.pack(), ("vcan0",))])
    received, name = RawSocket(fake).recv_frame()
    assert received == frame
    assert name == "vcan0"
    assert fake.recv_flags == [0]


def test_recv_frame_peek_sets_flag():
    frame = CanFrame(0x10, b"")
    fake = FakeSocket([(frame.pack(), ("vcan0",))])
    RawSocket(fake).recv_frame(True)
    assert fake.recv_flags == [socket.MSG_PEEK]


def test_recv_frame_incomplete_raises():
    fake = FakeSocket([(b"\x00" * 4, ("vcan0",))])
    with pytest.raises(ValueError):
        RawSocket(fake).recv_frame()


def test_send_frame_via_interface_and_bound():
    fake = FakeSocket()
    sock = RawSocket(fake)
    frame = build_test_frame()
    sock.send_frame(frame, "vcan1")
    sock.send_frame(frame)
    assert fake.sent == [(frame.pack(), ("vcan1",)), (frame.pack(), None)]


def test_context_manager_closes():
    fake = FakeSocket()
    with RawSocket(fake):
        pass
    assert fake.closed is True


def test_timestamp_without_stamp_raises():
    fd = os.open(os.devnull, os.O_RDONLY)
    try:
        with pytest.raises(OSError):
            RawSocket(FakeSocket(fd=fd)).timestamp()
    finally:
        os.close(fd)


def test_main_sends_test_frame_via_interface():
    fake = FakeSocket()
    with mock.patch("socket.socket", return_value=fake):
        assert main(["-i", "vcan1"]) == 0
    assert fake.bound == ("",)
    assert fake.sent == [(build_test_frame().pack(), ("vcan1",))]
    assert fake.closed is True


def test_main_reports_socket_failure(capsys):
    failure = OSError(errno.EAFNOSUPPORT, os.strerror(errno.EAFNOSUPPORT))
    with mock.patch("socket.socket", side_effect=failure):
        assert main([]) == 1
    assert capsys.readouterr().err.startswith("socket:")