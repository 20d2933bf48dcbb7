import errno
import os
from unittest import mock

from canprobe.frames import (
    CAN_EFF_MASK,
    CAN_SFF_MASK,
    SOL_CAN_RAW,
    CanFilter,
    CanFrame,
    unpack_filters,
)
from canprobe.rawdump import (
    CAN_RAW_LOOPBACK,
    CAN_RAW_RECV_OWN_MSGS,
    default_filters,
    format_frame,
    main,
)


class FakeSocket:
    """Replays a scripted sequence of receive results."""

    def __init__(self, incoming):
        self.incoming = list(incoming)
        self.options = {}
        self.sent = []
        self.bound = None
        self.closed = False

    def setsockopt(self, level, option, value):
        self.options[(level, option)] = bytes(value)

    def bind(self, address):
        self.bound = address

    def send(self, data):
        self.sent.append(bytes(data))
        return len(data)

    def recvfrom(self, size, flags=0):
        item = self.incoming.pop(0) if self.incoming else OSError(
            errno.ENETDOWN, os.strerror(errno.ENETDOWN)
        )
        if isinstance(item, Exception):
            raise item
        return item, ("vcan0",)

    def fileno(self):
        return 9999

    def close(self):
        self.closed = True


def test_default_filters_match_source():
    assert default_filters() == [
        CanFilter(0x123, CAN_SFF_MASK),
        CanFilter(0x200, 0x700),
        CanFilter(0x80123456, 0x1FFFF000),
        CanFilter(0x80333333, CAN_EFF_MASK),
    ]


def test_format_standard_frame_with_timestamp():
    frame = CanFrame(0x123, bytes([0x11, 0x22]))
    assert format_frame(frame, (12, 345)) == "(12.000345) 123  [2] 11 22 "


def test_format_without_timestamp_has_no_prefix():
    frame = CanFrame(0x7FF, bytes([0xAB]))
    line = format_frame(frame)
    assert line == "7FF  [1] AB "
    assert format_frame(frame, (1, 0)).endswith(line)


def test_format_extended_frame_is_right_aligned():
    frame = CanFrame(0x80333333, b"")
    assert format_frame(frame) == "  333333  [0] "


def test_format_remote_frame():
    frame = CanFrame(0x40000123, b"")
    assert format_frame(frame).endswith("remote request")


def test_main_installs_filters_and_prints_frames(capsys):
    frame = CanFrame(0x123, bytes([0x11, 0x22]))
    fake = FakeSocket([frame.pack()])
    with mock.patch("socket.socket", return_value=fake):
        assert main(["-i", "vcan0", "-l", "0", "-r", "1", "-s"]) == 1
    assert unpack_filters(fake.options[(SOL_CAN_RAW, 1)]) == default_filters()
    assert fake.options[(SOL_CAN_RAW, CAN_RAW_LOOPBACK)] == (0).to_bytes(4, "little")
    assert fake.options[(SOL_CAN_RAW, CAN_RAW_RECV_OWN_MSGS)] == (1).to_bytes(4, "little")
    assert fake.bound == ("vcan0",)
    assert [CanFrame.unpack(data) for data in fake.sent] == [frame]
    captured = capsys.readouterr()
    assert "123  [2] 11 22 " in captured.out
    assert "read:" in captured.err
    assert fake.closed


def test_main_without_send_sends_nothing():
    fake = FakeSocket([])
    with mock.patch("socket.socket", return_value=fake):
        assert main([]) == 1
    assert fake.sent == []
    assert (SOL_CAN_RAW, CAN_RAW_LOOPBACK) not in fake.options


def test_main_ignores_read_errors_until_incomplete_frame(capsys):
    failure = OSError(errno.EIO, os.strerror(errno.EIO))
    fake = FakeSocket([failure, failure, b"\x00" * 4])
    with mock.patch("socket.socket", return_value=fake):
        assert main(["-e"]) == 1
    err = capsys.readouterr().err
    assert err.count(f"read: {os.strerror(errno.EIO)}") == 2
    assert "incomplete" in err