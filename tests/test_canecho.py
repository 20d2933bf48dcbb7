import errno
import os
from unittest import mock

from canprobe.canecho import echo_frame, format_echo_line, main
from canprobe.frames import CAN_EFF_FLAG, CAN_RTR_FLAG, CanFdFrame, CanFrame


class FakeSocket:
    def __init__(self, incoming=()):
        self.incoming = list(incoming)
        self.sent = []
        self.bound = None
        self.closed = False

    def bind(self, address):
        self.bound = address

    def recvfrom(self, bufsize, flags=0):
        if not self.incoming:
            raise OSError(errno.ENETDOWN, os.strerror(errno.ENETDOWN))
        return self.incoming.pop(0)

    def send(self, data):
        self.sent.append(data)
        return len(data)

    def close(self):
        self.closed = True


def test_format_data_frame():
    assert format_echo_line(CanFrame(0x123, b"\x11\x22")) == "123: [2] 11 22"


def test_format_remote_request():
    assert format_echo_line(CanFrame(CAN_RTR_FLAG | 0x7FF)) == "7FF: remote request"


def test_format_extended_hides_flag():
    line = format_echo_line(CanFrame(CAN_EFF_FLAG | 0x1ABCDE0, b""))
    assert line.startswith("1ABCDE0: ")


def test_echo_increments_identifier_and_keeps_data():
    frame = CanFrame(0x123, b"\x01\x02\x03")
    reply = echo_frame(frame)
    assert reply.can_id == frame.can_id + 1
    assert reply.data == frame.data


def test_echo_wraps_at_32_bits():
    assert echo_frame(CanFrame(0xFFFFFFFF)).can_id == 0


def test_echo_keeps_fd_frame_type():
    frame = CanFdFrame(0x10, bytes(12), flags=1)
    reply = echo_frame(frame)
    assert isinstance(reply, CanFdFrame)
    assert reply.flags == frame.flags


def test_main_without_interface_prints_usage(capsys):
    assert main([]) == 0
    assert capsys.readouterr().err.startswith("Usage:")


def test_main_echoes_frames(capsys):
    frames = [CanFrame(0x100, b"\xAA"), CanFrame(0x200, b"")]
    fake = FakeSocket([(f.pack(), ("vcan0",)) for f in frames])
    with mock.patch("socket.socket", return_value=fake):
        assert main(["-v", "vcan0"]) == 1
    assert fake.bound == ("vcan0",)
    assert fake.sent == [echo_frame(f).pack() for f in frames]
    assert fake.closed is True
    lines = capsys.readouterr().out.splitlines()
    assert lines[0].startswith("interface = vcan0, family = 29")
    assert lines[1:] == [format_echo_line(f) for f in frames]


def test_main_quiet_prints_no_frames(capsys):
    fake = FakeSocket([(CanFrame(0x5, b"").pack(), ("vcan0",))])
    with mock.patch("socket.socket", return_value=fake):
        assert main(["vcan0"]) == 1
    assert len(capsys.readouterr().out.splitlines()) == 1
    assert len(fake.sent) == 1