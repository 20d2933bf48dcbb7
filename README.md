# canprobe

SocketCAN data structures and small test tools for raw CAN sockets on Linux.

The package has two halves:

* **Structures**: pure-Python classes that pack and unpack the binary
  layouts the Linux CAN subsystem uses. They need no CAN hardware and
  can be built, inspected and tested on any platform.
* **Tools**: command-line programs that open raw CAN sockets
  (`AF_CAN` / `CAN_RAW`) and exchange Classical CAN frames. They need
  Linux with SocketCAN, and usually a virtual CAN interface such as `vcan0`.

The package has no dependencies outside the standard library.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Structures

| Module | Contents |
| --- | --- |
| `canprobe.frames` | `CanFrame`, `CanFdFrame`, `CanXlFrame`, `CanFilter`, `CanProtocol`, `RawOption`, `pack_filters`, `unpack_filters`, `max_payload_for_mtu` |
| `canprobe.errors` | Error frame contents (`ErrorClass`, `ControllerError`, `ProtocolError`, `ProtocolLocation`, `TransceiverError`), `error_state`, `describe_error_frame` |
| `canprobe.bcm` | Broadcast manager messages: `BcmOpcode`, `BcmFlag`, `BcmTimeval`, `BcmMsgHead` |
| `canprobe.gw` | CAN gateway rules: `RtCanMsg`, `FrameMod`, `FdFrameMod`, `XorChecksum`, `Crc8Checksum`, `GwType`, `GwAttr`, `GwFlag`, `ModType`, `Crc8Profile` |
| `canprobe.isotp` | ISO 15765-2 socket options: `IsotpOptions`, `FlowControlOptions`, `LinkLayerOptions`, `IsotpOption`, `IsotpFlag` |
| `canprobe.j1939` | `J1939Name`, `J1939Filter`, `J1939Option`, `pgn_is_pdu1` |
| `canprobe.netlink` | `NlMsgHeader`, `NlAttr`, `nlmsg_align`, `nla_align`, `iter_messages`, `iter_attributes` |
| `canprobe.canlink` | CAN device netlink data: `CanBittiming`, `CanBittimingConst`, `CanBerrCounter`, `CanDeviceStats`, `CanState`, `CtrlMode`, `CanLinkAttr` |
| `canprobe.tstamp` | Socket timestamping: `SockExtendedErr`, `HwTstampConfig`, `ErrOrigin`, `TimestampingFlag`, `unpack_scm_timestamping` |

The classes are frozen dataclasses. Their constructors check that every
field fits its binary width and raise `ValueError` when it does not;
`unpack` raises `ValueError` for buffers of the wrong size.

Frames and filters:

```python
from canprobe.frames import CanFrame, CanFilter

frame = CanFrame(can_id=0x123, data=bytes([0x11, 0x22, 0x33]))
wire = frame.pack()                  # 16 bytes, struct can_frame layout
assert CanFrame.unpack(wire) == frame

flt = CanFilter(can_id=0x200, can_mask=0x700)
flt.matches(0x2AB)                   # True
```

Error frames and error counters:

```python
from canprobe.errors import ErrorClass, describe_error_frame, error_state
from canprobe.frames import CAN_ERR_FLAG, CanFrame

frame = CanFrame(CAN_ERR_FLAG | ErrorClass.BUSOFF, bytes(8))
describe_error_frame(frame)          # ['(bus off)']
error_state(100)                     # 'error-warning'
```

Gateway checksums can be applied to a payload or a frame:

```python
from canprobe.gw import XorChecksum

XorChecksum(from_idx=0, to_idx=2, result_idx=3).apply(bytes([1, 2, 4, 0]))
# b'\x01\x02\x04\x07'
```

## Raw sockets

`canprobe.rawsock` wraps a raw CAN socket in `RawSocket`, which is a
context manager:

```python
from canprobe.rawsock import RawSocket, build_test_frame

with RawSocket() as sock:
    sock.bind("vcan0")
    sock.send_frame(build_test_frame())
    frame, ifname = sock.recv_frame()
```

`RawSocket` offers `bind`, `set_filters`, `get_filters`,
`set_error_filter`, `set_option`, `recv_frame` (optionally with
`peek=True`), `send_frame` (optionally through another interface),
`timestamp` and `close`. The interface name `"any"` stands for all
interfaces (index 0); `interface_index` and `interface_name` translate
between names and indices.

## Command-line tools

| Command | What it does |
| --- | --- |
| `canprobe-sendto` | Binds to all interfaces and sends one frame (ID `123`, data `11 22 33`) with `sendto` through the interface given by `-i` (default `vcan2`), then exits. |
| `canprobe-echo IFACE` | Reads frames from an interface and sends each one back with its CAN ID increased by one, until a read or write fails or SIGTERM/SIGHUP arrives. `-v` prints each received frame; `-f`, `-t` and `-p` choose the socket family, type and protocol. Without an interface it prints a usage line. |
| `canprobe-errdump` | Lets no data frame through and prints the error frames it receives: bus off, TX timeout, missing ACK, lost arbitration and controller buffer overflow and warning states. `-i` selects the interface (default `vcan2`), `-m` sets the error class mask in hex. |
| `canprobe-filter` | Receives frames through up to 32 `-f id:mask` filters (hex), printing the interface name of each frame. `-i` selects the interface (default: any), `-d` keeps the socket's default filter, `-p N` makes the first N reads use `MSG_PEEK`, so the waiting frame is shown N times marked `(MSG_PEEK)` before it is consumed. |
| `canprobe-sockopt` | Installs 16 filters and checks how the kernel returns them through `getsockopt` with buffers that are exact, too large and too small (expecting `ERANGE`). Exits with status 1 when a check fails. |
| `canprobe-dump` | Receives frames through a fixed set of four filters and prints them with timestamps. `-i` selects the interface (default `vcan2`), `-l` and `-r` set loopback and receive-own-messages, `-s` sends one frame first, `-e` keeps going after read errors. |

Example with a virtual interface:

```
sudo ip link add dev vcan0 type vcan
sudo ip link set up vcan0
canprobe-echo -v vcan0
canprobe-sendto -i vcan0
```

## What it does not do

* The tools use raw sockets and Classical CAN frames only. There are no
  commands or socket wrappers for the broadcast manager, the CAN
  gateway, ISO-TP or J1939: for those the package offers the data
  structures alone, to be written to sockets you open yourself.
* The netlink module packs and parses messages and attributes but does
  not open netlink sockets, so it cannot by itself configure interfaces,
  bit timing or gateway rules.
* There is no frame logger that writes log files or receives CAN FD or
  CAN XL frames from the bus.