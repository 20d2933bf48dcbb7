"""Netlink message headers, attributes and their alignment."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Iterator, Tuple

NETLINK_ROUTE = 0
NETLINK_UNUSED = 1
NETLINK_USERSOCK = 2
NETLINK_FIREWALL = 3
NETLINK_SOCK_DIAG = 4
NETLINK_NFLOG = 5
NETLINK_XFRM = 6
NETLINK_SELINUX = 7
NETLINK_ISCSI = 8
NETLINK_AUDIT = 9
NETLINK_FIB_LOOKUP = 10
NETLINK_CONNECTOR = 11
NETLINK_NETFILTER = 12
NETLINK_IP6_FW = 13
NETLINK_DNRTMSG = 14
NETLINK_KOBJECT_UEVENT = 15
NETLINK_GENERIC = 16
NETLINK_SCSITRANSPORT = 18
NETLINK_ECRYPTFS = 19
NETLINK_RDMA = 20
NETLINK_CRYPTO = 21
NETLINK_SMC = 22
NETLINK_INET_DIAG = NETLINK_SOCK_DIAG

MAX_LINKS = 32

NLM_F_REQUEST = 0x01
NLM_F_MULTI = 0x02
NLM_F_ACK = 0x04
NLM_F_ECHO = 0x08
NLM_F_DUMP_INTR = 0x10
NLM_F_DUMP_FILTERED = 0x20
NLM_F_ROOT = 0x100
NLM_F_MATCH = 0x200
NLM_F_ATOMIC = 0x400
NLM_F_DUMP = NLM_F_ROOT | NLM_F_MATCH
NLM_F_REPLACE = 0x100
NLM_F_EXCL = 0x200
NLM_F_CREATE = 0x400
NLM_F_APPEND = 0x800
NLM_F_NONREC = 0x100
NLM_F_CAPPED = 0x100
NLM_F_ACK_TLVS = 0x200

NLMSG_NOOP = 0x1
NLMSG_ERROR = 0x2
NLMSG_DONE = 0x3
NLMSG_OVERRUN = 0x4
NLMSG_MIN_TYPE = 0x10

NLMSGERR_ATTR_UNUSED = 0
NLMSGERR_ATTR_MSG = 1
NLMSGERR_ATTR_OFFS = 2
NLMSGERR_ATTR_COOKIE = 3
NLMSGERR_ATTR_MAX = 3

NETLINK_ADD_MEMBERSHIP = 1
NETLINK_DROP_MEMBERSHIP = 2
NETLINK_PKTINFO = 3
NETLINK_BROADCAST_ERROR = 4
NETLINK_NO_ENOBUFS = 5
NETLINK_RX_RING = 6
NETLINK_TX_RING = 7
NETLINK_LISTEN_ALL_NSID = 8
NETLINK_LIST_MEMBERSHIPS = 9
NETLINK_CAP_ACK = 10
NETLINK_EXT_ACK = 11
NETLINK_GET_STRICT_CHK = 12

NETLINK_UNCONNECTED = 0
NETLINK_CONNECTED = 1

NET_MAJOR = 36

NLA_F_NESTED = 1 << 15
NLA_F_NET_BYTEORDER = 1 << 14
NLA_TYPE_MASK = 0xFFFF & ~(NLA_F_NESTED | NLA_F_NET_BYTEORDER)

NLMSG_ALIGNTO = 4
NLA_ALIGNTO = 4

_HEADER = struct.Struct("=IHHII")
_ATTR = struct.Struct("=HH")


def nlmsg_align(length: int) -> int:
    """Round a message length up to the netlink message alignment."""
    if length < 0:
        raise ValueError("a length cannot be negative")
    return (length + NLMSG_ALIGNTO - 1) & ~(NLMSG_ALIGNTO - 1)


def nla_align(length: int) -> int:
    """Round an attribute length up to the netlink attribute alignment."""
    if length < 0:
        raise ValueError("a length cannot be negative")
    return (length + NLA_ALIGNTO - 1) & ~(NLA_ALIGNTO - 1)


NLMSG_HDRLEN = nlmsg_align(_HEADER.size)
NLA_HDRLEN = nla_align(_ATTR.size)


def _check(name: str, value: int, bits: int) -> None:
    if not 0 <= value < (1 << bits):
        raise ValueError(f"{name} {value} does not fit in {bits} bits")


@dataclass(frozen=True)
class NlMsgHeader:
    """The header in front of every netlink message."""

    length: int = NLMSG_HDRLEN
    msg_type: int = 0
    flags: int = 0
    seq: int = 0
    pid: int = 0

    def __post_init__(self) -> None:
        _check("length", self.length, 32)
        _check("msg_type", self.msg_type, 16)
        _check("flags", self.flags, 16)
        _check("seq", self.seq, 32)
        _check("pid", self.pid, 32)

    @property
    def payload_length(self) -> int:
        """Bytes of payload that follow the header."""
        return self.length - NLMSG_HDRLEN

    def pack(self) -> bytes:
        """Return the header in the kernel's struct nlmsghdr layout."""
        return _HEADER.pack(self.length, self.msg_type, self.flags, self.seq, self.pid)

    @classmethod
    def unpack(cls, data: bytes) -> "NlMsgHeader":
        """Read a header from the start of a buffer."""
        if len(data) < _HEADER.size:
            raise ValueError("incomplete netlink message header")
        return cls(*_HEADER.unpack_from(data))


@dataclass(frozen=True)
class NlAttr:
    """A netlink attribute: a type and its payload."""

    nla_type: int
    payload: bytes = b""

    def __post_init__(self) -> None:
        object.__setattr__(self, "payload", bytes(self.payload))
        _check("nla_type", self.nla_type, 16)
        if NLA_HDRLEN + len(self.payload) > 0xFFFF:
            raise ValueError("attribute payload too large")

    @property
    def kind(self) -> int:
        """The attribute type without the nested and byte order flags."""
        return self.nla_type & NLA_TYPE_MASK

    @property
    def nested(self) -> bool:
        """True when the payload holds nested attributes."""
        return bool(self.nla_type & NLA_F_NESTED)

    @property
    def net_byteorder(self) -> bool:
        """True when the payload is in network byte order."""
        return bool(self.nla_type & NLA_F_NET_BYTEORDER)

    def pack(self) -> bytes:
        """Return the attribute with its header and trailing padding."""
        length = NLA_HDRLEN + len(self.payload)
        body = _ATTR.pack(length, self.nla_type) + self.payload
        return body.ljust(nla_align(length), b"\x00")


def iter_messages(data: bytes) -> Iterator[Tuple[NlMsgHeader, bytes]]:
    """Yield each message in a netlink buffer as (header, payload)."""
    data = bytes(data)
    offset = 0
    while offset < len(data):
        remaining = len(data) - offset
        if remaining < NLMSG_HDRLEN:
            raise ValueError("truncated netlink message header")
        header = NlMsgHeader.unpack(data[offset:offset + NLMSG_HDRLEN])
        if header.length < NLMSG_HDRLEN or header.length > remaining:
            raise ValueError(f"invalid netlink message length {header.length}")
        yield header, data[offset + NLMSG_HDRLEN:offset + header.length]
        offset += nlmsg_align(header.length)


def iter_attributes(data: bytes) -> Iterator[NlAttr]:
    """Yield each attribute in a buffer of netlink attributes."""
    data = bytes(data)
    offset = 0
    while offset < len(data):
        remaining = len(data) - offset
        if remaining < NLA_HDRLEN:
            raise ValueError("truncated netlink attribute header")
        length, nla_type = _ATTR.unpack_from(data, offset)
        if length < NLA_HDRLEN or length > remaining:
            raise ValueError(f"invalid netlink attribute length {length}")
        yield NlAttr(nla_type, data[offset + NLA_HDRLEN:offset + length])
        offset += nla_align(length)