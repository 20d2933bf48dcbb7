import pytest

from canprobe.netlink import (
    NLA_F_NESTED,
    NLA_HDRLEN,
    NLMSG_DONE,
    NLMSG_HDRLEN,
    NLM_F_MULTI,
    NLM_F_REQUEST,
    NlAttr,
    NlMsgHeader,
    iter_attributes,
    iter_messages,
    nla_align,
    nlmsg_align,
)


def _message(msg_type, payload, seq=0):
    header = NlMsgHeader(NLMSG_HDRLEN + len(payload), msg_type, NLM_F_REQUEST, seq, 0)
    body = header.pack() + payload
    return body.ljust(nlmsg_align(len(body)), b"\x00")


@pytest.mark.parametrize("align", [nlmsg_align, nla_align])
def test_alignment_invariant(align):
    for length in range(40):
        aligned = align(length)
        assert aligned % 4 == 0
        assert length <= aligned < length + 4


def test_alignment_rejects_negative():
    with pytest.raises(ValueError):
        nlmsg_align(-1)


def test_header_round_trip():
    header = NlMsgHeader(40, NLMSG_DONE, NLM_F_MULTI, 7, 1234)
    packed = header.pack()
    assert len(packed) == NLMSG_HDRLEN
    assert NlMsgHeader.unpack(packed) == header
    assert header.payload_length == 40 - NLMSG_HDRLEN


def test_header_unpack_short():
    with pytest.raises(ValueError):
        NlMsgHeader.unpack(b"\x00" * (NLMSG_HDRLEN - 1))


def test_header_rejects_large_type():
    with pytest.raises(ValueError):
        NlMsgHeader(msg_type=1 << 16)


def test_iter_messages_walks_padding():
    buffer = _message(20, b"abc", seq=1) + _message(21, b"hello world", seq=2)
    messages = list(iter_messages(buffer))
    assert [h.seq for h, _ in messages] == [1, 2]
    assert [p for _, p in messages] == [b"abc", b"hello world"]


def test_iter_messages_rejects_overlong_length():
    header = NlMsgHeader(NLMSG_HDRLEN + 100, 20).pack()
    with pytest.raises(ValueError):
        list(iter_messages(header + b"abcd"))


def test_iter_messages_rejects_truncated_header():
    with pytest.raises(ValueError):
        list(iter_messages(_message(20, b"") + b"\x01\x02"))


def test_attr_pack_pads():
    packed = NlAttr(1, b"abc").pack()
    assert len(packed) == 8
    assert len(packed) == nla_align(NLA_HDRLEN + 3)


def test_attr_round_trip():
    attrs = [NlAttr(1, b"abc"), NlAttr(2, b""), NlAttr(3, b"12345678")]
    buffer = b"".join(a.pack() for a in attrs)
    assert list(iter_attributes(buffer)) == attrs


def test_attr_flags():
    attr = NlAttr(NLA_F_NESTED | 5, b"")
    assert attr.kind == 5
    assert attr.nested is True
    assert attr.net_byteorder is False


def test_attr_rejects_oversized_payload():
    with pytest.raises(ValueError):
        NlAttr(1, bytes(0x10000))


def test_iter_attributes_rejects_bad_length():
    bad = b"\x02\x00\x01\x00"
    with pytest.raises(ValueError):
        list(iter_attributes(bad))