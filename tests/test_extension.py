import io

import pytest

from peerpressure.bencoding import encode
from peerpressure.extension import (
    ExtHandshake,
    new_ext_handshake,
    new_ext_message,
    parse_ext_handshake,
)
from peerpressure.message import (
    Handshake,
    MessageId,
    ProtocolError,
    read_handshake,
    write_handshake,
)


def _handshake_payload(d: dict) -> bytes:
    return b"\x00" + encode(d)


def test_ext_handshake_round_trip():
    msg = new_ext_handshake({"ut_metadata": 1, "ut_pex": 2}, 31415, "Test Client 1.0")
    assert msg.id == MessageId.EXTENDED
    assert msg.payload[0] == 0

    hs = parse_ext_handshake(msg.payload)
    assert hs.m == {"ut_metadata": 1, "ut_pex": 2}
    assert hs.metadata_size == 31415
    assert hs.v == "Test Client 1.0"
    assert hs.upload_only is False


def test_ext_handshake_no_metadata_size():
    msg = new_ext_handshake({"ut_pex": 3}, 0, "Test")
    hs = parse_ext_handshake(msg.payload)
    assert hs.metadata_size == 0
    assert hs.m["ut_pex"] == 3


def test_ext_handshake_omits_zero_metadata_size_on_wire():
    msg = new_ext_handshake({}, 0, "Test")
    assert b"metadata_size" not in msg.payload


def test_ext_handshake_empty_extensions():
    msg = new_ext_handshake({}, 0, "Test")
    hs = parse_ext_handshake(msg.payload)
    assert hs.m == {}


def test_parse_ext_handshake_too_short():
    with pytest.raises(ProtocolError):
        parse_ext_handshake(b"\x00")


def test_parse_ext_handshake_wrong_sub_id():
    with pytest.raises(ProtocolError):
        parse_ext_handshake(bytes([1]) + b"de")


def test_parse_ext_handshake_invalid_bencode():
    with pytest.raises(ProtocolError):
        parse_ext_handshake(b"\x00\xff\xff")


def test_parse_ext_handshake_not_a_dict():
    with pytest.raises(ProtocolError):
        parse_ext_handshake(b"\x00i5e")


def test_parse_ext_handshake_ignores_non_integer_ids():
    hs = parse_ext_handshake(_handshake_payload({"m": {"a": 1, "b": b"x"}}))
    assert hs.m == {"a": 1}


def test_new_ext_message():
    msg = new_ext_message(3, b"hello")
    assert msg.id == MessageId.EXTENDED
    assert msg.payload[0] == 3
    assert msg.payload[1:] == b"hello"


def test_new_ext_message_rejects_out_of_range_sub_id():
    with pytest.raises(ValueError):
        new_ext_message(256, b"")


def test_handshake_reserved_bit_set_on_write():
    hs = Handshake(info_hash=bytes([1, 2, 3]) + bytes(17), peer_id=bytes([4, 5, 6]) + bytes(17))
    buf = io.BytesIO()
    write_handshake(buf, hs)
    buf.seek(0)
    got = read_handshake(buf)
    assert got.supports_extensions()
    assert got.reserved[5] & 0x10


def test_handshake_reserved_bit_not_set():
    assert Handshake().supports_extensions() is False


def test_ext_handshake_upload_only_true():
    payload = _handshake_payload({"m": {"upload_only": 3}, "upload_only": 1, "v": "Test"})
    hs = parse_ext_handshake(payload)
    assert hs.upload_only is True
    assert hs.m["upload_only"] == 3


def test_ext_handshake_upload_only_absent():
    payload = _handshake_payload({"m": {"ut_metadata": 1}, "v": "Test"})
    hs = parse_ext_handshake(payload)
    assert hs.upload_only is False


def test_ext_handshake_upload_only_in_m_only():
    payload = _handshake_payload({"m": {"upload_only": 3}, "v": "Test"})
    hs = parse_ext_handshake(payload)
    assert hs.upload_only is False
    assert hs.m["upload_only"] == 3


def test_ext_handshake_defaults():
    hs = ExtHandshake()
    assert (hs.m, hs.metadata_size, hs.v, hs.upload_only) == ({}, 0, "", False)