import io
import struct

import pytest

from peerpressure.message import (
    HANDSHAKE_LEN,
    MAX_MESSAGE_LEN,
    Handshake,
    Message,
    MessageId,
    ProtocolError,
    RequestPayload,
    keep_alive,
    new_allowed_fast,
    new_bitfield,
    new_cancel,
    new_choke,
    new_have,
    new_have_all,
    new_have_none,
    new_interested,
    new_not_interested,
    new_piece,
    new_reject_request,
    new_request,
    new_suggest_piece,
    new_unchoke,
    parse_have,
    parse_piece,
    parse_request,
    read_handshake,
    read_message,
    write_handshake,
    write_message,
)


def test_handshake_round_trip():
    original = Handshake(info_hash=bytes(range(1, 21)), peer_id=b"-PP0001-abcdefghijkl")
    buf = io.BytesIO()
    write_handshake(buf, original)
    assert len(buf.getvalue()) == HANDSHAKE_LEN
    buf.seek(0)
    got = read_handshake(buf)
    assert got.info_hash == original.info_hash
    assert got.peer_id == original.peer_id


def test_handshake_protocol_string():
    buf = io.BytesIO()
    write_handshake(buf, Handshake())
    raw = buf.getvalue()
    assert raw[0] == 19
    assert raw[1:20] == b"BitTorrent protocol"


def test_handshake_advertises_fast_and_extensions():
    buf = io.BytesIO()
    write_handshake(buf, Handshake())
    raw = buf.getvalue()
    assert raw[20:28] == bytes([0, 0, 0, 0, 0, 0x10, 0, 0x04])
    buf.seek(0)
    got = read_handshake(buf)
    assert got.reserved == bytes([0, 0, 0, 0, 0, 0x10, 0, 0x04])


def test_handshake_reserved_bits_preserved_on_read():
    buf = io.BytesIO()
    write_handshake(buf, Handshake(info_hash=bytes([1, 2, 3]) + bytes(17)))
    buf.seek(0)
    got = read_handshake(buf)
    assert got.supports_extensions() is True
    assert got.supports_fast() is True


def test_zero_handshake_supports_nothing():
    assert Handshake().supports_extensions() is False
    assert Handshake().supports_fast() is False


def test_supports_fast_after_setting_bit():
    h = Handshake(reserved=bytes(7) + b"\x04")
    assert h.supports_fast() is True


def test_handshake_rejects_wrong_sizes():
    with pytest.raises(ValueError):
        Handshake(info_hash=b"short")


def test_read_handshake_bad_protocol():
    buf = bytes([19]) + b"NotBitTorrent proto" + bytes(48)
    with pytest.raises(ProtocolError):
        read_handshake(io.BytesIO(buf))


def test_read_handshake_truncated():
    with pytest.raises(ProtocolError):
        read_handshake(io.BytesIO(bytes(30)))


@pytest.mark.parametrize(
    "msg",
    [
        new_choke(),
        new_unchoke(),
        new_interested(),
        new_not_interested(),
        new_have(42),
        new_bitfield(bytes([0xFF, 0x00, 0xAB])),
        new_request(1, 0, 16384),
        new_piece(1, 0, b"hello block data"),
        new_cancel(1, 0, 16384),
    ],
)
def test_message_round_trips(msg):
    buf = io.BytesIO()
    write_message(buf, msg)
    buf.seek(0)
    got = read_message(buf)
    assert got.id == msg.id
    assert got.payload == msg.payload


def test_keep_alive_round_trip():
    buf = io.BytesIO()
    write_message(buf, keep_alive())
    assert buf.getvalue() == bytes(4)
    buf.seek(0)
    assert read_message(buf) is None


def test_read_message_too_large():
    with pytest.raises(ProtocolError, match="too large"):
        read_message(io.BytesIO(struct.pack(">I", MAX_MESSAGE_LEN + 1)))


def test_read_message_truncated_body():
    with pytest.raises(ProtocolError):
        read_message(io.BytesIO(struct.pack(">I", 13) + b"\x06\x00"))


def test_read_message_eof():
    with pytest.raises(ProtocolError):
        read_message(io.BytesIO(b""))


def test_multiple_messages():
    messages = [new_interested(), None, new_have(7), new_request(0, 0, 16384)]
    buf = io.BytesIO()
    for m in messages:
        write_message(buf, m)
    buf.seek(0)
    got = [read_message(buf) for _ in messages]
    assert got[1] is None
    assert [m.id for m in got if m is not None] == [
        MessageId.INTERESTED,
        MessageId.HAVE,
        MessageId.REQUEST,
    ]


def test_parse_have():
    assert parse_have(new_have(42).payload) == 42


def test_parse_have_bad_length():
    with pytest.raises(ProtocolError):
        parse_have(bytes([1, 2]))


def test_parse_request():
    assert parse_request(new_request(5, 16384, 16384).payload) == RequestPayload(5, 16384, 16384)


def test_parse_request_bad_length():
    with pytest.raises(ProtocolError):
        parse_request(bytes(11))


def test_parse_piece():
    block = b"test data 1234567890"
    pp = parse_piece(new_piece(3, 0, block).payload)
    assert (pp.index, pp.begin, pp.block) == (3, 0, block)


def test_parse_piece_too_short():
    with pytest.raises(ProtocolError):
        parse_piece(bytes([1, 2, 3]))


def test_message_wire_format():
    buf = io.BytesIO()
    write_message(buf, new_request(1, 16384, 16384))
    raw = buf.getvalue()
    assert len(raw) == 17
    assert struct.unpack(">I", raw[0:4])[0] == 13
    assert raw[4] == MessageId.REQUEST
    assert struct.unpack(">III", raw[5:17]) == (1, 16384, 16384)


def test_suggest_piece():
    msg = new_suggest_piece(42)
    assert msg.id == MessageId.SUGGEST_PIECE
    assert len(msg.payload) == 4
    assert parse_have(msg.payload) == 42


def test_have_all_and_have_none():
    assert new_have_all() == Message(MessageId.HAVE_ALL, b"")
    assert new_have_none() == Message(MessageId.HAVE_NONE, b"")


def test_reject_request():
    msg = new_reject_request(5, 16384, 16384)
    assert msg.id == MessageId.REJECT_REQUEST
    assert parse_request(msg.payload) == RequestPayload(5, 16384, 16384)


def test_allowed_fast():
    msg = new_allowed_fast(99)
    assert msg.id == MessageId.ALLOWED_FAST
    assert parse_have(msg.payload) == 99


def test_constructor_rejects_out_of_range():
    with pytest.raises(ValueError):
        new_have(-1)