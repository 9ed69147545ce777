"""The peer wire protocol: the opening handshake and length-prefixed messages.

Every connection starts with a 68-byte handshake, followed by a stream of
messages. Each message is a 4-byte big-endian length, a 1-byte message ID and
a payload. A length of zero is a keep-alive, represented here by ``None``.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import BinaryIO, NamedTuple, Optional

__all__ = [
    "PROTOCOL_STR",
    "HANDSHAKE_LEN",
    "MAX_MESSAGE_LEN",
    "ProtocolError",
    "MessageId",
    "Handshake",
    "Message",
    "RequestPayload",
    "PiecePayload",
    "write_handshake",
    "read_handshake",
    "write_message",
    "read_message",
    "keep_alive",
    "new_choke",
    "new_unchoke",
    "new_interested",
    "new_not_interested",
    "new_have",
    "new_bitfield",
    "new_request",
    "new_piece",
    "new_cancel",
    "new_suggest_piece",
    "new_have_all",
    "new_have_none",
    "new_reject_request",
    "new_allowed_fast",
    "parse_have",
    "parse_request",
    "parse_piece",
]

PROTOCOL_STR = b"BitTorrent protocol"
HANDSHAKE_LEN = 1 + len(PROTOCOL_STR) + 8 + 20 + 20  # 68 bytes

# Upper bound on a message's length, guarding against memory exhaustion.
MAX_MESSAGE_LEN = 1 << 24


class ProtocolError(ValueError):
    """Raised for malformed or truncated wire data."""


class MessageId(IntEnum):
    """Message IDs of the base protocol and its extensions."""

    CHOKE = 0
    UNCHOKE = 1
    INTERESTED = 2
    NOT_INTERESTED = 3
    HAVE = 4
    BITFIELD = 5
    REQUEST = 6
    PIECE = 7
    CANCEL = 8
    # Fast extension
    SUGGEST_PIECE = 13
    HAVE_ALL = 14
    HAVE_NONE = 15
    REJECT_REQUEST = 16
    ALLOWED_FAST = 17
    # Extension protocol; the first payload byte is a sub-ID, 0 being the handshake.
    EXTENDED = 20
    # v2 hash tree messages
    HASH_REQUEST = 21
    HASHES = 22
    HASH_REJECT = 23


def _read_exact(stream: BinaryIO, n: int, what: str) -> bytes:
    buf = bytearray()
    while len(buf) < n:
        chunk = stream.read(n - len(buf))
        if not chunk:
            raise ProtocolError(f"{what}: unexpected end of stream after {len(buf)} of {n} bytes")
        buf += chunk
    return bytes(buf)


def _pack_u32(*values: int) -> bytes:
    try:
        return struct.pack(f">{len(values)}I", *values)
    except struct.error as exc:
        raise ValueError(f"values must fit in 32 unsigned bits: {values}") from exc


# --- Handshake ---


@dataclass
class Handshake:
    """The 68-byte handshake that opens every peer connection."""

    info_hash: bytes = bytes(20)
    peer_id: bytes = bytes(20)
    reserved: bytes = bytes(8)

    def __post_init__(self) -> None:
        self.info_hash = bytes(self.info_hash)
        self.peer_id = bytes(self.peer_id)
        self.reserved = bytes(self.reserved)
        for name, value, size in (
            ("info_hash", self.info_hash, 20),
            ("peer_id", self.peer_id, 20),
            ("reserved", self.reserved, 8),
        ):
            if len(value) != size:
                raise ValueError(f"{name} must be {size} bytes, got {len(value)}")

    def supports_extensions(self) -> bool:
        """Whether reserved bit 43 (extension protocol) is set."""
        return bool(self.reserved[5] & 0x10)

    def supports_fast(self) -> bool:
        """Whether reserved bit 61 (fast extension) is set."""
        return bool(self.reserved[7] & 0x04)


def write_handshake(stream: BinaryIO, handshake: Handshake) -> None:
    """Write a handshake, advertising the extension protocol and fast extension."""
    reserved = bytearray(handshake.reserved)
    reserved[5] |= 0x10
    reserved[7] |= 0x04
    stream.write(
        bytes([len(PROTOCOL_STR)])
        + PROTOCOL_STR
        + bytes(reserved)
        + handshake.info_hash
        + handshake.peer_id
    )


def read_handshake(stream: BinaryIO) -> Handshake:
    """Read and parse a 68-byte handshake."""
    buf = _read_exact(stream, HANDSHAKE_LEN, "read handshake")
    if buf[0] != len(PROTOCOL_STR):
        raise ProtocolError(f"unexpected protocol string length: {buf[0]}")
    if buf[1:20] != PROTOCOL_STR:
        raise ProtocolError(f"unexpected protocol string: {buf[1:20]!r}")
    return Handshake(info_hash=buf[28:48], peer_id=buf[48:68], reserved=buf[20:28])


# --- Messages ---


@dataclass
class Message:
    """A peer wire message. Keep-alives are represented by ``None`` instead."""

    id: int
    payload: bytes = b""


def write_message(stream: BinaryIO, message: Optional[Message]) -> None:
    """Write a message; ``None`` is written as a keep-alive."""
    if message is None:
        stream.write(bytes(4))
        return
    payload = bytes(message.payload)
    stream.write(struct.pack(">IB", 1 + len(payload), message.id) + payload)


def read_message(stream: BinaryIO) -> Optional[Message]:
    """Read one message; returns ``None`` for a keep-alive."""
    (length,) = struct.unpack(">I", _read_exact(stream, 4, "read message length"))
    if length == 0:
        return None
    if length > MAX_MESSAGE_LEN:
        raise ProtocolError(f"message too large: {length} bytes")
    body = _read_exact(stream, length, "read message body")
    return Message(id=body[0], payload=body[1:])


# --- Constructors ---


def keep_alive() -> None:
    """The keep-alive message, which is ``None``."""
    return None


def new_choke() -> Message:
    return Message(MessageId.CHOKE)


def new_unchoke() -> Message:
    return Message(MessageId.UNCHOKE)


def new_interested() -> Message:
    return Message(MessageId.INTERESTED)


def new_not_interested() -> Message:
    return Message(MessageId.NOT_INTERESTED)


def new_have(piece_index: int) -> Message:
    return Message(MessageId.HAVE, _pack_u32(piece_index))


def new_bitfield(bitfield: bytes) -> Message:
    return Message(MessageId.BITFIELD, bytes(bitfield))


def new_request(index: int, begin: int, length: int) -> Message:
    return Message(MessageId.REQUEST, _pack_u32(index, begin, length))


def new_piece(index: int, begin: int, block: bytes) -> Message:
    return Message(MessageId.PIECE, _pack_u32(index, begin) + bytes(block))


def new_cancel(index: int, begin: int, length: int) -> Message:
    return Message(MessageId.CANCEL, _pack_u32(index, begin, length))


def new_suggest_piece(index: int) -> Message:
    return Message(MessageId.SUGGEST_PIECE, _pack_u32(index))


def new_have_all() -> Message:
    return Message(MessageId.HAVE_ALL)


def new_have_none() -> Message:
    return Message(MessageId.HAVE_NONE)


def new_reject_request(index: int, begin: int, length: int) -> Message:
    return Message(MessageId.REJECT_REQUEST, _pack_u32(index, begin, length))


def new_allowed_fast(index: int) -> Message:
    return Message(MessageId.ALLOWED_FAST, _pack_u32(index))


# --- Payload parsers ---


class RequestPayload(NamedTuple):
    """Fields of a Request, Cancel or Reject Request message."""

    index: int
    begin: int
    length: int


class PiecePayload(NamedTuple):
    """Fields of a Piece message."""

    index: int
    begin: int
    block: bytes


def parse_have(payload: bytes) -> int:
    """The piece index of a Have (or Suggest Piece, Allowed Fast) payload."""
    if len(payload) != 4:
        raise ProtocolError(f"have payload: expected 4 bytes, got {len(payload)}")
    return struct.unpack(">I", payload)[0]


def parse_request(payload: bytes) -> RequestPayload:
    """The fields of a Request or Cancel payload."""
    if len(payload) != 12:
        raise ProtocolError(f"request payload: expected 12 bytes, got {len(payload)}")
    return RequestPayload(*struct.unpack(">III", payload))


def parse_piece(payload: bytes) -> PiecePayload:
    """The fields of a Piece payload."""
    if len(payload) < 8:
        raise ProtocolError(f"piece payload: expected at least 8 bytes, got {len(payload)}")
    index, begin = struct.unpack(">II", payload[:8])
    return PiecePayload(index, begin, bytes(payload[8:]))