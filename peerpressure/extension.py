"""The extension protocol handshake and extended messages.

Extended messages carry a one-byte sub-ID in front of their payload. Sub-ID 0
is the extension handshake, a bencoded dictionary in which each side
advertises the extensions it supports and the message IDs it will use.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from peerpressure.bencoding import BencodeError, decode, encode
from peerpressure.message import Message, MessageId, ProtocolError

__all__ = ["ExtHandshake", "new_ext_handshake", "parse_ext_handshake", "new_ext_message"]


@dataclass
class ExtHandshake:
    """The fields of an extension handshake."""

    m: dict[str, int] = field(default_factory=dict)
    """Extension names mapped to the message IDs the sender will use."""
    metadata_size: int = 0
    """Size of the info dictionary in bytes, when the sender has it."""
    v: str = ""
    """Client name and version, informational only."""
    upload_only: bool = False
    """Whether the sender is a partial seed."""


def new_ext_message(sub_id: int, data: bytes) -> Message:
    """An extended message with the given sub-ID and data."""
    return Message(MessageId.EXTENDED, bytes([sub_id]) + bytes(data))


def new_ext_handshake(
    exts: Mapping[str, int], metadata_size: int, client_version: str
) -> Message:
    """An extension handshake message advertising our extensions."""
    d: dict = {
        "m": {name: int(ext_id) for name, ext_id in exts.items()},
        "v": client_version,
    }
    if metadata_size > 0:
        d["metadata_size"] = metadata_size
    return new_ext_message(0, encode(d))


def parse_ext_handshake(payload: bytes) -> ExtHandshake:
    """Decode an extension handshake from an extended message's payload."""
    if len(payload) < 2:
        raise ProtocolError(f"extension handshake too short: {len(payload)} bytes")
    if payload[0] != 0:
        raise ProtocolError(f"expected sub-ID 0, got {payload[0]}")

    try:
        value = decode(bytes(payload[1:]))
    except BencodeError as exc:
        raise ProtocolError(f"decode extension handshake: {exc}") from exc
    if not isinstance(value, dict):
        raise ProtocolError(
            f"extension handshake: expected dict, got {type(value).__name__}"
        )

    hs = ExtHandshake()
    m = value.get("m")
    if isinstance(m, dict):
        hs.m = {name: ext_id for name, ext_id in m.items() if isinstance(ext_id, int)}

    metadata_size = value.get("metadata_size")
    if isinstance(metadata_size, int):
        hs.metadata_size = metadata_size

    version = value.get("v")
    if isinstance(version, bytes):
        hs.v = version.decode("utf-8", "surrogateescape")

    upload_only = value.get("upload_only")
    if isinstance(upload_only, int):
        hs.upload_only = upload_only != 0

    return hs