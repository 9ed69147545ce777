"""The upload_only extension message used by partial seeds."""

from __future__ import annotations

from peerpressure.bencoding import BencodeError, decode, encode
from peerpressure.extension import new_ext_message
from peerpressure.message import Message, ProtocolError

__all__ = ["encode_upload_only", "decode_upload_only", "new_upload_only_msg"]


def encode_upload_only(upload_only: bool) -> bytes:
    """The bencoded payload of an upload_only message."""
    return encode({"upload_only": 1 if upload_only else 0})


def decode_upload_only(payload: bytes) -> bool:
    """Parse an upload_only payload, either a dictionary or a bare integer."""
    if not payload:
        raise ProtocolError("empty upload_only payload")
    try:
        value = decode(bytes(payload))
    except BencodeError as exc:
        raise ProtocolError(f"decode upload_only: {exc}") from exc

    if isinstance(value, dict):
        flag = value.get("upload_only")
        return isinstance(flag, int) and flag != 0
    if isinstance(value, int):
        return value != 0
    raise ProtocolError(f"unexpected upload_only type: {type(value).__name__}")


def new_upload_only_msg(sub_id: int, upload_only: bool) -> Message:
    """A complete extended message carrying upload_only."""
    return new_ext_message(sub_id, encode_upload_only(upload_only))