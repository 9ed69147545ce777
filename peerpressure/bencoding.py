"""Bencode encoding and decoding.

Byte strings decode to ``bytes``, integers to ``int``, lists to ``list`` and
dictionaries to ``dict`` with ``str`` keys.
Keys are decoded as UTF-8 with surrogate escapes, so any key survives a round
trip. When encoding, ``str`` values are written as their UTF-8 bytes.
"""

from __future__ import annotations

import re
from typing import Any, NamedTuple

__all__ = ["BencodeError", "RawEntry", "encode", "decode", "decode_dict_raw"]

_INT_RE = re.compile(rb"-?(0|[1-9][0-9]*)")
_LEN_RE = re.compile(rb"0|[1-9][0-9]*")


class BencodeError(ValueError):
    """Raised for values that cannot be encoded or data that cannot be decoded."""


class RawEntry(NamedTuple):
    """A decoded dictionary value together with the exact bytes it came from."""

    value: Any
    raw: bytes


def _key_bytes(key: Any) -> bytes:
    if isinstance(key, bytes):
        return key
    if isinstance(key, str):
        return key.encode("utf-8", "surrogateescape")
    raise BencodeError(f"dictionary key must be str or bytes, not {type(key).__name__}")


def _key_text(key: bytes) -> str:
    return key.decode("utf-8", "surrogateescape")


def encode(value: Any) -> bytes:
    """Encode a value to bencode."""
    out = bytearray()
    try:
        _encode_into(value, out)
    except RecursionError as exc:
        raise BencodeError("value nested too deeply") from exc
    return bytes(out)


def _encode_into(value: Any, out: bytearray) -> None:
    if isinstance(value, bool):
        raise BencodeError("cannot encode bool")
    if isinstance(value, int):
        out += b"i%de" % value
    elif isinstance(value, (bytes, bytearray, memoryview)):
        data = bytes(value)
        out += b"%d:" % len(data)
        out += data
    elif isinstance(value, str):
        data = value.encode("utf-8", "surrogateescape")
        out += b"%d:" % len(data)
        out += data
    elif isinstance(value, (list, tuple)):
        out += b"l"
        for item in value:
            _encode_into(item, out)
        out += b"e"
    elif isinstance(value, dict):
        items = sorted(((_key_bytes(k), v) for k, v in value.items()), key=lambda kv: kv[0])
        out += b"d"
        previous = None
        for key, item in items:
            if key == previous:
                raise BencodeError(f"duplicate dictionary key {key!r}")
            previous = key
            out += b"%d:" % len(key)
            out += key
            _encode_into(item, out)
        out += b"e"
    else:
        raise BencodeError(f"cannot encode {type(value).__name__}")


class _Decoder:
    def __init__(self, data: bytes) -> None:
        self.data = data
        self.pos = 0

    def _peek(self) -> int:
        if self.pos >= len(self.data):
            raise BencodeError(f"unexpected end of data at offset {self.pos}")
        return self.data[self.pos]

    def value(self) -> Any:
        lead = self._peek()
        if lead == ord("i"):
            return self._int()
        if lead == ord("l"):
            return self._list()
        if lead == ord("d"):
            return self._dict()
        if ord("0") <= lead <= ord("9"):
            return self._bytes()
        raise BencodeError(f"invalid token {bytes([lead])!r} at offset {self.pos}")

    def _int(self) -> int:
        end = self.data.find(b"e", self.pos + 1)
        if end < 0:
            raise BencodeError(f"unterminated integer at offset {self.pos}")
        digits = self.data[self.pos + 1 : end]
        if not _INT_RE.fullmatch(digits) or digits == b"-0":
            raise BencodeError(f"invalid integer {digits!r} at offset {self.pos}")
        self.pos = end + 1
        return int(digits)

    def _bytes(self) -> bytes:
        colon = self.data.find(b":", self.pos)
        if colon < 0:
            raise BencodeError(f"unterminated string length at offset {self.pos}")
        digits = self.data[self.pos : colon]
        if not _LEN_RE.fullmatch(digits):
            raise BencodeError(f"invalid string length {digits!r} at offset {self.pos}")
        length = int(digits)
        start = colon + 1
        if start + length > len(self.data):
            raise BencodeError(f"string of length {length} at offset {self.pos} overruns data")
        self.pos = start + length
        return self.data[start : self.pos]

    def _list(self) -> list:
        self.pos += 1
        items = []
        while self._peek() != ord("e"):
            items.append(self.value())
        self.pos += 1
        return items

    def key(self) -> str:
        lead = self._peek()
        if not ord("0") <= lead <= ord("9"):
            raise BencodeError(f"dictionary key at offset {self.pos} is not a string")
        return _key_text(self._bytes())

    def _dict(self) -> dict:
        self.pos += 1
        result = {}
        while self._peek() != ord("e"):
            key = self.key()
            result[key] = self.value()
        self.pos += 1
        return result

    def finish(self) -> None:
        if self.pos != len(self.data):
            raise BencodeError(f"trailing data at offset {self.pos}")


def decode(data: bytes) -> Any:
    """Decode one bencoded value; the whole input must be consumed."""
    decoder = _Decoder(bytes(data))
    try:
        value = decoder.value()
    except RecursionError as exc:
        raise BencodeError("data nested too deeply") from exc
    decoder.finish()
    return value


def decode_dict_raw(data: bytes) -> dict[str, RawEntry]:
    """Decode a top-level dictionary, keeping the raw bytes of every value."""
    decoder = _Decoder(bytes(data))
    if decoder._peek() != ord("d"):
        raise BencodeError("top-level value is not a dictionary")
    decoder.pos += 1
    entries: dict[str, RawEntry] = {}
    try:
        while decoder._peek() != ord("e"):
            key = decoder.key()
            start = decoder.pos
            value = decoder.value()
            entries[key] = RawEntry(value, decoder.data[start : decoder.pos])
    except RecursionError as exc:
        raise BencodeError("data nested too deeply") from exc
    decoder.pos += 1
    decoder.finish()
    return entries