"""Hash request, hashes and hash reject payloads of v2 torrents."""

from __future__ import annotations

import struct
from dataclasses import dataclass

from peerpressure.message import ProtocolError

__all__ = [
    "HASH_REQUEST_SIZE",
    "HashRequest",
    "Hashes",
    "encode_hash_request",
    "decode_hash_request",
    "encode_hashes",
    "decode_hashes",
    "extract_hashes",
]

HASH_REQUEST_SIZE = 32 + 4 * 4  # 48 bytes; also the size of a hash reject
_HEADER = struct.Struct(">32sIIII")


def _check_root(root: bytes) -> bytes:
    root = bytes(root)
    if len(root) != 32:
        raise ValueError(f"pieces_root must be 32 bytes, got {len(root)}")
    return root


@dataclass
class HashRequest:
    """A request for a range of hashes of a file's Merkle tree."""

    pieces_root: bytes = bytes(32)
    base_layer: int = 0
    index: int = 0
    length: int = 0
    proof_layers: int = 0

    def __post_init__(self) -> None:
        self.pieces_root = _check_root(self.pieces_root)


@dataclass
class Hashes:
    """A hashes response: the request fields plus base-layer and proof hashes."""

    pieces_root: bytes = bytes(32)
    base_layer: int = 0
    index: int = 0
    length: int = 0
    proof_layers: int = 0
    hash_data: bytes = b""

    def __post_init__(self) -> None:
        self.pieces_root = _check_root(self.pieces_root)
        self.hash_data = bytes(self.hash_data)


def _pack(root: bytes, base_layer: int, index: int, length: int, proof_layers: int) -> bytes:
    try:
        return _HEADER.pack(root, base_layer, index, length, proof_layers)
    except struct.error as exc:
        raise ValueError(f"field does not fit in 32 unsigned bits: {exc}") from exc


def encode_hash_request(request: HashRequest) -> bytes:
    """Wire form of a hash request."""
    return _pack(
        request.pieces_root,
        request.base_layer,
        request.index,
        request.length,
        request.proof_layers,
    )


def decode_hash_request(data: bytes) -> HashRequest:
    """Parse a hash request."""
    if len(data) < HASH_REQUEST_SIZE:
        raise ProtocolError(f"hash request too short: {len(data)} bytes")
    return HashRequest(*_HEADER.unpack(bytes(data[:HASH_REQUEST_SIZE])))


def encode_hashes(hashes: Hashes) -> bytes:
    """Wire form of a hashes message."""
    return (
        _pack(
            hashes.pieces_root,
            hashes.base_layer,
            hashes.index,
            hashes.length,
            hashes.proof_layers,
        )
        + hashes.hash_data
    )


def decode_hashes(data: bytes) -> Hashes:
    """Parse a hashes message."""
    if len(data) < HASH_REQUEST_SIZE:
        raise ProtocolError(f"hashes message too short: {len(data)} bytes")
    fields = _HEADER.unpack(bytes(data[:HASH_REQUEST_SIZE]))
    return Hashes(*fields, hash_data=bytes(data[HASH_REQUEST_SIZE:]))


def extract_hashes(data: bytes) -> list[bytes]:
    """Split concatenated hash data into 32-byte hashes."""
    if len(data) % 32:
        raise ProtocolError(f"hash data length {len(data)} not a multiple of 32")
    data = bytes(data)
    return [data[i : i + 32] for i in range(0, len(data), 32)]