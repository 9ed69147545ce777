"""SHA-256 Merkle trees for v2 torrents.

Data is split into 16 KiB blocks. Each block is hashed to form the leaf
layer, which is padded with zero hashes to a power-of-two count. Pairs of
nodes are then hashed together, layer by layer, up to the root.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import Sequence

__all__ = [
    "MERKLE_BLOCK_SIZE",
    "V2FileEntry",
    "V2Info",
    "merkle_hash",
    "merkle_leaves",
    "merkle_root_from_leaves",
    "merkle_layers",
    "verify_merkle_proof",
    "next_pow2",
    "is_hybrid",
]

MERKLE_BLOCK_SIZE = 16384
_ZERO_HASH = bytes(32)


def _sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def _hash_pair(left: bytes, right: bytes) -> bytes:
    return _sha256(left + right)


def next_pow2(n: int) -> int:
    """Smallest power of two that is at least n (1 for n <= 1)."""
    power = 1
    while power < n:
        power *= 2
    return power


def merkle_leaves(data: bytes) -> list[bytes]:
    """Leaf layer: SHA-256 of each 16 KiB block, zero-padded to a power of two."""
    if not data:
        return [_sha256(b"")]
    leaves = [
        _sha256(data[start : start + MERKLE_BLOCK_SIZE])
        for start in range(0, len(data), MERKLE_BLOCK_SIZE)
    ]
    leaves.extend([_ZERO_HASH] * (next_pow2(len(leaves)) - len(leaves)))
    return leaves


def _next_layer(layer: Sequence[bytes]) -> list[bytes]:
    return [_hash_pair(layer[i], layer[i + 1]) for i in range(0, len(layer) - 1, 2)]


def _root(layer: Sequence[bytes]) -> bytes:
    while len(layer) > 1:
        layer = _next_layer(layer)
    return layer[0]


def merkle_hash(data: bytes) -> bytes:
    """Merkle root of data."""
    return _root(merkle_leaves(data))


def merkle_root_from_leaves(leaves: Sequence[bytes]) -> bytes:
    """Root of a precomputed leaf layer, which should have power-of-two length."""
    if not leaves:
        return _sha256(b"")
    return _root(list(leaves))


def merkle_layers(leaves: Sequence[bytes]) -> list[list[bytes]]:
    """Every layer from the leaves (first) up to the single root (last)."""
    if not leaves:
        return []
    layer = list(leaves)
    layers = [layer]
    while len(layer) > 1:
        layer = _next_layer(layer)
        layers.append(layer)
    return layers


def verify_merkle_proof(
    root: bytes, leaf: bytes, leaf_index: int, proof: Sequence[bytes]
) -> bool:
    """Check a leaf against the root using uncle hashes ordered from the leaf upwards."""
    current = leaf
    index = leaf_index
    for uncle in proof:
        current = _hash_pair(current, uncle) if index % 2 == 0 else _hash_pair(uncle, current)
        index //= 2
    return current == root


@dataclass
class V2FileEntry:
    """A file of a v2 torrent."""

    path: list[str]
    length: int
    pieces_root: bytes = _ZERO_HASH


@dataclass
class V2Info:
    """The v2-specific metadata of a torrent."""

    meta_version: int = 0
    file_tree: list[V2FileEntry] = field(default_factory=list)
    piece_length: int = 0

    def __str__(self) -> str:
        return f"v2 torrent: {len(self.file_tree)} files, piece_length={self.piece_length}"


def is_hybrid(has_v1_pieces: bool, meta_version: int) -> bool:
    """Whether a torrent carries both v1 piece hashes and v2 metadata."""
    return has_v1_pieces and meta_version == 2