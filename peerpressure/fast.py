"""The allowed-fast set of the fast extension."""

from __future__ import annotations

import hashlib
import ipaddress
import struct
from typing import Optional, Union

__all__ = ["allowed_fast_set"]

IPLike = Union[str, bytes, ipaddress.IPv4Address, ipaddress.IPv6Address]


def _ipv4_bytes(ip: IPLike) -> Optional[bytes]:
    addr = ip if isinstance(ip, (ipaddress.IPv4Address, ipaddress.IPv6Address)) else ipaddress.ip_address(ip)
    if isinstance(addr, ipaddress.IPv6Address):
        if addr.ipv4_mapped is None:
            return None
        addr = addr.ipv4_mapped
    return addr.packed


def allowed_fast_set(
    peer_ip: IPLike, info_hash: bytes, num_pieces: int, k: int
) -> Optional[list[int]]:
    """The piece indices a peer may download while choked.

    The algorithm is defined for IPv4 only; ``None`` is returned for IPv6.
    """
    ip4 = _ipv4_bytes(peer_ip)
    if ip4 is None:
        return None

    k = min(k, num_pieces)
    x = hashlib.sha1(ip4[:3] + b"\x00" + bytes(info_hash)).digest()

    result: list[int] = []
    seen: set[int] = set()
    while len(result) < k:
        for (word,) in struct.iter_unpack(">I", x):
            if len(result) >= k:
                break
            idx = word % num_pieces
            if idx not in seen:
                seen.add(idx)
                result.append(idx)
        x = hashlib.sha1(x).digest()
    return result