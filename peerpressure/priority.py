"""Canonical peer priority between two addresses."""

from __future__ import annotations

import ipaddress
from typing import Optional, Union

__all__ = ["priority"]

IPLike = Union[str, bytes, ipaddress.IPv4Address, ipaddress.IPv6Address, None]

_IPV4_MASK_DEFAULT = bytes([0xFF, 0xFF, 0x55, 0x55])
_IPV4_MASK_SAME16 = bytes([0xFF, 0xFF, 0xFF, 0x55])


def _make_crc32c_table() -> list[int]:
    table = []
    for i in range(256):
        c = i
        for _ in range(8):
            c = (c >> 1) ^ 0x82F63B78 if c & 1 else c >> 1
        table.append(c)
    return table


_CRC32C_TABLE = _make_crc32c_table()


def _crc32c(data: bytes) -> int:
    crc = 0xFFFFFFFF
    for byte in data:
        crc = _CRC32C_TABLE[(crc ^ byte) & 0xFF] ^ (crc >> 8)
    return crc ^ 0xFFFFFFFF


def _parse(ip: IPLike) -> Optional[ipaddress._BaseAddress]:
    if ip is None:
        return None
    if isinstance(ip, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        return ip
    try:
        return ipaddress.ip_address(ip)
    except ValueError:
        return None


def _to4(addr) -> Optional[bytes]:
    if isinstance(addr, ipaddress.IPv4Address):
        return addr.packed
    mapped = addr.ipv4_mapped
    return mapped.packed if mapped is not None else None


def _to16(addr) -> bytes:
    if isinstance(addr, ipaddress.IPv4Address):
        return bytes(10) + b"\xff\xff" + addr.packed
    return addr.packed


def _mask_ipv4(a: bytes, b: bytes) -> tuple[bytes, bytes]:
    if a[:3] == b[:3]:
        return a, b
    mask = _IPV4_MASK_SAME16 if a[:2] == b[:2] else _IPV4_MASK_DEFAULT
    return (
        bytes(x & m for x, m in zip(a, mask)),
        bytes(x & m for x, m in zip(b, mask)),
    )


def _mask_ipv6(a: bytes, b: bytes) -> tuple[bytes, bytes]:
    prefix = 6
    for i in range(6, 16):
        if a[i] != b[i]:
            break
        prefix = i + 1
    if prefix >= 16:
        return a, b

    def masked(ip: bytes) -> bytes:
        return ip[:prefix] + bytes(x & 0x55 for x in ip[prefix:])

    return masked(a), masked(b)


def priority(self_ip: IPLike, peer_ip: IPLike) -> int:
    """CRC-32C priority of a connection; higher means more valuable to keep.

    Returns 0 when either address is missing or invalid.
    """
    self_addr, peer_addr = _parse(self_ip), _parse(peer_ip)
    if self_addr is None or peer_addr is None:
        return 0

    self4, peer4 = _to4(self_addr), _to4(peer_addr)
    if self4 is not None and peer4 is not None:
        a, b = _mask_ipv4(self4, peer4)
    else:
        a, b = _mask_ipv6(_to16(self_addr), _to16(peer_addr))

    low, high = sorted((a, b))
    return _crc32c(low + high)