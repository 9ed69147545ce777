"""Peer exchange messages.

Connected peers share the addresses of other peers they know about by sending
diffs of their peer lists: peers added and peers dropped since the last
message, in compact form, carried inside extended messages.
"""

from __future__ import annotations

import ipaddress
import struct
from dataclasses import dataclass, field
from enum import IntFlag
from typing import Iterable, Optional, Union

from peerpressure.bencoding import BencodeError, decode as bdecode, encode as bencode
from peerpressure.message import ProtocolError

__all__ = ["PeerFlag", "PeerEntry", "PexMessage", "decode"]

Address = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


class PeerFlag(IntFlag):
    """Per-peer flag bits of the added.f and added6.f lists."""

    ENCRYPTION = 0x01  # prefers encrypted connections
    SEED = 0x02  # peer is a seeder
    UTP = 0x04  # supports uTP
    HOLEPUNCH = 0x08  # supports holepunch
    REACHABLE = 0x10  # connectable, not behind NAT


def _to4(ip: Address) -> Optional[bytes]:
    if isinstance(ip, ipaddress.IPv4Address):
        return ip.packed
    mapped = ip.ipv4_mapped
    return mapped.packed if mapped is not None else None


def _to16(ip: Address) -> bytes:
    if isinstance(ip, ipaddress.IPv4Address):
        return bytes(10) + b"\xff\xff" + ip.packed
    return ip.packed


@dataclass(frozen=True)
class PeerEntry:
    """A peer address with its flags."""

    ip: Address
    port: int
    flags: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.ip, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
            object.__setattr__(self, "ip", ipaddress.ip_address(self.ip))
        if not 0 <= self.port <= 0xFFFF:
            raise ValueError(f"port out of range: {self.port}")

    def is_ipv4(self) -> bool:
        """Whether the address is IPv4, including IPv4-mapped IPv6."""
        return _to4(self.ip) is not None

    def addr(self) -> str:
        """The address as "host:port"."""
        ip = self.ip
        if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
            ip = ip.ipv4_mapped
        return f"{ip}:{self.port}"


def _encode_compact(entries: Iterable[PeerEntry], ipv6: bool) -> tuple[bytes, bytes]:
    peers = bytearray()
    flags = bytearray()
    for entry in entries:
        if ipv6:
            packed = _to16(entry.ip)
        else:
            packed = _to4(entry.ip)
            if packed is None:
                continue
        peers += packed + struct.pack(">H", entry.port)
        flags.append(entry.flags & 0xFF)
    return bytes(peers), bytes(flags)


@dataclass
class PexMessage:
    """A decoded peer exchange payload."""

    added: list[PeerEntry] = field(default_factory=list)
    dropped: list[PeerEntry] = field(default_factory=list)
    added6: list[PeerEntry] = field(default_factory=list)
    dropped6: list[PeerEntry] = field(default_factory=list)

    def encode(self) -> bytes:
        """The bencoded payload for an extended message."""
        added, added_flags = _encode_compact(self.added, ipv6=False)
        dropped, _ = _encode_compact(self.dropped, ipv6=False)
        added6, added6_flags = _encode_compact(self.added6, ipv6=True)
        dropped6, _ = _encode_compact(self.dropped6, ipv6=True)
        return bencode(
            {
                "added": added,
                "added.f": added_flags,
                "dropped": dropped,
                "added6": added6,
                "added6.f": added6_flags,
                "dropped6": dropped6,
            }
        )


def _get_bytes(d: dict, key: str) -> bytes:
    value = d.get(key)
    return value if isinstance(value, bytes) else b""


def _parse_peers(data: bytes, key: str, ip_len: int, flag_data: bytes = b"") -> list[PeerEntry]:
    entry_len = ip_len + 2
    if len(data) % entry_len:
        raise ProtocolError(f"PEX {key}: length {len(data)} not multiple of {entry_len}")
    count = len(data) // entry_len
    if flag_data and len(flag_data) != count:
        raise ProtocolError(f"PEX {key}: {count} peers but {len(flag_data)} flag bytes")
    entries = []
    for i, offset in enumerate(range(0, len(data), entry_len)):
        ip = ipaddress.ip_address(data[offset : offset + ip_len])
        (port,) = struct.unpack(">H", data[offset + ip_len : offset + entry_len])
        flags = flag_data[i] if i < len(flag_data) else 0
        entries.append(PeerEntry(ip, port, flags))
    return entries


def decode(data: bytes) -> PexMessage:
    """Parse a bencoded peer exchange payload."""
    try:
        value = bdecode(bytes(data))
    except BencodeError as exc:
        raise ProtocolError(f"decode PEX message: {exc}") from exc
    if not isinstance(value, dict):
        raise ProtocolError(f"PEX message: expected dict, got {type(value).__name__}")
    return PexMessage(
        added=_parse_peers(_get_bytes(value, "added"), "added", 4, _get_bytes(value, "added.f")),
        dropped=_parse_peers(_get_bytes(value, "dropped"), "dropped", 4),
        added6=_parse_peers(
            _get_bytes(value, "added6"), "added6", 16, _get_bytes(value, "added6.f")
        ),
        dropped6=_parse_peers(_get_bytes(value, "dropped6"), "dropped6", 16),
    )