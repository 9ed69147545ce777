"""Holepunch extension messages."""

from __future__ import annotations

import ipaddress
import struct
from dataclasses import dataclass
from typing import Optional, Union

from peerpressure.message import ProtocolError

__all__ = [
    "HOLEPUNCH_RENDEZVOUS",
    "HOLEPUNCH_CONNECT",
    "HOLEPUNCH_ERROR",
    "HOLEPUNCH_IPV4",
    "HOLEPUNCH_IPV6",
    "HOLEPUNCH_ERR_NO_SUCH_PEER",
    "HOLEPUNCH_ERR_NOT_CONNECTED",
    "HOLEPUNCH_ERR_NO_SUPPORT",
    "HOLEPUNCH_ERR_NO_SELF",
    "HolepunchMessage",
    "encode_holepunch",
    "decode_holepunch",
    "holepunch_error_string",
]

# Message types
HOLEPUNCH_RENDEZVOUS = 0x00
HOLEPUNCH_CONNECT = 0x01
HOLEPUNCH_ERROR = 0x02

# Address types
HOLEPUNCH_IPV4 = 0x00
HOLEPUNCH_IPV6 = 0x01

# Error codes
HOLEPUNCH_ERR_NO_SUCH_PEER = 0x01
HOLEPUNCH_ERR_NOT_CONNECTED = 0x02
HOLEPUNCH_ERR_NO_SUPPORT = 0x03
HOLEPUNCH_ERR_NO_SELF = 0x04

_ERROR_TEXT = {
    HOLEPUNCH_ERR_NO_SUCH_PEER: "no such peer",
    HOLEPUNCH_ERR_NOT_CONNECTED: "not connected to target",
    HOLEPUNCH_ERR_NO_SUPPORT: "target does not support holepunch",
    HOLEPUNCH_ERR_NO_SELF: "target is the relaying peer",
}

Address = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


@dataclass
class HolepunchMessage:
    """A holepunch extension message."""

    msg_type: int
    addr_type: int
    ip: Optional[Address] = None
    port: int = 0
    err_code: int = 0

    def __post_init__(self) -> None:
        if isinstance(self.ip, (str, bytes)):
            self.ip = ipaddress.ip_address(self.ip)


def _addr_bytes(ip: Optional[Address], ipv6: bool) -> bytes:
    size = 16 if ipv6 else 4
    if ip is None:
        return bytes(size)
    if ipv6:
        if isinstance(ip, ipaddress.IPv4Address):
            return bytes(10) + b"\xff\xff" + ip.packed
        return ip.packed
    if isinstance(ip, ipaddress.IPv6Address):
        mapped = ip.ipv4_mapped
        return mapped.packed if mapped is not None else bytes(size)
    return ip.packed


def encode_holepunch(msg: HolepunchMessage) -> bytes:
    """Binary payload of a holepunch message, without the extension header."""
    addr = _addr_bytes(msg.ip, msg.addr_type == HOLEPUNCH_IPV6)
    return (
        bytes([msg.msg_type, msg.addr_type])
        + addr
        + struct.pack(">HI", msg.port, msg.err_code)
    )


def decode_holepunch(data: bytes) -> HolepunchMessage:
    """Parse a holepunch message payload."""
    if len(data) < 2:
        raise ProtocolError(f"holepunch message too short: {len(data)} bytes")
    msg_type, addr_type = data[0], data[1]
    if addr_type == HOLEPUNCH_IPV4:
        addr_len = 4
    elif addr_type == HOLEPUNCH_IPV6:
        addr_len = 16
    else:
        raise ProtocolError(f"unknown holepunch addr_type: 0x{addr_type:02x}")

    min_len = 2 + addr_len + 2 + 4
    if len(data) < min_len:
        raise ProtocolError(f"holepunch message too short: {len(data)} bytes, need {min_len}")

    ip = ipaddress.ip_address(bytes(data[2 : 2 + addr_len]))
    port, err_code = struct.unpack(">HI", data[2 + addr_len : min_len])
    return HolepunchMessage(msg_type, addr_type, ip, port, err_code)


def holepunch_error_string(code: int) -> str:
    """Human-readable description of a holepunch error code."""
    return _ERROR_TEXT.get(code, f"unknown error 0x{code:08x}")