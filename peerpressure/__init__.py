"""BitTorrent building blocks: bencoding, metainfo, wire messages, PEX, Merkle trees and verification."""

__version__ = "0.1.0"

__all__ = [
    "bencoding",
    "create",
    "extension",
    "fast",
    "holepunch",
    "merkle",
    "message",
    "partialseed",
    "pex",
    "pex_tracker",
    "priority",
    "throttle",
    "torrent",
    "v2messages",
    "verify",
]