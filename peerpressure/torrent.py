"""Parsing of .torrent metainfo files.

A .torrent file is a bencoded dictionary holding tracker URLs and an "info"
dictionary describing the content. The SHA-1 of the raw bencoded info
dictionary is the torrent's identity, the info hash.
"""

from __future__ import annotations

import hashlib
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Any, Sequence

from peerpressure.bencoding import BencodeError, decode, decode_dict_raw

__all__ = [
    "TorrentError",
    "File",
    "Torrent",
    "format_size",
    "load",
    "parse_file",
    "parse",
    "from_info_dict",
]

HASH_LEN = 20


class TorrentError(ValueError):
    """Raised when a torrent cannot be read or is malformed."""


def _text(raw: bytes) -> str:
    return raw.decode("utf-8", "surrogateescape")


@dataclass
class File:
    """One file of a multi-file torrent."""

    length: int
    path: list[str]
    attr: str = ""

    def is_pad(self) -> bool:
        """Whether this is a padding file (attribute 'p')."""
        return "p" in self.attr


@dataclass
class Torrent:
    """The parsed contents of a .torrent metainfo file."""

    announce: str = ""
    announce_list: list[list[str]] = field(default_factory=list)
    url_list: list[str] = field(default_factory=list)
    http_seeds: list[str] = field(default_factory=list)
    info_hash: bytes = bytes(HASH_LEN)
    name: str = ""
    piece_length: int = 0
    pieces: list[bytes] = field(default_factory=list)
    length: int = 0
    files: list[File] = field(default_factory=list)
    private: bool = False

    def is_private(self) -> bool:
        """Whether the private flag is set; private torrents avoid DHT, PEX and LPD."""
        return self.private

    def is_single_file(self) -> bool:
        return not self.files

    def trackers(self) -> list[str]:
        """All tracker URLs, deduplicated, announce-list tiers first."""
        seen: dict[str, None] = {}
        for tier in self.announce_list:
            for url in tier:
                if url:
                    seen.setdefault(url)
        if self.announce:
            seen.setdefault(self.announce)
        return list(seen)

    def piece_len(self, index: int) -> int:
        """Length of the piece at index; only the last may be short."""
        start = index * self.piece_length
        end = min(start + self.piece_length, self.total_length())
        return end - start

    def total_length(self) -> int:
        if self.is_single_file():
            return self.length
        return sum(f.length for f in self.files)

    def __str__(self) -> str:
        lines = [
            f"Name:         {self.name}",
            f"Tracker:      {self.announce}",
            f"Info Hash:    {self.info_hash.hex()}",
            f"Piece Length: {self.piece_length} ({self.piece_length // 1024} KiB)",
            f"Pieces:       {len(self.pieces)}",
        ]
        if self.is_single_file():
            lines.append(f"Length:       {self.length} ({format_size(self.length)})")
            lines.append("Mode:         single-file")
        else:
            total = self.total_length()
            lines.append(f"Total Size:   {total} ({format_size(total)})")
            lines.append(f"Mode:         multi-file ({len(self.files)} files)")
            for f in self.files:
                pad = " [pad]" if f.is_pad() else ""
                lines.append(f"  {'/'.join(f.path)} \u2014 {format_size(f.length)}{pad}")
        if self.url_list:
            lines.append(f"Web Seeds:    {len(self.url_list)}")
            lines.extend(f"  {u}" for u in self.url_list)
        if self.http_seeds:
            lines.append(f"HTTP Seeds:   {len(self.http_seeds)} (BEP 17)")
            lines.extend(f"  {u}" for u in self.http_seeds)
        return "\n".join(lines) + "\n"


def format_size(size: int) -> str:
    """Human-readable size in B, KiB, MiB or GiB."""
    if size >= 1 << 30:
        return f"{size / (1 << 30):.2f} GiB"
    if size >= 1 << 20:
        return f"{size / (1 << 20):.2f} MiB"
    if size >= 1 << 10:
        return f"{size / (1 << 10):.2f} KiB"
    return f"{size} B"


def load(path_or_url: str) -> Torrent:
    """Parse a torrent from a file path or an HTTP(S) URL."""
    if path_or_url.startswith(("http://", "https://")):
        return _fetch_and_parse(path_or_url)
    return parse_file(path_or_url)


def _fetch_and_parse(url: str) -> Torrent:
    try:
        with urllib.request.urlopen(url, timeout=30) as resp:
            if resp.status != 200:
                raise TorrentError(f"fetch torrent: HTTP {resp.status}")
            data = resp.read()
    except urllib.error.HTTPError as exc:
        raise TorrentError(f"fetch torrent: HTTP {exc.code}") from exc
    except (urllib.error.URLError, OSError) as exc:
        raise TorrentError(f"fetch torrent: {exc}") from exc
    return parse(data)


def parse_file(path: str) -> Torrent:
    """Read and parse a .torrent file from disk."""
    try:
        with open(path, "rb") as fh:
            data = fh.read()
    except OSError as exc:
        raise TorrentError(f"read torrent file: {exc}") from exc
    return parse(data)


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [_text(item) for item in value if isinstance(item, bytes) and item]


def parse(data: bytes) -> Torrent:
    """Decode a .torrent file from raw bytes."""
    try:
        entries = decode_dict_raw(data)
    except BencodeError as exc:
        raise TorrentError(f"decode torrent: {exc}") from exc

    t = Torrent()

    announce = entries.get("announce")
    if announce is not None and isinstance(announce.value, bytes):
        t.announce = _text(announce.value)

    announce_list = entries.get("announce-list")
    if announce_list is not None and isinstance(announce_list.value, list):
        for tier in announce_list.value:
            if isinstance(tier, list):
                urls = [_text(u) for u in tier if isinstance(u, bytes)]
                if urls:
                    t.announce_list.append(urls)

    url_list = entries.get("url-list")
    if url_list is not None:
        if isinstance(url_list.value, bytes):
            if url_list.value:
                t.url_list.append(_text(url_list.value))
        else:
            t.url_list.extend(_string_list(url_list.value))

    http_seeds = entries.get("httpseeds")
    if http_seeds is not None:
        t.http_seeds.extend(_string_list(http_seeds.value))

    info = entries.get("info")
    if info is None:
        raise TorrentError("torrent: missing 'info' key")
    t.info_hash = hashlib.sha1(info.raw).digest()
    if not isinstance(info.value, dict):
        raise TorrentError("torrent: 'info' is not a dict")

    _parse_info(t, info.value)
    return t


def _dict_string(d: dict, key: str) -> str:
    if key not in d:
        raise TorrentError(f"missing '{key}' key")
    value = d[key]
    if not isinstance(value, bytes):
        raise TorrentError(f"'{key}' is not a string")
    return _text(value)


def _dict_int(d: dict, key: str) -> int:
    if key not in d:
        raise TorrentError(f"missing '{key}' key")
    value = d[key]
    if not isinstance(value, int):
        raise TorrentError(f"'{key}' is not an integer")
    return value


def _parse_info(t: Torrent, info: dict) -> None:
    try:
        t.name = _dict_string(info, "name")
        t.piece_length = _dict_int(info, "piece length")
    except TorrentError as exc:
        raise TorrentError(f"info: {exc}") from None

    if "pieces" not in info:
        raise TorrentError("info: missing 'pieces' key")
    pieces = info["pieces"]
    if not isinstance(pieces, bytes):
        raise TorrentError("info: 'pieces' is not a string")
    if len(pieces) % HASH_LEN:
        raise TorrentError(
            f"info: 'pieces' length {len(pieces)} is not a multiple of {HASH_LEN}"
        )
    t.pieces = [pieces[i : i + HASH_LEN] for i in range(0, len(pieces), HASH_LEN)]

    has_length = "length" in info
    has_files = "files" in info
    if has_length and has_files:
        raise TorrentError("info: has both 'length' and 'files'")
    if has_length:
        try:
            t.length = _dict_int(info, "length")
        except TorrentError as exc:
            raise TorrentError(f"info: {exc}") from None
    elif has_files:
        t.files = _parse_files(info["files"])
    else:
        raise TorrentError("info: missing both 'length' and 'files'")

    private = info.get("private")
    t.private = isinstance(private, int) and private == 1


def _parse_files(files_value: Any) -> list[File]:
    if not isinstance(files_value, list):
        raise TorrentError("info: 'files' is not a list")
    files = []
    for i, fd in enumerate(files_value):
        if not isinstance(fd, dict):
            raise TorrentError(f"info: files[{i}] is not a dict")
        try:
            length = _dict_int(fd, "length")
        except TorrentError as exc:
            raise TorrentError(f"info: files[{i}]: {exc}") from None
        path_list = fd.get("path")
        if not isinstance(path_list, list):
            raise TorrentError(f"info: files[{i}]: 'path' is not a list")
        path = []
        for j, part in enumerate(path_list):
            if not isinstance(part, bytes):
                raise TorrentError(f"info: files[{i}]: path[{j}] is not a string")
            path.append(_text(part))
        attr = fd.get("attr")
        files.append(
            File(length=length, path=path, attr=_text(attr) if isinstance(attr, bytes) else "")
        )
    return files


def from_info_dict(raw_info: bytes, info_hash: bytes, trackers: Sequence[str]) -> Torrent:
    """Build a Torrent from raw bencoded info dictionary bytes (e.g. from a magnet fetch)."""
    try:
        info = decode(raw_info)
    except BencodeError as exc:
        raise TorrentError(f"decode info dict: {exc}") from exc
    if not isinstance(info, dict):
        raise TorrentError("info dict is not a dict")

    t = Torrent(info_hash=bytes(info_hash))
    trackers = list(trackers)
    if trackers:
        t.announce = trackers[0]
        if len(trackers) > 1:
            t.announce_list = [trackers]

    _parse_info(t, info)
    return t