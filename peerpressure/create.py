"""Creation of .torrent metainfo from a file or directory."""

from __future__ import annotations

import hashlib
import os
import stat
import time
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, NamedTuple

from peerpressure.bencoding import encode
from peerpressure.torrent import TorrentError

__all__ = ["CreateOptions", "create", "piece_length"]

_MIN_PIECE = 16 * 1024
_MAX_PIECE = 16 * 1024 * 1024
_READ_CHUNK = 32 * 1024


@dataclass
class CreateOptions:
    """Parameters for torrent creation. A tracker URL is required."""

    tracker: str = ""
    trackers: list[str] = field(default_factory=list)
    piece_length: int = 0
    private: bool = False
    comment: str = ""
    web_seeds: list[str] = field(default_factory=list)
    created_by: str = ""


class _FileEntry(NamedTuple):
    rel_path: str
    size: int


def piece_length(total_size: int, requested: int) -> int:
    """The piece length to use; chosen automatically when requested is 0."""
    if requested > 0:
        return requested
    target = total_size // 1500
    result = _MIN_PIECE
    while result < target and result < _MAX_PIECE:
        result *= 2
    return result


def create(path: str, opts: CreateOptions) -> bytes:
    """Build bencoded .torrent metainfo for the file or directory at path."""
    if not opts.tracker:
        raise TorrentError("tracker URL is required")
    try:
        st = os.stat(path)
    except OSError as exc:
        raise TorrentError(f"stat {path}: {exc}") from exc

    name = os.path.basename(os.path.normpath(os.path.abspath(path)))
    if stat.S_ISDIR(st.st_mode):
        info = _multi_file_info(path, name, opts)
    else:
        info = _single_file_info(path, name, st.st_size, opts)

    meta: dict[str, Any] = {
        "announce": opts.tracker,
        "creation date": int(time.time()),
        "info": info,
    }
    if opts.trackers:
        meta["announce-list"] = [[opts.tracker, *opts.trackers]]
    if opts.comment:
        meta["comment"] = opts.comment
    meta["created by"] = opts.created_by or "Peer Pressure"
    if opts.web_seeds:
        meta["url-list"] = list(opts.web_seeds)
    return encode(meta)


def _single_file_info(path: str, name: str, size: int, opts: CreateOptions) -> dict:
    pl = piece_length(size, opts.piece_length)
    info: dict[str, Any] = {
        "name": name,
        "piece length": pl,
        "pieces": _hash_paths([path], pl),
        "length": size,
    }
    if opts.private:
        info["private"] = 1
    return info


def _walk(root: str, directory: str) -> Iterator[_FileEntry]:
    """Non-hidden, non-empty files below directory; hidden directories are skipped."""
    with os.scandir(directory) as entries:
        for entry in entries:
            if entry.name.startswith("."):
                continue
            if entry.is_dir(follow_symlinks=False):
                yield from _walk(root, entry.path)
            elif entry.is_dir():
                # A link to a directory is not descended into.
                continue
            else:
                size = entry.stat().st_size
                if size:
                    yield _FileEntry(os.path.relpath(entry.path, root), size)


def _collect_files(root: str) -> list[_FileEntry]:
    try:
        files = list(_walk(root, root))
    except OSError as exc:
        raise TorrentError(f"walk {root}: {exc}") from exc
    files.sort(key=lambda f: f.rel_path)
    return files


def _multi_file_info(root: str, name: str, opts: CreateOptions) -> dict:
    files = _collect_files(root)
    if not files:
        raise TorrentError(f"no files found in {root}")

    total = sum(f.size for f in files)
    pl = piece_length(total, opts.piece_length)
    pieces = _hash_paths([os.path.join(root, f.rel_path) for f in files], pl)

    info: dict[str, Any] = {
        "name": name,
        "piece length": pl,
        "pieces": pieces,
        "files": [
            {"length": f.size, "path": f.rel_path.split(os.sep)} for f in files
        ],
    }
    if opts.private:
        info["private"] = 1
    return info


def _read_chunks(paths: Iterable[str]) -> Iterator[bytes]:
    for p in paths:
        with open(p, "rb") as fh:
            while chunk := fh.read(_READ_CHUNK):
                yield chunk


def _hash_paths(paths: list[str], piece_len: int) -> bytes:
    """SHA-1 of each piece of the files' concatenated contents."""
    pieces = bytearray()
    h = hashlib.sha1()
    remaining = piece_len
    try:
        for chunk in _read_chunks(paths):
            view = memoryview(chunk)
            while view:
                take = min(remaining, len(view))
                h.update(view[:take])
                view = view[take:]
                remaining -= take
                if remaining == 0:
                    pieces += h.digest()
                    h = hashlib.sha1()
                    remaining = piece_len
    except OSError as exc:
        raise TorrentError(f"hash data: {exc}") from exc
    if remaining < piece_len:
        pieces += h.digest()
    return bytes(pieces)