"""Reading piece data from disk and checking it against a torrent's hashes."""

from __future__ import annotations

import hashlib
import os
import threading
from dataclasses import dataclass, field
from typing import BinaryIO, NamedTuple

from peerpressure.torrent import Torrent

__all__ = ["VerifyResult", "DiskReader", "verify_data"]


@dataclass
class VerifyResult:
    """The outcome of checking local data."""

    total_pieces: int
    valid_pieces: int = 0
    invalid_pieces: list[int] = field(default_factory=list)


class _Span(NamedTuple):
    offset: int  # offset in the torrent's concatenated data
    length: int


class DiskReader:
    """Reads pieces of a single- or multi-file torrent from disk.

    For a single-file torrent data_path is the file; otherwise it is the
    root directory holding the torrent's files.
    """

    def __init__(self, torrent: Torrent, data_path: str) -> None:
        self._torrent = torrent
        self._lock = threading.Lock()
        self._files: list[BinaryIO] = []
        self._layout: list[_Span] = []
        try:
            if torrent.is_single_file():
                self._files.append(open(data_path, "rb"))
                self._layout.append(_Span(0, torrent.length))
            else:
                offset = 0
                for tf in torrent.files:
                    self._files.append(open(os.path.join(data_path, *tf.path), "rb"))
                    self._layout.append(_Span(offset, tf.length))
                    offset += tf.length
        except BaseException:
            self.close()
            raise

    def read_piece(self, index: int, size: int) -> bytes:
        """Read size bytes starting at the piece index, across files as needed.

        Raises EOFError when the files hold fewer bytes than requested.
        """
        offset = index * self._torrent.piece_length
        remaining = size
        parts = []
        with self._lock:
            for fh, span in zip(self._files, self._layout):
                if offset >= span.offset + span.length:
                    continue
                if remaining == 0:
                    break
                file_offset = max(offset - span.offset, 0)
                can_read = min(span.length - file_offset, remaining)
                fh.seek(file_offset)
                data = fh.read(can_read)
                parts.append(data)
                remaining -= len(data)
                offset += len(data)
        if remaining > 0:
            raise EOFError(f"short read: got {size - remaining}, want {size}")
        return b"".join(parts)

    def close(self) -> None:
        for fh in self._files:
            fh.close()

    def __enter__(self) -> "DiskReader":
        return self

    def __exit__(self, *args) -> None:
        self.close()


def verify_data(torrent: Torrent, data_path: str) -> VerifyResult:
    """Hash every piece of the local data and compare it with the torrent."""
    result = VerifyResult(total_pieces=len(torrent.pieces))
    with DiskReader(torrent, data_path) as reader:
        for i, expected in enumerate(torrent.pieces):
            try:
                data = reader.read_piece(i, torrent.piece_len(i))
            except (OSError, EOFError):
                result.invalid_pieces.append(i)
                continue
            if hashlib.sha1(data).digest() != expected:
                result.invalid_pieces.append(i)
                continue
            result.valid_pieces += 1
    return result