"""Token-bucket rate limiting for readable and writable streams."""

from __future__ import annotations

import threading
import time
from typing import BinaryIO

__all__ = ["Limiter", "ThrottledReader", "ThrottledWriter", "wrap_reader", "wrap_writer"]


class Limiter:
    """A token-bucket limiter; a rate of 0 or less means unlimited.

    The bucket holds at most one second's worth of tokens and starts full.
    """

    def __init__(self, bytes_per_sec: int = 0) -> None:
        self._lock = threading.Lock()
        if bytes_per_sec <= 0:
            self._rate = 0.0
            self._tokens = 0.0
            self._burst = 0
        else:
            self._rate = float(bytes_per_sec)
            self._tokens = float(bytes_per_sec)
            self._burst = bytes_per_sec
        self._last = time.monotonic()

    @property
    def unlimited(self) -> bool:
        return self._rate == 0

    @property
    def burst(self) -> int:
        return self._burst

    def wait(self, n: int) -> None:
        """Block until n tokens are available, then consume them.

        n may not exceed the burst size, since it could never be satisfied.
        """
        if self.unlimited:
            return
        if n > self._burst:
            raise ValueError(f"cannot wait for {n} tokens with a burst of {self._burst}")
        while True:
            with self._lock:
                self._refill()
                if self._tokens >= n:
                    self._tokens -= n
                    return
                delay = (n - self._tokens) / self._rate
            time.sleep(delay)

    def _refill(self) -> None:
        now = time.monotonic()
        self._tokens = min(self._tokens + (now - self._last) * self._rate, float(self._burst))
        self._last = now


class ThrottledReader:
    """A readable stream whose reads are rate limited."""

    def __init__(self, stream: BinaryIO, limiter: Limiter) -> None:
        self._stream = stream
        self._limiter = limiter

    def _read_chunk(self, size: int) -> bytes:
        if self._limiter.burst > 0:
            size = min(size, self._limiter.burst)
        data = self._stream.read(size)
        if data:
            self._limiter.wait(len(data))
        return data

    def read(self, size: int = -1) -> bytes:
        """Read up to size bytes (at most one burst), or everything when size < 0."""
        if size >= 0:
            return self._read_chunk(size)
        parts = []
        while chunk := self._read_chunk(self._limiter.burst or 64 * 1024):
            parts.append(chunk)
        return b"".join(parts)


class ThrottledWriter:
    """A writable stream whose writes are rate limited, one burst at a time."""

    def __init__(self, stream: BinaryIO, limiter: Limiter) -> None:
        self._stream = stream
        self._limiter = limiter

    def write(self, data: bytes) -> int:
        view = memoryview(data)
        chunk = self._limiter.burst or len(view)
        written = 0
        while written < len(view):
            piece = view[written : written + chunk]
            self._limiter.wait(len(piece))
            n = self._stream.write(piece)
            written += len(piece) if n is None else n
        return written


def wrap_reader(stream: BinaryIO, limiter: Limiter | None):
    """A rate-limited reader, or the stream itself when there is no limit."""
    if limiter is None or limiter.unlimited:
        return stream
    return ThrottledReader(stream, limiter)


def wrap_writer(stream: BinaryIO, limiter: Limiter | None):
    """A rate-limited writer, or the stream itself when there is no limit."""
    if limiter is None or limiter.unlimited:
        return stream
    return ThrottledWriter(stream, limiter)