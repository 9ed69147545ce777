"""Tracking of what peers one connection has been told about."""

from __future__ import annotations

import threading

from peerpressure.pex import Address, PeerEntry, PexMessage

__all__ = ["MAX_ADDED", "MAX_DROPPED", "DiffTracker"]

MAX_ADDED = 50
MAX_DROPPED = 50


class DiffTracker:
    """The known peers of a swarm, and the diffs to send to one connection.

    Each connection keeps its own tracker, recording what it has been told.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._current: dict[str, PeerEntry] = {}
        self._last_sent: dict[str, PeerEntry] = {}

    def add_peer(self, entry: PeerEntry) -> None:
        """Record a peer as known."""
        with self._lock:
            self._current[entry.addr()] = entry

    def remove_peer(self, ip: Address | str, port: int) -> None:
        """Forget a peer."""
        key = PeerEntry(ip, port).addr()
        with self._lock:
            self._current.pop(key, None)

    def diff(self) -> PexMessage:
        """Peers added and dropped since the previous diff, capped per list."""
        with self._lock:
            added = [e for k, e in self._current.items() if k not in self._last_sent]
            dropped = [e for k, e in self._last_sent.items() if k not in self._current]
            self._last_sent = dict(self._current)

        return PexMessage(
            added=[e for e in added if e.is_ipv4()][:MAX_ADDED],
            dropped=[e for e in dropped if e.is_ipv4()][:MAX_DROPPED],
            added6=[e for e in added if not e.is_ipv4()][:MAX_ADDED],
            dropped6=[e for e in dropped if not e.is_ipv4()][:MAX_DROPPED],
        )

    def count(self) -> int:
        """Number of peers currently known."""
        with self._lock:
            return len(self._current)