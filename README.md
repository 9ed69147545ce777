# peerpressure

A pure-Python toolkit for the BitTorrent protocol, with no third-party
dependencies. Python 3.10 or newer is required.

## What is in it

- `peerpressure.bencoding` — `encode`, `decode` and `decode_dict_raw`, which
  keeps the raw bytes of each top-level value (as `RawEntry`). Errors raise
  `BencodeError`.
- `peerpressure.torrent` — parsing `.torrent` files into a `Torrent` (with its
  info hash, trackers, web seeds, HTTP seeds, files and private flag), and
  `from_info_dict` for info dictionaries fetched on their own. Errors raise
  `TorrentError`.
- `peerpressure.create` — building new metainfo from a file or directory.
- `peerpressure.merkle` — SHA-256 Merkle leaves, layers, roots and proofs for
  v2 torrents, plus `V2Info`, `V2FileEntry` and `is_hybrid`.
- `peerpressure.message` — the 68-byte handshake and length-prefixed wire
  messages, including the Fast Extension messages, read from and written to
  any binary stream. Malformed data raises `ProtocolError`.
- `peerpressure.fast` — the allowed-fast piece set (`allowed_fast_set`).
- `peerpressure.extension` — the extension protocol handshake and extended
  messages.
- `peerpressure.partialseed` — the `upload_only` extended message.
- `peerpressure.holepunch` — holepunch extension messages.
- `peerpressure.v2messages` — hash request, hashes and hash reject payloads.
- `peerpressure.priority` — canonical CRC-32C peer priority of two addresses.
- `peerpressure.pex` — peer exchange payloads (`PexMessage`, `PeerEntry`,
  `PeerFlag`), and `peerpressure.pex_tracker.DiffTracker`, which computes the
  added/dropped diffs for one connection, at most 50 of each per list.
- `peerpressure.verify` — reading pieces from disk (`DiskReader`) and
  checking local data against a torrent's piece hashes (`verify_data`).
- `peerpressure.throttle` — a token-bucket `Limiter` and rate-limited stream
  wrappers (`wrap_reader`, `wrap_writer`).

## Reading a torrent

```python
from peerpressure import torrent

t = torrent.parse_file("example.torrent")
print(t)                   # human-readable summary
print(t.trackers())        # deduplicated tracker URLs, announce-list tiers first
print(t.total_length())
print(t.piece_len(0))      # only the last piece may be shorter
print(t.info_hash.hex())
```

`torrent.load` accepts either a path or an `http://` / `https://` URL.

## Creating a torrent

```python
from pathlib import Path
from peerpressure.create import CreateOptions, create

raw = create("my-directory", CreateOptions(tracker="http://tracker.example.com/announce"))
Path("my-directory.torrent").write_bytes(raw)
```

A tracker URL is required. In a directory, hidden files and directories and
empty files are left out, and files are listed in sorted order. When no piece
length is requested, `piece_length` picks a power of two between 16 KiB and
16 MiB aiming at roughly 1500 pieces.

## Wire messages

```python
import io
from peerpressure import message

buf = io.BytesIO()
message.write_handshake(buf, message.Handshake(info_hash=bytes(20), peer_id=bytes(20)))
message.write_message(buf, message.new_request(0, 0, 16384))
message.write_message(buf, None)  # keep-alive

buf.seek(0)
hs = message.read_handshake(buf)
req = message.read_message(buf)
print(message.parse_request(req.payload))  # RequestPayload(index=0, begin=0, length=16384)
print(message.read_message(buf))           # None: keep-alive
```

`write_handshake` always advertises the extension protocol and the Fast
Extension in the reserved bytes.

## Merkle trees

```python
from peerpressure import merkle

leaves = merkle.merkle_leaves(data)
layers = merkle.merkle_layers(leaves)
root = layers[-1][0]
assert merkle.verify_merkle_proof(root, leaves[0], 0, [layers[0][1], layers[1][1]])
```

## Checking local data

```python
from peerpressure import torrent
from peerpressure.verify import verify_data

t = torrent.parse_file("example.torrent")
result = verify_data(t, "path/to/data")
print(result.valid_pieces, "of", result.total_pieces, "valid; bad:", result.invalid_pieces)
```

For a single-file torrent the data path is the file itself; otherwise it is
the directory holding the torrent's files.

## Bandwidth limiting

```python
from peerpressure.throttle import Limiter, wrap_writer

limiter = Limiter(50_000)           # bytes per second; 0 means unlimited
out = wrap_writer(stream, limiter)  # writes go out one burst at a time
```

`Limiter.wait(n)` raises `ValueError` when `n` exceeds the burst size.

## What it does not do

This package works on bytes and streams only. It does not open network
connections to peers, accept incoming peers, run a seeder or make choking
decisions; wire messages are read from and written to whatever binary stream
you supply. There are no command-line programs.

## Tests

The test suite uses pytest, available through the `test` extra.