import hashlib

import pytest

from peerpressure.bencoding import decode
from peerpressure.create import CreateOptions, create, piece_length
from peerpressure.torrent import TorrentError, parse

TRACKER = "http://tracker.example.com/announce"


def test_create_single_file(tmp_path):
    path = tmp_path / "test.txt"
    path.write_bytes(bytes(i % 251 for i in range(100_000)))

    raw = create(str(path), CreateOptions(tracker=TRACKER, piece_length=16384))
    tor = parse(raw)

    assert tor.name == "test.txt"
    assert tor.piece_length == 16384
    assert tor.length == 100_000
    assert tor.announce == TRACKER
    assert len(tor.pieces) == (100_000 + 16383) // 16384


def test_create_directory(tmp_path):
    root = tmp_path / "mydir"
    (root / "sub").mkdir(parents=True)
    (root / "a.txt").write_bytes(b"hello")
    (root / "sub" / "b.txt").write_bytes(b"world!")

    tor = parse(create(str(root), CreateOptions(tracker=TRACKER, piece_length=16384)))

    assert tor.name == "mydir"
    assert len(tor.files) == 2
    assert tor.files[0].path == ["a.txt"]
    assert tor.files[0].length == 5
    assert tor.files[1].path == ["sub", "b.txt"]
    assert tor.files[1].length == 6


def test_create_directory_pieces_span_files(tmp_path):
    root = tmp_path / "d"
    root.mkdir()
    (root / "a.txt").write_bytes(b"hello")
    (root / "b.txt").write_bytes(b"world!")

    tor = parse(create(str(root), CreateOptions(tracker=TRACKER, piece_length=4)))

    assert tor.pieces == [
        hashlib.sha1(b"hell").digest(),
        hashlib.sha1(b"owor").digest(),
        hashlib.sha1(b"ld!").digest(),
    ]


def test_create_directory_skips_hidden_and_empty(tmp_path):
    root = tmp_path / "d"
    (root / ".git").mkdir(parents=True)
    (root / ".git" / "config").write_bytes(b"xyz")
    (root / ".hidden").write_bytes(b"abc")
    (root / "empty.bin").write_bytes(b"")
    (root / "keep.bin").write_bytes(b"data")

    tor = parse(create(str(root), CreateOptions(tracker=TRACKER)))

    assert [f.path for f in tor.files] == [["keep.bin"]]


def test_create_empty_directory_fails(tmp_path):
    root = tmp_path / "empty"
    root.mkdir()
    with pytest.raises(TorrentError):
        create(str(root), CreateOptions(tracker=TRACKER))


def test_create_private(tmp_path):
    path = tmp_path / "test.bin"
    path.write_bytes(b"data")
    tor = parse(create(str(path), CreateOptions(tracker="http://t.example.com/announce", private=True)))
    assert tor.is_private() is True


def test_create_round_trip(tmp_path):
    path = tmp_path / "payload.bin"
    data = bytes(i % 256 for i in range(50_000))
    path.write_bytes(data)

    raw = create(
        str(path),
        CreateOptions(
            tracker="http://t.example.com/announce",
            piece_length=16384,
            comment="test torrent",
            web_seeds=["http://ws.example.com/files/"],
        ),
    )
    tor = parse(raw)

    for i, expected in enumerate(tor.pieces):
        chunk = data[i * tor.piece_length : (i + 1) * tor.piece_length]
        assert hashlib.sha1(chunk).digest() == expected
    assert tor.url_list == ["http://ws.example.com/files/"]

    meta = decode(raw)
    assert meta["comment"] == b"test torrent"
    assert meta["created by"] == b"Peer Pressure"
    assert isinstance(meta["creation date"], int)


def test_create_announce_list(tmp_path):
    path = tmp_path / "f.bin"
    path.write_bytes(b"abc")
    raw = create(
        str(path),
        CreateOptions(tracker=TRACKER, trackers=["http://b.example.com/announce"], created_by="me"),
    )
    tor = parse(raw)
    assert tor.announce_list == [[TRACKER, "http://b.example.com/announce"]]
    assert decode(raw)["created by"] == b"me"


@pytest.mark.parametrize(
    "size, lo, hi",
    [
        (10 * 1024 * 1024, 16384, 16384),
        (700 * 1024 * 1024, 256 * 1024, 1024 * 1024),
    ],
)
def test_auto_piece_length(size, lo, hi):
    pl = piece_length(size, 0)
    assert lo <= pl <= hi
    assert pl & (pl - 1) == 0


def test_piece_length_explicit_and_cap():
    assert piece_length(123, 5000) == 5000
    assert piece_length(10**15, 0) == 16 * 1024 * 1024


def test_create_missing_tracker(tmp_path):
    path = tmp_path / "test.bin"
    path.write_bytes(b"x")
    with pytest.raises(TorrentError):
        create(str(path), CreateOptions())


def test_create_missing_path(tmp_path):
    with pytest.raises(TorrentError):
        create(str(tmp_path / "nope"), CreateOptions(tracker=TRACKER))