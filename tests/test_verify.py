import hashlib

import pytest

from peerpressure.torrent import File, Torrent
from peerpressure.verify import DiskReader, VerifyResult, verify_data


def _hashes(data, piece_len):
    return [
        hashlib.sha1(data[i : i + piece_len]).digest() for i in range(0, len(data), piece_len)
    ]


def _single_torrent(data, piece_len):
    return Torrent(
        name="test.bin",
        length=len(data),
        piece_length=piece_len,
        pieces=_hashes(data, piece_len),
    )


def _data():
    return bytes(i % 256 for i in range(1024))


def _write(tmp_path, data):
    path = tmp_path / "test.bin"
    path.write_bytes(data)
    return str(path)


def test_valid_single_file(tmp_path):
    data = _data()
    result = verify_data(_single_torrent(data, 256), _write(tmp_path, data))
    assert result == VerifyResult(total_pieces=4, valid_pieces=4, invalid_pieces=[])


def test_corrupt_piece(tmp_path):
    data = bytearray(_data())
    tor = _single_torrent(bytes(data), 256)
    data[512] ^= 0xFF
    result = verify_data(tor, _write(tmp_path, bytes(data)))
    assert result.valid_pieces == 3
    assert result.invalid_pieces == [2]


def test_truncated_file(tmp_path):
    data = _data()
    tor = _single_torrent(data, 256)
    result = verify_data(tor, _write(tmp_path, data[:512]))
    assert result.valid_pieces == 2
    assert result.invalid_pieces == [2, 3]


def test_short_last_piece(tmp_path):
    data = _data()[:700]
    result = verify_data(_single_torrent(data, 256), _write(tmp_path, data))
    assert result.total_pieces == 3
    assert result.valid_pieces == 3


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        verify_data(_single_torrent(_data(), 256), str(tmp_path / "nope.bin"))


def _multi(tmp_path):
    data = bytes((i * 7) % 256 for i in range(512))
    root = tmp_path / "dir"
    (root / "sub").mkdir(parents=True)
    (root / "a").write_bytes(data[:300])
    (root / "sub" / "b").write_bytes(data[300:])
    tor = Torrent(
        name="dir",
        piece_length=256,
        pieces=_hashes(data, 256),
        files=[File(300, ["a"]), File(212, ["sub", "b"])],
    )
    return data, tor, str(root)


def test_multi_file_verify(tmp_path):
    _, tor, root = _multi(tmp_path)
    result = verify_data(tor, root)
    assert result.valid_pieces == 2
    assert result.invalid_pieces == []


def test_read_piece_crosses_files(tmp_path):
    data, tor, root = _multi(tmp_path)
    with DiskReader(tor, root) as reader:
        assert reader.read_piece(1, 256) == data[256:512]
        assert reader.read_piece(0, 256) == data[:256]


def test_read_piece_short_raises(tmp_path):
    data = _data()
    tor = _single_torrent(data, 256)
    with DiskReader(tor, _write(tmp_path, data[:300])) as reader:
        with pytest.raises(EOFError):
            reader.read_piece(1, 256)


def test_multi_file_missing_member(tmp_path):
    _, tor, root = _multi(tmp_path)
    (tmp_path / "dir" / "sub" / "b").unlink()
    with pytest.raises(FileNotFoundError):
        DiskReader(tor, root)