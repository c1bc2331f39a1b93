import os
from pathlib import Path

import pytest

from zenmarks.errors import SnapshotError
from zenmarks.snapshot import SnapshotSession, snapshot


def test_snapshot_copies_bytes_and_keeps_name(tmp_path: Path):
    src = tmp_path / "profile" / "places.sqlite"
    src.parent.mkdir()
    src.write_bytes(b"\x00SQLite format 3\x00payload")
    copy = snapshot(src, tmp_root=tmp_path)
    assert copy.name == "places.sqlite"
    assert copy.read_bytes() == src.read_bytes()
    assert copy.parent != src.parent
    assert copy.parent.name.startswith("zenmarks-")


def test_each_snapshot_gets_its_own_dir(tmp_path: Path):
    src = tmp_path / "places.sqlite"
    src.write_bytes(b"x")
    a = snapshot(src, tmp_root=tmp_path)
    b = snapshot(src, tmp_root=tmp_path)
    assert a.parent != b.parent


def test_copy_is_isolated_from_later_writes(tmp_path: Path):
    src = tmp_path / "places.sqlite"
    src.write_bytes(b"before")
    copy = snapshot(src, tmp_root=tmp_path)
    src.write_bytes(b"after, and longer")
    assert copy.read_bytes() == b"before"


def test_wal_sidecars_are_copied(tmp_path: Path):
    src = tmp_path / "places.sqlite"
    src.write_bytes(b"db")
    (tmp_path / "places.sqlite-wal").write_bytes(b"wal")
    copy = snapshot(src, tmp_root=tmp_path)
    assert (copy.parent / "places.sqlite-wal").read_bytes() == b"wal"
    assert not (copy.parent / "places.sqlite-shm").exists()


def test_missing_source_raises_and_leaves_no_dir(tmp_path: Path):
    root = tmp_path / "tmp"
    root.mkdir()
    with pytest.raises(SnapshotError):
        snapshot(tmp_path / "missing.sqlite", tmp_root=root)
    assert os.listdir(root) == []


def test_snapshot_error_is_an_ioerror(tmp_path: Path):
    with pytest.raises(IOError):
        snapshot(tmp_path / "missing.sqlite", tmp_root=tmp_path)


def test_session_removes_dirs_on_exit(tmp_path: Path):
    src = tmp_path / "places.sqlite"
    src.write_bytes(b"x")
    root = tmp_path / "tmp"
    root.mkdir()
    with SnapshotSession(tmp_root=root) as session:
        c1 = session.snapshot(src)
        c2 = session.snapshot(src)
        assert c1.exists() and c2.exists()
    assert os.listdir(root) == []


def test_session_removes_dirs_on_error(tmp_path: Path):
    src = tmp_path / "places.sqlite"
    src.write_bytes(b"x")
    root = tmp_path / "tmp"
    root.mkdir()
    with pytest.raises(RuntimeError):
        with SnapshotSession(tmp_root=root) as session:
            session.snapshot(src)
            raise RuntimeError("boom")
    assert os.listdir(root) == []


def test_session_must_be_open(tmp_path: Path):
    with pytest.raises(RuntimeError):
        SnapshotSession(tmp_root=tmp_path).snapshot(tmp_path / "x")
