from __future__ import annotations

import shutil
import tempfile
from contextlib import ExitStack
from pathlib import Path
from typing import List, Optional

from .errors import SnapshotError
from .log import get_logger

log = get_logger(__name__)

TMP_PREFIX = "zenmarks-"
SIDECAR_SUFFIXES = ("-wal", "-shm")


def snapshot(source: Path | str, *, tmp_root: Optional[Path | str] = None) -> Path:
    """Copy a live database into a fresh private temp dir and return the copy.

    The owning browser may be writing the file; readers only ever open the
    copy. The temp dir is left behind; use SnapshotSession to remove it.
    """
    src = Path(source)
    try:
        workdir = Path(tempfile.mkdtemp(prefix=TMP_PREFIX, dir=str(tmp_root) if tmp_root is not None else None))
    except OSError as e:
        raise SnapshotError(f"cannot create snapshot dir for {src}: {e}") from e
    try:
        return _copy_into(src, workdir)
    except BaseException:
        shutil.rmtree(workdir, ignore_errors=True)
        raise


def _copy_into(src: Path, workdir: Path) -> Path:
    dst = workdir / src.name
    try:
        shutil.copyfile(src, dst)
    except OSError as e:
        raise SnapshotError(f"cannot snapshot {src}: {e}") from e
    for suffix in SIDECAR_SUFFIXES:
        side = src.with_name(src.name + suffix)
        if not side.exists():
            continue
        try:
            shutil.copyfile(side, dst.with_name(dst.name + suffix))
        except OSError as e:
            raise SnapshotError(f"cannot snapshot {side}: {e}") from e
    log.debug("Snapshot %s -> %s", src, dst)
    return dst


class SnapshotSession:
    """Owns the snapshot dirs of one pass and removes them on any exit."""

    def __init__(self, *, tmp_root: Optional[Path | str] = None):
        self.tmp_root = tmp_root
        self.dirs: List[Path] = []
        self._stack: Optional[ExitStack] = None

    def __enter__(self) -> "SnapshotSession":
        self._stack = ExitStack()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def snapshot(self, source: Path | str) -> Path:
        if self._stack is None:
            raise RuntimeError("snapshot session is not open")
        copy = snapshot(source, tmp_root=self.tmp_root)
        self.dirs.append(copy.parent)
        self._stack.callback(shutil.rmtree, copy.parent, ignore_errors=True)
        return copy

    def close(self) -> None:
        if self._stack is not None:
            self._stack.close()
            self._stack = None
