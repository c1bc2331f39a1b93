from __future__ import annotations

import json
import re
import shutil
import sqlite3
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .errors import QueryError
from .log import get_logger

log = get_logger(__name__)

BACKENDS = ("auto", "cli", "sqlite")
FAVICONS_ALIAS = "fav"
DEFAULT_LIMIT = 500
DEFAULT_MAX_OUTPUT_BYTES = 10_000_000
_CHUNK = 64 * 1024
_STDERR_KEEP = 64 * 1024

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

Row = Dict[str, Any]


@dataclass(frozen=True)
class Attachment:
    alias: str
    db_path: Path | str

    def __post_init__(self) -> None:
        if not _IDENTIFIER.match(self.alias or ""):
            raise ValueError(f"invalid database alias: {self.alias!r}")


def sql_quote(value: str) -> str:
    return value.replace("'", "''")


def build_script(sql: str, attachments: Sequence[Attachment] = ()) -> str:
    parts = [f"ATTACH DATABASE '{sql_quote(str(a.db_path))}' AS {a.alias};" for a in attachments]
    parts.append(sql)
    return " ".join(parts)


_TITLE_EXPR = "COALESCE(NULLIF(TRIM(b.title), ''), NULLIF(TRIM(p.title), ''), p.url)"

_ICON_SUBQUERY = f"""(
                 SELECT fi.icon_url
                 FROM {FAVICONS_ALIAS}.moz_pages_w_icons f_pwi
                 JOIN {FAVICONS_ALIAS}.moz_icons_to_pages f_itp ON f_itp.page_id = f_pwi.id
                 JOIN {FAVICONS_ALIAS}.moz_icons fi ON fi.id = f_itp.icon_id
                 WHERE f_pwi.page_url = p.url
                 ORDER BY fi.width DESC
                 LIMIT 1
               )"""


def bookmarks_sql(*, with_icons: bool, limit: int = DEFAULT_LIMIT) -> str:
    """Newest-first bookmark query; icons need the favicons db attached as ``fav``."""
    icon_expr = _ICON_SUBQUERY if with_icons else "NULL"
    return f"""
        SELECT b.id AS id,
               {_TITLE_EXPR} AS title,
               p.url AS url,
               {icon_expr} AS icon_url
        FROM moz_bookmarks b
        JOIN moz_places p ON b.fk = p.id
        WHERE b.type = 1 AND p.url LIKE 'http%'
        ORDER BY b.dateAdded DESC
        LIMIT {max(0, int(limit))};
    """


class QueryEngine:
    """Run a read-only query against a snapshot, optionally with attachments.

    backends:
      - cli: spawn the sqlite3 shell in JSON mode (one process per query)
      - sqlite: in-process stdlib sqlite3, read-only URIs
      - auto: cli when the binary is on PATH, else sqlite
    """

    def __init__(
        self,
        *,
        backend: str = "auto",
        sqlite_bin: str = "sqlite3",
        max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
        timeout_s: float | None = 30.0,
    ):
        backend = (backend or "auto").lower()
        if backend not in BACKENDS:
            raise ValueError(f"unknown query backend: {backend!r} (expected one of {', '.join(BACKENDS)})")
        self.backend = backend
        self.sqlite_bin = sqlite_bin
        self.max_output_bytes = max(1, int(max_output_bytes))
        self.timeout_s = timeout_s if timeout_s and timeout_s > 0 else None

    def effective_backend(self) -> str:
        if self.backend != "auto":
            return self.backend
        return "cli" if shutil.which(self.sqlite_bin) else "sqlite"

    def query(self, sql: str, primary_db: Path | str, attachments: Sequence[Attachment] = ()) -> List[Row]:
        backend = self.effective_backend()
        log.debug("Querying %s (backend=%s, attachments=%d)", primary_db, backend, len(attachments))
        if backend == "cli":
            return self._query_cli(sql, Path(primary_db), attachments)
        return self._query_sqlite(sql, Path(primary_db), attachments)

    def _query_cli(self, sql: str, primary_db: Path, attachments: Sequence[Attachment]) -> List[Row]:
        cmd = [self.sqlite_bin, "-readonly", "-json", str(primary_db), build_script(sql, attachments)]
        returncode, stdout, stderr = run_capped(cmd, max_output_bytes=self.max_output_bytes, timeout_s=self.timeout_s)
        if returncode != 0:
            raise QueryError(stderr.strip() or f"{self.sqlite_bin} exited with status {returncode}")
        return parse_json_rows(stdout.decode("utf-8", errors="replace"))

    def _query_sqlite(self, sql: str, primary_db: Path, attachments: Sequence[Attachment]) -> List[Row]:
        try:
            conn = sqlite3.connect(_ro_uri(primary_db), uri=True)
        except sqlite3.Error as e:
            raise QueryError(f"cannot open {primary_db}: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            for a in attachments:
                conn.execute(f"ATTACH DATABASE ? AS {a.alias}", (_ro_uri(Path(a.db_path)),))
            rows = [dict(r) for r in conn.execute(sql).fetchall()]
        except sqlite3.Error as e:
            raise QueryError(str(e)) from e
        finally:
            conn.close()
        return rows


def run_capped(
    cmd: List[str],
    *,
    max_output_bytes: int,
    timeout_s: Optional[float] = None,
) -> Tuple[int, bytes, str]:
    """Run ``cmd`` and return (returncode, stdout, stderr).

    stdout is read in chunks and the process is killed as soon as it exceeds
    ``max_output_bytes``; stderr is drained on a side thread and truncated.
    Overflow, timeout and a missing binary raise QueryError.
    """
    try:
        proc = subprocess.Popen(cmd, stdin=subprocess.DEVNULL, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
    except OSError as e:
        raise QueryError(f"cannot run query backend {cmd[0]}: {e}") from e

    timed_out = threading.Event()
    timer: Optional[threading.Timer] = None
    if timeout_s:
        timer = threading.Timer(timeout_s, _kill, (proc, timed_out))
        timer.daemon = True
        timer.start()

    err_chunks: List[bytes] = []
    err_thread = threading.Thread(target=_drain, args=(proc.stderr, err_chunks), daemon=True)
    err_thread.start()

    out = bytearray()
    overflow = False
    try:
        while True:
            chunk = proc.stdout.read(_CHUNK)
            if not chunk:
                break
            out += chunk
            if len(out) > max_output_bytes:
                overflow = True
                _kill(proc)
                break
        proc.wait()
        err_thread.join()
    finally:
        if timer is not None:
            timer.cancel()
        if proc.poll() is None:
            _kill(proc)
            proc.wait()
        proc.stdout.close()
        proc.stderr.close()

    if overflow:
        raise QueryError(f"query output exceeds {max_output_bytes} bytes")
    if timed_out.is_set():
        raise QueryError(f"query timed out after {timeout_s:g}s")
    stderr = b"".join(err_chunks).decode("utf-8", errors="replace")
    return proc.returncode, bytes(out), stderr


def _drain(stream, sink: List[bytes]) -> None:
    kept = 0
    for chunk in iter(lambda: stream.read(_CHUNK), b""):
        if kept < _STDERR_KEEP:
            sink.append(chunk[: _STDERR_KEEP - kept])
            kept += len(sink[-1])


def _kill(proc: subprocess.Popen, flag: Optional[threading.Event] = None) -> None:
    if proc.poll() is not None:
        return
    if flag is not None:
        flag.set()
    try:
        proc.kill()
    except ProcessLookupError:
        # exited between poll() and kill()
        return


def parse_json_rows(stdout: str) -> List[Row]:
    if not stdout.strip():
        return []
    try:
        data = json.loads(stdout)
    except json.JSONDecodeError as e:
        raise QueryError(f"unparsable query output: {e}") from e
    if not isinstance(data, list) or not all(isinstance(x, dict) for x in data):
        raise QueryError("unexpected query output: expected a JSON array of objects")
    return data


def _ro_uri(path: Path) -> str:
    return f"{path.resolve().as_uri()}?mode=ro"
