from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

from .aggregate import aggregate
from .config import Settings
from .errors import SnapshotError, ZenmarksError
from .log import get_logger
from .model import BookmarkGroup
from .profiles import locate_databases
from .query import FAVICONS_ALIAS, Attachment, QueryEngine, bookmarks_sql
from .snapshot import SnapshotSession

log = get_logger(__name__)


@dataclass
class LoadResult:
    groups: List[BookmarkGroup]
    places_path: Path
    favicons_path: Optional[Path] = None
    icons_joined: bool = False

    @property
    def count(self) -> int:
        return sum(len(g.bookmarks) for g in self.groups)


def engine_from_settings(settings: Settings) -> QueryEngine:
    return QueryEngine(
        backend=settings.query_backend,
        sqlite_bin=settings.sqlite_bin,
        max_output_bytes=settings.max_output_bytes,
        timeout_s=settings.query_timeout_s,
    )


def load_bookmarks(
    settings: Settings,
    *,
    home: Optional[Path] = None,
    tmp_root: Optional[Path] = None,
    engine: Optional[QueryEngine] = None,
) -> LoadResult:
    """One discovery + snapshot + query + grouping pass.

    Raises NotFoundError, SnapshotError (places only) or QueryError. A missing
    or uncopyable favicons db only drops the icon join.
    """
    dbs = locate_databases(settings.places_path, home=home)
    engine = engine or engine_from_settings(settings)

    with SnapshotSession(tmp_root=tmp_root) as session:
        tmp_places = session.snapshot(dbs.places)
        tmp_favicons: Optional[Path] = None
        if dbs.favicons is not None:
            try:
                tmp_favicons = session.snapshot(dbs.favicons)
            except SnapshotError as e:
                log.warning("Favicons unavailable, continuing without icons: %s", e)

        if tmp_favicons is not None:
            sql = bookmarks_sql(with_icons=True, limit=settings.query_limit)
            rows = engine.query(sql, tmp_places, [Attachment(FAVICONS_ALIAS, tmp_favicons)])
        else:
            rows = engine.query(bookmarks_sql(with_icons=False, limit=settings.query_limit), tmp_places)

    groups = aggregate(rows, group_by=settings.group_by)
    result = LoadResult(
        groups=groups,
        places_path=dbs.places,
        favicons_path=dbs.favicons,
        icons_joined=tmp_favicons is not None,
    )
    log.info("Loaded %d bookmarks in %d groups from %s", result.count, len(groups), dbs.places)
    return result


@dataclass
class LoadState:
    groups: List[BookmarkGroup] = field(default_factory=list)
    loading: bool = False
    error: Optional[str] = None
    result: Optional[LoadResult] = None


class BookmarkLoader:
    """Runs passes in the background; only the newest request updates ``state``.

    Older passes keep running to completion but their outcome is dropped, so a
    cancelled or superseded pass never touches what the caller sees.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        on_change: Optional[Callable[[LoadState], None]] = None,
        executor: Optional[ThreadPoolExecutor] = None,
        load: Callable[..., LoadResult] = load_bookmarks,
        **load_kwargs,
    ):
        self.settings = settings
        self.on_change = on_change
        self._load = load
        self._load_kwargs = load_kwargs
        self._own_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="zenmarks")
        self._lock = threading.Lock()
        # held while a state is published, so observers see states in generation order
        self._notify_lock = threading.RLock()
        self._generation = 0
        self.state = LoadState()

    def request(self) -> Future:
        with self._notify_lock:
            with self._lock:
                self._generation += 1
                gen = self._generation
                self.state = LoadState(groups=self.state.groups, loading=True, error=None, result=self.state.result)
                snapshot = self.state
            self._notify(snapshot)
        return self._executor.submit(self._run, gen)

    def cancel(self) -> None:
        with self._lock:
            self._generation += 1
            self.state = LoadState(groups=self.state.groups, loading=False, error=self.state.error, result=self.state.result)

    def is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self._generation

    def close(self) -> None:
        self.cancel()
        if self._own_executor:
            self._executor.shutdown(wait=True)

    def __enter__(self) -> "BookmarkLoader":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _run(self, generation: int) -> Optional[LoadResult]:
        try:
            result = self._load(self.settings, **self._load_kwargs)
        except ZenmarksError as e:
            log.error("%s", e)
            self._apply(generation, LoadState(groups=[], loading=False, error=str(e) or "Failed to load bookmarks"))
            return None
        except Exception as e:
            log.exception("Bookmark pass failed")
            self._apply(generation, LoadState(groups=[], loading=False, error=str(e) or "Failed to load bookmarks"))
            return None
        self._apply(generation, LoadState(groups=result.groups, loading=False, error=None, result=result))
        return result

    def _apply(self, generation: int, new_state: LoadState) -> None:
        with self._notify_lock:
            with self._lock:
                if generation != self._generation:
                    log.debug("Dropping result of superseded pass %d", generation)
                    return
                self.state = new_state
            self._notify(new_state)

    def _notify(self, state: LoadState) -> None:
        if self.on_change is not None:
            self.on_change(state)
