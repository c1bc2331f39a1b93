from __future__ import annotations

import locale
import warnings
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .errors import DiscardedRecordWarning
from .icons import OTHER, domain_of
from .log import get_logger
from .model import BookmarkGroup, BookmarkRecord

log = get_logger(__name__)

GROUP_BY_MODES = ("host", "registrable")


def rows_to_records(rows: Iterable[Mapping[str, Any]]) -> List[BookmarkRecord]:
    out: List[BookmarkRecord] = []
    dropped = 0
    for r in rows:
        rec = _record_from_row(r)
        if rec is None:
            dropped += 1
            continue
        out.append(rec)
    if dropped:
        log.debug("Discarded %d malformed bookmark rows", dropped)
        warnings.warn(
            DiscardedRecordWarning(f"discarded {dropped} bookmark row(s) without a usable http(s) URL"),
            stacklevel=2,
        )
    return out


def _record_from_row(r: Mapping[str, Any]) -> Optional[BookmarkRecord]:
    url = _as_text(r.get("url")).strip()
    if not url or not url.lower().startswith(("http://", "https://")):
        return None
    try:
        rid = int(r.get("id"))
    except (TypeError, ValueError):
        return None
    title = _as_text(r.get("title")).strip() or url
    icon = _as_text(r.get("icon_url")).strip() or None
    return BookmarkRecord(id=rid, title=title, url=url, icon_url=icon)


def _as_text(value: Any) -> str:
    return "" if value is None else str(value)


def group_key(url: str, *, group_by: str = "host") -> str:
    return domain_of(url, registrable=(group_by == "registrable")) or OTHER


def group_sort_key(key: str) -> Tuple[str, str]:
    """Collation key for group names; raw key breaks ties."""
    return locale.strxfrm(key.casefold()), key


def group_records(records: Iterable[BookmarkRecord], *, group_by: str = "host") -> List[BookmarkGroup]:
    if group_by not in GROUP_BY_MODES:
        raise ValueError(f"unknown group_by mode: {group_by!r}")
    by_key: Dict[str, BookmarkGroup] = {}
    for rec in records:
        key = group_key(rec.url, group_by=group_by)
        grp = by_key.get(key)
        if grp is None:
            grp = by_key[key] = BookmarkGroup(key=key)
        grp.bookmarks.append(rec)
    return sorted(by_key.values(), key=lambda g: group_sort_key(g.key))


def aggregate(rows: Iterable[Mapping[str, Any]], *, group_by: str = "host") -> List[BookmarkGroup]:
    return group_records(rows_to_records(rows), group_by=group_by)


def filter_groups(groups: Iterable[BookmarkGroup], text: Optional[str]) -> List[BookmarkGroup]:
    """Keep records matching every whitespace-separated term (title, url or group)."""
    terms = [t.casefold() for t in (text or "").split()]
    if not terms:
        return list(groups)
    out: List[BookmarkGroup] = []
    for g in groups:
        keep = []
        for rec in g.bookmarks:
            hay = f"{g.key} {rec.title} {rec.url}".casefold()
            if all(t in hay for t in terms):
                keep.append(rec)
        if keep:
            out.append(BookmarkGroup(key=g.key, bookmarks=keep))
    return out
