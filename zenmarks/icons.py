from __future__ import annotations

from functools import lru_cache
from typing import Optional
from urllib.parse import quote, urlparse

import tldextract  # type: ignore

from .model import BookmarkRecord

OTHER = "Other"
GLOBE_ICON = "globe"
DEFAULT_FAVICON_SERVICE = "https://www.google.com/s2/favicons?sz=64&domain_url={url}"


@lru_cache(maxsize=1)
def _extractor() -> tldextract.TLDExtract:
    # Bundled suffix snapshot only: grouping must never hit the network.
    return tldextract.TLDExtract(suffix_list_urls=())


def domain_of(url: str, *, registrable: bool = False) -> Optional[str]:
    try:
        host = urlparse(url).hostname
    except ValueError:
        return None
    if not host:
        return None
    if registrable:
        ext = _extractor()(host)
        if ext.domain and ext.suffix:
            return f"{ext.domain}.{ext.suffix}"
    return host


def favicon_service_url(page_url: str, template: str = DEFAULT_FAVICON_SERVICE) -> str:
    return template.replace("{url}", quote(page_url, safe=""))


def resolve_icon(record: BookmarkRecord, group_key: str, *, template: str = DEFAULT_FAVICON_SERVICE) -> str:
    if record.icon_url:
        return record.icon_url
    if group_key != OTHER:
        return favicon_service_url(record.url, template)
    return GLOBE_ICON
