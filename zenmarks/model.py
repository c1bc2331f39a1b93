from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional


@dataclass
class BookmarkRecord:
    id: int
    title: str
    url: str
    icon_url: Optional[str] = None


@dataclass
class BookmarkGroup:
    key: str
    bookmarks: List[BookmarkRecord] = field(default_factory=list)


@dataclass
class ProfileEntry:
    section: str
    path: str
    name: str = ""
    is_default: bool = False
    is_relative: bool = True


@dataclass(frozen=True)
class DatabasePaths:
    places: Path
    favicons: Optional[Path] = None
