from __future__ import annotations

import re
from pathlib import Path
from typing import List, Optional, Sequence

from .errors import NotFoundError
from .log import get_logger
from .model import DatabasePaths, ProfileEntry
from .paths import resolve_user_path

log = get_logger(__name__)

# Ordered: the Flatpak sandbox wins over a plain dot-folder when both exist.
PROFILE_ROOT_CANDIDATES = (
    (".var", "app", "app.zen_browser.zen", ".zen"),
    (".zen",),
)

PROFILES_INI = "profiles.ini"
PLACES_DB = "places.sqlite"
FAVICONS_DB = "favicons.sqlite"

_BLOCK_SPLIT = re.compile(r"\n[ \t]*\n+")


def find_profile_root(
    *,
    home: Optional[Path] = None,
    candidates: Optional[Sequence[Sequence[str]]] = None,
) -> Optional[Path]:
    base = Path(home) if home is not None else Path.home()
    for parts in candidates or PROFILE_ROOT_CANDIDATES:
        p = base.joinpath(*parts)
        if p.exists():
            log.debug("Using profile root %s", p)
            return p
    return None


def parse_profiles_ini(text: str) -> List[ProfileEntry]:
    """Return profile blocks that carry a ``Path=`` key, in file order."""
    out: List[ProfileEntry] = []
    content = text.replace("\r\n", "\n").replace("\r", "\n")
    for block in _BLOCK_SPLIT.split(content):
        section = ""
        values = {}
        for line in block.split("\n"):
            line = line.strip()
            if not line or line.startswith((";", "#")):
                continue
            if line.startswith("[") and line.endswith("]"):
                section = section or line[1:-1].strip()
                continue
            key, sep, value = line.partition("=")
            if sep:
                values.setdefault(key.strip(), value.strip())
        if not section.startswith("Profile"):
            continue
        rel = values.get("Path", "")
        if not rel:
            continue
        out.append(
            ProfileEntry(
                section=section,
                path=rel,
                name=values.get("Name", ""),
                is_default=values.get("Default") == "1",
                is_relative=values.get("IsRelative", "1") != "0",
            )
        )
    return out


def select_default_profile(entries: Sequence[ProfileEntry]) -> Optional[ProfileEntry]:
    # First Default=1 block in file order, else the first block.
    for e in entries:
        if e.is_default:
            return e
    return entries[0] if entries else None


def profile_dir(root: Path, entry: ProfileEntry) -> Path:
    p = Path(entry.path)
    if entry.is_relative or not p.is_absolute():
        return Path(root) / p
    return p


def read_profiles(root: Path) -> Optional[List[ProfileEntry]]:
    ini = Path(root) / PROFILES_INI
    try:
        text = ini.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        log.debug("Cannot read %s: %s", ini, e)
        return None
    return parse_profiles_ini(text)


def find_default_profile_dir(root: Path) -> Optional[Path]:
    entries = read_profiles(root)
    if not entries:
        return None
    chosen = select_default_profile(entries)
    return profile_dir(root, chosen) if chosen is not None else None


def locate_databases(
    places_override: Optional[str] = None,
    *,
    home: Optional[Path] = None,
) -> DatabasePaths:
    """Find places.sqlite (required) and favicons.sqlite (optional).

    An override may name the database file or the directory holding it. When it
    does not resolve to an existing file, autodetection is used instead.
    """
    places: Optional[Path] = None
    favicons: Optional[Path] = None

    candidate = resolve_user_path(places_override, home=str(home) if home is not None else None)
    if candidate:
        cp = Path(candidate)
        if cp.is_dir() and (cp / PLACES_DB).exists():
            cp = cp / PLACES_DB
        if cp.is_file():
            places = cp
            fav = cp.parent / FAVICONS_DB
            favicons = fav if fav.exists() else None
        else:
            log.warning("Configured places path not found: %s (falling back to autodetection)", candidate)

    if places is None:
        root = find_profile_root(home=home)
        profile = find_default_profile_dir(root) if root is not None else None
        if profile is not None:
            p = profile / PLACES_DB
            f = profile / FAVICONS_DB
            if p.exists():
                places = p
            if f.exists():
                favicons = f
        else:
            log.debug("No Zen profile detected (root=%s)", root)

    if places is None:
        raise NotFoundError(
            f"{PLACES_DB} not found. Set ZEN_PLACES_PATH (or places_path in the config file) to your file."
        )
    if favicons is None:
        log.info("No %s next to %s; icons fall back to the favicon service.", FAVICONS_DB, places)
    return DatabasePaths(places=places, favicons=favicons)
