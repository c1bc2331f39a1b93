from __future__ import annotations

import configparser
import os
import re
import subprocess
import webbrowser
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from .log import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class Application:
    id: str
    name: str
    path: Path


@dataclass(frozen=True)
class OpenAction:
    app_id: Optional[str] = None

    @property
    def title(self) -> str:
        return "Open in Zen" if self.app_id else "Open in Browser"


def application_dirs(*, home: Optional[Path] = None) -> List[Path]:
    base = Path(home) if home is not None else Path.home()
    data_home = os.getenv("XDG_DATA_HOME") or str(base / ".local" / "share")
    data_dirs = (os.getenv("XDG_DATA_DIRS") or "/usr/local/share:/usr/share").split(":")
    dirs = [Path(data_home)]
    dirs += [Path(d) for d in data_dirs if d]
    dirs += [
        base / ".local" / "share" / "flatpak" / "exports" / "share",
        Path("/var/lib/flatpak/exports/share"),
        Path("/var/lib/snapd/desktop"),
    ]
    out: List[Path] = []
    for d in dirs:
        p = d / "applications"
        if p not in out:
            out.append(p)
    return out


def installed_applications(dirs: Optional[Sequence[Path]] = None) -> List[Application]:
    """Desktop entries found in the XDG application dirs (first id wins)."""
    seen = set()
    out: List[Application] = []
    for d in dirs if dirs is not None else application_dirs():
        if not d.is_dir():
            continue
        for path in sorted(d.rglob("*.desktop")):
            app_id = path.relative_to(d).as_posix().replace("/", "-")
            if app_id in seen:
                continue
            name = _desktop_name(path)
            if name is None:
                continue
            seen.add(app_id)
            out.append(Application(id=app_id, name=name, path=path))
    return out


def _desktop_name(path: Path) -> Optional[str]:
    cp = configparser.ConfigParser(interpolation=None, strict=False)
    try:
        cp.read_string(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, configparser.Error) as e:
        log.debug("Skipping unreadable desktop entry %s: %s", path, e)
        return None
    if not cp.has_section("Desktop Entry"):
        return None
    entry = cp["Desktop Entry"]
    if entry.get("Hidden", "false").lower() == "true":
        return None
    return entry.get("Name", path.stem)


def find_browser_app(
    apps: Iterable[Application],
    *,
    name_pattern: str = "zen",
    id_pattern: str = "zen_browser",
) -> Optional[Application]:
    name_re = re.compile(re.escape(name_pattern), re.IGNORECASE)
    id_re = re.compile(re.escape(id_pattern), re.IGNORECASE)
    for app in apps:
        if name_re.search(app.name) or id_re.search(app.id):
            return app
    return None


def resolve_open_action(
    *,
    name_pattern: str = "zen",
    id_pattern: str = "zen_browser",
    fallback_app_id: Optional[str] = "app.zen_browser.zen.desktop",
    dirs: Optional[Sequence[Path]] = None,
) -> OpenAction:
    try:
        app = find_browser_app(installed_applications(dirs), name_pattern=name_pattern, id_pattern=id_pattern)
    except OSError as e:
        log.debug("Application lookup failed, assuming %s: %s", fallback_app_id, e)
        return OpenAction(app_id=fallback_app_id)
    if app is None:
        return OpenAction()
    return OpenAction(app_id=app.id)


def open_url(url: str, action: OpenAction) -> bool:
    if action.app_id:
        app = action.app_id[: -len(".desktop")] if action.app_id.endswith(".desktop") else action.app_id
        try:
            r = subprocess.run(["gtk-launch", app, url], capture_output=True, text=True)
        except FileNotFoundError:
            log.warning("gtk-launch not available; opening %s in the default browser", url)
        else:
            if r.returncode == 0:
                return True
            log.warning("gtk-launch %s failed: %s", app, (r.stderr or "").strip() or f"rc={r.returncode}")
    return webbrowser.open(url)
