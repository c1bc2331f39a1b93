from __future__ import annotations

import argparse
import json
import locale
import sys
import time
from pathlib import Path
from typing import List

from rich.console import Console
from rich.table import Table

from . import __version__
from .aggregate import filter_groups
from .apps import OpenAction, open_url, resolve_open_action
from .config import Settings, load_settings
from .errors import ZenmarksError
from .icons import resolve_icon
from .loader import load_bookmarks
from .log import LogConfig, get_logger, setup_logging
from .model import BookmarkGroup
from .profiles import find_profile_root, profile_dir, read_profiles, select_default_profile

log = get_logger(__name__)


def main(argv: List[str] | None = None) -> int:
    p = argparse.ArgumentParser(
        prog="zenmarks",
        description="List Zen browser bookmarks grouped by site (reads a snapshot, never the live profile).",
    )
    p.add_argument("-V", "--version", action="version", version=f"zenmarks {__version__}")
    p.add_argument("--config", default=None, help="YAML config file (optional). Env vars override defaults.")
    p.add_argument("--log-level", default=None, help="DEBUG/INFO/WARN/ERROR (overrides env/config).")
    p.add_argument("--no-color", action="store_true", help="Disable colored output.")
    p.add_argument("--log-file", default=None, help="Also write logs to this rotating file (UTC timestamps).")
    sub = p.add_subparsers(dest="cmd", required=True)

    ls = sub.add_parser("list", help="List bookmarks grouped by domain.")
    ls.add_argument("--places", default=None, help="places.sqlite file or profile dir (overrides autodetection).")
    ls.add_argument("--filter", default=None, help="Only show bookmarks matching all given words.")
    ls.add_argument("--limit", type=int, default=None, help="Maximum number of bookmarks to read.")
    ls.add_argument("--backend", choices=("auto", "cli", "sqlite"), default=None, help="Query backend.")
    ls.add_argument("--json", action="store_true", help="Print JSON instead of a table.")

    sub.add_parser("profiles", help="Show the detected profile root and profiles.")

    op = sub.add_parser("open", help="Open a URL in Zen (or the default browser).")
    op.add_argument("url")
    op.add_argument("--default-browser", action="store_true", help="Skip Zen lookup, use the default handler.")

    args = p.parse_args(argv)
    try:
        cfg = load_settings(args.config)
        if args.log_level:
            cfg.log_level = args.log_level
        if args.no_color:
            cfg.no_color = True
        if args.log_file:
            cfg.log_file = args.log_file
        cfg.validate()
    except ZenmarksError as e:
        setup_logging(LogConfig(no_color=args.no_color))
        log.error("Invalid configuration: %s", e)
        return 2
    try:
        setup_logging(LogConfig(level=cfg.log_level, no_color=cfg.no_color, log_file=cfg.log_file))
    except OSError as e:
        setup_logging(LogConfig(level=cfg.log_level, no_color=cfg.no_color))
        log.error("Cannot open log file %s: %s", cfg.log_file, e)
        return 2
    _init_collation()

    if args.cmd == "list":
        return _cmd_list(args, cfg)
    if args.cmd == "profiles":
        return _cmd_profiles(cfg)
    if args.cmd == "open":
        return _cmd_open(args, cfg)
    return 2


def _init_collation() -> None:
    # group ordering uses strxfrm, which follows LC_COLLATE only once it is set
    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error as e:
        log.debug("Keeping the C collation: %s", e)


def _cmd_list(args, cfg: Settings) -> int:
    t0 = time.time()
    if args.places:
        cfg.places_path = args.places
    if args.limit is not None:
        cfg.query_limit = args.limit
    if args.backend:
        cfg.query_backend = args.backend
    if args.limit is not None and args.limit < 0:
        log.error("--limit must not be negative")
        return 2

    try:
        result = load_bookmarks(cfg)
    except ZenmarksError as e:
        log.error("Unable to load Zen bookmarks: %s", e)
        return 2

    groups = filter_groups(result.groups, args.filter)
    if args.json:
        sys.stdout.write(json.dumps(_groups_to_json(groups, cfg), ensure_ascii=False, indent=2) + "\n")
    else:
        _print_table(groups, cfg, resolve_open_action(
            name_pattern=cfg.browser_name,
            id_pattern=cfg.browser_app_id,
            fallback_app_id=cfg.fallback_app_id,
        ))
    log.debug("Done in %d ms.", int((time.time() - t0) * 1000))
    return 0


def _groups_to_json(groups: List[BookmarkGroup], cfg: Settings) -> list:
    return [
        {
            "group": g.key,
            "bookmarks": [
                {
                    "id": b.id,
                    "title": b.title,
                    "url": b.url,
                    "icon_url": b.icon_url,
                    "icon": resolve_icon(b, g.key, template=cfg.favicon_service),
                }
                for b in g.bookmarks
            ],
        }
        for g in groups
    ]


def _print_table(groups: List[BookmarkGroup], cfg: Settings, action: OpenAction) -> None:
    console = Console(no_color=cfg.no_color)
    if not groups:
        console.print("No bookmarks found.")
        return
    for g in groups:
        table = Table(title=f"{g.key} ({len(g.bookmarks)})", title_justify="left", show_header=True, expand=True)
        table.add_column("Title", overflow="fold", ratio=2)
        table.add_column("URL", overflow="fold", ratio=3)
        table.add_column("Icon", overflow="fold", ratio=2)
        for b in g.bookmarks:
            table.add_row(b.title, b.url, resolve_icon(b, g.key, template=cfg.favicon_service))
        console.print(table)
    console.print(f"[dim]Default action: {action.title}[/dim]")


def _cmd_profiles(cfg: Settings) -> int:
    console = Console(no_color=cfg.no_color)
    root = find_profile_root()
    if root is None:
        log.error("No Zen profile root found.")
        return 2
    console.print(f"Profile root: {root}")
    entries = read_profiles(root) or []
    if not entries:
        log.warning("No profiles listed in %s", Path(root) / "profiles.ini")
        return 2
    chosen = select_default_profile(entries)
    table = Table(show_header=True)
    table.add_column("Section")
    table.add_column("Name")
    table.add_column("Path", overflow="fold")
    table.add_column("Default")
    for e in entries:
        table.add_row(e.section, e.name, str(profile_dir(root, e)), "*" if e is chosen else "")
    console.print(table)
    return 0


def _cmd_open(args, cfg: Settings) -> int:
    if args.default_browser:
        action = OpenAction()
    else:
        action = resolve_open_action(
            name_pattern=cfg.browser_name,
            id_pattern=cfg.browser_app_id,
            fallback_app_id=cfg.fallback_app_id,
        )
    if not open_url(args.url, action):
        log.error("Could not open %s", args.url)
        return 2
    return 0
