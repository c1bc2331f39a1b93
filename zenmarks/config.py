from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

from .aggregate import GROUP_BY_MODES
from .errors import ConfigError
from .icons import DEFAULT_FAVICON_SERVICE
from .log import get_logger, parse_level
from .query import BACKENDS

log = get_logger(__name__)


def _env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    try:
        return int(v)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    try:
        return float(v)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    return v.strip().lower() in ("1", "true", "yes", "y", "on")


def _env_str(name: str, default: str) -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_opt_str(name: str, default: Optional[str]) -> Optional[str]:
    v = os.getenv(name)
    if v is None or v.strip() == "":
        return default
    return v


@dataclass
class Settings:
    # Discovery
    places_path: Optional[str] = None  # file or profile dir; None => autodetect

    # Query backend
    query_backend: str = "auto"  # auto | cli | sqlite
    sqlite_bin: str = "sqlite3"
    query_limit: int = 500
    max_output_bytes: int = 10_000_000
    query_timeout_s: float = 30.0

    # Presentation
    favicon_service: str = DEFAULT_FAVICON_SERVICE
    group_by: str = "host"  # host | registrable

    # Launcher integration
    browser_name: str = "zen"
    browser_app_id: str = "zen_browser"
    fallback_app_id: str = "app.zen_browser.zen.desktop"

    # Logging / UX
    log_level: str = "INFO"
    no_color: bool = False
    log_file: Optional[str] = None  # rotating log file; None => stderr only

    @staticmethod
    def from_env() -> "Settings":
        s = Settings()
        s.places_path = _env_opt_str("ZEN_PLACES_PATH", s.places_path)

        s.query_backend = _env_str("ZEN_QUERY_BACKEND", s.query_backend)
        s.sqlite_bin = _env_str("ZEN_SQLITE_BIN", s.sqlite_bin)
        s.query_limit = _env_int("ZEN_QUERY_LIMIT", s.query_limit)
        s.max_output_bytes = _env_int("ZEN_MAX_OUTPUT_BYTES", s.max_output_bytes)
        s.query_timeout_s = _env_float("ZEN_QUERY_TIMEOUT_S", s.query_timeout_s)

        s.favicon_service = _env_str("ZEN_FAVICON_SERVICE", s.favicon_service)
        s.group_by = _env_str("ZEN_GROUP_BY", s.group_by)

        s.browser_name = _env_str("ZEN_BROWSER_NAME", s.browser_name)
        s.browser_app_id = _env_str("ZEN_BROWSER_APP_ID", s.browser_app_id)
        s.fallback_app_id = _env_str("ZEN_FALLBACK_APP_ID", s.fallback_app_id)

        s.log_level = _env_str("ZEN_LOG_LEVEL", s.log_level)
        s.no_color = _env_bool("ZEN_NO_COLOR", s.no_color)
        s.log_file = _env_opt_str("ZEN_LOG_FILE", s.log_file)
        return s

    @staticmethod
    def from_file(path: Path) -> "Settings":
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except OSError as e:
            raise ConfigError(f"cannot read config file {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid YAML in {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"config file must contain a mapping: {path}")
        s = Settings.from_env()
        defaults = {f.name: f.default for f in fields(Settings)}
        for k, v in data.items():
            if k in defaults:
                setattr(s, k, _coerce(k, v, defaults[k]))
            else:
                log.debug("Ignoring unknown config key %r in %s", k, path)
        return s

    def validate(self) -> "Settings":
        """Normalise enumerated settings in place; unusable values raise ConfigError."""
        self.query_backend = (self.query_backend or "").strip().lower()
        if self.query_backend not in BACKENDS:
            raise ConfigError(
                f"query_backend must be one of {', '.join(BACKENDS)}, got {self.query_backend!r}"
            )
        self.group_by = (self.group_by or "").strip().lower()
        if self.group_by not in GROUP_BY_MODES:
            raise ConfigError(f"group_by must be one of {', '.join(GROUP_BY_MODES)}, got {self.group_by!r}")
        try:
            parse_level(self.log_level)
        except ValueError as e:
            raise ConfigError(str(e)) from e
        if self.query_limit < 0:
            raise ConfigError(f"query_limit must not be negative, got {self.query_limit}")
        if self.max_output_bytes <= 0:
            raise ConfigError(f"max_output_bytes must be positive, got {self.max_output_bytes}")
        return self


_OPTIONAL_STR = ("places_path", "log_file")


def _coerce(name: str, value, default):
    """Convert a YAML value to the type of the setting's default."""
    if name in _OPTIONAL_STR:
        return None if value is None or str(value).strip() == "" else str(value)
    if isinstance(default, bool):
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, str)):
            return str(value).strip().lower() in ("1", "true", "yes", "y", "on")
    elif isinstance(default, int):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                pass
    elif isinstance(default, float):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value.strip())
            except ValueError:
                pass
    elif isinstance(value, (str, int, float)) and not isinstance(value, bool):
        return str(value)
    raise ConfigError(f"invalid value for {name}: {value!r}")


def load_settings(config_path: Optional[str]) -> Settings:
    if config_path:
        return Settings.from_file(Path(config_path)).validate()
    return Settings.from_env().validate()
