import io
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest
from rich.logging import RichHandler

import zenmarks.log as log_mod
from zenmarks.log import LogConfig, UtcFormatter, parse_level, setup_logging


class _TtyStream(io.StringIO):
    def isatty(self):
        return True


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    yield
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()
    for h in saved_handlers:
        root.addHandler(h)
    root.setLevel(saved_level)


def test_parse_level_aliases():
    assert parse_level("warn") == logging.WARNING
    assert parse_level(" debug ") == logging.DEBUG
    assert parse_level("FATAL") == logging.CRITICAL
    with pytest.raises(ValueError):
        parse_level("chatty")


def test_plain_handler_when_not_a_tty(monkeypatch):
    monkeypatch.setattr(log_mod.sys, "stderr", io.StringIO())
    root = setup_logging(LogConfig(level="DEBUG"))
    assert root.level == logging.DEBUG
    assert len(root.handlers) == 1
    assert not isinstance(root.handlers[0], RichHandler)


def test_rich_handler_on_a_color_tty(monkeypatch):
    monkeypatch.delenv("NO_COLOR", raising=False)
    monkeypatch.setattr(log_mod.sys, "stderr", _TtyStream())
    root = setup_logging(LogConfig())
    assert isinstance(root.handlers[0], RichHandler)


def test_no_color_env_disables_rich(monkeypatch):
    monkeypatch.setenv("NO_COLOR", "")
    monkeypatch.setattr(log_mod.sys, "stderr", _TtyStream())
    root = setup_logging(LogConfig())
    assert not isinstance(root.handlers[0], RichHandler)


def test_repeated_setup_does_not_stack_handlers():
    setup_logging(LogConfig())
    root = setup_logging(LogConfig())
    assert len(root.handlers) == 1


def test_log_file_gets_utc_lines(tmp_path: Path):
    path = tmp_path / "nested" / "zenmarks.log"
    root = setup_logging(LogConfig(level="INFO", log_file=str(path)))
    file_handlers = [h for h in root.handlers if isinstance(h, RotatingFileHandler)]
    assert len(file_handlers) == 1
    assert isinstance(file_handlers[0].formatter, UtcFormatter)

    logging.getLogger("zenmarks.test").warning("snapshot of %s failed", "favicons.sqlite")
    file_handlers[0].flush()
    line = path.read_text(encoding="utf-8").strip()
    stamp, rest = line.split(" ", 1)
    assert stamp.endswith("Z") and "T" in stamp
    assert rest == "WARNING zenmarks.test snapshot of favicons.sqlite failed"


def test_noisy_libraries_are_quietened():
    setup_logging(LogConfig(level="DEBUG"))
    assert logging.getLogger("tldextract").level == logging.WARNING
    setup_logging(LogConfig(level="ERROR"))
    assert logging.getLogger("filelock").level == logging.ERROR


def test_utc_formatter_uses_utc():
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "m", None, None)
    record.created = 0.0
    assert UtcFormatter().formatTime(record) == "1970-01-01T00:00:00+00:00"
