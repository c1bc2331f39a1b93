from __future__ import annotations


class ZenmarksError(Exception):
    """Base class for errors that end a bookmark pass."""


class NotFoundError(ZenmarksError, FileNotFoundError):
    """No primary places database could be located."""


class SnapshotError(ZenmarksError, OSError):
    """A database file could not be copied for reading."""


class QueryError(ZenmarksError):
    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class DiscardedRecordWarning(UserWarning):
    """Rows were dropped while building bookmark records."""


class ConfigError(ZenmarksError, ValueError):
    """A setting from the environment or the config file is unusable."""
