import locale
import os
import sys
from pathlib import Path

import pytest

# Allow `import zenmarks` without installing the package.
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def _isolate_zen_env(monkeypatch):
    """Tests must never pick up the developer's own ZEN_* settings."""
    for name in list(os.environ):
        if name.startswith("ZEN_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _restore_collation():
    """`zenmarks.cli.main` switches LC_COLLATE to the user's locale; undo it."""
    setlocale = locale.setlocale  # real function; tests may monkeypatch it
    saved = setlocale(locale.LC_COLLATE)
    yield
    setlocale(locale.LC_COLLATE, saved)
