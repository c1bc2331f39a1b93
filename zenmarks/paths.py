from __future__ import annotations

import os
from pathlib import Path
from typing import Optional


def resolve_user_path(raw: Optional[str], *, home: Optional[str] = None) -> Optional[str]:
    """Expand a user-typed path: quotes, ``~`` and ``$HOME``/``${HOME}``.

    Only the home directory is expanded; other variables are left as typed.
    The result is not checked for existence.
    """
    if not raw:
        return None
    out = raw.strip()
    if not out:
        return None
    if len(out) >= 2 and out[0] == out[-1] and out[0] in ("'", '"'):
        out = out[1:-1]
    if not out:
        return None

    home_dir = str(home) if home is not None else str(Path.home())
    if out == "~":
        out = home_dir
    elif out.startswith("~/") or out.startswith("~" + os.sep):
        out = os.path.join(home_dir, out[2:])

    out = out.replace("${HOME}", home_dir).replace("$HOME", home_dir)
    return out
