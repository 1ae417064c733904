"""Admin privilege helpers for Windows."""
from __future__ import annotations

import ctypes
from typing import Final

MACHINE_SCOPE: Final[str] = "machine"


def is_admin() -> bool:
    try:
        return bool(ctypes.windll.shell32.IsUserAnAdmin())  # type: ignore[attr-defined]
    except AttributeError:
        return False


def can_install_with_scope(scope: str, *, admin: bool | None = None) -> bool:
    if scope != MACHINE_SCOPE:
        return True
    return is_admin() if admin is None else admin
