"""Process and registry access used by the setting providers."""
from __future__ import annotations

import subprocess
from typing import Protocol, Sequence

try:  # Windows-only dependency, optional for test doubles
    import winreg  # type: ignore
except ImportError:  # pragma: no cover - not available on Linux runners
    winreg = None  # type: ignore

RegistryValue = str | int


class CommandRunner(Protocol):
    def run(self, command: Sequence[str]) -> subprocess.CompletedProcess[str]:  # pragma: no cover - protocol
        ...


class SubprocessRunner:
    def run(self, command: Sequence[str]) -> subprocess.CompletedProcess[str]:
        return subprocess.run(command, capture_output=True, text=True, check=False)


class RegistryAccessor(Protocol):
    def get_value(self, path: str, value_name: str) -> RegistryValue | None:  # pragma: no cover - protocol
        ...

    def set_value(self, path: str, value_name: str, value: RegistryValue) -> None:  # pragma: no cover - protocol
        ...

    def list_subkeys(self, path: str) -> list[str]:  # pragma: no cover - protocol
        ...



# Only the hives this tool touches: per-user settings and the machine-wide uninstall list.
HIVE_NAMES = ("HKCU", "HKLM")


def split_registry_path(path: str) -> tuple[str, str]:
    """Split ``HKCU:\\Some\\Key`` into ``("HKCU", "Some\\Key")``."""
    hive_name, separator, subkey = path.replace("/", "\\").partition(":\\")
    if not separator or hive_name.upper() not in HIVE_NAMES:
        raise ValueError(f"Unsupported registry path: {path}")
    return hive_name.upper(), subkey.strip("\\")


class WindowsRegistryAccessor:
    """winreg-backed accessor; absent keys and values read as ``None``."""

    def __init__(self) -> None:
        if winreg is None:
            raise RuntimeError("winreg not available on this platform")
        self._hives = {"HKCU": winreg.HKEY_CURRENT_USER, "HKLM": winreg.HKEY_LOCAL_MACHINE}

    def get_value(self, path: str, value_name: str) -> RegistryValue | None:
        try:
            with self._open(path) as key:
                return winreg.QueryValueEx(key, value_name)[0]
        except FileNotFoundError:
            return None

    def set_value(self, path: str, value_name: str, value: RegistryValue) -> None:
        hive_name, subkey = split_registry_path(path)
        kind = winreg.REG_DWORD if isinstance(value, int) else winreg.REG_SZ
        with winreg.CreateKeyEx(self._hives[hive_name], subkey) as key:
            winreg.SetValueEx(key, value_name, 0, kind, value)

    def list_subkeys(self, path: str) -> list[str]:
        try:
            with self._open(path) as key:
                count = winreg.QueryInfoKey(key)[0]
                return [winreg.EnumKey(key, index) for index in range(count)]
        except FileNotFoundError:
            return []

    def _open(self, path: str):
        hive_name, subkey = split_registry_path(path)
        return winreg.OpenKey(self._hives[hive_name], subkey)


def format_command_detail(completed: subprocess.CompletedProcess[str]) -> str:
    """``exit=N`` followed by whatever the command printed."""
    parts = [f"exit={completed.returncode}"]
    for stream, text in (("stdout", completed.stdout), ("stderr", completed.stderr)):
        if text and text.strip():
            parts.append(f"{stream}: {text.strip()}")
    return ", ".join(parts)


def ps_quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"
