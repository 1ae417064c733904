"""Package presence lookup and winget installation."""
from __future__ import annotations

import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from services.system_access import CommandRunner, RegistryAccessor, SubprocessRunner

UNINSTALL_ROOTS = (
    r"HKCU:\Software\Microsoft\Windows\CurrentVersion\Uninstall",
    r"HKLM:\SOFTWARE\Microsoft\Windows\CurrentVersion\Uninstall",
    r"HKLM:\SOFTWARE\WOW6432Node\Microsoft\Windows\CurrentVersion\Uninstall",
)
# APPINSTALLER_CLI_ERROR_UPDATE_NOT_APPLICABLE / APPINSTALLER_CLI_ERROR_PACKAGE_ALREADY_INSTALLED
WINGET_NOTHING_TO_DO = {0x8A15002B, 0x8A150061}
INSTALL_SCOPES = ("user", "machine")


@dataclass
class CommandExecutionResult:
    command: Sequence[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def succeeded(self) -> bool:
        # winget reports HRESULTs; Windows hands them back unsigned, some shells signed.
        return self.returncode == 0 or (self.returncode & 0xFFFFFFFF) in WINGET_NOTHING_TO_DO


class WingetError(RuntimeError):
    pass


class WingetClient:
    """Thin wrapper around the winget CLI."""

    def __init__(self, executable: str | None = None, *, command_runner: CommandRunner | None = None):
        exe_path = executable or shutil.which("winget")
        if not exe_path:
            fallback = self._find_winget_fallback()
            exe_path = str(fallback) if fallback else None
        self._executable = Path(exe_path) if exe_path else None
        self._runner = command_runner or SubprocessRunner()

    def is_available(self) -> bool:
        return self._executable is not None

    def install_package(
        self,
        package_id: str,
        *,
        scope: str = "user",
        source: str | None = "winget",
        silent: bool = True,
    ) -> CommandExecutionResult:
        if scope not in INSTALL_SCOPES:
            raise WingetError(f"Unsupported install scope: {scope}")
        if not self._executable:
            raise WingetError("winget executable not found in PATH")
        cmd = [str(self._executable), "install", "--id", package_id, "--exact", "--scope", scope]
        cmd.extend(["--accept-package-agreements", "--accept-source-agreements"])
        if source:
            cmd.extend(["--source", source])
        if silent:
            cmd.append("--silent")
        completed = self._runner.run(cmd)
        return CommandExecutionResult(cmd, completed.returncode, completed.stdout or "", completed.stderr or "")

    def _find_winget_fallback(self) -> Path | None:
        local_appdata = os.environ.get("LOCALAPPDATA")
        if local_appdata:
            candidate = Path(local_appdata) / "Microsoft" / "WindowsApps" / "winget.exe"
            if candidate.exists():
                return candidate
        program_files = os.environ.get("ProgramFiles")
        if program_files:
            base = Path(program_files) / "WindowsApps"
            try:
                candidates = base.glob("Microsoft.DesktopAppInstaller_*_x64__8wekyb3d8bbwe/winget.exe")
            except OSError:
                candidates = []
            for candidate in candidates:
                if candidate.exists():
                    return candidate
        return None


class InstalledPackageIndex:
    """Looks up installed programs in the uninstall registry subtrees."""

    def __init__(self, registry: RegistryAccessor, roots: Sequence[str] = UNINSTALL_ROOTS) -> None:
        self._registry = registry
        self._roots = tuple(roots)

    def find_display_name(self, prefix: str) -> str | None:
        """First DisplayName starting with ``prefix`` as a whole word, ignoring case.

        "Git" matches "Git" and "Git version 2.45" but not "GitHub Desktop".
        """
        for root in self._roots:
            for subkey in self._registry.list_subkeys(root):
                display_name = self._registry.get_value(fr"{root}\{subkey}", "DisplayName")
                if isinstance(display_name, str) and display_name_matches(display_name, prefix):
                    return display_name
        return None


def display_name_matches(display_name: str, prefix: str) -> bool:
    if not display_name.lower().startswith(prefix.lower()):
        return False
    rest = display_name[len(prefix):]
    return not rest or not rest[0].isalnum()
