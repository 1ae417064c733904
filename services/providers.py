"""Setting providers: the read/apply adapters bound to each setting kind.

Providers never raise to their caller. A missing value reads as ``ABSENT``;
anything else that goes wrong is returned as a failed ``ReadResult`` or
``ApplyResult``.
"""
from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Mapping

from services.installer import InstalledPackageIndex, WingetClient
from services.locales import (
    LanguageListStore,
    PowerShellLanguageListStore,
    canonical_tag,
    ensure_input_method_present,
    ensure_locales_present,
    find_entry,
)
from services.privilege import can_install_with_scope
from services.system_access import (
    CommandRunner,
    RegistryAccessor,
    SubprocessRunner,
    WindowsRegistryAccessor,
    format_command_detail,
)
from workstation_baseline.descriptors import (
    AssociationTarget,
    InputMethodTarget,
    LanguageListLocation,
    PackageTarget,
    RegistryLocation,
    SettingKind,
    input_method_identifier,
)

DEFAULT_APPS_SETTINGS_URI = "ms-settings:defaultapps"
PROVIDER_FAILURES = (OSError, RuntimeError, ValueError, LookupError, subprocess.SubprocessError)


class Absent(Enum):
    ABSENT = "Absent"

    def __repr__(self) -> str:
        return "ABSENT"

    def __str__(self) -> str:
        return "Not Set"


ABSENT = Absent.ABSENT


@dataclass(frozen=True)
class ReadResult:
    value: object = ABSENT
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass(frozen=True)
class ApplyResult:
    success: bool
    detail: str = ""
    # False when the action was only launched and the new state was never confirmed.
    verified: bool = True


class SettingProvider:
    kind: SettingKind

    def begin_run(self) -> None:
        """Called once before each reconciliation pass."""

    def read(self, location: object) -> ReadResult:
        try:
            return ReadResult(self._read(location))
        except PROVIDER_FAILURES as exc:
            return ReadResult(error=_describe(exc))

    def apply(self, location: object, desired: object) -> ApplyResult:
        try:
            return self._apply(location, desired)
        except PROVIDER_FAILURES as exc:
            return ApplyResult(False, _describe(exc))

    def _read(self, location):  # pragma: no cover - abstract
        raise NotImplementedError

    def _apply(self, location, desired) -> ApplyResult:  # pragma: no cover - abstract
        raise NotImplementedError


class RegistryIntProvider(SettingProvider):
    kind = SettingKind.REGISTRY_INT

    def __init__(self, registry: RegistryAccessor) -> None:
        self._registry = registry

    def _read(self, location: RegistryLocation) -> object:
        value = self._registry.get_value(location.path, location.value_name)
        if value is None:
            return ABSENT
        if isinstance(value, str) and value.strip().lstrip("-").isdigit():
            return int(value.strip())
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"{location} holds {value!r}, expected a DWORD")
        return value

    def _apply(self, location: RegistryLocation, desired: object) -> ApplyResult:
        self._registry.set_value(location.path, location.value_name, int(desired))
        return ApplyResult(True, f"set {location} to {desired}")


class RegistryStringProvider(SettingProvider):
    kind = SettingKind.REGISTRY_STRING

    def __init__(self, registry: RegistryAccessor) -> None:
        self._registry = registry

    def _read(self, location: RegistryLocation) -> object:
        value = self._registry.get_value(location.path, location.value_name)
        if value is None:
            return ABSENT
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        if not isinstance(value, str):
            raise ValueError(f"{location} holds {value!r}, expected a string")
        return value

    def _apply(self, location: RegistryLocation, desired: object) -> ApplyResult:
        self._registry.set_value(location.path, location.value_name, str(desired))
        return ApplyResult(True, f"set {location} to {desired}")


class PackageInstalledProvider(SettingProvider):
    """Reads the uninstall registry; installs through winget.

    A successful apply only means winget exited cleanly; the package is not
    looked up again in the same run.
    """

    kind = SettingKind.PACKAGE_INSTALLED

    def __init__(
        self,
        index: InstalledPackageIndex,
        winget: WingetClient,
        *,
        which: Callable[[str], str | None] = shutil.which,
        admin: bool | None = None,
    ) -> None:
        self._index = index
        self._winget = winget
        self._which = which
        self._admin = admin

    def _read(self, target: PackageTarget) -> object:
        display_name = self._index.find_display_name(target.display_name_prefix)
        if display_name:
            return display_name
        if target.executable:
            found = self._which(target.executable)
            if found:
                return f"{target.display_name_prefix} ({found})"
        return ABSENT

    def _apply(self, target: PackageTarget, desired: object) -> ApplyResult:
        if not can_install_with_scope(target.scope, admin=self._admin):
            return ApplyResult(False, f"administrator rights required to install {target.package_id} for the machine")
        if not self._winget.is_available():
            return ApplyResult(False, "winget executable not found")
        result = self._winget.install_package(target.package_id, scope=target.scope)
        detail = f"winget install {target.package_id}: exit={result.returncode}"
        if not result.succeeded:
            output = (result.stderr or result.stdout).strip()
            if output:
                detail = f"{detail}, {output.splitlines()[-1]}"
        return ApplyResult(result.succeeded, detail)


class DefaultAppAssociationProvider(SettingProvider):
    """Reads ``UserChoice\\ProgId``; remediation is fire-and-forget.

    Windows protects user default associations with a hash, so they cannot be
    written directly. Apply opens the Default apps page for the user and
    succeeds once the page is launched, with ``verified=False``. The page is
    opened once per pass; later associations reuse that launch.
    """

    kind = SettingKind.DEFAULT_APP_ASSOCIATION

    def __init__(self, registry: RegistryAccessor, command_runner: CommandRunner) -> None:
        self._registry = registry
        self._runner = command_runner
        self._settings_opened = False

    def begin_run(self) -> None:
        self._settings_opened = False

    def _read(self, target: AssociationTarget) -> object:
        value = self._registry.get_value(target.user_choice_path, "ProgId")
        if value is None or value == "":
            return ABSENT
        if not isinstance(value, str):
            raise ValueError(f"{target.user_choice_path}\\ProgId holds {value!r}, expected a string")
        return value

    def _apply(self, target: AssociationTarget, desired: object) -> ApplyResult:
        instruction = f"pick a {desired} handler for {target.identifier}"
        if self._settings_opened:
            return ApplyResult(True, f"Default apps settings already open; {instruction}", verified=False)
        uri = f"{DEFAULT_APPS_SETTINGS_URI}?registeredAppUser={desired}"
        completed = self._runner.run(["cmd", "/c", "start", "", uri])
        if completed.returncode != 0:
            return ApplyResult(False, f"could not open Default apps settings: {format_command_detail(completed)}")
        self._settings_opened = True
        return ApplyResult(True, f"opened Default apps settings; {instruction}", verified=False)


class LocaleInstalledProvider(SettingProvider):
    kind = SettingKind.LOCALE_INSTALLED

    def __init__(self, store: LanguageListStore) -> None:
        self._store = store

    def _read(self, location: LanguageListLocation) -> object:
        return frozenset(canonical_tag(entry.tag, location.tag_aliases) for entry in self._store.read())

    def _apply(self, location: LanguageListLocation, desired: object) -> ApplyResult:
        updated, added = ensure_locales_present([str(desired)], self._store.read(), aliases=location.tag_aliases)
        if not added:
            return ApplyResult(True, f"{desired} already in {location}")
        self._store.replace(updated)
        return ApplyResult(True, f"added {', '.join(added)} to {location}")


class InputMethodProvider(SettingProvider):
    """Input methods attached to one installed locale.

    Reads report method identifiers (``LANGID:{TIP-CLSID}``) rather than full
    tips, so any regional profile of the wanted method satisfies the check.
    """

    kind = SettingKind.INPUT_METHOD_PRESENT

    def __init__(self, store: LanguageListStore) -> None:
        self._store = store

    def _read(self, target: InputMethodTarget) -> object:
        entry = find_entry(self._store.read(), target.locale, target.tag_aliases)
        if entry is None:
            return ABSENT
        return frozenset(input_method_identifier(tip) for tip in entry.input_method_tips)

    def _apply(self, target: InputMethodTarget, desired: object) -> ApplyResult:
        updated, added = ensure_input_method_present(
            target.locale,
            target.tip_id,
            self._store.read(),
            prefix=str(desired),
            aliases=target.tag_aliases,
        )
        if not added:
            return ApplyResult(True, f"{target.locale} already has {desired}")
        self._store.replace(updated)
        return ApplyResult(True, f"added {target.tip_id} to {target.locale}")


def default_providers(
    *,
    registry: RegistryAccessor | None = None,
    command_runner: CommandRunner | None = None,
    winget: WingetClient | None = None,
    language_store: LanguageListStore | None = None,
) -> Mapping[SettingKind, SettingProvider]:
    registry = registry or WindowsRegistryAccessor()
    runner = command_runner or SubprocessRunner()
    store = language_store or PowerShellLanguageListStore(command_runner=runner)
    providers: list[SettingProvider] = [
        RegistryIntProvider(registry),
        RegistryStringProvider(registry),
        PackageInstalledProvider(InstalledPackageIndex(registry), winget or WingetClient(command_runner=runner)),
        DefaultAppAssociationProvider(registry, runner),
        LocaleInstalledProvider(store),
        InputMethodProvider(store),
    ]
    return {provider.kind: provider for provider in providers}


def _describe(exc: BaseException) -> str:
    if isinstance(exc, PermissionError):
        return f"access denied: {exc}"
    return str(exc) or type(exc).__name__
