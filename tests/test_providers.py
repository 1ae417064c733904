from __future__ import annotations

import subprocess
from typing import Sequence

from services.installer import CommandExecutionResult, InstalledPackageIndex
from services.locales import LanguageEntry
from services.providers import (
    ABSENT,
    DefaultAppAssociationProvider,
    InputMethodProvider,
    LocaleInstalledProvider,
    PackageInstalledProvider,
    RegistryIntProvider,
    RegistryStringProvider,
    default_providers,
)
from services.system_access import RegistryAccessor, RegistryValue
from workstation_baseline.descriptors import (
    AssociationTarget,
    InputMethodTarget,
    LanguageListLocation,
    PackageTarget,
    RegistryLocation,
    SettingKind,
)

ADVANCED = r"HKCU:\Software\Microsoft\Windows\CurrentVersion\Explorer\Advanced"
JA_TIP = "0411:{03B5835F-F03C-411B-9CE2-AA23E1171E36}{A76C93D9-5523-4E90-AAFA-4DB112F9AC76}"
JA_METHOD = "0411:{03B5835F-F03C-411B-9CE2-AA23E1171E36}"


class FakeRunner:
    def __init__(self, returncode: int = 0) -> None:
        self.returncode = returncode
        self.commands: list[Sequence[str]] = []

    def run(self, command: Sequence[str]) -> subprocess.CompletedProcess[str]:
        self.commands.append(tuple(command))
        return subprocess.CompletedProcess(command, self.returncode, "", "")


class FakeRegistry(RegistryAccessor):
    def __init__(
        self,
        initial: dict[tuple[str, str], RegistryValue] | None = None,
        *,
        subkeys: dict[str, list[str]] | None = None,
        denied: set[str] | None = None,
    ) -> None:
        self.values = initial or {}
        self.subkeys = subkeys or {}
        self.denied = denied or set()

    def get_value(self, path: str, value_name: str) -> RegistryValue | None:
        if path in self.denied:
            raise PermissionError(f"[WinError 5] Access is denied: {path}")
        return self.values.get((path, value_name))

    def set_value(self, path: str, value_name: str, value: RegistryValue) -> None:
        if path in self.denied:
            raise PermissionError(f"[WinError 5] Access is denied: {path}")
        self.values[(path, value_name)] = value

    def list_subkeys(self, path: str) -> list[str]:
        return list(self.subkeys.get(path, []))


class FakeWinget:
    def __init__(self, returncode: int = 0, available: bool = True) -> None:
        self.returncode = returncode
        self.available = available
        self.installs: list[tuple[str, str]] = []

    def is_available(self) -> bool:
        return self.available

    def install_package(self, package_id: str, *, scope: str = "user") -> CommandExecutionResult:
        self.installs.append((package_id, scope))
        return CommandExecutionResult(["winget", "install", package_id], self.returncode, "", "Installer failed")


class FakeLanguageStore:
    def __init__(self, entries: list[LanguageEntry]) -> None:
        self.entries = list(entries)
        self.writes: list[list[LanguageEntry]] = []

    def read(self) -> list[LanguageEntry]:
        return list(self.entries)

    def replace(self, entries: Sequence[LanguageEntry]) -> None:
        self.entries = list(entries)
        self.writes.append(list(entries))


def test_registry_int_reads_value_and_absent() -> None:
    registry = FakeRegistry({(ADVANCED, "Hidden"): 1})
    provider = RegistryIntProvider(registry)

    assert provider.read(RegistryLocation(ADVANCED, "Hidden")).value == 1
    missing = provider.read(RegistryLocation(ADVANCED, "TaskbarAl"))
    assert missing.value is ABSENT
    assert not missing.failed


def test_registry_int_parses_numeric_strings() -> None:
    registry = FakeRegistry({(ADVANCED, "Hidden"): " 1 "})

    assert RegistryIntProvider(registry).read(RegistryLocation(ADVANCED, "Hidden")).value == 1


def test_registry_int_malformed_and_denied_are_read_errors() -> None:
    registry = FakeRegistry({(ADVANCED, "Hidden"): "yes"}, denied={r"HKCU:\Locked"})
    provider = RegistryIntProvider(registry)

    malformed = provider.read(RegistryLocation(ADVANCED, "Hidden"))
    denied = provider.read(RegistryLocation(r"HKCU:\Locked", "Value"))

    assert malformed.failed and "expected a DWORD" in (malformed.error or "")
    assert denied.failed and "access denied" in (denied.error or "")


def test_registry_apply_writes_only_its_value() -> None:
    registry = FakeRegistry({(ADVANCED, "Hidden"): 2, (ADVANCED, "HideFileExt"): 1})
    provider = RegistryIntProvider(registry)

    result = provider.apply(RegistryLocation(ADVANCED, "Hidden"), 1)

    assert result.success and result.verified
    assert registry.values == {(ADVANCED, "Hidden"): 1, (ADVANCED, "HideFileExt"): 1}


def test_registry_apply_failure_is_reported() -> None:
    provider = RegistryIntProvider(FakeRegistry(denied={r"HKCU:\Locked"}))

    result = provider.apply(RegistryLocation(r"HKCU:\Locked", "Value"), 1)

    assert not result.success
    assert "access denied" in result.detail


def test_registry_string_provider() -> None:
    keyboard = r"HKCU:\Control Panel\Keyboard"
    registry = FakeRegistry({(keyboard, "KeyboardDelay"): "1", (keyboard, "KeyboardSpeed"): 31})
    provider = RegistryStringProvider(registry)

    assert provider.read(RegistryLocation(keyboard, "KeyboardDelay")).value == "1"
    assert provider.read(RegistryLocation(keyboard, "KeyboardSpeed")).value == "31"
    provider.apply(RegistryLocation(keyboard, "KeyboardDelay"), "0")
    assert registry.values[(keyboard, "KeyboardDelay")] == "0"


def test_package_read_uses_uninstall_display_name() -> None:
    root = r"HKCU:\Software\Microsoft\Windows\CurrentVersion\Uninstall"
    registry = FakeRegistry(
        {(fr"{root}\Vivaldi", "DisplayName"): "Vivaldi"},
        subkeys={root: ["Vivaldi"]},
    )
    provider = PackageInstalledProvider(InstalledPackageIndex(registry), FakeWinget(), which=lambda _name: None)

    result = provider.read(PackageTarget("Vivaldi.Vivaldi", "Vivaldi"))

    assert result.value == "Vivaldi"


def test_package_read_falls_back_to_executable_on_path() -> None:
    provider = PackageInstalledProvider(
        InstalledPackageIndex(FakeRegistry()),
        FakeWinget(),
        which=lambda name: r"C:\Program Files\Git\cmd\git.exe" if name == "git" else None,
    )

    found = provider.read(PackageTarget("Git.Git", "Git", executable="git"))
    missing = provider.read(PackageTarget("Vivaldi.Vivaldi", "Vivaldi", executable="vivaldi"))

    assert found.value == r"Git (C:\Program Files\Git\cmd\git.exe)"
    assert missing.value is ABSENT


def test_package_apply_installs_with_scope() -> None:
    winget = FakeWinget()
    provider = PackageInstalledProvider(InstalledPackageIndex(FakeRegistry()), winget, admin=False)

    result = provider.apply(PackageTarget("Vivaldi.Vivaldi", "Vivaldi", scope="user"), "Vivaldi")

    assert result.success
    assert winget.installs == [("Vivaldi.Vivaldi", "user")]


def test_package_apply_failure_carries_installer_output() -> None:
    provider = PackageInstalledProvider(InstalledPackageIndex(FakeRegistry()), FakeWinget(returncode=1), admin=False)

    result = provider.apply(PackageTarget("Vivaldi.Vivaldi", "Vivaldi"), "Vivaldi")

    assert not result.success
    assert "Installer failed" in result.detail


def test_machine_scope_without_admin_does_not_launch_winget() -> None:
    winget = FakeWinget()
    provider = PackageInstalledProvider(InstalledPackageIndex(FakeRegistry()), winget, admin=False)

    result = provider.apply(PackageTarget("Git.Git", "Git", scope="machine"), "Git")

    assert not result.success
    assert "administrator" in result.detail
    assert winget.installs == []


def test_missing_winget_is_apply_error() -> None:
    provider = PackageInstalledProvider(InstalledPackageIndex(FakeRegistry()), FakeWinget(available=False), admin=True)

    result = provider.apply(PackageTarget("Git.Git", "Git", scope="machine"), "Git")

    assert not result.success
    assert result.detail == "winget executable not found"


def test_association_read_returns_prog_id() -> None:
    target = AssociationTarget("https")
    registry = FakeRegistry({(target.user_choice_path, "ProgId"): "VivaldiHTM.ABC123"})
    provider = DefaultAppAssociationProvider(registry, FakeRunner())

    assert provider.read(target).value == "VivaldiHTM.ABC123"
    assert provider.read(AssociationTarget(".html")).value is ABSENT
    assert AssociationTarget(".html").user_choice_path.endswith(r"Explorer\FileExts\.html\UserChoice")


def test_association_apply_opens_settings_once_and_is_unverified() -> None:
    runner = FakeRunner()
    registry = FakeRegistry()
    provider = DefaultAppAssociationProvider(registry, runner)

    first = provider.apply(AssociationTarget("http"), "Vivaldi")
    second = provider.apply(AssociationTarget("https"), "Vivaldi")

    assert first.success and not first.verified
    assert second.success and not second.verified
    assert runner.commands == [("cmd", "/c", "start", "", "ms-settings:defaultapps?registeredAppUser=Vivaldi")]
    assert registry.values == {}


def test_association_apply_fails_when_settings_cannot_open() -> None:
    provider = DefaultAppAssociationProvider(FakeRegistry(), FakeRunner(returncode=1))

    result = provider.apply(AssociationTarget("http"), "Vivaldi")

    assert not result.success


def test_locale_provider_reads_tags_and_appends_missing() -> None:
    store = FakeLanguageStore([LanguageEntry("en-CA"), LanguageEntry("fr-FR", ("040C:0000040C",))])
    provider = LocaleInstalledProvider(store)

    assert provider.read(LanguageListLocation()).value == frozenset({"en-CA", "fr-FR"})
    result = provider.apply(LanguageListLocation(), "en-US")

    assert result.success
    assert [entry.tag for entry in store.entries] == ["en-CA", "fr-FR", "en-US"]
    assert store.entries[1].input_method_tips == ("040C:0000040C",)
    assert len(store.writes) == 1
    assert "en-US" in provider.read(LanguageListLocation()).value  # type: ignore[operator]


def test_input_method_provider_reads_method_identifiers() -> None:
    store = FakeLanguageStore([LanguageEntry("en-US", ("0409:00000409",)), LanguageEntry("ja-JP", (JA_TIP,))])
    provider = InputMethodProvider(store)

    result = provider.read(InputMethodTarget("ja-JP", JA_TIP))

    assert result.value == frozenset({JA_METHOD})


def test_input_method_provider_absent_when_locale_missing() -> None:
    provider = InputMethodProvider(FakeLanguageStore([LanguageEntry("en-US")]))

    assert provider.read(InputMethodTarget("ja-JP", JA_TIP)).value is ABSENT
    result = provider.apply(InputMethodTarget("ja-JP", JA_TIP), JA_METHOD)
    assert not result.success
    assert "ja-JP" in result.detail


def test_input_method_provider_adds_tip_with_single_write() -> None:
    store = FakeLanguageStore([LanguageEntry("en-US", ("0409:00000409",)), LanguageEntry("ja-JP", ("0411:00000411",))])
    provider = InputMethodProvider(store)

    result = provider.apply(InputMethodTarget("ja-JP", JA_TIP), JA_METHOD)

    assert result.success
    assert store.entries[1].input_method_tips == ("0411:00000411", JA_TIP)
    assert store.entries[0].input_method_tips == ("0409:00000409",)
    assert len(store.writes) == 1


def test_default_providers_bind_every_kind() -> None:
    providers = default_providers(
        registry=FakeRegistry(),
        command_runner=FakeRunner(),
        winget=FakeWinget(),  # type: ignore[arg-type]
        language_store=FakeLanguageStore([]),
    )

    assert set(providers) == set(SettingKind)
    assert all(provider.kind is kind for kind, provider in providers.items())


def test_git_package_not_satisfied_by_github_desktop() -> None:
    root = r"HKCU:\Software\Microsoft\Windows\CurrentVersion\Uninstall"
    registry = FakeRegistry(
        {(fr"{root}\GitHubDesktop", "DisplayName"): "GitHub Desktop"},
        subkeys={root: ["GitHubDesktop"]},
    )
    provider = PackageInstalledProvider(InstalledPackageIndex(registry), FakeWinget(), which=lambda _name: None)

    assert provider.read(PackageTarget("Git.Git", "Git", scope="machine", executable="git")).value is ABSENT


def test_locale_read_reports_configured_tag_for_windows_short_tag() -> None:
    store = FakeLanguageStore([LanguageEntry("en-US"), LanguageEntry("ja", (JA_TIP,))])
    location = LanguageListLocation(tag_aliases=(("ja", "ja-JP"),))
    provider = LocaleInstalledProvider(store)

    assert provider.read(location).value == frozenset({"en-US", "ja-JP"})
    assert provider.apply(location, "ja-JP").success
    assert store.writes == []


def test_input_method_found_on_windows_short_tag() -> None:
    store = FakeLanguageStore([LanguageEntry("en-US"), LanguageEntry("ja", ("0411:00000411",))])
    target = InputMethodTarget("ja-JP", JA_TIP, (("ja", "ja-JP"),))
    provider = InputMethodProvider(store)

    assert provider.read(target).value == frozenset({"0411:00000411"})
    assert provider.apply(target, JA_METHOD).success
    assert [entry.tag for entry in store.entries] == ["en-US", "ja"]
    assert store.entries[1].input_method_tips == ("0411:00000411", JA_TIP)
