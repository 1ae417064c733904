"""Setting descriptors: one static declaration per checked setting."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Tuple, Union

from workstation_baseline.constants import (
    IMMUTABLE_CONFIG,
    PackageSetting,
    RegistrySetting,
    WorkstationBaseline,
)

URL_ASSOCIATIONS_PATH = r"HKCU:\Software\Microsoft\Windows\Shell\Associations\UrlAssociations"
FILE_EXTS_PATH = r"HKCU:\Software\Microsoft\Windows\CurrentVersion\Explorer\FileExts"


class SettingKind(Enum):
    REGISTRY_INT = "RegistryInt"
    REGISTRY_STRING = "RegistryString"
    PACKAGE_INSTALLED = "PackageInstalled"
    DEFAULT_APP_ASSOCIATION = "DefaultAppAssociation"
    LOCALE_INSTALLED = "LocaleInstalled"
    INPUT_METHOD_PRESENT = "InputMethodPresent"


class Comparison(Enum):
    EQUALITY = "Equality"
    PREFIX_MATCH = "PrefixMatch"
    SET_MEMBERSHIP = "SetMembership"


@dataclass(frozen=True)
class RegistryLocation:
    path: str
    value_name: str

    def __str__(self) -> str:
        return f"{self.path}\\{self.value_name}"


@dataclass(frozen=True)
class PackageTarget:
    package_id: str
    display_name_prefix: str
    scope: str = "user"
    executable: str | None = None

    def __str__(self) -> str:
        return f"{self.package_id} ({self.scope})"


@dataclass(frozen=True)
class AssociationTarget:
    """A URL scheme (``https``) or file extension (``.html``)."""

    identifier: str

    @property
    def is_file_extension(self) -> bool:
        return self.identifier.startswith(".")

    @property
    def user_choice_path(self) -> str:
        if self.is_file_extension:
            return fr"{FILE_EXTS_PATH}\{self.identifier}\UserChoice"
        return fr"{URL_ASSOCIATIONS_PATH}\{self.identifier}\UserChoice"

    def __str__(self) -> str:
        return self.identifier


@dataclass(frozen=True)
class LanguageListLocation:
    name: str = "WinUserLanguageList"
    tag_aliases: Tuple[Tuple[str, str], ...] = ()

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class InputMethodTarget:
    locale: str
    tip_id: str
    tag_aliases: Tuple[Tuple[str, str], ...] = ()

    @property
    def identifier(self) -> str:
        return input_method_identifier(self.tip_id)

    def __str__(self) -> str:
        return f"{self.locale} {self.tip_id}"


Location = Union[RegistryLocation, PackageTarget, AssociationTarget, LanguageListLocation, InputMethodTarget]


@dataclass(frozen=True)
class SettingDescriptor:
    id: str
    kind: SettingKind
    location: Location
    desired_value: object
    comparison: Comparison = Comparison.EQUALITY
    requires_shell_restart: bool = False
    description: str = ""

    @property
    def label(self) -> str:
        return self.description or self.id

    @property
    def expected(self) -> str:
        if self.comparison is Comparison.PREFIX_MATCH:
            return f"starts with {self.desired_value}"
        if self.comparison is Comparison.SET_MEMBERSHIP:
            return f"contains {self.desired_value}"
        return str(self.desired_value)


@dataclass(frozen=True)
class RunOptions:
    developer_tools: Tuple[str, ...] = ()
    remediate: bool = True
    restart_shell: bool = True


def input_method_identifier(tip_id: str) -> str:
    """Return the ``LANGID:{TIP-CLSID}`` part that regional profiles share."""
    head, sep, _rest = tip_id.partition("}")
    if not sep:
        return tip_id.upper()
    return (head + sep).upper()


def build_descriptors(
    config: WorkstationBaseline = IMMUTABLE_CONFIG,
    options: RunOptions | None = None,
) -> tuple[SettingDescriptor, ...]:
    options = options or RunOptions()
    descriptors: list[SettingDescriptor] = [_package_descriptor(config.browser.package)]
    for identifier in config.browser.associations:
        descriptors.append(
            SettingDescriptor(
                id=f"default_app.{identifier.lstrip('.')}",
                kind=SettingKind.DEFAULT_APP_ASSOCIATION,
                location=AssociationTarget(identifier),
                desired_value=config.browser.prog_id_prefix,
                comparison=Comparison.PREFIX_MATCH,
                description=f"Default handler for {identifier}",
            )
        )
    for setting in (*config.shell, *config.preferences):
        descriptors.append(_registry_descriptor(setting))
    # Locale entries must precede the input method entry; it edits the list they produce.
    for tag in config.locale.languages:
        descriptors.append(
            SettingDescriptor(
                id=f"locale.{tag}",
                kind=SettingKind.LOCALE_INSTALLED,
                location=LanguageListLocation(tag_aliases=config.locale.tag_aliases),
                desired_value=tag,
                comparison=Comparison.SET_MEMBERSHIP,
                description=f"Language {tag} installed",
            )
        )
    ime = InputMethodTarget(
        config.locale.input_method_locale,
        config.locale.input_method_tip,
        config.locale.tag_aliases,
    )
    descriptors.append(
        SettingDescriptor(
            id=f"input_method.{ime.locale}",
            kind=SettingKind.INPUT_METHOD_PRESENT,
            location=ime,
            desired_value=ime.identifier,
            comparison=Comparison.SET_MEMBERSHIP,
            description=f"Input method for {ime.locale}",
        )
    )
    for name in dict.fromkeys(options.developer_tools):
        descriptors.append(_package_descriptor(config.developer_tool(name).package))
    return tuple(descriptors)


def _registry_descriptor(setting: RegistrySetting) -> SettingDescriptor:
    kind = SettingKind.REGISTRY_INT if isinstance(setting.desired_value, int) else SettingKind.REGISTRY_STRING
    return SettingDescriptor(
        id=setting.setting_id,
        kind=kind,
        location=RegistryLocation(setting.path, setting.value_name),
        desired_value=setting.desired_value,
        requires_shell_restart=setting.requires_shell_restart,
        description=setting.description,
    )


def _package_descriptor(setting: PackageSetting) -> SettingDescriptor:
    return SettingDescriptor(
        id=setting.setting_id,
        kind=SettingKind.PACKAGE_INSTALLED,
        location=PackageTarget(
            setting.package_id,
            setting.display_name_prefix,
            scope=setting.scope,
            executable=setting.executable,
        ),
        desired_value=setting.display_name_prefix,
        comparison=Comparison.PREFIX_MATCH,
        description=setting.description,
    )
