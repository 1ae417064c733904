"""Immutable desired-state values for the workstation baseline."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

EXPLORER_ADVANCED_PATH = r"HKCU:\Software\Microsoft\Windows\CurrentVersion\Explorer\Advanced"
PERSONALIZE_PATH = r"HKCU:\Software\Microsoft\Windows\CurrentVersion\Themes\Personalize"


@dataclass(frozen=True)
class RegistrySetting:
    setting_id: str
    description: str
    path: str
    value_name: str
    desired_value: int | str
    requires_shell_restart: bool = False


@dataclass(frozen=True)
class PackageSetting:
    setting_id: str
    description: str
    package_id: str
    display_name_prefix: str
    scope: str = "user"
    executable: str | None = None


@dataclass(frozen=True)
class BrowserSetting:
    package: PackageSetting
    prog_id_prefix: str
    associations: Tuple[str, ...]


@dataclass(frozen=True)
class LocaleSetting:
    languages: Tuple[str, ...]
    input_method_locale: str
    input_method_tip: str
    # (tag Windows reports, configured tag); Get-WinUserLanguageList shortens some tags.
    tag_aliases: Tuple[Tuple[str, str], ...] = ()


@dataclass(frozen=True)
class DeveloperTool:
    name: str
    package: PackageSetting


@dataclass(frozen=True)
class WorkstationBaseline:
    browser: BrowserSetting
    shell: Tuple[RegistrySetting, ...]
    preferences: Tuple[RegistrySetting, ...]
    locale: LocaleSetting
    developer_tools: Tuple[DeveloperTool, ...]

    def developer_tool(self, name: str) -> DeveloperTool:
        for tool in self.developer_tools:
            if tool.name == name:
                return tool
        raise KeyError(f"Unknown developer tool: {name}")


IMMUTABLE_CONFIG = WorkstationBaseline(
    browser=BrowserSetting(
        package=PackageSetting(
            setting_id="browser.installed",
            description="Vivaldi browser installed",
            package_id="Vivaldi.Vivaldi",
            display_name_prefix="Vivaldi",
            executable="vivaldi",
        ),
        prog_id_prefix="Vivaldi",
        associations=("http", "https", ".htm", ".html"),
    ),
    shell=(
        RegistrySetting(
            setting_id="shell.taskbar_alignment",
            description="Taskbar aligned left",
            path=EXPLORER_ADVANCED_PATH,
            value_name="TaskbarAl",
            desired_value=0,
            requires_shell_restart=True,
        ),
        RegistrySetting(
            setting_id="shell.apps_dark_mode",
            description="Dark mode for apps",
            path=PERSONALIZE_PATH,
            value_name="AppsUseLightTheme",
            desired_value=0,
        ),
        RegistrySetting(
            setting_id="shell.system_dark_mode",
            description="Dark mode for Windows",
            path=PERSONALIZE_PATH,
            value_name="SystemUsesLightTheme",
            desired_value=0,
        ),
        RegistrySetting(
            setting_id="explorer.show_hidden_files",
            description="Explorer shows hidden files",
            path=EXPLORER_ADVANCED_PATH,
            value_name="Hidden",
            desired_value=1,
            requires_shell_restart=True,
        ),
        RegistrySetting(
            setting_id="explorer.show_file_extensions",
            description="Explorer shows file extensions",
            path=EXPLORER_ADVANCED_PATH,
            value_name="HideFileExt",
            desired_value=0,
            requires_shell_restart=True,
        ),
    ),
    preferences=(
        RegistrySetting(
            setting_id="input.clipboard_history",
            description="Clipboard history enabled",
            path=r"HKCU:\Software\Microsoft\Clipboard",
            value_name="EnableClipboardHistory",
            desired_value=1,
        ),
        RegistrySetting(
            setting_id="input.keyboard_delay",
            description="Shortest keyboard repeat delay",
            path=r"HKCU:\Control Panel\Keyboard",
            value_name="KeyboardDelay",
            desired_value="0",
        ),
        RegistrySetting(
            setting_id="input.keyboard_speed",
            description="Fastest keyboard repeat rate",
            path=r"HKCU:\Control Panel\Keyboard",
            value_name="KeyboardSpeed",
            desired_value="31",
        ),
        RegistrySetting(
            setting_id="display.menu_show_delay",
            description="Menus open without delay",
            path=r"HKCU:\Control Panel\Desktop",
            value_name="MenuShowDelay",
            desired_value="0",
        ),
    ),
    locale=LocaleSetting(
        languages=("en-US", "ja-JP"),
        input_method_locale="ja-JP",
        # Microsoft IME (Japanese)
        input_method_tip="0411:{03B5835F-F03C-411B-9CE2-AA23E1171E36}{A76C93D9-5523-4E90-AAFA-4DB112F9AC76}",
        tag_aliases=(("ja", "ja-JP"),),
    ),
    developer_tools=(
        DeveloperTool(
            name="vscode",
            package=PackageSetting(
                setting_id="devtools.vscode",
                description="Visual Studio Code installed",
                package_id="Microsoft.VisualStudioCode",
                display_name_prefix="Microsoft Visual Studio Code",
                executable="code",
            ),
        ),
        DeveloperTool(
            name="git",
            package=PackageSetting(
                setting_id="devtools.git",
                description="Git for Windows installed",
                package_id="Git.Git",
                display_name_prefix="Git",
                scope="machine",
                executable="git",
            ),
        ),
    ),
)

