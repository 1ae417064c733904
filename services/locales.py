"""User language list handling (installed locales and their input methods).

Windows only supports replacing the user language list as a whole, so every
change here is a read of the full list, a pure in-memory edit, and a single
``Set-WinUserLanguageList`` call that writes the full list back.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, replace
from typing import Any, Iterable, Protocol, Sequence

from services.system_access import CommandRunner, SubprocessRunner, format_command_detail, ps_quote
from workstation_baseline.descriptors import input_method_identifier

READ_LANGUAGE_LIST_SCRIPT = (
    "Get-WinUserLanguageList | Select-Object LanguageTag, InputMethodTips "
    "| ConvertTo-Json -Depth 3 -Compress"
)
# (tag Windows reports, configured tag) pairs
TagAliases = Sequence[tuple[str, str]]


@dataclass(frozen=True)
class LanguageEntry:
    tag: str
    input_method_tips: tuple[str, ...] = ()


def canonical_tag(tag: str, aliases: TagAliases = ()) -> str:
    for reported, configured in aliases:
        if tag.lower() == reported.lower():
            return configured
    return tag


def same_language(left: str, right: str, aliases: TagAliases = ()) -> bool:
    return canonical_tag(left, aliases).lower() == canonical_tag(right, aliases).lower()


class LanguageListStore(Protocol):
    def read(self) -> list[LanguageEntry]:  # pragma: no cover - protocol
        ...

    def replace(self, entries: Sequence[LanguageEntry]) -> None:  # pragma: no cover - protocol
        ...


def ensure_locales_present(
    desired: Iterable[str],
    current: Sequence[LanguageEntry],
    *,
    aliases: TagAliases = (),
) -> tuple[list[LanguageEntry], list[str]]:
    """Append every desired tag missing from ``current``.

    Existing entries keep their position and their input methods; missing tags
    are appended in the order ``desired`` yields them.
    """
    updated = list(current)
    known = {canonical_tag(entry.tag, aliases).lower() for entry in current}
    added: list[str] = []
    for tag in desired:
        if canonical_tag(tag, aliases).lower() in known:
            continue
        updated.append(LanguageEntry(tag))
        known.add(canonical_tag(tag, aliases).lower())
        added.append(tag)
    return updated, added


def ensure_input_method_present(
    locale: str,
    tip_id: str,
    entries: Sequence[LanguageEntry],
    *,
    prefix: str | None = None,
    aliases: TagAliases = (),
) -> tuple[list[LanguageEntry], bool]:
    """Attach ``tip_id`` to ``locale`` unless a tip with ``prefix`` is already there.

    ``prefix`` defaults to the input method identifier of ``tip_id`` so that a
    regional profile of the same method counts as present.
    """
    wanted = (prefix if prefix is not None else input_method_identifier(tip_id)).lower()
    updated = list(entries)
    for index, entry in enumerate(updated):
        if not same_language(entry.tag, locale, aliases):
            continue
        if any(tip.lower().startswith(wanted) for tip in entry.input_method_tips):
            return updated, False
        updated[index] = replace(entry, input_method_tips=entry.input_method_tips + (tip_id,))
        return updated, True
    raise LookupError(f"Language {locale} is not installed")


def find_entry(entries: Sequence[LanguageEntry], tag: str, aliases: TagAliases = ()) -> LanguageEntry | None:
    for entry in entries:
        if same_language(entry.tag, tag, aliases):
            return entry
    return None


def parse_language_list(output: str) -> list[LanguageEntry]:
    if not output.strip():
        return []
    data = json.loads(output)
    entries: list[LanguageEntry] = []
    for item in _as_list(data):
        if not isinstance(item, dict):
            raise ValueError(f"Unexpected language list item: {item!r}")
        tag = str(item.get("LanguageTag") or "").strip()
        if not tag:
            raise ValueError("Language list item without LanguageTag")
        tips = tuple(str(tip) for tip in _as_list(item.get("InputMethodTips")) if tip)
        entries.append(LanguageEntry(tag, tips))
    return entries


def build_language_list_script(entries: Sequence[LanguageEntry]) -> str:
    if not entries:
        raise ValueError("Refusing to write an empty language list")
    first, *rest = entries
    parts = [f"$list = New-WinUserLanguageList -Language {ps_quote(first.tag)}"]
    for entry in rest:
        parts.append(f"$list.Add({ps_quote(entry.tag)})")
    for index, entry in enumerate(entries):
        # Entries without explicit tips keep the defaults Windows assigns.
        if not entry.input_method_tips:
            continue
        parts.append(f"$list[{index}].InputMethodTips.Clear()")
        for tip in entry.input_method_tips:
            parts.append(f"$list[{index}].InputMethodTips.Add({ps_quote(tip)})")
    parts.append("Set-WinUserLanguageList -LanguageList $list -Force")
    return "; ".join(parts)


class PowerShellLanguageListStore:
    def __init__(self, *, command_runner: CommandRunner | None = None) -> None:
        self._runner = command_runner or SubprocessRunner()

    def read(self) -> list[LanguageEntry]:
        completed = self._runner.run(["powershell", "-NoProfile", "-Command", READ_LANGUAGE_LIST_SCRIPT])
        if completed.returncode != 0:
            raise RuntimeError(f"Get-WinUserLanguageList failed: {format_command_detail(completed)}")
        return parse_language_list(completed.stdout or "")

    def replace(self, entries: Sequence[LanguageEntry]) -> None:
        script = build_language_list_script(entries)
        completed = self._runner.run(["powershell", "-NoProfile", "-Command", script])
        if completed.returncode != 0:
            raise RuntimeError(f"Set-WinUserLanguageList failed: {format_command_detail(completed)}")


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]
