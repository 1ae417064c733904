"""One reconciliation pass over the setting descriptors.

Every descriptor goes through the same steps: read the live value, compare it
with the desired value, make at most one remediation attempt on mismatch, and
record exactly one ``Outcome``. Descriptors are independent; a failure on one
never stops or reverts the others.
"""
from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, Mapping

from services.providers import ABSENT, ApplyResult, SettingProvider
from workstation_baseline.descriptors import Comparison, SettingDescriptor, SettingKind

LogCallback = Callable[[str], None]


class Level(Enum):
    OK = "OK"
    WARN = "WARN"
    ERROR = "ERROR"


class RemediationResult(Enum):
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    NOT_ATTEMPTED = "NotAttempted"


@dataclass(frozen=True)
class Outcome:
    setting_id: str
    observed: object
    level: Level
    remediated: bool = False
    remediation_result: RemediationResult = RemediationResult.NOT_ATTEMPTED
    expected: str = ""
    description: str = ""
    detail: str = ""
    requires_shell_restart: bool = False


@dataclass
class RunContext:
    outcomes: list[Outcome] = field(default_factory=list)
    changes_made: bool = False

    def record(self, outcome: Outcome) -> None:
        self.outcomes.append(outcome)
        if outcome.requires_shell_restart and outcome.remediation_result is RemediationResult.SUCCEEDED:
            self.changes_made = True

    def count(self, level: Level) -> int:
        return sum(1 for outcome in self.outcomes if outcome.level is level)

    @property
    def remediated(self) -> list[Outcome]:
        return [outcome for outcome in self.outcomes if outcome.remediation_result is RemediationResult.SUCCEEDED]

    @property
    def errors(self) -> list[Outcome]:
        return [outcome for outcome in self.outcomes if outcome.level is Level.ERROR]


def matches(comparison: Comparison, observed: object, desired: object) -> bool:
    if observed is ABSENT:
        return False
    if comparison is Comparison.EQUALITY:
        return type(observed) is type(desired) and observed == desired
    if comparison is Comparison.PREFIX_MATCH:
        return isinstance(observed, str) and isinstance(desired, str) and observed.lower().startswith(desired.lower())
    if comparison is Comparison.SET_MEMBERSHIP:
        return isinstance(observed, Collection) and not isinstance(observed, str) and desired in observed
    raise ValueError(f"Unsupported comparison: {comparison}")


class ReconciliationEngine:
    def __init__(
        self,
        providers: Mapping[SettingKind, SettingProvider],
        *,
        remediate: bool = True,
        log: LogCallback | None = None,
    ) -> None:
        self._providers = dict(providers)
        self._remediate = remediate
        self._log = log

    def run(self, descriptors: Iterable[SettingDescriptor]) -> RunContext:
        ordered = list(descriptors)
        self._validate(ordered)
        for provider in self._providers.values():
            provider.begin_run()
        context = RunContext()
        for descriptor in ordered:
            context.record(self._reconcile(descriptor))
        return context

    def _validate(self, descriptors: list[SettingDescriptor]) -> None:
        seen: set[str] = set()
        for descriptor in descriptors:
            if descriptor.id in seen:
                raise ValueError(f"Duplicate setting id: {descriptor.id}")
            seen.add(descriptor.id)
            if descriptor.kind not in self._providers:
                raise ValueError(f"No provider bound for {descriptor.kind.value} ({descriptor.id})")

    def _reconcile(self, descriptor: SettingDescriptor) -> Outcome:
        provider = self._providers[descriptor.kind]

        def outcome(observed: object, level: Level, **kwargs: object) -> Outcome:
            return Outcome(
                setting_id=descriptor.id,
                observed=observed,
                level=level,
                expected=descriptor.expected,
                description=descriptor.label,
                requires_shell_restart=descriptor.requires_shell_restart,
                **kwargs,
            )

        try:
            read = provider.read(descriptor.location)
        except Exception as exc:  # pragma: no cover - providers convert their own failures
            return outcome(ABSENT, Level.ERROR, detail=f"read failed: {exc}")
        if read.failed:
            self._emit(f"{descriptor.id}: read error")
            return outcome(ABSENT, Level.ERROR, detail=f"read failed: {read.error}")
        observed = read.value
        self._emit(f"{descriptor.id}: observed {format_value(observed)}")

        if matches(descriptor.comparison, observed, descriptor.desired_value):
            return outcome(observed, Level.OK, detail="in desired state")
        if not self._remediate:
            return outcome(observed, Level.WARN, detail=f"expected {descriptor.expected}")

        try:
            applied = provider.apply(descriptor.location, descriptor.desired_value)
        except Exception as exc:  # pragma: no cover - providers convert their own failures
            applied = ApplyResult(False, str(exc))
        if not applied.success:
            return outcome(
                observed,
                Level.ERROR,
                remediated=True,
                remediation_result=RemediationResult.FAILED,
                detail=f"remediation failed: {applied.detail}",
            )
        level = Level.OK if applied.verified else Level.WARN
        prefix = "remediated" if applied.verified else "remediation launched, not verified"
        return outcome(
            observed,
            level,
            remediated=True,
            remediation_result=RemediationResult.SUCCEEDED,
            detail=f"{prefix}: {applied.detail}" if applied.detail else prefix,
        )

    def _emit(self, message: str) -> None:
        if self._log:
            self._log(message)


def format_value(value: object) -> str:
    if isinstance(value, (set, frozenset)):
        return "{" + ", ".join(sorted(str(item) for item in value)) + "}"
    return str(value)
