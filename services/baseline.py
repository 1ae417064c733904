"""Entry service tying the configuration, descriptors, engine and providers together."""
from __future__ import annotations

from typing import Mapping

from services.providers import SettingProvider, default_providers
from services.reconciler import LogCallback, ReconciliationEngine, RunContext
from workstation_baseline.constants import IMMUTABLE_CONFIG, WorkstationBaseline
from workstation_baseline.descriptors import RunOptions, SettingDescriptor, SettingKind, build_descriptors


class BaselineService:
    def __init__(
        self,
        config: WorkstationBaseline = IMMUTABLE_CONFIG,
        options: RunOptions | None = None,
        *,
        providers: Mapping[SettingKind, SettingProvider] | None = None,
        log: LogCallback | None = None,
    ) -> None:
        self._config = config
        self._options = options or RunOptions()
        self._providers = providers if providers is not None else default_providers()
        self._log = log
        self._descriptors = build_descriptors(config, self._options)

    @property
    def options(self) -> RunOptions:
        return self._options

    def descriptors(self) -> tuple[SettingDescriptor, ...]:
        return self._descriptors

    def check(self) -> RunContext:
        return self._engine(remediate=False).run(self._descriptors)

    def apply(self) -> RunContext:
        return self._engine(remediate=True).run(self._descriptors)

    def run(self) -> RunContext:
        return self.apply() if self._options.remediate else self.check()

    def _engine(self, *, remediate: bool) -> ReconciliationEngine:
        return ReconciliationEngine(self._providers, remediate=remediate, log=self._log)
