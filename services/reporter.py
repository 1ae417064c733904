"""Rendering of reconciliation outcomes and the Explorer restart."""
from __future__ import annotations

from services.reconciler import Level, LogCallback, Outcome, RunContext
from services.system_access import CommandRunner, SubprocessRunner, format_command_detail

RESTART_EXPLORER_SCRIPT = "Stop-Process -Name explorer -Force -ErrorAction SilentlyContinue; Start-Process explorer.exe"


class ShellRestarter:
    def __init__(self, command_runner: CommandRunner | None = None) -> None:
        self._runner = command_runner or SubprocessRunner()

    def restart(self) -> tuple[bool, str]:
        completed = self._runner.run(["powershell", "-NoProfile", "-Command", RESTART_EXPLORER_SCRIPT])
        return completed.returncode == 0, format_command_detail(completed)


def format_outcome(outcome: Outcome) -> str:
    label = outcome.description or outcome.setting_id
    detail = f": {outcome.detail}" if outcome.detail else ""
    return f"[{outcome.level.value}] {label}{detail}"


def summarize(context: RunContext) -> str:
    counts = ", ".join(f"{context.count(level)} {level.value}" for level in Level)
    return f"{len(context.outcomes)} setting(s) checked: {counts}; {len(context.remediated)} remediated."


class OutcomeReporter:
    def __init__(
        self,
        log: LogCallback = print,
        *,
        restarter: ShellRestarter | None = None,
        restart_shell: bool = True,
    ) -> None:
        self._log = log
        self._restarter = restarter
        self._restart_shell = restart_shell

    def report(self, context: RunContext) -> int:
        """Log every outcome, restart Explorer if needed, and return an exit code."""
        for outcome in context.outcomes:
            self._log(format_outcome(outcome))
        self._log(summarize(context))
        if context.changes_made:
            self._handle_restart()
        return 1 if context.errors else 0

    def _handle_restart(self) -> None:
        if not self._restart_shell:
            self._log("[WARN] Shell settings changed; restart Explorer or sign out to see them.")
            return
        restarter = self._restarter or ShellRestarter()
        ok, detail = restarter.restart()
        if ok:
            self._log("[OK] Explorer restarted to apply shell settings.")
        else:
            self._log(f"[ERROR] Explorer restart failed: {detail}")
