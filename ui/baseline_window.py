"""Workstation baseline status window."""
from __future__ import annotations

import sys
from typing import Callable, Dict

from PySide6.QtCore import Qt, QThreadPool
from PySide6.QtWidgets import (
    QApplication,
    QGridLayout,
    QHBoxLayout,
    QLabel,
    QMessageBox,
    QPlainTextEdit,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from services.baseline import BaselineService
from services.reconciler import Level, Outcome, RunContext, format_value
from services.reporter import OutcomeReporter, format_outcome
from ui.workers import ServiceWorker
from workstation_baseline.constants import WorkstationBaseline
from workstation_baseline.descriptors import RunOptions

LEVEL_COLORS = {
    Level.OK: "#4caf50",
    Level.WARN: "#ff9800",
    Level.ERROR: "#f44336",
}


class BaselineWindow(QWidget):
    def __init__(self, service: BaselineService, thread_pool: QThreadPool) -> None:
        super().__init__()
        self._service = service
        self._thread_pool = thread_pool
        self._status_labels: Dict[str, QLabel] = {}
        self._workers: set[ServiceWorker] = set()
        self._busy = False
        self.setWindowTitle("Workstation Baseline")
        self._build_ui()
        self._start_check()

    def _track_worker(self, worker: ServiceWorker) -> None:
        self._workers.add(worker)
        worker.signals.finished.connect(lambda *_: self._workers.discard(worker))
        worker.signals.error.connect(lambda *_: self._workers.discard(worker))

    def _build_ui(self) -> None:
        layout = QVBoxLayout(self)
        layout.addWidget(QLabel("User settings compared against the workstation baseline"))

        grid = QGridLayout()
        layout.addLayout(grid)
        grid.addWidget(QLabel("Setting"), 0, 0)
        grid.addWidget(QLabel("Status"), 0, 1)
        for row, descriptor in enumerate(self._service.descriptors(), start=1):
            value_label = QLabel("Checking...")
            value_label.setAlignment(Qt.AlignLeft)
            grid.addWidget(QLabel(descriptor.label), row, 0)
            grid.addWidget(value_label, row, 1)
            self._status_labels[descriptor.id] = value_label

        button_row = QHBoxLayout()
        self._btn_check = QPushButton("Check Again")
        self._btn_check.clicked.connect(self._start_check)
        button_row.addWidget(self._btn_check)

        self._btn_apply = QPushButton("Apply Baseline")
        self._btn_apply.clicked.connect(self._start_apply)
        button_row.addWidget(self._btn_apply)
        layout.addLayout(button_row)

        self._log_view = QPlainTextEdit()
        self._log_view.setReadOnly(True)
        self._log_view.setMinimumHeight(180)
        layout.addWidget(self._log_view)

    def _log(self, message: str) -> None:
        self._log_view.appendPlainText(message)

    def _start_check(self) -> None:
        if self._busy:
            return
        for label in self._status_labels.values():
            label.setText("Checking...")
            label.setStyleSheet("")
        self._start_worker(self._service.check, self._handle_check_finished)

    def _start_apply(self) -> None:
        if self._busy:
            QMessageBox.information(self, "In Progress", "Please wait for current operation to finish.")
            return
        self._log("Applying workstation baseline...")
        self._start_worker(self._service.apply, self._handle_apply_finished)

    def _start_worker(self, fn: Callable[[], RunContext], on_finished: Callable[[RunContext], None]) -> None:
        self._busy = True
        self._set_controls_enabled(False)
        worker = ServiceWorker(fn)
        worker.signals.finished.connect(on_finished)
        worker.signals.error.connect(self._handle_error)
        self._track_worker(worker)
        self._thread_pool.start(worker)

    def _handle_check_finished(self, context: RunContext) -> None:
        self._show_outcomes(context)
        warnings = context.count(Level.WARN) + context.count(Level.ERROR)
        self._log("All settings compliant." if warnings == 0 else f"{warnings} setting(s) require attention.")
        self._finish()

    def _handle_apply_finished(self, context: RunContext) -> None:
        self._show_outcomes(context)
        reporter = OutcomeReporter(self._log, restart_shell=self._service.options.restart_shell)
        reporter.report(context)
        self._finish()

    def _show_outcomes(self, context: RunContext) -> None:
        for outcome in context.outcomes:
            label = self._status_labels.get(outcome.setting_id)
            if not label:
                continue
            label.setText(self._format_outcome_text(outcome))
            label.setStyleSheet(f"color: {LEVEL_COLORS[outcome.level]}; font-weight: bold;")
            label.setToolTip(format_outcome(outcome))

    def _format_outcome_text(self, outcome: Outcome) -> str:
        return f"{outcome.level.value}: {format_value(outcome.observed)} (target: {outcome.expected})"

    def _finish(self) -> None:
        self._busy = False
        self._set_controls_enabled(True)

    def _set_controls_enabled(self, enabled: bool) -> None:
        self._btn_check.setEnabled(enabled)
        self._btn_apply.setEnabled(enabled and self._service.options.remediate)

    def _handle_error(self, message: str) -> None:
        self._log(f"[ERROR] {message}")
        self._finish()


def run_gui(config: WorkstationBaseline, options: RunOptions) -> int:
    app = QApplication.instance() or QApplication(sys.argv)
    try:
        service = BaselineService(config, options)
    except RuntimeError as exc:
        QMessageBox.critical(None, "Workstation Baseline", str(exc))
        return 2
    window = BaselineWindow(service, QThreadPool.globalInstance())
    window.resize(760, 560)
    window.show()
    return app.exec()
