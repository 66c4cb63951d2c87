"""Main window for the Willump desktop panel."""

import os
import subprocess
import sys
from typing import Optional

from PyQt6.QtCore import QThread
from PyQt6.QtGui import QAction, QKeySequence
from PyQt6.QtWidgets import (
    QMainWindow, QWidget, QVBoxLayout, QHBoxLayout, QStatusBar, QLabel,
    QLineEdit, QPushButton, QMessageBox
)

from .render import is_failure, render_outcome
from .styles import MAIN_STYLESHEET, OUTCOME_COLORS
from .widgets.port_table import ControllerWorker, PortTableWidget
from ..config import APP_NAME
from ..core import PortController, PortFree
from ..utils.logging_config import get_logger, get_log_file_path, PerfTimer
from .. import __version__

logger = get_logger('main_window')


class MainWindow(QMainWindow):
    """Main application window."""

    def __init__(self, controller: PortController, refresh_ms: int = 5000):
        super().__init__()
        logger.info("Initializing MainWindow")
        self.controller = controller
        self.refresh_ms = refresh_ms

        self._check_thread: Optional[QThread] = None
        self._check_worker: Optional[ControllerWorker] = None

        with PerfTimer("MainWindow setup", logger):
            self._setup_window()
            self._setup_menu()
            self._setup_ui()
            self._setup_status_bar()

        self.port_table.refresh()
        logger.info("MainWindow initialization complete")

    def _setup_window(self):
        self.setWindowTitle(f"{APP_NAME} - Port Usage")
        self.setMinimumSize(900, 600)
        self.resize(1100, 700)
        self.setStyleSheet(MAIN_STYLESHEET)

    def _setup_menu(self):
        menubar = self.menuBar()

        file_menu = menubar.addMenu("&File")

        refresh_action = QAction("&Refresh", self)
        refresh_action.setShortcut(QKeySequence.StandardKey.Refresh)
        refresh_action.triggered.connect(lambda: self.port_table.refresh())
        file_menu.addAction(refresh_action)

        file_menu.addSeparator()

        exit_action = QAction("E&xit", self)
        exit_action.setShortcut(QKeySequence.StandardKey.Quit)
        exit_action.triggered.connect(self.close)
        file_menu.addAction(exit_action)

        help_menu = menubar.addMenu("&Help")

        view_logs_action = QAction("View &Logs", self)
        view_logs_action.setShortcut("Ctrl+L")
        view_logs_action.triggered.connect(self._open_log_file)
        help_menu.addAction(view_logs_action)

        help_menu.addSeparator()

        about_action = QAction("&About", self)
        about_action.triggered.connect(self._show_about)
        help_menu.addAction(about_action)

    def _setup_ui(self):
        central = QWidget()
        self.setCentralWidget(central)

        layout = QVBoxLayout(central)
        layout.setContentsMargins(8, 8, 8, 8)
        layout.setSpacing(8)

        # Check / kill bar
        bar = QHBoxLayout()
        self.ports_input = QLineEdit()
        self.ports_input.setPlaceholderText("Ports separated by spaces, e.g. 3000 8080")
        self.ports_input.returnPressed.connect(self._check_ports)
        bar.addWidget(self.ports_input)

        self.check_btn = QPushButton("Check")
        self.check_btn.clicked.connect(self._check_ports)
        bar.addWidget(self.check_btn)

        self.kill_btn = QPushButton("Kill")
        self.kill_btn.setObjectName("dangerButton")
        self.kill_btn.clicked.connect(self._kill_ports)
        bar.addWidget(self.kill_btn)
        layout.addLayout(bar)

        self.result_label = QLabel()
        self.result_label.setWordWrap(True)
        layout.addWidget(self.result_label)

        self.port_table = PortTableWidget(self.controller, refresh_ms=self.refresh_ms)
        self.port_table.outcome_ready.connect(self._show_outcomes)
        layout.addWidget(self.port_table)

    def _setup_status_bar(self):
        self.status_bar = QStatusBar()
        self.setStatusBar(self.status_bar)
        self.status_bar.addPermanentWidget(QLabel(f"Platform: {self.controller.profile.family.value}"))

    def _entered_ports(self) -> list[str]:
        return self.ports_input.text().split()

    def _run_batch(self, coro_factory):
        if self._check_thread is not None and self._check_thread.isRunning():
            logger.warning("Batch already in progress, ignoring request")
            return
        self.check_btn.setEnabled(False)
        self.kill_btn.setEnabled(False)

        self._check_thread = QThread()
        self._check_worker = ControllerWorker(coro_factory)
        self._check_worker.moveToThread(self._check_thread)
        self._check_thread.started.connect(self._check_worker.run)
        self._check_worker.finished.connect(self._show_outcomes)
        self._check_worker.finished.connect(self._check_thread.quit)
        self._check_worker.error.connect(self._check_thread.quit)
        self._check_thread.finished.connect(self._batch_done)
        self._check_thread.start()

    def _batch_done(self):
        self.check_btn.setEnabled(True)
        self.kill_btn.setEnabled(True)
        self._check_thread = None
        self._check_worker = None

    def _check_ports(self):
        ports = self._entered_ports()
        if ports:
            self._run_batch(lambda: self.controller.check_ports(ports))

    def _kill_ports(self):
        ports = self._entered_ports()
        if not ports:
            return
        reply = QMessageBox.question(
            self,
            "Confirm Kill",
            f"Kill the processes bound to port(s) {', '.join(ports)}?\n\nThis may cause data loss.",
            QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No,
            QMessageBox.StandardButton.No
        )
        if reply == QMessageBox.StandardButton.Yes:
            self._run_batch(lambda: self.controller.kill_ports(ports))

    def _show_outcomes(self, outcomes):
        if not isinstance(outcomes, list):
            outcomes = [outcomes]
        lines = [render_outcome(o) for o in outcomes]
        if any(is_failure(o) for o in outcomes):
            color = OUTCOME_COLORS["failed"]
        elif all(isinstance(o, PortFree) for o in outcomes):
            color = OUTCOME_COLORS["free"]
        else:
            color = OUTCOME_COLORS["occupied"]
        self.result_label.setStyleSheet(f"color: {color};")
        self.result_label.setText("\n".join(lines))
        self.status_bar.showMessage(f"{len(outcomes)} port(s) processed", 5000)

    def _show_about(self):
        QMessageBox.about(
            self,
            f"About {APP_NAME}",
            f"<h2>{APP_NAME}</h2>"
            "<p>Find, inspect and free the processes holding network ports.</p>"
            f"<p>Version {__version__}</p>"
            f"<p><small>Log file: {get_log_file_path()}</small></p>"
        )

    def _open_log_file(self):
        """Open the log file with the platform's default viewer."""
        log_path = get_log_file_path()
        logger.info(f"Opening log file: {log_path}")
        try:
            if sys.platform == "win32":
                os.startfile(str(log_path))
            else:
                opener = "open" if sys.platform == "darwin" else "xdg-open"
                subprocess.Popen([opener, str(log_path)])
        except OSError as e:
            logger.error(f"Failed to open log file: {e}")
            QMessageBox.warning(self, "Error", f"Could not open log file: {e}\n\nPath: {log_path}")


def run_gui(controller: PortController, refresh_ms: int = 5000) -> int:
    """Start the Qt event loop with the main window. Returns the exit code."""
    from PyQt6.QtCore import Qt
    from PyQt6.QtWidgets import QApplication

    QApplication.setHighDpiScaleFactorRoundingPolicy(
        Qt.HighDpiScaleFactorRoundingPolicy.PassThrough
    )
    app = QApplication.instance() or QApplication(sys.argv)
    app.setApplicationName(APP_NAME)
    app.setApplicationVersion(__version__)

    window = MainWindow(controller, refresh_ms=refresh_ms)
    window.show()

    logger.info("Main window displayed, entering event loop")
    exit_code = app.exec()
    logger.info(f"{APP_NAME} GUI shutting down (exit code: {exit_code})")
    return exit_code
