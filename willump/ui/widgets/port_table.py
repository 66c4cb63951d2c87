"""Port table widget for displaying bound ports."""

import asyncio
from typing import Optional

from PyQt6.QtCore import Qt, pyqtSignal, QTimer, QThread, QObject
from PyQt6.QtGui import QAction, QColor
from PyQt6.QtWidgets import (
    QWidget, QVBoxLayout, QHBoxLayout, QTableWidget, QTableWidgetItem,
    QPushButton, QLineEdit, QLabel, QHeaderView, QMenu, QCheckBox,
    QMessageBox, QApplication
)

from ..render import render_outcome
from ..styles import DEGRADED_ROW_COLOR
from ...core import PortController, PortRecord, WillumpError
from ...utils.logging_config import get_logger, PerfTimer

logger = get_logger('port_table')


class ControllerWorker(QObject):
    """Runs one controller coroutine on a background thread."""
    finished = pyqtSignal(object)
    error = pyqtSignal(str)

    def __init__(self, coro_factory):
        super().__init__()
        self.coro_factory = coro_factory

    def run(self):
        try:
            self.finished.emit(asyncio.run(self.coro_factory()))
        except WillumpError as e:
            logger.warning(f"Worker failed: {e}")
            self.error.emit(str(e))
        except Exception as e:
            # Must not escape a Qt slot
            logger.exception("Worker crashed")
            self.error.emit(f"Unexpected error: {e}")


class PortTableWidget(QWidget):
    """Widget displaying bound ports with filtering and a kill action."""

    port_selected = pyqtSignal(int)   # Emitted when a port is selected
    outcome_ready = pyqtSignal(object)  # Emitted with each kill QueryOutcome

    COLUMNS = ['Port', 'Protocol', 'State', 'Process', 'PID', 'Local Address']

    def __init__(self, controller: PortController, refresh_ms: int = 5000,
                 parent: Optional[QWidget] = None):
        super().__init__(parent)
        self.controller = controller
        self.current_data: list[PortRecord] = []

        self._thread: Optional[QThread] = None
        self._worker: Optional[ControllerWorker] = None
        self._refresh_pending = False

        self._setup_ui()
        self._setup_refresh_timer(refresh_ms)

    def _setup_ui(self):
        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)

        header = QHBoxLayout()

        self.search_input = QLineEdit()
        self.search_input.setPlaceholderText("Filter by port, process name, or PID...")
        self.search_input.textChanged.connect(self._populate_table)
        header.addWidget(self.search_input)

        self.listening_only_cb = QCheckBox("Listening only")
        self.listening_only_cb.setChecked(False)
        self.listening_only_cb.stateChanged.connect(self._populate_table)
        header.addWidget(self.listening_only_cb)

        self.refresh_btn = QPushButton("Refresh")
        self.refresh_btn.clicked.connect(self.refresh)
        header.addWidget(self.refresh_btn)

        layout.addLayout(header)

        self.table = QTableWidget()
        self.table.setColumnCount(len(self.COLUMNS))
        self.table.setHorizontalHeaderLabels(self.COLUMNS)
        self.table.setAlternatingRowColors(True)
        self.table.setSelectionBehavior(QTableWidget.SelectionBehavior.SelectRows)
        self.table.setSelectionMode(QTableWidget.SelectionMode.SingleSelection)
        self.table.setContextMenuPolicy(Qt.ContextMenuPolicy.CustomContextMenu)
        self.table.customContextMenuRequested.connect(self._show_context_menu)
        self.table.itemSelectionChanged.connect(self._on_selection_changed)

        header_view = self.table.horizontalHeader()
        for column in range(len(self.COLUMNS) - 1):
            header_view.setSectionResizeMode(column, QHeaderView.ResizeMode.Interactive)
        header_view.setSectionResizeMode(len(self.COLUMNS) - 1, QHeaderView.ResizeMode.Stretch)
        for column, width in enumerate((70, 80, 110, 180, 70)):
            self.table.setColumnWidth(column, width)

        layout.addWidget(self.table)

        self.status_label = QLabel()
        layout.addWidget(self.status_label)

    def _setup_refresh_timer(self, refresh_ms: int):
        """Auto-refresh; 0 disables it."""
        self.refresh_timer = QTimer(self)
        self.refresh_timer.timeout.connect(self.refresh)
        if refresh_ms > 0:
            self.refresh_timer.start(refresh_ms)

    def _busy(self) -> bool:
        return self._thread is not None and self._thread.isRunning()

    def _start(self, coro_factory, on_finished):
        self._thread = QThread()
        self._worker = ControllerWorker(coro_factory)
        self._worker.moveToThread(self._thread)

        self._thread.started.connect(self._worker.run)
        self._worker.finished.connect(on_finished)
        self._worker.error.connect(self._on_error)
        self._worker.finished.connect(self._thread.quit)
        self._worker.error.connect(self._thread.quit)
        self._thread.finished.connect(self._cleanup)

        self.refresh_btn.setEnabled(False)
        self._thread.start()

    def refresh(self):
        """Reload the port list in the background."""
        if self._busy():
            logger.debug("Refresh skipped, previous query still running")
            return
        self.status_label.setText("Querying ports...")
        self._start(self.controller.list_all_ports, self._on_refreshed)

    def kill_port(self, port: int):
        """Kill whatever holds ``port`` after confirmation."""
        if self._busy():
            QMessageBox.information(self, "Busy", "Another query is still running.")
            return
        reply = QMessageBox.question(
            self,
            "Confirm Kill",
            f"Kill the process bound to port {port}?\n\nThis may cause data loss.",
            QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No,
            QMessageBox.StandardButton.No
        )
        if reply != QMessageBox.StandardButton.Yes:
            return
        self.status_label.setText(f"Killing process on port {port}...")
        self._start(lambda: self.controller.kill_port(port), self._on_killed)

    def _on_refreshed(self, records: list):
        self.current_data = records
        with PerfTimer("populate_port_table", logger):
            self._populate_table()

    def _on_killed(self, outcome):
        logger.info(render_outcome(outcome))
        self.status_label.setText(render_outcome(outcome))
        self.outcome_ready.emit(outcome)
        # Reload once the worker thread has wound down
        self._refresh_pending = True

    def _on_error(self, message: str):
        self.status_label.setText(f"Query failed: {message}")
        QMessageBox.warning(self, "Query Failed", message)

    def _cleanup(self):
        self.refresh_btn.setEnabled(True)
        self._thread = None
        self._worker = None
        if self._refresh_pending:
            self._refresh_pending = False
            self.refresh()

    def visible_records(self) -> list[PortRecord]:
        """Records passing the current filter and listening toggle."""
        filter_text = self.search_input.text().lower()
        listening_only = self.listening_only_cb.isChecked()
        visible = []
        for record in self.current_data:
            if listening_only and not record.is_listening:
                continue
            if filter_text:
                searchable = f"{record.port} {record.protocol.value} {record.process_name} {record.pid}"
                if filter_text not in searchable.lower():
                    continue
            visible.append(record)
        return visible

    def _populate_table(self):
        self.table.setRowCount(0)

        for record in self.visible_records():
            row = self.table.rowCount()
            self.table.insertRow(row)

            port_item = QTableWidgetItem(str(record.port))
            port_item.setData(Qt.ItemDataRole.UserRole, record)
            cells = [
                port_item,
                QTableWidgetItem(record.protocol.value),
                QTableWidgetItem(record.state),
                QTableWidgetItem(record.display_name),
                QTableWidgetItem("?" if record.pid is None else str(record.pid)),
                QTableWidgetItem(record.local_address),
            ]
            for column, item in enumerate(cells):
                if record.degraded:
                    item.setForeground(QColor(DEGRADED_ROW_COLOR))
                self.table.setItem(row, column, item)

        total = len(self.current_data)
        shown = self.table.rowCount()
        self.status_label.setText(f"Showing {shown} of {total} bindings")

    def _selected_record(self) -> Optional[PortRecord]:
        items = self.table.selectedItems()
        if items:
            return self.table.item(items[0].row(), 0).data(Qt.ItemDataRole.UserRole)
        return None

    def _on_selection_changed(self):
        record = self._selected_record()
        if record:
            self.port_selected.emit(record.port)

    def _show_context_menu(self, pos):
        item = self.table.itemAt(pos)
        if not item:
            return
        record: PortRecord = self.table.item(item.row(), 0).data(Qt.ItemDataRole.UserRole)
        if not record:
            return

        menu = QMenu(self)

        kill_action = QAction(f"Kill Process on Port {record.port} ({record.display_name})", self)
        kill_action.triggered.connect(lambda checked, p=record.port: self.kill_port(p))
        menu.addAction(kill_action)

        menu.addSeparator()
        copy_port = QAction(f"Copy Port: {record.port}", self)
        copy_port.triggered.connect(lambda checked, p=record.port: self._copy_to_clipboard(str(p)))
        menu.addAction(copy_port)

        if record.pid is not None:
            copy_pid = QAction(f"Copy PID: {record.pid}", self)
            copy_pid.triggered.connect(lambda checked, p=record.pid: self._copy_to_clipboard(str(p)))
            menu.addAction(copy_pid)

        menu.exec(self.table.viewport().mapToGlobal(pos))

    def _copy_to_clipboard(self, text: str):
        QApplication.clipboard().setText(text)

    def get_selected_port(self) -> Optional[int]:
        record = self._selected_record()
        return record.port if record else None
