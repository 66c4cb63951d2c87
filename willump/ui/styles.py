"""Qt stylesheet definitions for the Willump panel."""

# Row foreground colors keyed by outcome
OUTCOME_COLORS = {
    "free": "#89d185",
    "occupied": "#cca700",
    "failed": "#f48771",
}

DEGRADED_ROW_COLOR = "#f48771"

MAIN_STYLESHEET = """
QMainWindow, QWidget {
    background-color: #1e1e1e;
    color: #d4d4d4;
    font-family: "Segoe UI", Arial, sans-serif;
    font-size: 13px;
}

QTableWidget {
    background-color: #252526;
    alternate-background-color: #2d2d2d;
    gridline-color: #3c3c3c;
    border: none;
    selection-background-color: #094771;
    selection-color: #ffffff;
}

QTableWidget::item {
    padding: 6px;
}

QHeaderView::section {
    background-color: #333333;
    color: #d4d4d4;
    padding: 8px;
    border: none;
    border-right: 1px solid #3c3c3c;
    font-weight: bold;
}

QPushButton {
    background-color: #0e639c;
    color: white;
    border: none;
    padding: 8px 16px;
    border-radius: 4px;
    min-width: 80px;
}

QPushButton:hover {
    background-color: #1177bb;
}

QPushButton:disabled {
    background-color: #3c3c3c;
    color: #6c6c6c;
}

QPushButton#dangerButton {
    background-color: #c42b1c;
}

QPushButton#dangerButton:hover {
    background-color: #d63a2c;
}

QLineEdit {
    background-color: #3c3c3c;
    border: 1px solid #555555;
    border-radius: 4px;
    padding: 6px 10px;
}

QLineEdit:focus {
    border-color: #0e639c;
}

QStatusBar {
    background-color: #007acc;
    color: white;
}

QMenu {
    background-color: #252526;
    border: 1px solid #454545;
}

QMenu::item:selected {
    background-color: #094771;
}

QCheckBox::indicator:checked {
    background-color: #0e639c;
    border: 1px solid #0e639c;
}
"""
