"""
Willump UI Widgets
"""

from .port_table import PortTableWidget, ControllerWorker

__all__ = ["PortTableWidget", "ControllerWorker"]
