"""
Process tracker for resolving process names from PIDs
"""

from dataclasses import replace

import psutil

from .models import PortRecord


class ProcessTracker:
    """Resolves process names for records whose tool output carried none"""

    def __init__(self):
        self._process_cache: dict[int, str] = {}

    def get_process_name(self, pid: int) -> str:
        """
        Get process name from PID with caching.
        Returns 'PID <n>' if process cannot be found.
        """
        # Check cache first
        if pid in self._process_cache:
            # Verify process still exists
            if psutil.pid_exists(pid):
                return self._process_cache[pid]
            else:
                # Process ended, remove from cache
                del self._process_cache[pid]

        # Look up process
        try:
            proc = psutil.Process(pid)
            name = proc.name()
            self._process_cache[pid] = name
            return name
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            return f"PID {pid}"

    def enrich(self, records: list[PortRecord]) -> list[PortRecord]:
        """Fill in missing process names. Records are immutable, changed ones are copies."""
        enriched = []
        for record in records:
            if not record.process_name and record.pid:
                record = replace(record, process_name=self.get_process_name(record.pid))
            enriched.append(record)
        return enriched
