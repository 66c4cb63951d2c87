"""Check, kill and list operations built on the resolver, executor and parser."""

import asyncio
from typing import Iterable, Optional

from .errors import ExecutionFailedError, ParseDegradedError, WillumpError
from .executor import ProcessExecutor
from .models import (
    PlatformProfile, PortFree, PortOccupied, PortRecord, ProcessTerminated,
    QueryFailed, QueryOutcome, TerminationFailed, TerminationReason,
)
from .parser import PortInfoParser
from .process_tracker import ProcessTracker
from .resolver import PlatformCommandResolver, current_profile, validate_port
from ..utils.logging_config import get_logger, timed

logger = get_logger('controller')

# Lowercased stderr fragments from kill/taskkill, checked in order
_ALREADY_EXITED_MARKERS = ('no such process', 'not found')
_PERMISSION_MARKERS = ('operation not permitted', 'access is denied', 'permission denied')


def classify_termination_failure(message: str) -> TerminationReason:
    """Map kill/taskkill error text to a TerminationReason."""
    text = message.lower()
    if any(marker in text for marker in _ALREADY_EXITED_MARKERS):
        return TerminationReason.ALREADY_EXITED
    if any(marker in text for marker in _PERMISSION_MARKERS):
        return TerminationReason.PERMISSION_DENIED
    return TerminationReason.UNKNOWN


def _label(port) -> str:
    return port.strip() if isinstance(port, str) else str(port)


def _killable(pid) -> bool:
    return pid is not None and pid > 0


class PortController:
    """
    Entry point for callers (CLI, GUI, scripts).

    Every call re-runs the diagnostic tool; nothing is cached between calls
    apart from process names. Per-port operations never raise: failures come
    back as QueryFailed or TerminationFailed so batches always complete.
    """

    def __init__(self, profile: Optional[PlatformProfile] = None,
                 executor: Optional[ProcessExecutor] = None,
                 tracker: Optional[ProcessTracker] = None):
        self.profile = profile or current_profile()
        self.resolver = PlatformCommandResolver(self.profile)
        self.parser = PortInfoParser(self.profile)
        self.executor = executor or ProcessExecutor()
        self.tracker = tracker
        logger.debug(f"PortController initialized for {self.profile.family.value}")

    @timed
    async def check_port(self, port) -> QueryOutcome:
        """Report whether ``port`` is bound and, if so, by which process."""
        label = _label(port)
        try:
            port_num = validate_port(port)
            records = await self._lookup(port_num)
        except WillumpError as e:
            logger.warning(f"check_port({label}) failed: {e}")
            return QueryFailed.from_error(label, e)

        if not records:
            logger.info(f"Port {port_num} is free")
            return PortFree(label)

        record = self._preferred(records)
        logger.info(f"Port {port_num} is in use by {record.display_name} (PID: {record.pid})")
        return PortOccupied(label, record, tuple(records))

    @timed
    async def kill_port(self, port) -> QueryOutcome:
        """
        Terminate the process bound to ``port``.

        Resolves the PID first, then kills exactly that PID. A free port is a
        no-op. A failed kill is reported, never retried: by then the PID may
        belong to an unrelated process.
        """
        label = _label(port)
        try:
            port_num = validate_port(port)
            records = await self._lookup(port_num)
        except WillumpError as e:
            logger.warning(f"kill_port({label}) lookup failed: {e}")
            return QueryFailed.from_error(label, e)

        if not records:
            logger.info(f"Port {port_num} is already free, nothing to kill")
            return PortFree(label)

        target = self._preferred(records)
        if target.pid is None:
            error = ParseDegradedError(port_num)
            logger.warning(str(error))
            return QueryFailed.from_error(label, error)
        if not _killable(target.pid):
            # PID 0 on Windows is the idle process owning TIME_WAIT rows
            message = f"PID {target.pid} is not a killable process"
            logger.warning(f"Not killing on port {label}: {message}")
            return TerminationFailed(label, target.pid, TerminationReason.UNKNOWN, message)

        return await self._terminate(label, target)

    @timed
    async def list_all_ports(self) -> list[PortRecord]:
        """
        Every binding the listing tool reports, sorted by port.

        Raises:
            WillumpError: the tool is missing, timed out, exited non-zero or
                wrote to stderr. Partial results are never returned.
        """
        command = self.resolver.list_all()
        result = await self.executor.run(command)
        if not result.ok:
            logger.error(f"Listing failed (exit {result.exit_code}): {result.stderr.strip()}")
            raise ExecutionFailedError(command, result.exit_code, result.stderr)

        stdout = result.stdout
        if result.truncated:
            # The last row may have been cut mid-field
            stdout = stdout.rsplit('\n', 1)[0]

        records = await self._enrich(self.parser.parse(stdout))
        logger.info(f"Found {len(records)} port binding(s)")
        return sorted(records, key=lambda r: (r.port, r.protocol.value, r.pid or 0))

    async def check_ports(self, ports: Iterable) -> list[QueryOutcome]:
        """Check several ports concurrently. Each outcome names its port."""
        return list(await asyncio.gather(*(self.check_port(p) for p in ports)))

    async def kill_ports(self, ports: Iterable) -> list[QueryOutcome]:
        """Kill several ports concurrently. Each outcome names its port."""
        return list(await asyncio.gather(*(self.kill_port(p) for p in ports)))

    async def _lookup(self, port: int) -> list[PortRecord]:
        """Records bound to ``port``; empty when the tool reports nothing."""
        command = self.resolver.single_port(port)
        result = await self.executor.run(command)
        if result.exit_code != 0 or result.stderr.strip() or not result.stdout.strip():
            # lsof exits 1 with no output when nothing matches
            logger.debug(
                f"Lookup for port {port} found nothing "
                f"(exit {result.exit_code}, stderr={result.stderr.strip()!r})"
            )
            return []
        return await self._enrich(self.parser.parse(result.stdout, query_port=port))

    async def _terminate(self, label: str, target: PortRecord) -> QueryOutcome:
        pid = target.pid
        try:
            command = self.resolver.kill(pid)
        except ValueError as e:
            logger.error(f"Cannot build kill command for PID {pid!r}: {e}")
            return TerminationFailed(label, pid, TerminationReason.UNKNOWN, str(e))
        logger.info(f"Killing {target.display_name} (PID: {pid}) on port {label}")
        try:
            result = await self.executor.run(command)
        except WillumpError as e:
            logger.error(f"Kill command for PID {pid} failed: {e}")
            return TerminationFailed(label, pid, TerminationReason.UNKNOWN, str(e))

        if result.exit_code == 0:
            logger.info(f"Terminated PID {pid} on port {label}")
            return ProcessTerminated(label, pid, target.process_name)

        message = (result.stderr.strip() or result.stdout.strip()
                   or f"exit code {result.exit_code}")
        reason = classify_termination_failure(message)
        logger.warning(f"Could not kill PID {pid} on port {label}: {reason.value} ({message})")
        return TerminationFailed(label, pid, reason, message)

    async def _enrich(self, records: list[PortRecord]) -> list[PortRecord]:
        if self.tracker is None or all(r.process_name or r.pid is None for r in records):
            return records
        return await asyncio.to_thread(self.tracker.enrich, records)

    @staticmethod
    def _preferred(records: list[PortRecord]) -> PortRecord:
        """Listening process preferred, then any real PID, then any PID at all."""
        for record in records:
            if record.is_listening and _killable(record.pid):
                return record
        for record in records:
            if _killable(record.pid):
                return record
        for record in records:
            if record.pid is not None:
                return record
        return records[0]
