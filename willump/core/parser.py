"""Parsers turning netstat/lsof output into PortRecords."""

import re
from typing import Optional

from .models import PidStrategy, PlatformFamily, PlatformProfile, PortRecord, Protocol
from ..utils.logging_config import get_logger

logger = get_logger('parser')

# A PID is the last whitespace-separated token of a netstat row. Requiring the
# whitespace keeps "10.0.0.1:443" at the end of a PID-less row from being
# read as PID 443.
_TRAILING_PID = re.compile(r'(?:^|\s)(\d+)\s*$')

_LSOF_HEADER = "COMMAND"
_LSOF_MIN_FIELDS = 9      # COMMAND PID USER FD TYPE DEVICE SIZE/OFF NODE NAME
_NETSTAT_TCP_FIELDS = 5   # Proto Local Foreign State PID
_NETSTAT_UDP_FIELDS = 4   # Proto Local Foreign PID


def _to_int(text: str) -> Optional[int]:
    text = text.strip()
    if text.isascii() and text.isdigit():
        return int(text)
    return None


def _port_of(address: str) -> Optional[int]:
    """Port suffix of an address such as 0.0.0.0:80, [::1]:3000 or *:5353."""
    _, sep, port = address.rpartition(':')
    if not sep:
        return None
    port_num = _to_int(port)
    if port_num is None or not 0 < port_num <= 65535:
        return None
    return port_num


class PortInfoParser:
    """
    Normalizes raw tool output for one platform.

    Never raises on odd input: rows that do not have the expected shape are
    skipped, rows whose PID cannot be read become degraded records (pid=None).
    """

    def __init__(self, profile: PlatformProfile):
        self.profile = profile

    def parse(self, raw_output: str, query_port: Optional[int] = None) -> list[PortRecord]:
        """
        Parse a full listing, or a single-port lookup when ``query_port`` is given.

        In single-port mode only rows whose local address is bound to
        ``query_port`` are kept, so stray matches (18080 for 8080, a remote
        endpoint on the same port) never leak into the result. PIDs are read
        with the profile's PID strategy.
        """
        records: list[PortRecord] = []
        skipped = 0
        single = query_port is not None
        port_token = re.compile(rf':{query_port}(?!\d)') if single else None

        for line in raw_output.splitlines():
            if not line.strip():
                continue
            record = self._parse_line(line, single)
            if record is None:
                # Unreadable row that still names the port: keep it visible
                if single and port_token.search(line) and not self._is_header(line):
                    record = PortRecord(port=query_port, pid=None)
                else:
                    skipped += 1
                    continue
            if single and record.port != query_port:
                continue
            records.append(record)

        degraded = sum(1 for r in records if r.degraded)
        logger.debug(
            f"Parsed {len(records)} record(s) from {self.profile.family.value} output "
            f"(skipped {skipped} line(s), {degraded} degraded)"
        )
        return records

    def _is_header(self, line: str) -> bool:
        fields = line.split()
        if self.profile.family == PlatformFamily.WINDOWS:
            return bool(fields) and fields[0].lower() == 'proto'
        return bool(fields) and fields[0] == _LSOF_HEADER

    def _parse_line(self, line: str, single: bool) -> Optional[PortRecord]:
        try:
            if self.profile.family == PlatformFamily.WINDOWS:
                return self._parse_netstat_line(line, single)
            return self._parse_lsof_line(line)
        except (ValueError, IndexError) as e:
            logger.debug(f"Skipping unparseable line {line!r}: {e}")
            return None

    def _parse_netstat_line(self, line: str, single: bool) -> Optional[PortRecord]:
        """
        netstat -ano rows:

            TCP    0.0.0.0:8080     0.0.0.0:0      LISTENING     1234
            UDP    0.0.0.0:5353     *:*                          2210
        """
        fields = line.split()
        if len(fields) < _NETSTAT_UDP_FIELDS:
            return None

        protocol = Protocol.from_text(fields[0])
        if protocol == Protocol.TCP:
            if len(fields) < _NETSTAT_TCP_FIELDS:
                return None
            state, pid_field = fields[3], fields[4]
        elif protocol == Protocol.UDP:
            state, pid_field = "", fields[3]
        else:
            return None

        port = _port_of(fields[1])
        if port is None:
            return None

        if single and self.profile.pid_strategy == PidStrategy.REGEX_TAIL:
            match = _TRAILING_PID.search(line)
            pid = int(match.group(1)) if match else None
        else:
            pid = _to_int(pid_field)

        return PortRecord(
            port=port,
            pid=pid,
            protocol=protocol,
            state=state,
            local_address=fields[1],
        )

    def _parse_lsof_line(self, line: str) -> Optional[PortRecord]:
        """
        lsof -i -P -n rows:

            node  1234 user  23u  IPv4 0x1a2b  0t0  TCP *:3000 (LISTEN)
            node  1234 user  24u  IPv4 0x1a2c  0t0  TCP 127.0.0.1:3000->127.0.0.1:52114 (ESTABLISHED)
        """
        fields = line.split()
        if len(fields) < _LSOF_MIN_FIELDS or fields[0] == _LSOF_HEADER:
            return None

        local_address = fields[8].split('->', 1)[0]
        port = _port_of(local_address)
        if port is None:
            return None

        state = ""
        if len(fields) > _LSOF_MIN_FIELDS and fields[9].startswith('('):
            state = fields[9].strip('()')

        return PortRecord(
            port=port,
            pid=_to_int(fields[1]),
            # lsof escapes blanks in command names
            process_name=fields[0].replace('\\x20', ' '),
            protocol=Protocol.from_text(fields[7]),
            state=state,
            local_address=local_address,
        )
