"""Text, JSON and HTML rendering of query results."""

import html
import json
from datetime import datetime

from ..core.models import (
    PortFree, PortOccupied, PortRecord, ProcessTerminated, QueryFailed,
    QueryOutcome, TerminationFailed,
)

TSV_HEADER = "port\tpid\tprocessName\tprotocol"


def render_record(record: PortRecord) -> str:
    """One tab-separated line: port, pid, process name, protocol."""
    pid = "" if record.pid is None else str(record.pid)
    return f"{record.port}\t{pid}\t{record.process_name}\t{record.protocol.value}"


def render_records_tsv(records: list[PortRecord], header: bool = False) -> str:
    """One record per line; ``header`` prepends the column names."""
    lines = [TSV_HEADER] if header else []
    lines.extend(render_record(r) for r in records)
    return "\n".join(lines)


def render_records_json(records: list[PortRecord]) -> str:
    return json.dumps([r.to_dict() for r in records], indent=2)


def describe_record(record: PortRecord) -> str:
    pid = "?" if record.pid is None else record.pid
    parts = [f"{record.display_name} (PID: {pid}, {record.protocol.value}"]
    if record.state:
        parts.append(f", {record.state}")
    parts.append(")")
    return "".join(parts)


def render_outcome(outcome: QueryOutcome) -> str:
    """Single human readable line for a check/kill outcome."""
    if isinstance(outcome, PortFree):
        return f"Port {outcome.port}: PortFree"
    if isinstance(outcome, PortOccupied):
        text = f"Port {outcome.port}: PortOccupied by {describe_record(outcome.record)}"
        if outcome.record.degraded:
            text += " [PID could not be determined]"
        extra = len(outcome.records) - 1
        if extra > 0:
            text += f" (+{extra} more binding{'s' if extra > 1 else ''})"
        return text
    if isinstance(outcome, ProcessTerminated):
        name = f" ({outcome.process_name})" if outcome.process_name else ""
        return f"Port {outcome.port}: ProcessTerminated PID {outcome.pid}{name}"
    if isinstance(outcome, TerminationFailed):
        detail = f": {outcome.message}" if outcome.message else ""
        return f"Port {outcome.port}: TerminationFailed PID {outcome.pid} [{outcome.reason.value}]{detail}"
    if isinstance(outcome, QueryFailed):
        detail = f": {outcome.message}" if outcome.message else ""
        return f"Port {outcome.port}: QueryFailed [{outcome.kind.value}]{detail}"
    raise TypeError(f"Unknown outcome: {outcome!r}")


def is_failure(outcome: QueryOutcome) -> bool:
    return isinstance(outcome, (TerminationFailed, QueryFailed))


HTML_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{title}</title>
<style>
body {{ background-color: #1e1e1e; color: #d4d4d4; font-family: "Segoe UI", Arial, sans-serif; font-size: 13px; }}
table {{ border-collapse: collapse; width: 100%; background-color: #252526; }}
th {{ background-color: #333333; text-align: left; padding: 8px; }}
td {{ padding: 6px 8px; border-top: 1px solid #3c3c3c; }}
tr:nth-child(even) td {{ background-color: #2d2d2d; }}
.degraded {{ color: #f48771; }}
.meta {{ color: #969696; margin-bottom: 8px; }}
</style>
</head>
<body>
<h2>{title}</h2>
<div class="meta">{count} binding(s) as of {generated}</div>
<table>
<thead><tr><th>Port</th><th>Protocol</th><th>State</th><th>PID</th><th>Process</th><th>Local Address</th></tr></thead>
<tbody>
{rows}
</tbody>
</table>
</body>
</html>
"""


def render_html(records: list[PortRecord], title: str = "Ports in use") -> str:
    """Self-contained HTML page with one table row per record. All values are escaped."""
    rows = []
    for r in records:
        pid = "?" if r.pid is None else str(r.pid)
        css = ' class="degraded"' if r.degraded else ""
        cells = (str(r.port), r.protocol.value, r.state, pid, r.process_name, r.local_address)
        rows.append(f"<tr{css}>" + "".join(f"<td>{html.escape(c)}</td>" for c in cells) + "</tr>")
    return HTML_TEMPLATE.format(
        title=html.escape(title),
        count=len(records),
        generated=datetime.now().strftime('%Y-%m-%d %H:%M:%S'),
        rows="\n".join(rows),
    )
