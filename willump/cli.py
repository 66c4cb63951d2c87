#!/usr/bin/env python3
"""
Willump - check, kill and list the processes holding network ports.

Usage:
    willump check-port 3000 8080
    willump kill-port 3000
    willump list-ports [--format tsv|json|html] [--header] [-o FILE]
    willump gui
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .config import APP_NAME, ConfigError, Settings, load_settings
from .core import PortController, ProcessExecutor, ProcessTracker, QueryFailed, WillumpError
from .ui.render import (
    is_failure, render_html, render_outcome, render_records_json, render_records_tsv,
)
from .utils.logging_config import get_logger, setup_logging

logger = get_logger('cli')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="willump",
        description="Inspect and free TCP/UDP ports using netstat (Windows) or lsof (macOS/Linux).",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", type=Path, help="YAML or TOML config file (default: ~/.willump/config.*)")
    parser.add_argument("--timeout", type=float, help="Seconds to wait for each external command")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output to stderr")
    parser.add_argument("--no-names", action="store_true",
                        help="Do not look up process names missing from tool output")

    sub = parser.add_subparsers(dest="command", required=True)

    check = sub.add_parser("check-port", help="Report whether each port is in use")
    check.add_argument("ports", nargs="+", metavar="PORT")

    kill = sub.add_parser("kill-port", help="Kill the process bound to each port")
    kill.add_argument("ports", nargs="+", metavar="PORT")

    listing = sub.add_parser("list-ports", help="List every bound port")
    listing.add_argument("--format", choices=("tsv", "json", "html"), default="tsv")
    listing.add_argument("--header", action="store_true", help="Prefix TSV output with a column header line")
    listing.add_argument("-o", "--output", type=Path, help="Write to this file instead of stdout")

    sub.add_parser("gui", help="Open the desktop panel (requires PyQt6)")
    return parser


def build_controller(settings: Settings) -> PortController:
    executor = ProcessExecutor(timeout=settings.timeout, max_output_bytes=settings.max_output_bytes)
    tracker = ProcessTracker() if settings.resolve_process_names else None
    return PortController(executor=executor, tracker=tracker)


def _emit(text: str, output: Optional[Path] = None):
    if output is None:
        print(text)
        return
    output.write_text(text + "\n", encoding="utf-8")
    logger.info(f"Wrote {output}")


def cmd_check(controller: PortController, args) -> int:
    outcomes = asyncio.run(controller.check_ports(args.ports))
    for outcome in outcomes:
        print(render_outcome(outcome))
    # Informational only
    return 0


def cmd_kill(controller: PortController, args) -> int:
    outcomes = asyncio.run(controller.kill_ports(args.ports))
    for outcome in outcomes:
        print(render_outcome(outcome))
    return 1 if any(is_failure(o) for o in outcomes) else 0


def cmd_list(controller: PortController, args) -> int:
    try:
        records = asyncio.run(controller.list_all_ports())
    except WillumpError as e:
        print(render_outcome(QueryFailed.from_error("*", e)), file=sys.stderr)
        return 1

    if args.format == "json":
        text = render_records_json(records)
    elif args.format == "html":
        text = render_html(records)
    else:
        text = render_records_tsv(records, header=args.header)
    _emit(text, args.output)
    return 0


def cmd_gui(controller: PortController, args, settings: Settings) -> int:
    try:
        from .ui.main_window import run_gui
    except ImportError as e:
        print(f"{APP_NAME} GUI unavailable: {e}", file=sys.stderr)
        return 2
    return run_gui(controller, refresh_ms=settings.gui_refresh_ms)


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_settings(args.config)
        if args.timeout is not None:
            settings.timeout = args.timeout
        if args.verbose:
            settings.log_level = "DEBUG"
        if args.no_names:
            settings.resolve_process_names = False
        settings.validate()
    except ConfigError as e:
        print(f"willump: {e}", file=sys.stderr)
        return 2

    setup_logging(getattr(logging, settings.log_level), log_to_file=settings.log_to_file)
    logger.debug(f"Running '{args.command}' with {settings}")
    controller = build_controller(settings)

    if args.command == "check-port":
        return cmd_check(controller, args)
    if args.command == "kill-port":
        return cmd_kill(controller, args)
    if args.command == "list-ports":
        return cmd_list(controller, args)
    return cmd_gui(controller, args, settings)


if __name__ == "__main__":
    raise SystemExit(main())
