"""Command line interface for ExtOrganizer."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .config import OrganizeOptions
from .errors import StartupError
from .logger import configure_logging, log_event, next_log_path
from .models import OperationOutcome
from .organizer import ExtOrganizer
from .reporting import render_outcome, render_summary


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    return args.handler(args)


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid worker count: {value!r}") from exc
    if number < 1:
        raise argparse.ArgumentTypeError("worker count must be at least 1")
    return number


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="extorganizer",
        description="Sort the files of a directory into extension-named subfolders",
    )
    parser.add_argument("path", nargs="?", type=Path, help="Directory to organize")
    parser.add_argument("-p", "--path", dest="path_option", type=Path, help="Directory to organize")
    parser.add_argument(
        "-d",
        "--dry-run",
        action="store_true",
        help="Compute and print every move without touching the filesystem",
    )
    parser.add_argument(
        "-w",
        "--workers",
        type=_positive_int,
        help="Number of worker threads (default: number of CPUs)",
    )
    parser.add_argument(
        "--exclude",
        action="append",
        metavar="PATTERN",
        help="Glob pattern for file or directory names to leave alone (repeatable)",
    )
    parser.add_argument("--format", choices=["text", "markdown", "json"], default="text")
    parser.add_argument(
        "--log-file",
        type=Path,
        help="Write structured JSON logs to this file (default: ~/.ext_organizer/logs/organize-*.log)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Print the log file location")
    parser.set_defaults(handler=_handle_organize)
    return parser


def _handle_organize(args: argparse.Namespace) -> int:
    target = args.path_option or args.path
    if target is None:
        print("A target directory is required (PATH or --path).", file=sys.stderr)
        return 2

    log_path = args.log_file or next_log_path("organize")
    logger = configure_logging(log_path)
    if args.verbose:
        print(f"Log: {log_path}", file=sys.stderr)

    options = OrganizeOptions(
        simulate=args.dry_run,
        workers=args.workers,
        exclude_patterns=tuple(args.exclude or ()),
    )
    organizer = ExtOrganizer(options, logger=logger)
    on_outcome = _print_outcome if args.format == "text" else None
    try:
        summary = organizer.organize(target, on_outcome=on_outcome)
    except StartupError as exc:
        log_event(logger, level=logging.ERROR, action="run.startup_failed", message=str(exc))
        print(f"Cannot organize {target}: {exc}", file=sys.stderr)
        return 1

    print(render_summary(summary, args.format))
    return 0


def _print_outcome(outcome: OperationOutcome) -> None:
    print(render_outcome(outcome), flush=True)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
