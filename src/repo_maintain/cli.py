"""Command-line entrypoint.

Usage:
  repo-maintain <directory> [--dry-run] [--verbose] [--include-minor]
                [--config PATH] [--timeout SECONDS] [--json-report PATH]

Exit status is 0 on normal completion (including when nothing was found or
every update was skipped) and 1 on argument, configuration or missing-tool
errors.
"""

from __future__ import annotations

import argparse
import signal
import sys
import threading
from pathlib import Path

import structlog

from .config import ConfigError, load_settings
from .core import MissingRequirementError, run_maintenance
from .logging_config import setup_logging
from .registry import get_known_handlers
from .report import write_report
from .summary import render_summary

log = structlog.get_logger("repo_maintain.cli")

EXAMPLES = """\
examples:
  repo-maintain /path/to/repo                 update all projects
  repo-maintain /path/to/repo --dry-run       preview updates only
  repo-maintain /path/to/repo --verbose       verbose output
"""


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that exits with status 1 on usage errors."""

    def error(self, message: str) -> None:  # type: ignore[override]
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def _positive_float(value: str) -> float:
    try:
        number = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number: {value!r}") from None
    if number <= 0:
        raise argparse.ArgumentTypeError("must be greater than zero")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="repo-maintain",
        description=(
            "Detect every project in a repository (including monorepos), check "
            "for dependency updates, and apply patch-version updates only. "
            f"Supported: {', '.join(get_known_handlers())}."
        ),
        epilog=EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("directory", type=Path, help="path to the repository to maintain")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="show what would be updated without applying changes",
    )
    parser.add_argument("--verbose", action="store_true", help="enable debug logging")
    parser.add_argument(
        "--include-minor",
        action="store_true",
        default=None,
        help="also apply minor-version updates",
    )
    parser.add_argument("--config", type=Path, default=None, help="path to a JSON settings file")
    parser.add_argument(
        "--timeout",
        type=_positive_float,
        default=None,
        help="seconds allowed for each package-manager command",
    )
    parser.add_argument(
        "--json-report",
        type=Path,
        default=None,
        help="also write a JSON report to this path",
    )
    return parser


def _install_interrupt_handler(cancel_event: threading.Event):
    """First Ctrl-C finishes the current project; a second one aborts."""

    def handler(signum, frame):
        if cancel_event.is_set():
            raise KeyboardInterrupt
        cancel_event.set()
        log.warning("run.interrupt", hint="finishing current project, press Ctrl-C again to abort")

    return signal.signal(signal.SIGINT, handler)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(verbose=args.verbose)

    target: Path = args.directory
    if not target.is_dir():
        print(f"ERROR: Directory does not exist: {target}", file=sys.stderr)
        return 1
    target = target.resolve()

    try:
        settings = load_settings(args.config, target=target).with_overrides(
            include_minor=args.include_minor, timeout=args.timeout
        )
    except ConfigError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    log.info("run.target", directory=str(target), dry_run=args.dry_run)

    cancel_event = threading.Event()
    previous = _install_interrupt_handler(cancel_event)
    try:
        summary = run_maintenance(target, settings, dry_run=args.dry_run, cancel_event=cancel_event)
    except MissingRequirementError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    finally:
        signal.signal(signal.SIGINT, previous)

    if summary.projects_scanned == 0 and not summary.projects_cancelled:
        log.info("run.no_projects", directory=str(target))

    print(render_summary(summary), end="")

    if args.json_report is not None:
        write_report(summary, args.json_report)

    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
