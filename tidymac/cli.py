"""Command-line front door for tidymac.

Parses CLI options, loads settings, and dispatches into the scan, clean,
optimize, and select workflows.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.rule import Rule

from .actions import build_registry
from .catalog import load_entries
from .config import load_settings
from .errors import MenuCancelled, NoItemsError, TerminalUnavailableError
from .logs import configure_logging
from .menu import SortMetadata, paginated_select
from .scan import scan_roots
from .session import PrivilegedSession
from .workflows import print_clean_summary, print_optimize_summary, print_scan, run_clean, run_optimize

log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CANCELLED = 1
EXIT_USAGE = 2


def _positive_int(value: str) -> int:
    """argparse type for positive integer values."""
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer value: {value!r}") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("value must be >= 1")
    return parsed


def parse_csv_ints(value: str | None) -> list[int]:
    """Parse ``"1, 2,x,3"`` into ``[1, 2, 3]``; non-numeric tokens are dropped."""
    if not value:
        return []
    out: list[int] = []
    for token in value.split(","):
        token = token.strip()
        if token.isdigit():
            out.append(int(token))
    return out


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tidymac", description="Reclaim disk space and tune up macOS.")
    parser.add_argument("--debug", action="store_true", help="Write diagnostics to the tidymac log file.")
    parser.add_argument("--no-color", action="store_true", help="Disable color output.")
    parser.add_argument("--page-size", type=_positive_int, default=None, help="Menu rows per page.")
    sub = parser.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", help="Show reclaimable space without changing anything.")
    scan.add_argument("roots", nargs="*", help="Directories to scan (default: configured roots).")

    clean = sub.add_parser("clean", help="Pick scanned items to remove.")
    clean.add_argument("roots", nargs="*", help="Directories to scan (default: configured roots).")
    clean.add_argument("--dry-run", action="store_true", help="Show what would be removed.")

    optimize = sub.add_parser("optimize", help="Run maintenance actions from a catalog file.")
    optimize.add_argument("catalog", type=Path, help="JSON file with optimization entries.")
    optimize.add_argument("--dry-run", action="store_true", help="Announce actions without running them.")

    select = sub.add_parser("select", help="Pick items interactively and print their indices.")
    select.add_argument("title")
    select.add_argument("items", nargs="*", help="Menu items (default: one per line on stdin).")
    select.add_argument("--preselect", default="", help="Comma-separated indices selected initially.")
    select.add_argument("--epochs", default="", help="Comma-separated last-used epochs, one per item.")
    select.add_argument("--sizes", default="", help="Comma-separated sizes in KB, one per item.")
    return parser


def _read_stdin_items() -> list[str]:
    """Read menu items from piped stdin, then reattach stdin to the terminal."""
    items = [line.rstrip("\n") for line in sys.stdin if line.strip()]
    try:
        sys.stdin = open("/dev/tty", encoding="utf-8")
    except OSError as exc:
        raise TerminalUnavailableError("no terminal available for the menu") from exc
    return items


def _cmd_select(args: argparse.Namespace, page_size: int, sort_default: str) -> int:
    items = list(args.items) or (_read_stdin_items() if not sys.stdin.isatty() else [])
    epochs = parse_csv_ints(args.epochs) or None
    sizes = parse_csv_ints(args.sizes) or None
    metadata = SortMetadata(epochs=epochs, sizes_kb=sizes) if (epochs or sizes) else None
    chosen = paginated_select(
        args.title,
        items,
        parse_csv_ints(args.preselect),
        metadata,
        page_size=page_size,
        sort_default=sort_default,
        stdout_fd=sys.stderr.fileno(),
        no_color=args.no_color,
    )
    print(",".join(str(index) for index in chosen))
    return EXIT_OK


def run(args: argparse.Namespace) -> int:
    settings = load_settings()
    page_size = args.page_size or settings.page_size
    console = Console(no_color=args.no_color, highlight=False)

    if args.command == "select":
        return _cmd_select(args, page_size, settings.sort_default)

    if args.command == "scan":
        console.print(Rule("[bold cyan]tidymac scan[/]", style="cyan"))
        print_scan(console, scan_roots(args.roots or settings.scan_roots))
        return EXIT_OK

    session = PrivilegedSession(timings=settings.keepalive)
    session.register_cleanup()
    try:
        registry = build_registry(session, settings.actions, dry_run=args.dry_run)
        if args.command == "clean":
            with console.status("Scanning..."):
                candidates = scan_roots(args.roots or settings.scan_roots)
            report = run_clean(
                candidates,
                registry,
                console,
                page_size=page_size,
                sort_default=settings.sort_default,
                no_color=args.no_color,
            )
            print_clean_summary(console, report)
            return EXIT_OK

        try:
            entries = load_entries(args.catalog)
        except (OSError, ValueError) as exc:
            console.print(f"[red]Could not read catalog {args.catalog}: {exc}[/]")
            return EXIT_USAGE
        report = run_optimize(entries, registry, session, console, page_size=page_size, no_color=args.no_color)
        print_optimize_summary(console, report)
        return EXIT_OK
    finally:
        session.stop_session()


def main(argv: list[str] | None = None) -> int:
    """Parse CLI arguments and run the chosen command, returning an exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)
    log_path = configure_logging(args.debug)
    if log_path is not None:
        print(f"Debug log: {log_path}", file=sys.stderr)

    try:
        return run(args)
    except MenuCancelled as exc:
        log.debug("menu cancelled: %s", exc.reason)
        return EXIT_CANCELLED
    except KeyboardInterrupt:
        log.debug("interrupted outside the menu")
        print(file=sys.stderr)
        return EXIT_CANCELLED
    except NoItemsError:
        print("No items provided", file=sys.stderr)
        return EXIT_USAGE
    except TerminalUnavailableError as exc:
        print(f"tidymac: {exc}", file=sys.stderr)
        return EXIT_USAGE
