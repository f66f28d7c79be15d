"""Clean and optimize flows built from scan, menu, session, and actions."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .actions import ActionRegistry
from .catalog import CandidateEntry, partition
from .errors import MenuCancelled
from .menu import SortMetadata, paginated_select
from .scan import ScanCandidate, format_size
from .session import PrivilegedSession

log = logging.getLogger(__name__)

SelectFn = Callable[..., list[int]]


@dataclass
class CleanReport:
    removed: list[ScanCandidate] = field(default_factory=list)
    failed: list[ScanCandidate] = field(default_factory=list)

    @property
    def reclaimed_kb(self) -> int:
        return sum(candidate.size_kb for candidate in self.removed)


@dataclass
class OptimizeReport:
    applied: list[CandidateEntry] = field(default_factory=list)
    failed: list[CandidateEntry] = field(default_factory=list)
    skipped: list[CandidateEntry] = field(default_factory=list)


def print_scan(console: Console, candidates: list[ScanCandidate]) -> None:
    table = Table(show_header=True, header_style="bold cyan", box=None, padding=(0, 2))
    table.add_column("Item")
    table.add_column("Size", justify="right", style="yellow")
    table.add_column("Path", style="dim")
    for candidate in candidates:
        table.add_row(escape(candidate.name), format_size(candidate.size_kb), escape(str(candidate.path)))
    console.print(table)
    total = sum(candidate.size_kb for candidate in candidates)
    console.print(f"\n  [bold green]Total (approx.): {format_size(total)} can be cleaned[/]")


def run_clean(
    candidates: list[ScanCandidate],
    registry: ActionRegistry,
    console: Console,
    *,
    select: SelectFn = paginated_select,
    page_size: int = 10,
    sort_default: str = "date",
    no_color: bool = False,
) -> CleanReport:
    """Let the user pick scan candidates and remove the chosen ones.

    ``MenuCancelled`` from the menu propagates to the caller.
    """
    report = CleanReport()
    if not candidates:
        console.print("[green]✓[/] Nothing to clean")
        return report
    labels = [candidate.name for candidate in candidates]
    metadata = SortMetadata(
        epochs=[candidate.last_used_epoch for candidate in candidates],
        sizes_kb=[candidate.size_kb for candidate in candidates],
    )
    chosen = select(
        "Select items to remove",
        labels,
        (),
        metadata,
        page_size=page_size,
        sort_default=sort_default,
        no_color=no_color,
    )
    for index in chosen:
        candidate = candidates[index]
        if registry.execute("remove_path", str(candidate.path)):
            report.removed.append(candidate)
            console.print(f"[green]✓[/] {escape(candidate.name)} [green]({format_size(candidate.size_kb)})[/]")
        else:
            report.failed.append(candidate)
            console.print(
                f"[yellow]![/] Skipped {escape(candidate.name)} "
                "[dim](grant Full Disk Access to your terminal and retry)[/]"
            )
    return report


def announce(console: Console, entry: CandidateEntry) -> None:
    badge = "" if entry.safe else "[yellow]\\[Confirm][/] "
    line = f"[blue]➤[/] {badge}{escape(entry.name)}"
    if entry.description:
        line += f" [dim]- {escape(entry.description)}[/]"
    console.print(line)


def confirm_entries(
    entries: list[CandidateEntry],
    *,
    select: SelectFn = paginated_select,
    page_size: int = 10,
    no_color: bool = False,
) -> list[CandidateEntry]:
    """Ask which non-safe entries to run; quitting the menu approves none.

    Cancellation by Ctrl-C or a termination signal propagates so the whole
    run stops before anything executes.
    """
    if not entries:
        return []
    labels = [f"{entry.name} - {entry.description}" if entry.description else entry.name for entry in entries]
    try:
        chosen = select("Confirm optimizations to apply", labels, (), None, page_size=page_size, no_color=no_color)
    except MenuCancelled as exc:
        if exc.reason != "cancelled":
            raise
        return []
    return [entries[index] for index in chosen]


def run_optimize(
    entries: list[CandidateEntry],
    registry: ActionRegistry,
    session: PrivilegedSession,
    console: Console,
    *,
    select: SelectFn = paginated_select,
    page_size: int = 10,
    no_color: bool = False,
) -> OptimizeReport:
    """Run safe entries, then the confirmed subset of the remaining ones.

    Privileged actions run only when an administrator session is available;
    a declined prompt skips them instead of aborting the whole run.
    """
    report = OptimizeReport()
    safe, needs_confirmation = partition(entries)
    approved = confirm_entries(needs_confirmation, select=select, page_size=page_size, no_color=no_color)
    report.skipped.extend(entry for entry in needs_confirmation if entry not in approved)
    to_run = safe + approved

    have_admin = False
    if any(registry.is_privileged(entry.action) for entry in to_run):
        have_admin = session.ensure_session("System optimization requires admin access")
        if not have_admin:
            console.print("[yellow]Admin access not granted; skipping privileged steps[/]")

    for entry in to_run:
        if registry.is_privileged(entry.action) and not have_admin:
            report.skipped.append(entry)
            continue
        announce(console, entry)
        if registry.execute(entry.action, entry.path):
            report.applied.append(entry)
        else:
            report.failed.append(entry)
            console.print(f"  [yellow]! {escape(entry.name)} did not complete[/]")
    return report


def print_optimize_summary(console: Console, report: OptimizeReport) -> None:
    details: list[str] = []
    if report.applied:
        details.append(f"Applied [green]{len(report.applied)}[/] optimizations")
    else:
        details.append("System already optimized")
    if report.failed:
        details.append(f"[yellow]{len(report.failed)}[/] did not complete")
    if report.skipped:
        details.append(f"[dim]{len(report.skipped)} skipped[/]")
    console.print(Panel("\n".join(details), title="Optimization Complete", border_style="green", expand=False))


def print_clean_summary(console: Console, report: CleanReport) -> None:
    details = [f"Removed [green]{len(report.removed)}[/] items, {format_size(report.reclaimed_kb)} reclaimed"]
    if report.failed:
        details.append(f"[yellow]{len(report.failed)}[/] could not be removed")
    console.print(Panel("\n".join(details), title="Cleanup Complete", border_style="green", expand=False))
