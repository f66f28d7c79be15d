"""Filesystem scan for reclaimable space under cache/log roots."""

from __future__ import annotations

import os
import time
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class ScanCandidate:
    """One removable child of a scan root with its size and last-use time."""

    path: Path
    name: str
    size_kb: int
    last_used_epoch: int


def _entry_kb(st: os.stat_result) -> int:
    blocks = getattr(st, "st_blocks", None)
    if blocks is not None:
        return (blocks * 512) // 1024
    return st.st_size // 1024


def disk_usage_kb(path: Path) -> int:
    """Allocated size of ``path`` in KB, like ``du -sk``; unreadable parts count as 0."""
    try:
        st = path.lstat()
    except OSError:
        return 0
    total = _entry_kb(st)
    if not path.is_dir() or path.is_symlink():
        return total
    for dirpath, dirnames, filenames in os.walk(path, onerror=lambda _exc: None):
        for name in dirnames + filenames:
            try:
                total += _entry_kb(os.lstat(os.path.join(dirpath, name)))
            except OSError:
                continue
    return total


def last_used_epoch(path: Path) -> int:
    """Newest of access and modification time for ``path``, 0 on stat failure."""
    try:
        st = path.lstat()
    except OSError:
        return 0
    return int(max(st.st_atime, st.st_mtime))


def scan_directory(root: Path) -> list[ScanCandidate]:
    """List the non-hidden children of ``root`` sorted by name."""
    root = Path(os.path.expanduser(str(root)))
    candidates: list[ScanCandidate] = []
    try:
        with os.scandir(root) as entries:
            children = [Path(entry.path) for entry in entries if not entry.name.startswith(".")]
    except OSError:
        return []
    for child in sorted(children, key=lambda p: p.name.casefold()):
        candidates.append(
            ScanCandidate(
                path=child,
                name=child.name,
                size_kb=disk_usage_kb(child),
                last_used_epoch=last_used_epoch(child),
            )
        )
    return candidates


def scan_roots(roots: Iterable[str | Path]) -> list[ScanCandidate]:
    """Scan every root, skipping missing ones, dropping empty candidates."""
    out: list[ScanCandidate] = []
    for root in roots:
        out.extend(candidate for candidate in scan_directory(Path(root)) if candidate.size_kb > 0)
    return out


def format_size(size_kb: int) -> str:
    """Human-readable size for a KB count (``512KB``, ``1.5MB``, ``2.00GB``)."""
    if size_kb < 1024:
        return f"{size_kb}KB"
    size_mb = size_kb / 1024
    if size_mb < 1024:
        return f"{size_mb:.1f}MB"
    return f"{size_mb / 1024:.2f}GB"


def format_age(epoch: int, now: float | None = None) -> str:
    """Coarse age of ``epoch`` relative to ``now`` (``today``, ``3d``, ``2mo``, ``1y``)."""
    if epoch <= 0:
        return "unknown"
    now = time.time() if now is None else now
    days = max(0, int((now - epoch) // 86400))
    if days == 0:
        return "today"
    if days < 30:
        return f"{days}d"
    if days < 365:
        return f"{days // 30}mo"
    return f"{days // 365}y"
