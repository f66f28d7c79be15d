"""Candidate cleanup entries supplied by an external health/cache catalog."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CandidateEntry:
    """One cleanup candidate.

    ``safe`` entries run without asking; the rest need explicit confirmation.
    """

    name: str
    description: str
    action: str
    path: str = ""
    safe: bool = False


def _parse_entry(raw: object) -> CandidateEntry | None:
    if not isinstance(raw, dict):
        return None
    name = raw.get("name")
    action = raw.get("action")
    if not isinstance(name, str) or not name or not isinstance(action, str) or not action:
        return None
    description = raw.get("description")
    path = raw.get("path")
    return CandidateEntry(
        name=name,
        description=description if isinstance(description, str) else "",
        action=action,
        path=path if isinstance(path, str) else "",
        safe=raw.get("safe") is True,
    )


def parse_entries(payload: object) -> list[CandidateEntry]:
    """Parse a list of entries, or an object carrying them under ``optimizations``.

    Malformed entries are skipped.
    """
    if isinstance(payload, dict):
        payload = payload.get("optimizations", [])
    if not isinstance(payload, list):
        return []
    entries: list[CandidateEntry] = []
    for raw in payload:
        entry = _parse_entry(raw)
        if entry is None:
            log.debug("skipping malformed catalog entry: %r", raw)
            continue
        entries.append(entry)
    return entries


def load_entries(path: Path) -> list[CandidateEntry]:
    """Read catalog entries from a JSON file.

    Raises ``OSError`` or ``ValueError`` when the file cannot be read or is
    not valid JSON.
    """
    return parse_entries(json.loads(path.read_text(encoding="utf-8")))


def partition(entries: list[CandidateEntry]) -> tuple[list[CandidateEntry], list[CandidateEntry]]:
    """Split entries into ``(safe, needs_confirmation)`` keeping their order."""
    safe = [entry for entry in entries if entry.safe]
    confirm = [entry for entry in entries if not entry.safe]
    return safe, confirm
