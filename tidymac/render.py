"""Frame rendering for the paginated menu.

Every frame has the same height so repainting in place always overwrites
the previous frame completely.
"""

from __future__ import annotations

import re
import unicodedata

from .scan import format_age, format_size
from .selection import SORT_LABELS, MenuItem, MenuState

PURPLE = "\033[0;35m"
BLUE = "\033[0;34m"
GRAY = "\033[0;90m"
RESET = "\033[0m"

ICON_EMPTY = "○"
ICON_SOLID = "●"
ICON_ARROW = "➤"
ICON_NAV = "↑/↓"

CLEAR_LINE = "\r\033[2K"
CURSOR_HOME = "\033[H"
FOOTER_SEPARATOR = "  |  "
FOOTER_ROWS = 2
HEADER_ROWS = 2

ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]")

HELP_LINES = (
    "Navigation",
    "",
    f"  {ICON_NAV}      Move up/down",
    "  Space    Select/deselect item",
    "  Enter    Confirm (highlighted item when nothing is selected)",
    "  /        Filter by name, / again to clear",
    "  S        Cycle sort: date, name, size",
    "  R        Reverse sort order",
    "  Q / ESC  Exit",
    "",
    "Press any key to continue",
)


def frame_height(page_size: int) -> int:
    """Total number of lines painted for each frame."""
    return HEADER_ROWS + page_size + 1 + FOOTER_ROWS


def visible_width(text: str) -> int:
    """Display width of ``text`` ignoring ANSI escapes, counting wide chars as 2."""
    width = 0
    for ch in ANSI_ESCAPE_RE.sub("", text):
        if unicodedata.combining(ch):
            continue
        width += 2 if unicodedata.east_asian_width(ch) in {"W", "F"} else 1
    return width


def clip(text: str, max_width: int) -> str:
    """Clip plain text to ``max_width`` display cells, marking the cut with ``…``."""
    if visible_width(text) <= max_width:
        return text
    out: list[str] = []
    width = 0
    for ch in text:
        ch_width = visible_width(ch)
        if width + ch_width > max_width - 1:
            break
        out.append(ch)
        width += ch_width
    return "".join(out) + "…"


def _color(code: str, text: str, no_color: bool) -> str:
    return text if no_color else f"{code}{text}{RESET}"


def wrap_controls(segments: list[str], columns: int, separator: str = FOOTER_SEPARATOR) -> list[str]:
    """Join control hints with ``separator``, breaking lines only between hints."""
    lines: list[str] = []
    line = ""
    for segment in segments:
        candidate = segment if not line else f"{line}{separator}{segment}"
        if line and visible_width(candidate) > columns:
            lines.append(line)
            line = segment
        else:
            line = candidate
    lines.append(line)
    return lines


def footer_segments(state: MenuState) -> list[str]:
    """Control hints for the current mode."""
    if state.filter_active:
        return [f"Filter: {state.filter_text or '_'}", "Delete", "Enter", "/ Exit", "ESC"]
    filter_hint = "/ Clear" if state.applied_filter else "/ Filter"
    segments = [ICON_NAV, "Space", "Enter", filter_hint]
    if state.has_metadata and not state.applied_filter:
        arrow = "↓" if state.sort_reverse else "↑"
        segments += [f"S {SORT_LABELS[state.sort_mode]}", f"R {arrow}"]
    segments.append("Q Exit")
    return segments


def _metadata_columns(item: MenuItem) -> str:
    """Size and age columns shown beside the label; never part of the filter text."""
    columns = ""
    if item.size_kb is not None:
        columns += f"  {format_size(item.size_kb):>9}"
    if item.last_used_epoch is not None:
        columns += f"  {format_age(item.last_used_epoch):>7}"
    return columns


def _item_row(state: MenuState, position: int, is_current: bool, columns: int, no_color: bool) -> str:
    index = state.view[position]
    item = state.items[index]
    checkbox = ICON_SOLID if index in state.selected else ICON_EMPTY
    extra = _metadata_columns(item)
    if visible_width(extra) > columns - 12:
        extra = ""
    label_width = max(1, columns - 4 - visible_width(extra))
    label = clip(item.label, label_width)
    if extra:
        label += " " * (label_width - visible_width(label)) + extra
    if is_current:
        return _color(BLUE, f"{ICON_ARROW} {checkbox} {label}", no_color)
    return f"  {checkbox} {label}"


def _body_rows(state: MenuState, columns: int, no_color: bool) -> list[str]:
    if state.show_help:
        return [clip(line, columns) for line in HELP_LINES]
    if not state.view:
        if state.filter_active:
            return []
        return [_color(GRAY, "No items available", no_color)]
    rows: list[str] = []
    for row in range(state.visible_rows):
        rows.append(_item_row(state, state.top + row, row == state.cursor, columns, no_color))
    return rows


def render_frame(state: MenuState, title: str, columns: int = 80, no_color: bool = False) -> list[str]:
    """Build exactly ``frame_height(state.page_size)`` lines for ``state``."""
    columns = max(10, columns)
    count = f"{len(state.selected)}/{len(state.items)} selected"
    header = f"{_color(PURPLE, clip(title, max(1, columns - len(count) - 2)), no_color)}  {_color(GRAY, count, no_color)}"

    body_height = state.page_size + 1
    body = _body_rows(state, columns, no_color)[:body_height]
    body += [""] * (body_height - len(body))

    footer = [clip(line, columns) for line in wrap_controls(footer_segments(state), columns)]
    footer = footer[:FOOTER_ROWS]
    footer += [""] * (FOOTER_ROWS - len(footer))

    return [header, ""] + body + footer


def paint(lines: list[str]) -> str:
    """Compose a redraw-in-place payload: cursor home, then clear-and-write each line."""
    return CURSOR_HOME + "\r\n".join(f"{CLEAR_LINE}{line}" for line in lines)
