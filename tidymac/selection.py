"""Pure selection-state engine for the paginated menu.

``transition`` maps ``(state, key)`` to the next state without any I/O.
Items keep their original index forever; filtering and sorting only produce
the ``view`` projection, and selection is keyed by original index so it
survives every rebuild.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace

SORT_CYCLE = {"date": "name", "name": "size", "size": "date"}
SORT_LABELS = {"date": "Date", "name": "Name", "size": "Size"}


@dataclass(frozen=True)
class MenuItem:
    index: int
    label: str
    last_used_epoch: int | None = None
    size_kb: int | None = None


@dataclass(frozen=True)
class MenuState:
    items: tuple[MenuItem, ...]
    page_size: int
    has_metadata: bool
    sort_mode: str = "name"
    sort_reverse: bool = False
    filter_active: bool = False
    filter_text: str = ""
    applied_filter: str = ""
    view: tuple[int, ...] = ()
    cursor: int = 0
    top: int = 0
    selected: frozenset[int] = frozenset()
    show_help: bool = False
    outcome: str | None = None

    @property
    def effective_query(self) -> str:
        """Query currently shaping the view: live while editing, else applied."""
        return self.filter_text if self.filter_active else self.applied_filter

    @property
    def visible_rows(self) -> int:
        """Number of view entries painted in the current window."""
        return max(0, min(self.page_size, len(self.view) - self.top))


def build_items(
    labels: Sequence[str],
    epochs: Sequence[int] | None = None,
    sizes_kb: Sequence[int] | None = None,
) -> tuple[MenuItem, ...]:
    """Pair labels with optional per-item metadata.

    Metadata lists shorter than ``labels`` leave the remaining items without
    a value.
    """
    items: list[MenuItem] = []
    for index, label in enumerate(labels):
        epoch = epochs[index] if epochs is not None and index < len(epochs) else None
        size = sizes_kb[index] if sizes_kb is not None and index < len(sizes_kb) else None
        items.append(MenuItem(index=index, label=label, last_used_epoch=epoch, size_kb=size))
    return tuple(items)


def label_matches(label: str, query: str) -> bool:
    """Case-insensitive substring match; an empty query matches everything."""
    if not query:
        return True
    return query.casefold() in label.casefold()


def _sorted_view(state: MenuState, indices: list[int]) -> list[int]:
    """Sort filtered indices by the active key.

    Each key has a natural direction (date oldest first, name A-Z, size
    largest first) that ``sort_reverse`` inverts. ``sorted`` is stable, also
    with ``reverse=True``, so ties keep original index order.
    """
    items = state.items
    if not state.has_metadata or state.sort_mode == "name":
        return sorted(indices, key=lambda i: items[i].label.casefold(), reverse=state.sort_reverse)
    if state.sort_mode == "size":
        return sorted(indices, key=lambda i: items[i].size_kb or 0, reverse=not state.sort_reverse)
    return sorted(indices, key=lambda i: items[i].last_used_epoch or 0, reverse=state.sort_reverse)


def clamp_window(state: MenuState) -> MenuState:
    """Clamp ``top`` and ``cursor`` to the nearest valid window position."""
    total = len(state.view)
    max_top = max(0, total - state.page_size)
    top = max(0, min(state.top, max_top))
    visible = max(0, min(state.page_size, total - top))
    cursor = max(0, min(state.cursor, visible - 1))
    if top == state.top and cursor == state.cursor:
        return state
    return replace(state, top=top, cursor=cursor)


def rebuild_view(state: MenuState) -> MenuState:
    """Recompute the filtered, sorted projection and re-clamp the window."""
    query = state.effective_query
    filtered = [item.index for item in state.items if label_matches(item.label, query)]
    view = tuple(_sorted_view(state, filtered))
    return clamp_window(replace(state, view=view))


def initial_state(
    items: Sequence[MenuItem],
    page_size: int = 10,
    preselected: Iterable[int] = (),
    sort_default: str = "date",
) -> MenuState:
    """Build the first state for ``items``.

    Without any date or size metadata, sorting is fixed to name order and
    the sort keys are disabled. Out-of-range preselected indices are ignored.
    """
    items = tuple(items)
    has_metadata = any(item.last_used_epoch is not None or item.size_kb is not None for item in items)
    sort_mode = sort_default if sort_default in SORT_CYCLE else "date"
    if not has_metadata:
        sort_mode = "name"
    selected = frozenset(i for i in preselected if 0 <= i < len(items))
    state = MenuState(
        items=items,
        page_size=max(1, page_size),
        has_metadata=has_metadata,
        sort_mode=sort_mode,
        selected=selected,
    )
    return rebuild_view(state)


def current_index(state: MenuState) -> int | None:
    """Original index under the cursor, resolved through the view."""
    position = state.top + state.cursor
    if 0 <= position < len(state.view):
        return state.view[position]
    return None


def committed_indices(state: MenuState) -> list[int]:
    """Selected original indices in ascending order, independent of the view."""
    return sorted(state.selected)


def move_cursor(state: MenuState, delta: int) -> MenuState:
    """Move one row, scrolling the window by a line at the page edges."""
    if not state.view:
        return state
    cursor, top = state.cursor, state.top
    if delta < 0:
        if cursor > 0:
            cursor -= 1
        elif top > 0:
            top -= 1
    else:
        if top + cursor >= len(state.view) - 1:
            return state
        if cursor < state.visible_rows - 1:
            cursor += 1
        elif top + state.visible_rows < len(state.view):
            top += 1
    return clamp_window(replace(state, cursor=cursor, top=top))


def toggle_current(state: MenuState) -> MenuState:
    index = current_index(state)
    if index is None:
        return state
    return replace(state, selected=state.selected ^ {index})


def confirm(state: MenuState) -> MenuState:
    """Finish with the explicit selection, or the cursor item when none."""
    selected = state.selected
    if not selected:
        index = current_index(state)
        if index is not None:
            selected = frozenset({index})
    return replace(state, selected=selected, outcome="confirmed")


def _reset_window(state: MenuState, **changes: object) -> MenuState:
    return rebuild_view(replace(state, top=0, cursor=0, **changes))


def _filter_key(state: MenuState, key: str) -> MenuState:
    """Handle one key while the filter query is being edited."""
    if key == "QUIT" or key == "/":
        return _reset_window(state, filter_active=False, filter_text="", applied_filter="")
    if key == "ENTER":
        return _reset_window(state, filter_active=False, applied_filter=state.filter_text)
    if key == "DELETE":
        if not state.filter_text:
            return state
        return rebuild_view(replace(state, filter_text=state.filter_text[:-1]))
    if key == "UP":
        return move_cursor(state, -1)
    if key == "DOWN":
        return move_cursor(state, 1)
    if len(key) == 1 and key.isprintable():
        if key == " " and not state.filter_text:
            return state
        return rebuild_view(replace(state, filter_text=state.filter_text + key))
    return state


def transition(state: MenuState, key: str) -> MenuState:
    """Return the state after applying ``key``.

    Keys are tokens from :func:`tidymac.input.read_key`. A state with an
    ``outcome`` is final and is returned unchanged.
    """
    if state.outcome is not None or not key:
        return state
    if state.show_help:
        return replace(state, show_help=False)
    if state.filter_active:
        return _filter_key(state, key)

    if key == "QUIT":
        return replace(state, outcome="cancelled")
    if key == "UP":
        return move_cursor(state, -1)
    if key == "DOWN":
        return move_cursor(state, 1)
    if key == "SPACE":
        return toggle_current(state)
    if key == "ENTER":
        return confirm(state)
    if key == "HELP":
        return replace(state, show_help=True)
    if key == "FILTER":
        if state.applied_filter:
            return _reset_window(state, applied_filter="", filter_text="")
        return _reset_window(state, filter_active=True, filter_text="")
    if not state.has_metadata:
        return state
    if key in {"RETRY", "r"}:
        return rebuild_view(replace(state, sort_reverse=not state.sort_reverse))
    if key in {"s", "S"}:
        return rebuild_view(replace(state, sort_mode=SORT_CYCLE[state.sort_mode]))
    return state
