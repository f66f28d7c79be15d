"""Paginated multi-select menu controller.

Owns the render/input loop: terminal setup, bounded-wait key polling,
state transitions, and a single teardown that runs on every exit path,
including SIGTERM/SIGHUP and interpreter shutdown.
"""

from __future__ import annotations

import atexit
import logging
import os
import shutil
import signal
import sys
import threading
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass

from .errors import MenuCancelled, NoItemsError, TerminalUnavailableError
from .input import drain_pending_input, read_key
from .render import paint, render_frame
from .selection import MenuState, build_items, committed_indices, initial_state, transition
from .terminal import TerminalController

log = logging.getLogger(__name__)

POLL_TIMEOUT_MS = 200
TERMINATION_SIGNALS = tuple(
    sig for sig in (getattr(signal, "SIGTERM", None), getattr(signal, "SIGHUP", None)) if sig is not None
)


@dataclass(frozen=True)
class SortMetadata:
    """Optional per-item sort data aligned with the item labels."""

    epochs: Sequence[int] | None = None
    sizes_kb: Sequence[int] | None = None


class _MenuInterrupted(BaseException):
    """Raised from a termination signal handler to unwind the menu loop."""


class MenuSession:
    """One interactive run of the menu on a terminal.

    ``teardown`` is idempotent and is reached from ``finally``, from the
    signal handlers installed for the run, and from ``atexit``.
    """

    def __init__(
        self,
        title: str,
        state: MenuState,
        terminal: TerminalController,
        *,
        no_color: bool = False,
        poll_timeout_ms: int = POLL_TIMEOUT_MS,
        terminal_size: Callable[[], os.terminal_size] | None = None,
    ) -> None:
        self.title = title
        self.state = state
        self.terminal = terminal
        self.no_color = no_color
        self.poll_timeout_ms = poll_timeout_ms
        self.terminal_size = terminal_size or (lambda: shutil.get_terminal_size((80, 24)))
        self._previous_handlers: dict[int, object] = {}
        self._torn_down = False

    def _handle_termination(self, signum: int, frame) -> None:
        log.debug("menu interrupted by signal %s", signum)
        self.teardown()
        raise _MenuInterrupted(signum)

    def _install_signal_handlers(self) -> None:
        if threading.current_thread() is not threading.main_thread():
            return
        for sig in TERMINATION_SIGNALS:
            self._previous_handlers[sig] = signal.signal(sig, self._handle_termination)

    def _restore_signal_handlers(self) -> None:
        for sig, handler in self._previous_handlers.items():
            try:
                signal.signal(sig, handler)
            except (TypeError, ValueError):
                log.debug("could not restore handler for signal %s", sig)
        self._previous_handlers.clear()

    def teardown(self) -> None:
        """Restore the terminal and signal handlers exactly once."""
        if self._torn_down:
            return
        self._torn_down = True
        # The tty is restored before the previous signal handlers come back.
        try:
            self.terminal.restore()
        finally:
            atexit.unregister(self.teardown)
            self._restore_signal_handlers()

    def _paint(self) -> None:
        columns = self.terminal_size().columns
        lines = render_frame(self.state, self.title, columns, self.no_color)
        self.terminal.write(paint(lines).encode("utf-8"))

    def run(self) -> list[int]:
        """Drive the loop until the user confirms or cancels."""
        stdin_fd = self.terminal.stdin_fd
        self._install_signal_handlers()
        atexit.register(self.teardown)
        try:
            self.terminal.enter()
            dirty = True
            last_size = None
            while True:
                size = self.terminal_size()
                if size != last_size:
                    last_size = size
                    dirty = True
                if dirty:
                    self._paint()
                    dirty = False
                key = read_key(stdin_fd, timeout_ms=self.poll_timeout_ms, force_char=self.state.filter_active)
                if not key:
                    continue
                previous = self.state
                self.state = transition(previous, key)
                dirty = self.state != previous
                if self.state.outcome == "confirmed":
                    return committed_indices(self.state)
                if self.state.outcome == "cancelled":
                    raise MenuCancelled("cancelled")
                if previous.filter_active and key == "ENTER":
                    # Drop a doubled Enter that would otherwise confirm immediately.
                    drain_pending_input(stdin_fd)
        except KeyboardInterrupt:
            raise MenuCancelled("interrupted") from None
        except _MenuInterrupted:
            raise MenuCancelled("terminated") from None
        finally:
            self.teardown()


def paginated_select(
    title: str,
    items: Sequence[str],
    preselected: Iterable[int] = (),
    sort_metadata: SortMetadata | None = None,
    *,
    page_size: int = 10,
    sort_default: str = "date",
    stdin_fd: int | None = None,
    stdout_fd: int | None = None,
    no_color: bool = False,
) -> list[int]:
    """Show a paginated multi-select menu and return chosen original indices.

    Returned indices are ascending regardless of the on-screen order. Raises
    ``NoItemsError`` for an empty item list, ``TerminalUnavailableError``
    when stdin is not a terminal, and ``MenuCancelled`` when the user quits
    or the process is interrupted.
    """
    if not items:
        raise NoItemsError("No items provided")
    if stdin_fd is None:
        stdin_fd = sys.stdin.fileno()
    if stdout_fd is None:
        stdout_fd = sys.stdout.fileno()
    if not os.isatty(stdin_fd):
        raise TerminalUnavailableError("interactive menu requires a terminal on stdin")

    metadata = sort_metadata or SortMetadata()
    menu_items = build_items(items, metadata.epochs, metadata.sizes_kb)
    state = initial_state(menu_items, page_size=page_size, preselected=preselected, sort_default=sort_default)
    log.debug(
        "menu %r: %d items, metadata=%s, sort=%s",
        title,
        len(menu_items),
        state.has_metadata,
        state.sort_mode,
    )
    terminal = TerminalController(stdin_fd, stdout_fd)
    return MenuSession(title, state, terminal, no_color=no_color).run()
