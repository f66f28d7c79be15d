"""Terminal control helpers for the menu session.

Owns cbreak-mode lifecycle, alternate-screen ownership, and cursor
visibility. Restoration runs at most once per controller and never raises.
"""

from __future__ import annotations

import contextlib
import logging
import os
import termios
import tty

from .config import ENV_MANAGED_ALT_SCREEN, env_flag

log = logging.getLogger(__name__)

ENTER_ALT_SCREEN = b"\x1b[?1049h"
LEAVE_ALT_SCREEN = b"\x1b[?1049l"
CLEAR_SCREEN = b"\x1b[2J\x1b[H"
CURSOR_HOME = b"\x1b[H"
HIDE_CURSOR = b"\x1b[?25l"
SHOW_CURSOR = b"\x1b[?25h"


def alt_screen_managed() -> bool:
    """Return whether an enclosing caller already owns the alternate screen."""
    return env_flag(ENV_MANAGED_ALT_SCREEN)


def sane_attributes(attrs: list) -> list:
    """Return a copy of ``attrs`` with cooked-mode flags switched back on."""
    sane = list(attrs)
    sane[0] |= termios.ICRNL
    sane[1] |= termios.OPOST | termios.ONLCR
    sane[3] |= termios.ICANON | termios.ECHO | termios.ECHOE | termios.ISIG
    return sane


class TerminalController:
    """Enter and leave interactive mode on a pair of terminal descriptors."""

    def __init__(self, stdin_fd: int, stdout_fd: int, manage_alt_screen: bool | None = None) -> None:
        """Capture tty state; ``manage_alt_screen=None`` defers to the env switch."""
        self.stdin_fd = stdin_fd
        self.stdout_fd = stdout_fd
        if manage_alt_screen is None:
            manage_alt_screen = not alt_screen_managed()
        self.manage_alt_screen = manage_alt_screen
        self.owns_alt_screen = False
        self.active = False
        try:
            self._saved_tty_state: list | None = termios.tcgetattr(stdin_fd)
        except (termios.error, OSError):
            log.debug("could not capture tty settings; will restore a sane default")
            self._saved_tty_state = None

    def write(self, data: bytes) -> None:
        os.write(self.stdout_fd, data)

    def enter(self) -> None:
        """Switch to cbreak/no-echo, take the alternate screen if free, hide cursor."""
        self.active = True
        # cbreak keeps ISIG so Ctrl-C still raises SIGINT.
        tty.setcbreak(self.stdin_fd, termios.TCSAFLUSH)
        if self.manage_alt_screen:
            self.write(ENTER_ALT_SCREEN + CLEAR_SCREEN)
            self.owns_alt_screen = True
            os.environ[ENV_MANAGED_ALT_SCREEN] = "1"
        else:
            self.write(CURSOR_HOME)
        self.write(HIDE_CURSOR)

    def _restore_tty(self) -> None:
        if self._saved_tty_state is not None:
            try:
                termios.tcsetattr(self.stdin_fd, termios.TCSADRAIN, self._saved_tty_state)
                return
            except (termios.error, OSError):
                log.debug("restoring saved tty settings failed; applying sane default")
        try:
            current = termios.tcgetattr(self.stdin_fd)
            termios.tcsetattr(self.stdin_fd, termios.TCSADRAIN, sane_attributes(current))
        except (termios.error, OSError):
            log.debug("could not apply sane tty default", exc_info=True)

    def restore(self) -> None:
        """Undo :meth:`enter`. Safe to call repeatedly; later calls are no-ops."""
        if not self.active:
            return
        self.active = False
        try:
            self.write(SHOW_CURSOR)
        except OSError:
            log.debug("could not show cursor", exc_info=True)
        self._restore_tty()
        if self.owns_alt_screen:
            self.owns_alt_screen = False
            os.environ.pop(ENV_MANAGED_ALT_SCREEN, None)
            try:
                self.write(LEAVE_ALT_SCREEN)
            except OSError:
                log.debug("could not leave alternate screen", exc_info=True)

    @contextlib.contextmanager
    def raw_mode(self):
        """Context manager that brackets code with enter/restore calls."""
        try:
            self.enter()
            yield self
        finally:
            self.restore()


@contextlib.contextmanager
def managed_alt_screen(stdout_fd: int):
    """Hold the alternate screen across several menus shown in a row.

    Menus opened inside the block skip their own enter/leave. Nested use is a
    no-op so the outermost owner alone switches screens.
    """
    if alt_screen_managed():
        yield
        return
    os.write(stdout_fd, ENTER_ALT_SCREEN + CLEAR_SCREEN)
    os.environ[ENV_MANAGED_ALT_SCREEN] = "1"
    try:
        yield
    finally:
        os.environ.pop(ENV_MANAGED_ALT_SCREEN, None)
        try:
            os.write(stdout_fd, LEAVE_ALT_SCREEN)
        except OSError:
            log.debug("could not leave alternate screen", exc_info=True)
