"""Exception types shared by the menu, terminal, and CLI layers."""

from __future__ import annotations


class TidymacError(Exception):
    """Base class for errors reported to the command line."""


class TerminalUnavailableError(TidymacError):
    """Raised when no usable controlling terminal is attached to stdin."""


class NoItemsError(TidymacError, ValueError):
    """Raised when a menu is requested with zero candidate items."""


class MenuCancelled(TidymacError):
    """Raised when the user quits a menu or it is interrupted by a signal."""

    def __init__(self, reason: str = "cancelled") -> None:
        super().__init__(reason)
        self.reason = reason
