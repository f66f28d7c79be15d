"""Tests for the paginated menu controller loop.

Keys are fed through a real pipe; the terminal is a fake that records
frames and counts enter/restore calls so teardown can be checked on every
exit path.
"""

from __future__ import annotations

import os
import signal
import unittest
from unittest import mock

from tidymac import input as input_mod
from tidymac.errors import MenuCancelled, NoItemsError, TerminalUnavailableError
from tidymac.menu import MenuSession, SortMetadata, paginated_select
from tidymac.render import frame_height
from tidymac.selection import build_items, initial_state


class FakeTerminal:
    """Records painted frames and feeds scripted input after each paint."""

    def __init__(self, stdin_fd: int, feed_fd: int | None = None, script: list[bytes] | None = None) -> None:
        self.stdin_fd = stdin_fd
        self.feed_fd = feed_fd
        self.script = list(script or [])
        self.frames: list[str] = []
        self.enter_calls = 0
        self.restore_calls = 0
        self.on_paint = None

    def enter(self) -> None:
        self.enter_calls += 1

    def restore(self) -> None:
        self.restore_calls += 1

    def write(self, data: bytes) -> None:
        self.frames.append(data.decode("utf-8"))
        if self.on_paint is not None:
            self.on_paint()
        if self.script and self.feed_fd is not None:
            os.write(self.feed_fd, self.script.pop(0))


def fixed_size() -> os.terminal_size:
    return os.terminal_size((80, 24))


class MenuSessionTests(unittest.TestCase):
    def setUp(self) -> None:
        input_mod._PENDING_BYTES.clear()
        self.read_fd, self.write_fd = os.pipe()
        self.addCleanup(os.close, self.read_fd)
        self.addCleanup(self._close_write)

    def _close_write(self) -> None:
        if self.write_fd is not None:
            os.close(self.write_fd)
            self.write_fd = None

    def session(self, labels: list[str], script: list[bytes], **state_kwargs) -> tuple[MenuSession, FakeTerminal]:
        terminal = FakeTerminal(self.read_fd, self.write_fd, script)
        state = initial_state(build_items(labels), **state_kwargs)
        session = MenuSession("Title", state, terminal, poll_timeout_ms=10, terminal_size=fixed_size)
        return session, terminal

    def test_select_and_confirm_returns_ascending_indices(self) -> None:
        session, terminal = self.session(["b", "a", "c"], [b"\x1b[B", b" ", b"\x1b[A", b" ", b"\r"])

        result = session.run()

        # View order is a(1), b(0), c(2): selected b then a.
        self.assertEqual(result, [0, 1])
        self.assertEqual(terminal.enter_calls, 1)
        self.assertEqual(terminal.restore_calls, 1)

    def test_enter_without_selection_returns_highlighted_item(self) -> None:
        session, terminal = self.session(["b", "a", "c"], [b"\r"])
        self.assertEqual(session.run(), [1])

    def test_quit_raises_cancelled_and_restores_terminal(self) -> None:
        session, terminal = self.session(["a", "b"], [b"q"])

        with self.assertRaises(MenuCancelled) as ctx:
            session.run()

        self.assertEqual(ctx.exception.reason, "cancelled")
        self.assertEqual(terminal.restore_calls, 1)

    def test_frames_repaint_in_place_with_fixed_height(self) -> None:
        session, terminal = self.session([f"row {n}" for n in range(3)], [b"\x1b[B", b"\r"], page_size=5)

        session.run()

        self.assertGreaterEqual(len(terminal.frames), 2)
        for frame in terminal.frames:
            self.assertTrue(frame.startswith("\033[H"))
            self.assertNotIn("\033[2J", frame)
            self.assertEqual(frame.count("\r\n") + 1, frame_height(5))

    def test_typed_filter_letters_are_not_commands(self) -> None:
        session, terminal = self.session(["quick", "slow"], [b"/", b"q", b"\r", b"\r"])

        self.assertEqual(session.run(), [0])

    def test_double_enter_after_filter_commit_is_dropped(self) -> None:
        session, terminal = self.session(["apple", "banana"], [b"/", b"a", b"\r\r", b"q"])

        with self.assertRaises(MenuCancelled):
            session.run()

        self.assertEqual(terminal.restore_calls, 1)

    def test_keyboard_interrupt_becomes_cancel(self) -> None:
        session, terminal = self.session(["a"], [])

        def interrupt() -> None:
            raise KeyboardInterrupt

        terminal.on_paint = interrupt
        with self.assertRaises(MenuCancelled) as ctx:
            session.run()

        self.assertEqual(ctx.exception.reason, "interrupted")
        self.assertEqual(terminal.restore_calls, 1)

    def test_sigterm_runs_teardown_once_and_cancels(self) -> None:
        session, terminal = self.session(["a"], [])
        previous = signal.getsignal(signal.SIGTERM)
        terminal.on_paint = lambda: os.kill(os.getpid(), signal.SIGTERM)

        with self.assertRaises(MenuCancelled) as ctx:
            session.run()

        self.assertEqual(ctx.exception.reason, "terminated")
        self.assertEqual(terminal.restore_calls, 1)
        self.assertEqual(signal.getsignal(signal.SIGTERM), previous)

    def test_closed_input_fails_fast_and_restores(self) -> None:
        session, terminal = self.session(["a"], [])
        self._close_write()

        with self.assertRaises(TerminalUnavailableError):
            session.run()

        self.assertEqual(terminal.restore_calls, 1)

    def test_signal_after_handler_restore_finds_terminal_restored(self) -> None:
        def outer_handler(signum, frame):
            raise SystemExit(128 + signum)

        original = signal.signal(signal.SIGTERM, outer_handler)
        self.addCleanup(signal.signal, signal.SIGTERM, original)
        session, terminal = self.session(["a"], [])
        session._install_signal_handlers()
        restore_handlers = session._restore_signal_handlers

        def restore_then_signal() -> None:
            restore_handlers()
            os.kill(os.getpid(), signal.SIGTERM)

        session._restore_signal_handlers = restore_then_signal
        with self.assertRaises(SystemExit):
            session.teardown()
        session.teardown()

        self.assertEqual(terminal.restore_calls, 1)
        self.assertIs(signal.getsignal(signal.SIGTERM), outer_handler)

    def test_teardown_is_idempotent(self) -> None:
        session, terminal = self.session(["a"], [])

        session.teardown()
        session.teardown()

        self.assertEqual(terminal.restore_calls, 1)


class PaginatedSelectTests(unittest.TestCase):
    def test_empty_items_is_usage_error(self) -> None:
        with self.assertRaises(NoItemsError):
            paginated_select("Title", [])

    def test_non_terminal_stdin_fails_fast(self) -> None:
        read_fd, write_fd = os.pipe()
        try:
            with self.assertRaises(TerminalUnavailableError):
                paginated_select("Title", ["a"], stdin_fd=read_fd, stdout_fd=write_fd)
        finally:
            os.close(read_fd)
            os.close(write_fd)

    def test_builds_state_from_metadata_and_preselection(self) -> None:
        read_fd, write_fd = os.pipe()
        self.addCleanup(os.close, read_fd)
        self.addCleanup(os.close, write_fd)
        captured = {}

        def fake_run(session: MenuSession) -> list[int]:
            captured["state"] = session.state
            return [2]

        with mock.patch("tidymac.menu.os.isatty", return_value=True), mock.patch(
            "tidymac.menu.TerminalController"
        ) as controller_cls, mock.patch.object(MenuSession, "run", fake_run):
            result = paginated_select(
                "Title",
                ["a", "b", "c"],
                preselected=[2, 9],
                sort_metadata=SortMetadata(epochs=[3, 1, 2], sizes_kb=[1, 1, 1]),
                page_size=4,
                stdin_fd=read_fd,
                stdout_fd=write_fd,
            )

        self.assertEqual(result, [2])
        controller_cls.assert_called_once_with(read_fd, write_fd)
        state = captured["state"]
        self.assertTrue(state.has_metadata)
        self.assertEqual(state.sort_mode, "date")
        self.assertEqual(state.view, (1, 2, 0))
        self.assertEqual(state.selected, frozenset({2}))
        self.assertEqual(state.page_size, 4)


if __name__ == "__main__":
    unittest.main()
