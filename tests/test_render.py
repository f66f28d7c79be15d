"""Tests for menu frame rendering.

Frames must always have the same height and show the controls that match
the current mode.
"""

from __future__ import annotations

import unittest

from tidymac.render import (
    ANSI_ESCAPE_RE,
    CLEAR_LINE,
    CURSOR_HOME,
    clip,
    footer_segments,
    frame_height,
    paint,
    render_frame,
    visible_width,
    wrap_controls,
)
from tidymac.selection import MenuItem, build_items, initial_state, transition


def plain(lines: list[str]) -> list[str]:
    return [ANSI_ESCAPE_RE.sub("", line) for line in lines]


class RenderFrameTests(unittest.TestCase):
    def test_frame_height_is_constant_across_states(self) -> None:
        long_state = initial_state(build_items([f"row {n}" for n in range(30)]), page_size=10)
        short_state = initial_state(build_items(["only"]), page_size=10)
        empty_view = transition(transition(long_state, "FILTER"), "z")

        for state in (long_state, short_state, empty_view, transition(short_state, "HELP")):
            self.assertEqual(len(render_frame(state, "Title")), frame_height(10))

    def test_header_counts_selection(self) -> None:
        state = initial_state(build_items(["a", "b", "c"]), preselected=[0, 2])

        header = plain(render_frame(state, "Pick"))[0]

        self.assertIn("Pick", header)
        self.assertIn("2/3 selected", header)

    def test_rows_mark_cursor_and_selection(self) -> None:
        state = initial_state(build_items(["alpha", "beta"]), preselected=[1])

        lines = plain(render_frame(state, "T", no_color=True))

        self.assertEqual(lines[2], "➤ ○ alpha")
        self.assertEqual(lines[3], "  ● beta")

    def test_no_color_emits_no_escape_sequences(self) -> None:
        state = initial_state(build_items(["alpha", "beta"]))
        for line in render_frame(state, "T", no_color=True):
            self.assertNotIn("\033", line)

    def test_empty_result_shows_message_outside_edit_mode(self) -> None:
        state = initial_state(build_items(["alpha"]))
        state = transition(transition(transition(state, "FILTER"), "z"), "ENTER")

        lines = plain(render_frame(state, "T"))

        self.assertEqual(lines[2], "No items available")

    def test_size_and_age_render_beside_label_but_do_not_filter(self) -> None:
        items = (
            MenuItem(0, "Xcode", last_used_epoch=0, size_kb=2048),
            MenuItem(1, "Slack", last_used_epoch=0, size_kb=512),
        )
        state = initial_state(items, sort_default="name")

        lines = plain(render_frame(state, "T", columns=60, no_color=True))

        self.assertTrue(lines[3].startswith("  ○ Xcode "))
        self.assertTrue(lines[3].endswith("2.0MB  unknown"))
        self.assertEqual(visible_width(lines[3]), 60)
        filtered = transition(transition(state, "FILTER"), "m")
        self.assertEqual(filtered.view, ())
        filtered = transition(transition(transition(state, "FILTER"), "k"), "b")
        self.assertEqual(filtered.view, ())

    def test_long_labels_are_clipped_to_width(self) -> None:
        state = initial_state(build_items(["x" * 200]))

        for line in render_frame(state, "T", columns=40, no_color=True):
            self.assertLessEqual(visible_width(line), 40)


class FooterTests(unittest.TestCase):
    def setUp(self) -> None:
        self.items = (
            MenuItem(0, "a", last_used_epoch=1, size_kb=1),
            MenuItem(1, "b", last_used_epoch=2, size_kb=2),
        )

    def test_metadata_footer_shows_sort_controls(self) -> None:
        state = initial_state(self.items, sort_default="size")

        segments = footer_segments(state)

        self.assertIn("S Size", segments)
        self.assertIn("R ↑", segments)
        self.assertIn("/ Filter", segments)

    def test_reverse_arrow_follows_flag(self) -> None:
        state = transition(initial_state(self.items), "RETRY")
        self.assertIn("R ↓", footer_segments(state))

    def test_applied_filter_hides_sort_controls(self) -> None:
        state = initial_state(self.items)
        state = transition(transition(transition(state, "FILTER"), "a"), "ENTER")

        segments = footer_segments(state)

        self.assertIn("/ Clear", segments)
        self.assertFalse(any(segment.startswith("S ") for segment in segments))

    def test_edit_mode_footer_shows_live_query(self) -> None:
        state = transition(initial_state(self.items), "FILTER")
        self.assertEqual(footer_segments(state)[0], "Filter: _")

        state = transition(state, "b")
        self.assertEqual(footer_segments(state)[0], "Filter: b")

    def test_no_metadata_footer_has_no_sort_controls(self) -> None:
        state = initial_state(build_items(["a", "b"]))
        self.assertEqual(footer_segments(state), ["↑/↓", "Space", "Enter", "/ Filter", "Q Exit"])

    def test_wrap_breaks_only_between_segments(self) -> None:
        lines = wrap_controls(["aaaa", "bbbb", "cccc"], columns=12, separator=" | ")
        self.assertEqual(lines, ["aaaa | bbbb", "cccc"])


class PaintTests(unittest.TestCase):
    def test_paint_homes_cursor_and_clears_each_line(self) -> None:
        payload = paint(["one", "two"])

        self.assertTrue(payload.startswith(CURSOR_HOME))
        self.assertEqual(payload, f"{CURSOR_HOME}{CLEAR_LINE}one\r\n{CLEAR_LINE}two")
        self.assertNotIn("\033[2J", payload)

    def test_clip_marks_truncation(self) -> None:
        self.assertEqual(clip("abcdef", 4), "abc…")
        self.assertEqual(clip("abc", 4), "abc")

    def test_visible_width_ignores_ansi_and_counts_wide_chars(self) -> None:
        self.assertEqual(visible_width("\033[0;35mab\033[0m"), 2)
        self.assertEqual(visible_width("日本"), 4)


if __name__ == "__main__":
    unittest.main()
