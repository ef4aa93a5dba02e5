"""Tests for termloop.text -- line splitting and visible width."""

from __future__ import annotations

import pytest

from termloop.text import (
    height,
    max_width,
    pad_center,
    pad_left,
    pad_right,
    split_lines,
    strip_ansi,
    visible_width,
)


class TestSplitLines:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("", [""]),
            ("a", ["a"]),
            ("a\nb", ["a", "b"]),
            ("a\nb\n", ["a", "b"]),
            ("a\n\n", ["a", ""]),
            ("\n", [""]),
            ("\na", ["", "a"]),
        ],
    )
    def test_split(self, text: str, expected: list[str]) -> None:
        assert split_lines(text) == expected

    def test_height(self) -> None:
        assert height("one\ntwo\n") == 2
        assert height("") == 1


class TestStripAnsi:
    def test_sgr(self) -> None:
        assert strip_ansi("\x1b[1;31mred\x1b[0m") == "red"

    def test_cursor_codes(self) -> None:
        assert strip_ansi("\x1b[?25lx\x1b[2K") == "x"

    def test_hyperlink(self) -> None:
        assert strip_ansi("\x1b]8;;https://example.com\x07link\x1b]8;;\x07") == "link"

    def test_plain_text_unchanged(self) -> None:
        assert strip_ansi("plain [text]") == "plain [text]"


class TestVisibleWidth:
    def test_empty(self) -> None:
        assert visible_width("") == 0

    def test_ascii(self) -> None:
        assert visible_width("hello") == 5

    def test_escape_codes_take_no_room(self) -> None:
        assert visible_width("\x1b[32mok\x1b[0m") == 2

    def test_tab_counts_three(self) -> None:
        assert visible_width("a\tb") == 5

    def test_wide_cjk(self) -> None:
        assert visible_width("日本") == 4

    def test_combining_mark(self) -> None:
        assert visible_width("é") == 1

    def test_emoji(self) -> None:
        assert visible_width("😀") == 2

    def test_emoji_presentation_selector(self) -> None:
        assert visible_width("❤️") == 2

    def test_control_characters(self) -> None:
        assert visible_width("a\x00b") == 2

    def test_repeated_calls_agree(self) -> None:
        assert visible_width("日本語") == visible_width("日本語") == 6

    def test_max_width(self) -> None:
        assert max_width("a\nbbb\ncc") == 3
        assert max_width("") == 0


class TestPadding:
    def test_pad_right(self) -> None:
        assert pad_right("ab", 4) == "ab  "

    def test_pad_left(self) -> None:
        assert pad_left("ab", 4, ".") == "..ab"

    def test_pad_center_puts_extra_on_right(self) -> None:
        assert pad_center("a", 4) == " a  "

    def test_styled_text_pads_by_visible_width(self) -> None:
        assert pad_right("\x1b[1mab\x1b[0m", 3) == "\x1b[1mab\x1b[0m "

    def test_wider_text_is_not_truncated(self) -> None:
        assert pad_right("abcdef", 3) == "abcdef"
        assert pad_left("abcdef", 3) == "abcdef"
        assert pad_center("abcdef", 3) == "abcdef"
