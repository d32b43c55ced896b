"""Tests for safe markdown split points."""

from __future__ import annotations

from cadence.core.markdown import (
    find_enclosing_code_block_start,
    find_last_safe_split_point,
    is_index_inside_code_block,
)


class TestIsIndexInsideCodeBlock:
    def test_outside_any_fence(self) -> None:
        assert is_index_inside_code_block("plain text", 5) is False

    def test_inside_open_fence(self) -> None:
        text = "intro\n```\ncode"
        assert is_index_inside_code_block(text, len(text)) is True

    def test_after_closed_fence(self) -> None:
        text = "```\ncode\n```\nafter"
        assert is_index_inside_code_block(text, len(text)) is False


class TestFindEnclosingCodeBlockStart:
    def test_returns_fence_start(self) -> None:
        text = "intro\n\n```py\nprint(1)"
        assert find_enclosing_code_block_start(text, len(text)) == text.index("```")

    def test_not_inside_block(self) -> None:
        assert find_enclosing_code_block_start("no fences", 3) == -1

    def test_second_block(self) -> None:
        text = "```\na\n```\nmid\n```\nb"
        assert find_enclosing_code_block_start(text, len(text)) == text.rindex("```")


class TestFindLastSafeSplitPoint:
    def test_no_paragraph_break_means_no_split(self) -> None:
        text = "a single paragraph"
        assert find_last_safe_split_point(text) == len(text)

    def test_splits_after_last_paragraph_break(self) -> None:
        text = "first\n\nsecond\n\nthird"
        assert find_last_safe_split_point(text) == text.rindex("\n\n") + 2

    def test_unterminated_fence_pins_split_to_fence(self) -> None:
        text = "Para one.\n\n```python\nx = 1\n\ny = 2"
        assert find_last_safe_split_point(text) == text.index("```")

    def test_open_fence_at_start_stays_live(self) -> None:
        text = "```\ncode\n\nmore"
        assert find_last_safe_split_point(text) == len(text)

    def test_text_right_before_open_fence_stays_live(self) -> None:
        text = "intro\n```\ncode"
        assert find_last_safe_split_point(text) == len(text)

    def test_open_fence_cuts_at_break_before_it(self) -> None:
        text = "a\n\nb\n```\ncode"
        assert find_last_safe_split_point(text) == len("a\n\n")

    def test_skips_breaks_inside_closed_block(self) -> None:
        text = "intro\n\n```\na\n\nb\n```\ntail"
        assert find_last_safe_split_point(text) == len("intro\n\n")

    def test_break_after_closed_block(self) -> None:
        text = "```\na\n```\n\nAnything else?"
        assert find_last_safe_split_point(text) == text.rindex("\n\n") + 2

    def test_trailing_break_equals_length(self) -> None:
        text = "done\n\n"
        assert find_last_safe_split_point(text) == len(text)

    def test_empty(self) -> None:
        assert find_last_safe_split_point("") == 0
