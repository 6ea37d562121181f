"""Tests for the line history buffer."""

import pytest

from mythic_narrator.narrator.history import (
    LineHistoryBuffer,
    bigram_dice,
    build_fragments,
    jaccard_similarity,
    line_similarity,
    should_reject_line,
)


class TestSimilarity:
    """Tests for the similarity helpers."""

    def test_jaccard(self):
        assert jaccard_similarity(["a", "b"], ["b", "c"]) == pytest.approx(1 / 3)

    def test_jaccard_empty(self):
        assert jaccard_similarity([], ["a"]) == 0.0

    def test_bigram_dice(self):
        assert bigram_dice("night", "nacht") == pytest.approx(0.25)

    def test_line_similarity_is_max(self):
        left, right = "Hold the gate", "hold the gate!"
        assert line_similarity(left, right) == pytest.approx(1.0)

    def test_fragments(self):
        assert build_fragments("Hold the line now.") == ["hold the line", "the line now"]

    def test_short_line_fragment(self):
        assert build_fragments("Go!") == ["go"]


class TestBufferConstruction:
    """Tests for from_lists."""

    @pytest.mark.parametrize("size,expected", [(2, 8), (100, 64), (None, 20), (12, 12)])
    def test_size_clamped(self, size, expected):
        assert LineHistoryBuffer.from_lists(max_lines=size).max_lines == expected

    @pytest.mark.parametrize("threshold,expected", [(0.1, 0.55), (0.99, 0.94), (None, 0.76)])
    def test_threshold_clamped(self, threshold, expected):
        buffer = LineHistoryBuffer.from_lists(similarity_threshold=threshold)
        assert buffer.similarity_threshold == pytest.approx(expected)

    def test_keeps_newest_lines(self):
        lines = [f"Distinct line number {index} here." for index in range(30)]
        buffer = LineHistoryBuffer.from_lists(lines, max_lines=8)
        assert len(buffer.lines) == 8
        assert buffer.lines[-1] == lines[-1]
        assert buffer.lines[0] == lines[22]

    def test_fragments_rebuilt_when_missing(self):
        buffer = LineHistoryBuffer.from_lists(["Hold the line now."])
        assert buffer.fragments == ["hold the line", "the line now"]

    def test_caller_lists_not_aliased(self):
        """Pushing never mutates the lists the caller passed in."""
        lines = ["The gate holds."]
        fragments = ["the gate holds"]
        buffer = LineHistoryBuffer.from_lists(lines, fragments)
        buffer.push("Fresh smoke rolls over the ridge.")
        assert lines == ["The gate holds."]
        assert fragments == ["the gate holds"]
        snap_lines, snap_fragments = buffer.snapshot()
        assert snap_lines is not buffer.lines
        assert snap_fragments is not buffer.fragments


class TestRejection:
    """Tests for should_reject."""

    def test_blank_rejected(self):
        assert LineHistoryBuffer().should_reject("   ")

    def test_exact_repeat_rejected(self):
        buffer = LineHistoryBuffer.from_lists(["The crypt gate holds."])
        assert buffer.should_reject("the crypt gate holds")

    def test_near_duplicate_rejected(self):
        buffer = LineHistoryBuffer.from_lists(["Rook carves the Bone Marshal for 34."])
        assert buffer.should_reject("Rook carves the Bone Marshal for 35.")

    def test_fresh_line_accepted(self):
        buffer = LineHistoryBuffer.from_lists(["Rook carves the Bone Marshal for 34."])
        assert not buffer.should_reject("Wind drags ash across the empty market.")

    def test_fragment_overlap_rejected(self):
        """Three shared fragments reject even without a similar line."""
        buffer = LineHistoryBuffer.from_lists(
            [], ["the iron gate", "iron gate holds", "gate holds firm"]
        )
        assert buffer.should_reject("The iron gate holds firm tonight.")
        assert not buffer.should_reject("The iron gate swings open.")

    def test_functional_alias(self):
        buffer = LineHistoryBuffer.from_lists(["Hold."])
        assert should_reject_line(buffer, "hold")


class TestPush:
    """Tests for push."""

    def test_push_truncates_oldest(self):
        buffer = LineHistoryBuffer.from_lists(max_lines=8)
        for index in range(10):
            buffer.push(f"Unique entry {index} lands.")
        assert len(buffer.lines) == 8
        assert buffer.lines[0] == "Unique entry 2 lands."

    def test_push_records_fragments(self):
        buffer = LineHistoryBuffer()
        buffer.push("hold the line now")
        assert buffer.lines == ["Hold the line now."]
        assert "the line now" in buffer.fragments

    def test_blank_push_ignored(self):
        buffer = LineHistoryBuffer()
        buffer.push("  ")
        assert buffer.lines == []

    def test_copy_is_independent(self):
        buffer = LineHistoryBuffer.from_lists(["The crypt gate groans."], max_lines=12)
        scratch = buffer.copy()
        scratch.push("Rook circles left.")
        assert buffer.lines == ["The crypt gate groans."]
        assert scratch.max_lines == 12
        assert scratch.should_reject("Rook circles left.")
        assert not buffer.should_reject("Rook circles left.")
