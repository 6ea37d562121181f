"""Tests for deterministic weighted selection."""

import pytest

from mythic_narrator.exceptions import EmptyPoolError
from mythic_narrator.rng.selection import (
    dedupe_keep_order,
    hash_line,
    pick_deterministic,
    pick_deterministic_without_immediate_repeat,
    weighted_pick,
    weighted_pick_without_immediate_repeat,
)


class TestWeightedPick:
    """Tests for weighted_pick over a weight mapping."""

    def test_zero_weight_never_chosen(self):
        """Zero-weight keys lose while a positive weight exists."""
        for step in range(100):
            assert weighted_pick({"a": 0.0, "b": 2.0}, step / 100) == "b"

    def test_all_zero_weights_still_pick(self):
        """When every weight is zero, some key is still returned."""
        assert weighted_pick({"a": 0.0, "b": 0.0}, 0.7) in ("a", "b")

    def test_proportional_boundaries(self):
        """Low rolls land on the first key, high rolls on the last."""
        weights = {"a": 1.0, "b": 1.0}
        assert weighted_pick(weights, 0.1) == "a"
        assert weighted_pick(weights, 0.9) == "b"

    def test_empty_raises(self):
        """Empty weights are a programming error."""
        with pytest.raises(EmptyPoolError):
            weighted_pick({}, 0.5)


class TestWithoutImmediateRepeat:
    """Tests for weighted_pick_without_immediate_repeat."""

    def test_never_repeats_when_alternatives_exist(self):
        """The last value is avoided across many seeds."""
        weights = {"tactical": 5.0, "mythic": 1.0, "brutal": 1.0}
        for index in range(200):
            choice = weighted_pick_without_immediate_repeat(
                weights, f"seed-{index}", "tactical", "tone-mode"
            )
            assert choice != "tactical"

    def test_repeat_accepted_without_alternatives(self):
        """With no positive-weight alternative, the repeat is returned."""
        weights = {"tactical": 1.0, "mythic": 0.0}
        assert weighted_pick_without_immediate_repeat(weights, "k", "tactical", "s") == "tactical"

    def test_deterministic(self):
        """Same key, salt and last value give the same pick."""
        weights = {"a": 1.0, "b": 2.0, "c": 3.0}
        first = weighted_pick_without_immediate_repeat(weights, "key", "a", "salt")
        second = weighted_pick_without_immediate_repeat(weights, "key", "a", "salt")
        assert first == second


class TestDeterministicPick:
    """Tests for hash-based pool picks."""

    def test_pick_deterministic_stable(self):
        """Same key and salt pick the same entry."""
        pool = ("x", "y", "z")
        assert pick_deterministic(pool, "k", "s") == pick_deterministic(pool, "k", "s")

    def test_pick_deterministic_empty_raises(self):
        """Empty pool raises EmptyPoolError."""
        with pytest.raises(EmptyPoolError):
            pick_deterministic((), "k")

    def test_without_repeat_skips_last(self):
        """The last value is never returned from a multi-entry pool."""
        pool = ("x", "y", "z")
        for index in range(100):
            assert pick_deterministic_without_immediate_repeat(pool, f"k{index}", "y") != "y"

    def test_single_entry_pool(self):
        """A single-entry pool returns that entry even if it repeats."""
        assert pick_deterministic_without_immediate_repeat(("x",), "k", "x") == "x"


class TestLineHelpers:
    """Tests for hash_line and dedupe_keep_order."""

    def test_hash_line_ignores_case_and_spacing(self):
        """Whitespace and case do not change the line hash."""
        assert hash_line("The  Board holds") == hash_line("the board holds ")

    def test_dedupe_keep_order(self):
        """Blanks and duplicates drop; first-seen order stays."""
        assert dedupe_keep_order([" b", "a", "", "b", "c ", "a"]) == ["b", "a", "c"]
