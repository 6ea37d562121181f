"""Tests for seeded draw streams."""

import pytest

from mythic_narrator.exceptions import EmptyPoolError, NarratorError
from mythic_narrator.rng.stream import SeededRng, derive


class TestSeededRng:
    """Tests for SeededRng."""

    def test_same_seed_same_sequence(self):
        """Two streams with the same seed replay the same draws."""
        first = SeededRng(42)
        second = SeededRng(42)
        assert [first.next01() for _ in range(10)] == [second.next01() for _ in range(10)]

    def test_different_seeds_differ(self):
        """Different seeds produce different sequences."""
        first = [SeededRng(1).next01() for _ in range(5)]
        second = [SeededRng(2).next01() for _ in range(5)]
        assert first != second

    def test_values_in_unit_interval(self):
        """Draws are in [0, 1)."""
        rng = SeededRng(7)
        for _ in range(500):
            assert 0.0 <= rng.next01() < 1.0

    def test_draws_are_recorded(self):
        """Every draw is appended to the trace, rounded to 6 places."""
        rng = SeededRng(99)
        values = [rng.next01() for _ in range(3)]
        assert rng.draws == [round(value, 6) for value in values]

    def test_pick_records_a_draw(self):
        """pick consumes exactly one draw."""
        rng = SeededRng(5)
        choice = rng.pick(("carve", "slam", "crack"))
        assert choice in ("carve", "slam", "crack")
        assert len(rng.draws) == 1

    def test_from_key_is_stable(self):
        """from_key streams replay for the same key."""
        assert SeededRng.from_key("abc").next01() == SeededRng.from_key("abc").next01()


class TestWeightedPick:
    """Tests for SeededRng.weighted_pick."""

    def test_only_weighted_entry_wins(self):
        """An entry with all the weight is always chosen."""
        pool = [("a", 0.0), ("b", 10.0)]
        for seed in range(50):
            assert SeededRng(seed).weighted_pick(pool, weight=lambda e: e[1])[0] == "b"

    def test_default_weight_accessor(self):
        """Default accessor reads a .weight attribute."""

        class Entry:
            def __init__(self, name, weight):
                self.name = name
                self.weight = weight

        pool = [Entry("x", 1.0), Entry("y", 2.0)]
        assert SeededRng(3).weighted_pick(pool).name in ("x", "y")

    def test_oversized_weight_treated_as_zero(self):
        pool = [("a", 10**400), ("b", 10.0)]
        for seed in range(20):
            assert SeededRng(seed).weighted_pick(pool, weight=lambda e: e[1])[0] == "b"


class TestEmptyPools:
    """Tests for empty-pool errors."""

    def test_pick_empty_raises(self):
        """Picking from an empty pool is a programming error."""
        with pytest.raises(EmptyPoolError):
            SeededRng(1).pick([])

    def test_weighted_pick_empty_raises(self):
        """Weighted picking from an empty pool is a programming error."""
        with pytest.raises(EmptyPoolError) as exc_info:
            SeededRng(1).weighted_pick([])
        assert exc_info.value.operation == "weighted-pick"

    def test_error_hierarchy(self):
        """EmptyPoolError is both a NarratorError and a ValueError."""
        error = EmptyPoolError("pick")
        assert isinstance(error, NarratorError)
        assert isinstance(error, ValueError)
        assert "empty pool" in str(error)


class TestDerive:
    """Tests for derive."""

    def test_same_label_replays(self):
        """Same seed and label give the same stream."""
        first = derive(42, "narration")
        second = derive(42, "narration")
        assert [first.next01() for _ in range(5)] == [second.next01() for _ in range(5)]

    def test_labels_are_independent(self):
        """Different labels under one seed give different streams."""
        first = derive(42, "narration")
        second = derive(42, "voice")
        assert [first.next01() for _ in range(5)] != [second.next01() for _ in range(5)]
