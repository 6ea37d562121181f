"""Seeded randomness for the narrator.

Provides seed derivation, replayable draw streams, and weighted selectors.

Usage:
    >>> from mythic_narrator.rng import build_narration_seed, derive
    >>> seed = build_narration_seed("campaign", "session", "event-1")
    >>> rng = derive(seed, "narration")
    >>> 0.0 <= rng.next01() < 1.0
    True
"""

# Seeds
from mythic_narrator.rng.seeds import (
    build_narration_seed,
    build_seed_key,
    hash32,
    stable_float,
    stable_int,
)

# Streams
from mythic_narrator.rng.stream import SeededRng, derive

# Selection
from mythic_narrator.rng.selection import (
    dedupe_keep_order,
    hash_line,
    pick_deterministic,
    pick_deterministic_without_immediate_repeat,
    weighted_pick,
    weighted_pick_without_immediate_repeat,
)

__all__ = [
    # Seeds
    "build_narration_seed",
    "build_seed_key",
    "hash32",
    "stable_float",
    "stable_int",
    # Streams
    "SeededRng",
    "derive",
    # Selection
    "dedupe_keep_order",
    "hash_line",
    "pick_deterministic",
    "pick_deterministic_without_immediate_repeat",
    "weighted_pick",
    "weighted_pick_without_immediate_repeat",
]
