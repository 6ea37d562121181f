"""Deterministic weighted selection.

Selectors here take a seed key instead of a stream: the same key, salt and
weights always choose the same entry. They are used where a decision must
not shift the composer's draw stream (tone and voice selection).
"""

import logging
import re
from typing import Mapping, Sequence, TypeVar

from mythic_narrator.exceptions import EmptyPoolError
from mythic_narrator.rng.seeds import hash32, stable_float, stable_int

logger = logging.getLogger(__name__)

T = TypeVar("T")
K = TypeVar("K", bound=str)

MIN_SELECT_WEIGHT = 0.001
MAX_REDRAWS = 4


def weighted_pick(weights: Mapping[K, float], roll: float) -> K:
    """Pick a key proportionally to its non-negative weight.

    Zero-weight keys are never chosen while any positive weight exists. When
    every weight is zero, all keys are treated as equally likely.

    Args:
        weights: Mapping of key to weight.
        roll: Uniform draw in [0, 1).

    Returns:
        The selected key.

    Raises:
        EmptyPoolError: If ``weights`` is empty.

    Examples:
        >>> weighted_pick({"a": 0.0, "b": 2.0}, 0.0)
        'b'
    """
    if not weights:
        raise EmptyPoolError("weighted-pick")
    candidates = [key for key, weight in weights.items() if weight > 0]
    if not candidates:
        candidates = list(weights)
        scaled = {key: 1.0 for key in candidates}
    else:
        scaled = {key: float(weights[key]) for key in candidates}

    total = sum(scaled.values())
    target = min(max(roll, 0.0), 1.0) * total
    cursor = 0.0
    for key in candidates:
        cursor += scaled[key]
        if target < cursor:
            return key
    return candidates[-1]


def weighted_pick_without_immediate_repeat(
    weights: Mapping[K, float],
    seed_key: str,
    last_value: K | None,
    salt: str = "",
) -> K:
    """Weighted pick that refuses to repeat ``last_value`` when it can.

    The first draw uses ``(seed_key, salt)``. If it lands on ``last_value``
    and another positive-weight key exists, the draw is repeated with a salted
    sub-seed, a bounded number of times, before settling on the best-weighted
    alternative. The repeat is accepted only when no alternative exists.

    Args:
        weights: Mapping of key to weight.
        seed_key: Caller-supplied seed key.
        last_value: Previously emitted key, if any.
        salt: Namespace for this decision.

    Returns:
        The selected key.

    Raises:
        EmptyPoolError: If ``weights`` is empty.
    """
    if not weights:
        raise EmptyPoolError("weighted-pick")

    choice = weighted_pick(weights, stable_float(seed_key, salt))
    alternatives = [key for key, weight in weights.items() if weight > 0 and key != last_value]
    if last_value is None or choice != last_value or not alternatives:
        return choice

    for attempt in range(1, MAX_REDRAWS + 1):
        choice = weighted_pick(weights, stable_float(seed_key, f"{salt}:redraw:{attempt}"))
        if choice != last_value:
            return choice

    logger.debug(
        f"Redraw cap reached for {salt or 'selection'}; avoiding repeat of {last_value}"
    )
    remaining = {key: weights[key] for key in alternatives}
    return weighted_pick(remaining, stable_float(seed_key, f"{salt}:settle"))


def pick_deterministic(pool: Sequence[T], seed_key: str, salt: str = "") -> T:
    """Pick an entry by hashing the key and salt.

    Raises:
        EmptyPoolError: If ``pool`` is empty.
    """
    if not pool:
        raise EmptyPoolError("pick")
    return pool[stable_int(seed_key, salt) % len(pool)]


def pick_deterministic_without_immediate_repeat(
    pool: Sequence[T],
    seed_key: str,
    last_value: T | None,
    salt: str = "",
) -> T:
    """Hash-based pick that skips ``last_value`` when the pool allows it."""
    if not pool:
        raise EmptyPoolError("pick")
    if len(pool) == 1:
        return pool[0]
    filtered = [entry for entry in pool if last_value is None or entry != last_value]
    if not filtered:
        return pool[0]
    return filtered[stable_int(seed_key, salt) % len(filtered)]


def hash_line(text: str) -> str:
    """Whitespace- and case-insensitive hex hash of a line."""
    clean = re.sub(r"\s+", " ", text.strip().lower())
    return format(hash32(clean), "x")


def dedupe_keep_order(values: Sequence[str]) -> list[str]:
    """Strip, drop blanks, and drop duplicates while keeping first-seen order."""
    seen: set[str] = set()
    out: list[str] = []
    for value in values:
        clean = value.strip()
        if not clean or clean in seen:
            continue
        seen.add(clean)
        out.append(clean)
    return out
