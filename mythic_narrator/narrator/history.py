"""Line history buffer for anti-repetition.

The buffer is owned by the caller and threaded through each narration call
as an explicit value: ``LineHistoryBuffer.from_lists`` copies the caller's
lists in, and ``snapshot()`` hands new lists back. Nothing is kept at module
level.

A candidate line is rejected when it is blank, when it normalizes to a line
already in history, when its similarity to any prior line reaches the
threshold, or when it shares three or more three-word fragments with the
fragment history. Similarity is the larger of:
- Jaccard similarity over lowercase word sets, and
- Dice coefficient over character bigrams of the normalized text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import Iterable, Sequence

from mythic_narrator.narrator.grammar import collapse_whitespace, compact_sentence

DEFAULT_HISTORY_SIZE = 20
MIN_HISTORY_SIZE = 8
MAX_HISTORY_SIZE = 64
DEFAULT_SIMILARITY = 0.76
MIN_SIMILARITY = 0.55
MAX_SIMILARITY = 0.94
FRAGMENT_WINDOW = 3
FRAGMENT_LIMIT = 64
FRAGMENT_OVERLAP_LIMIT = 3

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_TOKEN = re.compile(r"[a-z0-9]+")


def normalize_text(value: str) -> str:
    """Lowercase, strip punctuation, collapse whitespace."""
    return collapse_whitespace(_NON_ALNUM.sub(" ", value.strip().lower()))


def tokenize(value: str) -> list[str]:
    """Lowercase alphanumeric tokens of ``value``."""
    return _TOKEN.findall(normalize_text(value))


def _unique(values: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(values))


def build_fragments(line: str) -> list[str]:
    """Sliding three-word fragments of a line (the whole line if shorter)."""
    tokens = tokenize(line)
    if len(tokens) < FRAGMENT_WINDOW:
        return [" ".join(tokens)] if tokens else []
    return _unique(
        " ".join(tokens[index : index + FRAGMENT_WINDOW])
        for index in range(len(tokens) - FRAGMENT_WINDOW + 1)
    )


def jaccard_similarity(left: Sequence[str], right: Sequence[str]) -> float:
    """Jaccard similarity of two token collections."""
    left_set, right_set = set(left), set(right)
    if not left_set or not right_set:
        return 0.0
    intersection = len(left_set & right_set)
    union = len(left_set | right_set)
    return intersection / union if union else 0.0


def bigram_dice(left: str, right: str) -> float:
    """Dice coefficient over character bigrams (multiset overlap)."""
    left_norm, right_norm = normalize_text(left), normalize_text(right)
    left_bigrams = [left_norm[i : i + 2] for i in range(len(left_norm) - 1)]
    right_bigrams = [right_norm[i : i + 2] for i in range(len(right_norm) - 1)]
    if not left_bigrams or not right_bigrams:
        return 0.0
    counts: dict[str, int] = {}
    for pair in left_bigrams:
        counts[pair] = counts.get(pair, 0) + 1
    overlap = 0
    for pair in right_bigrams:
        if counts.get(pair, 0) > 0:
            counts[pair] -= 1
            overlap += 1
    return (2 * overlap) / (len(left_bigrams) + len(right_bigrams))


def line_similarity(left: str, right: str) -> float:
    """Max of token Jaccard and bigram Dice similarity."""
    return max(jaccard_similarity(tokenize(left), tokenize(right)), bigram_dice(left, right))


def _clamp_size(value: int | None) -> int:
    size = DEFAULT_HISTORY_SIZE if value is None else int(value)
    return max(MIN_HISTORY_SIZE, min(MAX_HISTORY_SIZE, size))


def _clamp_threshold(value: float | None) -> float:
    threshold = DEFAULT_SIMILARITY if value is None else float(value)
    return max(MIN_SIMILARITY, min(MAX_SIMILARITY, threshold))


@dataclass
class LineHistoryBuffer:
    """Bounded, ordered history of emitted lines and their fragments.

    Attributes:
        max_lines: Cap on stored lines; oldest lines drop first.
        similarity_threshold: Similarity at or above which a line is rejected.
        lines: Emitted lines, oldest first.
        fragments: Lowercase three-word fragments, oldest first.
    """

    max_lines: int = DEFAULT_HISTORY_SIZE
    similarity_threshold: float = DEFAULT_SIMILARITY
    lines: list[str] = field(default_factory=list)
    fragments: list[str] = field(default_factory=list)

    @classmethod
    def from_lists(
        cls,
        lines: Sequence[str] | None = None,
        fragments: Sequence[str] | None = None,
        max_lines: int | None = None,
        similarity_threshold: float | None = None,
    ) -> "LineHistoryBuffer":
        """Build a buffer from caller-owned lists without aliasing them.

        Args:
            lines: Prior lines; only the newest ``max_lines`` are kept.
            fragments: Prior fragments; rebuilt from ``lines`` when None.
            max_lines: Cap, clamped to [8, 64].
            similarity_threshold: Threshold, clamped to [0.55, 0.94].
        """
        cap = _clamp_size(max_lines)
        clean_lines = [compact_sentence(str(entry)) for entry in (lines or [])]
        clean_lines = [entry for entry in clean_lines if entry][-cap:]
        if fragments is not None:
            clean_fragments = [collapse_whitespace(str(entry).lower()) for entry in fragments]
            clean_fragments = [entry for entry in clean_fragments if entry][-FRAGMENT_LIMIT:]
        else:
            clean_fragments = _unique(
                fragment for entry in clean_lines for fragment in build_fragments(entry)
            )[-FRAGMENT_LIMIT:]
        return cls(
            max_lines=cap,
            similarity_threshold=_clamp_threshold(similarity_threshold),
            lines=clean_lines,
            fragments=clean_fragments,
        )

    def should_reject(self, candidate: str) -> bool:
        """Whether ``candidate`` repeats or closely echoes recorded history."""
        clean = compact_sentence(candidate)
        if not clean:
            return True
        clean_norm = normalize_text(clean)
        if any(normalize_text(entry) == clean_norm for entry in self.lines):
            return True
        if any(line_similarity(entry, clean) >= self.similarity_threshold for entry in self.lines):
            return True
        known = set(self.fragments)
        overlap = 0
        for fragment in build_fragments(clean):
            if fragment in known:
                overlap += 1
                if overlap >= FRAGMENT_OVERLAP_LIMIT:
                    return True
        return False

    def push(self, line: str) -> None:
        """Append an accepted line, truncating the oldest entries."""
        clean = compact_sentence(line)
        if not clean:
            return
        self.lines = [*self.lines, clean][-self.max_lines :]
        self.fragments = _unique([*self.fragments, *build_fragments(clean)])[-FRAGMENT_LIMIT:]

    def snapshot(self) -> tuple[list[str], list[str]]:
        """Copies of the current lines and fragments."""
        return list(self.lines), list(self.fragments)

    def copy(self) -> "LineHistoryBuffer":
        """Independent buffer with the same settings and contents."""
        return replace(self, lines=list(self.lines), fragments=list(self.fragments))


def should_reject_line(buffer: LineHistoryBuffer, candidate: str) -> bool:
    """Functional alias for ``buffer.should_reject``."""
    return buffer.should_reject(candidate)
