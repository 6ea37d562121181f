"""Content guardrail for composed narration.

A candidate is forbidden when either check fires:
- the injected ``ContentClassifier`` flags it (default: a keyword classifier
  for sexual content), or
- it matches one of the hard-banned whole-word patterns.

Matching is case-insensitive. Profanity and violence are allowed; the banned
list covers sexual violence and sexual content involving minors.
"""

from __future__ import annotations

import re
from typing import Protocol, runtime_checkable

HARD_BANNED_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"\brap(?:e|ed|es|ing|ist|ists)\b",
        r"\bsexual(?:ly)?\s+assault(?:s|ed|ing)?\b",
        r"\bmolest(?:s|ed|ing|er|ers|ation)?\b",
        r"\bincest(?:uous)?\b",
        r"\bp(?:a)?edophil(?:e|es|ia|ic)\b",
        r"\bchild\s+porn(?:ography)?\b",
        r"\bbestiality\b",
        r"\bnecrophilia\b",
    )
)

SEXUAL_CONTENT_KEYWORDS: tuple[str, ...] = (
    "porn",
    "pornographic",
    "nude",
    "naked",
    "orgasm",
    "erotic",
    "sex",
    "sexual",
    "genitals",
    "intercourse",
)


@runtime_checkable
class ContentClassifier(Protocol):
    """Pluggable content check.

    Implementations return True when the text must not be emitted.
    """

    def is_forbidden(self, text: str) -> bool:
        ...


class KeywordContentClassifier:
    """Whole-word keyword classifier for sexual content."""

    def __init__(self, keywords: tuple[str, ...] = SEXUAL_CONTENT_KEYWORDS) -> None:
        self.keywords = keywords
        alternation = "|".join(re.escape(keyword) for keyword in keywords)
        self._pattern = re.compile(rf"\b(?:{alternation})\b", re.IGNORECASE) if keywords else None

    def is_forbidden(self, text: str) -> bool:
        if self._pattern is None:
            return False
        return self._pattern.search(text) is not None


_DEFAULT_CLASSIFIER = KeywordContentClassifier()


def matches_hard_ban(text: str) -> bool:
    """Whether ``text`` matches any hard-banned pattern."""
    return any(pattern.search(text) for pattern in HARD_BANNED_PATTERNS)


def is_forbidden(text: str, classifier: ContentClassifier | None = None) -> bool:
    """Check a candidate against the classifier and the hard-ban list.

    Args:
        text: Candidate narration.
        classifier: Optional classifier; the keyword classifier when None.

    Returns:
        True if the whole candidate must be rejected.
    """
    if not text:
        return False
    active = classifier if classifier is not None else _DEFAULT_CLASSIFIER
    return active.is_forbidden(text) or matches_hard_ban(text)
