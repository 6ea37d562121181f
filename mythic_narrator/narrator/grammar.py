"""Small English helpers for template rendering."""

import re

_SPACE_BEFORE_PUNCT = re.compile(r"\s+([.,!?;:])")
_WHITESPACE = re.compile(r"\s+")
_SIBILANT_ENDINGS = ("s", "x", "z", "ch", "sh")
_VOWELS = "aeiou"


def compact_sentence(text: str) -> str:
    """Collapse whitespace, tidy punctuation, and capitalize.

    Examples:
        >>> compact_sentence("  the  line holds .")
        'The line holds.'
        >>> compact_sentence("hold fast")
        'Hold fast.'
    """
    clean = _WHITESPACE.sub(" ", text or "").strip()
    clean = _SPACE_BEFORE_PUNCT.sub(r"\1", clean)
    if not clean:
        return ""
    clean = clean[0].upper() + clean[1:]
    if clean[-1] not in ".!?:\"'":
        clean += "."
    return clean


def article_for(noun: str) -> str:
    """Return "a" or "an" for the noun's first letter."""
    word = noun.strip().lower()
    return "an" if word and word[0] in _VOWELS else "a"


def pluralize(label: str, count: int) -> str:
    """Pluralize a simple English noun for ``count``."""
    if count == 1:
        return label
    if label.endswith("y") and len(label) > 1 and label[-2] not in _VOWELS:
        return label[:-1] + "ies"
    if label.endswith(_SIBILANT_ENDINGS):
        return label + "es"
    return label + "s"


def third_person(verb: str) -> str:
    """Conjugate a bare verb for a singular third-person subject.

    Examples:
        >>> third_person("carve")
        'carves'
        >>> third_person("push")
        'pushes'
    """
    if verb.endswith("y") and len(verb) > 1 and verb[-2] not in _VOWELS:
        return verb[:-1] + "ies"
    if verb.endswith(_SIBILANT_ENDINGS):
        return verb + "es"
    return verb + "s"


def collapse_whitespace(text: str) -> str:
    """Collapse runs of whitespace into single spaces."""
    return _WHITESPACE.sub(" ", text or "").strip()
