"""Tests for the content guardrail."""

import pytest

from mythic_narrator.narrator.guardrails import (
    ContentClassifier,
    KeywordContentClassifier,
    is_forbidden,
    matches_hard_ban,
)


class GoblinClassifier:
    """Flags anything mentioning goblins."""

    def is_forbidden(self, text: str) -> bool:
        return "goblin" in text.lower()


class AllowAllClassifier:
    def is_forbidden(self, text: str) -> bool:
        return False


class TestHardBan:
    """Tests for the whole-word banned patterns."""

    @pytest.mark.parametrize("text", ["rape", "Rape", "RAPED", "sexual assault", "molested"])
    def test_banned(self, text):
        assert matches_hard_ban(text)

    @pytest.mark.parametrize("text", ["drapes", "grapes", "therapist", "scrape", "trapeze"])
    def test_substrings_not_banned(self, text):
        """Patterns match whole words only."""
        assert not matches_hard_ban(text)


class TestIsForbidden:
    """Tests for is_forbidden."""

    def test_empty_allowed(self):
        assert not is_forbidden("")

    def test_violence_and_profanity_allowed(self):
        assert not is_forbidden("Damn it, the blade splits his skull and blood sprays.")

    def test_default_keyword_classifier(self):
        assert is_forbidden("A nude statue stands in the square.")

    def test_custom_classifier_consulted(self):
        assert is_forbidden("A goblin laughs.", GoblinClassifier())
        assert not is_forbidden("A goblin laughs.")

    def test_hard_ban_applies_with_custom_classifier(self):
        """The banned list cannot be switched off by the classifier."""
        assert is_forbidden("rape", AllowAllClassifier())

    def test_custom_classifier_replaces_keywords(self):
        assert not is_forbidden("A nude statue stands in the square.", AllowAllClassifier())


class TestKeywordClassifier:
    """Tests for KeywordContentClassifier."""

    def test_satisfies_protocol(self):
        assert isinstance(KeywordContentClassifier(), ContentClassifier)

    def test_whole_words(self):
        classifier = KeywordContentClassifier()
        assert classifier.is_forbidden("SEX")
        assert not classifier.is_forbidden("Sussex road")

    def test_empty_keyword_list(self):
        assert not KeywordContentClassifier(()).is_forbidden("nude")
