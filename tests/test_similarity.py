"""
Tests for Levenshtein distance and name similarity.
"""

import pytest
from crmdedupe.similarity import is_fuzzy_name_match, levenshtein, name_similarity


class TestLevenshtein:
    """Test edit distance."""

    @pytest.mark.parametrize("a,b,expected", [
        ("", "", 0),
        ("", "abc", 3),
        ("kitten", "sitting", 3),
        ("flaw", "lawn", 2),
        ("acme inc", "acme incorporated", 9),
    ])
    def test_known_distances(self, a, b, expected):
        assert levenshtein(a, b) == expected

    def test_symmetric(self):
        pairs = [("acme", "acne"), ("globex", "glob ex corp"), ("", "x")]
        for a, b in pairs:
            assert levenshtein(a, b) == levenshtein(b, a)

    def test_zero_only_for_equal(self):
        assert levenshtein("initech", "initech") == 0
        assert levenshtein("initech", "initek") > 0


class TestNameSimilarity:
    """Test similarity score and threshold."""

    def test_case_insensitive(self):
        assert name_similarity("ACME", "acme") == 1.0

    def test_acme_inc_vs_incorporated(self):
        score = name_similarity("Acme Inc", "Acme Incorporated")
        assert score == pytest.approx(1 - 9 / 17)
        assert not is_fuzzy_name_match("Acme Inc", "Acme Incorporated")

    def test_one_typo_in_long_name_matches(self):
        # 1 edit over 20 characters = 0.95
        assert is_fuzzy_name_match("Acme Industries Corp", "Acme Industries Crop") is False
        assert is_fuzzy_name_match("Acme Industries Corp", "Acme Industries Cord")

    def test_threshold_is_strict(self):
        # 1 edit over 10 characters is exactly 0.9, which is not enough
        assert name_similarity("abcdefghij", "abcdefghix") == pytest.approx(0.9)
        assert not is_fuzzy_name_match("abcdefghij", "abcdefghix")

    def test_empty_names(self):
        assert name_similarity("", "Acme") == 0.0
        assert name_similarity(None, "Acme") == 0.0
