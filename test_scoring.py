"""Tests for the similarity scorer."""

import pytest

from customer_resolver.scoring import (
    fuzzy_confidence,
    levenshtein_distance,
    token_similarity,
)


NAMES = ["", "acme", "acme steel", "bharat steel works", "sharma traders", "zenith"]


class TestLevenshteinDistance:

    @pytest.mark.parametrize("a, b, expected", [
        ("kitten", "sitting", 3),
        ("acme", "acme", 0),
        ("acme", "acne", 1),
        ("acme", "", 4),
        ("", "", 0),
        ("steel works", "steel work", 1),
    ])
    def test_known_distances(self, a, b, expected):
        assert levenshtein_distance(a, b) == expected

    @pytest.mark.parametrize("name", NAMES)
    def test_identity(self, name):
        assert levenshtein_distance(name, name) == 0

    @pytest.mark.parametrize("a", NAMES)
    @pytest.mark.parametrize("b", NAMES)
    def test_symmetry(self, a, b):
        assert levenshtein_distance(a, b) == levenshtein_distance(b, a)


class TestTokenSimilarity:

    def test_identical(self):
        assert token_similarity("acme steel works", "acme steel works") == 1.0

    def test_reordered_tokens(self):
        assert token_similarity("steel works bharat", "bharat steel works") == 1.0

    def test_partial_overlap(self):
        # {acme, steel} vs {acme, steel, works}: 2 / 3
        assert token_similarity("acme steel", "acme steel works") == pytest.approx(2 / 3)

    def test_disjoint(self):
        assert token_similarity("acme", "zenith") == 0.0

    def test_case_insensitive(self):
        assert token_similarity("ACME Steel", "acme steel") == 1.0

    def test_both_empty_is_zero(self):
        assert token_similarity("", "") == 0.0

    def test_one_empty_is_zero(self):
        assert token_similarity("acme", "") == 0.0

    @pytest.mark.parametrize("a", NAMES)
    @pytest.mark.parametrize("b", NAMES)
    def test_bounded(self, a, b):
        assert 0.0 <= token_similarity(a, b) <= 1.0


class TestFuzzyConfidence:

    def test_edit_distance_wins(self):
        # distance 1 over 11 chars -> 0.909; tokens {acme, steels} vs {acme, steel} -> 1/3
        assert fuzzy_confidence("acme steels", "acme steel") == 0.91

    def test_token_similarity_wins(self):
        # same tokens, different order: edit score is low, token similarity is 1.0
        assert fuzzy_confidence("steel works bharat", "bharat steel works") == 1.0

    def test_rounds_half_up(self):
        # distance 3 over 8 chars -> 0.625
        assert fuzzy_confidence("abcdefgh", "abcdexyz") == 0.63

    def test_empty_strings(self):
        assert fuzzy_confidence("", "") == 0.0

    def test_two_decimals(self):
        value = fuzzy_confidence("sharma traders", "sharma trader")
        assert value == round(value, 2)
