"""Tests for customer name normalization."""

import pytest

from customer_resolver.normalize import (
    LEGAL_SUFFIXES,
    normalize_customer_name,
    tokenize_name,
)


class TestNormalizeCustomerName:
    """Canonical form of report customer names."""

    @pytest.mark.parametrize("raw, expected", [
        ("ABC Company Ltd.", "abc"),
        ("abc company", "abc"),
        ("XYZ Industries Pvt Ltd", "xyz industries"),
        ("XYZ Industries Pvt. Ltd.", "xyz industries"),
        ("Sharma Traders Private Limited", "sharma traders"),
        ("Acme Corp", "acme"),
        ("Acme Corporation", "acme"),
        ("Globex, Inc.", "globex"),
        ("Initech LLC", "initech"),
        ("Deloitte LLP", "deloitte"),
        ("  Bharat   Steel\tWorks  ", "bharat steel works"),
        ("O'Reilly & Sons", "oreilly sons"),
    ])
    def test_known_names(self, raw, expected):
        assert normalize_customer_name(raw) == expected

    def test_suffix_case_and_punctuation_insensitive(self):
        assert normalize_customer_name("ABC Company Ltd.") == normalize_customer_name("abc company")

    @pytest.mark.parametrize("empty", ["", None, "   ", "...", "!!!"])
    def test_empty_input_gives_empty_string(self, empty):
        assert normalize_customer_name(empty) == ""

    def test_suffix_alone_is_kept(self):
        """A suffix needs a preceding word to be stripped."""
        assert normalize_customer_name("Co") == "co"
        assert normalize_customer_name("Limited") == "limited"

    def test_suffix_inside_name_is_kept(self):
        assert normalize_customer_name("Inc Solutions") == "inc solutions"
        assert normalize_customer_name("Coastal Traders") == "coastal traders"

    def test_stacked_suffixes_fully_stripped(self):
        assert normalize_customer_name("Tata Sons Ltd Co") == "tata sons"
        assert normalize_customer_name("Gupta Co Co") == "gupta"

    @pytest.mark.parametrize("raw", [
        "ABC Company Ltd.",
        "Gupta Co Co",
        "Tata Sons Ltd Co",
        "Mehta Private Limited Company",
        "  x   y  z  inc ",
        "Café Coffee Day Pvt. Ltd.",
        "co",
        "",
    ])
    def test_idempotent(self, raw):
        once = normalize_customer_name(raw)
        assert normalize_customer_name(once) == once

    def test_devanagari_vowel_signs_kept(self):
        """Vowel signs and viramas are part of the name, not punctuation."""
        kamla = normalize_customer_name("कमला ट्रेडर्स")
        kamal = normalize_customer_name("कमल ट्रेडर्स")

        assert kamla == "कमला ट्रेडर्स"
        assert kamal == "कमल ट्रेडर्स"
        assert kamla != kamal

    def test_decomposed_accent_same_as_composed(self):
        composed = "Jos\u00e9 Traders"
        decomposed = "Jose\u0301 Traders"

        assert normalize_customer_name(decomposed) == normalize_customer_name(composed)
        assert normalize_customer_name(composed) == "jos\u00e9 traders"

    def test_symbols_removed(self):
        assert normalize_customer_name("Sharma™ Traders + Sons (Delhi)") == "sharma traders sons delhi"

    def test_suffix_list_order(self):
        """Longer multi-word suffixes are tried before their parts."""
        assert LEGAL_SUFFIXES.index("pvt ltd") < LEGAL_SUFFIXES.index("ltd")
        assert LEGAL_SUFFIXES.index("private limited") < LEGAL_SUFFIXES.index("limited")


class TestTokenizeName:

    def test_lowercase_split(self):
        assert tokenize_name("Acme Steel  Works") == ["acme", "steel", "works"]

    def test_no_suffix_stripping(self):
        assert tokenize_name("Acme Ltd") == ["acme", "ltd"]

    def test_empty(self):
        assert tokenize_name("") == []
        assert tokenize_name(None) == []
