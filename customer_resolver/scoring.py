"""Similarity scoring between normalized customer names.

Two independent measures are combined into the confidence of a fuzzy
candidate:
- Levenshtein edit distance over the full strings
- Jaccard similarity over the sets of whitespace-separated tokens

The stronger of the two wins, so names that are either character-wise
close ("acme steels" / "acme steel") or share most of their words
("steel acme works" / "acme steel works") both rank highly.
"""

import math

from rapidfuzz.distance import Levenshtein

from customer_resolver.normalize import tokenize_name


def levenshtein_distance(a: str, b: str) -> int:
    """Return the classic Levenshtein distance between two strings.

    Insertion, deletion and substitution each cost 1.

    Examples:
        >>> levenshtein_distance("kitten", "sitting")
        3
    """
    return Levenshtein.distance(a or "", b or "")


def token_similarity(a: str, b: str) -> float:
    """Jaccard index of the lowercase token sets of two strings.

    Returns 0.0 when both strings have no tokens.
    """
    tokens_a = set(tokenize_name(a))
    tokens_b = set(tokenize_name(b))

    union = tokens_a | tokens_b
    if not union:
        return 0.0

    return len(tokens_a & tokens_b) / len(union)


def fuzzy_confidence(a: str, b: str) -> float:
    """Combined confidence for a fuzzy candidate, rounded to two decimals.

    confidence = max(1 - distance / max(len(a), len(b)), token_similarity)

    Halves round up (0.625 -> 0.63).
    """
    longest = max(len(a), len(b))
    if longest == 0:
        return 0.0

    edit_score = 1 - levenshtein_distance(a, b) / longest
    confidence = max(edit_score, token_similarity(a, b))
    return math.floor(confidence * 100 + 0.5) / 100
