"""Customer Name Normalization.

This module canonicalizes free-text customer names from sales reports so
they can be compared against the customer master. The normalization process:
1. Lowercases and trims
2. Removes punctuation and symbols (letters and combining marks of any
   script are kept)
3. Removes trailing legal-entity suffixes (LTD, PVT LTD, LLC, CORP, ...)
4. Collapses whitespace

The normalized name is the join key for exact matching, grouping of report
rows and the persistent mapping table.

Examples:
    "ABC Company Ltd."          → "abc"
    "XYZ Industries Pvt. Ltd."  → "xyz industries"
    "  Acme   Corporation "     → "acme"
"""

import re
import unicodedata
from typing import List, Optional, Pattern, Tuple


# Legal-entity suffixes, tried in this order against the end of the name
LEGAL_SUFFIXES: Tuple[str, ...] = (
    "pvt ltd",
    "private limited",
    "ltd",
    "limited",
    "llp",
    "llc",
    "inc",
    "incorporated",
    "corp",
    "corporation",
    "co",
    "company",
    "pvt",
    "private",
    "ltd co",
    "limited company",
)

_WHITESPACE_RE = re.compile(r"\s+")
_SUFFIX_PATTERNS: List[Pattern[str]] = [
    re.compile(rf"\s+{re.escape(suffix)}\s*$", re.IGNORECASE)
    for suffix in LEGAL_SUFFIXES
]


def _remove_punctuation(text: str) -> str:
    """Drop punctuation, symbol and control characters.

    Vowel signs and viramas (Indic scripts) are combining marks, not
    punctuation, so they stay. Text is NFC-composed first so an accent
    never survives or vanishes depending on how the input was encoded.
    """
    text = unicodedata.normalize("NFC", text)
    return "".join(
        ch for ch in text
        if ch.isspace() or unicodedata.category(ch)[0] not in "PSC"
    )


def _strip_suffixes_once(text: str) -> str:
    """Apply every suffix pattern once, in list order."""
    for pattern in _SUFFIX_PATTERNS:
        text = pattern.sub("", text)
    return text


def normalize_customer_name(name: Optional[str]) -> str:
    """Normalize a report customer name for matching.

    The ordered suffix pass is repeated until the name stops changing so
    stacked suffixes such as "ltd co" collapse fully and the result is
    stable under re-normalization.

    Args:
        name: Raw customer name from the report or the customer master

    Returns:
        Normalized name string ("" for empty input)

    Examples:
        >>> normalize_customer_name("ABC Company Ltd.")
        'abc'
        >>> normalize_customer_name("Acme Corp")
        'acme'
    """
    if not name:
        return ""

    text = name.strip().lower()
    text = _remove_punctuation(text)

    while True:
        stripped = _strip_suffixes_once(text)
        if stripped == text:
            break
        text = stripped

    return _WHITESPACE_RE.sub(" ", text).strip()


def tokenize_name(name: Optional[str]) -> List[str]:
    """Split a name into lowercase whitespace-separated tokens.

    No suffix stripping happens here; callers usually pass a name that
    has already been normalized.

    Examples:
        >>> tokenize_name("Acme Steel Works")
        ['acme', 'steel', 'works']
    """
    if not name:
        return []
    return name.lower().split()
