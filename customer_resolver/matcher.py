"""Match engine for report customer names.

Given one report name and the customer master, produce ranked candidates:
1. Exact pass: normalized names are equal (confidence 1.0)
2. Fuzzy pass: edit distance or token overlap clears a threshold

Exact matches always come first, in the order the customers were given.
Fuzzy matches follow, sorted by confidence (stable, so ties keep their
original order). Nothing here touches storage.

Batch callers normalize the customer master once with normalize_customers()
and pass the result as candidates, so each group only normalizes its own
report name.
"""

from typing import Iterable, List, Optional, Sequence, Tuple

from customer_resolver.models import (
    CustomerMatch,
    KnownCustomer,
    MatchType,
    MatchingConfig,
    DEFAULT_MATCHING_CONFIG,
)
from customer_resolver.normalize import normalize_customer_name
from customer_resolver.scoring import (
    fuzzy_confidence,
    levenshtein_distance,
    token_similarity,
)


# (customer, normalized report_customer) in customer-master order
Candidates = List[Tuple[KnownCustomer, str]]


def normalize_customers(known_customers: Iterable[KnownCustomer]) -> Candidates:
    """Pair every known customer with its normalized report name."""
    return [
        (customer, normalize_customer_name(customer.report_customer))
        for customer in known_customers
    ]


def _exact_pass(normalized: str, candidates: Candidates) -> List[CustomerMatch]:
    return [
        CustomerMatch(
            customer_id=customer.id,
            name=customer.report_customer,
            match_type=MatchType.EXACT,
            confidence=1.0,
        )
        for customer, candidate in candidates
        if candidate == normalized
    ]


def _fuzzy_pass(
    normalized: str,
    candidates: Candidates,
    config: MatchingConfig,
) -> List[CustomerMatch]:
    matches = []

    for customer, candidate in candidates:
        # Exact matches belong to the exact pass; blank names never match
        if not candidate or candidate == normalized:
            continue

        distance = levenshtein_distance(normalized, candidate)
        token_sim = token_similarity(normalized, candidate)

        if (
            distance <= config.max_levenshtein_distance
            or token_sim >= config.min_token_similarity
        ):
            matches.append(CustomerMatch(
                customer_id=customer.id,
                name=customer.report_customer,
                match_type=MatchType.FUZZY,
                confidence=fuzzy_confidence(normalized, candidate),
            ))

    # list.sort is stable: equal confidences keep encounter order
    matches.sort(key=lambda m: m.confidence, reverse=True)
    return matches


def find_exact_matches(
    report_name: str,
    known_customers: Iterable[KnownCustomer],
) -> List[CustomerMatch]:
    """Find customers whose normalized report name equals the report name's.

    Args:
        report_name: Raw customer name from the report
        known_customers: Customer master for the company

    Returns:
        Exact matches in input order (confidence 1.0)
    """
    normalized = normalize_customer_name(report_name)
    if not normalized:
        return []
    return _exact_pass(normalized, normalize_customers(known_customers))


def find_fuzzy_matches(
    report_name: str,
    known_customers: Iterable[KnownCustomer],
    config: MatchingConfig = DEFAULT_MATCHING_CONFIG,
) -> List[CustomerMatch]:
    """Find customers close to the report name without being equal to it.

    A customer qualifies when the edit distance between the normalized
    names is within config.max_levenshtein_distance, or their token
    similarity reaches config.min_token_similarity.

    Args:
        report_name: Raw customer name from the report
        known_customers: Customer master for the company
        config: Matching thresholds

    Returns:
        Fuzzy matches sorted by confidence, highest first
    """
    normalized = normalize_customer_name(report_name)
    if not normalized:
        return []
    return _fuzzy_pass(normalized, normalize_customers(known_customers), config)


def find_matches(
    report_name: str,
    known_customers: Sequence[KnownCustomer],
    config: MatchingConfig = DEFAULT_MATCHING_CONFIG,
    candidates: Optional[Candidates] = None,
) -> List[CustomerMatch]:
    """Find all candidates for a report name: exact matches, then fuzzy.

    Args:
        report_name: Raw customer name from the report
        known_customers: Customer master for the company
        config: Matching thresholds
        candidates: normalize_customers(known_customers), if already computed

    Example:
        >>> customers = [KnownCustomer(id=1, report_customer="ABC Company Ltd")]
        >>> [m.match_type.value for m in find_matches("ABC Company", customers)]
        ['exact']
    """
    normalized = normalize_customer_name(report_name)
    if not normalized:
        return []

    if candidates is None:
        candidates = normalize_customers(known_customers)

    return _exact_pass(normalized, candidates) + _fuzzy_pass(normalized, candidates, config)
