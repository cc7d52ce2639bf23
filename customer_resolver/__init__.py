"""Customer Resolver - Map sales-report customer names onto the customer master.

This package reconciles the free-text customer names of an imported sales
report with a company's known customers:
- Exact matching on normalized names (legal suffixes, case, punctuation ignored)
- Fuzzy matching by edit distance and token overlap
- Persistent per-company mappings so confirmed names auto-resolve next time

Usage:
    from customer_resolver import CustomerResolver, SqliteMappingStore

    resolver = CustomerResolver(store=SqliteMappingStore(), company_id=1)
    groups = await resolver.analyze_report_customers(rows, known_customers)

    for group in resolver.unverified_groups(groups):
        # Show group.detected_matches to the operator, then either
        await resolver.map_to_existing(group, chosen_customer_id)
        # or, after creating a customer from group.name
        await resolver.record_created_customer(group, new_customer_id)
"""

from customer_resolver.models import (
    KnownCustomer,
    CustomerMatch,
    ReportRow,
    ReportCustomerGroup,
    PersistentMapping,
    DuplicateCheckResult,
    MatchType,
    GroupStatus,
    MappingOrigin,
    MatchingConfig,
    DEFAULT_MATCHING_CONFIG,
)
from customer_resolver.normalize import normalize_customer_name, tokenize_name, LEGAL_SUFFIXES
from customer_resolver.scoring import levenshtein_distance, token_similarity, fuzzy_confidence
from customer_resolver.matcher import find_matches, find_exact_matches, find_fuzzy_matches
from customer_resolver.store import (
    MappingStore,
    MappingStoreError,
    InMemoryMappingStore,
    SqliteMappingStore,
)
from customer_resolver.duplicates import check_for_duplicates
from customer_resolver.resolver import CustomerResolver, analyze_report_customers, group_report_rows

__all__ = [
    # Models
    "KnownCustomer",
    "CustomerMatch",
    "ReportRow",
    "ReportCustomerGroup",
    "PersistentMapping",
    "DuplicateCheckResult",
    "MatchType",
    "GroupStatus",
    "MappingOrigin",
    "MatchingConfig",
    "DEFAULT_MATCHING_CONFIG",
    # Normalization & scoring
    "normalize_customer_name",
    "tokenize_name",
    "LEGAL_SUFFIXES",
    "levenshtein_distance",
    "token_similarity",
    "fuzzy_confidence",
    # Matching
    "find_matches",
    "find_exact_matches",
    "find_fuzzy_matches",
    "check_for_duplicates",
    # Storage
    "MappingStore",
    "MappingStoreError",
    "InMemoryMappingStore",
    "SqliteMappingStore",
    # Resolver
    "CustomerResolver",
    "analyze_report_customers",
    "group_report_rows",
]
