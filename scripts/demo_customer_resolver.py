"""Demo script for the Customer Resolver.

Runs a sample sales-report batch against a sample customer master,
printing how every distinct customer name resolves, then confirms a
couple of matches and shows the next import resolving on its own.

Usage:
    python scripts/demo_customer_resolver.py [--seed] [--db PATH]

Options:
    --seed    Clear and re-seed sample mappings before running
    --db      SQLite database to use (default: CUSTOMER_RESOLVER_DB or repo db)
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core.config import get_settings
from core.observability import configure_logging, get_metrics
from customer_resolver import (
    CustomerResolver,
    KnownCustomer,
    SqliteMappingStore,
    check_for_duplicates,
    normalize_customer_name,
)
from customer_resolver.db import clear_customer_mappings, seed_sample_mappings


COMPANY_ID = 1

SAMPLE_CUSTOMERS = [
    KnownCustomer(id=5, report_customer="Acme Corporation", tally_customer="ACME CORP (MUMBAI)", company_id=COMPANY_ID),
    KnownCustomer(id=7, report_customer="Sharma Traders", tally_customer="Sharma Traders", gst_no="27AAACS1234F1Z5", company_id=COMPANY_ID),
    KnownCustomer(id=9, report_customer="ABC Company Ltd", tally_customer="ABC Co.", state_code="27", company_id=COMPANY_ID),
    KnownCustomer(id=11, report_customer="Bharat Steel Works", tally_customer="Bharat Steel", company_id=COMPANY_ID),
    KnownCustomer(id=12, report_customer="New Horizon Exports", tally_customer="New Horizon", company_id=COMPANY_ID),
]

SAMPLE_ROWS = [
    {"invoice_no": "INV-001", "cust_name": "ACME Corp"},
    {"invoice_no": "INV-002", "cust_name": "Acme Corp."},
    {"invoice_no": "INV-003", "cust_name": "Acme Corporation"},
    {"invoice_no": "INV-004", "cust_name": "ABC Company"},
    {"invoice_no": "INV-005", "cust_name": "Bharat Steel Work"},
    {"invoice_no": "INV-006", "cust_name": "Steel Works Bharat"},
    {"invoice_no": "INV-007", "cust_name": "Sharma Traders Pvt Ltd"},
    {"invoice_no": "INV-008", "cust_name": "Zenith Agro Foods"},
    {"invoice_no": "INV-009", "cust_name": "  "},
]


def show_normalization():
    print("=" * 70)
    print("Normalization")
    print("=" * 70)
    for row in SAMPLE_ROWS:
        name = row["cust_name"]
        print(f"  '{name}' → '{normalize_customer_name(name)}'")
    print()


async def run_batch(resolver: CustomerResolver, title: str):
    print("=" * 70)
    print(title)
    print("=" * 70)

    groups = await resolver.analyze_report_customers(SAMPLE_ROWS, SAMPLE_CUSTOMERS)
    for group in groups:
        print(resolver.explain_group(group))
        print()

    pending = resolver.unverified_groups(groups)
    print(f"Groups: {len(groups)}, unverified: {len(pending)}, can proceed: {resolver.can_proceed(groups)}")
    print()
    return groups


async def confirm_pending(resolver: CustomerResolver, groups):
    """Accept the top candidate, or 'create' a customer when there is none."""
    next_customer_id = max(c.id for c in SAMPLE_CUSTOMERS) + 1

    for group in resolver.unverified_groups(groups):
        if group.detected_matches:
            best = group.detected_matches[0]
            await resolver.map_to_existing(group, best.customer_id)
            print(f"  Mapped '{group.name}' → #{best.customer_id} {best.name}")
            continue

        duplicates = check_for_duplicates(group.name, SAMPLE_CUSTOMERS)
        if duplicates.has_duplicates:
            print(f"  Skipped '{group.name}': {'; '.join(duplicates.warnings)}")
            continue

        new_customer = KnownCustomer(
            id=next_customer_id,
            report_customer=group.name,
            tally_customer=group.name,
            company_id=COMPANY_ID,
        )
        next_customer_id += 1
        SAMPLE_CUSTOMERS.append(new_customer)
        await resolver.record_created_customer(group, new_customer.id)
        print(f"  Created #{new_customer.id} for '{group.name}'")
    print()


async def main(args):
    db_path = Path(args.db) if args.db else get_settings().db_path
    store = SqliteMappingStore(db_path)

    if args.seed:
        print("Clearing existing mappings and seeding sample data...")
        clear_customer_mappings(db_path)
        seed_sample_mappings(db_path)
        print()

    resolver = CustomerResolver(
        store=store,
        company_id=COMPANY_ID,
        config=get_settings().matching_config(),
    )

    show_normalization()

    groups = await run_batch(resolver, "First import")
    await confirm_pending(resolver, groups)
    await run_batch(resolver, "Second import (same report)")

    print("=" * 70)
    print("Persisted mappings")
    print("=" * 70)
    for mapping in await resolver.list_mappings():
        print(f"  '{mapping.normalized_name}' → #{mapping.customer_id} ({mapping.mapping_type.value})")
    print()

    metrics = get_metrics()
    print("Metrics:", metrics.get_summary()["mappings"])
    for stage in ("analyze_batch", "save_mapping"):
        stats = metrics.get_timing_stats(stage)
        print(f"  {stage}: avg {stats['average_ms']:.1f} ms, p95 {stats['p95_ms']:.1f} ms over {stats['sample_count']} samples")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Customer resolver demo")
    parser.add_argument("--seed", action="store_true", help="Clear and seed sample mappings")
    parser.add_argument("--db", help="SQLite database path")
    args = parser.parse_args()

    configure_logging()
    asyncio.run(main(args))
