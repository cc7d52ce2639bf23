"""Quick mapping table check script.

Usage:
    python scripts/check_mapping_db.py [COMPANY_ID] [--db PATH]
"""

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core.config import get_settings
from customer_resolver.db import get_mappings_for_company, init_mapping_db


def main():
    parser = argparse.ArgumentParser(description="List persistent customer mappings")
    parser.add_argument("company_id", type=int, nargs="?", default=1)
    parser.add_argument("--db", help="SQLite database path")
    args = parser.parse_args()

    db_path = Path(args.db) if args.db else get_settings().db_path
    init_mapping_db(db_path)

    mappings = get_mappings_for_company(args.company_id, db_path=db_path)
    print(f"Database: {db_path}")
    print(f"Mappings for company {args.company_id}: {len(mappings)}")
    for m in mappings:
        print(
            f"  '{m.normalized_name}' -> {m.customer_id} "
            f"[{m.mapping_type.value}] raw='{m.report_customer_name}' updated={m.updated_at}"
        )


if __name__ == "__main__":
    main()
