"""Customer Resolver Database Operations.

This module handles all database operations for persistent customer mappings:
- Schema initialization
- Upsert/lookup/delete of mappings
- Sample data seeding

The persistent_customer_mappings table provides fast exact-match lookups
for report names an operator has already resolved. It is keyed by
normalized name, so two spellings that normalize identically share one row.
"""

import sqlite3
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

from customer_resolver.models import MappingOrigin, PersistentMapping
from customer_resolver.normalize import normalize_customer_name


# Default database path (repository root)
DEFAULT_DB_PATH = Path(__file__).resolve().parents[1] / "customer_resolver.db"

PathLike = Union[str, Path]


def _connect(db_path: PathLike) -> sqlite3.Connection:
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    return conn


def init_mapping_db(db_path: PathLike = DEFAULT_DB_PATH) -> None:
    """Initialize customer mapping tables.

    Creates:
    - persistent_customer_mappings: Maps normalized report names to customer IDs

    The table uses a composite unique key on (company_id, normalized_name),
    which is what gives writes their upsert semantics.

    Args:
        db_path: Path to SQLite database file
    """
    conn = _connect(db_path)
    try:
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS persistent_customer_mappings (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                company_id INTEGER NOT NULL,
                report_customer_name TEXT NOT NULL,
                normalized_name TEXT NOT NULL,
                customer_id INTEGER NOT NULL,
                mapping_type TEXT NOT NULL DEFAULT 'user_mapped',
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                UNIQUE(company_id, normalized_name)
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_customer_mapping_lookup
            ON persistent_customer_mappings(company_id, normalized_name)
        """)
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_customer_mapping_customer
            ON persistent_customer_mappings(customer_id)
        """)

        conn.commit()
    finally:
        conn.close()


# =============================================================================
# CRUD Operations
# =============================================================================

def upsert_customer_mapping(
    company_id: int,
    report_customer_name: str,
    customer_id: int,
    mapping_type: MappingOrigin = MappingOrigin.USER_MAPPED,
    db_path: PathLike = DEFAULT_DB_PATH,
) -> PersistentMapping:
    """Save a mapping, replacing any mapping for the same normalized name.

    The original created_at is kept when a row is replaced; updated_at,
    the raw name, the target customer and the origin are overwritten.

    Args:
        company_id: Company the mapping belongs to
        report_customer_name: Raw name from the report
        customer_id: Customer the name resolves to
        mapping_type: Origin of the mapping
        db_path: Path to database

    Returns:
        The stored PersistentMapping

    Raises:
        ValueError: If the name normalizes to an empty string
    """
    normalized = normalize_customer_name(report_customer_name)
    if not normalized:
        raise ValueError(f"Cannot map an empty customer name: {report_customer_name!r}")

    now = datetime.utcnow().isoformat()
    origin = MappingOrigin(mapping_type)

    conn = _connect(db_path)
    try:
        cursor = conn.cursor()
        cursor.execute("""
            INSERT INTO persistent_customer_mappings
            (company_id, report_customer_name, normalized_name, customer_id,
             mapping_type, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(company_id, normalized_name) DO UPDATE SET
                report_customer_name = excluded.report_customer_name,
                customer_id = excluded.customer_id,
                mapping_type = excluded.mapping_type,
                updated_at = excluded.updated_at
        """, (
            company_id,
            report_customer_name,
            normalized,
            customer_id,
            origin.value,
            now,
            now,
        ))
        conn.commit()

        cursor.execute("""
            SELECT * FROM persistent_customer_mappings
            WHERE company_id = ? AND normalized_name = ?
        """, (company_id, normalized))
        return _row_to_mapping(cursor.fetchone())
    finally:
        conn.close()


def get_customer_mapping(
    company_id: int,
    report_customer_name: str,
    db_path: PathLike = DEFAULT_DB_PATH,
) -> Optional[PersistentMapping]:
    """Look up the mapping for a report name.

    This is the fast path for batch analysis - if a mapping exists, the
    group resolves without any scoring.

    Args:
        company_id: Company to search
        report_customer_name: Raw name from the report (normalized here)
        db_path: Path to database

    Returns:
        PersistentMapping if found, None otherwise
    """
    normalized = normalize_customer_name(report_customer_name)
    if not normalized:
        return None

    conn = _connect(db_path)
    try:
        cursor = conn.cursor()
        cursor.execute("""
            SELECT * FROM persistent_customer_mappings
            WHERE company_id = ? AND normalized_name = ?
            ORDER BY updated_at DESC
            LIMIT 1
        """, (company_id, normalized))

        row = cursor.fetchone()
        if row:
            return _row_to_mapping(row)
        return None
    finally:
        conn.close()


def get_mappings_for_company(
    company_id: int,
    db_path: PathLike = DEFAULT_DB_PATH,
) -> List[PersistentMapping]:
    """Get all mappings for a company, ordered by normalized name.

    Useful for viewing/managing the mapping table.
    """
    conn = _connect(db_path)
    try:
        cursor = conn.cursor()
        cursor.execute("""
            SELECT * FROM persistent_customer_mappings
            WHERE company_id = ?
            ORDER BY normalized_name
        """, (company_id,))

        return [_row_to_mapping(row) for row in cursor.fetchall()]
    finally:
        conn.close()


def delete_customer_mapping(
    company_id: int,
    report_customer_name: str,
    db_path: PathLike = DEFAULT_DB_PATH,
) -> bool:
    """Delete the mapping for a report name.

    Returns:
        True if deleted, False if not found
    """
    normalized = normalize_customer_name(report_customer_name)
    if not normalized:
        return False

    conn = _connect(db_path)
    try:
        cursor = conn.cursor()
        cursor.execute("""
            DELETE FROM persistent_customer_mappings
            WHERE company_id = ? AND normalized_name = ?
        """, (company_id, normalized))
        conn.commit()
        return cursor.rowcount > 0
    finally:
        conn.close()


def _row_to_mapping(row: sqlite3.Row) -> PersistentMapping:
    """Convert a database row to PersistentMapping."""
    return PersistentMapping(
        id=row["id"],
        company_id=row["company_id"],
        report_customer_name=row["report_customer_name"],
        normalized_name=row["normalized_name"],
        customer_id=row["customer_id"],
        mapping_type=MappingOrigin(row["mapping_type"]),
        created_at=datetime.fromisoformat(row["created_at"]) if row["created_at"] else None,
        updated_at=datetime.fromisoformat(row["updated_at"]) if row["updated_at"] else None,
    )


# =============================================================================
# Sample Data Seeding
# =============================================================================

SAMPLE_MAPPINGS = [
    (1, "ACME Corp", 5, MappingOrigin.USER_MAPPED),
    (1, "Sharma Traders Pvt. Ltd.", 7, MappingOrigin.USER_MAPPED),
    (1, "New Horizon Exports", 12, MappingOrigin.AUTO_CREATED),
]


def seed_sample_mappings(db_path: PathLike = DEFAULT_DB_PATH) -> dict:
    """Seed the database with sample mappings for company 1.

    Returns:
        Dict with count of written mappings
    """
    init_mapping_db(db_path)

    created = {"mappings": 0}
    for company_id, name, customer_id, origin in SAMPLE_MAPPINGS:
        upsert_customer_mapping(company_id, name, customer_id, origin, db_path=db_path)
        created["mappings"] += 1

    return created


def clear_customer_mappings(db_path: PathLike = DEFAULT_DB_PATH) -> None:
    """Clear all customer mappings (for testing)."""
    conn = _connect(db_path)
    try:
        conn.execute("DELETE FROM persistent_customer_mappings")
        conn.commit()
    except sqlite3.OperationalError:
        # Table doesn't exist yet
        pass
    finally:
        conn.close()
