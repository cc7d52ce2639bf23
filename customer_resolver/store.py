"""Persistent mapping store backends.

Provides storage backends for report-name → customer mappings:
- InMemoryMappingStore: For development/testing
- SqliteMappingStore: Durable store in the local SQLite database

Every backend keys mappings by normalized name, per company. Two raw
spellings that normalize identically share one mapping and the later
write wins.
"""

import asyncio
import sqlite3
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from customer_resolver import db
from customer_resolver.models import MappingOrigin, PersistentMapping
from customer_resolver.normalize import normalize_customer_name


class MappingStoreError(Exception):
    """Raised when a mapping store cannot complete an operation."""

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message)
        self.operation = operation


class MappingStore(ABC):
    """Abstract base class for mapping storage."""

    @abstractmethod
    async def get(self, company_id: int, raw_name: str) -> Optional[int]:
        """Return the customer ID mapped to a report name, if any."""
        pass

    @abstractmethod
    async def put(
        self,
        company_id: int,
        raw_name: str,
        customer_id: int,
        origin: MappingOrigin = MappingOrigin.USER_MAPPED,
    ) -> PersistentMapping:
        """Upsert the mapping for a report name."""
        pass

    @abstractmethod
    async def delete(self, company_id: int, raw_name: str) -> bool:
        """Remove the mapping for a report name."""
        pass

    @abstractmethod
    async def list_all(self, company_id: int) -> List[PersistentMapping]:
        """List every mapping of a company."""
        pass


class InMemoryMappingStore(MappingStore):
    """In-memory mapping storage for development/testing.

    WARNING: Mappings are lost on restart.
    """

    def __init__(self):
        self._mappings: Dict[Tuple[int, str], PersistentMapping] = {}
        self._lock = threading.Lock()
        self._next_id = 1

    async def get(self, company_id: int, raw_name: str) -> Optional[int]:
        normalized = normalize_customer_name(raw_name)
        with self._lock:
            mapping = self._mappings.get((company_id, normalized))
            return mapping.customer_id if mapping else None

    async def put(
        self,
        company_id: int,
        raw_name: str,
        customer_id: int,
        origin: MappingOrigin = MappingOrigin.USER_MAPPED,
    ) -> PersistentMapping:
        normalized = normalize_customer_name(raw_name)
        if not normalized:
            raise ValueError(f"Cannot map an empty customer name: {raw_name!r}")

        now = datetime.utcnow()
        with self._lock:
            key = (company_id, normalized)
            existing = self._mappings.get(key)
            if existing:
                mapping_id, created_at = existing.id, existing.created_at
            else:
                mapping_id, created_at = self._next_id, now
                self._next_id += 1

            mapping = PersistentMapping(
                id=mapping_id,
                company_id=company_id,
                report_customer_name=raw_name,
                normalized_name=normalized,
                customer_id=customer_id,
                mapping_type=MappingOrigin(origin),
                created_at=created_at,
                updated_at=now,
            )
            self._mappings[key] = mapping
            return mapping.model_copy()

    async def delete(self, company_id: int, raw_name: str) -> bool:
        key = (company_id, normalize_customer_name(raw_name))
        with self._lock:
            if key in self._mappings:
                del self._mappings[key]
                return True
            return False

    async def list_all(self, company_id: int) -> List[PersistentMapping]:
        with self._lock:
            return [
                mapping.model_copy()
                for (mapping_company, _), mapping in sorted(self._mappings.items())
                if mapping_company == company_id
            ]


class SqliteMappingStore(MappingStore):
    """Mapping storage in the local SQLite database.

    Each call opens its own connection and runs in a worker thread so the
    caller's event loop is never blocked. sqlite3 errors surface as
    MappingStoreError.
    """

    def __init__(self, db_path: Union[str, Path] = db.DEFAULT_DB_PATH, initialize: bool = True):
        self.db_path = Path(db_path)
        if initialize:
            try:
                db.init_mapping_db(self.db_path)
            except sqlite3.Error as e:
                raise MappingStoreError(
                    f"Mapping store init failed: {e}",
                    operation="init",
                ) from e

    async def _run(self, operation: str, func, *args, **kwargs):
        try:
            return await asyncio.to_thread(func, *args, db_path=self.db_path, **kwargs)
        except sqlite3.Error as e:
            raise MappingStoreError(
                f"Mapping store {operation} failed: {e}",
                operation=operation,
            ) from e

    async def get(self, company_id: int, raw_name: str) -> Optional[int]:
        mapping = await self._run("get", db.get_customer_mapping, company_id, raw_name)
        return mapping.customer_id if mapping else None

    async def put(
        self,
        company_id: int,
        raw_name: str,
        customer_id: int,
        origin: MappingOrigin = MappingOrigin.USER_MAPPED,
    ) -> PersistentMapping:
        return await self._run(
            "put",
            db.upsert_customer_mapping,
            company_id,
            raw_name,
            customer_id,
            origin,
        )

    async def delete(self, company_id: int, raw_name: str) -> bool:
        return await self._run("delete", db.delete_customer_mapping, company_id, raw_name)

    async def list_all(self, company_id: int) -> List[PersistentMapping]:
        return await self._run("list_all", db.get_mappings_for_company, company_id)
