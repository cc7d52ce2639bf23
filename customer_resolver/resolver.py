"""Customer Resolver Algorithm.

This module turns a batch of report rows into report customer groups and
carries the operator's decisions back into the mapping store:
1. Group rows by normalized customer name
2. Check the mapping store for each group (fast path, verified instantly)
3. Fall back to the match engine; the operator must confirm the result
4. Operator confirmation or customer creation writes a mapping so the
   next import of the same name resolves on its own
"""

import asyncio
import time
from collections.abc import Mapping
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
from uuid import uuid4

from core.observability.logging import get_logger, with_correlation
from core.observability.metrics import MetricsCollector, get_metrics
from customer_resolver.matcher import Candidates, find_matches, normalize_customers
from customer_resolver.models import (
    CustomerMatch,
    GroupStatus,
    KnownCustomer,
    MappingOrigin,
    MatchType,
    MatchingConfig,
    PersistentMapping,
    ReportCustomerGroup,
    DEFAULT_MATCHING_CONFIG,
)
from customer_resolver.normalize import normalize_customer_name
from customer_resolver.store import MappingStore, MappingStoreError


logger = get_logger(__name__)

# Failures of a mapping lookup that only cost us the cache hit
LOOKUP_ERRORS = (MappingStoreError, OSError, asyncio.TimeoutError)


def _row_customer_name(row: Any) -> Optional[str]:
    """Read the customer name from a ReportRow, a dict or any object with cust_name."""
    if isinstance(row, Mapping):
        value = row.get("cust_name")
    else:
        value = getattr(row, "cust_name", None)

    if value is None:
        return None
    return str(value).strip() or None


def group_report_rows(rows: Iterable[Any]) -> List[Tuple[str, str, int]]:
    """Group rows by normalized customer name.

    Rows without a usable name are skipped. The first raw spelling seen
    represents the group.

    Returns:
        (normalized_name, representative_name, row_count) in first-seen order
    """
    groups: Dict[str, List[Any]] = {}

    for row in rows:
        name = _row_customer_name(row)
        if not name:
            continue

        normalized = normalize_customer_name(name)
        if not normalized:
            continue

        if normalized in groups:
            groups[normalized][1] += 1
        else:
            groups[normalized] = [name, 1]

    return [(normalized, name, count) for normalized, (name, count) in groups.items()]


class CustomerResolver:
    """Resolves report customer names to customers of one company.

    Resolution strategy:
    1. Normalize and group the report rows
    2. Check the mapping store for each group (instant, verified)
    3. Otherwise rank exact and fuzzy candidates for the operator
    4. Persist the operator's choice for future imports

    Example:
        resolver = CustomerResolver(store=SqliteMappingStore(), company_id=1)

        groups = await resolver.analyze_report_customers(rows, customers)
        for group in resolver.unverified_groups(groups):
            best = group.detected_matches[0]
            await resolver.map_to_existing(group, best.customer_id)

        if resolver.can_proceed(groups):
            ...  # hand over to the import
    """

    def __init__(
        self,
        store: MappingStore,
        company_id: int,
        config: MatchingConfig = DEFAULT_MATCHING_CONFIG,
        metrics: Optional[MetricsCollector] = None,
    ):
        """Initialize the resolver.

        Args:
            store: Mapping store holding the company's persistent mappings
            company_id: Company whose customers are being matched
            config: Matching thresholds
            metrics: Metrics collector (defaults to the process-wide one)
        """
        self.store = store
        self.company_id = company_id
        self.config = config
        self.metrics = metrics or get_metrics()

    # =========================================================================
    # Batch analysis
    # =========================================================================

    async def analyze_report_customers(
        self,
        rows: Iterable[Any],
        known_customers: Sequence[KnownCustomer],
    ) -> List[ReportCustomerGroup]:
        """Fold a batch of report rows into resolved or unverified groups.

        Groups are processed one at a time; each mapping lookup is awaited
        before the next group starts. Nothing is written to the store here.

        Args:
            rows: Report rows carrying a cust_name field
            known_customers: Customer master for the company

        Returns:
            One ReportCustomerGroup per distinct normalized name, first-seen order
        """
        start_time = time.time()
        batch_id = f"batch-{uuid4().hex[:8]}"

        customers_by_id: Dict[int, KnownCustomer] = {}
        for customer in known_customers:
            customers_by_id.setdefault(customer.id, customer)
        candidates = normalize_customers(known_customers)

        with with_correlation(company_id=self.company_id, batch_id=batch_id, stage="analyze"):
            grouped = group_report_rows(rows)
            used_ids = set()
            results = []

            for normalized, name, count in grouped:
                report_customer_id = self._new_group_id(used_ids)
                with with_correlation(report_customer_id=report_customer_id):
                    group = await self._resolve_group(
                        report_customer_id,
                        name,
                        normalized,
                        count,
                        known_customers,
                        candidates,
                        customers_by_id,
                    )
                results.append(group)

            verified = sum(1 for g in results if g.status == GroupStatus.VERIFIED)
            duration_ms = (time.time() - start_time) * 1000
            self.metrics.record_batch_analyzed(
                groups=len(results),
                rows=sum(g.sample_rows_count for g in results),
                verified=verified,
                duration_ms=duration_ms,
            )
            logger.info(
                "Batch analyzed",
                extra_fields={
                    "groups": len(results),
                    "verified": verified,
                    "unverified": len(results) - verified,
                    "duration_ms": round(duration_ms, 1),
                },
            )

        return results

    async def _resolve_group(
        self,
        report_customer_id: str,
        name: str,
        normalized: str,
        count: int,
        known_customers: Sequence[KnownCustomer],
        candidates: Candidates,
        customers_by_id: Dict[int, KnownCustomer],
    ) -> ReportCustomerGroup:
        mapped_id = await self._lookup_mapping(name)

        if mapped_id is not None:
            customer = customers_by_id.get(mapped_id)
            if customer:
                self.metrics.record_cache_hit()
                logger.debug(
                    f"Persistent mapping hit: '{normalized}' -> {mapped_id}",
                )
                return ReportCustomerGroup(
                    report_customer_id=report_customer_id,
                    name=name,
                    normalized_name=normalized,
                    sample_rows_count=count,
                    detected_matches=[CustomerMatch(
                        customer_id=customer.id,
                        name=customer.report_customer,
                        match_type=MatchType.EXACT,
                        confidence=1.0,
                    )],
                    status=GroupStatus.VERIFIED,
                    mapped_customer_id=customer.id,
                )

            self.metrics.record_stale_hit()
            logger.warning(
                f"Persistent mapping for '{normalized}' points at missing customer {mapped_id}",
            )
        else:
            self.metrics.record_cache_miss()

        matches = find_matches(name, known_customers, self.config, candidates=candidates)

        exact_ids = [m.customer_id for m in matches if m.match_type == MatchType.EXACT]
        if len(exact_ids) > 1:
            logger.warning(
                f"Ambiguous exact match for '{normalized}'",
                extra_fields={"customer_ids": exact_ids},
            )

        return ReportCustomerGroup(
            report_customer_id=report_customer_id,
            name=name,
            normalized_name=normalized,
            sample_rows_count=count,
            detected_matches=matches,
            status=GroupStatus.UNVERIFIED,
        )

    async def _lookup_mapping(self, name: str) -> Optional[int]:
        """Query the store; a failed lookup counts as no mapping."""
        try:
            return await self.store.get(self.company_id, name)
        except LOOKUP_ERRORS as e:
            self.metrics.record_lookup_failure()
            logger.warning(
                f"Mapping lookup failed, treating '{name}' as unmapped: {e}",
            )
            return None

    @staticmethod
    def _new_group_id(used_ids: set) -> str:
        while True:
            candidate = f"rc_{uuid4().hex[:12]}"
            if candidate not in used_ids:
                used_ids.add(candidate)
                return candidate

    # =========================================================================
    # Operator decisions
    # =========================================================================

    async def map_to_existing(
        self,
        group: ReportCustomerGroup,
        customer_id: int,
    ) -> PersistentMapping:
        """Confirm that a group is an existing customer.

        The mapping is saved before the group changes, so a failed write
        leaves the group unverified and the error reaches the caller.

        Returns:
            The stored PersistentMapping

        Raises:
            MappingStoreError: If the mapping could not be saved
        """
        mapping = await self._save_mapping(group, customer_id, MappingOrigin.USER_MAPPED)

        group.status = GroupStatus.VERIFIED
        group.mapped_customer_id = customer_id
        group.error_message = None
        return mapping

    async def record_created_customer(
        self,
        group: ReportCustomerGroup,
        customer_id: int,
    ) -> PersistentMapping:
        """Record that a new customer was created from a group's name.

        Raises:
            MappingStoreError: If the mapping could not be saved
        """
        mapping = await self._save_mapping(group, customer_id, MappingOrigin.AUTO_CREATED)

        group.status = GroupStatus.VERIFIED
        group.created_customer_id = customer_id
        group.error_message = None
        return mapping

    def mark_error(self, group: ReportCustomerGroup, message: str) -> None:
        """Flag a group whose resolution failed."""
        group.status = GroupStatus.ERROR
        group.error_message = message

    async def _save_mapping(
        self,
        group: ReportCustomerGroup,
        customer_id: int,
        origin: MappingOrigin,
    ) -> PersistentMapping:
        with with_correlation(
            company_id=self.company_id,
            report_customer_id=group.report_customer_id,
            stage="resolve",
        ):
            start_time = time.time()
            try:
                mapping = await self.store.put(self.company_id, group.name, customer_id, origin)
            except MappingStoreError:
                self.metrics.record_write_failure()
                logger.exception(f"Failed to save mapping for '{group.name}'")
                raise

            self.metrics.record_processing_time("save_mapping", (time.time() - start_time) * 1000)
            self.metrics.record_mapping_written(origin.value)
            logger.info(
                f"Mapping saved: '{group.normalized_name}' -> {customer_id}",
                extra_fields={"origin": origin.value},
            )
            return mapping

    async def forget_mapping(self, raw_name: str) -> bool:
        """Delete the persisted mapping for a report name.

        Returns:
            True if a mapping was removed
        """
        removed = await self.store.delete(self.company_id, raw_name)
        if removed:
            with with_correlation(company_id=self.company_id, stage="resolve"):
                logger.info(f"Mapping removed: '{normalize_customer_name(raw_name)}'")
        return removed

    async def list_mappings(self) -> List[PersistentMapping]:
        """List the company's persisted mappings."""
        return await self.store.list_all(self.company_id)

    # =========================================================================
    # Batch state helpers
    # =========================================================================

    @staticmethod
    def unverified_groups(groups: Iterable[ReportCustomerGroup]) -> List[ReportCustomerGroup]:
        """Groups still waiting for an operator decision."""
        return [g for g in groups if g.status == GroupStatus.UNVERIFIED]

    @staticmethod
    def can_proceed(groups: Iterable[ReportCustomerGroup]) -> bool:
        """Whether the import may go ahead (no unverified group left)."""
        return not CustomerResolver.unverified_groups(groups)

    @staticmethod
    def resolved_customer_id(group: ReportCustomerGroup) -> Optional[int]:
        """Customer a group resolved to, whether mapped or newly created."""
        if group.mapped_customer_id is not None:
            return group.mapped_customer_id
        return group.created_customer_id

    def explain_group(self, group: ReportCustomerGroup) -> str:
        """Generate a human-readable explanation of a group's resolution."""
        lines = ["=" * 60, "Report Customer Resolution", "=" * 60]

        lines.append(f"Report name: '{group.name}'")
        lines.append(f"Normalized: '{group.normalized_name}'")
        lines.append(f"Rows: {group.sample_rows_count}")
        lines.append(f"Company ID: {self.company_id}")
        lines.append("")

        resolved = self.resolved_customer_id(group)
        if group.status == GroupStatus.VERIFIED:
            how = "created" if group.created_customer_id is not None else "mapped"
            lines.append(f"✓ VERIFIED ({how}) -> customer {resolved}")
        elif group.status == GroupStatus.ERROR:
            lines.append(f"✗ ERROR: {group.error_message}")
        else:
            lines.append("⚠ REQUIRES CONFIRMATION")

        if group.detected_matches:
            lines.append("")
            lines.append("Candidates:")
            for i, match in enumerate(group.detected_matches):
                lines.append(
                    f"  {i + 1}. {match.name} (#{match.customer_id}) "
                    f"{match.match_type.value} {match.confidence:.2f}"
                )
        else:
            lines.append("No candidates")

        lines.append("=" * 60)
        return "\n".join(lines)


async def analyze_report_customers(
    rows: Iterable[Any],
    known_customers: Sequence[KnownCustomer],
    company_id: int,
    store: MappingStore,
    config: MatchingConfig = DEFAULT_MATCHING_CONFIG,
) -> List[ReportCustomerGroup]:
    """Analyze one batch without keeping a resolver around."""
    resolver = CustomerResolver(store=store, company_id=company_id, config=config)
    return await resolver.analyze_report_customers(rows, known_customers)
