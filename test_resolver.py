"""Tests for batch analysis and the operator resolution workflow."""

import asyncio
import logging
from types import SimpleNamespace

import pytest

import customer_resolver.resolver as resolver_module
from core.observability.metrics import MetricsCollector
from customer_resolver.models import (
    GroupStatus,
    KnownCustomer,
    MappingOrigin,
    MatchType,
    ReportRow,
)
from customer_resolver.resolver import (
    CustomerResolver,
    analyze_report_customers,
    group_report_rows,
)
from customer_resolver.store import InMemoryMappingStore, MappingStoreError


COMPANY_ID = 1


def run(coro):
    return asyncio.run(coro)


def customer(id, name):
    return KnownCustomer(id=id, report_customer=name, tally_customer=name, company_id=COMPANY_ID)


class FlakyStore(InMemoryMappingStore):
    """In-memory store whose reads and/or writes fail."""

    def __init__(self, fail_get=False, fail_put=False):
        super().__init__()
        self.fail_get = fail_get
        self.fail_put = fail_put
        self.get_calls = 0

    async def get(self, company_id, raw_name):
        self.get_calls += 1
        if self.fail_get:
            raise MappingStoreError("database is locked", operation="get")
        return await super().get(company_id, raw_name)

    async def put(self, company_id, raw_name, customer_id, origin=MappingOrigin.USER_MAPPED):
        if self.fail_put:
            raise MappingStoreError("disk I/O error", operation="put")
        return await super().put(company_id, raw_name, customer_id, origin)


@pytest.fixture
def customers():
    return [
        customer(5, "Acme Corporation"),
        customer(7, "Sharma Traders"),
        customer(9, "ABC Company Ltd"),
        customer(11, "Bharat Steel Works"),
    ]


@pytest.fixture
def store():
    return InMemoryMappingStore()


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def resolver(store, metrics):
    return CustomerResolver(store=store, company_id=COMPANY_ID, metrics=metrics)


class TestGroupReportRows:

    def test_corp_and_corporation_share_a_group(self):
        """Acme Corp and Acme Corporation both normalize to 'acme'."""
        rows = [
            {"cust_name": "Acme Corp"},
            {"cust_name": "Acme Corp"},
            {"cust_name": "Acme Corporation"},
        ]

        assert group_report_rows(rows) == [("acme", "Acme Corp", 3)]

    def test_blank_names_skipped(self):
        rows = [{"cust_name": ""}, {"cust_name": "   "}, {"cust_name": None}, {}, {"cust_name": "--"}]
        assert group_report_rows(rows) == []

    def test_accepts_row_shapes(self):
        rows = [
            ReportRow(cust_name="Zenith Foods", payload={"invoice_no": "INV-1"}),
            {"cust_name": "ZENITH FOODS", "invoice_no": "INV-2"},
            SimpleNamespace(cust_name=" Zenith Foods Ltd "),
        ]

        assert group_report_rows(rows) == [("zenith foods", "Zenith Foods", 3)]

    def test_first_seen_order(self):
        rows = [{"cust_name": "B"}, {"cust_name": "A"}, {"cust_name": "b"}]
        assert [g[0] for g in group_report_rows(rows)] == ["b", "a"]


class TestAnalyzeReportCustomers:

    def test_one_group_per_normalized_name(self, resolver, customers):
        rows = [
            {"cust_name": "Acme Corp"},
            {"cust_name": "Acme Corp"},
            {"cust_name": "Acme Corporation"},
        ]

        groups = run(resolver.analyze_report_customers(rows, customers))

        assert len(groups) == 1
        group = groups[0]
        assert group.name == "Acme Corp"
        assert group.normalized_name == "acme"
        assert group.sample_rows_count == 3
        assert group.status == GroupStatus.UNVERIFIED
        assert group.detected_matches[0].customer_id == 5
        assert group.detected_matches[0].match_type == MatchType.EXACT

    def test_persistent_mapping_verifies_without_scoring(self, store, resolver, customers, monkeypatch):
        """A stored mapping for 'acme' resolves raw 'ACME' straight to customer 5."""
        run(store.put(COMPANY_ID, "acme", 5))

        def fail_find_matches(*args, **kwargs):
            raise AssertionError("scorer must not run on a mapping hit")

        monkeypatch.setattr(resolver_module, "find_matches", fail_find_matches)

        groups = run(resolver.analyze_report_customers([{"cust_name": "ACME"}], customers))

        assert len(groups) == 1
        group = groups[0]
        assert group.status == GroupStatus.VERIFIED
        assert group.mapped_customer_id == 5
        assert len(group.detected_matches) == 1
        assert group.detected_matches[0].match_type == MatchType.EXACT
        assert group.detected_matches[0].confidence == 1.0
        assert group.detected_matches[0].name == "Acme Corporation"

    def test_unmapped_groups_stay_unverified(self, resolver, customers):
        rows = [{"cust_name": "Bharat Steel Work"}, {"cust_name": "Zenith Agro Foods"}]

        groups = run(resolver.analyze_report_customers(rows, customers))

        assert [g.status for g in groups] == [GroupStatus.UNVERIFIED, GroupStatus.UNVERIFIED]
        assert groups[0].detected_matches[0].customer_id == 11
        assert groups[0].detected_matches[0].match_type == MatchType.FUZZY
        assert groups[1].detected_matches == []

    def test_mapping_to_missing_customer_is_ignored(self, store, resolver, customers, metrics):
        run(store.put(COMPANY_ID, "Ghost Traders", 999))

        groups = run(resolver.analyze_report_customers([{"cust_name": "Ghost Traders"}], customers))

        assert groups[0].status == GroupStatus.UNVERIFIED
        assert groups[0].mapped_customer_id is None
        assert metrics.get_summary()["mappings"]["stale_hits"] == 1

    def test_lookup_failure_degrades_to_matching(self, customers, metrics):
        store = FlakyStore(fail_get=True)
        resolver = CustomerResolver(store=store, company_id=COMPANY_ID, metrics=metrics)
        rows = [{"cust_name": "Acme Corp"}, {"cust_name": "Sharma Traders"}]

        groups = run(resolver.analyze_report_customers(rows, customers))

        assert len(groups) == 2
        assert store.get_calls == 2
        assert all(g.status == GroupStatus.UNVERIFIED for g in groups)
        assert groups[1].detected_matches[0].customer_id == 7
        assert metrics.get_summary()["mappings"]["lookup_failures"] == 2

    def test_group_ids_unique(self, resolver, customers):
        rows = [{"cust_name": f"Customer {i}"} for i in range(50)]

        groups = run(resolver.analyze_report_customers(rows, customers))

        ids = [g.report_customer_id for g in groups]
        assert len(ids) == 50
        assert len(set(ids)) == 50
        assert all(i.startswith("rc_") for i in ids)

    def test_empty_inputs(self, resolver, customers):
        assert run(resolver.analyze_report_customers([], customers)) == []

        groups = run(resolver.analyze_report_customers([{"cust_name": "Acme"}], []))
        assert groups[0].detected_matches == []
        assert groups[0].status == GroupStatus.UNVERIFIED

    def test_does_not_write_mappings(self, store, resolver, customers):
        run(resolver.analyze_report_customers([{"cust_name": "Acme Corp"}], customers))
        assert run(store.list_all(COMPANY_ID)) == []

    def test_batch_metrics(self, store, resolver, customers, metrics):
        run(store.put(COMPANY_ID, "Sharma Traders", 7))
        rows = [{"cust_name": "Sharma Traders"}, {"cust_name": "Acme"}, {"cust_name": "acme"}]

        run(resolver.analyze_report_customers(rows, customers))

        summary = metrics.get_summary()
        assert summary["batches"]["analyzed"] == 1
        assert summary["batches"]["groups"] == 2
        assert summary["batches"]["rows"] == 3
        assert summary["batches"]["verified_from_cache"] == 1
        assert summary["mappings"]["cache_hits"] == 1
        assert summary["mappings"]["cache_misses"] == 1

    def test_ambiguous_exact_match_warns_with_ids(self, resolver, caplog):
        """Every exact match is kept and the clash is logged with the ids."""
        customers = [customer(3, "ABC Co"), customer(1, "ABC Company Ltd")]

        with caplog.at_level(logging.WARNING, logger="customer_resolver.resolver"):
            groups = run(resolver.analyze_report_customers([{"cust_name": "ABC"}], customers))

        matches = groups[0].detected_matches
        assert [(m.customer_id, m.match_type) for m in matches] == [
            (3, MatchType.EXACT),
            (1, MatchType.EXACT),
        ]
        assert groups[0].status == GroupStatus.UNVERIFIED

        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert "Ambiguous exact match for 'abc'" in warnings[0].getMessage()
        assert warnings[0].extra_fields["customer_ids"] == [3, 1]

    def test_customer_names_normalized_once_per_batch(self, resolver, customers, monkeypatch):
        import customer_resolver.matcher as matcher_module

        seen = []
        original = matcher_module.normalize_customer_name

        def counting_normalize(name):
            seen.append(name)
            return original(name)

        monkeypatch.setattr(matcher_module, "normalize_customer_name", counting_normalize)
        rows = [{"cust_name": "Acme"}, {"cust_name": "Zenith Foods"}, {"cust_name": "Bharat Steel Work"}]

        run(resolver.analyze_report_customers(rows, customers))

        customer_names = {c.report_customer for c in customers}
        assert len([n for n in seen if n in customer_names]) == len(customers)

    def test_module_level_helper(self, store, customers):
        run(store.put(COMPANY_ID, "Acme", 5))

        groups = run(analyze_report_customers(
            [{"cust_name": "ACME Corp."}], customers, COMPANY_ID, store,
        ))

        assert groups[0].status == GroupStatus.VERIFIED


class TestOperatorDecisions:

    def test_map_to_existing_persists(self, store, resolver, customers):
        groups = run(resolver.analyze_report_customers([{"cust_name": "Bharat Steel Work"}], customers))
        group = groups[0]

        mapping = run(resolver.map_to_existing(group, 11))

        assert group.status == GroupStatus.VERIFIED
        assert group.mapped_customer_id == 11
        assert mapping.mapping_type == MappingOrigin.USER_MAPPED
        assert run(store.get(COMPANY_ID, "Bharat Steel Work")) == 11

    def test_mapping_write_is_timed(self, resolver, customers, metrics):
        group = run(resolver.analyze_report_customers([{"cust_name": "Acme"}], customers))[0]

        run(resolver.map_to_existing(group, 5))
        run(resolver.record_created_customer(group, 42))

        stats = metrics.get_timing_stats("save_mapping")
        assert stats["sample_count"] == 2
        assert stats["average_ms"] >= 0.0

    def test_next_import_auto_resolves(self, resolver, customers):
        rows = [{"cust_name": "Bharat Steel Work"}]
        first = run(resolver.analyze_report_customers(rows, customers))
        run(resolver.map_to_existing(first[0], 11))

        second = run(resolver.analyze_report_customers(rows, customers))

        assert second[0].status == GroupStatus.VERIFIED
        assert second[0].mapped_customer_id == 11
        assert resolver.can_proceed(second)

    def test_record_created_customer(self, store, resolver, customers):
        groups = run(resolver.analyze_report_customers([{"cust_name": "Zenith Agro Foods"}], customers))
        group = groups[0]

        mapping = run(resolver.record_created_customer(group, 42))

        assert group.status == GroupStatus.VERIFIED
        assert group.created_customer_id == 42
        assert group.mapped_customer_id is None
        assert resolver.resolved_customer_id(group) == 42
        assert mapping.mapping_type == MappingOrigin.AUTO_CREATED
        assert run(store.get(COMPANY_ID, "zenith agro foods")) == 42

    def test_failed_write_propagates_and_keeps_group(self, customers, metrics):
        store = FlakyStore(fail_put=True)
        resolver = CustomerResolver(store=store, company_id=COMPANY_ID, metrics=metrics)
        group = run(resolver.analyze_report_customers([{"cust_name": "Acme"}], customers))[0]

        with pytest.raises(MappingStoreError):
            run(resolver.map_to_existing(group, 5))

        assert group.status == GroupStatus.UNVERIFIED
        assert group.mapped_customer_id is None
        assert metrics.get_summary()["mappings"]["write_failures"] == 1
        assert metrics.get_timing_stats("save_mapping")["sample_count"] == 0

    def test_mark_error(self, resolver, customers):
        group = run(resolver.analyze_report_customers([{"cust_name": "Acme"}], customers))[0]

        resolver.mark_error(group, "Customer creation failed")

        assert group.status == GroupStatus.ERROR
        assert group.error_message == "Customer creation failed"
        assert resolver.can_proceed([group])

    def test_can_proceed_requires_all_verified(self, resolver, customers):
        rows = [{"cust_name": "Acme"}, {"cust_name": "Sharma Traders"}]
        groups = run(resolver.analyze_report_customers(rows, customers))

        assert not resolver.can_proceed(groups)
        assert len(resolver.unverified_groups(groups)) == 2

        run(resolver.map_to_existing(groups[0], 5))
        assert not resolver.can_proceed(groups)

        run(resolver.map_to_existing(groups[1], 7))
        assert resolver.can_proceed(groups)

    def test_forget_mapping(self, store, resolver, customers):
        run(store.put(COMPANY_ID, "Acme", 5))

        assert run(resolver.forget_mapping("ACME Corp")) is True
        assert run(resolver.forget_mapping("ACME Corp")) is False

        groups = run(resolver.analyze_report_customers([{"cust_name": "Acme"}], customers))
        assert groups[0].status == GroupStatus.UNVERIFIED

    def test_list_mappings(self, resolver, customers):
        groups = run(resolver.analyze_report_customers(
            [{"cust_name": "Acme"}, {"cust_name": "Zenith"}], customers,
        ))
        run(resolver.map_to_existing(groups[0], 5))
        run(resolver.record_created_customer(groups[1], 42))

        mappings = run(resolver.list_mappings())

        assert [(m.normalized_name, m.customer_id, m.mapping_type) for m in mappings] == [
            ("acme", 5, MappingOrigin.USER_MAPPED),
            ("zenith", 42, MappingOrigin.AUTO_CREATED),
        ]

    def test_explain_group(self, resolver, customers):
        group = run(resolver.analyze_report_customers([{"cust_name": "Acme Corp"}], customers))[0]

        text = resolver.explain_group(group)

        assert "Report name: 'Acme Corp'" in text
        assert "REQUIRES CONFIRMATION" in text
        assert "Acme Corporation (#5) exact 1.00" in text
