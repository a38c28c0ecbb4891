"""Integration tests for reconquest.data.persistence — write-through snapshots.

Runs the persistence manager against in-memory SQLite and the dict store.
"""

import json
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine

from domain.models import Client, Distributor, Invoice, Product, ProductType
from domain.ports import SnapshotStore
from domain.repository import InvoiceRepository
from reconquest.adapters.outbound.redis_store import InMemorySnapshotStore
from reconquest.adapters.outbound.sqlalchemy_store import SqlAlchemySnapshotStore
from reconquest.data.persistence import (
    STORAGE_KEY,
    PersistenceManager,
    eviction_order,
    format_size,
)
from reconquest.data.serialization import dumps_snapshot, invoice_to_dict


def _invoice(invoice_id, date="2025-03-14", client="Dupont", designation="SOPRALENE"):
    return Invoice(
        id=invoice_id,
        number=f"FA-{invoice_id}",
        date=date,
        client=Client(name=client, address="12 rue Victor Hugo, 69002 Lyon"),
        distributor=Distributor(name="Point.P"),
        amount=100.0,
        potential=115.0,
        products=[Product("R1", designation, 1, 100.0, 100.0, ProductType.SOPREMA)],
    )


@pytest.fixture
def store():
    return SqlAlchemySnapshotStore(create_engine("sqlite:///:memory:"))


def _attached(store, **kwargs):
    manager = PersistenceManager(store, **kwargs)
    repo = InvoiceRepository()
    manager.attach(repo)
    return manager, repo


class TestWriteThrough:
    def test_every_mutation_is_persisted(self, store):
        manager, repo = _attached(store)
        repo.add_invoice(_invoice("a"))
        repo.add_invoice(_invoice("b"))
        repo.remove_invoice("a")
        stored = json.loads(store.get(STORAGE_KEY))
        assert stored["version"] == 2
        assert [inv["id"] for inv in stored["invoices"]] == ["b"]

    def test_clear_persists_empty_snapshot(self, store):
        manager, repo = _attached(store)
        repo.add_invoice(_invoice("a"))
        repo.clear_all_invoices()
        assert json.loads(store.get(STORAGE_KEY))["invoices"] == []

    def test_round_trip_on_fresh_manager(self, store):
        manager, repo = _attached(store)
        repo.set_invoices([_invoice("a"), _invoice("b", client="Étanchéité Plus")])

        fresh_repo = InvoiceRepository()
        assert PersistenceManager(store).restore(fresh_repo) == 2
        assert fresh_repo.snapshot() == repo.snapshot()

    def test_detach_stops_writes(self, store):
        manager, repo = _attached(store)
        repo.add_invoice(_invoice("a"))
        manager.detach()
        repo.add_invoice(_invoice("b"))
        assert len(json.loads(store.get(STORAGE_KEY))["invoices"]) == 1

    def test_store_failure_never_reaches_the_mutation(self, caplog):
        broken = MagicMock(spec=SnapshotStore)
        broken.set.side_effect = OSError("disk full")
        manager, repo = _attached(broken)
        repo.add_invoice(_invoice("a"))
        assert len(repo) == 1
        assert "Snapshot write" in caplog.text

    def test_force_save(self):
        store = InMemorySnapshotStore()
        manager = PersistenceManager(store)
        repo = InvoiceRepository([_invoice("a")])
        manager.attach(repo)
        assert store.get(STORAGE_KEY) is None
        manager.force_save()
        assert len(json.loads(store.get(STORAGE_KEY))["invoices"]) == 1

    def test_force_save_without_repository(self):
        PersistenceManager(InMemorySnapshotStore()).force_save()  # Should not raise


class TestRestore:
    def test_nothing_stored(self, store):
        repo = InvoiceRepository()
        manager = PersistenceManager(store)
        assert manager.restore(repo) == 0
        assert manager.get_storage_info().is_loaded

    def test_invalid_records_skipped(self, store):
        good = invoice_to_dict(_invoice("a"))
        negative = invoice_to_dict(_invoice("b"))
        negative["amount"] = -1
        duplicate = invoice_to_dict(_invoice("a"))
        store.set(STORAGE_KEY, json.dumps({"version": 2, "invoices": [good, negative, duplicate, "junk"]}))

        repo = InvoiceRepository()
        assert PersistenceManager(store).restore(repo) == 1
        assert [inv.id for inv in repo] == ["a"]

    def test_undecodable_snapshot_restores_nothing(self, store):
        store.set(STORAGE_KEY, "{broken")
        repo = InvoiceRepository([_invoice("x")])
        assert PersistenceManager(store).restore(repo) == 0
        assert [inv.id for inv in repo] == ["x"]

    def test_wrongly_typed_records_skipped(self, store):
        good = invoice_to_dict(_invoice("a"))
        bad_brand = invoice_to_dict(_invoice("b"))
        bad_brand["products"][0]["brand"] = 5
        bad_address = invoice_to_dict(_invoice("c"))
        bad_address["client"]["address"] = 69002
        store.set(STORAGE_KEY, json.dumps({"version": 2, "invoices": [good, bad_brand, bad_address]}))

        repo = InvoiceRepository()
        assert PersistenceManager(store).restore(repo) == 1
        assert [inv.id for inv in repo] == ["a"]

    def test_partially_restored_snapshot_backed_up(self, store):
        negative = invoice_to_dict(_invoice("b"))
        negative["amount"] = -1
        payload = json.dumps({"version": 2, "invoices": [invoice_to_dict(_invoice("a")), negative]})
        store.set(STORAGE_KEY, payload)

        manager, repo = _attached(store)
        manager.restore(repo)
        assert store.get(manager.backup_key) == payload
        assert [inv["id"] for inv in json.loads(store.get(STORAGE_KEY))["invoices"]] == ["a"]

    def test_clean_restore_makes_no_backup(self, store):
        store.set(STORAGE_KEY, dumps_snapshot([_invoice("a")]))
        manager = PersistenceManager(store)
        manager.restore(InvoiceRepository())
        assert store.get(manager.backup_key) is None

    def test_version_one_bare_list(self, store):
        store.set(STORAGE_KEY, json.dumps([invoice_to_dict(_invoice("a"))]))
        repo = InvoiceRepository()
        assert PersistenceManager(store).restore(repo) == 1

    def test_restore_then_attach_rewrites_current_version(self, store):
        store.set(STORAGE_KEY, json.dumps([invoice_to_dict(_invoice("a"))]))
        manager, repo = _attached(store)
        manager.restore(repo)
        assert json.loads(store.get(STORAGE_KEY))["version"] == 2

    def test_failed_lines_stripped_on_restore(self, store):
        record = invoice_to_dict(_invoice("a"))
        record["products"].append({
            "reference": "X", "designation": "Document PDF - conversion échouée",
            "quantity": 1, "unitPrice": 0, "totalPrice": 0, "type": "competitor",
        })
        store.set(STORAGE_KEY, json.dumps({"version": 2, "invoices": [record]}))
        repo = InvoiceRepository()
        PersistenceManager(store).restore(repo)
        assert len(repo.get("a").products) == 1


class TestBootstrap:
    def test_hosted_empty_gets_demo_data(self, store):
        demo = [_invoice("DEMO-001"), _invoice("DEMO-002")]
        manager, repo = _attached(store, is_local=False, demo_factory=lambda: demo)
        manager.restore(repo)
        assert manager.bootstrap(repo) is True
        assert [inv.id for inv in repo] == ["DEMO-001", "DEMO-002"]
        assert len(json.loads(store.get(STORAGE_KEY))["invoices"]) == 2

    def test_local_stays_empty(self, store):
        manager, repo = _attached(store, is_local=True, demo_factory=lambda: [_invoice("DEMO-001")])
        manager.restore(repo)
        assert manager.bootstrap(repo) is False
        assert len(repo) == 0

    def test_hosted_with_data_untouched(self, store):
        store.set(STORAGE_KEY, dumps_snapshot([_invoice("a")]))
        manager, repo = _attached(store, is_local=False, demo_factory=lambda: [_invoice("DEMO-001")])
        manager.restore(repo)
        assert manager.bootstrap(repo) is False
        assert [inv.id for inv in repo] == ["a"]

    def test_hosted_empty_snapshot_gets_demo_data(self, store):
        store.set(STORAGE_KEY, dumps_snapshot([]))
        manager, repo = _attached(store, is_local=False, demo_factory=lambda: [_invoice("DEMO-001")])
        manager.restore(repo)
        assert manager.bootstrap(repo) is True

    def test_hosted_unknown_version_kept(self, store):
        record = invoice_to_dict(_invoice("real-1"))
        payload = json.dumps({"version": 3, "data": [record]})
        store.set(STORAGE_KEY, payload)
        manager, repo = _attached(store, is_local=False, demo_factory=lambda: [_invoice("DEMO-001")])
        manager.restore(repo)

        assert manager.bootstrap(repo) is False
        assert len(repo) == 0
        assert store.get(STORAGE_KEY) == payload
        assert store.get(manager.backup_key) == payload

    def test_hosted_all_records_invalid_kept(self, store):
        record = invoice_to_dict(_invoice("real-1"))
        record["amount"] = -1
        payload = json.dumps({"version": 2, "invoices": [record]})
        store.set(STORAGE_KEY, payload)
        manager, repo = _attached(store, is_local=False, demo_factory=lambda: [_invoice("DEMO-001")])
        manager.restore(repo)

        assert manager.bootstrap(repo) is False
        assert store.get(STORAGE_KEY) == payload

    def test_hosted_store_unreachable_no_demo(self):
        broken = MagicMock(spec=SnapshotStore)
        broken.get.side_effect = ConnectionError("store down")
        manager, repo = _attached(broken, is_local=False, demo_factory=lambda: [_invoice("DEMO-001")])
        manager.restore(repo)

        assert manager.bootstrap(repo) is False
        broken.set.assert_not_called()


class TestQuota:
    def _budget_for(self, invoices):
        return len(dumps_snapshot(invoices).encode("utf-8"))

    def test_within_budget(self):
        store = InMemorySnapshotStore()
        manager, repo = _attached(store)
        repo.add_invoice(_invoice("a"))
        info = manager.get_storage_info()
        assert info.item_count == 1
        assert info.total_invoices == 1
        assert info.evicted_count == 0
        assert not info.exceeded
        assert info.bytes_used == len(store.get(STORAGE_KEY).encode("utf-8"))
        assert info.formatted_size.endswith("bytes")
        assert info.last_saved is not None

    def test_evicts_oldest_first(self):
        invoices = [
            _invoice("new", date="2025-05-01"),
            _invoice("mid", date="2025-03-01"),
            _invoice("old", date="2025-01-01"),
        ]
        budget = self._budget_for(invoices[:2]) + 10
        store = InMemorySnapshotStore()
        manager, repo = _attached(store, max_bytes=budget)
        repo.set_invoices(invoices)

        stored = json.loads(store.get(STORAGE_KEY))
        assert [inv["id"] for inv in stored["invoices"]] == ["new", "mid"]
        # The repository keeps everything
        assert len(repo) == 3
        info = manager.get_storage_info()
        assert info.exceeded
        assert info.evicted_count == 1
        assert info.item_count == 2
        assert info.total_invoices == 3
        assert info.bytes_used <= budget

    def test_envelope_larger_than_budget_skips_write(self):
        store = InMemorySnapshotStore()
        manager, repo = _attached(store, max_bytes=10)
        repo.add_invoice(_invoice("a"))
        assert store.get(STORAGE_KEY) is None
        assert len(repo) == 1
        info = manager.get_storage_info()
        assert info.exceeded
        assert info.evicted_count == 1
        assert info.item_count == 0
        assert info.bytes_used == 0

    def test_skipped_write_after_successful_one(self):
        store = InMemorySnapshotStore()
        manager, repo = _attached(store, max_bytes=self._budget_for([_invoice("a")]) + 10)
        repo.add_invoice(_invoice("a"))
        assert manager.get_storage_info().item_count == 1
        manager._max_bytes = 10
        repo.add_invoice(_invoice("b"))
        info = manager.get_storage_info()
        assert (info.item_count, info.bytes_used, info.evicted_count) == (0, 0, 2)

    def test_near_limit(self):
        invoices = [_invoice("a")]
        budget = int(self._budget_for(invoices) / 0.9)
        manager, repo = _attached(InMemorySnapshotStore(), max_bytes=budget, warn_ratio=0.8)
        repo.set_invoices(invoices)
        info = manager.get_storage_info()
        assert info.near_limit
        assert not info.exceeded
        assert 0.8 <= info.usage_ratio <= 1.0


def test_eviction_order_undated_then_oldest():
    invoices = (
        _invoice("newest-insert", date="2025-02-01"),
        _invoice("dated-new", date="2025-06-01"),
        _invoice("undated", date="??"),
        _invoice("oldest-insert", date="2025-02-01"),
    )
    order = [invoices[i].id for i in eviction_order(invoices)]
    assert order == ["undated", "oldest-insert", "newest-insert", "dated-new"]


@pytest.mark.parametrize("size,expected", [
    (0, "0 bytes"),
    (1024, "1024 bytes"),
    (1536, "1.50 KB"),
    (1024 * 1024, "1024.00 KB"),
    (1024 * 1024 + 1, "1.00 MB"),
    (5 * 1024 * 1024, "5.00 MB"),
])
def test_format_size(size, expected):
    assert format_size(size) == expected
