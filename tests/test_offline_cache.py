"""
Offline cache tests.

Verifies:
- Reads degrade to empty on broken stores and malformed JSON
- An unbound cache fails loudly
- Pending queues, sync bookkeeping and needs_sync
- Integrity validation and backup export/import
"""

import json
from datetime import timedelta

import pytest

from lubricentro.core.errors import CacheConfigurationError, StorageError
from lubricentro.core.time_utils import utcnow
from lubricentro.db.kv import MemoryStore
from lubricentro.domain.offline.cache import OfflineCache, StorageKeys, is_local_id
from lubricentro.domain.offline.schemas import BackupFrequency, StoreSettings


class BrokenStore(MemoryStore):
    def get(self, key):
        raise StorageError("disk unplugged")

    def set(self, key, value):
        raise StorageError("disk unplugged")


def pending_sale(**overrides):
    sale = {
        "sale_number": "V-240101-123456",
        "product_id": "p-oil",
        "product_name": "Aceite Helix 10W-40",
        "quantity": 2,
        "unit_price": 100.0,
        "total_amount": 200.0,
        "final_amount": 200.0,
    }
    sale.update(overrides)
    return sale


# =============================================================================
# BINDING AND DEGRADATION
# =============================================================================


class TestStoreBinding:
    def test_unbound_cache_raises(self):
        cache = OfflineCache()
        with pytest.raises(CacheConfigurationError):
            cache.get_products_from_local()

    def test_set_storage_binds_late(self):
        cache = OfflineCache()
        cache.set_storage(MemoryStore())
        assert cache.get_products_from_local() == []

    def test_broken_store_reads_empty(self):
        cache = OfflineCache(BrokenStore())
        assert cache.get_products_from_local() == []
        assert cache.get_pending_sales() == []
        assert cache.get_last_sync_time() is None

    def test_broken_store_write_does_not_raise(self):
        cache = OfflineCache(BrokenStore())
        assert cache.save_products_to_local([{"id": "p1", "barcode": "1"}]) is False
        assert cache.save_pending_sale(pending_sale()) is None

    def test_malformed_json_reads_empty(self, store, cache):
        store.set(StorageKeys.PRODUCTS, "{not json")
        store.set(StorageKeys.SALES, json.dumps({"not": "a list"}))
        assert cache.get_products_from_local() == []
        assert cache.get_pending_sales() == []


# =============================================================================
# PRODUCTS SNAPSHOT
# =============================================================================


class TestProductSnapshot:
    def test_save_stamps_snapshot_timestamp(self, store, cache):
        cache.save_products_to_local([{"id": "p1", "barcode": "1", "stock": 3}])
        assert store.get(StorageKeys.PRODUCTS_TIMESTAMP) is not None
        assert cache.get_products_from_local()[0]["stock"] == 3

    def test_update_stock_touches_only_that_product(self, cache):
        cache.save_products_to_local([
            {"id": "p1", "barcode": "1", "stock": 3},
            {"id": "p2", "barcode": "2", "stock": 7},
        ])
        assert cache.update_local_product_stock("p1", 1) is True

        products = {p["id"]: p for p in cache.get_products_from_local()}
        assert products["p1"]["stock"] == 1
        assert "updated_at" in products["p1"]
        assert products["p2"] == {"id": "p2", "barcode": "2", "stock": 7}

    def test_update_stock_of_missing_product_is_noop(self, cache):
        cache.save_products_to_local([{"id": "p1", "barcode": "1", "stock": 3}])
        assert cache.update_local_product_stock("nope", 1) is False
        assert cache.get_products_from_local() == [{"id": "p1", "barcode": "1", "stock": 3}]


# =============================================================================
# PENDING QUEUES
# =============================================================================


class TestPendingQueues:
    def test_pending_sale_gets_local_id_and_timestamps(self, cache):
        saved = cache.save_pending_sale(pending_sale())
        assert saved["id"].startswith("pending_")
        assert is_local_id(saved["id"])
        assert saved["created_at"] and saved["updated_at"]

    def test_pending_sale_is_never_overwritten(self, cache):
        first = cache.save_pending_sale(pending_sale(id="pending_1_abc"))
        second = cache.save_pending_sale(pending_sale(id="pending_1_abc", quantity=9))
        assert first is not None
        assert second is None
        [queued] = cache.get_pending_sales()
        assert queued["quantity"] == 2

    def test_batch_is_queued_whole_or_not_at_all(self, cache):
        cache.save_pending_sale(pending_sale(id="pending_1_abc"))
        rejected = cache.save_pending_sales([pending_sale(quantity=1), pending_sale(id="pending_1_abc")])
        assert rejected is None
        assert len(cache.get_pending_sales()) == 1

        saved = cache.save_pending_sales([pending_sale(quantity=1), pending_sale(quantity=3)])
        assert len({s["id"] for s in saved}) == 2
        assert [s["quantity"] for s in cache.get_pending_sales()] == [2, 1, 3]

    def test_remove_and_clear_pending_sales(self, cache):
        a = cache.save_pending_sale(pending_sale())
        cache.save_pending_sale(pending_sale(sale_number="V-240101-654321"))
        cache.remove_pending_sale(a["id"])
        assert [s["sale_number"] for s in cache.get_pending_sales()] == ["V-240101-654321"]
        cache.clear_pending_sales()
        assert cache.get_pending_sales() == []

    def test_pending_purchase_orders(self, cache):
        order = cache.save_pending_purchase_order({"product_id": "p-oil", "quantity": 5, "unit_cost": 60})
        assert order["id"].startswith("temp_")
        assert len(cache.get_pending_purchase_orders()) == 1
        cache.remove_pending_purchase_order(order["id"])
        assert cache.get_pending_purchase_orders() == []


# =============================================================================
# SYNC BOOKKEEPING
# =============================================================================


class TestNeedsSync:
    def test_true_without_any_sync(self, cache):
        assert cache.needs_sync() is True

    def test_false_right_after_mark_with_empty_queues(self, store, cache):
        cache.mark_last_sync()
        assert store.get(StorageKeys.LAST_SYNC) == store.get(StorageKeys.LAST_SYNC_TIMESTAMP)
        assert cache.needs_sync() is False

    def test_true_after_queueing_a_sale(self, cache):
        cache.mark_last_sync()
        cache.save_pending_sale(pending_sale())
        assert cache.needs_sync() is True

    def test_true_after_queueing_an_order(self, cache):
        cache.mark_last_sync()
        cache.save_pending_purchase_order({"product_id": "p-oil", "quantity": 1, "unit_cost": 1})
        assert cache.needs_sync() is True

    def test_true_when_last_sync_is_stale(self, store, cache):
        store.set(StorageKeys.LAST_SYNC_TIMESTAMP, (utcnow() - timedelta(hours=2)).isoformat())
        assert cache.needs_sync() is True

    def test_sync_stats(self, cache):
        cache.save_products_to_local([{"id": "p1", "barcode": "1"}])
        cache.save_pending_sale(pending_sale())
        stats = cache.get_sync_stats()
        assert stats.pending_sales_count == 1
        assert stats.pending_orders_count == 0
        assert stats.local_products_count == 1
        assert stats.local_products_timestamp is not None


# =============================================================================
# SETTINGS
# =============================================================================


class TestSettings:
    def test_defaults_written_once(self, store, cache):
        defaults = cache.ensure_defaults()
        assert defaults.auto_sync is True
        assert defaults.low_stock_threshold == 5
        assert json.loads(store.get(StorageKeys.SETTINGS))["backupFrequency"] == "daily"

        cache.save_settings(StoreSettings(autoSync=False, backupFrequency=BackupFrequency.WEEKLY))
        assert cache.ensure_defaults().auto_sync is False

    def test_invalid_settings_fall_back_to_defaults(self, store, cache):
        store.set(StorageKeys.SETTINGS, json.dumps({"lowStockThreshold": -3}))
        assert cache.get_settings() == StoreSettings()


# =============================================================================
# VALIDATION AND BACKUP
# =============================================================================


class TestValidateLocalData:
    def test_reports_errors_and_warnings(self, cache):
        cache.save_products_to_local([
            {"id": "p1", "barcode": "", "stock": -1},
            {"barcode": "2", "stock": 1},
        ])
        cache.save_pending_sale({"quantity": 0})

        report = cache.validate_local_data()
        assert report.is_valid is False
        assert "Producto p1 sin código de barras" in report.errors
        assert "Producto p1 con stock negativo: -1" in report.errors
        assert "Producto sin ID encontrado" in report.errors
        assert "Venta pendiente sin product_id" in report.errors
        assert "Venta pendiente sin número de venta" in report.errors

    def test_empty_catalog_is_only_a_warning(self, cache):
        report = cache.validate_local_data()
        assert report.is_valid is True
        assert "No hay productos guardados localmente" in report.warnings

    def test_stale_snapshot_warns(self, store, cache):
        cache.save_products_to_local([{"id": "p1", "barcode": "1", "stock": 1}])
        store.set(StorageKeys.PRODUCTS_TIMESTAMP, (utcnow() - timedelta(hours=30)).isoformat())
        report = cache.validate_local_data()
        assert any("horas de antigüedad" in w for w in report.warnings)

    def test_unbound_cache_is_captured(self):
        report = OfflineCache().validate_local_data()
        assert report.is_valid is False


class TestBackup:
    def test_export_then_import_round_trips(self, cache):
        cache.save_products_to_local([{"id": "p1", "barcode": "1", "stock": 4, "price": 10.5}])
        cache.save_pending_sale(pending_sale())
        cache.save_pending_purchase_order({"product_id": "p1", "quantity": 3, "unit_cost": 2})
        exported = cache.export_local_data()
        assert cache.get_last_backup_time() is not None

        fresh = OfflineCache(MemoryStore())
        ok, message = fresh.import_local_data(json.loads(json.dumps(exported)))
        assert ok, message
        assert fresh.get_products_from_local() == cache.get_products_from_local()
        assert fresh.get_pending_sales() == cache.get_pending_sales()
        assert fresh.get_pending_purchase_orders() == cache.get_pending_purchase_orders()

    def test_absent_sections_are_left_untouched(self, cache):
        cache.save_pending_sale(pending_sale())
        ok, _ = cache.import_local_data({"products": [{"id": "p9", "barcode": "9"}]})
        assert ok
        assert len(cache.get_pending_sales()) == 1
        assert cache.get_products_from_local() == [{"id": "p9", "barcode": "9"}]

    def test_rejects_non_list_sections(self, cache):
        ok, message = cache.import_local_data({"products": "nope"})
        assert ok is False
        assert "products" in message
