"""
Remote gateway tests.

Verifies:
- Product CRUD contracts, duplicate barcodes and conditional updates
- Mutations require a principal, reads do not
- Paged product fetch and backend timeouts
- Inventory and sales aggregates
- Purchase-order state machine
"""

import asyncio
import re
from datetime import timedelta

import pytest

from lubricentro.core.config import Settings
from lubricentro.core.errors import (
    AuthorizationError,
    BackendError,
    NoRowMatchedError,
    NotFoundError,
    ValidationError,
)
from lubricentro.core.time_utils import local_day_bounds, utcnow
from lubricentro.db.models.purchase_orders import PurchaseOrderStatus
from lubricentro.domain.catalog.schemas import (
    CategoryCreate,
    CategoryUpdate,
    ProductCreate,
    ProductOut,
    ProductUpdate,
    PurchaseOrderCreate,
)
from lubricentro.domain.catalog.stats import inventory_stats, stock_bucket, stock_urgency, suggested_price
from lubricentro.gateway.backend import MemoryBackend
from lubricentro.gateway.service import RemoteGateway, create_backend, generate_sale_number


def sale_row(sale_id, product_id, quantity, final_amount, sale_date, name="Aceite Helix 10W-40"):
    return {
        "id": sale_id,
        "sale_number": f"V-{sale_id}",
        "product_id": product_id,
        "product_barcode": "7790001234567",
        "product_name": name,
        "quantity": quantity,
        "unit_price": final_amount / quantity,
        "total_amount": final_amount,
        "discount_amount": 0,
        "final_amount": final_amount,
        "payment_method": "cash",
        "sale_date": sale_date,
        "created_at": sale_date,
        "updated_at": sale_date,
    }


# =============================================================================
# PRODUCTS
# =============================================================================


class TestProductReads:
    async def test_get_all_products_orders_newest_first(self, gateway):
        result = await gateway.get_all_products()
        assert result.ok
        assert [p.id for p in result.data] == ["p-oil", "p-filter", "p-brake"]

    async def test_get_all_products_pages_until_short_page(self, backend):
        gateway = RemoteGateway(backend, principal="tester", page_size=2)
        result = await gateway.get_all_products()
        assert [p.id for p in result.data] == ["p-oil", "p-filter", "p-brake"]

    async def test_missing_product_is_not_an_error(self, gateway):
        result = await gateway.get_product_by_id("nope")
        assert result.ok
        assert result.data is None

    async def test_lookup_by_barcode(self, gateway):
        result = await gateway.get_product_by_barcode("7790001234568")
        assert result.data.id == "p-filter"

    async def test_anonymous_reads_are_allowed(self, backend):
        result = await RemoteGateway(backend).get_all_products()
        assert result.ok

    async def test_timeout_becomes_backend_error(self, backend):
        class SlowBackend(MemoryBackend):
            async def list_products(self, offset, limit):
                await asyncio.sleep(1)
                return []

        gateway = RemoteGateway(SlowBackend(), timeout=0.01)
        result = await gateway.get_all_products()
        assert isinstance(result.error, BackendError)


class TestProductWrites:
    async def test_create_product(self, gateway, backend):
        result = await gateway.create_product(ProductCreate(barcode="111", name="Grasa multiuso", price=900, stock=6))
        assert result.ok
        stored = backend.products[result.data.id]
        assert stored["created_at"] == stored["updated_at"]
        assert stored["description"] == ""

    async def test_create_rejects_duplicate_barcode(self, gateway, backend):
        before = dict(backend.products)
        result = await gateway.create_product(ProductCreate(barcode="7790001234567", name="Copia"))
        assert isinstance(result.error, ValidationError)
        assert backend.products == before

    async def test_create_requires_principal(self, backend):
        result = await RemoteGateway(backend).create_product(ProductCreate(barcode="111", name="Grasa"))
        assert isinstance(result.error, AuthorizationError)
        assert "111" not in {p["barcode"] for p in backend.products.values()}

    async def test_request_principal_is_task_scoped(self, backend):
        gateway = RemoteGateway(backend)

        async def handle(token):
            gateway.sign_in_request(token)
            return gateway.principal

        assert await asyncio.ensure_future(handle("operator-1")) == "operator-1"
        assert gateway.principal is None
        result = await gateway.create_product(ProductCreate(barcode="111", name="Grasa"))
        assert isinstance(result.error, AuthorizationError)

    async def test_update_strips_missing_fields(self, gateway, backend):
        result = await gateway.update_product("p-oil", ProductUpdate(price=120))
        assert result.data.price == 120
        assert result.data.name == "Aceite Helix 10W-40"
        assert backend.products["p-oil"]["stock"] == 10

    async def test_update_missing_product(self, gateway):
        result = await gateway.update_product("nope", ProductUpdate(price=1))
        assert isinstance(result.error, NotFoundError)

    async def test_update_barcode_collision(self, gateway):
        result = await gateway.update_product("p-oil", ProductUpdate(barcode="7790001234568"))
        assert isinstance(result.error, ValidationError)

    async def test_zero_rows_matched_is_distinct_from_not_found(self, catalog):
        class HiddenRows(MemoryBackend):
            async def update_product(self, product_id, values):
                return None

        gateway = RemoteGateway(HiddenRows(catalog), principal="tester")
        result = await gateway.update_product("p-oil", ProductUpdate(price=1))
        assert isinstance(result.error, NoRowMatchedError)

    async def test_delete_product(self, gateway, backend):
        assert (await gateway.delete_product("p-brake")).data is True
        assert "p-brake" not in backend.products
        second = await gateway.delete_product("p-brake")
        assert isinstance(second.error, NotFoundError)

    async def test_verify_stock_integrity(self, gateway):
        assert await gateway.verify_stock_integrity("p-oil", 10) is True
        assert await gateway.verify_stock_integrity("p-oil", 9) is False
        assert await gateway.verify_stock_integrity("nope", 0) is False


# =============================================================================
# INVENTORY STATS
# =============================================================================


class TestInventoryStats:
    def test_low_stock_scenario(self):
        product = ProductOut(id="x", barcode="123", name="Filtro", stock=5, min_stock=10, price=10)
        stats = inventory_stats([product])
        [alert] = stats["lowStockAlerts"]
        assert alert["urgency"] == "warning"
        assert alert["status"] == "low_stock"
        assert stats["stockDistribution"]["low"] == 1
        assert stats["lowStockCount"] == 1

    @pytest.mark.parametrize(
        "stock,min_stock,urgency",
        [(0, 10, "critical"), (3, 10, "critical"), (6, 10, "warning"), (9, 10, "attention")],
    )
    def test_urgency_thresholds(self, stock, min_stock, urgency):
        assert stock_urgency(stock, min_stock) == urgency

    @pytest.mark.parametrize(
        "stock,min_stock,bucket",
        [(0, 5, "outOfStock"), (5, 5, "low"), (10, 5, "warning"), (11, 5, "healthy")],
    )
    def test_buckets(self, stock, min_stock, bucket):
        assert stock_bucket(stock, min_stock) == bucket

    async def test_gateway_stats_over_catalog(self, gateway):
        stats = (await gateway.get_inventory_stats()).data
        assert stats["totalProducts"] == 3
        assert stats["totalInventoryValue"] == 10 * 100 + 4 * 50
        assert stats["totalCostValue"] == 10 * 60 + 4 * 30
        assert stats["potentialProfit"] == 1200 - 720
        assert stats["outOfStockCount"] == 1
        assert stats["averageStockLevel"] == round(14 / 3, 1)
        assert [a["id"] for a in stats["lowStockAlerts"]] == ["p-brake", "p-filter"]
        assert stats["topValueProducts"][0]["id"] == "p-oil"

    def test_empty_catalog(self):
        assert inventory_stats([])["totalProducts"] == 0

    def test_suggested_price(self):
        assert suggested_price(1000, 0.3) == 1300


# =============================================================================
# SALES READS
# =============================================================================


class TestSalesReads:
    @pytest.fixture
    def dated_backend(self, catalog):
        backend = MemoryBackend(catalog)
        today_start, _ = local_day_bounds()
        yesterday_start, _ = local_day_bounds(offset_days=-1)
        backend.sales = {
            "s1": sale_row("s1", "p-oil", 1, 100.0, today_start + timedelta(minutes=5)),
            "s2": sale_row("s2", "p-oil", 2, 200.0, today_start + timedelta(minutes=10)),
            "s3": sale_row("s3", "p-filter", 1, 50.0, yesterday_start + timedelta(hours=1), name="Filtro"),
        }
        return backend

    async def test_sales_today_uses_local_day_window(self, dated_backend):
        gateway = RemoteGateway(dated_backend, principal="tester")
        result = await gateway.get_sales_today()
        assert [s.id for s in result.data] == ["s2", "s1"]

    async def test_today_stats(self, dated_backend):
        stats = (await RemoteGateway(dated_backend).get_today_stats()).data
        assert stats["totalSalesToday"] == 2
        assert stats["revenueToday"] == 300.0
        assert stats["averageTicketToday"] == 150

    async def test_today_vs_yesterday(self, dated_backend):
        comparison = (await RemoteGateway(dated_backend).get_today_vs_yesterday_comparison()).data
        assert comparison["today"] == {"sales": 2, "revenue": 300.0}
        assert comparison["yesterday"] == {"sales": 1, "revenue": 50.0}
        assert comparison["growth"]["salesPercentage"] == 100.0
        assert comparison["growth"]["revenuePercentage"] == 500.0

    async def test_sales_stats_top_products(self, dated_backend):
        stats = (await RemoteGateway(dated_backend).get_sales_stats()).data
        assert stats["totalSales"] == 3
        assert stats["totalRevenue"] == 350.0
        assert stats["topProducts"][0]["product_name"] == "Aceite Helix 10W-40"

    async def test_date_range_is_inclusive(self, dated_backend):
        start = dated_backend.sales["s3"]["sale_date"]
        end = dated_backend.sales["s1"]["sale_date"]
        result = await RemoteGateway(dated_backend).get_sales_by_date_range(start, end)
        assert {s.id for s in result.data} == {"s1", "s3"}

    async def test_get_sale_by_id(self, dated_backend):
        sale = (await RemoteGateway(dated_backend).get_sale_by_id("s1")).data
        assert sale.final_amount == 100.0


# =============================================================================
# CATEGORIES
# =============================================================================


class TestCategories:
    async def test_crud(self, gateway):
        created = (await gateway.create_category(CategoryCreate(name="Aditivos"))).data
        renamed = (await gateway.update_category(created.id, CategoryUpdate(name="Aditivos y limpiadores"))).data
        assert renamed.name == "Aditivos y limpiadores"
        assert [c.name for c in (await gateway.get_all_categories()).data] == ["Aditivos y limpiadores"]
        assert (await gateway.delete_category(created.id)).data is True
        assert isinstance((await gateway.delete_category(created.id)).error, NotFoundError)


# =============================================================================
# PURCHASE ORDERS
# =============================================================================


class TestPurchaseOrders:
    async def test_receiving_adds_stock(self, gateway, backend):
        order = (await gateway.create_purchase_order(
            PurchaseOrderCreate(product_id="p-filter", quantity=6, unit_cost=30)
        )).data
        assert order.status is PurchaseOrderStatus.PENDING
        assert order.total == 180

        received = await gateway.update_purchase_order_status(order.id, PurchaseOrderStatus.RECEIVED)
        assert received.data.received_at is not None
        assert backend.products["p-filter"]["stock"] == 10

    async def test_terminal_states_reject_transitions(self, gateway, backend):
        order = (await gateway.create_purchase_order(
            PurchaseOrderCreate(product_id="p-oil", quantity=1, unit_cost=1, status=PurchaseOrderStatus.CANCELLED)
        )).data
        assert order.status is PurchaseOrderStatus.CANCELLED
        result = await gateway.update_purchase_order_status(order.id, PurchaseOrderStatus.RECEIVED)
        assert isinstance(result.error, ValidationError)
        assert backend.products["p-oil"]["stock"] == 10

    async def test_unknown_product(self, gateway):
        result = await gateway.create_purchase_order(PurchaseOrderCreate(product_id="nope", quantity=1, unit_cost=1))
        assert isinstance(result.error, NotFoundError)


# =============================================================================
# MISC
# =============================================================================


def test_sale_number_format():
    number = generate_sale_number()
    assert re.fullmatch(r"V-\d{6}-\d{6}", number)
    assert number[2:8] == utcnow().astimezone().strftime("%y%m%d")


def test_demo_backend_without_db_url():
    backend = create_backend(Settings(DB_URL=None))
    assert isinstance(backend, MemoryBackend)
    assert len(backend.products) == 8
