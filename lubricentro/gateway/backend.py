"""Row-level primitives of the remote data store.

``RemoteGateway`` and ``SaleService`` speak only to this interface. Rows are
plain dicts keyed by column name. Every ``update_*``/``adjust_*``/
``transition_*`` primitive is conditional: it returns ``None`` when no row
matched its guard instead of guessing from an empty result.
"""
import copy
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from lubricentro.core.errors import BackendError
from lubricentro.core.time_utils import utcnow
from lubricentro.db.models import new_id

Row = Dict[str, Any]


class Backend:
    # products
    async def list_products(self, offset: int, limit: int) -> List[Row]:
        raise NotImplementedError

    async def get_product(self, product_id: str) -> Optional[Row]:
        raise NotImplementedError

    async def get_product_by_barcode(self, barcode: str) -> Optional[Row]:
        raise NotImplementedError

    async def insert_product(self, values: Row) -> Row:
        raise NotImplementedError

    async def update_product(self, product_id: str, values: Row) -> Optional[Row]:
        raise NotImplementedError

    async def adjust_product_stock(self, product_id: str, delta: int) -> Optional[Row]:
        """Move stock by ``delta``; ``None`` if the row is missing or stock would go negative."""
        raise NotImplementedError

    async def delete_product(self, product_id: str) -> int:
        raise NotImplementedError

    # sales
    async def insert_sales(self, rows: List[Row]) -> List[Row]:
        raise NotImplementedError

    async def get_sale(self, sale_id: str) -> Optional[Row]:
        raise NotImplementedError

    async def get_sales_by_number(self, sale_number: str) -> List[Row]:
        raise NotImplementedError

    async def list_sales(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        inclusive_end: bool = True,
    ) -> List[Row]:
        raise NotImplementedError

    async def update_sale(self, sale_id: str, values: Row) -> Optional[Row]:
        raise NotImplementedError

    async def delete_sale(self, sale_id: str) -> int:
        raise NotImplementedError

    async def delete_sales_by_number(self, sale_number: str) -> int:
        raise NotImplementedError

    # categories
    async def list_categories(self) -> List[Row]:
        raise NotImplementedError

    async def get_category(self, category_id: str) -> Optional[Row]:
        raise NotImplementedError

    async def insert_category(self, values: Row) -> Row:
        raise NotImplementedError

    async def update_category(self, category_id: str, values: Row) -> Optional[Row]:
        raise NotImplementedError

    async def delete_category(self, category_id: str) -> int:
        raise NotImplementedError

    # purchase orders
    async def list_purchase_orders(self) -> List[Row]:
        raise NotImplementedError

    async def get_purchase_order(self, order_id: str) -> Optional[Row]:
        raise NotImplementedError

    async def insert_purchase_order(self, values: Row) -> Row:
        raise NotImplementedError

    async def transition_purchase_order(self, order_id: str, from_status: str, values: Row) -> Optional[Row]:
        raise NotImplementedError


class MemoryBackend(Backend):
    """In-process tables; serves demo mode and tests."""

    def __init__(self, products: Iterable[Row] = ()):
        self.products: Dict[str, Row] = {}
        self.sales: Dict[str, Row] = {}
        self.categories: Dict[str, Row] = {}
        self.purchase_orders: Dict[str, Row] = {}
        for product in products:
            self._insert(self.products, product)

    @staticmethod
    def _insert(table: Dict[str, Row], values: Row) -> Row:
        row = copy.deepcopy(values)
        row.setdefault("id", new_id())
        row.setdefault("created_at", utcnow())
        if row["id"] in table:
            raise BackendError(f"duplicate key {row['id']}")
        table[row["id"]] = row
        return copy.deepcopy(row)

    @staticmethod
    def _get(table: Dict[str, Row], key: str) -> Optional[Row]:
        row = table.get(key)
        return copy.deepcopy(row) if row is not None else None

    # products
    async def list_products(self, offset: int, limit: int) -> List[Row]:
        rows = sorted(self.products.values(), key=lambda r: r["created_at"], reverse=True)
        return copy.deepcopy(rows[offset:offset + limit])

    async def get_product(self, product_id: str) -> Optional[Row]:
        return self._get(self.products, product_id)

    async def get_product_by_barcode(self, barcode: str) -> Optional[Row]:
        for row in self.products.values():
            if row["barcode"] == barcode:
                return copy.deepcopy(row)
        return None

    async def insert_product(self, values: Row) -> Row:
        if any(r["barcode"] == values.get("barcode") for r in self.products.values()):
            raise BackendError("duplicate key value violates unique constraint on products.barcode")
        values = {"stock": 0, "min_stock": 0, "updated_at": utcnow(), **values}
        return self._insert(self.products, values)

    async def update_product(self, product_id: str, values: Row) -> Optional[Row]:
        row = self.products.get(product_id)
        if row is None:
            return None
        if values.get("stock", 0) < 0:
            raise BackendError("new row violates check constraint ck_products_stock_non_negative")
        row.update(copy.deepcopy(values))
        return copy.deepcopy(row)

    async def adjust_product_stock(self, product_id: str, delta: int) -> Optional[Row]:
        row = self.products.get(product_id)
        if row is None or row["stock"] + delta < 0:
            return None
        row["stock"] += delta
        row["updated_at"] = utcnow()
        return copy.deepcopy(row)

    async def delete_product(self, product_id: str) -> int:
        return 1 if self.products.pop(product_id, None) is not None else 0

    # sales
    async def insert_sales(self, rows: List[Row]) -> List[Row]:
        staged = [copy.deepcopy(r) for r in rows]
        for row in staged:
            row.setdefault("id", new_id())
            if row["id"] in self.sales:
                raise BackendError(f"duplicate key {row['id']}")
        return [self._insert(self.sales, row) for row in staged]

    async def get_sale(self, sale_id: str) -> Optional[Row]:
        return self._get(self.sales, sale_id)

    async def get_sales_by_number(self, sale_number: str) -> List[Row]:
        rows = [r for r in self.sales.values() if r["sale_number"] == sale_number]
        return copy.deepcopy(sorted(rows, key=lambda r: r["created_at"]))

    async def list_sales(self, start=None, end=None, inclusive_end=True) -> List[Row]:
        def in_range(row: Row) -> bool:
            sale_date = row["sale_date"]
            if start is not None and sale_date < start:
                return False
            if end is not None and (sale_date > end if inclusive_end else sale_date >= end):
                return False
            return True

        rows = [r for r in self.sales.values() if in_range(r)]
        return copy.deepcopy(sorted(rows, key=lambda r: r["sale_date"], reverse=True))

    async def update_sale(self, sale_id: str, values: Row) -> Optional[Row]:
        row = self.sales.get(sale_id)
        if row is None:
            return None
        row.update(copy.deepcopy(values))
        return copy.deepcopy(row)

    async def delete_sale(self, sale_id: str) -> int:
        return 1 if self.sales.pop(sale_id, None) is not None else 0

    async def delete_sales_by_number(self, sale_number: str) -> int:
        doomed = [key for key, row in self.sales.items() if row["sale_number"] == sale_number]
        for key in doomed:
            del self.sales[key]
        return len(doomed)

    # categories
    async def list_categories(self) -> List[Row]:
        return copy.deepcopy(sorted(self.categories.values(), key=lambda r: r["name"]))

    async def get_category(self, category_id: str) -> Optional[Row]:
        return self._get(self.categories, category_id)

    async def insert_category(self, values: Row) -> Row:
        return self._insert(self.categories, values)

    async def update_category(self, category_id: str, values: Row) -> Optional[Row]:
        row = self.categories.get(category_id)
        if row is None:
            return None
        row.update(values)
        return copy.deepcopy(row)

    async def delete_category(self, category_id: str) -> int:
        return 1 if self.categories.pop(category_id, None) is not None else 0

    # purchase orders
    async def list_purchase_orders(self) -> List[Row]:
        return copy.deepcopy(sorted(self.purchase_orders.values(), key=lambda r: r["created_at"], reverse=True))

    async def get_purchase_order(self, order_id: str) -> Optional[Row]:
        return self._get(self.purchase_orders, order_id)

    async def insert_purchase_order(self, values: Row) -> Row:
        return self._insert(self.purchase_orders, values)

    async def transition_purchase_order(self, order_id: str, from_status: str, values: Row) -> Optional[Row]:
        row = self.purchase_orders.get(order_id)
        if row is None or row["status"] != from_status:
            return None
        row.update(values)
        return copy.deepcopy(row)
