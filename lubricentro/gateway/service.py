# lubricentro/gateway/service.py
import asyncio
import contextvars
import logging
from typing import Any, Awaitable, List, NamedTuple, Optional, Sequence, TypeVar

from lubricentro.core.config import Settings
from lubricentro.core.errors import (
    AuthorizationError,
    BackendError,
    LubricentroError,
    NoRowMatchedError,
    NotFoundError,
    ValidationError,
)
from lubricentro.core.time_utils import epoch_ms, local_day_bounds, utcnow
from lubricentro.db.models.purchase_orders import PurchaseOrderStatus
from lubricentro.domain.catalog import stats as catalog_stats
from lubricentro.domain.catalog.schemas import (
    CategoryCreate,
    CategoryOut,
    CategoryUpdate,
    ProductCreate,
    ProductOut,
    ProductUpdate,
    PurchaseOrderCreate,
    PurchaseOrderOut,
)
from lubricentro.domain.sales import stats as sales_stats
from lubricentro.domain.sales.schemas import SaleOut
from lubricentro.gateway.backend import Backend, MemoryBackend

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Operator of the request being served; falls back to the gateway-wide principal.
request_principal = contextvars.ContextVar("request_principal", default=None)

DUPLICATE_BARCODE = "Ya existe un producto con este código de barras"

PURCHASE_ORDER_TRANSITIONS = {
    PurchaseOrderStatus.PENDING: {PurchaseOrderStatus.RECEIVED, PurchaseOrderStatus.CANCELLED},
    PurchaseOrderStatus.RECEIVED: set(),
    PurchaseOrderStatus.CANCELLED: set(),
}


class Result(NamedTuple):
    """``data``/``error`` pair returned instead of raising."""

    data: Any = None
    error: Optional[LubricentroError] = None
    warnings: Sequence[str] = ()

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Any:
        if self.error is not None:
            raise self.error
        return self.data


def generate_sale_number() -> str:
    now = utcnow().astimezone()
    return f"V-{now:%y%m%d}-{str(epoch_ms())[-6:]}"


def _clean(values: dict, drop_empty_strings: bool) -> dict:
    return {
        key: value
        for key, value in values.items()
        if value is not None and not (drop_empty_strings and value == "")
    }


def create_backend(config: Settings) -> Backend:
    """Demo catalog in memory when no ``DB_URL`` is configured."""
    if config.demo_mode:
        from lubricentro.gateway.demo_data import demo_products

        logger.warning("DB_URL not set: running in demo mode with an in-memory catalog")
        return MemoryBackend(demo_products())

    from lubricentro.db import base
    from lubricentro.gateway.sql import SqlBackend

    if base.AsyncSessionLocal is not None and config.DB_URL == base.settings.DB_URL:
        return SqlBackend(base.AsyncSessionLocal)
    return SqlBackend(base.make_session_factory(base.make_engine(config.DB_URL)))


class RemoteGateway:
    """CRUD and read-side aggregates against the authoritative store.

    Mutations require a signed-in ``principal``; reads only warn when there
    is none. Every backend call is bounded by ``timeout`` seconds.
    """

    def __init__(
        self,
        backend: Backend,
        principal: Optional[str] = None,
        timeout: float = 10.0,
        page_size: int = 1000,
    ):
        self.backend = backend
        self.principal = principal
        self.timeout = timeout
        self.page_size = page_size

    @property
    def principal(self) -> Optional[str]:
        return request_principal.get() or self._principal

    @principal.setter
    def principal(self, value: Optional[str]) -> None:
        self._principal = value

    @staticmethod
    def sign_in_request(principal: Optional[str]) -> None:
        """Bind ``principal`` to the current task only."""
        request_principal.set(principal)

    async def execute(self, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, self.timeout)
        except asyncio.TimeoutError as exc:
            raise BackendError(f"El servidor no respondió en {self.timeout:g} s") from exc

    def require_principal(self) -> None:
        if not self.principal:
            raise AuthorizationError("Debes iniciar sesión para realizar esta operación")

    def _warn_anonymous(self, what: str) -> None:
        if not self.principal:
            logger.warning("Reading %s without an authenticated user", what)

    # ------------------------------------------------------------------
    # products

    async def get_all_products(self) -> Result:
        self._warn_anonymous("products")
        products: List[ProductOut] = []
        offset = 0
        try:
            while True:
                page = await self.execute(self.backend.list_products(offset, self.page_size))
                products.extend(ProductOut.model_validate(row) for row in page)
                if len(page) < self.page_size:
                    break
                offset += self.page_size
        except LubricentroError as exc:
            logger.error("Error fetching products: %s", exc)
            return Result(error=exc)
        return Result(data=products)

    async def get_product_by_id(self, product_id: str) -> Result:
        try:
            row = await self.execute(self.backend.get_product(product_id))
        except LubricentroError as exc:
            logger.error("Error fetching product %s: %s", product_id, exc)
            return Result(error=exc)
        return Result(data=ProductOut.model_validate(row) if row else None)

    async def get_product_by_barcode(self, barcode: str) -> Result:
        try:
            row = await self.execute(self.backend.get_product_by_barcode(barcode))
        except LubricentroError as exc:
            logger.error("Error looking up barcode %s: %s", barcode, exc)
            return Result(error=exc)
        return Result(data=ProductOut.model_validate(row) if row else None)

    async def create_product(self, product: ProductCreate) -> Result:
        try:
            self.require_principal()
            existing = await self.get_product_by_barcode(product.barcode)
            if existing.error:
                return existing
            if existing.data is not None:
                return Result(error=ValidationError(DUPLICATE_BARCODE))

            values = _clean(product.model_dump(), drop_empty_strings=True)
            values.setdefault("description", "")
            now = utcnow()
            values.update(created_at=now, updated_at=now)
            row = await self.execute(self.backend.insert_product(values))
        except LubricentroError as exc:
            logger.error("Error creating product %s: %s", product.barcode, exc)
            return Result(error=exc)
        logger.info("Product created: %s (%s)", row["name"], row["id"])
        return Result(data=ProductOut.model_validate(row))

    async def update_product(self, product_id: str, updates: ProductUpdate) -> Result:
        try:
            self.require_principal()
            current = await self.get_product_by_id(product_id)
            if current.error:
                return current
            if current.data is None:
                return Result(error=NotFoundError(f"Producto con ID {product_id} no encontrado"))

            if updates.barcode and updates.barcode != current.data.barcode:
                duplicate = await self.get_product_by_barcode(updates.barcode)
                if duplicate.error:
                    return duplicate
                if duplicate.data is not None and duplicate.data.id != product_id:
                    return Result(error=ValidationError(DUPLICATE_BARCODE))

            values = _clean(updates.model_dump(), drop_empty_strings=False)
            values["updated_at"] = utcnow()
            row = await self.execute(self.backend.update_product(product_id, values))
            if row is None:
                return Result(error=NoRowMatchedError(
                    f"La actualización del producto {product_id} no afectó ninguna fila; "
                    "verifica tus permisos"
                ))
        except LubricentroError as exc:
            logger.error("Error updating product %s: %s", product_id, exc)
            return Result(error=exc)
        logger.info("Product updated: %s", row["name"])
        return Result(data=ProductOut.model_validate(row))

    async def delete_product(self, product_id: str) -> Result:
        try:
            self.require_principal()
            current = await self.get_product_by_id(product_id)
            if current.error:
                return current
            if current.data is None:
                return Result(error=NotFoundError(f"Producto con ID {product_id} no encontrado"))
            deleted = await self.execute(self.backend.delete_product(product_id))
            if not deleted:
                return Result(error=NoRowMatchedError(f"No se pudo eliminar el producto {product_id}"))
        except LubricentroError as exc:
            logger.error("Error deleting product %s: %s", product_id, exc)
            return Result(error=exc)
        logger.info("Product deleted: %s", product_id)
        return Result(data=True)

    async def get_inventory_stats(self) -> Result:
        result = await self.get_all_products()
        if result.error:
            return result
        return Result(data=catalog_stats.inventory_stats(result.data))

    async def verify_stock_integrity(self, product_id: str, expected_stock: int) -> bool:
        result = await self.get_product_by_id(product_id)
        if result.error or result.data is None:
            logger.error("Could not verify stock of %s: %s", product_id, result.error)
            return False
        if result.data.stock != expected_stock:
            logger.warning(
                "Stock mismatch for %s: expected %d, found %d",
                product_id, expected_stock, result.data.stock,
            )
            return False
        return True

    # ------------------------------------------------------------------
    # sales (reads; writes live in SaleService)

    async def _sales(self, start=None, end=None, inclusive_end=True) -> Result:
        try:
            rows = await self.execute(self.backend.list_sales(start, end, inclusive_end))
        except LubricentroError as exc:
            logger.error("Error fetching sales: %s", exc)
            return Result(error=exc)
        return Result(data=[SaleOut.model_validate(row) for row in rows])

    async def get_all_sales(self) -> Result:
        self._warn_anonymous("sales")
        return await self._sales()

    async def get_sale_by_id(self, sale_id: str) -> Result:
        try:
            row = await self.execute(self.backend.get_sale(sale_id))
        except LubricentroError as exc:
            return Result(error=exc)
        return Result(data=SaleOut.model_validate(row) if row else None)

    async def get_sales_by_number(self, sale_number: str) -> Result:
        try:
            rows = await self.execute(self.backend.get_sales_by_number(sale_number))
        except LubricentroError as exc:
            return Result(error=exc)
        return Result(data=[SaleOut.model_validate(row) for row in rows])

    async def get_sales_by_date_range(self, start, end) -> Result:
        return await self._sales(start, end, inclusive_end=True)

    async def get_sales_today(self) -> Result:
        self._warn_anonymous("today's sales")
        start, end = local_day_bounds()
        return await self._sales(start, end, inclusive_end=False)

    async def get_sales_stats(self, start=None, end=None) -> Result:
        result = await self._sales(start, end)
        if result.error:
            return result
        return Result(data=sales_stats.sales_summary(result.data))

    async def get_today_stats(self) -> Result:
        result = await self.get_sales_today()
        if result.error:
            return result
        return Result(data=sales_stats.day_stats(result.data))

    async def get_today_vs_yesterday_comparison(self) -> Result:
        today = await self.get_sales_today()
        if today.error:
            return today
        start, end = local_day_bounds(offset_days=-1)
        yesterday = await self._sales(start, end, inclusive_end=False)
        if yesterday.error:
            return yesterday
        return Result(data=sales_stats.day_comparison(today.data, yesterday.data))

    # ------------------------------------------------------------------
    # categories

    async def get_all_categories(self) -> Result:
        try:
            rows = await self.execute(self.backend.list_categories())
        except LubricentroError as exc:
            return Result(error=exc)
        return Result(data=[CategoryOut.model_validate(row) for row in rows])

    async def get_category_by_id(self, category_id: str) -> Result:
        try:
            row = await self.execute(self.backend.get_category(category_id))
        except LubricentroError as exc:
            return Result(error=exc)
        return Result(data=CategoryOut.model_validate(row) if row else None)

    async def create_category(self, category: CategoryCreate) -> Result:
        try:
            self.require_principal()
            row = await self.execute(self.backend.insert_category({**category.model_dump(), "created_at": utcnow()}))
        except LubricentroError as exc:
            logger.error("Error creating category %s: %s", category.name, exc)
            return Result(error=exc)
        return Result(data=CategoryOut.model_validate(row))

    async def update_category(self, category_id: str, updates: CategoryUpdate) -> Result:
        try:
            self.require_principal()
            row = await self.execute(
                self.backend.update_category(category_id, _clean(updates.model_dump(), drop_empty_strings=True))
            )
        except LubricentroError as exc:
            return Result(error=exc)
        if row is None:
            return Result(error=NotFoundError(f"Categoría {category_id} no encontrada"))
        return Result(data=CategoryOut.model_validate(row))

    async def delete_category(self, category_id: str) -> Result:
        try:
            self.require_principal()
            deleted = await self.execute(self.backend.delete_category(category_id))
        except LubricentroError as exc:
            return Result(error=exc)
        if not deleted:
            return Result(error=NotFoundError(f"Categoría {category_id} no encontrada"))
        return Result(data=True)

    # ------------------------------------------------------------------
    # purchase orders

    async def get_all_purchase_orders(self) -> Result:
        try:
            rows = await self.execute(self.backend.list_purchase_orders())
        except LubricentroError as exc:
            return Result(error=exc)
        return Result(data=[PurchaseOrderOut.model_validate(row) for row in rows])

    async def create_purchase_order(self, order: PurchaseOrderCreate) -> Result:
        """Insert as pending, then walk to the requested status if it differs."""
        try:
            self.require_principal()
            product = await self.get_product_by_id(order.product_id)
            if product.error:
                return product
            if product.data is None:
                return Result(error=NotFoundError(f"Producto {order.product_id} no encontrado"))
            values = order.model_dump(exclude={"status"})
            values.update(status=PurchaseOrderStatus.PENDING, created_at=utcnow())
            row = await self.execute(self.backend.insert_purchase_order(values))
        except LubricentroError as exc:
            logger.error("Error creating purchase order: %s", exc)
            return Result(error=exc)

        if order.status is PurchaseOrderStatus.PENDING:
            return Result(data=PurchaseOrderOut.model_validate(row))
        return await self.update_purchase_order_status(row["id"], order.status)

    async def update_purchase_order_status(self, order_id: str, status: PurchaseOrderStatus) -> Result:
        try:
            self.require_principal()
            row = await self.execute(self.backend.get_purchase_order(order_id))
            if row is None:
                return Result(error=NotFoundError(f"Pedido {order_id} no encontrado"))
            current = PurchaseOrderStatus(row["status"])
            if status not in PURCHASE_ORDER_TRANSITIONS[current]:
                return Result(error=ValidationError(
                    f"No se puede pasar un pedido de '{current.value}' a '{status.value}'"
                ))

            values = {"status": status}
            if status is PurchaseOrderStatus.RECEIVED:
                values["received_at"] = utcnow()
            updated = await self.execute(self.backend.transition_purchase_order(order_id, current, values))
            if updated is None:
                return Result(error=NoRowMatchedError(f"El pedido {order_id} cambió de estado mientras se actualizaba"))

            if status is PurchaseOrderStatus.RECEIVED:
                product = await self.execute(
                    self.backend.adjust_product_stock(updated["product_id"], updated["quantity"])
                )
                if product is None:
                    return Result(
                        data=PurchaseOrderOut.model_validate(updated),
                        warnings=(f"Pedido recibido pero el producto {updated['product_id']} ya no existe",),
                    )
                logger.info("Received %d units of %s", updated["quantity"], product["name"])
        except LubricentroError as exc:
            logger.error("Error updating purchase order %s: %s", order_id, exc)
            return Result(error=exc)
        return Result(data=PurchaseOrderOut.model_validate(updated))
