# lubricentro/domain/sales/service.py
"""Sale writes: insert rows and move stock so the two never drift apart.

A single-line sale is Validating -> Inserted -> StockAdjusted; when the stock
step fails the inserted row is deleted again. Bulk sales validate every line
up front but keep inserted rows when a later stock update fails and report
the failure as a warning. Deletions restore stock per product and report a
``PartialFailureError`` if any restoration fails, without re-inserting rows.
"""
import logging
from collections import Counter, OrderedDict
from typing import Dict, List, Optional, Sequence

from lubricentro.core.errors import (
    LubricentroError,
    NoRowMatchedError,
    NotFoundError,
    PartialFailureError,
    StorageError,
    ValidationError,
)
from lubricentro.core.time_utils import as_utc, utcnow
from lubricentro.domain.offline.cache import OfflineCache
from lubricentro.domain.sales.schemas import (
    CheckoutOut,
    CheckoutRequest,
    CustomerInfo,
    SaleCreate,
    SaleOut,
    SaleUpdate,
)
from lubricentro.gateway.backend import Row
from lubricentro.gateway.service import RemoteGateway, Result, generate_sale_number

logger = logging.getLogger(__name__)

OFFLINE_CAVEAT = "Venta guardada localmente, se sincronizará al recuperar la conexión"


def insufficient_stock(name: str, available: int, required: int) -> ValidationError:
    return ValidationError(f"Stock insuficiente para '{name}'. Disponible: {available}, Requerido: {required}")


def check_discount(sale: SaleCreate) -> None:
    if sale.discount_exceeds_total:
        raise ValidationError(
            f"El descuento ({sale.discount_amount}) no puede superar el total de la venta ({sale.total_amount})"
        )


def sale_out(row: Row) -> SaleOut:
    return SaleOut.model_validate({**row, "total": row["final_amount"]})


def apportion_discount(totals: Sequence[float], discount: float) -> List[float]:
    """Split ``discount`` across lines in proportion to their totals.

    The last line takes the rounding remainder so the shares add up exactly.
    """
    if not totals:
        return []
    subtotal = sum(totals)
    if not discount or not subtotal:
        return [0.0] * len(totals)
    shares = [round(discount * total / subtotal, 2) for total in totals[:-1]]
    shares.append(round(discount - sum(shares), 2))
    return shares


class SaleService:
    def __init__(self, gateway: RemoteGateway, cache: OfflineCache):
        self.gateway = gateway
        self.cache = cache

    @property
    def backend(self):
        return self.gateway.backend

    def _sale_values(self, sale: SaleCreate, sale_number: str, product) -> Row:
        values = sale.model_dump()
        now = utcnow()
        values.update(
            sale_number=sale_number,
            product_barcode=sale.product_barcode or product.barcode,
            product_name=sale.product_name or product.name,
            sale_date=as_utc(sale.sale_date) or now,
            created_at=now,
            updated_at=now,
        )
        return values

    async def _fetch_product(self, product_id: str):
        result = await self.gateway.get_product_by_id(product_id)
        if result.error:
            raise result.error
        if result.data is None:
            raise NotFoundError(f"Producto con ID {product_id} no encontrado")
        return result.data

    # ------------------------------------------------------------------
    # create

    async def create_sale(self, sale: SaleCreate) -> Result:
        try:
            self.gateway.require_principal()
            check_discount(sale)
            product = await self._fetch_product(sale.product_id)
            if product.stock < sale.quantity:
                raise insufficient_stock(product.name, product.stock, sale.quantity)

            values = self._sale_values(sale, sale.sale_number or generate_sale_number(), product)
            [row] = await self.gateway.execute(self.backend.insert_sales([values]))
        except LubricentroError as exc:
            logger.error("Sale for product %s rejected: %s", sale.product_id, exc)
            return Result(error=exc)

        try:
            adjusted = await self.gateway.execute(self.backend.adjust_product_stock(product.id, -sale.quantity))
            if adjusted is None:
                raise ValidationError(
                    f"El stock de '{product.name}' cambió durante la venta y no alcanza para {sale.quantity} unidades"
                )
        except LubricentroError as exc:
            logger.error("Stock update failed for sale %s, deleting the inserted row: %s", row["sale_number"], exc)
            return Result(error=await self._compensate_insert(row, exc))

        logger.info("Sale %s created: %d x %s", row["sale_number"], sale.quantity, product.name)
        return Result(data=sale_out(row))

    async def _compensate_insert(self, row: Row, cause: LubricentroError) -> LubricentroError:
        try:
            deleted = await self.gateway.execute(self.backend.delete_sale(row["id"]))
        except LubricentroError as exc:
            logger.critical("Compensating delete of sale row %s failed: %s", row["id"], exc)
            deleted = 0
        if deleted:
            return cause
        return PartialFailureError(
            f"La venta {row['sale_number']} quedó registrada sin descontar stock. "
            "Revisa la venta y el inventario manualmente.",
            details=[str(cause)],
        )

    async def create_bulk_sale(
        self,
        items: Sequence[SaleCreate],
        sale_number: Optional[str] = None,
        customer_info: Optional[CustomerInfo] = None,
    ) -> Result:
        if not items:
            return Result(error=ValidationError("La venta no tiene productos"))
        sale_number = sale_number or generate_sale_number()
        try:
            self.gateway.require_principal()
            required = Counter()
            for item in items:
                check_discount(item)
                required[item.product_id] += item.quantity
            products = {}
            for product_id, quantity in required.items():
                product = await self._fetch_product(product_id)
                if product.stock < quantity:
                    raise insufficient_stock(product.name, product.stock, quantity)
                products[product_id] = product

            overrides = customer_info.model_dump(exclude_none=True) if customer_info else {}
            rows = []
            for item in items:
                values = self._sale_values(item, sale_number, products[item.product_id])
                values.update(overrides)
                rows.append(values)
            inserted = await self.gateway.execute(self.backend.insert_sales(rows))
        except LubricentroError as exc:
            logger.error("Bulk sale %s rejected: %s", sale_number, exc)
            return Result(error=exc)

        warnings = []
        for row in inserted:
            try:
                adjusted = await self.gateway.execute(
                    self.backend.adjust_product_stock(row["product_id"], -row["quantity"])
                )
            except LubricentroError as exc:
                logger.error("Bulk sale %s: stock update for %s failed: %s", sale_number, row["product_id"], exc)
                adjusted = None
            if adjusted is None:
                warnings.append(
                    f"No se pudo descontar el stock de '{row['product_name']}' "
                    f"({row['quantity']} unidades) en la venta {sale_number}"
                )
        if warnings:
            logger.warning("Bulk sale %s saved with %d stock update failure(s)", sale_number, len(warnings))
        else:
            logger.info("Bulk sale %s created with %d lines", sale_number, len(inserted))
        return Result(data=[sale_out(row) for row in inserted], warnings=tuple(warnings))

    # ------------------------------------------------------------------
    # update

    async def update_sale(self, sale_id: str, updates: SaleUpdate) -> Result:
        try:
            self.gateway.require_principal()
            current = await self.gateway.execute(self.backend.get_sale(sale_id))
            if current is None:
                raise NotFoundError(f"Venta {sale_id} no encontrada")

            values = updates.model_dump(exclude_none=True)
            quantity = values.get("quantity", current["quantity"])
            unit_price = values.get("unit_price", current["unit_price"])
            discount = values.get("discount_amount", current["discount_amount"])
            total_amount = round(quantity * unit_price, 2)
            if discount > total_amount:
                raise ValidationError("El descuento no puede superar el total de la venta")
            values.update(
                total_amount=total_amount,
                final_amount=round(total_amount - discount, 2),
                updated_at=utcnow(),
            )
            if "sale_date" in values:
                values["sale_date"] = as_utc(values["sale_date"])

            delta = quantity - current["quantity"]
            if delta:
                adjusted = await self.gateway.execute(self.backend.adjust_product_stock(current["product_id"], -delta))
                if adjusted is None:
                    product = await self._fetch_product(current["product_id"])
                    raise insufficient_stock(product.name, product.stock, delta)

            row = await self.gateway.execute(self.backend.update_sale(sale_id, values))
            if row is None:
                if delta:
                    await self.gateway.execute(self.backend.adjust_product_stock(current["product_id"], delta))
                raise NoRowMatchedError(f"La actualización de la venta {sale_id} no afectó ninguna fila")
        except LubricentroError as exc:
            logger.error("Error updating sale %s: %s", sale_id, exc)
            return Result(error=exc)
        logger.info("Sale %s updated", row["sale_number"])
        return Result(data=sale_out(row))

    # ------------------------------------------------------------------
    # delete

    async def delete_sale(self, sale_id: str) -> Result:
        try:
            self.gateway.require_principal()
            row = await self.gateway.execute(self.backend.get_sale(sale_id))
            if row is None:
                raise NotFoundError(f"Venta {sale_id} no encontrada")
            deleted = await self.gateway.execute(self.backend.delete_sale(sale_id))
        except LubricentroError as exc:
            logger.error("Error deleting sale %s: %s", sale_id, exc)
            return Result(error=exc)
        return await self._restore_stock([row], deleted, label=sale_id)

    async def delete_sale_by_sale_number(self, sale_number: str) -> Result:
        try:
            self.gateway.require_principal()
            rows = await self.gateway.execute(self.backend.get_sales_by_number(sale_number))
            if not rows:
                raise NotFoundError(f"Venta {sale_number} no encontrada")
            deleted = await self.gateway.execute(self.backend.delete_sales_by_number(sale_number))
        except LubricentroError as exc:
            logger.error("Error deleting sale %s: %s", sale_number, exc)
            return Result(error=exc)
        return await self._restore_stock(rows, deleted, label=sale_number)

    async def _restore_stock(self, rows: List[Row], deleted: int, label: str) -> Result:
        if not deleted:
            return Result(error=NotFoundError(f"Venta {label} no encontrada"))

        restore: Dict[str, int] = OrderedDict()
        for row in rows:
            restore[row["product_id"]] = restore.get(row["product_id"], 0) + row["quantity"]

        failures = []
        for product_id, quantity in restore.items():
            try:
                adjusted = await self.gateway.execute(self.backend.adjust_product_stock(product_id, quantity))
            except LubricentroError as exc:
                logger.error("Restoring %d units of %s failed: %s", quantity, product_id, exc)
                adjusted = None
            if adjusted is None:
                failures.append({"product_id": product_id, "quantity": quantity})

        if failures:
            logger.critical("Sale %s deleted but stock of %d product(s) was not restored", label, len(failures))
            return Result(error=PartialFailureError(
                f"Venta eliminada pero falló la restauración de stock de {len(failures)} producto(s). "
                "Revisa el inventario manualmente.",
                details=failures,
            ))
        logger.info("Sale %s deleted, stock restored for %d product(s)", label, len(restore))
        return Result(data={"deleted": deleted, "restored": dict(restore)})

    # ------------------------------------------------------------------
    # checkout

    async def checkout(self, request: CheckoutRequest, online: bool) -> Result:
        """Turn a cart into sale lines and persist them remotely or in the offline queue."""
        sale_number = request.sale_number or generate_sale_number()
        try:
            products = {}
            for line in request.items:
                if line.product_id not in products:
                    products[line.product_id] = await self._lookup(line.product_id, online)

            prices = [
                line.unit_price if line.unit_price is not None else products[line.product_id]["price"]
                for line in request.items
            ]
            totals = [round(line.quantity * price, 2) for line, price in zip(request.items, prices)]
            if request.discount > sum(totals):
                raise ValidationError("El descuento no puede superar el total de la venta")
            discounts = apportion_discount(totals, request.discount)

            customer = request.model_dump(include=set(CustomerInfo.model_fields))
            lines = [
                SaleCreate(
                    sale_number=sale_number,
                    product_id=line.product_id,
                    product_barcode=products[line.product_id]["barcode"],
                    product_name=products[line.product_id]["name"],
                    quantity=line.quantity,
                    unit_price=price,
                    discount_amount=discount,
                    **customer,
                )
                for line, price, discount in zip(request.items, prices, discounts)
            ]
        except LubricentroError as exc:
            return Result(error=exc)

        if not online:
            return self._checkout_offline(sale_number, lines, products)

        if len(lines) == 1:
            result = await self.create_sale(lines[0])
            sales = [result.data] if result.ok else []
        else:
            result = await self.create_bulk_sale(lines, sale_number)
            sales = result.data or []
        if result.error:
            return result
        return Result(
            data=CheckoutOut(
                sale_number=sale_number,
                offline=False,
                sales=sales,
                total=round(sum(s.final_amount for s in sales), 2),
                warnings=list(result.warnings),
            ),
            warnings=result.warnings,
        )

    async def _lookup(self, product_id: str, online: bool) -> Row:
        if online:
            return (await self._fetch_product(product_id)).model_dump()
        product = self.cache.get_local_product(product_id)
        if product is None:
            raise NotFoundError(f"Producto con ID {product_id} no está en el catálogo local")
        return product

    def _checkout_offline(self, sale_number: str, lines: List[SaleCreate], products: Dict[str, Row]) -> Result:
        required = Counter()
        for line in lines:
            required[line.product_id] += line.quantity
        for product_id, quantity in required.items():
            stock = products[product_id].get("stock", 0)
            if stock < quantity:
                return Result(error=insufficient_stock(products[product_id]["name"], stock, quantity))

        now = utcnow()
        queued = self.cache.save_pending_sales(
            [line.model_copy(update={"sale_date": line.sale_date or now}) for line in lines]
        )
        if queued is None:
            return Result(error=StorageError("No se pudo guardar la venta localmente"))

        for product_id, quantity in required.items():
            self.cache.update_local_product_stock(product_id, products[product_id]["stock"] - quantity)

        logger.info("Sale %s queued offline with %d line(s)", sale_number, len(queued))
        sales = [sale_out(document) for document in queued]
        return Result(
            data=CheckoutOut(
                sale_number=sale_number,
                offline=True,
                sales=sales,
                total=round(sum(s.final_amount for s in sales), 2),
                warnings=[OFFLINE_CAVEAT],
            ),
            warnings=(OFFLINE_CAVEAT,),
        )
