# lubricentro/domain/sync/service.py
import asyncio
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError

from lubricentro.core.errors import NotFoundError, PartialFailureError, ValidationError
from lubricentro.domain.catalog.schemas import PurchaseOrderCreate
from lubricentro.domain.offline.cache import Document, OfflineCache, to_document
from lubricentro.domain.sales.schemas import SaleCreate
from lubricentro.domain.sales.service import SaleService
from lubricentro.gateway.service import RemoteGateway

logger = logging.getLogger(__name__)

REJECTED = (ValidationError, NotFoundError)


@dataclass
class SyncReport:
    products_updated: bool = False
    synced_sales: int = 0
    synced_orders: int = 0
    rejected_sales: int = 0
    rejected_orders: int = 0
    failed_sales: int = 0
    failed_orders: int = 0
    error: Optional[str] = None
    messages: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None


class SyncManager:
    """Reconciles the offline cache with the remote backend.

    Only one cycle runs at a time; a trigger that arrives while a cycle is in
    flight returns ``None`` instead of queueing.
    """

    def __init__(self, cache: OfflineCache, gateway: RemoteGateway, sales: SaleService):
        self.cache = cache
        self.gateway = gateway
        self.sales = sales
        self.is_online = True
        self.last_report: Optional[SyncReport] = None
        self._lock = asyncio.Lock()

    @property
    def syncing(self) -> bool:
        return self._lock.locked()

    @property
    def pending_items(self) -> int:
        return self.cache.pending_count()

    @property
    def last_sync(self) -> Optional[datetime]:
        return self.cache.get_last_sync_time()

    async def set_online(self) -> Optional[SyncReport]:
        was_offline = not self.is_online
        self.is_online = True
        logger.info("Connectivity restored")
        if was_offline:
            return await self.auto_sync()
        return None

    def set_offline(self) -> None:
        self.is_online = False
        logger.warning("Connectivity lost, sales will be queued locally")

    async def auto_sync(self) -> Optional[SyncReport]:
        if not self.cache.get_settings().auto_sync:
            logger.info("Auto sync disabled in settings")
            return None
        return await self.sync()

    async def run_periodic(self, interval: float) -> None:
        while True:
            try:
                if self.is_online and self.cache.needs_sync():
                    await self.sync()
            except Exception:
                logger.exception("Periodic sync failed, retrying in %g s", interval)
            await asyncio.sleep(interval)

    async def sync(self) -> Optional[SyncReport]:
        if self._lock.locked():
            logger.info("Sync already in progress, trigger ignored")
            return None
        async with self._lock:
            report = await self._run_cycle()
        self.last_report = report
        return report

    async def _run_cycle(self) -> SyncReport:
        report = SyncReport()
        if not self.is_online:
            report.error = "Sin conexión: la sincronización se hará al volver a estar en línea"
            return report

        products = await self.gateway.get_all_products()
        if products.error:
            logger.error("Sync aborted, products could not be fetched: %s", products.error)
            report.error = products.error.message
            return report
        report.products_updated = self._refresh_snapshot(products.data)

        await self._drain_sales(report)
        await self._drain_purchase_orders(report)

        if report.synced_sales or report.synced_orders or report.rejected_sales or report.rejected_orders:
            refreshed = await self.gateway.get_all_products()
            if refreshed.error:
                logger.warning("Could not refresh products after sync: %s", refreshed.error)
            else:
                report.products_updated = self._refresh_snapshot(refreshed.data) or report.products_updated

        self.cache.mark_last_sync()
        logger.info(
            "Sync finished: %d sales, %d orders pushed; %d rejected; %d still pending",
            report.synced_sales, report.synced_orders,
            report.rejected_sales + report.rejected_orders, self.pending_items,
        )
        return report

    def _refresh_snapshot(self, products) -> bool:
        """Replace the snapshot with remote stock minus what is still queued locally."""
        queued = Counter()
        for pending in self.cache.get_pending_sales():
            if isinstance(pending.get("quantity"), int):
                queued[pending.get("product_id")] += pending["quantity"]
        remote = [to_document(p) for p in products]
        for product in remote:
            if product["id"] in queued:
                product["stock"] = max(product["stock"] - queued[product["id"]], 0)
        if remote == self.cache.get_products_from_local():
            return False
        return self.cache.save_products_to_local(remote)

    async def _drain_sales(self, report: SyncReport) -> None:
        for pending in self.cache.get_pending_sales():
            try:
                sale = SaleCreate.model_validate(pending)
            except PydanticValidationError as exc:
                logger.error("Pending sale %s is malformed: %s", pending.get("id"), exc)
                self._reject_sale(pending, report, "datos inválidos")
                continue

            result = await self.sales.create_sale(sale)
            if result.ok:
                self.cache.remove_pending_sale(pending["id"])
                report.synced_sales += 1
            elif isinstance(result.error, REJECTED):
                self._reject_sale(pending, report, result.error.message)
            elif isinstance(result.error, PartialFailureError):
                self.cache.remove_pending_sale(pending["id"])
                report.failed_sales += 1
                report.messages.append(result.error.message)
            else:
                logger.warning("Pending sale %s stays queued: %s", pending["id"], result.error)
                report.failed_sales += 1

    def _reject_sale(self, pending: Document, report: SyncReport, reason: str) -> None:
        # Its local decrement disappears with the post-drain snapshot refresh.
        self.cache.remove_pending_sale(pending.get("id"))
        report.rejected_sales += 1
        report.messages.append(f"Venta {pending.get('sale_number')} rechazada: {reason}")
        logger.warning("Pending sale %s rejected during sync: %s", pending.get("id"), reason)

    async def _drain_purchase_orders(self, report: SyncReport) -> None:
        for pending in self.cache.get_pending_purchase_orders():
            try:
                order = PurchaseOrderCreate.model_validate(pending)
            except PydanticValidationError as exc:
                logger.error("Pending purchase order %s is malformed: %s", pending.get("id"), exc)
                self.cache.remove_pending_purchase_order(pending.get("id"))
                report.rejected_orders += 1
                continue

            result = await self.gateway.create_purchase_order(order)
            if result.ok:
                self.cache.remove_pending_purchase_order(pending["id"])
                report.synced_orders += 1
            elif isinstance(result.error, REJECTED):
                self.cache.remove_pending_purchase_order(pending["id"])
                report.rejected_orders += 1
                report.messages.append(f"Pedido {pending['id']} rechazado: {result.error.message}")
            else:
                logger.warning("Pending purchase order %s stays queued: %s", pending["id"], result.error)
                report.failed_orders += 1
