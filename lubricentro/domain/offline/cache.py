# lubricentro/domain/offline/cache.py
"""Everything the POS keeps outside the remote backend.

The cache owns the product snapshot, the pending sale and purchase-order
queues, the sync bookkeeping and the operator settings, all stored as JSON
documents in a ``KeyValueStore``. Reads never raise on a broken store or bad
JSON; they log and return an empty value. Using the cache with no store bound
raises ``CacheConfigurationError``.
"""
import enum
import json
import logging
import random
import string
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from lubricentro.core.errors import CacheConfigurationError, StorageError
from lubricentro.core.time_utils import epoch_ms, parse_timestamp, utcnow
from lubricentro.db.kv import KeyValueStore
from lubricentro.domain.offline.schemas import StoreSettings, SyncStats, ValidationReport

logger = logging.getLogger(__name__)


class StorageKeys:
    PRODUCTS = "lubricentro_products"
    SALES = "lubricentro_sales"
    PURCHASE_ORDERS = "lubricentro_purchase_orders"
    LAST_SYNC = "lubricentro_last_sync"
    LAST_SYNC_TIMESTAMP = "lubricentro_last_sync_timestamp"
    SETTINGS = "lubricentro_settings"
    LAST_BACKUP = "lubricentro_last_backup"
    PRODUCTS_TIMESTAMP = "lubricentro_products_timestamp"


PENDING_SALE_PREFIX = "pending_"
PENDING_ORDER_PREFIX = "temp_"
SYNC_MAX_AGE = timedelta(hours=1)
SNAPSHOT_MAX_AGE = timedelta(hours=24)

Document = Dict[str, Any]


def is_local_id(value: Optional[str]) -> bool:
    """True for ids minted by the cache rather than by the backend."""
    return bool(value) and value.startswith((PENDING_SALE_PREFIX, PENDING_ORDER_PREFIX))


def _local_id(prefix: str) -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"{prefix}{epoch_ms()}_{suffix}"


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.value
    raise TypeError(f"{type(value).__name__} is not JSON serializable")


def to_document(item: Any) -> Document:
    if isinstance(item, BaseModel):
        return item.model_dump(mode="json")
    return json.loads(json.dumps(dict(item), default=_json_default))


class OfflineCache:
    def __init__(self, store: Optional[KeyValueStore] = None):
        self._store = store

    def set_storage(self, store: KeyValueStore) -> None:
        self._store = store

    @property
    def store(self) -> KeyValueStore:
        if self._store is None:
            raise CacheConfigurationError(
                "OfflineCache has no storage bound; pass one to the constructor or call set_storage()"
            )
        return self._store

    # ------------------------------------------------------------------
    # raw access

    def _read_list(self, key: str) -> List[Document]:
        store = self.store
        try:
            raw = store.get(key)
            if not raw:
                return []
            value = json.loads(raw)
        except (StorageError, ValueError, TypeError) as exc:
            logger.warning("Could not read %s from local store: %s", key, exc)
            return []
        if not isinstance(value, list):
            logger.warning("Ignoring malformed %s: expected a list, got %s", key, type(value).__name__)
            return []
        return value

    def _read_str(self, key: str) -> Optional[str]:
        store = self.store
        try:
            return store.get(key)
        except StorageError as exc:
            logger.warning("Could not read %s from local store: %s", key, exc)
            return None

    def _write(self, key: str, value: str) -> bool:
        store = self.store
        try:
            store.set(key, value)
        except StorageError as exc:
            logger.error("Could not write %s to local store: %s", key, exc)
            return False
        return True

    def _write_list(self, key: str, items: List[Document]) -> bool:
        return self._write(key, json.dumps(items, default=_json_default))

    def _remove(self, key: str) -> None:
        store = self.store
        try:
            store.remove(key)
        except StorageError as exc:
            logger.error("Could not remove %s from local store: %s", key, exc)

    # ------------------------------------------------------------------
    # products

    def save_products_to_local(self, products: List[Any]) -> bool:
        documents = [to_document(p) for p in products]
        if not self._write_list(StorageKeys.PRODUCTS, documents):
            return False
        self._write(StorageKeys.PRODUCTS_TIMESTAMP, utcnow().isoformat())
        logger.info("%d products saved locally", len(documents))
        return True

    def get_products_from_local(self) -> List[Document]:
        return self._read_list(StorageKeys.PRODUCTS)

    def get_local_product(self, product_id: str) -> Optional[Document]:
        for product in self.get_products_from_local():
            if product.get("id") == product_id:
                return product
        return None

    def update_local_product_stock(self, product_id: str, new_stock: int) -> bool:
        products = self.get_products_from_local()
        for product in products:
            if product.get("id") == product_id:
                product["stock"] = new_stock
                product["updated_at"] = utcnow().isoformat()
                break
        else:
            logger.warning("Local stock not updated: product %s is not in the snapshot", product_id)
            return False
        if not self.save_products_to_local(products):
            return False
        logger.info("Local stock for product %s set to %d", product_id, new_stock)
        return True

    # ------------------------------------------------------------------
    # pending sales

    def save_pending_sale(self, sale: Any) -> Optional[Document]:
        saved = self.save_pending_sales([sale])
        return saved[0] if saved else None

    def save_pending_sales(self, sales: List[Any]) -> Optional[List[Document]]:
        """Queue every line of a sale in one write, or none of them."""
        documents = [to_document(sale) for sale in sales]
        pending = self.get_pending_sales()
        queued_ids = {s.get("id") for s in pending}
        for document in documents:
            if document.get("id") and document["id"] in queued_ids:
                logger.warning("Pending sale %s is already queued; keeping the queued copy", document["id"])
                return None

        now = utcnow().isoformat()
        for document in documents:
            document["id"] = document.get("id") or _local_id(PENDING_SALE_PREFIX)
            document["created_at"] = document.get("created_at") or now
            document["updated_at"] = now
        if not self._write_list(StorageKeys.SALES, pending + documents):
            return None
        for document in documents:
            logger.info("Sale %s queued for sync (%s)", document.get("sale_number"), document["id"])
        return documents

    def get_pending_sales(self) -> List[Document]:
        return self._read_list(StorageKeys.SALES)

    def remove_pending_sale(self, sale_id: str) -> None:
        pending = [s for s in self.get_pending_sales() if s.get("id") != sale_id]
        if self._write_list(StorageKeys.SALES, pending):
            logger.info("Pending sale %s removed", sale_id)

    def clear_pending_sales(self) -> None:
        self._remove(StorageKeys.SALES)
        logger.info("All pending sales cleared")

    # ------------------------------------------------------------------
    # pending purchase orders

    def save_pending_purchase_order(self, order: Any) -> Optional[Document]:
        document = to_document(order)
        pending = self.get_pending_purchase_orders()
        if document.get("id") and any(o.get("id") == document["id"] for o in pending):
            logger.warning("Pending purchase order %s is already queued", document["id"])
            return None
        document["id"] = document.get("id") or _local_id(PENDING_ORDER_PREFIX)
        document["created_at"] = document.get("created_at") or utcnow().isoformat()
        pending.append(document)
        if not self._write_list(StorageKeys.PURCHASE_ORDERS, pending):
            return None
        return document

    def get_pending_purchase_orders(self) -> List[Document]:
        return self._read_list(StorageKeys.PURCHASE_ORDERS)

    def remove_pending_purchase_order(self, order_id: str) -> None:
        pending = [o for o in self.get_pending_purchase_orders() if o.get("id") != order_id]
        self._write_list(StorageKeys.PURCHASE_ORDERS, pending)

    def clear_pending_purchase_orders(self) -> None:
        self._remove(StorageKeys.PURCHASE_ORDERS)

    # ------------------------------------------------------------------
    # sync bookkeeping

    def get_last_sync_time(self) -> Optional[datetime]:
        return parse_timestamp(
            self._read_str(StorageKeys.LAST_SYNC_TIMESTAMP) or self._read_str(StorageKeys.LAST_SYNC)
        )

    def mark_last_sync(self) -> None:
        now = utcnow().isoformat()
        self._write(StorageKeys.LAST_SYNC, now)
        self._write(StorageKeys.LAST_SYNC_TIMESTAMP, now)

    def pending_count(self) -> int:
        return len(self.get_pending_sales()) + len(self.get_pending_purchase_orders())

    def needs_sync(self) -> bool:
        if self.pending_count() > 0:
            return True
        last_sync = self.get_last_sync_time()
        if last_sync is None:
            return True
        return utcnow() - last_sync > SYNC_MAX_AGE

    def get_sync_stats(self) -> SyncStats:
        return SyncStats(
            pending_sales_count=len(self.get_pending_sales()),
            pending_orders_count=len(self.get_pending_purchase_orders()),
            last_sync_timestamp=self._read_str(StorageKeys.LAST_SYNC_TIMESTAMP),
            local_products_count=len(self.get_products_from_local()),
            local_products_timestamp=self._read_str(StorageKeys.PRODUCTS_TIMESTAMP),
        )

    # ------------------------------------------------------------------
    # settings

    def get_settings(self) -> StoreSettings:
        raw = self._read_str(StorageKeys.SETTINGS)
        if not raw:
            return StoreSettings()
        try:
            return StoreSettings.model_validate_json(raw)
        except PydanticValidationError as exc:
            logger.warning("Stored settings are invalid, using defaults: %s", exc)
            return StoreSettings()

    def save_settings(self, store_settings: StoreSettings) -> bool:
        return self._write(StorageKeys.SETTINGS, store_settings.model_dump_json(by_alias=True))

    def ensure_defaults(self) -> StoreSettings:
        """Write baseline settings the first time the application mounts."""
        if self._read_str(StorageKeys.SETTINGS) is None:
            self.save_settings(StoreSettings())
            logger.info("Default settings written to local store")
        return self.get_settings()

    def get_last_backup_time(self) -> Optional[datetime]:
        return parse_timestamp(self._read_str(StorageKeys.LAST_BACKUP))

    # ------------------------------------------------------------------
    # integrity and backup

    def validate_local_data(self) -> ValidationReport:
        errors: List[str] = []
        warnings: List[str] = []
        try:
            products = self.get_products_from_local()
            if not products:
                warnings.append("No hay productos guardados localmente")

            for product in products:
                product_id = product.get("id")
                if not product_id:
                    errors.append("Producto sin ID encontrado")
                if not product.get("barcode"):
                    errors.append(f"Producto {product_id} sin código de barras")
                stock = product.get("stock")
                if isinstance(stock, (int, float)) and stock < 0:
                    errors.append(f"Producto {product_id} con stock negativo: {stock}")

            for sale in self.get_pending_sales():
                if not sale.get("product_id"):
                    errors.append("Venta pendiente sin product_id")
                quantity = sale.get("quantity")
                if not isinstance(quantity, (int, float)) or quantity <= 0:
                    errors.append(f"Venta pendiente con cantidad inválida: {quantity}")
                if not sale.get("sale_number"):
                    errors.append("Venta pendiente sin número de venta")

            snapshot_at = parse_timestamp(self._read_str(StorageKeys.PRODUCTS_TIMESTAMP))
            if snapshot_at is None:
                warnings.append("No hay timestamp para productos locales")
            else:
                age = utcnow() - snapshot_at
                if age > SNAPSHOT_MAX_AGE:
                    hours = round(age.total_seconds() / 3600)
                    warnings.append(f"Los productos locales tienen {hours} horas de antigüedad")
        except CacheConfigurationError as exc:
            errors.append(f"Error validando datos locales: {exc.message}")

        return ValidationReport(is_valid=not errors, errors=errors, warnings=warnings)

    def export_local_data(self) -> Document:
        payload = {
            "products": self.get_products_from_local(),
            "pendingSales": self.get_pending_sales(),
            "pendingOrders": self.get_pending_purchase_orders(),
            "settings": self.get_settings().model_dump(mode="json", by_alias=True),
            "exportDate": utcnow().isoformat(),
        }
        self._write(StorageKeys.LAST_BACKUP, payload["exportDate"])
        return payload

    def import_local_data(self, payload: Document) -> Tuple[bool, str]:
        """Overwrite the sections present in ``payload``; absent sections stay."""
        sections = {
            "products": payload.get("products"),
            "pendingSales": payload.get("pendingSales"),
            "pendingOrders": payload.get("pendingOrders"),
        }
        for name, section in sections.items():
            if section is not None and not isinstance(section, list):
                return False, f"Error importando datos: '{name}' debe ser una lista"

        imported_settings = None
        if payload.get("settings") is not None:
            try:
                imported_settings = StoreSettings.model_validate(payload["settings"])
            except PydanticValidationError as exc:
                return False, f"Error importando datos: configuración inválida ({exc.error_count()} errores)"

        written = True
        if sections["products"] is not None:
            written &= self.save_products_to_local(sections["products"])
        if sections["pendingSales"] is not None:
            written &= self._write_list(StorageKeys.SALES, sections["pendingSales"])
        if sections["pendingOrders"] is not None:
            written &= self._write_list(StorageKeys.PURCHASE_ORDERS, sections["pendingOrders"])
        if imported_settings is not None:
            written &= self.save_settings(imported_settings)

        if not written:
            return False, "Error importando datos: no se pudo escribir en el almacenamiento local"
        return True, (
            f"Datos importados: {len(sections['products'] or [])} productos, "
            f"{len(sections['pendingSales'] or [])} ventas, "
            f"{len(sections['pendingOrders'] or [])} pedidos"
        )
