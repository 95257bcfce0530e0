from lubricentro.db.models.categories import Category
from lubricentro.db.models.products import Product, new_id
from lubricentro.db.models.purchase_orders import PurchaseOrder, PurchaseOrderStatus
from lubricentro.db.models.sales import PaymentMethod, Sale

__all__ = [
    "Category",
    "PaymentMethod",
    "Product",
    "PurchaseOrder",
    "PurchaseOrderStatus",
    "Sale",
    "new_id",
]
