"""Read-side inventory aggregates computed from the full product list."""
from collections import OrderedDict
from typing import Any, Dict, List, Sequence

from lubricentro.domain.catalog.schemas import ProductOut

TOP_VALUE_LIMIT = 10
URGENCY_ORDER = {"critical": 0, "warning": 1, "attention": 2}


def stock_urgency(stock: int, min_stock: int) -> str:
    if stock <= 0 or min_stock <= 0:
        return "critical"
    ratio = stock / min_stock
    if ratio <= 0.3:
        return "critical"
    if ratio <= 0.6:
        return "warning"
    return "attention"


def stock_bucket(stock: int, min_stock: int) -> str:
    if stock == 0:
        return "outOfStock"
    if stock <= min_stock:
        return "low"
    if stock <= 2 * min_stock:
        return "warning"
    return "healthy"


def empty_inventory_stats() -> Dict[str, Any]:
    return {
        "totalProducts": 0,
        "totalInventoryValue": 0,
        "totalCostValue": 0,
        "potentialProfit": 0,
        "lowStockCount": 0,
        "outOfStockCount": 0,
        "averageStockLevel": 0,
        "categoryDistribution": [],
        "topValueProducts": [],
        "lowStockAlerts": [],
        "stockDistribution": {"healthy": 0, "warning": 0, "low": 0, "outOfStock": 0},
    }


def inventory_stats(products: Sequence[ProductOut]) -> Dict[str, Any]:
    if not products:
        return empty_inventory_stats()

    total = len(products)
    inventory_value = sum(p.price * p.stock for p in products)
    cost_value = sum(p.cost * p.stock for p in products)
    average_stock = sum(p.stock for p in products) / total

    low_stock = [p for p in products if 0 < p.stock <= p.min_stock]
    out_of_stock = [p for p in products if p.stock == 0]

    categories: "OrderedDict[str, Dict[str, float]]" = OrderedDict()
    for product in products:
        entry = categories.setdefault(product.category, {"count": 0, "totalValue": 0.0})
        entry["count"] += 1
        entry["totalValue"] += product.price * product.stock
    category_distribution = sorted(
        (
            {
                "category": name,
                "count": entry["count"],
                "totalValue": entry["totalValue"],
                "percentage": round(entry["count"] / total * 100, 1),
            }
            for name, entry in categories.items()
        ),
        key=lambda item: item["count"],
        reverse=True,
    )

    top_value = sorted(
        (
            {
                "id": p.id,
                "name": p.name,
                "brand": p.brand,
                "stock": p.stock,
                "price": p.price,
                "totalValue": p.price * p.stock,
            }
            for p in products
        ),
        key=lambda item: item["totalValue"],
        reverse=True,
    )[:TOP_VALUE_LIMIT]

    alerts: List[Dict[str, Any]] = []
    for product, status in [(p, "out_of_stock") for p in out_of_stock] + [(p, "low_stock") for p in low_stock]:
        alerts.append({
            "id": product.id,
            "name": product.name,
            "brand": product.brand,
            "barcode": product.barcode,
            "current_stock": product.stock,
            "min_stock": product.min_stock,
            "status": status,
            "urgency": stock_urgency(product.stock, product.min_stock),
        })
    alerts.sort(key=lambda alert: URGENCY_ORDER[alert["urgency"]])

    distribution = {"healthy": 0, "warning": 0, "low": 0, "outOfStock": 0}
    for product in products:
        distribution[stock_bucket(product.stock, product.min_stock)] += 1

    return {
        "totalProducts": total,
        "totalInventoryValue": round(inventory_value),
        "totalCostValue": round(cost_value),
        "potentialProfit": round(inventory_value - cost_value),
        "lowStockCount": len(low_stock),
        "outOfStockCount": len(out_of_stock),
        "averageStockLevel": round(average_stock, 1),
        "categoryDistribution": category_distribution,
        "topValueProducts": top_value,
        "lowStockAlerts": alerts,
        "stockDistribution": distribution,
    }


def suggested_price(cost: float, markup: float) -> float:
    """Sale price for ``cost`` with a fractional ``markup`` (0.3 = 30 %)."""
    return round(cost * (1 + markup), 2)
