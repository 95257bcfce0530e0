"""Read-side aggregates over sale rows."""
from typing import Any, Dict, Sequence

from lubricentro.domain.sales.schemas import SaleOut

TOP_PRODUCTS_LIMIT = 5


def sales_summary(sales: Sequence[SaleOut]) -> Dict[str, Any]:
    if not sales:
        return {"totalSales": 0, "totalRevenue": 0, "averageTicket": 0, "topProducts": []}

    revenue = sum(s.final_amount for s in sales)
    by_product: Dict[str, Dict[str, Any]] = {}
    for sale in sales:
        entry = by_product.setdefault(
            sale.product_name,
            {"product_name": sale.product_name, "total_quantity": 0, "total_revenue": 0.0},
        )
        entry["total_quantity"] += sale.quantity
        entry["total_revenue"] += sale.final_amount

    top = sorted(by_product.values(), key=lambda e: e["total_revenue"], reverse=True)
    return {
        "totalSales": len(sales),
        "totalRevenue": round(revenue, 2),
        "averageTicket": round(revenue / len(sales)),
        "topProducts": top[:TOP_PRODUCTS_LIMIT],
    }


def day_stats(sales: Sequence[SaleOut]) -> Dict[str, Any]:
    """``sales`` must be ordered by sale_date descending."""
    revenue = sum(s.final_amount for s in sales)
    last = sales[0].sale_date if sales else None
    return {
        "totalSalesToday": len(sales),
        "revenueToday": round(revenue, 2),
        "averageTicketToday": round(revenue / len(sales)) if sales else 0,
        "lastSaleTime": last.isoformat() if last else None,
    }


def growth_percentage(current: float, previous: float) -> float:
    if previous > 0:
        return round((current - previous) / previous * 100, 2)
    return 100.0 if current > 0 else 0.0


def day_comparison(today: Sequence[SaleOut], yesterday: Sequence[SaleOut]) -> Dict[str, Any]:
    today_stats = {"sales": len(today), "revenue": round(sum(s.final_amount for s in today), 2)}
    yesterday_stats = {"sales": len(yesterday), "revenue": round(sum(s.final_amount for s in yesterday), 2)}
    return {
        "today": today_stats,
        "yesterday": yesterday_stats,
        "growth": {
            "salesPercentage": growth_percentage(today_stats["sales"], yesterday_stats["sales"]),
            "revenuePercentage": growth_percentage(today_stats["revenue"], yesterday_stats["revenue"]),
        },
    }
