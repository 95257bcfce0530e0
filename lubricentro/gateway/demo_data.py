"""Catalog served when no backend is configured."""
from datetime import timedelta
from typing import Any, Dict, List

from lubricentro.core.time_utils import utcnow

_DEMO_PRODUCTS = [
    ("demo_1", "7790001234567", "Aceite Shell Helix 10W-40", "Shell", "Aceites y Lubricantes", 5500, 3800, 24, 10),
    ("demo_2", "7790001234568", "Filtro de Aceite Mann W712", "Mann", "Filtros", 2800, 1700, 3, 8),
    ("demo_3", "7790001234569", "Líquido de Frenos DOT 4", "Bosch", "Líquidos de Frenos", 2800, 1600, 0, 6),
    ("demo_4", "7790001234570", "Aceite Mobil 1 5W-30", "Mobil 1", "Aceites y Lubricantes", 8500, 6100, 2, 10),
    ("demo_5", "7790001234571", "Bujías NGK Iridium", "NGK", "Repuestos Motor", 4200, 2900, 5, 15),
    ("demo_6", "7790001234572", "Refrigerante Valvoline", "Valvoline", "Líquidos", 3100, 2000, 40, 8),
    ("demo_7", "7790001234573", "Pastillas de Freno Brembo", "Brembo", "Frenos", 9800, 7000, 8, 12),
    ("demo_8", "7790001234574", "Filtro de Aire K&N", "K&N", "Filtros", 12500, 8900, 11, 5),
]


def demo_products() -> List[Dict[str, Any]]:
    now = utcnow()
    rows = []
    for age, (pid, barcode, name, brand, category, price, cost, stock, min_stock) in enumerate(_DEMO_PRODUCTS):
        created = now - timedelta(days=age)
        rows.append({
            "id": pid,
            "barcode": barcode,
            "name": name,
            "brand": brand,
            "category": category,
            "price": float(price),
            "cost": float(cost),
            "stock": stock,
            "min_stock": min_stock,
            "supplier": f"Distribuidora {brand}",
            "description": "",
            "created_at": created,
            "updated_at": created,
        })
    return rows
