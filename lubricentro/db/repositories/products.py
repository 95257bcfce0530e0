# lubricentro/db/repositories/products.py
from typing import Any, Dict, List, Optional
from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select

from lubricentro.core.time_utils import utcnow
from lubricentro.db.models.products import Product


async def list_products(
    db: AsyncSession,
    offset: int,
    limit: int,
) -> List[Product]:
    result = await db.execute(
        select(Product).order_by(Product.created_at.desc(), Product.id).offset(offset).limit(limit)
    )
    return list(result.scalars().all())


async def get_product_by_id(
    db: AsyncSession,
    product_id: str,
) -> Optional[Product]:
    result = await db.execute(
        select(Product).where(Product.id == product_id)
    )
    return result.scalar_one_or_none()


async def get_product_by_barcode(
    db: AsyncSession,
    barcode: str,
) -> Optional[Product]:
    result = await db.execute(
        select(Product).where(Product.barcode == barcode)
    )
    return result.scalar_one_or_none()


async def insert_product(
    db: AsyncSession,
    values: Dict[str, Any],
) -> Product:
    product = Product(**values)
    db.add(product)
    await db.flush()
    return product


async def update_product(
    db: AsyncSession,
    product_id: str,
    values: Dict[str, Any],
) -> Optional[Product]:
    result = await db.execute(
        update(Product).where(Product.id == product_id).values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        return None
    return await _refreshed(db, product_id)


async def adjust_product_stock(
    db: AsyncSession,
    product_id: str,
    delta: int,
) -> Optional[Product]:
    """Add ``delta`` to stock unless the row is missing or stock would go negative."""
    result = await db.execute(
        update(Product)
        .where(Product.id == product_id, Product.stock + delta >= 0)
        .values(stock=Product.stock + delta, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        return None
    return await _refreshed(db, product_id)


async def delete_product(
    db: AsyncSession,
    product_id: str,
) -> int:
    result = await db.execute(delete(Product).where(Product.id == product_id))
    return result.rowcount


async def _refreshed(db: AsyncSession, product_id: str) -> Optional[Product]:
    result = await db.execute(
        select(Product).where(Product.id == product_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()
