from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select

from lubricentro.db.models.sales import Sale


async def insert_sales(
    db: AsyncSession,
    rows: List[Dict[str, Any]],
) -> List[Sale]:
    sales = [Sale(**row) for row in rows]
    db.add_all(sales)
    await db.flush()
    return sales


async def get_sale_by_id(
    db: AsyncSession,
    sale_id: str,
) -> Optional[Sale]:
    result = await db.execute(
        select(Sale).where(Sale.id == sale_id)
    )
    return result.scalar_one_or_none()


async def get_sales_by_number(
    db: AsyncSession,
    sale_number: str,
) -> List[Sale]:
    result = await db.execute(
        select(Sale).where(Sale.sale_number == sale_number).order_by(Sale.created_at)
    )
    return list(result.scalars().all())


async def list_sales(
    db: AsyncSession,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    inclusive_end: bool = True,
) -> List[Sale]:
    query = select(Sale)
    if start is not None:
        query = query.where(Sale.sale_date >= start)
    if end is not None:
        query = query.where(Sale.sale_date <= end if inclusive_end else Sale.sale_date < end)
    result = await db.execute(query.order_by(Sale.sale_date.desc()))
    return list(result.scalars().all())


async def update_sale(
    db: AsyncSession,
    sale_id: str,
    values: Dict[str, Any],
) -> Optional[Sale]:
    result = await db.execute(
        update(Sale).where(Sale.id == sale_id).values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        return None
    refreshed = await db.execute(
        select(Sale).where(Sale.id == sale_id).execution_options(populate_existing=True)
    )
    return refreshed.scalar_one_or_none()


async def delete_sale(
    db: AsyncSession,
    sale_id: str,
) -> int:
    result = await db.execute(delete(Sale).where(Sale.id == sale_id))
    return result.rowcount


async def delete_sales_by_number(
    db: AsyncSession,
    sale_number: str,
) -> int:
    result = await db.execute(delete(Sale).where(Sale.sale_number == sale_number))
    return result.rowcount
