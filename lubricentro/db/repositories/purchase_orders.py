from typing import Any, Dict, List, Optional
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select

from lubricentro.db.models.purchase_orders import PurchaseOrder, PurchaseOrderStatus


async def list_purchase_orders(db: AsyncSession) -> List[PurchaseOrder]:
    result = await db.execute(
        select(PurchaseOrder).order_by(PurchaseOrder.created_at.desc())
    )
    return list(result.scalars().all())


async def get_purchase_order_by_id(
    db: AsyncSession,
    order_id: str,
) -> Optional[PurchaseOrder]:
    result = await db.execute(
        select(PurchaseOrder).where(PurchaseOrder.id == order_id)
    )
    return result.scalar_one_or_none()


async def insert_purchase_order(
    db: AsyncSession,
    values: Dict[str, Any],
) -> PurchaseOrder:
    order = PurchaseOrder(**values)
    db.add(order)
    await db.flush()
    return order


async def transition_purchase_order(
    db: AsyncSession,
    order_id: str,
    from_status: PurchaseOrderStatus,
    values: Dict[str, Any],
) -> Optional[PurchaseOrder]:
    """Apply ``values`` only while the order is still in ``from_status``."""
    result = await db.execute(
        update(PurchaseOrder)
        .where(PurchaseOrder.id == order_id, PurchaseOrder.status == from_status)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        return None
    refreshed = await db.execute(
        select(PurchaseOrder).where(PurchaseOrder.id == order_id).execution_options(populate_existing=True)
    )
    return refreshed.scalar_one_or_none()
