from typing import Any, Dict, List, Optional
from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select

from lubricentro.db.models.categories import Category


async def list_categories(db: AsyncSession) -> List[Category]:
    result = await db.execute(select(Category).order_by(Category.name))
    return list(result.scalars().all())


async def get_category_by_id(db: AsyncSession, category_id: str) -> Optional[Category]:
    result = await db.execute(select(Category).where(Category.id == category_id))
    return result.scalar_one_or_none()


async def insert_category(db: AsyncSession, values: Dict[str, Any]) -> Category:
    category = Category(**values)
    db.add(category)
    await db.flush()
    return category


async def update_category(db: AsyncSession, category_id: str, values: Dict[str, Any]) -> Optional[Category]:
    result = await db.execute(
        update(Category).where(Category.id == category_id).values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        return None
    return await get_category_by_id(db, category_id)


async def delete_category(db: AsyncSession, category_id: str) -> int:
    result = await db.execute(delete(Category).where(Category.id == category_id))
    return result.rowcount
