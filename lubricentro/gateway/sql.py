# lubricentro/gateway/sql.py
import functools
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from lubricentro.core.errors import BackendError
from lubricentro.core.time_utils import as_utc
from lubricentro.db.repositories import categories as category_repo
from lubricentro.db.repositories import products as product_repo
from lubricentro.db.repositories import purchase_orders as order_repo
from lubricentro.db.repositories import sales as sale_repo
from lubricentro.gateway.backend import Backend, Row


def to_row(obj) -> Optional[Row]:
    if obj is None:
        return None
    row = {}
    for column in obj.__table__.columns:
        value = getattr(obj, column.key)
        row[column.key] = as_utc(value) if isinstance(value, datetime) else value
    return row


def _translate_errors(method):
    @functools.wraps(method)
    async def wrapper(self, *args, **kwargs):
        try:
            return await method(self, *args, **kwargs)
        except SQLAlchemyError as exc:
            raise BackendError(f"backend error in {method.__name__}: {exc}") from exc
    return wrapper


class SqlBackend(Backend):
    """Backend over the relational store through the async repositories."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    @property
    def engine(self):
        return self.session_factory.kw["bind"]

    # products
    @_translate_errors
    async def list_products(self, offset: int, limit: int) -> List[Row]:
        async with self.session_factory() as db:
            return [to_row(p) for p in await product_repo.list_products(db, offset, limit)]

    @_translate_errors
    async def get_product(self, product_id: str) -> Optional[Row]:
        async with self.session_factory() as db:
            return to_row(await product_repo.get_product_by_id(db, product_id))

    @_translate_errors
    async def get_product_by_barcode(self, barcode: str) -> Optional[Row]:
        async with self.session_factory() as db:
            return to_row(await product_repo.get_product_by_barcode(db, barcode))

    @_translate_errors
    async def insert_product(self, values: Row) -> Row:
        async with self.session_factory() as db:
            product = await product_repo.insert_product(db, values)
            await db.commit()
            await db.refresh(product)
            return to_row(product)

    @_translate_errors
    async def update_product(self, product_id: str, values: Row) -> Optional[Row]:
        async with self.session_factory() as db:
            product = await product_repo.update_product(db, product_id, values)
            await db.commit()
            return to_row(product)

    @_translate_errors
    async def adjust_product_stock(self, product_id: str, delta: int) -> Optional[Row]:
        async with self.session_factory() as db:
            product = await product_repo.adjust_product_stock(db, product_id, delta)
            await db.commit()
            return to_row(product)

    @_translate_errors
    async def delete_product(self, product_id: str) -> int:
        async with self.session_factory() as db:
            deleted = await product_repo.delete_product(db, product_id)
            await db.commit()
            return deleted

    # sales
    @_translate_errors
    async def insert_sales(self, rows: List[Row]) -> List[Row]:
        async with self.session_factory() as db:
            sales = await sale_repo.insert_sales(db, rows)
            await db.commit()
            for sale in sales:
                await db.refresh(sale)
            return [to_row(s) for s in sales]

    @_translate_errors
    async def get_sale(self, sale_id: str) -> Optional[Row]:
        async with self.session_factory() as db:
            return to_row(await sale_repo.get_sale_by_id(db, sale_id))

    @_translate_errors
    async def get_sales_by_number(self, sale_number: str) -> List[Row]:
        async with self.session_factory() as db:
            return [to_row(s) for s in await sale_repo.get_sales_by_number(db, sale_number)]

    @_translate_errors
    async def list_sales(self, start=None, end=None, inclusive_end=True) -> List[Row]:
        async with self.session_factory() as db:
            sales = await sale_repo.list_sales(db, start, end, inclusive_end)
            return [to_row(s) for s in sales]

    @_translate_errors
    async def update_sale(self, sale_id: str, values: Row) -> Optional[Row]:
        async with self.session_factory() as db:
            sale = await sale_repo.update_sale(db, sale_id, values)
            await db.commit()
            return to_row(sale)

    @_translate_errors
    async def delete_sale(self, sale_id: str) -> int:
        async with self.session_factory() as db:
            deleted = await sale_repo.delete_sale(db, sale_id)
            await db.commit()
            return deleted

    @_translate_errors
    async def delete_sales_by_number(self, sale_number: str) -> int:
        async with self.session_factory() as db:
            deleted = await sale_repo.delete_sales_by_number(db, sale_number)
            await db.commit()
            return deleted

    # categories
    @_translate_errors
    async def list_categories(self) -> List[Row]:
        async with self.session_factory() as db:
            return [to_row(c) for c in await category_repo.list_categories(db)]

    @_translate_errors
    async def get_category(self, category_id: str) -> Optional[Row]:
        async with self.session_factory() as db:
            return to_row(await category_repo.get_category_by_id(db, category_id))

    @_translate_errors
    async def insert_category(self, values: Row) -> Row:
        async with self.session_factory() as db:
            category = await category_repo.insert_category(db, values)
            await db.commit()
            await db.refresh(category)
            return to_row(category)

    @_translate_errors
    async def update_category(self, category_id: str, values: Row) -> Optional[Row]:
        async with self.session_factory() as db:
            category = await category_repo.update_category(db, category_id, values)
            await db.commit()
            return to_row(category)

    @_translate_errors
    async def delete_category(self, category_id: str) -> int:
        async with self.session_factory() as db:
            deleted = await category_repo.delete_category(db, category_id)
            await db.commit()
            return deleted

    # purchase orders
    @_translate_errors
    async def list_purchase_orders(self) -> List[Row]:
        async with self.session_factory() as db:
            return [to_row(o) for o in await order_repo.list_purchase_orders(db)]

    @_translate_errors
    async def get_purchase_order(self, order_id: str) -> Optional[Row]:
        async with self.session_factory() as db:
            return to_row(await order_repo.get_purchase_order_by_id(db, order_id))

    @_translate_errors
    async def insert_purchase_order(self, values: Row) -> Row:
        async with self.session_factory() as db:
            order = await order_repo.insert_purchase_order(db, values)
            await db.commit()
            await db.refresh(order)
            return to_row(order)

    @_translate_errors
    async def transition_purchase_order(self, order_id: str, from_status: str, values: Row) -> Optional[Row]:
        async with self.session_factory() as db:
            order = await order_repo.transition_purchase_order(db, order_id, from_status, values)
            await db.commit()
            return to_row(order)
