# lubricentro/db/models/products.py
from sqlalchemy import CheckConstraint, Column, DateTime, Integer, Numeric, String, Text
from sqlalchemy.sql import func
import uuid

from lubricentro.db.base import Base


def new_id() -> str:
    return str(uuid.uuid4())


class Product(Base):
    """A sellable catalog entry, keyed for the business by its barcode.

    Stock lives on the row itself and is moved by sales, sale reversals and
    received purchase orders; the check constraint keeps it non-negative even
    if a caller forgets the conditional update.
    """

    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=new_id)
    barcode = Column(String, nullable=False, unique=True, index=True)
    name = Column(String, nullable=False)
    brand = Column(String, nullable=False, default="")
    category = Column(String, nullable=False, default="", index=True)
    supplier = Column(String, nullable=False, default="")
    description = Column(Text, nullable=False, default="")

    price = Column(Numeric(18, 2, asdecimal=False), nullable=False, default=0)
    cost = Column(Numeric(18, 2, asdecimal=False), nullable=False, default=0)
    stock = Column(Integer, nullable=False, default=0)
    min_stock = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        CheckConstraint("min_stock >= 0", name="ck_products_min_stock_non_negative"),
    )
