import enum
from sqlalchemy import Column, DateTime, Enum, Index, Integer, Numeric, String, Text
from sqlalchemy.sql import func

from lubricentro.db.base import Base
from lubricentro.db.models.products import new_id


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    CARD = "card"
    TRANSFER = "transfer"
    OTHER = "other"


class Sale(Base):
    """One line of a checkout.

    Every line produced by the same checkout shares ``sale_number``; the
    product barcode and name are copied at sale time so history does not
    follow later catalog edits.
    """

    __tablename__ = "sales"

    id = Column(String(36), primary_key=True, default=new_id)
    sale_number = Column(String, nullable=False, index=True)

    product_id = Column(String(36), nullable=False, index=True)
    product_barcode = Column(String, nullable=False, default="")
    product_name = Column(String, nullable=False, default="")

    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(18, 2, asdecimal=False), nullable=False)
    total_amount = Column(Numeric(18, 2, asdecimal=False), nullable=False)
    discount_amount = Column(Numeric(18, 2, asdecimal=False), nullable=False, default=0)
    final_amount = Column(Numeric(18, 2, asdecimal=False), nullable=False)

    payment_method = Column(
        Enum(PaymentMethod, name="payment_method_enum", native_enum=False),
        nullable=False,
        default=PaymentMethod.CASH,
    )
    customer_name = Column(String, nullable=True)
    customer_email = Column(String, nullable=True)
    notes = Column(Text, nullable=True)

    sale_date = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("ix_sales_sale_date", "sale_date"),
    )
