import enum
from sqlalchemy import Column, DateTime, Enum, Integer, Numeric, String
from sqlalchemy.sql import func

from lubricentro.db.base import Base
from lubricentro.db.models.products import new_id


class PurchaseOrderStatus(str, enum.Enum):
    PENDING = "pending"
    RECEIVED = "received"
    CANCELLED = "cancelled"


class PurchaseOrder(Base):
    """Replenishment request to a supplier.

    Moves pending -> received | cancelled; ``received_at`` is only set on the
    transition to received, which is also when product stock goes up.
    """

    __tablename__ = "purchase_orders"

    id = Column(String(36), primary_key=True, default=new_id)
    product_id = Column(String(36), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    unit_cost = Column(Numeric(18, 2, asdecimal=False), nullable=False)
    total = Column(Numeric(18, 2, asdecimal=False), nullable=False)
    supplier = Column(String, nullable=False, default="")
    status = Column(
        Enum(PurchaseOrderStatus, name="purchase_order_status_enum", native_enum=False),
        nullable=False,
        default=PurchaseOrderStatus.PENDING,
    )

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    received_at = Column(DateTime(timezone=True), nullable=True)
