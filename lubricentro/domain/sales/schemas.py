# lubricentro/domain/sales/schemas.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from lubricentro.db.models.sales import PaymentMethod


class CustomerInfo(BaseModel):
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    payment_method: PaymentMethod = PaymentMethod.CASH
    notes: Optional[str] = None


class SaleCreate(CustomerInfo):
    sale_number: Optional[str] = None
    product_id: str = Field(min_length=1)
    product_barcode: str = ""
    product_name: str = ""
    quantity: int = Field(gt=0)
    unit_price: float = Field(ge=0)
    total_amount: float = 0
    discount_amount: float = Field(default=0, ge=0)
    final_amount: float = 0
    sale_date: Optional[datetime] = None

    @model_validator(mode="after")
    def _compute_amounts(self):
        # Caller-supplied totals are ignored.
        self.total_amount = round(self.quantity * self.unit_price, 2)
        self.final_amount = round(self.total_amount - self.discount_amount, 2)
        return self

    @property
    def discount_exceeds_total(self) -> bool:
        return self.discount_amount > self.total_amount


class SaleUpdate(BaseModel):
    quantity: Optional[int] = Field(default=None, gt=0)
    unit_price: Optional[float] = Field(default=None, ge=0)
    discount_amount: Optional[float] = Field(default=None, ge=0)
    payment_method: Optional[PaymentMethod] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    notes: Optional[str] = None
    sale_date: Optional[datetime] = None


class SaleOut(BaseModel):
    id: str
    sale_number: str
    product_id: str
    product_barcode: str = ""
    product_name: str = ""
    quantity: int
    unit_price: float
    total_amount: float
    discount_amount: float = 0
    final_amount: float
    payment_method: PaymentMethod = PaymentMethod.CASH
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    notes: Optional[str] = None
    sale_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    # Mirrors final_amount for receipt and table rendering.
    total: Optional[float] = None

    class Config:
        from_attributes = True


class CartLine(BaseModel):
    product_id: str
    quantity: int = Field(gt=0)
    unit_price: Optional[float] = Field(default=None, ge=0)


class CheckoutRequest(CustomerInfo):
    items: List[CartLine] = Field(min_length=1)
    discount: float = Field(default=0, ge=0)
    sale_number: Optional[str] = None


class CheckoutOut(BaseModel):
    sale_number: str
    offline: bool
    sales: List[SaleOut]
    total: float
    warnings: List[str] = []
