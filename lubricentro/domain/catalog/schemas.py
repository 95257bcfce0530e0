# lubricentro/domain/catalog/schemas.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from lubricentro.db.models.purchase_orders import PurchaseOrderStatus


class ProductBase(BaseModel):
    barcode: str = Field(min_length=1)
    name: str = Field(min_length=1)
    brand: str = ""
    category: str = ""
    price: float = Field(default=0, ge=0)
    cost: float = Field(default=0, ge=0)
    stock: int = Field(default=0, ge=0)
    min_stock: int = Field(default=0, ge=0)
    supplier: str = ""
    description: str = ""


class ProductCreate(ProductBase):
    pass


class ProductUpdate(BaseModel):
    barcode: Optional[str] = Field(default=None, min_length=1)
    name: Optional[str] = Field(default=None, min_length=1)
    brand: Optional[str] = None
    category: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    cost: Optional[float] = Field(default=None, ge=0)
    stock: Optional[int] = Field(default=None, ge=0)
    min_stock: Optional[int] = Field(default=None, ge=0)
    supplier: Optional[str] = None
    description: Optional[str] = None


class ProductOut(ProductBase):
    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1)


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)


class CategoryOut(BaseModel):
    id: str
    name: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PurchaseOrderCreate(BaseModel):
    product_id: str
    quantity: int = Field(gt=0)
    unit_cost: float = Field(ge=0)
    total: Optional[float] = None
    supplier: str = ""
    status: PurchaseOrderStatus = PurchaseOrderStatus.PENDING

    @model_validator(mode="after")
    def _fill_total(self):
        if self.total is None:
            self.total = round(self.quantity * self.unit_cost, 2)
        return self


class PurchaseOrderOut(BaseModel):
    id: str
    product_id: str
    quantity: int
    unit_cost: float
    total: float
    supplier: str
    status: PurchaseOrderStatus
    created_at: Optional[datetime] = None
    received_at: Optional[datetime] = None

    class Config:
        from_attributes = True
