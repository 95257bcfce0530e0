import enum
from typing import List, Optional

from pydantic import BaseModel, Field


class BackupFrequency(str, enum.Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    MANUAL = "manual"


class StoreSettings(BaseModel):
    """Operator preferences persisted under ``lubricentro_settings``."""

    auto_sync: bool = Field(default=True, alias="autoSync")
    low_stock_threshold: int = Field(default=5, ge=0, alias="lowStockThreshold")
    backup_frequency: BackupFrequency = Field(default=BackupFrequency.DAILY, alias="backupFrequency")
    notifications: bool = True
    # Fraction, 0.3 means 30 %.
    markup_percentage: float = Field(default=0.3, ge=0, alias="markupPercentage")

    class Config:
        populate_by_name = True


class ValidationReport(BaseModel):
    is_valid: bool
    errors: List[str] = []
    warnings: List[str] = []


class SyncStats(BaseModel):
    pending_sales_count: int = 0
    pending_orders_count: int = 0
    last_sync_timestamp: Optional[str] = None
    local_products_count: int = 0
    local_products_timestamp: Optional[str] = None
