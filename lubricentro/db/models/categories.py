from sqlalchemy import Column, DateTime, String
from sqlalchemy.sql import func

from lubricentro.db.base import Base
from lubricentro.db.models.products import new_id


class Category(Base):
    __tablename__ = "categories"

    id = Column(String(36), primary_key=True, default=new_id)
    # Products reference categories by name; uniqueness is advisory only.
    name = Column(String, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
