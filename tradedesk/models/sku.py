"""
SKU Catalog Model
"""
from sqlalchemy import Column, String, Numeric, Integer, Text
from sqlalchemy.orm import relationship
from tradedesk.core import Base
from .base import UUIDMixin, TimestampMixin
from .enums import LifecycleStatus

class Sku(Base, UUIDMixin, TimestampMixin):
    """SKU Master"""
    __tablename__ = "sku"
    
    code = Column(String(100), unique=True, nullable=False, index=True)  # always uppercase
    description = Column(Text, nullable=False)
    hs_code = Column(String(20), index=True)
    uom = Column(String(20), default="PCS")
    category = Column(String(100))
    weight_kg = Column(Numeric(12, 3))
    unit_price = Column(Numeric(14, 2), default=0)
    cost_price = Column(Numeric(14, 2), default=0)
    reorder_level = Column(Integer, default=0)
    lifecycle_status = Column(String(20), default=LifecycleStatus.ACTIVE.value, nullable=False, index=True)
    
    # Relationships
    order_items = relationship("OrderItem", back_populates="sku")
    inventory = relationship("InventoryRecord", back_populates="sku")
    stock_ledger = relationship("StockLedger", back_populates="sku")

    @property
    def is_active(self) -> bool:
        return self.lifecycle_status == LifecycleStatus.ACTIVE.value
