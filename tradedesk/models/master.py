"""
Master Tables: Buyer, Warehouse
"""
from sqlalchemy import Column, String, Text
from sqlalchemy.orm import relationship
from tradedesk.core import Base
from .base import UUIDMixin, TimestampMixin
from .enums import LifecycleStatus

class Buyer(Base, UUIDMixin, TimestampMixin):
    """Overseas buyer / importer"""
    __tablename__ = "buyer"
    
    name = Column(String(200), nullable=False)
    company_name = Column(String(200), nullable=False)
    contact_email = Column(String(200), nullable=False)
    contact_phone = Column(String(50))
    country = Column(String(100), nullable=False)
    address = Column(Text)
    tax_id = Column(String(50))
    lifecycle_status = Column(String(20), default=LifecycleStatus.ACTIVE.value, nullable=False, index=True)
    
    # Relationships
    orders = relationship("Order", back_populates="buyer")

    @property
    def is_active(self) -> bool:
        return self.lifecycle_status == LifecycleStatus.ACTIVE.value

class Warehouse(Base, UUIDMixin, TimestampMixin):
    """Warehouse"""
    __tablename__ = "warehouse"
    
    code = Column(String(20), unique=True, nullable=False)
    name = Column(String(200), nullable=False)
    country = Column(String(100), nullable=False)
    address = Column(Text)
    lifecycle_status = Column(String(20), default=LifecycleStatus.ACTIVE.value, nullable=False)
    
    # Relationships
    inventory = relationship("InventoryRecord", back_populates="warehouse")
    stock_ledger = relationship("StockLedger", back_populates="warehouse")
