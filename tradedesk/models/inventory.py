"""
Stock & Inventory Models
"""
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text, Uuid, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import relationship
from tradedesk.core import Base
from .base import UUIDMixin, TimestampMixin, utcnow

class InventoryRecord(Base, UUIDMixin, TimestampMixin):
    """Stock balance for one (SKU, Warehouse) pair"""
    __tablename__ = "inventory"
    
    sku_id = Column(Uuid, ForeignKey("sku.id"), nullable=False, index=True)
    warehouse_id = Column(Uuid, ForeignKey("warehouse.id"), nullable=False, index=True)
    
    qty_available = Column(Integer, default=0, nullable=False)
    qty_reserved = Column(Integer, default=0, nullable=False)
    qty_in_transit = Column(Integer, default=0, nullable=False)
    
    bin_location = Column(String(50))
    last_stock_update = Column(DateTime, default=utcnow, nullable=False)
    
    # Relationships
    sku = relationship("Sku", back_populates="inventory")
    warehouse = relationship("Warehouse", back_populates="inventory")
    
    @property
    def sku_code(self):
        return self.sku.code if self.sku else None
    
    @property
    def warehouse_code(self):
        return self.warehouse.code if self.warehouse else None
    
    __table_args__ = (
        UniqueConstraint("sku_id", "warehouse_id", name="uq_inventory_sku_warehouse"),
        CheckConstraint("qty_available >= 0", name="ck_inventory_available_non_negative"),
        CheckConstraint("qty_reserved >= 0", name="ck_inventory_reserved_non_negative"),
        CheckConstraint("qty_in_transit >= 0", name="ck_inventory_in_transit_non_negative"),
    )

class StockLedger(Base, UUIDMixin):
    """Stock Movement Ledger"""
    __tablename__ = "stock_ledger"
    
    warehouse_id = Column(Uuid, ForeignKey("warehouse.id"), nullable=False, index=True)
    sku_id = Column(Uuid, ForeignKey("sku.id"), nullable=False, index=True)
    
    # Movement info
    movement_type = Column(String(20), nullable=False)  # IN, OUT, RESERVE, RELEASE, ADJUST
    quantity = Column(Integer, nullable=False)  # ADJUST may be negative, others positive
    
    # Reference
    reference_type = Column(String(30), index=True)  # ORDER, ADJUSTMENT, INITIAL
    reference_id = Column(String(50), index=True)  # ID of related record
    
    # Metadata
    note = Column(Text)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    created_by = Column(String(64))
    
    # Relationships
    warehouse = relationship("Warehouse", back_populates="stock_ledger")
    sku = relationship("Sku", back_populates="stock_ledger")
