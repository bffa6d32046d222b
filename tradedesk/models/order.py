"""
Order Models
"""
from sqlalchemy import Column, String, Numeric, Integer, DateTime, ForeignKey, Text, Uuid, CheckConstraint
from sqlalchemy.orm import relationship
from tradedesk.core import Base
from .base import UUIDMixin, TimestampMixin
from .enums import Incoterm, OrderStatus, PaymentStatus

class Order(Base, UUIDMixin, TimestampMixin):
    """Export Order Header"""
    __tablename__ = "order_header"
    
    # ORD-YYYYMM-NNNN
    order_no = Column(String(30), unique=True, nullable=False, index=True)
    
    buyer_id = Column(Uuid, ForeignKey("buyer.id"), nullable=False, index=True)
    
    # Trade terms
    incoterm = Column(String(3), default=Incoterm.FOB.value, nullable=False)
    currency = Column(String(3), default="USD", nullable=False)
    
    # Status
    status = Column(String(20), default=OrderStatus.DRAFT.value, nullable=False, index=True)
    payment_status = Column(String(20), default=PaymentStatus.PENDING.value, nullable=False, index=True)
    
    # Dates
    expected_ship_date = Column(DateTime)
    actual_ship_date = Column(DateTime)
    
    # Amounts
    total_amount = Column(Numeric(14, 2), default=0, nullable=False)
    tax_amount = Column(Numeric(14, 2), default=0, nullable=False)
    discount_amount = Column(Numeric(14, 2), default=0, nullable=False)
    grand_total = Column(Numeric(14, 2), default=0, nullable=False)
    
    # Logistics
    shipping_address = Column(Text)
    billing_address = Column(Text)
    port_of_loading = Column(String(100))
    port_of_discharge = Column(String(100))
    
    notes = Column(Text)
    created_by = Column(String(64))
    
    # Relationships
    buyer = relationship("Buyer", back_populates="orders")
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.line_no")
    shipments = relationship("Shipment", back_populates="order")
    transactions = relationship("Transaction", back_populates="order")

class OrderItem(Base, UUIDMixin):
    """Order Item/Line"""
    __tablename__ = "order_item"
    
    order_id = Column(Uuid, ForeignKey("order_header.id", ondelete="CASCADE"), nullable=False, index=True)
    sku_id = Column(Uuid, ForeignKey("sku.id"), index=True)
    line_no = Column(Integer, default=1, nullable=False)
    
    sku_code = Column(String(100), nullable=False, index=True)  # CUSTOM when unmatched
    description = Column(Text, nullable=False)
    hs_code = Column(String(20))
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(14, 2), default=0, nullable=False)
    discount_percent = Column(Numeric(5, 2), default=0, nullable=False)
    tax_percent = Column(Numeric(5, 2), default=0, nullable=False)
    weight_kg = Column(Numeric(12, 3))
    
    # qty * unit_price * (1 - discount%) * (1 + tax%), rounded to cents
    line_total = Column(Numeric(14, 2), default=0, nullable=False)
    
    # Relationships
    order = relationship("Order", back_populates="items")
    sku = relationship("Sku", back_populates="order_items")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_item_quantity_positive"),
    )
