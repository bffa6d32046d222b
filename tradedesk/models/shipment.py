"""
Shipment Model
"""
from sqlalchemy import Column, String, Numeric, DateTime, ForeignKey, Text, Uuid
from sqlalchemy.orm import relationship
from tradedesk.core import Base
from .base import UUIDMixin, TimestampMixin
from .enums import ShipmentStatus, TransportMode

class Shipment(Base, UUIDMixin, TimestampMixin):
    """Logistics movement fulfilling all or part of an order"""
    __tablename__ = "shipment"
    
    # SHP-YYYYMM-NNNN
    shipment_no = Column(String(30), unique=True, nullable=False, index=True)
    order_id = Column(Uuid, ForeignKey("order_header.id"), nullable=False, index=True)
    
    # Carrier
    carrier = Column(String(100), nullable=False)
    carrier_service = Column(String(100))
    awb_bl_number = Column(String(100), index=True)
    container_no = Column(String(30), index=True)
    container_type = Column(String(30))
    seal_no = Column(String(30))
    mode_of_transport = Column(String(10), default=TransportMode.SEA.value, nullable=False)
    
    status = Column(String(20), default=ShipmentStatus.CREATED.value, nullable=False, index=True)
    last_location = Column(String(200))
    
    # Dates
    estimated_departure = Column(DateTime)
    actual_departure = Column(DateTime)
    estimated_arrival = Column(DateTime)
    actual_arrival = Column(DateTime)
    
    port_of_loading = Column(String(100))
    port_of_discharge = Column(String(100))
    
    total_weight_kg = Column(Numeric(12, 3))
    total_volume_cbm = Column(Numeric(12, 3))
    freight_cost = Column(Numeric(14, 2), default=0)
    insurance_cost = Column(Numeric(14, 2), default=0)
    
    tracking_url = Column(String(500))
    notes = Column(Text)
    
    # Relationships
    order = relationship("Order", back_populates="shipments")
