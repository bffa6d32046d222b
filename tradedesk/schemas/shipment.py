"""
Shipment Schemas
"""
from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime
from uuid import UUID
from decimal import Decimal

from tradedesk.models.enums import ShipmentStatus, TransportMode

class ShipmentCreate(BaseModel):
    order_id: UUID
    carrier: str = Field(min_length=1)
    carrier_service: Optional[str] = None
    awb_bl_number: Optional[str] = None
    container_no: Optional[str] = None
    container_type: Optional[str] = None
    seal_no: Optional[str] = None
    mode_of_transport: TransportMode = TransportMode.SEA
    status: ShipmentStatus = ShipmentStatus.CREATED
    estimated_departure: Optional[datetime] = None
    actual_departure: Optional[datetime] = None
    estimated_arrival: Optional[datetime] = None
    actual_arrival: Optional[datetime] = None
    port_of_loading: Optional[str] = None
    port_of_discharge: Optional[str] = None
    total_weight_kg: Optional[Decimal] = Field(None, ge=0)
    total_volume_cbm: Optional[Decimal] = Field(None, ge=0)
    freight_cost: Decimal = Field(Decimal("0"), ge=0)
    insurance_cost: Decimal = Field(Decimal("0"), ge=0)
    tracking_url: Optional[str] = None
    notes: Optional[str] = None

class ShipmentUpdate(BaseModel):
    status: Optional[ShipmentStatus] = None
    carrier: Optional[str] = Field(None, min_length=1)
    carrier_service: Optional[str] = None
    awb_bl_number: Optional[str] = None
    container_no: Optional[str] = None
    container_type: Optional[str] = None
    seal_no: Optional[str] = None
    mode_of_transport: Optional[TransportMode] = None
    estimated_departure: Optional[datetime] = None
    actual_departure: Optional[datetime] = None
    estimated_arrival: Optional[datetime] = None
    actual_arrival: Optional[datetime] = None
    port_of_loading: Optional[str] = None
    port_of_discharge: Optional[str] = None
    total_weight_kg: Optional[Decimal] = Field(None, ge=0)
    total_volume_cbm: Optional[Decimal] = Field(None, ge=0)
    freight_cost: Optional[Decimal] = Field(None, ge=0)
    insurance_cost: Optional[Decimal] = Field(None, ge=0)
    tracking_url: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("carrier", "mode_of_transport")
    @classmethod
    def not_null(cls, v):
        # Omit the field to leave it unchanged; these columns cannot be cleared
        if v is None:
            raise ValueError("may not be null")
        return v

class ShipmentResponse(BaseModel):
    id: UUID
    shipment_no: str
    order_id: UUID
    carrier: str
    carrier_service: Optional[str]
    awb_bl_number: Optional[str]
    container_no: Optional[str]
    container_type: Optional[str]
    seal_no: Optional[str]
    mode_of_transport: TransportMode
    status: ShipmentStatus
    last_location: Optional[str]
    estimated_departure: Optional[datetime]
    actual_departure: Optional[datetime]
    estimated_arrival: Optional[datetime]
    actual_arrival: Optional[datetime]
    port_of_loading: Optional[str]
    port_of_discharge: Optional[str]
    total_weight_kg: Optional[Decimal]
    total_volume_cbm: Optional[Decimal]
    freight_cost: Optional[Decimal]
    insurance_cost: Optional[Decimal]
    tracking_url: Optional[str]
    notes: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class TrackingMilestone(BaseModel):
    event: str
    date: Optional[datetime] = None
    completed: bool

class TrackingInfo(BaseModel):
    shipment_no: str
    carrier: str
    awb_bl_number: Optional[str]
    status: ShipmentStatus
    current_location: Optional[str]
    estimated_arrival: Optional[datetime]
    actual_departure: Optional[datetime]
    actual_arrival: Optional[datetime]
    tracking_url: Optional[str]
    milestones: List[TrackingMilestone]
