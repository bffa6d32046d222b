"""
Inventory Schemas
"""
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from uuid import UUID

from tradedesk.models.enums import MovementType

class InventoryCreate(BaseModel):
    sku_id: UUID
    warehouse_id: UUID
    qty_available: int = Field(0, ge=0)
    bin_location: Optional[str] = None

class InventoryAdjust(BaseModel):
    sku_id: UUID
    warehouse_id: UUID
    adjustment: int
    reason: str = Field(min_length=1)

class ReserveRequest(BaseModel):
    order_id: UUID
    warehouse_id: UUID

class ReleaseRequest(BaseModel):
    order_id: UUID
    warehouse_id: Optional[UUID] = None

class InventoryResponse(BaseModel):
    id: UUID
    sku_id: UUID
    warehouse_id: UUID
    sku_code: Optional[str] = None
    warehouse_code: Optional[str] = None
    qty_available: int
    qty_reserved: int
    qty_in_transit: int
    bin_location: Optional[str]
    last_stock_update: datetime

    class Config:
        from_attributes = True

class StockMovementResponse(BaseModel):
    id: UUID
    warehouse_id: UUID
    sku_id: UUID
    movement_type: MovementType
    quantity: int
    reference_type: Optional[str]
    reference_id: Optional[str]
    note: Optional[str]
    created_at: datetime
    created_by: Optional[str]

    class Config:
        from_attributes = True

class ReservationLine(BaseModel):
    sku_id: UUID
    sku_code: str
    warehouse_id: UUID
    quantity: int

class ReservationResult(BaseModel):
    reservations: List[ReservationLine] = []
    errors: List[str] = []

    @property
    def success(self) -> bool:
        return not self.errors
