"""
Order Schemas
"""
from pydantic import AliasChoices, BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime
from uuid import UUID
from decimal import Decimal

from tradedesk.models.enums import Incoterm, OrderStatus, PaymentStatus
from .common import normalize_currency


class OrderItemCreate(BaseModel):
    sku_id: Optional[UUID] = None
    sku: Optional[str] = None  # free-text SKU code, matched against the catalog
    description: Optional[str] = None
    hs_code: Optional[str] = None
    quantity: int = Field(gt=0, validation_alias=AliasChoices("quantity", "qty"))
    unit_price: Optional[Decimal] = Field(None, ge=0)
    discount_percent: Decimal = Field(Decimal("0"), ge=0, le=100)
    tax_percent: Decimal = Field(Decimal("0"), ge=0)
    weight_kg: Optional[Decimal] = Field(None, ge=0)

class OrderCreate(BaseModel):
    buyer_id: UUID
    order_no: Optional[str] = None
    incoterm: Optional[Incoterm] = None
    currency: Optional[str] = None
    
    expected_ship_date: Optional[datetime] = None
    shipping_address: Optional[str] = None
    billing_address: Optional[str] = None
    port_of_loading: Optional[str] = None
    port_of_discharge: Optional[str] = None
    notes: Optional[str] = None
    
    discount_amount: Decimal = Field(Decimal("0"), ge=0)
    
    items: List[OrderItemCreate] = Field(min_length=1)

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: Optional[str]) -> Optional[str]:
        return normalize_currency(v)

class OrderUpdate(BaseModel):
    status: Optional[OrderStatus] = None
    expected_ship_date: Optional[datetime] = None
    actual_ship_date: Optional[datetime] = None
    shipping_address: Optional[str] = None
    billing_address: Optional[str] = None
    port_of_loading: Optional[str] = None
    port_of_discharge: Optional[str] = None
    notes: Optional[str] = None

class OrderItemResponse(BaseModel):
    id: UUID
    sku_id: Optional[UUID]
    sku_code: str
    description: str
    hs_code: Optional[str]
    quantity: int
    unit_price: Decimal
    discount_percent: Decimal
    tax_percent: Decimal
    line_total: Decimal

    class Config:
        from_attributes = True

class BuyerSummary(BaseModel):
    id: UUID
    name: str
    company_name: str
    country: str

    class Config:
        from_attributes = True

class OrderResponse(BaseModel):
    id: UUID
    order_no: str
    buyer_id: UUID
    buyer: Optional[BuyerSummary] = None
    incoterm: Incoterm
    currency: str
    status: OrderStatus
    payment_status: PaymentStatus
    total_amount: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    grand_total: Decimal
    expected_ship_date: Optional[datetime]
    actual_ship_date: Optional[datetime]
    shipping_address: Optional[str]
    billing_address: Optional[str]
    port_of_loading: Optional[str]
    port_of_discharge: Optional[str]
    notes: Optional[str]
    created_by: Optional[str]
    created_at: datetime
    updated_at: datetime
    items: List[OrderItemResponse] = []

    class Config:
        from_attributes = True
