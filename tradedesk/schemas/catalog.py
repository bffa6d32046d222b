"""
Catalog Schemas: Buyer, Warehouse, SKU
"""
from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime
from uuid import UUID
from decimal import Decimal

from tradedesk.models.enums import LifecycleStatus

class BuyerCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    company_name: str = Field(min_length=1, max_length=200)
    contact_email: str = Field(pattern=r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
    contact_phone: Optional[str] = None
    country: str = Field(min_length=1)
    address: Optional[str] = None
    tax_id: Optional[str] = None

    @field_validator("contact_email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.strip().lower()

class BuyerStatusUpdate(BaseModel):
    status: LifecycleStatus

class BuyerResponse(BaseModel):
    id: UUID
    name: str
    company_name: str
    contact_email: str
    contact_phone: Optional[str]
    country: str
    lifecycle_status: LifecycleStatus
    created_at: datetime

    class Config:
        from_attributes = True

class WarehouseCreate(BaseModel):
    code: str = Field(min_length=1, max_length=20)
    name: str = Field(min_length=1, max_length=200)
    country: str = Field(min_length=1)
    address: Optional[str] = None

    @field_validator("code")
    @classmethod
    def upper_code(cls, v: str) -> str:
        return v.strip().upper()

class WarehouseResponse(BaseModel):
    id: UUID
    code: str
    name: str
    country: str
    address: Optional[str]
    lifecycle_status: LifecycleStatus

    class Config:
        from_attributes = True

class SkuCreate(BaseModel):
    code: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1)
    hs_code: Optional[str] = None
    uom: str = "PCS"
    category: Optional[str] = None
    weight_kg: Optional[Decimal] = Field(None, ge=0)
    unit_price: Decimal = Field(Decimal("0"), ge=0)
    cost_price: Decimal = Field(Decimal("0"), ge=0)
    reorder_level: int = Field(0, ge=0)

    @field_validator("code", "uom")
    @classmethod
    def upper(cls, v: str) -> str:
        return v.strip().upper()

class SkuResponse(BaseModel):
    id: UUID
    code: str
    description: str
    hs_code: Optional[str]
    uom: Optional[str]
    category: Optional[str]
    unit_price: Decimal
    cost_price: Decimal
    reorder_level: int
    lifecycle_status: LifecycleStatus

    class Config:
        from_attributes = True
