"""
Transaction Schemas
"""
from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime
from uuid import UUID
from decimal import Decimal

from tradedesk.models.enums import TransactionStatus, TransactionType
from .common import normalize_currency

class TransactionCreate(BaseModel):
    order_id: UUID
    type: TransactionType = TransactionType.PAYMENT
    amount: Decimal = Field(gt=0, decimal_places=2)
    currency: Optional[str] = None
    payment_method: Optional[str] = None
    reference: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: Optional[str]) -> Optional[str]:
        return normalize_currency(v)

class TransactionResponse(BaseModel):
    id: UUID
    transaction_no: str
    order_id: UUID
    type: TransactionType
    amount: Decimal
    currency: str
    status: TransactionStatus
    payment_method: Optional[str]
    payment_gateway_id: Optional[str]
    payment_date: Optional[datetime]
    reference: Optional[str]
    notes: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True
