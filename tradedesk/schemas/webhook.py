"""
Webhook Payload Schemas - declared shapes of inbound carrier and payment callbacks
"""
from pydantic import BaseModel, Field
from typing import Any, Optional
from datetime import datetime
from uuid import UUID
from decimal import Decimal

class CarrierWebhook(BaseModel):
    tracking_number: str = Field(alias="trackingNumber", min_length=1)
    status: str
    location: Optional[str] = None
    timestamp: Optional[datetime] = None
    carrier: Optional[str] = None

    class Config:
        populate_by_name = True

class PaymentWebhook(BaseModel):
    order_id: UUID = Field(alias="orderId")
    transaction_id: str = Field(alias="transactionId", min_length=1)
    status: str
    amount: Optional[Decimal] = Field(None, gt=0)
    gateway: Optional[str] = None

    class Config:
        populate_by_name = True

class WebhookLogResponse(BaseModel):
    id: UUID
    source: str
    event_type: Optional[str]
    payload: Optional[Any]
    processed: bool
    processed_at: Optional[datetime]
    process_result: Optional[str]
    process_error: Optional[str]
    received_at: datetime
    ip_address: Optional[str]

    class Config:
        from_attributes = True
