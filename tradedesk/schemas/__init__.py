# Pydantic Schemas Package
from .catalog import BuyerCreate, BuyerStatusUpdate, BuyerResponse, WarehouseCreate, WarehouseResponse, SkuCreate, SkuResponse
from .order import OrderCreate, OrderUpdate, OrderResponse, OrderItemCreate, OrderItemResponse
from .inventory import (
    InventoryCreate, InventoryAdjust, InventoryResponse, ReserveRequest, ReleaseRequest,
    ReservationLine, ReservationResult, StockMovementResponse,
)
from .shipment import ShipmentCreate, ShipmentUpdate, ShipmentResponse, TrackingInfo
from .transaction import TransactionCreate, TransactionResponse
from .webhook import CarrierWebhook, PaymentWebhook, WebhookLogResponse
from .audit import AuditLogResponse
from .common import Pagination, round2

__all__ = [
    "BuyerCreate", "BuyerStatusUpdate", "BuyerResponse", "WarehouseCreate", "WarehouseResponse", "SkuCreate", "SkuResponse",
    "OrderCreate", "OrderUpdate", "OrderResponse", "OrderItemCreate", "OrderItemResponse",
    "InventoryCreate", "InventoryAdjust", "InventoryResponse", "ReserveRequest", "ReleaseRequest",
    "ReservationLine", "ReservationResult", "StockMovementResponse",
    "ShipmentCreate", "ShipmentUpdate", "ShipmentResponse", "TrackingInfo",
    "TransactionCreate", "TransactionResponse",
    "CarrierWebhook", "PaymentWebhook", "WebhookLogResponse",
    "AuditLogResponse",
    "Pagination", "round2",
]
