from .base import TimestampMixin, UUIDMixin
from .master import Buyer, Warehouse
from .sku import Sku
from .order import Order, OrderItem
from .inventory import InventoryRecord, StockLedger
from .shipment import Shipment
from .finance import Transaction
from .audit import AuditLog
from .integration import WebhookLog

__all__ = [
    # Base
    "TimestampMixin", "UUIDMixin",
    # Master
    "Buyer", "Warehouse",
    # Catalog
    "Sku",
    # Order
    "Order", "OrderItem",
    # Stock
    "InventoryRecord", "StockLedger",
    # Logistics
    "Shipment",
    # Finance
    "Transaction",
    # Audit
    "AuditLog",
    # Integration
    "WebhookLog",
]
