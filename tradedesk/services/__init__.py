# Services Package
from .audit_service import AuditTrail, list_audit_logs, snapshot
from .catalog_service import CatalogService
from .context import Actor, SYSTEM_ACTOR
from .inventory_service import InventoryService
from .notifications import HttpNotifier, LoggingNotifier, Notifier
from .order_service import OrderService
from .payment_service import PaymentService
from .shipment_service import ShipmentService
from .tax import FixedTaxRate, SettingsTaxRate, TaxRateProvider
from . import integration_service

__all__ = [
    "AuditTrail", "list_audit_logs", "snapshot",
    "CatalogService",
    "Actor", "SYSTEM_ACTOR",
    "InventoryService",
    "HttpNotifier", "LoggingNotifier", "Notifier",
    "OrderService",
    "PaymentService",
    "ShipmentService",
    "FixedTaxRate", "SettingsTaxRate", "TaxRateProvider",
    "integration_service",
]
