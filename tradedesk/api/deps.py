"""
Request dependencies - actor identity and service wiring
"""
from typing import Optional
from uuid import UUID

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from tradedesk.core import get_db, get_session_factory, settings
from tradedesk.core.exceptions import Forbidden, ValidationError
from tradedesk.services import (
    Actor, AuditTrail, CatalogService, HttpNotifier, InventoryService, LoggingNotifier,
    Notifier, OrderService, PaymentService, ShipmentService,
)

ROLES = {"admin", "staff", "buyer", "system"}


def get_actor(
    request: Request,
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
    x_buyer_id: Optional[str] = Header(None),
) -> Actor:
    """Identity forwarded by the gateway in X-User-Id / X-User-Role / X-Buyer-Id"""
    role = (x_user_role or "staff").strip().lower()
    if role not in ROLES:
        raise ValidationError(f"Unknown role: {role}")

    buyer_id = None
    if x_buyer_id:
        try:
            buyer_id = UUID(x_buyer_id)
        except ValueError as e:
            raise ValidationError("X-Buyer-Id must be a UUID") from e

    return Actor(
        actor_id=x_user_id or ("anonymous" if role != "system" else "system"),
        role=role,
        buyer_id=buyer_id,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


def get_audit_trail(session_factory=Depends(get_session_factory)) -> AuditTrail:
    return AuditTrail(session_factory)


def get_notifier() -> Notifier:
    urls = settings.subscriber_urls
    if urls:
        return HttpNotifier(urls, timeout=settings.NOTIFY_TIMEOUT_SECONDS)
    return LoggingNotifier()


def get_inventory_service(
    db: Session = Depends(get_db),
    audit: AuditTrail = Depends(get_audit_trail),
) -> InventoryService:
    return InventoryService(db, audit)


def get_order_service(
    db: Session = Depends(get_db),
    audit: AuditTrail = Depends(get_audit_trail),
    inventory: InventoryService = Depends(get_inventory_service),
) -> OrderService:
    return OrderService(db, audit, inventory=inventory)


def get_shipment_service(
    db: Session = Depends(get_db),
    audit: AuditTrail = Depends(get_audit_trail),
    notifier: Notifier = Depends(get_notifier),
    inventory: InventoryService = Depends(get_inventory_service),
) -> ShipmentService:
    return ShipmentService(db, audit, notifier=notifier, inventory=inventory)


def get_payment_service(
    db: Session = Depends(get_db),
    audit: AuditTrail = Depends(get_audit_trail),
) -> PaymentService:
    return PaymentService(db, audit)


def get_catalog_service(
    db: Session = Depends(get_db),
    audit: AuditTrail = Depends(get_audit_trail),
) -> CatalogService:
    return CatalogService(db, audit)


def require_staff(actor: Actor) -> None:
    if actor.is_buyer:
        raise Forbidden("Buyers cannot perform this operation")
