"""
Shipment Service - logistics lifecycle of an order's shipments
"""
import logging
from datetime import datetime
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from tradedesk.core.exceptions import NotFound
from tradedesk.models import Order, Shipment
from tradedesk.models.base import to_utc_naive, utcnow
from tradedesk.models.enums import OrderStatus, ShipmentStatus, TransportMode
from tradedesk.schemas.shipment import (
    ShipmentCreate, ShipmentUpdate, TrackingInfo, TrackingMilestone,
)
from tradedesk.schemas.webhook import CarrierWebhook
from .audit_service import AuditTrail, snapshot
from .context import Actor, SYSTEM_ACTOR
from .inventory_service import InventoryService
from .notifications import LoggingNotifier, Notifier, dispatch
from .numbering import commit_with_unique_number

logger = logging.getLogger(__name__)

# Carrier status -> shipment status; anything else leaves the status alone
CARRIER_STATUS_MAP = {
    "picked_up": ShipmentStatus.BOOKED.value,
    "in_transit": ShipmentStatus.IN_TRANSIT.value,
    "arrived": ShipmentStatus.ARRIVED.value,
    "delivered": ShipmentStatus.DELIVERED.value,
}


class ShipmentService:
    """Shipment business logic"""

    # Orders in these states ship as soon as a shipment is created
    AUTO_SHIP_FROM = {OrderStatus.CONFIRMED.value, OrderStatus.PACKED.value}

    def __init__(
        self,
        db: Session,
        audit: AuditTrail,
        notifier: Optional[Notifier] = None,
        inventory: Optional[InventoryService] = None,
    ):
        self.db = db
        self.audit = audit
        self.notifier = notifier or LoggingNotifier()
        self.inventory = inventory or InventoryService(db, audit)

    def get_shipment(self, shipment_id: UUID) -> Shipment:
        shipment = self.db.query(Shipment).filter(Shipment.id == shipment_id).first()
        if not shipment:
            raise NotFound("Shipment not found")
        return shipment

    def list_shipments(
        self,
        order_id: Optional[UUID] = None,
        status: Optional[str] = None,
        carrier: Optional[str] = None,
        page: int = 1,
        per_page: int = 20,
    ) -> Tuple[List[Shipment], int]:
        query = self.db.query(Shipment)
        if order_id:
            query = query.filter(Shipment.order_id == order_id)
        if status:
            query = query.filter(Shipment.status == status)
        if carrier:
            query = query.filter(Shipment.carrier.ilike(f"%{carrier}%"))

        total = query.count()
        shipments = query.order_by(Shipment.created_at.desc())\
            .offset((page - 1) * per_page)\
            .limit(per_page)\
            .all()
        return shipments, total

    def create_shipment(self, data: ShipmentCreate, actor: Actor = SYSTEM_ACTOR) -> Shipment:
        """
        Create a shipment for an order.

        A confirmed or packed order moves to shipped in the same commit as the
        shipment insert.
        """
        order = self.db.query(Order).filter(Order.id == data.order_id).first()
        if not order:
            raise NotFound("Order not found")

        values = data.model_dump()
        values["status"] = data.status.value
        values["mode_of_transport"] = data.mode_of_transport.value
        values["port_of_loading"] = data.port_of_loading or order.port_of_loading
        values["port_of_discharge"] = data.port_of_discharge or order.port_of_discharge
        shipment = Shipment(**values)

        order_before = order.status

        def ship_order():
            if order.status in self.AUTO_SHIP_FROM:
                order.status = OrderStatus.SHIPPED.value
                order.actual_ship_date = utcnow()

        commit_with_unique_number(self.db, shipment, "shipment_no", "SHP", before_commit=ship_order)
        self.db.refresh(shipment)
        self.db.refresh(order)

        self.audit.record_for(actor, "create_shipment", "shipment", shipment.id,
                              changes={"after": snapshot(shipment)},
                              meta={"order_id": order.id, "order_status": [order_before, order.status]})
        if order.status != order_before:
            self.audit.record_for(actor, "update_order", "order", order.id,
                                  changes={"status": [order_before, order.status]},
                                  meta={"shipment_no": shipment.shipment_no})

        self._notify(order, shipment, "shipment.created",
                     f"Shipment {shipment.shipment_no} created for order {order.order_no}")
        logger.info(f"Shipment created: {shipment.shipment_no} order={order.order_no} carrier={shipment.carrier}")
        return shipment

    def update_shipment(self, shipment_id: UUID, data: ShipmentUpdate, actor: Actor = SYSTEM_ACTOR) -> Shipment:
        """Patch a shipment. Status changes are never rejected."""
        shipment = self.get_shipment(shipment_id)
        before = snapshot(shipment)

        patch = data.model_dump(exclude_unset=True)
        new_status = patch.pop("status", None)
        for field, value in patch.items():
            if field == "mode_of_transport" and value is not None:
                value = TransportMode(value).value
            setattr(shipment, field, value)

        changed = False
        if new_status is not None:
            changed = self._apply_status(shipment, ShipmentStatus(new_status).value, actor)

        self.db.commit()
        self.db.refresh(shipment)

        self.audit.record_for(actor, "update_shipment", "shipment", shipment.id,
                              changes={"before": before, "after": snapshot(shipment)})
        if changed:
            self._notify(shipment.order, shipment, "shipment.status_changed",
                         f"Shipment {shipment.shipment_no} is now {shipment.status}")
        return shipment

    def _apply_status(self, shipment: Shipment, new_status: str, actor: Actor,
                      event_time: Optional[datetime] = None) -> bool:
        """Set the status and run its side effects inside the caller's unit of work"""
        if new_status == shipment.status:
            return False

        previous = shipment.status
        shipment.status = new_status
        when = event_time or utcnow()

        if new_status == ShipmentStatus.IN_TRANSIT.value and not shipment.actual_departure:
            shipment.actual_departure = when
        elif new_status == ShipmentStatus.DELIVERED.value:
            if not shipment.actual_arrival:
                shipment.actual_arrival = when
            self.inventory.consume(shipment.order_id, actor=actor, commit=False)
        elif new_status == ShipmentStatus.CANCELLED.value:
            # The hold stays while another shipment of the order is still live
            if not self._other_live_shipments(shipment):
                self.inventory.release(shipment.order_id, actor=actor, commit=False)
            else:
                logger.info(f"Shipment {shipment.shipment_no} cancelled; order reservation kept for sibling shipments")

        logger.info(f"Shipment {shipment.shipment_no}: {previous} -> {new_status}")
        return True

    def _other_live_shipments(self, shipment: Shipment) -> int:
        return self.db.query(Shipment.id).filter(
            Shipment.order_id == shipment.order_id,
            Shipment.id != shipment.id,
            Shipment.status != ShipmentStatus.CANCELLED.value,
        ).count()

    def apply_carrier_update(self, payload: CarrierWebhook, actor: Actor = SYSTEM_ACTOR) -> Tuple[Shipment, bool]:
        """Apply a carrier tracking event; returns the shipment and whether its status changed"""
        shipment = self.db.query(Shipment).filter(
            Shipment.awb_bl_number == payload.tracking_number
        ).first()
        if not shipment:
            raise NotFound(f"No shipment with tracking number {payload.tracking_number}")

        before = shipment.status
        if payload.location:
            shipment.last_location = payload.location

        changed = False
        new_status = CARRIER_STATUS_MAP.get(payload.status.strip().lower())
        if new_status:
            event_time = to_utc_naive(payload.timestamp) if payload.timestamp else None
            changed = self._apply_status(shipment, new_status, actor, event_time=event_time)
        else:
            logger.info(f"Carrier update for {payload.tracking_number}: unmapped status {payload.status!r}")

        self.db.commit()
        self.db.refresh(shipment)

        self.audit.record_for(actor, "carrier_update", "shipment", shipment.id,
                              changes={"status": [before, shipment.status]},
                              meta={"carrier_status": payload.status, "location": payload.location,
                                    "timestamp": payload.timestamp, "carrier": payload.carrier})
        if changed:
            self._notify(shipment.order, shipment, "shipment.status_changed",
                         f"Shipment {shipment.shipment_no} is now {shipment.status}")
        return shipment, changed

    def track(self, shipment_id: UUID) -> TrackingInfo:
        """Tracking view with lifecycle milestones"""
        shipment = self.get_shipment(shipment_id)
        status = shipment.status
        flow = [
            ShipmentStatus.CREATED.value,
            ShipmentStatus.BOOKED.value,
            ShipmentStatus.IN_TRANSIT.value,
            ShipmentStatus.ARRIVED.value,
            ShipmentStatus.CUSTOMS_CLEARED.value,
            ShipmentStatus.DELIVERED.value,
        ]
        reached = flow.index(status) if status in flow else -1

        milestones = [
            TrackingMilestone(event="Shipment created", date=shipment.created_at, completed=True),
            TrackingMilestone(event="Booked with carrier", completed=reached >= 1),
            TrackingMilestone(event="Departed", date=shipment.actual_departure,
                              completed=reached >= 2 or shipment.actual_departure is not None),
            TrackingMilestone(event="Arrived at destination port", completed=reached >= 3),
            TrackingMilestone(event="Customs cleared", completed=reached >= 4),
            TrackingMilestone(event="Delivered", date=shipment.actual_arrival, completed=reached >= 5),
        ]
        if status == ShipmentStatus.CANCELLED.value:
            milestones.append(TrackingMilestone(event="Cancelled", date=shipment.updated_at, completed=True))

        return TrackingInfo(
            shipment_no=shipment.shipment_no,
            carrier=shipment.carrier,
            awb_bl_number=shipment.awb_bl_number,
            status=status,
            current_location=shipment.last_location,
            estimated_arrival=shipment.estimated_arrival,
            actual_departure=shipment.actual_departure,
            actual_arrival=shipment.actual_arrival,
            tracking_url=shipment.tracking_url,
            milestones=milestones,
        )

    def _notify(self, order: Order, shipment: Shipment, event: str, subject: str) -> None:
        buyer = order.buyer
        recipients = [buyer.contact_email] if buyer and buyer.contact_email else []
        body = (
            f"Order: {order.order_no}\n"
            f"Shipment: {shipment.shipment_no}\n"
            f"Carrier: {shipment.carrier}\n"
            f"Tracking: {shipment.awb_bl_number or '-'}\n"
            f"Status: {shipment.status}\n"
        )
        dispatch(self.notifier, recipients, subject, body, event, {
            "order_id": str(order.id),
            "order_no": order.order_no,
            "shipment_id": str(shipment.id),
            "shipment_no": shipment.shipment_no,
            "status": shipment.status,
            "location": shipment.last_location,
        })
