"""
Order Service - Business Logic for Export Orders
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from tradedesk.core.config import settings
from tradedesk.core.exceptions import Conflict, Forbidden, NotFound, ValidationError
from tradedesk.models import Buyer, Order, OrderItem, Shipment, Sku, Transaction
from tradedesk.models.enums import LifecycleStatus, OrderStatus, PaymentStatus
from tradedesk.schemas.common import round2
from tradedesk.schemas.order import OrderCreate, OrderItemCreate, OrderUpdate
from .audit_service import AuditTrail, snapshot
from .context import Actor, SYSTEM_ACTOR
from .inventory_service import InventoryService
from .numbering import commit_with_unique_number
from .tax import SettingsTaxRate, TaxRateProvider

logger = logging.getLogger(__name__)


def line_total(quantity: int, unit_price, discount_percent=0, tax_percent=0) -> Decimal:
    """qty * price * (1 - discount%) * (1 + tax%), rounded to cents"""
    gross = Decimal(quantity) * Decimal(unit_price)
    net = gross * (1 - Decimal(discount_percent) / 100)
    return round2(net * (1 + Decimal(tax_percent) / 100))


class OrderService:
    """Order business logic"""

    # Forward-only progression; cancellation is handled separately
    STATUS_FLOW = [
        OrderStatus.DRAFT.value,
        OrderStatus.CONFIRMED.value,
        OrderStatus.PACKED.value,
        OrderStatus.SHIPPED.value,
        OrderStatus.INVOICED.value,
        OrderStatus.CLOSED.value,
    ]
    NON_CANCELLABLE = {OrderStatus.CLOSED.value, OrderStatus.CANCELLED.value}
    NON_DELETABLE = {OrderStatus.SHIPPED.value, OrderStatus.INVOICED.value, OrderStatus.CLOSED.value}

    def __init__(
        self,
        db: Session,
        audit: AuditTrail,
        tax_rates: Optional[TaxRateProvider] = None,
        inventory: Optional[InventoryService] = None,
    ):
        self.db = db
        self.audit = audit
        self.tax_rates = tax_rates or SettingsTaxRate()
        self.inventory = inventory or InventoryService(db, audit)

    # ---------- Queries ----------

    def get_order(self, order_id: UUID, actor: Actor = SYSTEM_ACTOR) -> Order:
        """Get order by ID, scoped to the actor's buyer for buyer-role actors"""
        order = self.db.query(Order).filter(Order.id == order_id).first()
        if not order:
            raise NotFound("Order not found")
        if actor.is_buyer and order.buyer_id != actor.buyer_id:
            raise Forbidden("Access denied to this order")
        return order

    def list_orders(
        self,
        status: Optional[str] = None,
        buyer_id: Optional[UUID] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        search: Optional[str] = None,
        page: int = 1,
        per_page: int = 20,
        actor: Actor = SYSTEM_ACTOR,
    ) -> Tuple[List[Order], int]:
        """Get orders with filters and pagination"""
        query = self.db.query(Order)

        if actor.is_buyer:
            # Buyers never see other buyers' orders, whatever they filter on
            buyer_id = actor.buyer_id
            if buyer_id is None:
                return [], 0
        if buyer_id:
            query = query.filter(Order.buyer_id == buyer_id)
        if status and status != "all":
            query = query.filter(Order.status == status)
        if date_from:
            query = query.filter(Order.created_at >= date_from)
        if date_to:
            query = query.filter(Order.created_at <= date_to)
        if search:
            search_term = f"%{search}%"
            query = query.filter(or_(Order.order_no.ilike(search_term), Order.notes.ilike(search_term)))

        total = query.count()
        orders = query.order_by(Order.created_at.desc())\
            .offset((page - 1) * per_page)\
            .limit(per_page)\
            .all()
        return orders, total

    # ---------- Create ----------

    def _resolve_sku(self, data: OrderItemCreate) -> Optional[Sku]:
        if data.sku_id:
            return self.db.query(Sku).filter(Sku.id == data.sku_id).first()
        if data.sku:
            return self.db.query(Sku).filter(Sku.code == data.sku.strip().upper()).first()
        return None

    def _build_item(self, line_no: int, data: OrderItemCreate) -> OrderItem:
        sku = self._resolve_sku(data)
        if data.sku_id and not sku:
            raise NotFound(f"SKU not found: {data.sku_id}")

        unit_price = data.unit_price
        if unit_price is None:
            unit_price = sku.unit_price if sku else Decimal("0")
        description = data.description or (sku.description if sku else None) or (data.sku or "Custom item")

        item = OrderItem(
            line_no=line_no,
            sku_id=sku.id if sku else None,
            sku_code=sku.code if sku else (data.sku.strip().upper() if data.sku else "CUSTOM"),
            description=description,
            hs_code=data.hs_code or (sku.hs_code if sku else None),
            quantity=data.quantity,
            unit_price=round2(unit_price),
            discount_percent=data.discount_percent,
            tax_percent=data.tax_percent,
            weight_kg=data.weight_kg if data.weight_kg is not None else (sku.weight_kg if sku else None),
        )
        item.line_total = line_total(item.quantity, item.unit_price, item.discount_percent, item.tax_percent)
        return item

    def recompute_totals(self, order: Order) -> Order:
        """
        total = sum of line totals; one order-level tax rate is applied to
        that sum (item tax_percent is already inside each line total).
        """
        total = round2(sum((Decimal(i.line_total) for i in order.items), Decimal("0")))
        rate = self.tax_rates.rate_for(order)
        order.total_amount = total
        order.tax_amount = round2(total * rate)
        order.grand_total = round2(total + order.tax_amount - Decimal(order.discount_amount or 0))
        return order

    def create_order(self, data: OrderCreate, actor: Actor = SYSTEM_ACTOR) -> Order:
        """Create new order with its line items and totals"""
        if not data.items:
            raise ValidationError("Order requires at least one item")

        buyer = self.db.query(Buyer).filter(Buyer.id == data.buyer_id).first()
        if not buyer or buyer.lifecycle_status != LifecycleStatus.ACTIVE.value:
            raise NotFound("Buyer not found")

        order = Order(
            order_no=data.order_no,
            buyer_id=buyer.id,
            incoterm=(data.incoterm.value if data.incoterm else settings.DEFAULT_INCOTERM),
            currency=data.currency or settings.DEFAULT_CURRENCY,
            status=OrderStatus.DRAFT.value,
            payment_status=PaymentStatus.PENDING.value,
            expected_ship_date=data.expected_ship_date,
            shipping_address=data.shipping_address or buyer.address,
            billing_address=data.billing_address or buyer.address,
            port_of_loading=data.port_of_loading,
            port_of_discharge=data.port_of_discharge,
            notes=data.notes,
            discount_amount=round2(data.discount_amount),
            created_by=actor.actor_id,
        )
        for line_no, item_data in enumerate(data.items, start=1):
            order.items.append(self._build_item(line_no, item_data))
        self.recompute_totals(order)

        commit_with_unique_number(self.db, order, "order_no", "ORD")
        self.db.refresh(order)

        self.audit.record_for(actor, "create_order", "order", order.id, changes={"after": snapshot(order)},
                              meta={"order_no": order.order_no, "items": len(order.items)})
        logger.info(f"Order created: {order.order_no} buyer={buyer.id} grand_total={order.grand_total}")
        return order

    # ---------- Update ----------

    def check_transition(self, current: str, new: str) -> None:
        """Raise Conflict unless current -> new is allowed"""
        if current == new:
            return
        if new == OrderStatus.CANCELLED.value:
            if current in self.NON_CANCELLABLE:
                raise Conflict(f"Cannot cancel an order in status {current}", code="INVALID_TRANSITION")
            return
        if current not in self.STATUS_FLOW or new not in self.STATUS_FLOW:
            raise Conflict(f"Invalid status transition: {current} -> {new}", code="INVALID_TRANSITION")
        if self.STATUS_FLOW.index(new) < self.STATUS_FLOW.index(current):
            raise Conflict(f"Invalid status transition: {current} -> {new}", code="INVALID_TRANSITION")

    def update_order(self, order_id: UUID, data: OrderUpdate, actor: Actor = SYSTEM_ACTOR) -> Order:
        """Apply a patch as one write; totals are not touched"""
        order = self.get_order(order_id, actor)
        before = snapshot(order)

        patch = data.model_dump(exclude_unset=True)
        new_status = patch.pop("status", None)
        if new_status is not None:
            new_status = OrderStatus(new_status).value
            self.check_transition(order.status, new_status)

        for field, value in patch.items():
            setattr(order, field, value)

        released = []
        if new_status and new_status != order.status:
            order.status = new_status
            if new_status == OrderStatus.CANCELLED.value:
                released = self.inventory.release(order.id, actor=actor, commit=False)

        self.db.commit()
        self.db.refresh(order)

        meta = {"released": [r.model_dump() for r in released]} if released else None
        self.audit.record_for(actor, "update_order", "order", order.id,
                              changes={"before": before, "after": snapshot(order)}, meta=meta)
        return order

    # ---------- Delete ----------

    def delete_order(self, order_id: UUID, actor: Actor = SYSTEM_ACTOR) -> None:
        """Delete a not-yet-shipped order with no shipments or transactions"""
        order = self.get_order(order_id, actor)

        if order.status in self.NON_DELETABLE:
            raise Conflict(f"Cannot delete an order in status {order.status}", code="ORDER_NOT_DELETABLE")
        if self.db.query(Shipment.id).filter(Shipment.order_id == order.id).first():
            raise Conflict("Cannot delete an order with shipments", code="ORDER_NOT_DELETABLE")
        if self.db.query(Transaction.id).filter(Transaction.order_id == order.id).first():
            raise Conflict("Cannot delete an order with transactions", code="ORDER_NOT_DELETABLE")

        before = snapshot(order)
        released = self.inventory.release(order.id, actor=actor, commit=False)
        self.db.delete(order)
        self.db.commit()

        self.audit.record_for(actor, "delete_order", "order", order_id, changes={"before": before},
                              meta={"released": [r.model_dump() for r in released]})
        logger.info(f"Order deleted: {before['order_no']}")
