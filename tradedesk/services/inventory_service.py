"""
Inventory Service - Reservation ledger for (SKU, Warehouse) stock

Every quantity change is a single conditional UPDATE whose affected-row count
decides success, so concurrent reservations and adjustments of the same record
cannot oversell. Each change is journaled in the stock ledger; the quantities an
order still holds reserved are derived from that journal.
"""
import logging
from collections import defaultdict
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tradedesk.core.exceptions import Conflict, InvalidOperation, NotFound, ValidationError
from tradedesk.models import InventoryRecord, Order, Sku, StockLedger, Warehouse
from tradedesk.models.base import utcnow
from tradedesk.models.enums import MovementType
from tradedesk.schemas.inventory import ReservationLine, ReservationResult
from .audit_service import AuditTrail
from .context import Actor, SYSTEM_ACTOR

logger = logging.getLogger(__name__)

ORDER_REFERENCE = "ORDER"


class InventoryService:
    """Stock balances, reservations and adjustments"""

    def __init__(self, db: Session, audit: AuditTrail):
        self.db = db
        self.audit = audit

    # ---------- Records ----------

    def get_record(self, sku_id: UUID, warehouse_id: UUID) -> Optional[InventoryRecord]:
        return self.db.query(InventoryRecord).filter(
            InventoryRecord.sku_id == sku_id,
            InventoryRecord.warehouse_id == warehouse_id,
        ).first()

    def create_record(
        self,
        sku_id: UUID,
        warehouse_id: UUID,
        qty_available: int = 0,
        bin_location: Optional[str] = None,
        actor: Actor = SYSTEM_ACTOR,
    ) -> InventoryRecord:
        """Open the one stock record allowed per (SKU, warehouse) pair"""
        if qty_available < 0:
            raise ValidationError("Initial quantity cannot be negative")
        if not self.db.query(Sku.id).filter(Sku.id == sku_id).first():
            raise NotFound("SKU not found")
        if not self.db.query(Warehouse.id).filter(Warehouse.id == warehouse_id).first():
            raise NotFound("Warehouse not found")
        if self.get_record(sku_id, warehouse_id):
            raise Conflict("Inventory record already exists for this SKU and warehouse")

        record = InventoryRecord(
            sku_id=sku_id,
            warehouse_id=warehouse_id,
            qty_available=qty_available,
            bin_location=bin_location,
        )
        self.db.add(record)
        if qty_available:
            self.db.add(StockLedger(
                warehouse_id=warehouse_id,
                sku_id=sku_id,
                movement_type=MovementType.IN.value,
                quantity=qty_available,
                reference_type="INITIAL",
                note="Opening balance",
                created_by=actor.actor_id,
            ))
        try:
            self.db.commit()
        except IntegrityError as e:
            # Lost a race against a concurrent create for the same pair
            self.db.rollback()
            raise Conflict("Inventory record already exists for this SKU and warehouse") from e
        self.db.refresh(record)

        self.audit.record_for(actor, "create_inventory", "inventory", record.id,
                              meta={"sku_id": sku_id, "warehouse_id": warehouse_id,
                                    "qty_available": qty_available, "bin_location": bin_location})
        return record

    def list_inventory(
        self,
        warehouse_id: Optional[UUID] = None,
        sku_id: Optional[UUID] = None,
        low_stock: bool = False,
    ) -> List[InventoryRecord]:
        query = self.db.query(InventoryRecord).join(Sku, InventoryRecord.sku_id == Sku.id)
        if warehouse_id:
            query = query.filter(InventoryRecord.warehouse_id == warehouse_id)
        if sku_id:
            query = query.filter(InventoryRecord.sku_id == sku_id)
        if low_stock:
            query = query.filter(InventoryRecord.qty_available <= func.coalesce(Sku.reorder_level, 0))
        return query.order_by(Sku.code).all()

    def list_movements(
        self,
        warehouse_id: Optional[UUID] = None,
        sku_id: Optional[UUID] = None,
        movement_type: Optional[str] = None,
        reference_id: Optional[str] = None,
        limit: int = 50,
    ) -> List[StockLedger]:
        """Get recent stock movements"""
        query = self.db.query(StockLedger)
        if warehouse_id:
            query = query.filter(StockLedger.warehouse_id == warehouse_id)
        if sku_id:
            query = query.filter(StockLedger.sku_id == sku_id)
        if movement_type:
            query = query.filter(StockLedger.movement_type == movement_type)
        if reference_id:
            query = query.filter(StockLedger.reference_id == reference_id)
        return query.order_by(StockLedger.created_at.desc()).limit(limit).all()

    # ---------- Adjustments ----------

    def adjust(
        self,
        sku_id: UUID,
        warehouse_id: UUID,
        delta: int,
        reason: str,
        actor: Actor = SYSTEM_ACTOR,
    ) -> InventoryRecord:
        """Apply ``delta`` to qty_available; refuses to go below zero"""
        if not delta:
            raise ValidationError("Adjustment must be a non-zero quantity")
        if not reason or not reason.strip():
            raise ValidationError("Adjustment reason is required")

        record = self.get_record(sku_id, warehouse_id)
        if not record:
            raise NotFound("Inventory record not found")

        result = self.db.execute(
            update(InventoryRecord)
            .where(
                InventoryRecord.id == record.id,
                InventoryRecord.qty_available + delta >= 0,
            )
            .values(
                qty_available=InventoryRecord.qty_available + delta,
                last_stock_update=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.rollback()
            self.db.refresh(record)
            raise InvalidOperation(
                "Adjustment would result in negative inventory",
                details={"available": record.qty_available, "adjustment": delta},
            )

        new_qty = self.db.execute(
            select(InventoryRecord.qty_available).where(InventoryRecord.id == record.id)
        ).scalar_one()
        self.db.add(StockLedger(
            warehouse_id=warehouse_id,
            sku_id=sku_id,
            movement_type=MovementType.ADJUST.value,
            quantity=delta,
            reference_type="ADJUSTMENT",
            reference_id=str(record.id),
            note=reason,
            created_by=actor.actor_id,
        ))
        self.db.commit()
        self.db.refresh(record)

        self.audit.record_for(actor, "adjust_inventory", "inventory", record.id, changes={
            "before": new_qty - delta,
            "after": new_qty,
            "adjustment": delta,
            "reason": reason,
        })
        logger.info(f"Inventory adjusted: sku={sku_id} warehouse={warehouse_id} {delta:+d} -> {new_qty}")
        return record

    # ---------- Reservations ----------

    def held_reservations(
        self,
        order_id: UUID,
        warehouse_id: Optional[UUID] = None,
    ) -> Dict[Tuple[UUID, UUID], int]:
        """Quantity the order still holds reserved, per (sku_id, warehouse_id)"""
        net = func.sum(
            case(
                (StockLedger.movement_type == MovementType.RESERVE.value, StockLedger.quantity),
                (StockLedger.movement_type.in_([MovementType.RELEASE.value, MovementType.OUT.value]),
                 -StockLedger.quantity),
                else_=0,
            )
        )
        query = self.db.query(StockLedger.sku_id, StockLedger.warehouse_id, net.label("held")).filter(
            StockLedger.reference_type == ORDER_REFERENCE,
            StockLedger.reference_id == str(order_id),
        )
        if warehouse_id:
            query = query.filter(StockLedger.warehouse_id == warehouse_id)
        rows = query.group_by(StockLedger.sku_id, StockLedger.warehouse_id).all()
        return {(r.sku_id, r.warehouse_id): int(r.held or 0) for r in rows if (r.held or 0) > 0}

    def reserve(self, order_id: UUID, warehouse_id: UUID, actor: Actor = SYSTEM_ACTOR) -> ReservationResult:
        """
        Reserve every SKU-backed item of the order in one warehouse.

        Not atomic across items: each successful line is committed on its own,
        failing lines are reported in ``errors`` and skipped. Lines the order
        already holds in this warehouse are not reserved twice; ``release`` is
        the compensating operation.
        """
        order = self.db.query(Order).filter(Order.id == order_id).first()
        if not order:
            raise NotFound("Order not found")

        already_held = {sku: qty for (sku, _), qty in self.held_reservations(order_id, warehouse_id).items()}
        result = ReservationResult()

        for item in list(order.items):
            if not item.sku_id:
                continue
            sku_id, sku_code, qty = item.sku_id, item.sku_code, item.quantity

            held = already_held.get(sku_id, 0)
            if held >= qty:
                already_held[sku_id] = held - qty
                result.errors.append(f"SKU {sku_code} already reserved for this order in warehouse")
                continue
            already_held[sku_id] = 0
            # A partially held line only tops up the shortfall
            qty -= held

            record = self.get_record(sku_id, warehouse_id)
            if not record:
                result.errors.append(f"No inventory found for SKU {sku_code} in warehouse")
                continue

            updated = self.db.execute(
                update(InventoryRecord)
                .where(
                    InventoryRecord.id == record.id,
                    InventoryRecord.qty_available >= qty,
                )
                .values(
                    qty_available=InventoryRecord.qty_available - qty,
                    qty_reserved=InventoryRecord.qty_reserved + qty,
                    last_stock_update=utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            if updated.rowcount != 1:
                self.db.rollback()
                self.db.refresh(record)
                result.errors.append(
                    f"Insufficient stock for SKU {sku_code}. "
                    f"Available: {record.qty_available}, Required: {qty}"
                )
                continue

            self.db.add(StockLedger(
                warehouse_id=warehouse_id,
                sku_id=sku_id,
                movement_type=MovementType.RESERVE.value,
                quantity=qty,
                reference_type=ORDER_REFERENCE,
                reference_id=str(order_id),
                note=f"Reserved for {order.order_no}",
                created_by=actor.actor_id,
            ))
            self.db.commit()
            result.reservations.append(ReservationLine(
                sku_id=sku_id, sku_code=sku_code, warehouse_id=warehouse_id, quantity=qty,
            ))

        self.audit.record_for(actor, "reserve_inventory", "inventory", meta={
            "order_id": order_id,
            "warehouse_id": warehouse_id,
            "reservations": [r.model_dump() for r in result.reservations],
            "errors": result.errors,
        })
        if result.errors:
            logger.info(f"Reservation for order {order_id}: {len(result.reservations)} ok, {len(result.errors)} failed")
        return result

    def release(
        self,
        order_id: UUID,
        warehouse_id: Optional[UUID] = None,
        actor: Actor = SYSTEM_ACTOR,
        commit: bool = True,
    ) -> List[ReservationLine]:
        """Return everything the order holds reserved to available stock. Idempotent."""
        return self._drain(order_id, warehouse_id, MovementType.RELEASE, actor, commit)

    def consume(
        self,
        order_id: UUID,
        actor: Actor = SYSTEM_ACTOR,
        commit: bool = True,
    ) -> List[ReservationLine]:
        """Reserved stock leaves the warehouse (fulfillment). Idempotent."""
        return self._drain(order_id, None, MovementType.OUT, actor, commit)

    def _drain(
        self,
        order_id: UUID,
        warehouse_id: Optional[UUID],
        movement: MovementType,
        actor: Actor,
        commit: bool,
    ) -> List[ReservationLine]:
        lines: List[ReservationLine] = []
        codes = defaultdict(str)
        for sku in self.db.query(Sku.id, Sku.code).join(StockLedger, StockLedger.sku_id == Sku.id).filter(
            StockLedger.reference_type == ORDER_REFERENCE,
            StockLedger.reference_id == str(order_id),
        ).distinct():
            codes[sku.id] = sku.code

        for (sku_id, wh_id), qty in self.held_reservations(order_id, warehouse_id).items():
            values = {
                "qty_reserved": InventoryRecord.qty_reserved - qty,
                "last_stock_update": utcnow(),
            }
            if movement == MovementType.RELEASE:
                values["qty_available"] = InventoryRecord.qty_available + qty

            updated = self.db.execute(
                update(InventoryRecord)
                .where(
                    InventoryRecord.sku_id == sku_id,
                    InventoryRecord.warehouse_id == wh_id,
                    InventoryRecord.qty_reserved >= qty,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if updated.rowcount != 1:
                logger.error(
                    f"Reserved quantity drift for order {order_id}: sku={sku_id} warehouse={wh_id} "
                    f"expected at least {qty} reserved; skipping {movement.value}"
                )
                continue

            self.db.add(StockLedger(
                warehouse_id=wh_id,
                sku_id=sku_id,
                movement_type=movement.value,
                quantity=qty,
                reference_type=ORDER_REFERENCE,
                reference_id=str(order_id),
                created_by=actor.actor_id,
            ))
            lines.append(ReservationLine(sku_id=sku_id, sku_code=codes[sku_id], warehouse_id=wh_id, quantity=qty))

        if commit:
            self.db.commit()
            if lines:
                action = "release_inventory" if movement == MovementType.RELEASE else "consume_inventory"
                self.audit.record_for(actor, action, "inventory", meta={
                    "order_id": order_id,
                    "warehouse_id": warehouse_id,
                    "lines": [line.model_dump() for line in lines],
                })
        return lines
