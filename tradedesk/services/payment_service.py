"""
Payment Service - transactions against orders and payment status reconciliation
"""
import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from tradedesk.core.config import settings
from tradedesk.core.exceptions import NotFound, ValidationError
from tradedesk.models import Order, Transaction
from tradedesk.models.base import utcnow
from tradedesk.models.enums import OrderStatus, PaymentStatus, TransactionStatus, TransactionType
from tradedesk.schemas.common import round2
from tradedesk.schemas.transaction import TransactionCreate
from tradedesk.schemas.webhook import PaymentWebhook
from .audit_service import AuditTrail, snapshot
from .context import Actor, SYSTEM_ACTOR
from .numbering import commit_with_unique_number

logger = logging.getLogger(__name__)

# Gateway status -> transaction status
GATEWAY_STATUS_MAP = {
    "succeeded": TransactionStatus.COMPLETED.value,
    "success": TransactionStatus.COMPLETED.value,
    "completed": TransactionStatus.COMPLETED.value,
    "paid": TransactionStatus.COMPLETED.value,
    "failed": TransactionStatus.FAILED.value,
    "pending": TransactionStatus.PENDING.value,
    "processing": TransactionStatus.PROCESSING.value,
    "cancelled": TransactionStatus.CANCELLED.value,
    "canceled": TransactionStatus.CANCELLED.value,
}


class PaymentService:
    """Payment reconciliation logic"""

    def __init__(self, db: Session, audit: AuditTrail):
        self.db = db
        self.audit = audit

    def _get_order(self, order_id: UUID) -> Order:
        order = self.db.query(Order).filter(Order.id == order_id).first()
        if not order:
            raise NotFound("Order not found")
        return order

    def paid_amount(self, order_id: UUID) -> Decimal:
        """Sum of completed payment-type transactions"""
        total = self.db.query(func.coalesce(func.sum(Transaction.amount), 0)).filter(
            Transaction.order_id == order_id,
            Transaction.type == TransactionType.PAYMENT.value,
            Transaction.status == TransactionStatus.COMPLETED.value,
        ).scalar()
        return round2(total or 0)

    def recompute_payment_status(self, order: Order) -> str:
        """
        paid when completed payments cover grand_total, partial when some
        money arrived, otherwise left as it is. Does not commit.
        """
        paid = self.paid_amount(order.id)
        if paid > 0 and paid >= Decimal(order.grand_total):
            order.payment_status = PaymentStatus.PAID.value
        elif paid > 0:
            order.payment_status = PaymentStatus.PARTIAL.value
        return order.payment_status

    def record_transaction(self, data: TransactionCreate, actor: Actor = SYSTEM_ACTOR) -> Transaction:
        """Record a completed transaction and reconcile the order"""
        if data.amount is None or data.amount <= 0:
            raise ValidationError("Amount must be positive")
        order = self._get_order(data.order_id)

        txn = Transaction(
            order_id=order.id,
            type=data.type.value,
            amount=round2(data.amount),
            currency=data.currency or order.currency,
            status=TransactionStatus.COMPLETED.value,
            payment_method=data.payment_method,
            payment_date=utcnow(),
            reference=data.reference,
            notes=data.notes,
            created_by=actor.actor_id,
        )
        previous_status = order.payment_status
        commit_with_unique_number(
            self.db, txn, "transaction_no", "TXN",
            before_commit=lambda: self._reconcile_pending(order, txn),
        )
        self.db.refresh(txn)
        self.db.refresh(order)

        self.audit.record_for(actor, "record_transaction", "transaction", txn.id,
                              changes={"after": snapshot(txn)},
                              meta={"order_id": order.id, "payment_status": [previous_status, order.payment_status]})
        logger.info(f"Transaction {txn.transaction_no} recorded: {txn.type} {txn.amount} {txn.currency} "
                    f"order={order.order_no} payment_status={order.payment_status}")
        return txn

    def _reconcile_pending(self, order: Order, txn: Transaction) -> None:
        # The new row must be visible to the SUM before the status is derived
        self.db.flush()
        self.recompute_payment_status(order)

    def get_transaction(self, transaction_id: UUID) -> Transaction:
        txn = self.db.query(Transaction).filter(Transaction.id == transaction_id).first()
        if not txn:
            raise NotFound("Transaction not found")
        return txn

    def list_transactions(
        self,
        order_id: Optional[UUID] = None,
        status: Optional[str] = None,
        page: int = 1,
        per_page: int = 20,
    ) -> Tuple[List[Transaction], int]:
        query = self.db.query(Transaction)
        if order_id:
            query = query.filter(Transaction.order_id == order_id)
        if status:
            query = query.filter(Transaction.status == status)

        total = query.count()
        items = query.order_by(Transaction.created_at.desc())\
            .offset((page - 1) * per_page)\
            .limit(per_page)\
            .all()
        return items, total

    def apply_payment_webhook(self, payload: PaymentWebhook, actor: Actor = SYSTEM_ACTOR) -> str:
        """
        Apply a gateway callback. Idempotent on the gateway transaction id.

        Returns CREATED, UPDATED or SKIPPED.
        """
        order = self._get_order(payload.order_id)
        new_status = GATEWAY_STATUS_MAP.get(payload.status.strip().lower())
        if not new_status:
            logger.info(f"Payment webhook: unmapped gateway status {payload.status!r}, ignoring")
            return "SKIPPED"

        existing = self.db.query(Transaction).filter(
            Transaction.order_id == order.id,
            or_(
                Transaction.payment_gateway_id == payload.transaction_id,
                Transaction.transaction_no == payload.transaction_id,
            ),
        ).first()

        if existing:
            if existing.status == TransactionStatus.COMPLETED.value or existing.status == new_status:
                return "SKIPPED"
            before = existing.status
            existing.status = new_status
            if new_status == TransactionStatus.COMPLETED.value:
                existing.payment_date = existing.payment_date or utcnow()
            self.db.flush()
            self.recompute_payment_status(order)
            self.db.commit()
            self.audit.record_for(actor, "update_transaction", "transaction", existing.id,
                                  changes={"status": [before, new_status]},
                                  meta={"gateway": payload.gateway, "order_id": order.id})
            return "UPDATED"

        if new_status in (TransactionStatus.FAILED.value, TransactionStatus.CANCELLED.value):
            # Nothing to reconcile for a payment that never went through
            return "SKIPPED"

        amount = payload.amount
        if amount is None:
            amount = Decimal(order.grand_total) - self.paid_amount(order.id)
        if amount <= 0:
            return "SKIPPED"

        completed = new_status == TransactionStatus.COMPLETED.value
        txn = Transaction(
            order_id=order.id,
            type=TransactionType.PAYMENT.value,
            amount=round2(amount),
            currency=order.currency,
            status=new_status,
            payment_method=payload.gateway,
            payment_gateway_id=payload.transaction_id,
            payment_date=utcnow() if completed else None,
            extra_data={"source": "webhook", "gateway": payload.gateway},
            created_by=actor.actor_id,
        )
        commit_with_unique_number(
            self.db, txn, "transaction_no", "TXN",
            before_commit=lambda: self._reconcile_pending(order, txn),
        )
        self.audit.record_for(actor, "record_transaction", "transaction", txn.id,
                              changes={"after": snapshot(txn)},
                              meta={"gateway": payload.gateway, "order_id": order.id})
        return "CREATED"

    def mark_overdue(self, as_of: Optional[datetime] = None, actor: Actor = SYSTEM_ACTOR) -> List[Order]:
        """Invoiced orders still unpaid past the payment terms become overdue"""
        as_of = as_of or utcnow()
        cutoff = as_of - timedelta(days=settings.PAYMENT_TERMS_DAYS)
        shipped_or_created = func.coalesce(Order.actual_ship_date, Order.created_at)

        orders = self.db.query(Order).filter(
            Order.status == OrderStatus.INVOICED.value,
            Order.payment_status.in_([PaymentStatus.PENDING.value, PaymentStatus.PARTIAL.value]),
            shipped_or_created < cutoff,
        ).all()
        if not orders:
            return []

        previous = {o.id: o.payment_status for o in orders}
        for order in orders:
            order.payment_status = PaymentStatus.OVERDUE.value
        self.db.commit()

        for order in orders:
            self.audit.record_for(actor, "mark_overdue", "order", order.id,
                                  changes={"payment_status": [previous[order.id], PaymentStatus.OVERDUE.value]})
        logger.info(f"Marked {len(orders)} order(s) overdue (terms {settings.PAYMENT_TERMS_DAYS} days)")
        return orders
