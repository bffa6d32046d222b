"""
Finance & Payment Models
"""
from sqlalchemy import Column, String, Numeric, DateTime, ForeignKey, Text, Uuid, JSON, event, inspect
from sqlalchemy.orm import relationship
from tradedesk.core import Base
from tradedesk.core.exceptions import InvalidOperation
from .base import UUIDMixin, TimestampMixin
from .enums import TransactionStatus, TransactionType

class Transaction(Base, UUIDMixin, TimestampMixin):
    """Financial event against an order"""
    __tablename__ = "payment_transaction"
    
    # TXN-YYYYMM-NNNN
    transaction_no = Column(String(30), unique=True, nullable=False, index=True)
    order_id = Column(Uuid, ForeignKey("order_header.id"), nullable=False, index=True)
    
    type = Column(String(20), default=TransactionType.PAYMENT.value, nullable=False, index=True)
    amount = Column(Numeric(14, 2), nullable=False)
    currency = Column(String(3), default="USD", nullable=False)
    status = Column(String(20), default=TransactionStatus.PENDING.value, nullable=False, index=True)
    
    # Payment info
    payment_method = Column(String(50))  # WIRE, LC, CARD, etc.
    payment_gateway_id = Column(String(100), index=True)
    payment_date = Column(DateTime)
    reference = Column(String(100))
    
    notes = Column(Text)
    extra_data = Column("metadata", JSON)
    created_by = Column(String(64))
    
    # Relationships
    order = relationship("Order", back_populates="transactions")


def _changed(state, attr: str) -> bool:
    hist = state.attrs[attr].history
    return bool(hist.deleted) and bool(hist.added) and hist.deleted[0] != hist.added[0]


@event.listens_for(Transaction, "before_update")
def guard_completed_transaction(mapper, connection, target):
    """Completed transactions keep their amount and type; corrections are new transactions"""
    state = inspect(target)
    status_hist = state.attrs.status.history
    previous_status = status_hist.deleted[0] if status_hist.deleted else target.status
    if previous_status != TransactionStatus.COMPLETED.value:
        return
    if _changed(state, "amount") or _changed(state, "type"):
        raise InvalidOperation(
            f"Transaction {target.transaction_no} is completed; issue a corrective transaction instead",
            code="TRANSACTION_IMMUTABLE",
        )
