"""
Audit Log Model
"""
from sqlalchemy import Column, String, DateTime, JSON, event
from tradedesk.core import Base
from tradedesk.core.exceptions import InvalidOperation
from .base import UUIDMixin, utcnow

class AuditLog(Base, UUIDMixin):
    """Append-only audit trail of mutating actions"""
    __tablename__ = "audit_log"
    
    actor_id = Column(String(64), nullable=False, index=True)
    action = Column(String(50), nullable=False, index=True)  # create_order, reserve_inventory, ...
    
    entity_type = Column(String(50), nullable=False, index=True)
    entity_id = Column(String(50), index=True)
    
    # Before/After data
    changes = Column(JSON)
    meta = Column(JSON)
    
    # Additional context
    ip_address = Column(String(50))
    user_agent = Column(String(500))
    
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)


@event.listens_for(AuditLog, "before_update")
def reject_audit_update(mapper, connection, target):
    raise InvalidOperation("Audit log entries are immutable", code="AUDIT_IMMUTABLE")


@event.listens_for(AuditLog, "before_delete")
def reject_audit_delete(mapper, connection, target):
    raise InvalidOperation("Audit log entries cannot be deleted", code="AUDIT_IMMUTABLE")
