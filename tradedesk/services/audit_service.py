"""
Audit Trail - best-effort, append-only record of every mutating action
"""
import logging
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID

from sqlalchemy import inspect
from sqlalchemy.orm import Session

from tradedesk.models import AuditLog

logger = logging.getLogger(__name__)


def _json_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(k): _json_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_value(v) for v in value]
    return value


def snapshot(obj) -> Dict[str, Any]:
    """JSON-safe dict of an ORM object's column values"""
    mapper = inspect(obj).mapper
    return {
        attr.key: _json_value(getattr(obj, attr.key))
        for attr in mapper.column_attrs
    }


class AuditTrail:
    """
    Writes audit entries in a session of its own so that a failing audit
    write can never roll back, or be rolled back with, the caller's work.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def record(
        self,
        actor_id: str,
        action: str,
        entity_type: str,
        entity_id: Any = None,
        changes: Optional[Any] = None,
        meta: Optional[Dict[str, Any]] = None,
        ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        """Append one entry. Never raises."""
        try:
            db = self.session_factory()
            try:
                db.add(AuditLog(
                    actor_id=str(actor_id or "system"),
                    action=action,
                    entity_type=entity_type,
                    entity_id=str(entity_id) if entity_id is not None else None,
                    changes=_json_value(changes) if changes is not None else None,
                    meta=_json_value(meta) if meta is not None else None,
                    ip_address=ip,
                    user_agent=(user_agent or "")[:500] or None,
                ))
                db.commit()
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()
        except Exception as e:
            logger.error(f"Audit log write failed: {action} {entity_type}/{entity_id} - {e}")

    def record_for(self, actor, action: str, entity_type: str, entity_id: Any = None,
                   changes: Optional[Any] = None, meta: Optional[Dict[str, Any]] = None) -> None:
        """Shortcut taking the request Actor for identity, IP and user agent"""
        self.record(
            actor.actor_id, action, entity_type, entity_id,
            changes=changes, meta=meta, ip=actor.ip_address, user_agent=actor.user_agent,
        )

    def history(self, entity_type: str, entity_id: Any) -> List[AuditLog]:
        """Entries for one entity, oldest first"""
        db = self.session_factory()
        try:
            return db.query(AuditLog).filter(
                AuditLog.entity_type == entity_type,
                AuditLog.entity_id == str(entity_id),
            ).order_by(AuditLog.created_at.asc()).all()
        finally:
            db.close()


def list_audit_logs(
    db: Session,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    action: Optional[str] = None,
    actor_id: Optional[str] = None,
    limit: int = 100,
) -> List[AuditLog]:
    """Most recent audit entries matching the filters"""
    query = db.query(AuditLog)
    if entity_type:
        query = query.filter(AuditLog.entity_type == entity_type)
    if entity_id:
        query = query.filter(AuditLog.entity_id == entity_id)
    if action:
        query = query.filter(AuditLog.action == action)
    if actor_id:
        query = query.filter(AuditLog.actor_id == actor_id)
    return query.order_by(AuditLog.created_at.desc()).limit(limit).all()
