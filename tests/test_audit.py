"""
Audit trail: best-effort writes, append-only entries, querying
"""
import logging
from decimal import Decimal
from uuid import uuid4

import pytest

from tradedesk.core.exceptions import InvalidOperation
from tradedesk.models import AuditLog
from tradedesk.services import AuditTrail, InventoryService, OrderService, list_audit_logs


def broken_session_factory():
    raise RuntimeError("audit database unavailable")


class TestRecord:
    def test_record_and_history(self, audit):
        entity_id = uuid4()
        audit.record("u1", "create_order", "order", entity_id, changes={"total": Decimal("1.50")})
        audit.record("u2", "update_order", "order", entity_id, meta={"note": "x"}, ip="10.1.1.1",
                     user_agent="curl/8")

        history = audit.history("order", entity_id)

        assert [h.action for h in history] == ["create_order", "update_order"]
        assert history[0].changes == {"total": "1.50"}
        assert history[1].actor_id == "u2"
        assert history[1].ip_address == "10.1.1.1"
        assert history[1].user_agent == "curl/8"

    def test_failures_are_swallowed_and_logged(self, caplog):
        trail = AuditTrail(broken_session_factory)

        with caplog.at_level(logging.ERROR, logger="tradedesk.services.audit_service"):
            trail.record("u1", "create_order", "order", uuid4())

        assert "Audit log write failed" in caplog.text

    def test_failing_audit_does_not_undo_business_write(self, db, stock, warehouse):
        service = InventoryService(db, AuditTrail(broken_session_factory))

        record = service.adjust(stock.sku_id, warehouse.id, 5, "Recount")

        db.refresh(record)
        assert record.qty_available == 105

    def test_failing_audit_does_not_fail_order_create(self, db, buyer, sku):
        from tradedesk.schemas import OrderCreate
        service = OrderService(db, AuditTrail(broken_session_factory))

        order = service.create_order(OrderCreate(buyer_id=buyer.id, items=[{"sku_id": sku.id, "quantity": 1}]))

        assert order.id is not None
        assert db.query(AuditLog).count() == 0


class TestImmutability:
    def test_entries_cannot_be_updated(self, db, audit):
        audit.record("u1", "create_sku", "sku", uuid4())
        entry = db.query(AuditLog).one()

        entry.action = "tampered"
        with pytest.raises(InvalidOperation):
            db.commit()
        db.rollback()

    def test_entries_cannot_be_deleted(self, db, audit):
        audit.record("u1", "create_sku", "sku", uuid4())
        entry = db.query(AuditLog).one()

        db.delete(entry)
        with pytest.raises(InvalidOperation):
            db.commit()
        db.rollback()
        assert db.query(AuditLog).count() == 1


class TestQuery:
    def test_filters(self, db, audit):
        audit.record("alice", "create_order", "order", "o-1")
        audit.record("bob", "update_order", "order", "o-1")
        audit.record("alice", "create_sku", "sku", "s-1")

        assert len(list_audit_logs(db, entity_type="order")) == 2
        assert len(list_audit_logs(db, actor_id="alice")) == 2
        assert [e.action for e in list_audit_logs(db, entity_id="o-1", action="update_order")] == ["update_order"]
        assert len(list_audit_logs(db, limit=1)) == 1
