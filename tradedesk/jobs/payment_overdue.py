"""
Overdue Payment Scheduler - periodically flags invoiced orders unpaid past their terms
"""
import logging
from datetime import datetime
from typing import Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import Session

from tradedesk.core.config import settings
from tradedesk.core.database import SessionLocal
from tradedesk.services import Actor, AuditTrail, PaymentService

logger = logging.getLogger(__name__)

JOB_ACTOR = Actor(actor_id="job:payment_overdue", role="system")

_scheduler = None


def run_overdue_check(
    session_factory: Callable[[], Session] = SessionLocal,
    as_of: Optional[datetime] = None,
) -> int:
    """One pass of the overdue check; returns how many orders were flagged"""
    db = session_factory()
    try:
        service = PaymentService(db, AuditTrail(session_factory))
        return len(service.mark_overdue(as_of=as_of, actor=JOB_ACTOR))
    except Exception as e:
        db.rollback()
        logger.error(f"Overdue payment check failed: {e}")
        return 0
    finally:
        db.close()


class OverduePaymentScheduler:
    """
    Runs the overdue payment check every OVERDUE_CHECK_MINUTES
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.scheduler = AsyncIOScheduler()
        self.session_factory = session_factory
        self.is_running = False

    def start(self):
        """Start the scheduler"""
        if self.is_running:
            return
        self.scheduler.add_job(
            func=run_overdue_check,
            args=[self.session_factory],
            trigger=IntervalTrigger(minutes=settings.OVERDUE_CHECK_MINUTES),
            id="payment_overdue",
            name="Mark overdue payments",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        self.is_running = True
        logger.info(f"Overdue payment scheduler started (every {settings.OVERDUE_CHECK_MINUTES} minutes)")

    def stop(self):
        """Stop the scheduler"""
        if self.is_running:
            self.scheduler.shutdown(wait=False)
            self.is_running = False
            logger.info("Overdue payment scheduler stopped")


def get_scheduler() -> OverduePaymentScheduler:
    global _scheduler
    if _scheduler is None:
        _scheduler = OverduePaymentScheduler()
    return _scheduler


def start_scheduler():
    """Start the global scheduler"""
    get_scheduler().start()


def stop_scheduler():
    """Stop the global scheduler"""
    global _scheduler
    if _scheduler:
        _scheduler.stop()
        _scheduler = None
