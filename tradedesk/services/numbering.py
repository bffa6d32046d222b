"""
Document numbering - PREFIX-YYYYMM-NNNN identifiers for orders, shipments, transactions
"""
import logging
import random
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tradedesk.core.config import settings
from tradedesk.core.exceptions import Conflict

logger = logging.getLogger(__name__)


def random_suffix() -> str:
    return f"{random.randint(0, 9999):04d}"


def generate_number(prefix: str, now: Optional[datetime] = None) -> str:
    """e.g. ORD-202610-0042"""
    now = now or datetime.now()
    return f"{prefix}-{now.strftime('%Y%m')}-{random_suffix()}"


def next_free_number(db: Session, column, prefix: str, attempts: Optional[int] = None) -> str:
    """Generate a number not yet present in ``column``; collisions regenerate"""
    attempts = attempts or settings.NUMBER_GENERATION_ATTEMPTS
    for _ in range(attempts):
        candidate = generate_number(prefix)
        exists = db.query(column).filter(column == candidate).first()
        if not exists:
            return candidate
        logger.debug(f"Number collision on {candidate}, regenerating")
    raise Conflict(f"Could not generate a unique {prefix} number", code="NUMBER_EXHAUSTED")


def commit_with_unique_number(
    db: Session,
    obj,
    attr: str,
    prefix: str,
    before_commit: Optional[Callable[[], None]] = None,
    attempts: Optional[int] = None,
):
    """
    Assign a fresh number to ``obj.<attr>`` and commit.

    The pre-check in next_free_number narrows the race; the unique constraint
    closes it. A unique violation at commit rolls back, re-adds the object
    graph and retries with a new number. ``before_commit`` re-applies any
    additional pending changes that belong to the same unit of work.
    """
    attempts = attempts or settings.NUMBER_GENERATION_ATTEMPTS
    column = getattr(type(obj), attr)
    preset = getattr(obj, attr, None)
    last_error: Optional[IntegrityError] = None

    for attempt in range(attempts):
        if preset and attempt == 0:
            if db.query(column).filter(column == preset).first():
                raise Conflict(f"{preset} already exists", code="DUPLICATE_NUMBER")
        else:
            setattr(obj, attr, next_free_number(db, column, prefix, attempts))
        db.add(obj)
        try:
            if before_commit:
                before_commit()
            db.commit()
            return obj
        except IntegrityError as e:
            db.rollback()
            last_error = e
            if preset and attempt == 0:
                raise Conflict(f"{preset} already exists", code="DUPLICATE_NUMBER") from e
            logger.warning(f"Unique violation committing {prefix} number {getattr(obj, attr)}, retrying")

    raise Conflict(f"Could not generate a unique {prefix} number", code="NUMBER_EXHAUSTED") from last_error
