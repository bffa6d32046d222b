"""
Integration Service - inbound carrier/payment webhook journal and signature checks

Every callback is journaled before it is interpreted, so a payload that later
fails validation or processing can still be inspected and replayed.
"""
import hashlib
import hmac
import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from tradedesk.models import WebhookLog

logger = logging.getLogger(__name__)

# Outcomes written to WebhookLog.process_result
CREATED = "CREATED"
UPDATED = "UPDATED"
SKIPPED = "SKIPPED"
FAILED = "FAILED"
REJECTED = "REJECTED"

# Credentials never land in the journal
REDACTED_HEADERS = {"authorization", "cookie", "proxy-authorization"}


def sign_payload(secret: str, payload: bytes) -> str:
    """Hex HMAC-SHA256 of the raw request body"""
    return hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()


def verify_signature(secret: str, payload: bytes, signature: Optional[str]) -> bool:
    """
    Check an ``X-Signature`` header against the raw body.
    An empty secret disables verification.
    """
    if not secret:
        return True
    if not signature:
        return False
    if signature.startswith("sha256="):
        signature = signature[len("sha256="):]
    return hmac.compare_digest(sign_payload(secret, payload), signature.strip().lower())


def redact_headers(headers: Optional[Dict[str, str]]) -> Optional[Dict[str, str]]:
    if headers is None:
        return None
    return {k: ("***" if k.lower() in REDACTED_HEADERS else v) for k, v in headers.items()}


def log_webhook(
    db: Session,
    source: str,
    payload: dict,
    event_type: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
    signature: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> WebhookLog:
    """Journal a callback as received, before any validation"""
    entry = WebhookLog(
        source=source,
        event_type=(event_type or "")[:50] or None,
        payload=payload,
        headers=redact_headers(headers),
        signature=(signature or "")[:500] or None,
        ip_address=ip_address,
        processed=False,
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    logger.debug(f"Webhook {entry.id} received from {source} ({entry.event_type})")
    return entry


def mark_webhook_processed(
    db: Session,
    log_id,
    result: str,
    error: Optional[str] = None,
) -> Optional[WebhookLog]:
    """Record the outcome; returns None if the journal entry is gone"""
    entry = db.get(WebhookLog, log_id)
    if entry is None:
        logger.warning(f"Webhook log {log_id} not found, outcome {result} not recorded")
        return None

    entry.mark_processed(result, error)
    db.commit()
    if result == FAILED:
        logger.warning(f"{entry.source} webhook {entry.id} failed: {error}")
    return entry


def get_unprocessed_webhooks(
    db: Session,
    source: Optional[str] = None,
    limit: int = 100,
) -> List[WebhookLog]:
    """Callbacks journaled but never given an outcome (e.g. the process died mid-request)"""
    query = db.query(WebhookLog).filter(WebhookLog.processed.is_(False))
    if source:
        query = query.filter(WebhookLog.source == source)
    return query.order_by(WebhookLog.received_at.asc()).limit(limit).all()
