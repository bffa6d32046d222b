"""
Webhook API Endpoints - Receive carrier tracking and payment gateway callbacks
"""
import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import ValidationError as PayloadError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from tradedesk.core import get_db, settings
from tradedesk.core.exceptions import TradeDeskError, Unauthorized, ValidationError
from tradedesk.schemas import CarrierWebhook, PaymentWebhook, WebhookLogResponse
from tradedesk.services import Actor, PaymentService, ShipmentService, integration_service
from .deps import get_actor, get_payment_service, get_shipment_service, require_staff
from .errors import ok, validation_details

logger = logging.getLogger(__name__)

webhook_router = APIRouter(prefix="/webhooks", tags=["webhooks"])

SIGNATURE_HEADER = "X-Signature"


def _webhook_actor(source: str, request: Request) -> Actor:
    return Actor(
        actor_id=f"webhook:{source}",
        role="system",
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


async def _receive(request: Request, db: Session, source: str, secret: str, event_key: str):
    """Parse, log and authenticate an inbound webhook; returns (payload, log)"""
    body = await request.body()
    try:
        payload = json.loads(body or b"{}")
    except ValueError as e:
        raise ValidationError("Invalid JSON payload") from e
    if not isinstance(payload, dict):
        raise ValidationError("Webhook payload must be a JSON object")

    signature = request.headers.get(SIGNATURE_HEADER)
    webhook_log = await run_in_threadpool(
        integration_service.log_webhook,
        db=db,
        source=source,
        event_type=str(payload.get(event_key) or ""),
        payload=payload,
        headers=dict(request.headers),
        signature=signature,
        ip_address=request.client.host if request.client else None,
    )

    if not integration_service.verify_signature(secret, body, signature):
        logger.warning(f"{source} webhook rejected: bad signature from {webhook_log.ip_address}")
        await run_in_threadpool(
            integration_service.mark_webhook_processed, db, webhook_log.id,
            integration_service.REJECTED, "Invalid signature",
        )
        raise Unauthorized("Invalid webhook signature")

    return payload, webhook_log


async def _fail(db: Session, webhook_log, error: Exception):
    await run_in_threadpool(db.rollback)
    await run_in_threadpool(
        integration_service.mark_webhook_processed, db, webhook_log.id, integration_service.FAILED, str(error)
    )

# ========== Carrier Webhook ==========

@webhook_router.post("/carrier")
async def carrier_webhook(
    request: Request,
    db: Session = Depends(get_db),
    service: ShipmentService = Depends(get_shipment_service),
):
    """
    Carrier tracking event
    Body: trackingNumber, status, location, timestamp, carrier
    """
    payload, webhook_log = await _receive(request, db, "carrier", settings.CARRIER_WEBHOOK_SECRET, "status")

    try:
        event = CarrierWebhook.model_validate(payload)
    except PayloadError as e:
        error = ValidationError("Invalid carrier payload", details=validation_details(e.errors()))
        await _fail(db, webhook_log, error)
        raise error from e

    try:
        shipment, changed = await run_in_threadpool(
            service.apply_carrier_update, event, _webhook_actor("carrier", request)
        )
    except TradeDeskError as e:
        await _fail(db, webhook_log, e)
        raise

    result = integration_service.UPDATED if changed else integration_service.SKIPPED
    await run_in_threadpool(integration_service.mark_webhook_processed, db, webhook_log.id, result)
    logger.info(f"Carrier webhook processed: {event.tracking_number} {event.status} -> {result}")

    return ok({
        "shipment_id": str(shipment.id),
        "shipment_no": shipment.shipment_no,
        "status": shipment.status,
        "result": result,
    })

# ========== Payment Webhook ==========

@webhook_router.post("/payment")
async def payment_webhook(
    request: Request,
    db: Session = Depends(get_db),
    service: PaymentService = Depends(get_payment_service),
):
    """
    Payment gateway callback
    Body: orderId, transactionId, status, amount, gateway
    """
    payload, webhook_log = await _receive(request, db, "payment", settings.PAYMENT_WEBHOOK_SECRET, "status")

    try:
        event = PaymentWebhook.model_validate(payload)
    except PayloadError as e:
        error = ValidationError("Invalid payment payload", details=validation_details(e.errors()))
        await _fail(db, webhook_log, error)
        raise error from e

    try:
        result = await run_in_threadpool(
            service.apply_payment_webhook, event, _webhook_actor("payment", request)
        )
    except TradeDeskError as e:
        await _fail(db, webhook_log, e)
        raise

    await run_in_threadpool(integration_service.mark_webhook_processed, db, webhook_log.id, result)
    logger.info(f"Payment webhook processed: order={event.order_id} txn={event.transaction_id} -> {result}")

    return ok({"order_id": str(event.order_id), "transaction_id": event.transaction_id, "result": result})

# ========== Webhook Log ==========

@webhook_router.get("/unprocessed")
def unprocessed_webhooks(
    source: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """Webhooks received but never marked processed, oldest first"""
    require_staff(actor)
    logs = integration_service.get_unprocessed_webhooks(db, source, limit)
    return ok([WebhookLogResponse.model_validate(log).model_dump(mode="json") for log in logs])
