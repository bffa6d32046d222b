"""
API error handling - every failure leaves as the JSON error envelope
"""
import logging
import uuid
from decimal import Decimal
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from tradedesk.core.exceptions import InternalError, TradeDeskError, ValidationError

logger = logging.getLogger(__name__)


def ok(data: Any = None, **extra) -> dict:
    """Success envelope; Decimals leave as strings"""
    body = {"success": True, "data": data}
    body.update(extra)
    return jsonable_encoder(body, custom_encoder={Decimal: str})


async def tradedesk_error_handler(request: Request, exc: TradeDeskError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} -> {exc.code}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.as_dict()))


def validation_details(errors) -> dict:
    """pydantic error list -> [{field, message}]"""
    return {"errors": [
        {"field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"), "message": err.get("msg")}
        for err in errors
    ]}


async def request_validation_handler(request: Request, exc: RequestValidationError):
    error = ValidationError("Request validation failed", details=validation_details(exc.errors()))
    return JSONResponse(status_code=error.status_code, content=jsonable_encoder(error.as_dict()))


async def unhandled_error_handler(request: Request, exc: Exception):
    correlation_id = uuid.uuid4().hex[:12]
    logger.exception(f"Unhandled error [{correlation_id}] {request.method} {request.url.path}: {exc}")
    error = InternalError()
    body = error.as_dict()
    body["correlation_id"] = correlation_id
    return JSONResponse(status_code=error.status_code, content=body)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TradeDeskError, tradedesk_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
