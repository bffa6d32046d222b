"""
Exceptions for TradeDesk.

Every service error is a TradeDeskError with a structured code, an HTTP
status for the API layer and optional details for programmatic handling.

Usage:
    try:
        OrderService(db, audit).delete_order(order_id)
    except Conflict as e:
        print(e.code, e.message)
"""
from decimal import Decimal
from typing import Any, Dict, Optional


class TradeDeskError(Exception):
    """Base error for all TradeDesk operations"""

    status_code = 500
    default_code = "INTERNAL_ERROR"
    default_message = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(self.message)

    def as_dict(self) -> Dict[str, Any]:
        """Serialize to the API error envelope"""
        body: Dict[str, Any] = {"success": False, "error": self.message, "code": self.code}
        if self.details:
            body["details"] = {
                k: str(v) if isinstance(v, Decimal) else v
                for k, v in self.details.items()
            }
        return body


class ValidationError(TradeDeskError):
    """Malformed or missing input"""
    status_code = 400
    default_code = "VALIDATION_ERROR"
    default_message = "Validation failed"


class NotFound(TradeDeskError):
    """Referenced entity does not exist"""
    status_code = 404
    default_code = "NOT_FOUND"
    default_message = "Not found"


class Conflict(TradeDeskError):
    """Invariant violation: duplicate key, illegal delete, illegal transition"""
    status_code = 409
    default_code = "CONFLICT"
    default_message = "Conflict"


class InvalidOperation(Conflict):
    """Operation would break a ledger invariant (e.g. negative stock)"""
    status_code = 400
    default_code = "INVALID_OPERATION"
    default_message = "Invalid operation"


class Forbidden(TradeDeskError):
    """Access-scope violation"""
    status_code = 403
    default_code = "FORBIDDEN"
    default_message = "Access denied"


class Unauthorized(TradeDeskError):
    """Request could not be authenticated (e.g. bad webhook signature)"""
    status_code = 401
    default_code = "UNAUTHORIZED"
    default_message = "Invalid signature"


class InternalError(TradeDeskError):
    """Unexpected failure"""
