"""
Application Errors

Every failure the service layer reports is an AppError with a structured
code. The API turns it into {"error": {"code", "message", "details"}}.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

# Codes that mean "log the user out" on the client side
AUTH_ERROR_CODES = {
    "SESSION_INVALID",
    "UNAUTHORIZED",
    "AUTH_HEADER_MISSING",
    "REFRESH_TOKEN_MISSING",
}


class AppError(Exception):
    """
    Structured exception for all business rule failures.

    Usage:
        try:
            StockService.create_stock_movement(db, product_id, 5, "OUT")
        except AppError as e:
            if e.code == "INSUFFICIENT_STOCK":
                ...

    Attributes:
        code: Error code for programmatic handling
        message: Human-readable message
        details: Field map for VALIDATION_ERROR, free-form otherwise
        status: HTTP status used when returned by the API
    """

    _default_messages = {
        # Generic
        "VALIDATION_ERROR": "Some fields contain invalid values.",
        "NOT_FOUND": "Requested data was not found.",
        "ALREADY_EXISTS": "This record already exists.",
        "FETCH_FAILED": "Failed to load data.",
        "SAVE_FAILED": "Failed to save changes.",
        "DELETE_FAILED": "Failed to delete item.",
        "INTERNAL_ERROR": "An internal system error occurred.",
        "UNKNOWN_ERROR": "An unexpected error occurred.",
        "NETWORK_ERROR": "Network connection failed.",
        # Entities
        "PRODUCT_NOT_FOUND": "Product not found.",
        "CUSTOMER_NOT_FOUND": "Customer not found.",
        "ORDER_NOT_FOUND": "Order not found.",
        "DELIVERY_NOT_FOUND": "Delivery not found.",
        "STOCK_MOVEMENT_NOT_FOUND": "Stock movement not found.",
        "ORDER_ITEM_NOT_FOUND": "Order item not found.",
        # Stock
        "INSUFFICIENT_STOCK": "Insufficient stock available.",
        "INVALID_REFERENCE": "Reference type and reference id must be set together.",
        "RESTRICTED_STOCK_MOVEMENT": "This stock movement cannot be edited.",
        "PRODUCT_HAS_STOCK": "Product has stock.",
        # Orders & deliveries
        "DUPLICATE_ORDER_ITEM": "The same order item appears more than once.",
        "INVALID_DELIVERY_QUANTITY": "Delivered quantity must be positive.",
        "ORDER_LOCKED": "This order can no longer be modified.",
        # Currency
        "CURRENCY_RATE_NOT_FOUND": "Conversion rate not found.",
        "CURRENCY_RATE_FETCH_FAILED": "Could not fetch exchange rates.",
        # Auth
        "INVALID_CREDENTIALS": "Invalid username or password.",
        "USERNAME_EXISTS": "Username already exists.",
        "ACCOUNT_LOCKED": "Your account is temporarily locked due to too many failed attempts.",
        "RATE_LIMIT_EXCEEDED": "Too many login attempts. Please try again later.",
        "SESSION_INVALID": "Your session has expired.",
        "UNAUTHORIZED": "You are not authorized to perform this action.",
        "AUTH_HEADER_MISSING": "Authorization header is missing.",
        "FORBIDDEN": "You do not have permission to access this resource.",
    }

    _status_codes = {
        "VALIDATION_ERROR": 400,
        "INVALID_REFERENCE": 400,
        "INVALID_DELIVERY_QUANTITY": 400,
        "DUPLICATE_ORDER_ITEM": 400,
        "INSUFFICIENT_STOCK": 409,
        "RESTRICTED_STOCK_MOVEMENT": 409,
        "PRODUCT_HAS_STOCK": 409,
        "ALREADY_EXISTS": 409,
        "USERNAME_EXISTS": 409,
        "ORDER_LOCKED": 409,
        "INVALID_CREDENTIALS": 401,
        "SESSION_INVALID": 401,
        "UNAUTHORIZED": 401,
        "AUTH_HEADER_MISSING": 401,
        "FORBIDDEN": 403,
        "ACCOUNT_LOCKED": 429,
        "RATE_LIMIT_EXCEEDED": 429,
        "CURRENCY_RATE_FETCH_FAILED": 502,
    }

    def __init__(
        self,
        code: str,
        message: Optional[str] = None,
        details: Any = None,
        status: Optional[int] = None,
    ):
        self.code = code
        self.message = message or self._default_messages.get(code, self._default_messages["UNKNOWN_ERROR"])
        self.details = details
        self.status = status or self.status_for(code)
        super().__init__(self.message)

    @classmethod
    def status_for(cls, code: str) -> int:
        if code in cls._status_codes:
            return cls._status_codes[code]
        if code.endswith("NOT_FOUND"):
            return 404
        return 500

    @classmethod
    def validation(cls, **fields: str) -> "AppError":
        """VALIDATION_ERROR carrying a field -> reason map"""
        return cls("VALIDATION_ERROR", details=dict(fields))

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], status: Optional[int] = None) -> "AppError":
        """Rebuild an AppError from an API error body"""
        error = payload.get("error") if isinstance(payload, dict) else None
        if not isinstance(error, dict) or "code" not in error:
            return cls("UNKNOWN_ERROR", status=status)
        return cls(
            error["code"],
            message=error.get("message"),
            details=error.get("details"),
            status=status,
        )

    @property
    def field_errors(self) -> Dict[str, str]:
        if self.code == "VALIDATION_ERROR" and isinstance(self.details, dict):
            return {str(k): str(v) for k, v in self.details.items()}
        return {}

    @property
    def is_auth_error(self) -> bool:
        return self.code in AUTH_ERROR_CODES

    def as_dict(self) -> Dict[str, Any]:
        """Serialize to dict (useful for APIs)."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"AppError({self.code!r}, status={self.status})"


def _field_name(loc) -> str:
    # ("body", "quantity") -> "quantity", ("query", "page_size") -> "page_size"
    parts = [str(p) for p in loc if p not in ("body", "query", "path", "header")]
    return ".".join(parts) or "request"


def validation_details(errors) -> Dict[str, str]:
    details = {}
    for err in errors:
        field = _field_name(err.get("loc", ()))
        # First reason wins per field
        details.setdefault(field, err.get("msg", "invalid"))
    return details


def register_exception_handlers(app: FastAPI) -> None:
    """Install JSON handlers for AppError, request validation and crashes"""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.code} {exc.message}")
        else:
            logger.warning(f"{request.method} {request.url.path} rejected: {exc.code}")
        return JSONResponse(status_code=exc.status, content={"error": exc.as_dict()})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        error = AppError("VALIDATION_ERROR", details=validation_details(exc.errors()))
        return JSONResponse(status_code=error.status, content={"error": error.as_dict()})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        error = AppError("INTERNAL_ERROR")
        return JSONResponse(status_code=error.status, content={"error": error.as_dict()})
