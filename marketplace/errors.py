"""
Error taxonomy shared by the ledger, the commission calculator and the HTTP
layer, plus the FastAPI handlers that render it.
"""
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from marketplace.logging_config import get_logger

logger = get_logger(__name__)


class MarketplaceError(Exception):
    code = "error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidAmount(MarketplaceError):
    code = "invalid_amount"


class UnsupportedCurrency(MarketplaceError):
    code = "unsupported_currency"


class InvalidIntentId(MarketplaceError):
    code = "invalid_intent_id"


class UnknownCategory(MarketplaceError):
    code = "unknown_category"


class InvalidRequest(MarketplaceError):
    code = "invalid_request"


class PaymentFailed(MarketplaceError):
    code = "payment_failed"


class Unauthorized(MarketplaceError):
    code = "unauthorized"
    status_code = 401


class NotFound(MarketplaceError):
    code = "not_found"
    status_code = 404


class Conflict(MarketplaceError):
    code = "conflict"
    status_code = 409


class PaymentProcessorError(MarketplaceError):
    code = "processor_error"
    status_code = 502


def error_body(code: str, message: str) -> dict:
    return {"error": message, "code": code}


async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    logger.info("request_rejected", code=exc.code, status_code=exc.status_code)
    return JSONResponse(
        status_code=exc.status_code, content=error_body(exc.code, exc.message)
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else first.get("msg")
    else:
        message = "Invalid request"
    return JSONResponse(
        status_code=400, content=error_body(InvalidRequest.code, message)
    )


HTTP_ERROR_CODES = {
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
}


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    code = HTTP_ERROR_CODES.get(exc.status_code, "http_error")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(code, str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("unhandled_error", exc_info=exc)
    return JSONResponse(
        status_code=500, content=error_body("internal_error", "Internal server error")
    )


def register_error_handlers(app):
    app.add_exception_handler(MarketplaceError, marketplace_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
