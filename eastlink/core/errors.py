# eastlink/core/errors.py
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from eastlink.core.config import settings

logger = logging.getLogger("eastlink.errors")


class MarketError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BadRequest(MarketError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(MarketError):
    status_code = status.HTTP_404_NOT_FOUND


class Forbidden(MarketError):
    status_code = status.HTTP_403_FORBIDDEN


class Conflict(MarketError):
    status_code = status.HTTP_409_CONFLICT


class InvalidTransition(MarketError):
    status_code = status.HTTP_400_BAD_REQUEST


class InsufficientStock(MarketError):
    status_code = status.HTTP_400_BAD_REQUEST


def error_body(message: str, **extra) -> dict:
    body = {"success": False, "message": message}
    body.update(extra)
    return body


def _field_name(loc) -> str:
    # drop the "body"/"query"/"path" prefix pydantic puts on request errors
    parts = [str(p) for p in loc if p not in ("body", "query", "path")]
    return ".".join(parts)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": _field_name(err.get("loc", ())), "message": err.get("msg", "Invalid value")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body("Validation failed", errors=errors),
    )


async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def market_error_handler(request: Request, exc: MarketError):
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message))


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    extra = {"error": str(exc)} if settings.is_development else {}
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("Internal server error", **extra),
    )


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(MarketError, market_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
