from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .logging import setup_logger

logger = setup_logger("errors")

class MarketplaceError(Exception):
    """Base class for every error that maps onto a JSON error envelope."""

    status_code = 500

    def __init__(self, message: str, errors: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors

class ValidationError(MarketplaceError):
    status_code = 400

class AuthenticationError(MarketplaceError):
    status_code = 401

class AuthorizationError(MarketplaceError):
    status_code = 403

class NotFoundError(MarketplaceError):
    status_code = 404

class ConflictError(MarketplaceError):
    status_code = 400

class StateError(MarketplaceError):
    status_code = 400

class StorageError(MarketplaceError):
    status_code = 500

def error_body(message: str, errors: Optional[Dict[str, Any]] = None, error: Optional[str] = None) -> dict:
    body = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    if error:
        body["error"] = error
    return body

async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, exc.errors, type(exc).__name__),
    )

async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = {}
    for err in exc.errors():
        # drop the "body"/"query" prefix so keys read like field names
        loc = [str(part) for part in err["loc"][1:]] or [str(part) for part in err["loc"]]
        errors[".".join(loc)] = err["msg"]
    return JSONResponse(
        status_code=400,
        content=error_body("Validation failed", errors, "ValidationError"),
    )

async def server_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content=error_body("Internal server error", error="ServerError"),
    )

def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MarketplaceError, marketplace_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, server_error_handler)
