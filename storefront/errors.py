"""Error kinds raised by the storefront core and their HTTP mapping.

Repository and codec code raises these; the FastAPI app converts every one of
them into the ``{success, message, error}`` envelope via the handlers
registered in :func:`register_exception_handlers`.
"""
import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class StorefrontError(Exception):
    status_code = 500
    message = "Something went wrong"

    def __init__(self, detail: Any = None, message: Optional[str] = None):
        super().__init__(detail if detail is not None else (message or self.message))
        self.detail = detail
        if message is not None:
            self.message = message


class ValidationError(StorefrontError):
    status_code = 400
    message = "Invalid input"

    def __init__(self, field: str, message: Optional[str] = None):
        super().__init__(detail={"field": field}, message=message or f"{field} is required")
        self.field = field


class ConflictError(StorefrontError):
    status_code = 409
    message = "Already exists"


class NotFoundError(StorefrontError):
    status_code = 404
    message = "Not found"


class InvalidToken(StorefrontError):
    status_code = 401
    message = "Unauthorized Access"


class InvalidCredentials(StorefrontError):
    status_code = 401
    message = "Invalid email or password"


class UnauthorizedRole(StorefrontError):
    status_code = 401
    message = "Unauthorized Access"


class CodecError(StorefrontError):
    status_code = 500
    message = "Credential processing failed"


class CollaboratorError(StorefrontError):
    status_code = 502
    message = "Upstream service failed"


def envelope(success: bool, message: str, data: Any = None, error: Any = None) -> dict:
    body = {"success": success, "message": message}
    if data is not None:
        body["data"] = data
    if error is not None:
        body["error"] = error
    return body


async def storefront_error_handler(request: Request, exc: StorefrontError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.warning("%s %s rejected (%s): %s", request.method, request.url.path, exc.status_code, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content=envelope(False, exc.message, error=exc.detail if exc.detail is not None else str(exc)),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path", "form")]
    field = ".".join(loc) or "body"
    return JSONResponse(
        status_code=400,
        content=envelope(False, f"{field}: {first.get('msg', 'invalid value')}", error={"field": field}),
    )


async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=envelope(False, "Something went wrong", error=str(exc)))


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(StorefrontError, storefront_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
