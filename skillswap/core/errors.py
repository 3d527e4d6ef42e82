"""
Domain errors and their HTTP translation.

Services raise the exceptions below; the handlers registered by
``register_exception_handlers`` turn them into the JSON envelope
``{"success": false, "message": ...}``.  None of these errors is retried.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)


class SkillSwapError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Request failed"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFound(SkillSwapError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class Forbidden(SkillSwapError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Permission denied"


class InvalidArgument(SkillSwapError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid argument"


class Conflict(SkillSwapError):
    # the public API only speaks 400/401/403/404/500
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Conflict"


class InternalError(SkillSwapError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"


def error_body(message: str, **extra) -> dict:
    return {"success": False, "message": message, **extra}


async def skillswap_error_handler(request: Request, exc: SkillSwapError):
    if isinstance(exc, InternalError):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message))


async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(part) for part in err["loc"] if part != "body"),
            "message": err["msg"],
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body("Validation failed", errors=errors),
    )


async def http_error_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Store failure on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(InternalError.default_message),
    )


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(SkillSwapError, skillswap_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(HTTPException, http_error_handler)
    app.add_exception_handler(SQLAlchemyError, store_error_handler)
