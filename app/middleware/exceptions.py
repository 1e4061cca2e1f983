from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from starlette.exceptions import HTTPException as StarletteHTTPException
from app.core.exceptions import LearningError
from app.schemas.response import ErrorResponse
import logging
import uuid

logger = logging.getLogger(__name__)

_GENERIC_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
    500: "INTERNAL_SERVER_ERROR",
}

def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())

def _respond(status_code: int, body: ErrorResponse, headers=None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)

async def validation_exception_handler(request: Request, exc: RequestValidationError):
    request_id = _request_id(request)
    logger.warning(f"[{request_id}] Validation error: {exc.errors()}")
    return _respond(422, ErrorResponse.build(
        code="VALIDATION_ERROR",
        message="Request validation failed",
        path=str(request.url),
        request_id=request_id,
        details={"validation_errors": jsonable_encoder(exc.errors())},
    ))

async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Learning rule rejections carry their own code and context; other HTTP errors map by status."""
    request_id = _request_id(request)
    if isinstance(exc, LearningError):
        code, details = exc.code, (exc.context or None)
    else:
        code, details = _GENERIC_CODES.get(exc.status_code, f"HTTP_{exc.status_code}"), None

    logger.warning(f"[{request_id}] {exc.status_code} {code}: {exc.detail}")
    return _respond(exc.status_code, ErrorResponse.build(
        code=code,
        message=exc.detail if isinstance(exc.detail, str) else str(exc.detail),
        path=str(request.url),
        request_id=request_id,
        details=details,
    ), headers=getattr(exc, "headers", None))

async def global_exception_handler(request: Request, exc: Exception):
    if isinstance(exc, HTTPException):
        return await http_exception_handler(request, exc)

    request_id = _request_id(request)
    logger.error(f"[{request_id}] Unhandled exception: {exc}", exc_info=True)
    return _respond(500, ErrorResponse.build(
        code="INTERNAL_SERVER_ERROR",
        message="An unexpected error occurred",
        path=str(request.url),
        request_id=request_id,
        details={"error_type": type(exc).__name__},
    ))
