import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import OperationalError

from app.escolastica.core.error_catalog import AppError, ErrorCatalog
from app.escolastica.core.metrics import metrics

logger = logging.getLogger(__name__)

_HTTP_STATUS_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
}


def _set_error_context(request: Request, code: str, exc: Exception | None = None) -> None:
    request.state.error_code = code
    if exc is not None:
        request.state.error_class = exc.__class__.__name__


def _is_lock_timeout(exc: Exception) -> bool:
    if isinstance(exc, OperationalError):
        message = str(exc).lower()
        return any(
            token in message
            for token in (
                "lock timeout",
                "deadlock detected",
                "database is locked",
                "could not obtain lock",
            )
        )
    return False


def _trace_id(request: Request) -> str:
    return getattr(request.state, "trace_id", "")


def _json_safe(value):
    if isinstance(value, dict):
        return {key: _json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def _validation_error_details(exc: RequestValidationError) -> dict:
    errors = []
    for error in exc.errors():
        loc = list(error.get("loc", []))
        field = ".".join(str(item) for item in loc if item not in {"body", "query", "path", "header"}) or None
        errors.append(
            {
                "field": field,
                "message": error.get("msg", "Invalid value"),
                "type": error.get("type", "validation_error"),
                "loc": loc,
                "input": _json_safe(error.get("input")),
            }
        )
    return {"errors": errors}


def error_response(code: str, message: str, details: object, trace_id: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "code": code,
            "message": message,
            "details": details,
            "trace_id": trace_id,
        },
    )


def _catalog_response(request: Request, definition, details: object, exc: Exception) -> JSONResponse:
    _set_error_context(request, definition.code, exc)
    return error_response(
        code=definition.code,
        message=definition.message,
        details=details,
        trace_id=_trace_id(request),
        status_code=definition.status_code,
    )


def setup_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        return _catalog_response(request, exc.error, _json_safe(exc.details), exc)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        code = _HTTP_STATUS_CODES.get(exc.status_code, "HTTP_ERROR")
        _set_error_context(request, code, exc)
        return error_response(
            code=code,
            message=str(exc.detail) if exc.detail is not None else "HTTP error",
            details=None,
            trace_id=_trace_id(request),
            status_code=exc.status_code,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return _catalog_response(request, ErrorCatalog.VALIDATION_ERROR, _validation_error_details(exc), exc)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        details = {"type": exc.__class__.__name__}
        if _is_lock_timeout(exc):
            metrics.increment_lock_wait_timeout()
            return _catalog_response(request, ErrorCatalog.LOCK_TIMEOUT, details, exc)
        logger.exception("Unhandled error", extra={"trace_id": _trace_id(request)})
        return _catalog_response(request, ErrorCatalog.INTERNAL_ERROR, details, exc)
