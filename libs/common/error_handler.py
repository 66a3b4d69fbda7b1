"""Exception handlers rendering every failure as ``{"error": ...}``.

Usage:
    from libs.common.error_handler import add_exception_handlers

    app = FastAPI()
    add_exception_handlers(app)
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from libs.common.errors import CoachingError, ProviderError
from libs.common.logging import get_logger, get_request_id

logger = get_logger(__name__)


def error_response(status_code: int, message: str, **fields) -> JSONResponse:
    content = {"error": message, **{k: v for k, v in fields.items() if v is not None}}
    headers = {}
    request_id = get_request_id()
    if request_id:
        headers["X-Request-ID"] = request_id
    return JSONResponse(status_code=status_code, content=content, headers=headers)


async def coaching_error_handler(request: Request, exc: CoachingError) -> JSONResponse:
    extra = {"code": exc.code, "status_code": exc.status_code}
    if isinstance(exc, ProviderError):
        # Provider payloads stay in the logs.
        extra.update(
            provider=exc.provider,
            provider_status=exc.provider_status,
            response_data=exc.response_data,
        )
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(f"{type(exc).__name__}: {exc.message}", extra={"extra_fields": extra})
    return error_response(
        exc.status_code,
        exc.public_message,
        code=exc.code,
        field=getattr(exc, "field", None),
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    missing = [
        ".".join(str(part) for part in err["loc"] if part != "body")
        for err in errors
        if err.get("type") == "missing"
    ]
    if missing:
        message = f"Missing required fields: {', '.join(missing)}"
    elif errors:
        first = errors[0]
        location = ".".join(str(part) for part in first["loc"] if part != "body")
        message = f"Invalid value for {location}: {first['msg']}"
    else:
        message = "Invalid request body"
    logger.info(message, extra={"extra_fields": {"path": request.url.path}})
    return error_response(status.HTTP_400_BAD_REQUEST, message)


async def http_error_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled exception: {exc}",
        exc_info=exc,
        extra={"extra_fields": {"method": request.method, "path": request.url.path}},
    )
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error"
    )


def add_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CoachingError, coaching_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
