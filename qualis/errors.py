import logging

from botocore.exceptions import BotoCoreError, ClientError
from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError, OperationalError

logger = logging.getLogger(__name__)


def _error_payload(code: str, message: str, details):
    return {"code": code, "message": message, "details": details}


def register_error_handlers(app) -> None:
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        detail = exc.detail
        code = f"http_{exc.status_code}"
        message = "Request failed"
        details = None
        if isinstance(detail, dict):
            code = detail.get("code", code)
            message = detail.get("message", message)
            details = detail.get("details")
        elif isinstance(detail, str):
            message = detail
        else:
            details = detail
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_payload(code, message, details),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        # exc.errors() ctx may contain raw Exception objects (not JSON-serialisable).
        errors = [
            {k: str(v) if k == "ctx" else v for k, v in err.items()}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=422,
            content=_error_payload("validation_error", "Validation error", errors),
        )

    @app.exception_handler(OperationalError)
    @app.exception_handler(DBAPIError)
    async def database_exception_handler(request: Request, exc: DBAPIError):
        logger.error("Database unavailable on %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=503,
            content=_error_payload(
                "backend_unavailable",
                "The data store is temporarily unavailable",
                {"retryable": True},
            ),
        )

    @app.exception_handler(ClientError)
    @app.exception_handler(BotoCoreError)
    async def storage_exception_handler(request: Request, exc: Exception):
        logger.error("Storage failure on %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=502,
            content=_error_payload(
                "storage_unavailable",
                "Document storage request failed",
                {"retryable": True},
            ),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s", request.url.path)
        return JSONResponse(
            status_code=500,
            content=_error_payload("internal_error", "Internal server error", None),
        )
