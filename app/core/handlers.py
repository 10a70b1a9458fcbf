"""
Exception handler for the FastAPI application.

A single handler renders every BaseAppError subclass: status code from
`http_status_code`, body from `to_safe_dict()`, full details to the log.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from app.core.exceptions import BaseAppError
import logging

logger = logging.getLogger(__name__)


async def app_exception_handler(request: Request, exc: BaseAppError) -> JSONResponse:
    level = logging.ERROR if exc.http_status_code >= 500 else logging.WARNING
    logger.log(
        level,
        f"[{exc.__class__.__name__}] {request.method} {request.url.path}: {exc.message}",
        extra={"error_details": exc.to_dict()},
    )

    return JSONResponse(
        status_code=exc.http_status_code,
        content=exc.to_safe_dict(),
    )


def setup_exception_handlers(app: FastAPI):
    app.add_exception_handler(BaseAppError, app_exception_handler)
