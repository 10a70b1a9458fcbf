"""
Request/response logging middleware.

Every request gets an id (echoed in X-Request-ID). Query parameters and
headers are redacted before logging; bodies are never logged since follow-up
payloads can carry gateway credentials.
"""

import time
import logging
import uuid
from typing import Any, Callable, Set
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from app.core.config import get_config
from app.core.exceptions import ConfigurationError
from app.core.monitoring import error_monitor


SENSITIVE_KEYS: Set[str] = {
    "password", "passwd",
    "encryption_key", "secret", "secret_key",
    "token", "access_token", "api_key", "apikey", "key",
    "authorization", "signature", "checksum",
}

SENSITIVE_HEADERS: Set[str] = {
    "authorization", "cookie", "set-cookie",
    "x-api-key", "x-monitoring-key",
}


def sanitize_value(data: Any, depth: int = 0) -> Any:
    """Recursively redact sensitive keys in dicts and lists."""
    if depth > 10:
        return "[DEPTH_LIMIT]"

    if isinstance(data, dict):
        return {
            key: "[REDACTED]" if str(key).lower() in SENSITIVE_KEYS else sanitize_value(value, depth + 1)
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [sanitize_value(item, depth + 1) for item in data]
    return data


def request_logging_enabled() -> bool:
    """LOG_REQUESTS from the loaded configuration; on until configuration is loaded."""
    try:
        return get_config().logging.log_requests
    except ConfigurationError:
        return True


def sanitize_headers(headers: dict) -> dict:
    return {
        k: ("[REDACTED]" if k.lower() in SENSITIVE_HEADERS else v)
        for k, v in headers.items()
    }


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs method, path, status and timing of each request."""

    def __init__(self, app, logger_name: str = "payhost.requests"):
        super().__init__(app)
        self.logger = logging.getLogger(logger_name)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not request_logging_enabled():
            return await call_next(request)

        start_time = time.time()
        request_id = f"req_{uuid.uuid4().hex[:12]}"
        request.state.request_id = request_id

        self.logger.info(
            f"[{request_id}] {request.method} {request.url.path} - Request started",
            extra={
                "request_id": request_id,
                "query_params": sanitize_value(dict(request.query_params)),
                "client_ip": request.client.host if request.client else "unknown",
            },
        )

        try:
            response = await call_next(request)
        except Exception as e:
            error_monitor.log_error(e, {
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "process_time": time.time() - start_time,
            })
            raise

        process_time = time.time() - start_time
        status_code = response.status_code
        level = logging.INFO if status_code < 400 else logging.WARNING if status_code < 500 else logging.ERROR
        self.logger.log(
            level,
            f"[{request_id}] {request.method} {request.url.path} - {status_code} - {process_time:.3f}s",
            extra={
                "request_id": request_id,
                "response_headers": sanitize_headers(dict(response.headers)),
            },
        )

        response.headers["X-Request-ID"] = request_id
        return response
