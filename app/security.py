"""
API key authentication for the admin and monitoring endpoints.

Keys are read from the environment on every request so they can be rotated
without a restart. Missing configuration denies access (fail-closed).
"""

import hmac
import os
from fastapi import Header
from app.core.exceptions import SecurityError
import logging

logger = logging.getLogger(__name__)


def _check_key(provided: str, env_var: str, security_context: str) -> bool:
    expected = os.getenv(env_var)

    if not expected:
        logger.error(f"{env_var} is not configured; denying request")
        raise SecurityError("Access not configured", security_context)

    if not provided:
        logger.warning(f"Missing API key header ({security_context})")
        raise SecurityError("Missing API key header", security_context)

    # Constant-time comparison to prevent timing attacks
    if not hmac.compare_digest(provided.encode(), expected.encode()):
        logger.warning(f"Invalid API key ({security_context})")
        raise SecurityError("Invalid API key", security_context)

    return True


async def verify_admin_access(x_api_key: str = Header(None)):
    """Protects endpoints that trigger gateway queries and change orders."""
    return _check_key(x_api_key, "ADMIN_API_KEY", "admin_authentication")


async def verify_monitoring_access(x_monitoring_key: str = Header(None)):
    """Protects internal monitoring endpoints."""
    return _check_key(x_monitoring_key, "MONITORING_API_KEY", "monitoring_authentication")
