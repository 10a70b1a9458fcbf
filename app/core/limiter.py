"""
Shared rate limiter. Gateway follow-ups are expensive, so route limits are tight.

Route limits come from RateLimitConfig and are read per request, so they
follow the loaded configuration; before configuration is loaded the
RateLimitConfig defaults apply.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import RateLimitConfig, get_config
from app.core.exceptions import ConfigurationError

limiter = Limiter(key_func=get_remote_address, default_limits=["60 per minute"])


def configured_limit(setting: str):
    """Limit provider for @limiter.limit, e.g. configured_limit("follow_up_rate_limit")."""

    def _limit() -> str:
        try:
            rate_limit = get_config().rate_limit
        except ConfigurationError:
            rate_limit = RateLimitConfig()
        return getattr(rate_limit, setting)

    return _limit
