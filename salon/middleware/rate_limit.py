"""
Rate limiting

slowapi limiter keyed by client address. Exceeded limits surface as
RateLimitExceeded and are rendered by the handler in
salon.exception_handlers.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from salon.config import get_settings

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["200/hour"],
    storage_uri="memory://",
    headers_enabled=False,
)


def two_factor_send_limit() -> str:
    return get_settings().two_factor_send_rate_limit


def configure_rate_limiting(app):
    """
    Attach the limiter to the FastAPI application.

    Args:
        app: FastAPI application instance
    """
    app.state.limiter = limiter
