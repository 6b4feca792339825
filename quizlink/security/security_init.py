"""
Security initialization module.

This module initializes all security features for the Flask application.
"""

from flask import Flask

from .rate_limiter import RateLimiter
from .security_headers import SecurityHeaders


def init_security(app: Flask):
    """
    Initialize all security features for the Flask app.

    Args:
        app: Flask application instance
    """
    SecurityHeaders.init_app(app)
    RateLimiter.init_app(app)

    app.logger.info(
        f"Security features initialized (taker rate limit "
        f"{app.config.get('RATE_LIMIT_TAKER_REQUESTS')}/"
        f"{app.config.get('RATE_LIMIT_TAKER_WINDOW_SECONDS')}s)"
    )
