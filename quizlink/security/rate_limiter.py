"""
Rate limiting module.

Shareable links are the only thing standing between a quiz and the public,
so the taker endpoints are rate limited per client to slow down anyone trying
to enumerate them. Counts are kept in memory per application instance.
"""

import threading
import time
from collections import defaultdict
from functools import wraps

from flask import current_app, jsonify, make_response, request


class RateLimiter:
    """
    Rate limiter that tracks requests per IP address or user.

    Uses a sliding window algorithm to track requests within a time period.
    """

    def __init__(self):
        self._storage = defaultdict(list)
        self._lock = threading.Lock()
        self._cleanup_interval = 3600
        self._last_cleanup = time.time()

    def _cleanup_old_entries(self):
        """Remove identifiers whose timestamps are all older than an hour."""
        current_time = time.time()
        if current_time - self._last_cleanup < self._cleanup_interval:
            return

        with self._lock:
            cutoff = current_time - 3600
            for key in list(self._storage):
                self._storage[key] = [ts for ts in self._storage[key] if ts > cutoff]
                if not self._storage[key]:
                    del self._storage[key]
            self._last_cleanup = current_time

    def is_allowed(self, identifier: str, max_requests: int, window_seconds: int) -> tuple[bool, int]:
        """
        Check if a request is allowed based on rate limit.

        Args:
            identifier: Unique identifier (IP address or user ID)
            max_requests: Maximum number of requests allowed
            window_seconds: Time window in seconds

        Returns:
            Tuple of (is_allowed, remaining_requests)
        """
        self._cleanup_old_entries()

        current_time = time.time()
        cutoff = current_time - window_seconds

        with self._lock:
            timestamps = self._storage[identifier]
            timestamps[:] = [ts for ts in timestamps if ts > cutoff]

            if len(timestamps) >= max_requests:
                return False, 0

            timestamps.append(current_time)
            return True, max_requests - len(timestamps)

    def reset(self, identifier: str):
        """Reset rate limit for a specific identifier."""
        with self._lock:
            self._storage.pop(identifier, None)

    @staticmethod
    def init_app(app):
        app.extensions["quizlink.rate_limiter"] = RateLimiter()


def get_rate_limiter() -> RateLimiter:
    return current_app.extensions["quizlink.rate_limiter"]


def rate_limit(max_requests_key: str = 'RATE_LIMIT_TAKER_REQUESTS',
               window_seconds_key: str = 'RATE_LIMIT_TAKER_WINDOW_SECONDS',
               error_message: str = "Rate limit exceeded. Please try again later."):
    """
    Decorator to rate limit a route.

    Limits are read from app config on every request so they can be tuned
    per deployment.

    Example:
        @quiz_bp.route('/api/take/<link>')
        @rate_limit()
        def resolve_quiz(link):
            ...
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            max_requests = int(current_app.config.get(max_requests_key, 60))
            window_seconds = int(current_app.config.get(window_seconds_key, 60))

            ip = request.remote_addr or request.environ.get('REMOTE_ADDR', 'unknown')
            identifier = f"ip:{ip}"

            is_allowed, remaining = get_rate_limiter().is_allowed(
                f"{request.endpoint}:{identifier}", max_requests, window_seconds
            )

            if not is_allowed:
                from quizlink.security.security_logger import SecurityLogger
                SecurityLogger.log_rate_limit_exceeded(identifier, request.path)
                response = make_response(jsonify({
                    'success': False,
                    'error': error_message,
                    'code': 'RateLimited',
                    'retry_after': window_seconds
                }), 429)
                response.headers['X-RateLimit-Limit'] = str(max_requests)
                response.headers['X-RateLimit-Remaining'] = '0'
                response.headers['Retry-After'] = str(window_seconds)
                return response

            response = make_response(f(*args, **kwargs))
            response.headers['X-RateLimit-Limit'] = str(max_requests)
            response.headers['X-RateLimit-Remaining'] = str(remaining)
            return response

        return decorated_function
    return decorator
