"""
Security logging module.

This module provides specialized logging for security events around
quiz links and results: forbidden results access, unknown-link lookups,
attempt-limit rejections and rate limiting.
"""

from datetime import datetime

from flask import current_app, has_request_context, request


def _remote_addr() -> str:
    if has_request_context():
        return request.remote_addr or "unknown"
    return "n/a"


class SecurityLogger:
    """
    Security event logger.

    Logs security-related events for monitoring and auditing.
    """

    @staticmethod
    def log_unauthorized_access(resource: str, user_id=None):
        """
        Log a caller touching an owner-only resource they do not own.

        Args:
            resource: Resource that was accessed
            user_id: User ID if authenticated
        """
        user_info = f"User ID: {user_id}" if user_id else "Unauthenticated"
        current_app.logger.warning(
            f"SECURITY: Unauthorized access - {user_info}, "
            f"Resource: {resource}, IP: {_remote_addr()}, "
            f"Time: {datetime.utcnow().isoformat()}"
        )

    @staticmethod
    def log_unknown_link(link: str):
        """
        Log a lookup of a shareable link that does not resolve.

        Repeated misses from one address look like link enumeration.
        """
        truncated = link[:32] if link else ""
        current_app.logger.info(
            f"SECURITY: Unknown quiz link - Link: {truncated}, "
            f"IP: {_remote_addr()}, Time: {datetime.utcnow().isoformat()}"
        )

    @staticmethod
    def log_attempts_exceeded(quiz_id: int, taker_id: str, attempts: int):
        current_app.logger.info(
            f"SECURITY: Attempt limit reached - Quiz ID: {quiz_id}, "
            f"Taker: {taker_id}, Attempts: {attempts}, IP: {_remote_addr()}, "
            f"Time: {datetime.utcnow().isoformat()}"
        )

    @staticmethod
    def log_invalid_session_token(reason: str):
        """Log a session token that failed signature or age checks."""
        current_app.logger.warning(
            f"SECURITY: Invalid session token - Reason: {reason}, "
            f"IP: {_remote_addr()}, Time: {datetime.utcnow().isoformat()}"
        )

    @staticmethod
    def log_rate_limit_exceeded(identifier: str, endpoint: str):
        current_app.logger.warning(
            f"SECURITY: Rate limit exceeded - Identifier: {identifier}, "
            f"Endpoint: {endpoint}, IP: {_remote_addr()}, "
            f"Time: {datetime.utcnow().isoformat()}"
        )

    @staticmethod
    def log_injection_attempt(input_type: str, value: str):
        """
        Log potential injection attempt.

        Args:
            input_type: Type of injection (SQL, XSS)
            value: Suspicious input value (truncated)
        """
        truncated_value = value[:100] if len(value) > 100 else value
        current_app.logger.warning(
            f"SECURITY: Potential {input_type} injection - "
            f"IP: {_remote_addr()}, Value: {truncated_value}, "
            f"Time: {datetime.utcnow().isoformat()}"
        )
