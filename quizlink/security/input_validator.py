"""
Input validation and sanitization module.

Quiz titles, question text, options and guest names are all free text typed
by users and later shown to other users, so they are normalised here before
they reach the database.
"""

import html
import re
from typing import Any, Optional

from flask import current_app, has_app_context


class InputValidator:
    """
    Input validator for the free-text fields the quiz engine accepts.
    """

    # Letters (any script), digits, spaces and a little punctuation
    DISPLAY_NAME_PATTERN = re.compile(r"^[\w][\w .'\-]{0,99}$", re.UNICODE)

    SQL_INJECTION_PATTERNS = [
        r'(\bUNION\s+SELECT\b)',
        r'(\b(OR|AND)\s+\d+\s*=\s*\d+)',
        r'(;\s*(DROP|DELETE|TRUNCATE|ALTER)\s)',
        r'(--\s)',
        r'(/\*.*\*/)',
    ]

    XSS_PATTERNS = [
        r'<script[^>]*>.*?</script>',
        r'javascript:',
        r'on\w+\s*=',
        r'<iframe[^>]*>',
        r'<object[^>]*>',
        r'<embed[^>]*>',
    ]

    @classmethod
    def validate_display_name(cls, name: str) -> bool:
        """
        Validate a guest display name.

        Names must start with a letter or digit and be at most 100 characters.
        """
        if not name or not isinstance(name, str):
            return False
        return bool(cls.DISPLAY_NAME_PATTERN.match(name.strip()))

    @classmethod
    def detect_sql_injection(cls, value: str) -> bool:
        if not value or not isinstance(value, str):
            return False
        return any(re.search(p, value, re.IGNORECASE) for p in cls.SQL_INJECTION_PATTERNS)

    @classmethod
    def detect_xss(cls, value: str) -> bool:
        if not value or not isinstance(value, str):
            return False
        return any(re.search(p, value, re.IGNORECASE | re.DOTALL) for p in cls.XSS_PATTERNS)

    @classmethod
    def validate_length(cls, value: str, min_length: int = 0,
                        max_length: Optional[int] = None) -> bool:
        if not isinstance(value, str):
            return False
        length = len(value)
        if length < min_length:
            return False
        if max_length is not None and length > max_length:
            return False
        return True


def sanitize_input(value: Any, input_type: str = 'text') -> str:
    """
    Sanitize user input based on type.

    Args:
        value: Input value to sanitize
        input_type: Type of input ('text', 'html', 'email')

    Returns:
        Sanitized string
    """
    if value is None:
        return ''

    if not isinstance(value, str):
        value = str(value)

    value = value.replace('\x00', '').strip()

    if input_type == 'html':
        value = html.escape(value)
    elif input_type == 'email':
        value = value.lower()


    if has_app_context():
        from quizlink.security.security_logger import SecurityLogger
        if InputValidator.detect_sql_injection(value):
            SecurityLogger.log_injection_attempt("SQL", value)
        if InputValidator.detect_xss(value):
            SecurityLogger.log_injection_attempt("XSS", value)

    return value
