"""
Security headers module.

The engine only serves JSON, so the policy is strict: nothing may be framed,
sniffed or cached by shared caches. Taker responses in particular must never
be cached, since a submission result can include the answer key.
"""

from flask import current_app


class SecurityHeaders:
    """
    Adds security headers to every HTTP response.
    """

    @staticmethod
    def init_app(app):
        """
        Initialize security headers for the Flask app.

        Args:
            app: Flask application instance
        """
        @app.after_request
        def add_security_headers(response):
            response.headers['Content-Security-Policy'] = "default-src 'none'; frame-ancestors 'none'"
            response.headers['X-Content-Type-Options'] = 'nosniff'
            response.headers['X-Frame-Options'] = 'DENY'
            response.headers['Referrer-Policy'] = 'no-referrer'

            if response.mimetype == 'application/json':
                response.cache_control.no_store = True
                response.cache_control.private = True

            # Strict-Transport-Security: Force HTTPS (only in production)
            if current_app.config.get('SESSION_COOKIE_SECURE', False):
                response.headers['Strict-Transport-Security'] = (
                    'max-age=31536000; includeSubDomains'
                )

            if 'Server' in response.headers:
                del response.headers['Server']

            return response
