"""
Identity adapter for the upstream auth service.

The engine never handles credentials. The platform's auth service sits in
front of it and forwards the signed-in user's id and display name as request
headers; this module turns those headers into a Flask-Login user so routes can
keep using ``current_user`` and ``login_required``.
"""
from typing import Optional

from flask import current_app, jsonify, request
from flask_login import UserMixin

from quizlink.security.input_validator import sanitize_input


class Identity(UserMixin):
    """An authenticated platform user as reported by the auth service."""

    def __init__(self, user_id: str, display_name: str, email: Optional[str] = None):
        self.id = user_id
        self.display_name = display_name or "Anonymous User"
        self.email = email or None

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Identity {self.id} ({self.display_name})>"


class AccessPolicy:
    """
    Decides who may read or change a quiz.

    Owners always may. Platform administrators (configured ids) may read
    results of any quiz but never modify it.
    """

    def __init__(self, admin_user_ids=None):
        self._admin_user_ids = frozenset(str(u) for u in (admin_user_ids or []))

    def is_admin(self, user_id) -> bool:
        return user_id is not None and str(user_id) in self._admin_user_ids

    def can_read_results(self, quiz, user_id) -> bool:
        return quiz.teacher_id == str(user_id) or self.is_admin(user_id)

    def can_modify(self, quiz, user_id) -> bool:
        return quiz.teacher_id == str(user_id)


def load_identity_from_request(req) -> Optional[Identity]:
    """Build an Identity from the auth service headers, or None for anonymous callers."""
    cfg = current_app.extensions["quizlink.identity_headers"]
    user_id = (req.headers.get(cfg["user_id"]) or "").strip()
    if not user_id:
        return None
    display_name = sanitize_input(req.headers.get(cfg["user_name"], ""))
    email = sanitize_input(req.headers.get(cfg["user_email"], ""), "email")
    return Identity(user_id[:128], display_name[:255], email[:255] or None)


def get_access_policy() -> AccessPolicy:
    return current_app.extensions["quizlink.access_policy"]


def init_identity(app, config, login_manager=None):
    """Register the header-based request loader and the access policy on the app."""
    if login_manager is None:
        from quizlink import login_manager

    app.extensions["quizlink.identity_headers"] = {
        "user_id": config.IDENTITY_USER_ID_HEADER,
        "user_name": config.IDENTITY_USER_NAME_HEADER,
        "user_email": config.IDENTITY_USER_EMAIL_HEADER,
    }
    app.extensions["quizlink.access_policy"] = AccessPolicy(config.ADMIN_USER_IDS)

    @login_manager.request_loader
    def load_user_from_request(req):
        return load_identity_from_request(req)

    @login_manager.unauthorized_handler
    def unauthorized():
        current_app.logger.info(f"Unauthenticated request to {request.path}")
        return jsonify({
            'success': False,
            'error': 'Authentication required',
            'code': 'LoginRequired',
        }), 401

    app.logger.info(
        f"Identity adapter initialized (header={config.IDENTITY_USER_ID_HEADER}, "
        f"admins={len(config.ADMIN_USER_IDS)})"
    )
