"""
Shareable link issuance.

A link token is the only public identifier of a quiz. Tokens are drawn from
``secrets`` so they cannot be guessed or enumerated, and re-drawn on the
(astronomically unlikely) collision with an existing quiz.
"""
import secrets
import string
from typing import Callable

from flask import current_app

from quizlink.quiz.errors import LinkIssueError

LINK_ALPHABET = string.ascii_letters + string.digits


class LinkIssuer:
    """Draws unique opaque tokens, checking each against ``exists``."""

    def __init__(self, exists: Callable[[str], bool], length: int = 12, max_draws: int = 20):
        self._exists = exists
        self.length = length
        self.max_draws = max_draws

    def draw(self) -> str:
        return ''.join(secrets.choice(LINK_ALPHABET) for _ in range(self.length))

    def issue(self) -> str:
        for attempt in range(1, self.max_draws + 1):
            token = self.draw()
            if not self._exists(token):
                return token
            current_app.logger.warning(f"Shareable link collision on draw {attempt}, redrawing")
        raise LinkIssueError()

    @classmethod
    def from_config(cls, exists: Callable[[str], bool]) -> "LinkIssuer":
        return cls(
            exists,
            length=current_app.config.get('SHAREABLE_LINK_LENGTH', 12),
            max_draws=current_app.config.get('SHAREABLE_LINK_MAX_DRAWS', 20),
        )


def public_url(token: str) -> str:
    """Full URL a teacher hands out, e.g. https://campus.example/quiz/<token>."""
    base = (current_app.config.get('APP_BASE_URL') or '').rstrip('/')
    prefix = current_app.config.get('QUIZ_URL_PREFIX') or '/quiz'
    return f"{base}{prefix}/{token}"
