"""
Test cases for shareable link issuance.
"""
import pytest

from quizlink.quiz.errors import LinkIssueError
from quizlink.quiz.links import LINK_ALPHABET, LinkIssuer, public_url


class TestLinkIssuer:
    """Test token drawing and collision handling."""

    def test_token_shape(self, app_context):
        token = LinkIssuer(lambda t: False).issue()
        assert len(token) == 12
        assert all(ch in LINK_ALPHABET for ch in token)

    def test_configured_length(self, app_context):
        app_context.config['SHAREABLE_LINK_LENGTH'] = 16
        assert len(LinkIssuer.from_config(lambda t: False).issue()) == 16

    def test_ten_thousand_links_are_distinct(self, app_context):
        issued = set()
        issuer = LinkIssuer(issued.__contains__)
        for _ in range(10000):
            issued.add(issuer.issue())
        assert len(issued) == 10000

    def test_redraws_on_collision(self, app_context):
        seen = []

        def exists(token):
            seen.append(token)
            return len(seen) < 3

        token = LinkIssuer(exists).issue()
        assert len(seen) == 3
        assert token == seen[-1]

    def test_gives_up_after_max_draws(self, app_context):
        issuer = LinkIssuer(lambda t: True, max_draws=5)
        with pytest.raises(LinkIssueError):
            issuer.issue()


class TestPublicUrl:
    """Test share URLs handed to teachers."""

    def test_public_url(self, app_context):
        assert public_url('abcDEF123456') == 'https://campus.test/quiz/abcDEF123456'

    def test_trailing_slash_on_base(self, app_context):
        app_context.config['APP_BASE_URL'] = 'https://campus.test/'
        assert public_url('tok') == 'https://campus.test/quiz/tok'
