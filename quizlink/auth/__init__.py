"""
Identity and authorization glue for the quiz engine.
"""
from quizlink.auth.identity import (  # noqa: F401
    AccessPolicy,
    Identity,
    get_access_policy,
    init_identity,
)
