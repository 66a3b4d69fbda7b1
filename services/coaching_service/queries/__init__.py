"""Keyed query cache and the coaching query layer built on it."""

from services.coaching_service.queries import keys  # noqa: F401
from services.coaching_service.queries.cache import QueryCache, QueryState
from services.coaching_service.queries.hooks import CoachingQueries
from services.coaching_service.queries.policies import (
    DEFAULT_POLICY,
    MUTATION_POLICY,
    QueryPolicy,
    policy_for,
)

__all__ = [
    "CoachingQueries",
    "DEFAULT_POLICY",
    "MUTATION_POLICY",
    "QueryCache",
    "QueryPolicy",
    "QueryState",
    "keys",
    "policy_for",
]
