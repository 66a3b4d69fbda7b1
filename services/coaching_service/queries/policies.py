"""Freshness and retry policies per entity family."""

from dataclasses import dataclass
from typing import Mapping

MINUTE = 60.0


@dataclass(frozen=True)
class QueryPolicy:
    stale_time: float = 5 * MINUTE
    gc_time: float = 10 * MINUTE
    retries: int = 3
    retry_base_delay: float = 1.0
    retry_max_delay: float = 30.0

    def retry_delay(self, attempt: int) -> float:
        """Exponential backoff for the ``attempt``-th retry (0-based), capped."""
        return min(self.retry_base_delay * (2**attempt), self.retry_max_delay)

    def should_retry(self, error: BaseException, attempt: int) -> bool:
        # Only transport failures are retryable; auth and validation never are.
        return attempt < self.retries and bool(getattr(error, "retryable", False))


DEFAULT_POLICY = QueryPolicy()
MUTATION_POLICY = QueryPolicy(retries=1)

MESSAGES_POLICY = QueryPolicy(stale_time=30.0)
SESSIONS_POLICY = QueryPolicy(stale_time=1 * MINUTE)
DASHBOARD_POLICY = QueryPolicy(stale_time=2 * MINUTE)
FEEDBACK_POLICY = QueryPolicy(stale_time=2 * MINUTE)
PROGRESS_POLICY = QueryPolicy(stale_time=5 * MINUTE)
NUTRITION_POLICY = QueryPolicy(stale_time=10 * MINUTE, gc_time=20 * MINUTE)
BILLING_POLICY = QueryPolicy(stale_time=10 * MINUTE, gc_time=20 * MINUTE)

FAMILY_POLICIES: Mapping[str, QueryPolicy] = {
    "messages": MESSAGES_POLICY,
    "conversations": MESSAGES_POLICY,
    "sessions": SESSIONS_POLICY,
    "dashboard": DASHBOARD_POLICY,
    "feedbacks": FEEDBACK_POLICY,
    "progress-photos": PROGRESS_POLICY,
    "nutrition": NUTRITION_POLICY,
    "billing": BILLING_POLICY,
}


def policy_for(key: tuple) -> QueryPolicy:
    """Policy for a query key, chosen by its family (first element)."""
    if key and key[-1] == "progress":
        return PROGRESS_POLICY
    return FAMILY_POLICIES.get(key[0] if key else "", DEFAULT_POLICY)
