"""
Review Submission Guard

Admission control for review submissions: each client identity may submit
at most N reviews per window (3 per hour by default).

Counting is delegated to the `limits` library, the engine underneath
slowapi. Its storage is the counter store (memory:// for a single process
and tests, redis:// when several API instances must share counts) and its
`hit` call increments and checks in one atomic step.
"""

import logging
import math
import time

from limits import RateLimitItem, parse
from limits.storage import Storage, storage_from_string
from limits.strategies import (
    FixedWindowRateLimiter,
    MovingWindowRateLimiter,
    RateLimiter,
)
from redis.exceptions import RedisError

from bookshelf.config import Settings
from bookshelf.exceptions import RateLimitError, RepositoryError

logger = logging.getLogger(__name__)

STRATEGIES: dict[str, type[RateLimiter]] = {
    "fixed-window": FixedWindowRateLimiter,
    "moving-window": MovingWindowRateLimiter,
}

NAMESPACE = "review-submission"


def client_identity(user_id: int | None = None, address: str | None = None) -> str:
    """
    Identity a submission is counted against.

    An authenticated user is counted by account; everyone else by network
    address.

    Examples:
        client_identity(user_id=7) -> "user:7"
        client_identity(address="203.0.113.9") -> "ip:203.0.113.9"
    """
    if user_id is not None:
        return f"user:{user_id}"
    return f"ip:{address or 'unknown'}"


class SubmissionGuard:
    """
    Per-identity admission control for review submissions.

    Args:
        limit: Allowed submissions per window, e.g. "3/hour"
        storage: limits storage holding the counters
        strategy: "fixed-window" or "moving-window"
    """

    def __init__(
        self,
        limit: str = "3/hour",
        storage: Storage | None = None,
        strategy: str = "fixed-window",
    ) -> None:
        self.limit = limit
        self.item: RateLimitItem = parse(limit)
        self.storage = storage if storage is not None else storage_from_string("memory://")
        self.limiter = STRATEGIES[strategy](self.storage)

    def admit(self, identity: str) -> bool:
        """
        Count one submission attempt and decide whether it is allowed.

        Raises:
            RepositoryError: If the counter store is unreachable
        """
        try:
            admitted = self.limiter.hit(self.item, NAMESPACE, identity)
        except RedisError as e:
            logger.error(f"Counter store error for {identity}: {e}")
            raise RepositoryError("Submission counter store unavailable") from e

        if not admitted:
            logger.warning(f"Review submission denied for {identity}: {self.limit}")
        return admitted

    def retry_after(self, identity: str) -> int:
        """Seconds until `identity` may submit again (at least 1)."""
        try:
            stats = self.limiter.get_window_stats(self.item, NAMESPACE, identity)
        except RedisError as e:
            logger.error(f"Counter store error for {identity}: {e}")
            raise RepositoryError("Submission counter store unavailable") from e
        return max(1, math.ceil(stats[0] - time.time()))

    def check(self, identity: str) -> None:
        """
        Admit a submission or raise.

        Raises:
            RateLimitError: With the seconds to wait before retrying
            RepositoryError: If the counter store is unreachable
        """
        if not self.admit(identity):
            raise RateLimitError(self.limit, self.retry_after(identity))

    def reset(self) -> None:
        """Forget every counter (tests and administrative resets)."""
        self.storage.reset()


def create_submission_guard(settings: Settings) -> SubmissionGuard:
    """Build the guard described by the settings."""
    return SubmissionGuard(
        limit=settings.review_rate_limit,
        storage=storage_from_string(settings.rate_limit_storage_uri),
        strategy=settings.rate_limit_strategy,
    )
