"""
Retry middleware for transient adapter failures.

The core never retries. Installing RetryMiddleware opts in: the rest of the
chain is re-run on failures the policy classifies as transient, waiting
between attempts according to a backoff strategy.

By default only reads are retried, since re-running a write that failed
midway is not safe for every backend.

Usage:
    manager.use(RetryMiddleware(RetryPolicy(max_attempts=3, backoff=ExponentialBackoff(base=0.2))))
"""

from __future__ import annotations

import asyncio
import logging
import random
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..context import Operation
from ..errors import DataAccessError, ErrorKind
from .base import CallNext, Middleware

if TYPE_CHECKING:
    from ..context import OperationContext

logger = logging.getLogger(__name__)


# =============================================================================
# Backoff Strategies
# =============================================================================


class BackoffStrategy(ABC):
    """Computes the wait before a retry attempt."""

    @abstractmethod
    def get_delay(self, attempt: int) -> float:
        """
        Delay in seconds before the next attempt.

        Args:
            attempt: Failed attempt number (1-indexed)
        """
        ...


@dataclass
class NoBackoff(BackoffStrategy):
    """Retry immediately."""

    def get_delay(self, attempt: int) -> float:
        return 0.0


@dataclass
class ConstantBackoff(BackoffStrategy):
    """Wait the same delay before every retry."""

    delay: float = 0.5

    def get_delay(self, attempt: int) -> float:
        return self.delay


@dataclass
class ExponentialBackoff(BackoffStrategy):
    """
    delay = base * multiplier ^ (attempt - 1), capped at max_delay,
    with optional +/- jitter_factor jitter.
    """

    base: float = 0.5
    multiplier: float = 2.0
    max_delay: float = 30.0
    jitter: bool = True
    jitter_factor: float = 0.25

    def get_delay(self, attempt: int) -> float:
        delay = min(self.base * (self.multiplier ** (attempt - 1)), self.max_delay)
        if self.jitter:
            spread = delay * self.jitter_factor
            delay = max(0.0, delay + random.uniform(-spread, spread))
        return delay


# =============================================================================
# Retry Policy
# =============================================================================

TRANSIENT_KINDS = frozenset({ErrorKind.INTERNAL})


@dataclass
class RetryPolicy:
    """
    When and how often to retry.

    Attributes:
        max_attempts: Total attempts including the first (1 disables retries)
        backoff: Delay strategy between attempts
        retry_on: Exception types considered transient
        retry_kinds: DataAccessError kinds considered transient
        operations: Operations eligible for retry
    """

    max_attempts: int = 3
    backoff: BackoffStrategy = field(default_factory=NoBackoff)
    retry_on: tuple[type[Exception], ...] = (ConnectionError, TimeoutError)
    retry_kinds: frozenset[ErrorKind] = TRANSIENT_KINDS
    operations: frozenset[Operation] = frozenset({Operation.FIND_ONE, Operation.FIND_MANY})

    def applies_to(self, operation: Operation | str) -> bool:
        parsed = Operation.parse(operation)
        return parsed is not None and parsed in self.operations

    def should_retry(self, attempt: int, error: Exception) -> bool:
        if attempt >= self.max_attempts:
            return False
        if isinstance(error, DataAccessError):
            return error.kind in self.retry_kinds
        return isinstance(error, self.retry_on)

    def get_delay(self, attempt: int) -> float:
        return self.backoff.get_delay(attempt)

    @classmethod
    def for_operations(cls, operations: Iterable[Operation | str], **kwargs: Any) -> RetryPolicy:
        parsed = frozenset(op for op in (Operation.parse(o) for o in operations) if op is not None)
        return cls(operations=parsed, **kwargs)


NO_RETRY = RetryPolicy(max_attempts=1)


class RetryMiddleware(Middleware):
    """Re-run the inner chain on transient failures."""

    def __init__(self, policy: RetryPolicy | None = None):
        self.policy = policy or RetryPolicy()

    @property
    def name(self) -> str:
        return "RetryMiddleware"

    async def handle(self, ctx: OperationContext, call_next: CallNext) -> Any:
        if not self.policy.applies_to(ctx.operation):
            return await call_next()

        attempt = 0
        while True:
            attempt += 1
            try:
                return await call_next()
            except Exception as e:
                if not self.policy.should_retry(attempt, e):
                    raise
                delay = self.policy.get_delay(attempt)
                logger.warning(
                    f"[retry] {ctx.entity}.{ctx.operation_name}: attempt {attempt}/{self.policy.max_attempts} "
                    f"failed with {type(e).__name__}: {e}, retrying in {delay:.2f}s"
                )
                await asyncio.sleep(delay)
