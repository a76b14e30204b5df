"""
Rate-Limited RPC Client

Wraps a chain-specific RPC client with:
- A blocking admission gate of N requests/second (evenly spaced permits)
- Bounded retry with fixed or exponential delay for transient failures
- Error classification into TransientFailure / PermanentFailure
- Per-call metrics
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from loguru import logger

from contract_watcher.core.cancellation import CancellationToken
from contract_watcher.core.errors import (
    PermanentFailure, ShutdownRequested, TransientFailure,
    RETRYABLE_CATEGORIES, classify_error
)
from contract_watcher.core.metrics import Metrics


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry configuration"""
    attempts: int = 3
    delay: float = 2.0       # seconds before the first retry
    backoff: float = 1.0     # 1.0 = fixed delay, 2.0 = exponential
    max_delay: float = 60.0  # seconds

    def delay_for(self, attempt: int) -> float:
        """Delay after failed `attempt` (1-based)"""
        return min(self.delay * (self.backoff ** (attempt - 1)), self.max_delay)


class RateLimiter:
    """
    Leaky-bucket admission gate: one permit every 1/N seconds.

    Permits are reserved in call order, so waiters are served FIFO and any
    one-second window admits at most N permits.
    """

    def __init__(
        self,
        requests_per_second: int,
        token: Optional[CancellationToken] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        if requests_per_second <= 0:
            raise ValueError("requests_per_second must be positive")

        self.requests_per_second = requests_per_second
        self.interval = 1.0 / requests_per_second
        self.token = token or CancellationToken()
        self._clock = clock
        self._next_slot: float = 0.0

        # Statistics
        self.total_permits: int = 0

    async def acquire(self):
        """
        Wait for a permit.

        Raises:
            ShutdownRequested: If the cancellation token fires while waiting
        """
        self.token.raise_if_cancelled()

        now = self._clock()
        slot = max(now, self._next_slot)
        self._next_slot = slot + self.interval
        self.total_permits += 1

        delay = slot - now
        if delay > 0:
            await self.token.sleep_or_raise(delay)


class RateLimitedClient:
    """
    Rate-limited, retrying facade over a chain RPC client.

    Example:
        ```python
        client = RateLimitedClient(
            rpc=EvmRpcClient(url),
            limiter=RateLimiter(10, token),
            chain="ethereum",
        )

        head = await client.call("get_block_number")
        block = await client.call("get_block", 18_000_000, full_transactions=True)
        ```
    """

    def __init__(
        self,
        rpc: Any,
        limiter: RateLimiter,
        chain: str,
        retry_policy: Optional[RetryPolicy] = None,
        metrics: Optional[Metrics] = None,
        token: Optional[CancellationToken] = None
    ):
        self.rpc = rpc
        self.limiter = limiter
        self.chain = chain
        self.retry_policy = retry_policy or RetryPolicy()
        self.metrics = metrics or Metrics()
        self.token = token or limiter.token

        # Statistics
        self.total_calls: int = 0
        self.total_attempts: int = 0
        self.total_retries: int = 0
        self.total_failures: int = 0

    async def call(self, method_name: str, *args, **kwargs) -> Any:
        """
        Execute an RPC method with rate limiting and retry.

        Args:
            method_name: Method of the wrapped client (e.g. 'get_block')
            *args: Method arguments
            **kwargs: Method keyword arguments

        Returns:
            Method result

        Raises:
            TransientFailure: If every attempt failed with a retryable error
            PermanentFailure: On the first non-retryable error
            ShutdownRequested: If the cancellation token fires
        """
        method = getattr(self.rpc, method_name)
        policy = self.retry_policy
        self.total_calls += 1

        last_error: Optional[BaseException] = None

        for attempt in range(1, policy.attempts + 1):
            # Every attempt costs a permit, failed or not
            await self.limiter.acquire()
            self.total_attempts += 1

            try:
                result = await self.token.guard(method(*args, **kwargs))
                self.metrics.rpc_call(self.chain, method_name, "success")
                return result

            except ShutdownRequested:
                raise

            except Exception as e:
                last_error = e
                category = classify_error(e)
                self.metrics.rpc_call(self.chain, method_name, "failure")

                if category not in RETRYABLE_CATEGORIES:
                    self.total_failures += 1
                    logger.warning(
                        f"[{self.chain}] {method_name} failed permanently ({category.value}): {e}"
                    )
                    if isinstance(e, PermanentFailure):
                        raise
                    raise PermanentFailure(
                        f"{method_name} failed: {e}",
                        category=category,
                        chain=self.chain,
                        cause=e
                    ) from e

                logger.warning(
                    f"[{self.chain}] {method_name} failed "
                    f"(attempt {attempt}/{policy.attempts}, {category.value}): {e}"
                )

                if attempt < policy.attempts:
                    self.total_retries += 1
                    self.metrics.rpc_retry(self.chain, method_name)
                    await self.token.sleep_or_raise(policy.delay_for(attempt))

        self.total_failures += 1
        if isinstance(last_error, TransientFailure):
            raise last_error
        raise TransientFailure(
            f"{method_name} failed after {policy.attempts} attempts: {last_error}",
            category=classify_error(last_error),
            chain=self.chain,
            cause=last_error
        ) from last_error

    async def close(self):
        """Close the wrapped client if it holds connections"""
        close = getattr(self.rpc, "close", None)
        if close is not None:
            await close()

    def get_status(self) -> dict:
        return {
            'chain': self.chain,
            'requests_per_second': self.limiter.requests_per_second,
            'total_calls': self.total_calls,
            'total_attempts': self.total_attempts,
            'total_retries': self.total_retries,
            'total_failures': self.total_failures,
        }
