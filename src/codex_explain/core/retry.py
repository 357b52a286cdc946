import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Literal, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded attempt budget with a backoff schedule between attempts."""

    max_attempts: int = 3
    base_delay: float = 0.25
    backoff: Literal["linear", "exponential"] = "linear"

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must not be negative")

    def delay_after(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt`` (1-based)."""
        if self.backoff == "exponential":
            return self.base_delay * (2 ** (attempt - 1))
        return self.base_delay * attempt


async def call_with_retry(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Await ``fn`` until it succeeds or the policy's attempts run out; the last error propagates."""
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await fn()
        except Exception as exc:
            if attempt == policy.max_attempts:
                raise
            delay = policy.delay_after(attempt)
            logger.warning("Attempt %d/%d failed: %s; retrying in %.2fs", attempt, policy.max_attempts, exc, delay)
            await sleep(delay)
    raise AssertionError("unreachable")
