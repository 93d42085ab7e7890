"""
retry.py – Exponential back-off around a fetch executor.

Only retryable errors (``NetworkError``, ``FetchTimeoutError``) are retried;
``HttpError`` and ``RateLimitError`` propagate on the first attempt.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Protocol

from ..config import PipelineConfig
from ..errors import PipelineError
from ..models import FetchRequest, FetchResponse

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class FetchExecutor(Protocol):
    async def fetch(self, request: FetchRequest) -> FetchResponse: ...


class RetryPolicy:
    """Wraps an executor; delay grows ``base * 2**n`` capped at ``max_delay``."""

    def __init__(
        self,
        executor: FetchExecutor,
        *,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        sleep: Optional[Sleep] = None,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self._executor = executor
        self._max_retries = max_retries
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._sleep = sleep or asyncio.sleep

    @classmethod
    def from_config(
        cls, executor: FetchExecutor, config: PipelineConfig, *, sleep: Optional[Sleep] = None
    ) -> "RetryPolicy":
        return cls(
            executor,
            max_retries=config.max_retries,
            base_delay=config.retry_delay_ms / 1000,
            max_delay=config.max_retry_delay_ms / 1000,
            sleep=sleep,
        )

    @property
    def max_retries(self) -> int:
        return self._max_retries

    @staticmethod
    def should_retry(error: BaseException) -> bool:
        return isinstance(error, PipelineError) and error.retryable

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt`` (1-based)."""
        return min(self._base_delay * 2 ** (attempt - 1), self._max_delay)

    async def fetch(self, request: FetchRequest) -> FetchResponse:
        total_attempts = self._max_retries + 1
        for attempt in range(1, total_attempts + 1):
            try:
                return await self._executor.fetch(request)
            except PipelineError as e:
                if not self.should_retry(e):
                    raise
                if attempt == total_attempts:
                    logger.error("GET %s failed after %d attempts: %s", request.url, attempt, e)
                    raise

                delay = self.delay_for(attempt)
                logger.warning(
                    "GET %s failed (attempt %d/%d - will retry in %.1fs): %s",
                    request.url,
                    attempt,
                    total_attempts,
                    delay,
                    e,
                )
                await self._sleep(delay)

        # Should never hit here
        raise RuntimeError("Unreachable retry loop")
