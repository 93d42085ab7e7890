"""
scraper.py – Single and batch scraping on top of the retry policy, plus a
             best-effort reachability probe.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Mapping, Optional, Sequence

from pydantic import ValidationError

from ..config import PipelineConfig
from ..errors import FetchError, PipelineError
from ..models import BatchScrapeResult, FetchRequest, FetchResponse, PingResult, ScrapeResult
from .http import HttpClient
from .retry import FetchExecutor, RetryPolicy

logger = logging.getLogger(__name__)

PING_TIMEOUT_MS = 5000


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class Scraper:
    """
    ``fetcher`` is normally a ``RetryPolicy``; ``prober`` is the raw executor
    used by :meth:`ping` (no retries for a reachability check).

    ``request_delay_ms`` paces batches: each concurrency slot stays taken for
    that long after its request finishes.
    """

    def __init__(
        self,
        fetcher: FetchExecutor,
        *,
        prober: Optional[FetchExecutor] = None,
        concurrency: int = 5,
        request_delay_ms: int = 0,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self._fetcher = fetcher
        self._prober = prober or fetcher
        self._concurrency = concurrency
        self._request_delay = max(request_delay_ms, 0) / 1000
        self._sleep = sleep or asyncio.sleep

    @classmethod
    def from_config(cls, http: HttpClient, config: PipelineConfig) -> "Scraper":
        """Standard stack: retrying fetches for scrapes, the raw client for pings."""
        return cls(
            RetryPolicy.from_config(http, config),
            prober=http,
            concurrency=config.max_concurrency,
            request_delay_ms=config.rate_limit_delay_ms,
        )

    async def scrape(self, request: FetchRequest) -> FetchResponse:
        logger.debug("Scraping %s", request.url)
        response = await self._fetcher.fetch(request)
        logger.debug(
            "Scraped %s (%d, %d bytes, %dms)",
            request.url,
            response.status_code,
            len(response.body),
            response.duration_ms,
        )
        return response

    async def _batch_item(
        self, url: str, headers: Optional[Mapping[str, str]], timeout_ms: Optional[int]
    ) -> ScrapeResult:
        try:
            request = FetchRequest(url=url, headers=dict(headers or {}), timeout_ms=timeout_ms)
            response = await self.scrape(request)
        except (PipelineError, ValidationError) as e:
            logger.warning("Batch item %s failed: %s", url, e)
            return ScrapeResult(url=url, success=False, error=str(e))
        except Exception as e:
            logger.exception("Unexpected error scraping %s", url)
            return ScrapeResult(url=url, success=False, error=f"{type(e).__name__}: {e}")
        return ScrapeResult(url=url, success=True, response=response)

    async def scrape_batch(
        self,
        urls: Sequence[str],
        headers: Optional[Mapping[str, str]] = None,
        timeout_ms: Optional[int] = None,
        concurrency: Optional[int] = None,
    ) -> BatchScrapeResult:
        """Scrape every URL; results keep input order and failures stay per-URL."""
        started = time.monotonic()
        limit = asyncio.Semaphore(concurrency or self._concurrency)

        async def _one(url: str) -> ScrapeResult:
            async with limit:
                result = await self._batch_item(url, headers, timeout_ms)
                if self._request_delay:
                    await self._sleep(self._request_delay)
                return result

        results = list(await asyncio.gather(*(_one(url) for url in urls)))
        success_count = sum(1 for r in results if r.success)

        batch = BatchScrapeResult(
            results=results,
            total_count=len(results),
            success_count=success_count,
            failure_count=len(results) - success_count,
            total_duration_ms=_elapsed_ms(started),
        )
        logger.info(
            "Batch complete: %d/%d succeeded in %dms",
            batch.success_count,
            batch.total_count,
            batch.total_duration_ms,
        )
        return batch

    async def ping(self, url: str) -> PingResult:
        """Probe ``url`` once with a short timeout. Never raises."""
        started = time.monotonic()
        try:
            response = await self._prober.fetch(FetchRequest(url=url, timeout_ms=PING_TIMEOUT_MS))
        except FetchError as e:
            status_code = getattr(e, "status_code", None)
            return PingResult(
                url=url,
                accessible=False,
                status_code=status_code,
                duration_ms=_elapsed_ms(started),
                error=str(e),
            )
        except (PipelineError, ValidationError) as e:
            return PingResult(url=url, accessible=False, duration_ms=_elapsed_ms(started), error=str(e))

        return PingResult(
            url=url,
            accessible=True,
            status_code=response.status_code,
            duration_ms=_elapsed_ms(started),
        )
