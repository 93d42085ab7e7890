"""
http.py – Async fetch executor built on *aiohttp*: one bounded GET per call,
          outcome classified into the pipeline error taxonomy.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Dict, Mapping, Optional

import aiohttp

from ..config import PipelineConfig
from ..errors import FetchTimeoutError, HttpError, NetworkError, RateLimitError
from ..models import FetchRequest, FetchResponse, utc_now

logger = logging.getLogger(__name__)


class HttpClient:
    """
    Thin wrapper over *aiohttp.ClientSession* adding:

    * the configured user agent on every request
    * per-request timeouts (request override, else config default)
    * classification into ``HttpError`` / ``RateLimitError`` /
      ``FetchTimeoutError`` / ``NetworkError``
    * async context-manager support

    No retries happen here; wrap it in ``RetryPolicy`` for that.
    """

    def __init__(
        self,
        *,
        config: Optional[PipelineConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._config = config or PipelineConfig()
        self._external_session = session
        self._own_session: Optional[aiohttp.ClientSession] = None

    @property
    def config(self) -> PipelineConfig:
        return self._config

    # ---------------------------------------------- #
    # Async context-manager
    async def __aenter__(self) -> "HttpClient":  # noqa: D401
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: D401
        await self.close()

    # ---------------------------------------------- #
    # Session management
    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._external_session:
            return self._external_session
        if self._own_session is None or self._own_session.closed:
            timeout = aiohttp.ClientTimeout(total=self._config.default_timeout_ms / 1000)
            self._own_session = aiohttp.ClientSession(timeout=timeout)
        return self._own_session

    async def close(self) -> None:
        if self._own_session and not self._own_session.closed:
            await self._own_session.close()
            self._own_session = None

    # ---------------------------------------------- #
    # Internal helpers
    @staticmethod
    def _parse_retry_after(header_val: Optional[str]) -> Optional[int]:
        """Return milliseconds given a Retry-After header value."""
        if not header_val:
            return None
        header_val = header_val.strip()
        # seconds
        if header_val.isdigit():
            return int(header_val) * 1000
        # HTTP-date
        try:
            retry_at = parsedate_to_datetime(header_val)
        except (TypeError, ValueError):
            return None
        if retry_at.tzinfo is None:
            retry_at = retry_at.replace(tzinfo=timezone.utc)
        delta = (retry_at - datetime.now(timezone.utc)).total_seconds()
        return max(0, int(delta * 1000))

    def _merge_headers(self, extra: Mapping[str, str] | None) -> Dict[str, str]:
        merged: Dict[str, str] = {"User-Agent": self._config.user_agent}
        if extra:
            merged.update(extra)
        return merged

    @staticmethod
    def _normalize_headers(raw: Mapping[str, str]) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        for key, value in raw.items():
            key = key.lower()
            headers[key] = f"{headers[key]}, {value}" if key in headers else value
        return headers

    # ---------------------------------------------- #
    # Public API
    async def fetch(self, request: FetchRequest) -> FetchResponse:
        """Perform a single GET and return the response or raise a ``FetchError``."""
        session = await self._ensure_session()
        timeout_ms = request.timeout_ms or self._config.default_timeout_ms
        started = time.monotonic()

        try:
            async with session.get(
                request.url,
                headers=self._merge_headers(request.headers),
                allow_redirects=request.follow_redirects,
                timeout=aiohttp.ClientTimeout(total=timeout_ms / 1000),
            ) as resp:
                if resp.status == 429:
                    raise RateLimitError(
                        request.url, self._parse_retry_after(resp.headers.get("Retry-After"))
                    )
                if resp.status >= 400:
                    raise HttpError(request.url, resp.status, resp.reason or "")

                body = await resp.text(errors="replace")
                return FetchResponse(
                    url=request.url,
                    final_url=str(resp.url),
                    status_code=resp.status,
                    headers=self._normalize_headers(resp.headers),
                    body=body,
                    content_type=resp.headers.get("Content-Type"),
                    fetched_at=utc_now(),
                    duration_ms=int((time.monotonic() - started) * 1000),
                )
        except asyncio.TimeoutError as e:
            logger.debug("GET %s timed out after %dms", request.url, timeout_ms)
            raise FetchTimeoutError(request.url, timeout_ms) from e
        except aiohttp.ClientError as e:
            logger.debug("GET %s failed at transport level: %s", request.url, e)
            raise NetworkError(request.url, e) from e
