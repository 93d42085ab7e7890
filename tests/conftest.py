"""Shared fixtures for the pipeline test-suite.

HTTP behaviour runs against throw-away ``aiohttp.web`` servers on localhost;
everything else uses injected fakes.
"""

from __future__ import annotations

from typing import List

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from laxpipe.config import ExtractConfig
from laxpipe.models import FetchResponse


def make_response(url: str, body: str = "ok", status_code: int = 200) -> FetchResponse:
    return FetchResponse(
        url=url,
        final_url=url,
        status_code=status_code,
        headers={"content-type": "text/html"},
        body=body,
        content_type="text/html",
        duration_ms=1,
    )


class SleepRecorder:
    """Drop-in for ``asyncio.sleep`` that records delays instead of waiting."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def extract_config(tmp_path) -> ExtractConfig:
    return ExtractConfig(
        output_dir=tmp_path / "output",
        delay_between_requests_ms=0,
        delay_between_batches_ms=0,
    )


@pytest.fixture
async def serve():
    """Start an ``aiohttp.web.Application`` on localhost; returns its base URL."""
    servers: List[TestServer] = []

    async def _start(app: web.Application) -> str:
        server = TestServer(app)
        await server.start_server()
        servers.append(server)
        return str(server.make_url("/")).rstrip("/")

    yield _start

    for server in servers:
        await server.close()

