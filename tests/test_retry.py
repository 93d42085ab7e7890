"""Tests for laxpipe.infra.retry.RetryPolicy with a scripted executor."""

from __future__ import annotations

import pytest

from conftest import make_response
from laxpipe.config import PipelineConfig
from laxpipe.errors import FetchTimeoutError, HttpError, NetworkError, RateLimitError
from laxpipe.infra.retry import RetryPolicy
from laxpipe.models import FetchRequest

URL = "https://stats.test/page"


class ScriptedExecutor:
    """Raises the queued errors in order, then succeeds."""

    def __init__(self, *errors: Exception) -> None:
        self.errors = list(errors)
        self.calls = 0

    async def fetch(self, request: FetchRequest):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return make_response(request.url)


class AlwaysFailing:
    def __init__(self, error: Exception) -> None:
        self.error = error
        self.calls = 0

    async def fetch(self, request: FetchRequest):
        self.calls += 1
        raise self.error


def _network_error() -> NetworkError:
    return NetworkError(URL, ConnectionResetError("reset by peer"))


# ===========================================================================
# Retryable errors
# ===========================================================================

class TestRetryableErrors:
    async def test_recovers_after_two_network_errors(self, sleep_recorder):
        executor = ScriptedExecutor(_network_error(), _network_error())
        policy = RetryPolicy(executor, max_retries=3, base_delay=1.0, sleep=sleep_recorder)

        resp = await policy.fetch(FetchRequest(url=URL))

        assert resp.status_code == 200
        assert executor.calls == 3
        assert sleep_recorder.delays == [1.0, 2.0]
        assert sleep_recorder.delays == sorted(sleep_recorder.delays)

    async def test_timeouts_are_retried(self, sleep_recorder):
        executor = ScriptedExecutor(FetchTimeoutError(URL, 100))
        policy = RetryPolicy(executor, max_retries=3, sleep=sleep_recorder)

        await policy.fetch(FetchRequest(url=URL))

        assert executor.calls == 2

    async def test_persistent_failure_stops_after_max_retries(self, sleep_recorder):
        executor = AlwaysFailing(_network_error())
        policy = RetryPolicy(executor, max_retries=3, base_delay=0.5, sleep=sleep_recorder)

        with pytest.raises(NetworkError):
            await policy.fetch(FetchRequest(url=URL))

        assert executor.calls == 4  # first attempt + 3 retries
        assert sleep_recorder.delays == [0.5, 1.0, 2.0]

    async def test_delay_is_capped(self, sleep_recorder):
        executor = AlwaysFailing(_network_error())
        policy = RetryPolicy(executor, max_retries=4, base_delay=1.0, max_delay=3.0, sleep=sleep_recorder)

        with pytest.raises(NetworkError):
            await policy.fetch(FetchRequest(url=URL))

        assert sleep_recorder.delays == [1.0, 2.0, 3.0, 3.0]

    async def test_zero_retries_means_single_attempt(self, sleep_recorder):
        executor = AlwaysFailing(_network_error())
        policy = RetryPolicy(executor, max_retries=0, sleep=sleep_recorder)

        with pytest.raises(NetworkError):
            await policy.fetch(FetchRequest(url=URL))

        assert executor.calls == 1
        assert sleep_recorder.delays == []


# ===========================================================================
# Non-retryable errors
# ===========================================================================

class TestNonRetryableErrors:
    @pytest.mark.parametrize(
        "error",
        [HttpError(URL, 500), HttpError(URL, 404), RateLimitError(URL, retry_after_ms=2000)],
    )
    async def test_raised_on_first_attempt(self, error, sleep_recorder):
        executor = AlwaysFailing(error)
        policy = RetryPolicy(executor, max_retries=3, sleep=sleep_recorder)

        with pytest.raises(type(error)):
            await policy.fetch(FetchRequest(url=URL))

        assert executor.calls == 1
        assert sleep_recorder.delays == []


class TestFromConfig:
    async def test_uses_pipeline_settings(self, sleep_recorder):
        config = PipelineConfig(max_retries=1, retry_delay_ms=250)
        executor = AlwaysFailing(_network_error())
        policy = RetryPolicy.from_config(executor, config, sleep=sleep_recorder)

        with pytest.raises(NetworkError):
            await policy.fetch(FetchRequest(url=URL))

        assert executor.calls == 2
        assert sleep_recorder.delays == [0.25]
