"""
Exception hierarchy for the extraction pipeline.

Fetch errors are split into retryable (transport) and non-retryable
(HTTP-level) kinds; ``RetryPolicy`` only looks at ``retryable``.
"""

from __future__ import annotations

from typing import Optional


class PipelineError(Exception):
    """Base class for every error raised by the pipeline."""

    retryable = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigError(PipelineError):
    """Required configuration is missing or invalid."""


# ---------------------------------------------- #
# Fetch errors
class FetchError(PipelineError):
    def __init__(self, message: str, *, url: str) -> None:
        super().__init__(message)
        self.url = url


class HttpError(FetchError):
    """Upstream answered with a 4xx/5xx status other than 429."""

    def __init__(self, url: str, status_code: int, reason: str = "") -> None:
        message = f"HTTP {status_code}"
        if reason:
            message = f"{message} {reason}"
        super().__init__(f"{message} for {url}", url=url)
        self.status_code = status_code


class FetchTimeoutError(FetchError):
    retryable = True

    def __init__(self, url: str, timeout_ms: int) -> None:
        super().__init__(f"Request to {url} timed out after {timeout_ms}ms", url=url)
        self.timeout_ms = timeout_ms


class RateLimitError(FetchError):
    """429 received. ``retry_after_ms`` comes from the Retry-After header."""

    status_code = 429

    def __init__(self, url: str, retry_after_ms: Optional[int] = None) -> None:
        message = f"Rate limited by {url}"
        if retry_after_ms is not None:
            message = f"{message} (retry after {retry_after_ms}ms)"
        super().__init__(message, url=url)
        self.retry_after_ms = retry_after_ms


class NetworkError(FetchError):
    retryable = True

    def __init__(self, url: str, cause: BaseException) -> None:
        super().__init__(f"Network error for {url}: {cause}", url=url)
        self.cause = cause


# ---------------------------------------------- #
# Decoding / parsing errors
class DecodeError(PipelineError):
    """A JSON payload could not be decoded or has an unexpected shape."""


class ParserError(PipelineError):
    """An HTML document could not be loaded."""


class SelectorError(PipelineError):
    def __init__(self, selector: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(f"Invalid selector {selector!r}: {cause}")
        self.selector = selector
        self.cause = cause


# ---------------------------------------------- #
# Storage
class StorageError(PipelineError):
    """Manifest or output file could not be written. Fatal for the run."""

    def __init__(self, path: str, cause: BaseException) -> None:
        super().__init__(f"Failed to write {path}: {cause}")
        self.path = path
        self.cause = cause
