"""
Core data models for the extraction pipeline.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Literal, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

MANIFEST_VERSION = 1


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    """ISO 8601 in UTC with millisecond precision and a ``Z`` suffix."""
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# ---------------------------------------------- #
# Fetching
class FetchRequest(BaseModel):
    """One HTTP GET to perform."""
    url: str
    headers: Dict[str, str] = Field(default_factory=dict)
    timeout_ms: Optional[int] = Field(default=None, gt=0)
    follow_redirects: bool = True

    @field_validator("url")
    @classmethod
    def _require_absolute_url(cls, value: str) -> str:
        parts = urlsplit(value)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError(f"not an absolute http(s) URL: {value!r}")
        return value


class FetchResponse(BaseModel):
    """A completed fetch. Header keys are lower-cased."""
    model_config = ConfigDict(frozen=True)

    url: str
    final_url: str
    status_code: int
    headers: Dict[str, str]
    body: str
    content_type: Optional[str] = None
    fetched_at: datetime = Field(default_factory=utc_now)
    duration_ms: int


class ScrapeResult(BaseModel):
    url: str
    success: bool
    response: Optional[FetchResponse] = None
    error: Optional[str] = None

    @model_validator(mode="after")
    def _response_xor_error(self) -> "ScrapeResult":
        if self.success and (self.response is None or self.error is not None):
            raise ValueError("successful result needs a response and no error")
        if not self.success and (self.error is None or self.response is not None):
            raise ValueError("failed result needs an error and no response")
        return self


class BatchScrapeResult(BaseModel):
    results: List[ScrapeResult]
    total_count: int
    success_count: int
    failure_count: int
    total_duration_ms: int


class PingResult(BaseModel):
    url: str
    accessible: bool
    status_code: Optional[int] = None
    duration_ms: int
    error: Optional[str] = None


# ---------------------------------------------- #
# HTML parsing
class ExtractedLink(BaseModel):
    href: str
    text: str
    title: Optional[str] = None


class ExtractedImage(BaseModel):
    src: str
    alt: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None


class ExtractedMeta(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    keywords: Optional[str] = None
    author: Optional[str] = None
    og_title: Optional[str] = None
    og_description: Optional[str] = None
    og_image: Optional[str] = None
    og_url: Optional[str] = None


class ParsedDocument(BaseModel):
    text: str
    meta: ExtractedMeta
    links: List[ExtractedLink] = Field(default_factory=list)
    images: List[ExtractedImage] = Field(default_factory=list)


class SelectorResult(BaseModel):
    matches: List[str]
    count: int


# ---------------------------------------------- #
# Manifest
class EntityStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    extracted: bool = False
    count: int = Field(default=0, ge=0)
    timestamp: str = ""
    duration_ms: Optional[int] = Field(default=None, alias="durationMs")

    @model_validator(mode="after")
    def _extracted_has_timestamp(self) -> "EntityStatus":
        if self.extracted and not self.timestamp:
            raise ValueError("extracted entity status requires a timestamp")
        return self


SeasonManifest = Dict[str, EntityStatus]


class ExtractionManifest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source: str
    seasons: Dict[str, SeasonManifest] = Field(default_factory=dict)
    last_run: str = Field(default="", alias="lastRun")
    version: Literal[1] = MANIFEST_VERSION

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------------------------------------------- #
# Extraction runs
class ExtractOptions(BaseModel):
    skip_existing: bool = True
    max_age_hours: Optional[float] = Field(default=None, ge=0)
    include_schedule: bool = False
    start_year: Optional[int] = None
    end_year: Optional[int] = None


class EntityOutcome(BaseModel):
    season: str
    entity: str
    status: Literal["extracted", "skipped", "failed"]
    count: int = 0
    duration_ms: Optional[int] = None
    error: Optional[str] = None


class RunSummary(BaseModel):
    manifest: ExtractionManifest
    outcomes: List[EntityOutcome] = Field(default_factory=list)
    duration_ms: int = 0

    def _count(self, status: str) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def extracted(self) -> int:
        return self._count("extracted")

    @property
    def skipped(self) -> int:
        return self._count("skipped")

    @property
    def failed(self) -> int:
        return self._count("failed")
