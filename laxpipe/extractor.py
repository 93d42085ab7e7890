"""
Per-source extraction orchestration.

A ``SourceExtractor`` subclass declares its source tag, valid seasons and
entities, and implements :meth:`SourceExtractor.fetch_entity`. The base class
decides skip vs. re-extract from the manifest, times each entity, writes
``<output_dir>/<source>/<season>/<entity>.json`` and records the outcome.
Entity failures are logged and recorded; only ``StorageError`` escapes a run.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Awaitable, Callable, ClassVar, List, Optional, Sequence, Tuple

from pydantic import TypeAdapter

from .config import ExtractConfig, PipelineConfig
from .errors import RateLimitError
from .manifest import ManifestStore, is_timestamp_stale, write_json_atomic
from .models import EntityOutcome, EntityStatus, ExtractionManifest, ExtractOptions, RunSummary

logger = logging.getLogger(__name__)

DEFAULT_RATE_LIMIT_BACKOFF_MS = 1000

_JSONABLE: TypeAdapter[Any] = TypeAdapter(Any)


def should_extract(
    status: Optional[EntityStatus], options: ExtractOptions, now: Optional[datetime] = None
) -> bool:
    if not options.skip_existing:
        return True
    if status is None or not status.extracted:
        return True
    if options.max_age_hours is None:
        return False
    return is_timestamp_stale(status.timestamp, options.max_age_hours, now)


def record_count(data: Any) -> int:
    return len(data) if isinstance(data, (list, tuple)) else 1


def to_jsonable(data: Any) -> Any:
    """JSON-native copy of ``data``; pydantic models, dates and the like are converted."""
    return _JSONABLE.dump_python(data, mode="json")


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class SourceExtractor(ABC):
    """Base class for per-source extractors."""

    source: ClassVar[str]
    seasons: ClassVar[Tuple[int, ...]]
    default_season: ClassVar[int]
    entities: ClassVar[Tuple[str, ...]]
    # Only run when ``ExtractOptions.include_schedule`` is set.
    optional_entities: ClassVar[Tuple[str, ...]] = ()

    def __init__(
        self,
        *,
        config: Optional[ExtractConfig] = None,
        store: Optional[ManifestStore] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> None:
        self.config = config or ExtractConfig.from_env()
        self.store = store or ManifestStore(self.source, self.all_entities(), self.config.output_dir)
        self._sleep = sleep or asyncio.sleep

    @classmethod
    def all_entities(cls) -> Tuple[str, ...]:
        return cls.entities + cls.optional_entities

    @classmethod
    @abstractmethod
    def from_config(cls, pipeline_config: PipelineConfig, extract_config: ExtractConfig) -> "SourceExtractor":
        """Build the extractor with its source client wired from configuration."""

    @abstractmethod
    async def fetch_entity(self, entity: str, season: int) -> Any:
        """Fetch one entity for one season from the source."""

    async def aclose(self) -> None:
        """Release network resources held by the source client."""

    async def __aenter__(self) -> "SourceExtractor":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def output_path(self, season: int, entity: str) -> Path:
        return Path(self.config.output_dir) / self.source / str(season) / f"{entity}.json"

    # ---------------------------------------------- #
    # Single entity
    async def _pause(self, delay_ms: int) -> None:
        if delay_ms > 0:
            await self._sleep(delay_ms / 1000)

    async def _fetch_with_backoff(self, entity: str, season: int) -> Any:
        attempts = self.config.rate_limit_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return await self.fetch_entity(entity, season)
            except RateLimitError as e:
                if attempt == attempts:
                    raise
                delay_ms = e.retry_after_ms if e.retry_after_ms is not None else DEFAULT_RATE_LIMIT_BACKOFF_MS
                logger.warning(
                    "%s %s %s rate limited (attempt %d/%d - waiting %dms)",
                    self.source,
                    season,
                    entity,
                    attempt,
                    attempts,
                    delay_ms,
                )
                await self._pause(delay_ms)
        raise RuntimeError("Unreachable rate limit loop")

    async def extract_entity(self, manifest: ExtractionManifest, season: int, entity: str) -> EntityOutcome:
        started = time.monotonic()
        try:
            data = await self._fetch_with_backoff(entity, season)
            payload = to_jsonable(data)
        except Exception as e:
            duration_ms = _elapsed_ms(started)
            logger.error("✗ %s %s %s failed after %dms: %s", self.source, season, entity, duration_ms, e)
            logger.debug("Failure details for %s %s %s", self.source, season, entity, exc_info=True)
            self.store.mark_failed(manifest, season, entity)
            self.store.save(manifest)
            return EntityOutcome(
                season=str(season),
                entity=entity,
                status="failed",
                duration_ms=duration_ms,
                error=f"{type(e).__name__}: {e}",
            )

        duration_ms = _elapsed_ms(started)
        count = record_count(data)
        write_json_atomic(self.output_path(season, entity), payload)
        self.store.mark_complete(manifest, season, entity, count, duration_ms)
        self.store.save(manifest)
        logger.info("✓ %s %s %s: %d items (%dms)", self.source, season, entity, count, duration_ms)
        return EntityOutcome(
            season=str(season), entity=entity, status="extracted", count=count, duration_ms=duration_ms
        )

    # ---------------------------------------------- #
    # Seasons
    async def _extract_season(
        self, manifest: ExtractionManifest, season: int, options: ExtractOptions
    ) -> List[EntityOutcome]:
        entities = list(self.entities)
        if options.include_schedule:
            entities.extend(self.optional_entities)

        self.store.season(manifest, season)
        outcomes: List[EntityOutcome] = []
        for entity in entities:
            status = self.store.status(manifest, season, entity)
            if not should_extract(status, options):
                logger.info(
                    "Skipping %s %s %s (extracted %s)", self.source, season, entity, status.timestamp
                )
                outcomes.append(
                    EntityOutcome(season=str(season), entity=entity, status="skipped", count=status.count)
                )
                continue

            if entity in self.optional_entities:
                await self._pause(self.config.delay_between_batches_ms)
            outcomes.append(await self.extract_entity(manifest, season, entity))
            await self._pause(self.config.delay_between_requests_ms)
        return outcomes

    async def _run(self, seasons: Sequence[int], options: ExtractOptions) -> RunSummary:
        started = time.monotonic()
        manifest = self.store.load()
        self.store.touch(manifest)

        outcomes: List[EntityOutcome] = []
        for index, season in enumerate(seasons, start=1):
            if len(seasons) > 1:
                logger.info("[%d/%d] Extracting %s season %s", index, len(seasons), self.source, season)
            outcomes.extend(await self._extract_season(manifest, season, options))

        self.store.save(manifest)
        summary = RunSummary(manifest=manifest, outcomes=outcomes, duration_ms=_elapsed_ms(started))
        logger.info(
            "%s run finished in %dms: %d extracted, %d skipped, %d failed",
            self.source,
            summary.duration_ms,
            summary.extracted,
            summary.skipped,
            summary.failed,
        )
        return summary

    async def extract_season(self, season: int, options: Optional[ExtractOptions] = None) -> RunSummary:
        if season not in self.seasons:
            raise ValueError(f"{season} is not a valid {self.source} season")
        return await self._run([season], options or ExtractOptions())

    async def extract_all(self, options: Optional[ExtractOptions] = None) -> RunSummary:
        options = options or ExtractOptions()
        seasons = [
            season
            for season in self.seasons
            if (options.start_year is None or season >= options.start_year)
            and (options.end_year is None or season <= options.end_year)
        ]
        logger.info("Extracting %d %s seasons", len(seasons), self.source)
        return await self._run(seasons, options)
