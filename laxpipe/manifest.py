"""
Manifest store: durable per-source record of which season/entity pairs have
been extracted and when.

The manifest lives at ``<output_dir>/<source>/manifest.json`` and is
replaced atomically on every save.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Optional, Union

from pydantic import ValidationError

from .errors import StorageError
from .models import (
    EntityStatus,
    ExtractionManifest,
    SeasonManifest,
    parse_iso,
    to_iso,
    utc_now,
)

logger = logging.getLogger(__name__)

MANIFEST_FILE = "manifest.json"


def write_json_atomic(path: Path, data: Any) -> None:
    """Write pretty-printed JSON via temp file + rename. Raises ``StorageError``."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
                f.write("\n")
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
    except OSError as e:
        raise StorageError(str(path), e) from e


def is_timestamp_stale(
    timestamp: str, max_age_hours: Optional[float], now: Optional[datetime] = None
) -> bool:
    """No timestamp -> stale; no max age -> never stale; else age > max age."""
    if not timestamp:
        return True
    if max_age_hours is None:
        return False
    try:
        then = parse_iso(timestamp)
    except ValueError:
        logger.warning("Unparseable manifest timestamp %r, treating as stale", timestamp)
        return True
    age_hours = ((now or utc_now()) - then).total_seconds() / 3600
    return age_hours > max_age_hours


class ManifestStore:
    """Loads, mutates and persists the ``ExtractionManifest`` of one source."""

    def __init__(self, source: str, entities: Iterable[str], output_dir: Union[str, Path]) -> None:
        self.source = source
        self.entities = tuple(entities)
        self.path = Path(output_dir) / source / MANIFEST_FILE

    def empty(self) -> ExtractionManifest:
        return ExtractionManifest(source=self.source)

    def load(self) -> ExtractionManifest:
        if not self.path.exists():
            logger.info("No manifest at %s, starting fresh", self.path)
            return self.empty()

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            manifest = ExtractionManifest.model_validate(data)
        except (OSError, ValueError, ValidationError) as e:
            logger.warning("Invalid manifest at %s, starting fresh: %s", self.path, e)
            return self.empty()

        if manifest.source != self.source:
            logger.warning(
                "Manifest at %s belongs to source %r, expected %r; starting fresh",
                self.path,
                manifest.source,
                self.source,
            )
            return self.empty()

        for season, statuses in manifest.seasons.items():
            unknown = set(statuses) - set(self.entities)
            for entity in unknown:
                logger.warning("Dropping unknown entity %r from season %s", entity, season)
                del statuses[entity]
        return manifest

    def save(self, manifest: ExtractionManifest) -> None:
        write_json_atomic(self.path, manifest.to_json_dict())
        logger.debug("Saved manifest to %s", self.path)

    # ---------------------------------------------- #
    # Mutators
    def season(self, manifest: ExtractionManifest, season: Union[int, str]) -> SeasonManifest:
        """Season entry, created with empty statuses for every entity if missing."""
        statuses = manifest.seasons.setdefault(str(season), {})
        for entity in self.entities:
            statuses.setdefault(entity, EntityStatus())
        return statuses

    def mark_complete(
        self,
        manifest: ExtractionManifest,
        season: Union[int, str],
        entity: str,
        count: int,
        duration_ms: int,
    ) -> EntityStatus:
        status = EntityStatus(
            extracted=True, count=count, timestamp=to_iso(utc_now()), duration_ms=duration_ms
        )
        self.season(manifest, season)[entity] = status
        return status

    def mark_failed(self, manifest: ExtractionManifest, season: Union[int, str], entity: str) -> EntityStatus:
        status = EntityStatus()
        self.season(manifest, season)[entity] = status
        return status

    @staticmethod
    def touch(manifest: ExtractionManifest) -> None:
        manifest.last_run = to_iso(utc_now())

    # ---------------------------------------------- #
    # Queries
    @staticmethod
    def status(manifest: ExtractionManifest, season: Union[int, str], entity: str) -> Optional[EntityStatus]:
        return manifest.seasons.get(str(season), {}).get(entity)

    def is_extracted(self, manifest: ExtractionManifest, season: Union[int, str], entity: str) -> bool:
        status = self.status(manifest, season, entity)
        return bool(status and status.extracted)

    def is_stale(
        self,
        manifest: ExtractionManifest,
        season: Union[int, str],
        entity: str,
        max_age_hours: Optional[float],
        now: Optional[datetime] = None,
    ) -> bool:
        status = self.status(manifest, season, entity)
        if status is None or not status.extracted:
            return True
        return is_timestamp_stale(status.timestamp, max_age_hours, now)

    def format_status(self, manifest: ExtractionManifest) -> str:
        lines = [f"Manifest: {self.source}", f"Last run: {manifest.last_run or 'never'}"]
        for season in sorted(manifest.seasons):
            lines.append(f"  {season}:")
            statuses = manifest.seasons[season]
            for entity in self.entities:
                status = statuses.get(entity)
                if status and status.extracted:
                    detail = f"✓ {status.count} items"
                    if status.duration_ms is not None:
                        detail += f" ({status.duration_ms}ms)"
                else:
                    detail = "✗ not extracted"
                lines.append(f"    {entity}: {detail}")
        return "\n".join(lines)
