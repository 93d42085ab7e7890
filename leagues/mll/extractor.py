"""
MLL Extractor - Season-by-season extraction of the MLL archive.
"""

import logging
from typing import Any

from laxpipe.config import ExtractConfig, PipelineConfig
from laxpipe.extractor import SourceExtractor
from laxpipe.infra.http import HttpClient
from laxpipe.infra.scraper import Scraper

from .client import MLLClient, MLLConfig

logger = logging.getLogger(__name__)

MLL_YEARS = tuple(range(2001, 2021))


class MLLExtractor(SourceExtractor):
    """Teams, players, goalies, standings and stat leaders per season; schedule on request."""

    source = "mll"
    seasons = MLL_YEARS
    default_season = 2019
    entities = ("teams", "players", "goalies", "standings", "stat-leaders")
    optional_entities = ("schedule",)

    def __init__(self, client: MLLClient, **kwargs):
        super().__init__(**kwargs)
        self.client = client

    @classmethod
    def from_config(cls, pipeline_config: PipelineConfig, extract_config: ExtractConfig) -> "MLLExtractor":
        http = HttpClient(config=pipeline_config)
        client = MLLClient(
            http,
            Scraper.from_config(http, pipeline_config),
            MLLConfig.from_env(),
            concurrency=extract_config.concurrency,
        )
        return cls(client, config=extract_config)

    async def fetch_entity(self, entity: str, season: int) -> Any:
        loaders = {
            "teams": self.client.get_teams,
            "players": self.client.get_players,
            "goalies": self.client.get_goalies,
            "standings": self.client.get_standings,
            "stat-leaders": self.client.get_stat_leaders,
            "schedule": self.client.get_schedule,
        }
        return await loaders[entity](season)

    async def aclose(self) -> None:
        await self.client.close()
