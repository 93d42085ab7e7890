"""
NLL Extractor - Season extraction for the National Lacrosse League API.
"""

from typing import Any

from laxpipe.config import ExtractConfig, PipelineConfig
from laxpipe.extractor import SourceExtractor
from laxpipe.infra.http import HttpClient
from laxpipe.infra.scraper import Scraper

from .client import NLLClient, NLLConfig

NLL_SEASONS = (225,)


class NLLExtractor(SourceExtractor):
    source = "nll"
    seasons = NLL_SEASONS
    default_season = 225
    entities = ("teams", "players", "standings")
    optional_entities = ("schedule",)

    def __init__(self, client: NLLClient, **kwargs):
        super().__init__(**kwargs)
        self.client = client

    @classmethod
    def from_config(cls, pipeline_config: PipelineConfig, extract_config: ExtractConfig) -> "NLLExtractor":
        nll_config = NLLConfig.from_env()
        http = HttpClient(config=pipeline_config)
        return cls(NLLClient(http, Scraper.from_config(http, pipeline_config), nll_config), config=extract_config)

    async def fetch_entity(self, entity: str, season: int) -> Any:
        loaders = {
            "teams": self.client.get_teams,
            "players": self.client.get_players,
            "standings": self.client.get_standings,
            "schedule": self.client.get_schedule,
        }
        return await loaders[entity](season)

    async def aclose(self) -> None:
        await self.client.close()
