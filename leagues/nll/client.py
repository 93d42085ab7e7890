"""
NLL Client - JSON API client for National Lacrosse League season data.
"""

import json
import logging
import os
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, SecretStr

from laxpipe.errors import ConfigError, DecodeError
from laxpipe.infra.http import HttpClient
from laxpipe.infra.scraper import Scraper
from laxpipe.models import FetchRequest

logger = logging.getLogger(__name__)


class NLLConfig(BaseModel):
    base_url: str
    token: Optional[SecretStr] = None
    headers: Dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_env(cls) -> "NLLConfig":
        base_url = os.getenv("NLL_API_BASE_URL")
        if not base_url:
            raise ConfigError("NLL_API_BASE_URL must be set to extract NLL data")
        token = os.getenv("NLL_API_TOKEN")
        headers = {}
        if os.getenv("NLL_API_ORIGIN"):
            headers["Origin"] = os.environ["NLL_API_ORIGIN"]
            headers["Referer"] = os.environ["NLL_API_ORIGIN"].rstrip("/") + "/"
        return cls(base_url=base_url, token=token or None, headers=headers)

    def request_headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json", **self.headers}
        if self.token is not None:
            headers["Authorization"] = f"Bearer {self.token.get_secret_value()}"
        return headers


class NLLClient:
    """Each entity is one ``?data_type=<entity>&season_id=<id>`` GET."""

    def __init__(self, http: HttpClient, scraper: Scraper, config: NLLConfig):
        self.http = http
        self.scraper = scraper
        self.config = config

    async def close(self) -> None:
        await self.http.close()

    async def _get_list(self, data_type: str, season_id: int) -> List[Dict[str, Any]]:
        url = f"{self.config.base_url}?data_type={data_type}&season_id={season_id}"
        response = await self.scraper.scrape(FetchRequest(url=url, headers=self.config.request_headers()))
        try:
            payload = json.loads(response.body)
        except ValueError as e:
            raise DecodeError(f"Invalid JSON for NLL {data_type} (season {season_id}): {e}") from e

        if not isinstance(payload, list):
            raise DecodeError(
                f"Expected a JSON array for NLL {data_type} (season {season_id}), got {type(payload).__name__}"
            )
        logger.info("Fetched %d %s for NLL season %d", len(payload), data_type, season_id)
        return payload

    async def get_teams(self, season_id: int) -> List[Dict[str, Any]]:
        return await self._get_list("teams", season_id)

    async def get_players(self, season_id: int) -> List[Dict[str, Any]]:
        return await self._get_list("players", season_id)

    async def get_standings(self, season_id: int) -> List[Dict[str, Any]]:
        return await self._get_list("standings", season_id)

    async def get_schedule(self, season_id: int) -> List[Dict[str, Any]]:
        return await self._get_list("schedule", season_id)
