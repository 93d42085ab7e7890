"""
MLL Client - Fetches Major League Lacrosse history (2001-2020) from StatsCrew
and archived schedules from the Wayback Machine.
"""

import json
import logging
import os
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlencode

from pydantic import BaseModel, Field

from laxpipe.errors import DecodeError, PipelineError
from laxpipe.infra.http import HttpClient
from laxpipe.infra.scraper import Scraper
from laxpipe.models import FetchRequest

from .models import MLLGame, MLLGoalie, MLLPlayer, MLLStanding, MLLStatLeader, MLLTeam
from .parser import (
    parse_cdx,
    parse_goalies,
    parse_players,
    parse_schedule,
    parse_standings,
    parse_stat_leaders,
    parse_teams,
    rank_snapshots,
)

logger = logging.getLogger(__name__)

HTML_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}
JSON_HEADERS = {"Accept": "application/json"}

# Schedule snapshots tried before giving up on a season
MAX_SCHEDULE_SNAPSHOTS = 3


class MLLConfig(BaseModel):
    statscrew_base_url: str = "https://www.statscrew.com"
    wayback_cdx_url: str = "https://web.archive.org/cdx/search/cdx"
    wayback_web_url: str = "https://web.archive.org/web"
    headers: Dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_env(cls) -> "MLLConfig":
        values = {
            "statscrew_base_url": os.getenv("MLL_STATSCREW_BASE_URL"),
            "wayback_cdx_url": os.getenv("MLL_WAYBACK_CDX_URL"),
            "wayback_web_url": os.getenv("MLL_WAYBACK_WEB_URL"),
        }
        return cls(**{k: v.rstrip("/") for k, v in values.items() if v})


class MLLClient:
    """HTML scraping client for the defunct MLL."""

    def __init__(
        self,
        http: HttpClient,
        scraper: Scraper,
        config: MLLConfig = None,
        concurrency: Optional[int] = None,
    ):
        self.http = http
        self.scraper = scraper
        self.config = config or MLLConfig()
        # team stats pages fetched at once; None uses the scraper default
        self.concurrency = concurrency

    async def close(self) -> None:
        await self.http.close()

    def _statscrew_url(self, path: str) -> str:
        return f"{self.config.statscrew_base_url}/{path.lstrip('/')}"

    async def _get(self, url: str, accept: Dict[str, str]) -> str:
        request = FetchRequest(url=url, headers={**self.config.headers, **accept})
        response = await self.scraper.scrape(request)
        return response.body

    # --------------------------------------------------------------------------- #
    # Entities
    # --------------------------------------------------------------------------- #
    async def get_teams(self, year: int) -> List[MLLTeam]:
        html = await self._get(self._statscrew_url(f"/lacrosse/l-MLL/y-{year}"), HTML_HEADERS)
        teams = parse_teams(html)
        logger.info("Fetched %d teams for MLL year %d", len(teams), year)
        return teams

    async def _team_pages(self, year: int) -> List[Tuple[MLLTeam, str]]:
        """Stats page HTML of every team of ``year``; missing pages are skipped."""
        teams = await self.get_teams(year)
        if not teams:
            return []

        urls = [self._statscrew_url(f"/lacrosse/stats/t-{team.id}/y-{year}") for team in teams]
        batch = await self.scraper.scrape_batch(
            urls,
            headers={**self.config.headers, **HTML_HEADERS},
            concurrency=self.concurrency,
        )
        if batch.success_count == 0:
            raise PipelineError(f"No MLL team stats pages could be fetched for {year}")

        pages = []
        for team, result in zip(teams, batch.results):
            if not result.success:
                # relocated/defunct teams have no stats page
                logger.warning("Skipping %s stats for %d: %s", team.id, year, result.error)
                continue
            pages.append((team, result.response.body))
        return pages

    async def get_players(self, year: int) -> List[MLLPlayer]:
        players: List[MLLPlayer] = []
        seen = set()
        for team, html in await self._team_pages(year):
            for player in parse_players(html, team):
                if player.id not in seen:
                    seen.add(player.id)
                    players.append(player)

        logger.info("Fetched %d players for MLL year %d", len(players), year)
        return players

    async def get_goalies(self, year: int) -> List[MLLGoalie]:
        goalies: List[MLLGoalie] = []
        seen = set()
        for team, html in await self._team_pages(year):
            for goalie in parse_goalies(html, team):
                if goalie.id not in seen:
                    seen.add(goalie.id)
                    goalies.append(goalie)

        logger.info("Fetched %d goalies for MLL year %d", len(goalies), year)
        return goalies

    async def get_stat_leaders(self, year: int) -> List[MLLStatLeader]:
        html = await self._get(self._statscrew_url(f"/lacrosse/leaders/l-MLL/y-{year}"), HTML_HEADERS)
        leaders = parse_stat_leaders(html)
        logger.info("Fetched %d stat leaders for MLL year %d", len(leaders), year)
        return leaders

    async def get_standings(self, year: int) -> List[MLLStanding]:
        html = await self._get(self._statscrew_url(f"/lacrosse/l-MLL/y-{year}"), HTML_HEADERS)
        standings = parse_standings(html)
        logger.info("Fetched %d standings for MLL year %d", len(standings), year)
        return standings

    async def get_schedule(self, year: int) -> List[MLLGame]:
        """Games from the best archived majorleaguelacrosse.com schedule page."""
        query = urlencode(
            {
                "url": "majorleaguelacrosse.com/schedule*",
                "output": "json",
                "from": f"{year}0301",
                "to": f"{year}1031",
                "collapse": "digest",
            }
        )
        body = await self._get(f"{self.config.wayback_cdx_url}?{query}", JSON_HEADERS)
        try:
            payload = json.loads(body) if body.strip() else []
        except ValueError as e:
            raise DecodeError(f"Invalid CDX JSON for MLL {year}: {e}") from e

        snapshots = rank_snapshots(parse_cdx(payload))
        logger.info("Found %d schedule snapshots for MLL year %d", len(snapshots), year)

        for snapshot in snapshots[:MAX_SCHEDULE_SNAPSHOTS]:
            url = f"{self.config.wayback_web_url}/{snapshot.timestamp}/{snapshot.original}"
            html = await self._get(url, HTML_HEADERS)
            games = parse_schedule(html, url)
            if games:
                logger.info("Fetched %d games for MLL year %d from %s", len(games), year, url)
                return games
        return []
