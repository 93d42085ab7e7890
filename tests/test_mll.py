"""Tests for the MLL source: page parsing and the client against a fake StatsCrew."""

from __future__ import annotations

import json
from datetime import date

import pytest
from aiohttp import web

from conftest import make_response
from laxpipe.config import ExtractConfig, PipelineConfig
from laxpipe.errors import DecodeError
from laxpipe.infra.http import HttpClient
from laxpipe.infra.retry import RetryPolicy
from laxpipe.infra.scraper import Scraper
from leagues.mll import MLLClient, MLLConfig, MLLExtractor
from leagues.mll.models import MLLTeam, WaybackSnapshot
from leagues.mll.parser import (
    parse_cdx,
    parse_date,
    parse_goalies,
    parse_players,
    parse_schedule,
    parse_standings,
    parse_stat_leaders,
    parse_teams,
    rank_snapshots,
)

SEASON_PAGE = """
<html><body>
<table>
  <tr><th>Team</th><th>W</th><th>L</th><th>GF</th><th>GA</th><th>Pct</th></tr>
  <tr><td><a href="/lacrosse/stats/t-MLLDEN/y-2019">Denver Outlaws</a></td>
      <td>10</td><td>4</td><td>200</td><td>170</td><td>.714</td></tr>
  <tr><td><a href="/lacrosse/stats/t-MLLCHS/y-2019">Chesapeake Bayhawks</a></td>
      <td>7</td><td>7</td><td>180</td><td>185</td><td>50</td></tr>
  <tr><td></td><td>0</td><td>0</td><td>0</td><td>0</td><td></td></tr>
</table>
<a href="/lacrosse/stats/t-MLLDEN/y-2019">Denver Outlaws</a>
</body></html>
"""

TEAM_PAGE = """
<html><body>
<table><tr><th>Date</th><th>Opponent</th></tr><tr><td>6/1</td><td>X</td></tr></table>
<table>
  <tr><th>Player</th><th>Pos</th><th>GP</th><th>G</th><th>A</th><th>Pts</th>
      <th>Sh</th><th>Sh%</th><th>GB</th><th>FO</th><th>FOW</th><th>FO%</th></tr>
  <tr><td><a href="/lacrosse/stats/p-smithjo01">John Smith</a></td><td>A</td>
      <td>14</td><td>30</td><td>20</td><td>50</td><td>90</td><td>.333</td><td>25</td>
      <td>10</td><td>6</td><td>.600</td></tr>
  <tr><td>Max van Dyke</td><td></td><td>3</td><td>0</td><td>1</td><td>1</td>
      <td></td><td></td><td></td><td></td><td></td><td></td></tr>
  <tr><td><a href="/lacrosse/stats/p-smithjo01">John Smith</a></td><td>A</td>
      <td>14</td><td>30</td><td>20</td><td>50</td><td></td><td></td><td></td><td></td><td></td><td></td></tr>
  <tr><td>short</td></tr>
</table>
<table>
  <tr><th>Player</th><th>GP</th><th>W</th><th>L</th><th>GA</th><th>Svs</th><th>GAA</th><th>Sv%</th></tr>
  <tr><td><a href="/lacrosse/stats/p-doejo01">Joe Doe</a></td><td>12</td><td>8</td><td>4</td>
      <td>150</td><td>200</td><td>12.50</td><td>.571</td></tr>
  <tr><td>Backup Keeper</td><td>2</td><td>0</td><td>1</td><td>20</td><td>15</td><td></td><td></td></tr>
</table>
</body></html>
"""

LEADERS_PAGE = """
<html><body>
<table><tr><th>Season</th></tr><tr><td>2019</td></tr></table>
<table>
  <tr><th>Player</th><th>Team</th><th>Pts</th><th>G</th><th>A</th></tr>
  <tr><td><a href="/lacrosse/stats/p-smithjo01">John Smith</a></td>
      <td><a href="/lacrosse/stats/t-MLLDEN/y-2019">DEN</a></td><td>50</td><td>30</td><td>20</td></tr>
  <tr><td>Nobody</td><td></td><td>-</td><td></td><td></td></tr>
  <tr><td>Max van Dyke</td><td></td><td>1</td><td>0</td><td>1</td></tr>
</table>
<table>
  <tr><th>Player</th><th>Team</th><th>G</th></tr>
  <tr><td>John Smith</td><td>DEN</td><td>30</td></tr>
</table>
<table>
  <tr><th>Player</th><th>Team</th><th>A</th></tr>
  <tr><td>Jones</td><td>Chesapeake</td><td>25</td></tr>
</table>
<table>
  <tr><th>Rank</th><th>Player</th><th>Team</th></tr>
  <tr><td>1</td><td>Pat</td><td>BOS</td><td>9</td></tr>
</table>
</body></html>
"""

SCHEDULE_PAGE = """
<html><body><table>
<tr><td>06/01/06</td><td>7:00</td><td><a href="/schedule/?team=3">Denver</a></td><td>14</td>
    <td><a href="/schedule/?team=5">Boston</a></td><td>12</td></tr>
<tr><td>July 4, 2006</td><td>7:00</td><td><a href="/schedule/?team=5">Boston</a></td><td>&nbsp;</td>
    <td><a href="/schedule/?team=3">Denver</a></td><td></td></tr>
<tr><td>TBD</td><td><a href="/schedule/?team=1">Rochester</a></td><td></td>
    <td><a href="/schedule/?team=2">Long Island</a></td><td></td></tr>
<tr><td>header</td><td>only</td></tr>
</table></body></html>
"""


# ===========================================================================
# Page parsing
# ===========================================================================

class TestParseTeams:
    def test_dedupes_and_derives_abbreviation(self):
        teams = parse_teams(SEASON_PAGE)
        assert [(t.id, t.name, t.abbreviation) for t in teams] == [
            ("MLLDEN", "Denver Outlaws", "DEN"),
            ("MLLCHS", "Chesapeake Bayhawks", "CHS"),
        ]

    def test_falls_back_to_roster_links(self):
        html = '<a href="/lacrosse/roster/t-MLLBOS/y-2005">Boston Cannons</a>'
        teams = parse_teams(html)
        assert [t.id for t in teams] == ["MLLBOS"]

    def test_no_links(self):
        assert parse_teams("<html><body>nothing</body></html>") == []


class TestParsePlayers:
    def test_scoring_table(self):
        team = MLLTeam(id="MLLDEN", name="Denver Outlaws", abbreviation="DEN")
        players = parse_players(TEAM_PAGE, team)

        assert [p.id for p in players] == ["smithjo01", "maxvandyke"]
        smith, van_dyke = players
        assert (smith.first_name, smith.last_name, smith.position) == ("John", "Smith", "A")
        assert smith.team_id == "MLLDEN"
        assert smith.stats.points == 50
        assert smith.stats.shot_pct == pytest.approx(0.333)
        assert (smith.stats.faceoffs_won, smith.stats.faceoffs_lost) == (6, 4)
        assert van_dyke.last_name == "van Dyke"
        assert van_dyke.position is None
        assert van_dyke.stats.shots is None
        assert van_dyke.stats.faceoffs_lost is None


class TestParseGoalies:
    def test_goalie_table(self):
        team = MLLTeam(id="MLLDEN", name="Denver Outlaws", abbreviation="DEN")
        goalies = parse_goalies(TEAM_PAGE, team)

        assert [g.id for g in goalies] == ["doejo01", "backupkeeper"]
        starter, backup = goalies
        assert (starter.first_name, starter.last_name) == ("Joe", "Doe")
        assert (starter.stats.wins, starter.stats.losses) == (8, 4)
        assert (starter.stats.goals_against, starter.stats.saves) == (150, 200)
        assert starter.stats.gaa == pytest.approx(12.5)
        assert starter.stats.save_pct == pytest.approx(0.571)
        assert backup.stats.gaa is None
        assert backup.team_id == "MLLDEN"

    def test_scoring_table_is_not_a_goalie_table(self):
        team = MLLTeam(id="MLLDEN", name="Denver Outlaws", abbreviation="DEN")
        html = """<table><tr><th>Player</th><th>GP</th><th>W</th><th>L</th><th>Svs</th>
                  <th>G</th><th>A</th><th>Pts</th></tr>
                  <tr><td>Skater</td><td>1</td><td>1</td><td>0</td><td>0</td><td>2</td><td>1</td><td>3</td></tr></table>"""
        assert parse_goalies(html, team) == []


class TestParseStatLeaders:
    def test_categories_and_ranks(self):
        leaders = parse_stat_leaders(LEADERS_PAGE)

        assert [(row.stat_type, row.player_name, row.rank) for row in leaders] == [
            ("points", "John Smith", 1),
            ("points", "Max van Dyke", 2),
            ("goals", "John Smith", 1),
            ("assists", "Jones", 1),
            ("assists", "Pat", 1),
        ]
        smith = leaders[0]
        assert (smith.player_id, smith.team_id, smith.team_name) == ("smithjo01", "MLLDEN", "DEN")
        assert smith.stat_value == 50
        assert leaders[1].team_name is None
        assert leaders[3].team_id is None and leaders[3].team_name == "Chesapeake"
        assert leaders[3].stat_value == 25
        # no stat column: value is the column after the team
        assert leaders[4].stat_value == 9


class TestParseStandings:
    def test_rows_and_win_pct(self):
        standings = parse_standings(SEASON_PAGE)
        assert [s.team_id for s in standings] == ["MLLDEN", "MLLCHS"]
        den, chs = standings
        assert den.position == 1 and chs.position == 2
        assert den.win_pct == pytest.approx(0.714)
        assert chs.win_pct == pytest.approx(0.5)
        assert den.goal_diff == 30
        assert den.games_played == 14

    def test_computes_pct_without_column(self):
        html = """<table><tr><th>Team</th><th>W</th><th>L</th><th>GF</th><th>GA</th></tr>
                  <tr><td>Rochester</td><td>3</td><td>1</td><td>40</td><td>30</td></tr></table>"""
        (row,) = parse_standings(html)
        assert row.win_pct == pytest.approx(0.75)
        assert row.team_id == "MLLROC"


class TestSchedule:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("06/01/06", "2006-06-01"),
            ("6/1/2006", "2006-06-01"),
            ("July 4, 2006", "2006-07-04"),
            ("July 4 2006", "2006-07-04"),
            ("13/45/2006", None),
            ("Smarch 1, 2006", None),
            ("", None),
        ],
    )
    def test_parse_date(self, text, expected):
        assert parse_date(text) == expected

    def test_parse_schedule(self):
        games = parse_schedule(SCHEDULE_PAGE, "https://web.archive.org/web/2006/x", today=date(2006, 6, 15))

        assert len(games) == 3
        first, second, undated = games
        assert first.date == "2006-06-01"
        assert (first.away_team_name, first.home_team_name) == ("Denver", "Boston")
        assert (first.away_score, first.home_score) == (14, 12)
        assert first.status == "final"
        assert (first.away_team_id, first.home_team_id) == ("MLL3", "MLL5")
        assert second.status == "scheduled"
        assert second.away_score is None
        assert undated.date is None
        assert undated.status is None

    def test_cdx_rows(self):
        payload = [
            ["urlkey", "timestamp", "original", "mimetype", "statuscode", "digest", "length"],
            ["k", "20060801000000", "http://majorleaguelacrosse.com/schedule/?team=3", "text/html", "200", "a", "1"],
            ["k", "20060701000000", "http://majorleaguelacrosse.com/schedule/league/", "text/html", "200", "b", "1"],
            ["k", "20060901000000", "http://majorleaguelacrosse.com/schedule/league/", "text/html", "200", "c", "1"],
            ["k", "20060601000000", "http://majorleaguelacrosse.com/schedule/", "text/html", "404", "d", "1"],
        ]
        ranked = rank_snapshots(parse_cdx(payload))
        assert [s.digest for s in ranked] == ["c", "b", "a"]

    def test_cdx_must_be_array(self):
        with pytest.raises(DecodeError):
            parse_cdx({"error": "nope"})

    def test_cdx_header_only(self):
        assert parse_cdx([["urlkey"]]) == []


# ===========================================================================
# Client against a fake StatsCrew + Wayback
# ===========================================================================

def _statscrew_app() -> web.Application:
    app = web.Application()

    async def season(request):
        return web.Response(text=SEASON_PAGE, content_type="text/html")

    async def team(request):
        if request.match_info["team"] == "MLLCHS":
            return web.Response(status=404)
        return web.Response(text=TEAM_PAGE, content_type="text/html")

    async def cdx(request):
        assert request.query["from"] == "20060301"
        assert request.query["collapse"] == "digest"
        rows = [
            ["urlkey", "timestamp", "original", "mimetype", "statuscode", "digest", "length"],
            ["k", "20060801000000", "http://majorleaguelacrosse.com/schedule/league/", "text/html", "200", "a", "1"],
        ]
        return web.Response(text=json.dumps(rows), content_type="application/json")

    async def leaders(request):
        return web.Response(text=LEADERS_PAGE, content_type="text/html")

    async def snapshot(request):
        return web.Response(text=SCHEDULE_PAGE, content_type="text/html")

    app.router.add_get("/lacrosse/l-MLL/y-{year}", season)
    app.router.add_get("/lacrosse/stats/t-{team}/y-{year}", team)
    app.router.add_get("/lacrosse/leaders/l-MLL/y-{year}", leaders)
    app.router.add_get("/cdx", cdx)
    app.router.add_get("/web/{tail:.*}", snapshot)
    return app


@pytest.fixture
async def mll_client(serve):
    base = await serve(_statscrew_app())
    http = HttpClient()
    scraper = Scraper(RetryPolicy(http, max_retries=0), prober=http)
    config = MLLConfig(statscrew_base_url=base, wayback_cdx_url=f"{base}/cdx", wayback_web_url=f"{base}/web")
    client = MLLClient(http, scraper, config)
    yield client
    await client.close()


class TestMLLClient:
    async def test_teams(self, mll_client):
        teams = await mll_client.get_teams(2019)
        assert [t.id for t in teams] == ["MLLDEN", "MLLCHS"]

    async def test_players_skip_missing_team_pages(self, mll_client):
        players = await mll_client.get_players(2019)
        assert {p.team_id for p in players} == {"MLLDEN"}
        assert len(players) == 2

    async def test_goalies_skip_missing_team_pages(self, mll_client):
        goalies = await mll_client.get_goalies(2019)
        assert [g.id for g in goalies] == ["doejo01", "backupkeeper"]

    async def test_stat_leaders(self, mll_client):
        leaders = await mll_client.get_stat_leaders(2019)
        assert len(leaders) == 5

    async def test_standings(self, mll_client):
        standings = await mll_client.get_standings(2019)
        assert len(standings) == 2

    async def test_schedule_from_wayback(self, mll_client):
        games = await mll_client.get_schedule(2006)
        assert len(games) == 3
        assert games[0].source_url.endswith("/20060801000000/http://majorleaguelacrosse.com/schedule/league/")

    async def test_extractor_writes_season(self, mll_client, extract_config):
        extractor = MLLExtractor(mll_client, config=extract_config)
        summary = await extractor.extract_season(2019)

        assert summary.failed == 0
        statuses = summary.manifest.seasons["2019"]
        assert statuses["players"].count == 2
        assert statuses["goalies"].count == 2
        assert statuses["stat-leaders"].count == 5
        assert "schedule" in statuses and not statuses["schedule"].extracted
        written = json.loads((extract_config.output_dir / "mll" / "2019" / "standings.json").read_text())
        assert written[0]["team_id"] == "MLLDEN"


def test_extractor_declaration():
    assert MLLExtractor.seasons[0] == 2001
    assert MLLExtractor.seasons[-1] == 2020
    assert MLLExtractor.default_season == 2019
    assert MLLExtractor.all_entities() == (
        "teams", "players", "goalies", "standings", "stat-leaders", "schedule",
    )


def test_snapshot_defaults():
    assert WaybackSnapshot().statuscode == ""


class _StatsCrewPages:
    async def fetch(self, request):
        return make_response(request.url, body=TEAM_PAGE if "/t-MLL" in request.url else SEASON_PAGE)


class _RecordingScraper(Scraper):
    batch_concurrency = None

    async def scrape_batch(self, urls, headers=None, timeout_ms=None, concurrency=None):
        self.batch_concurrency = concurrency
        return await super().scrape_batch(urls, headers, timeout_ms, concurrency)


async def test_team_pages_use_configured_concurrency():
    scraper = _RecordingScraper(_StatsCrewPages())
    client = MLLClient(HttpClient(), scraper, MLLConfig(), concurrency=2)

    goalies = await client.get_goalies(2019)

    assert scraper.batch_concurrency == 2
    # same goalies on both pages: kept once, under the first team
    assert [g.team_id for g in goalies] == ["MLLDEN", "MLLDEN"]
    await client.close()


async def test_from_config_wires_extract_concurrency(tmp_path):
    extractor = MLLExtractor.from_config(PipelineConfig(), ExtractConfig(output_dir=tmp_path, concurrency=3))
    assert extractor.client.concurrency == 3
    await extractor.aclose()
