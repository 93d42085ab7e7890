"""
MLL Parser - Turns StatsCrew season/team pages and archived
majorleaguelacrosse.com schedule pages into MLL records.
"""

import logging
import re
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence

from bs4 import BeautifulSoup, Tag

from laxpipe.errors import DecodeError
from laxpipe.infra.parser import HtmlParser

from .models import (
    MLLGame,
    MLLGoalie,
    MLLGoalieStats,
    MLLPlayer,
    MLLPlayerStats,
    MLLStanding,
    MLLStatLeader,
    MLLTeam,
    WaybackSnapshot,
)

logger = logging.getLogger(__name__)

_html = HtmlParser()

_TEAM_LINK = re.compile(r"/lacrosse/stats/t-(MLL[A-Z]{2,3})/y-")
_ROSTER_LINK = re.compile(r"/lacrosse/roster/t-(MLL[A-Z]{2,3})/y-")
_ANY_TEAM_LINK = re.compile(r"/lacrosse/(?:stats|roster)/t-(MLL[A-Z]{2,3})/y-")
_PLAYER_LINK = re.compile(r"/lacrosse/stats/p-([a-z0-9]+)", re.IGNORECASE)
_NUMBER = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+))")
_SCHEDULE_TEAM = re.compile(r"[?&]team=(\d+)")

_MONTHS = {
    name: index
    for index, name in enumerate(
        (
            "january", "february", "march", "april", "may", "june",
            "july", "august", "september", "october", "november", "december",
        ),
        start=1,
    )
}
_SHORT_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{2})$")
_LONG_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_TEXT_DATE = re.compile(r"^([A-Za-z]+)\s+(\d{1,2}),?\s+(\d{4})$")


# --------------------------------------------------------------------------- #
# Cell helpers
# --------------------------------------------------------------------------- #
def parse_number(text: str) -> Optional[float]:
    """Leading number of ``text`` (".750" -> 0.75, "12%" -> 12.0), else None."""
    match = _NUMBER.match(text)
    return float(match.group(1)) if match else None


def _num(cells: Sequence[Tag], idx: int) -> float:
    if idx < 0 or idx >= len(cells):
        return 0.0
    return parse_number(cells[idx].get_text().strip()) or 0.0


def _opt_num(cells: Sequence[Tag], idx: int) -> Optional[float]:
    if idx < 0 or idx >= len(cells):
        return None
    return parse_number(cells[idx].get_text().strip())


def _opt_int(value: Optional[float]) -> Optional[int]:
    return None if value is None else int(value)


def _headers(table: Tag) -> List[str]:
    first_row = table.find("tr")
    if first_row is None:
        return []
    return [cell.get_text().strip().lower() for cell in first_row.find_all(["th", "td"])]


def _index(headers: List[str], *names: str) -> int:
    for i, header in enumerate(headers):
        if header in names:
            return i
    return -1


def _data_rows(table: Tag) -> Iterable[List[Tag]]:
    for row in table.find_all("tr")[1:]:
        yield row.find_all("td")


def _player_id(cell: Tag, name: str) -> str:
    """StatsCrew player id from the cell link, else the squashed lower-case name."""
    anchor = cell.find("a")
    match = _PLAYER_LINK.search(anchor.get("href", "")) if anchor else None
    return match.group(1) if match else re.sub(r"\s+", "", name.lower())


# --------------------------------------------------------------------------- #
# Teams
# --------------------------------------------------------------------------- #
def _teams_from_links(soup: BeautifulSoup, selector: str, pattern: re.Pattern) -> List[MLLTeam]:
    teams: List[MLLTeam] = []
    seen = set()
    for link in soup.select(selector):
        match = pattern.search(link.get("href", ""))
        if not match or match.group(1) in seen:
            continue
        code = match.group(1)
        seen.add(code)
        teams.append(
            MLLTeam(id=code, name=link.get_text().strip(), abbreviation=code.replace("MLL", "", 1))
        )
    return teams


def parse_teams(html: str) -> List[MLLTeam]:
    """Teams linked from a StatsCrew season page; roster links as fallback."""
    soup = _html.load(html)
    teams = _teams_from_links(soup, 'a[href*="/lacrosse/stats/t-MLL"]', _TEAM_LINK)
    if not teams:
        teams = _teams_from_links(soup, 'a[href*="/lacrosse/roster/t-MLL"]', _ROSTER_LINK)
    return teams


# --------------------------------------------------------------------------- #
# Players
# --------------------------------------------------------------------------- #
def parse_players(html: str, team: MLLTeam) -> List[MLLPlayer]:
    """Players from the scoring table(s) of a StatsCrew team stats page."""
    soup = _html.load(html)
    players: List[MLLPlayer] = []
    seen = set()

    for table in soup.find_all("table"):
        headers = _headers(table)
        if not (
            {"gp", "g", "a", "pts"} <= set(headers)
            and ("player" in headers or "name" in headers)
        ):
            continue

        player_idx = _index(headers, "player", "name")
        pos_idx = _index(headers, "pos", "pos.")
        gp_idx = _index(headers, "gp")
        g_idx = _index(headers, "g")
        a_idx = _index(headers, "a")
        pts_idx = _index(headers, "pts")
        sh_idx = _index(headers, "sh")
        sh_pct_idx = _index(headers, "sh%", "s%")
        gb_idx = _index(headers, "gb")
        fo_idx = _index(headers, "fo")
        fow_idx = _index(headers, "fow")
        fo_pct_idx = _index(headers, "fo%")

        for cells in _data_rows(table):
            if len(cells) < max(player_idx, gp_idx, g_idx, a_idx) + 1:
                continue

            name = cells[player_idx].get_text().strip()
            if not name:
                continue
            player_id = _player_id(cells[player_idx], name)
            if player_id in seen:
                continue
            seen.add(player_id)

            faceoffs = _opt_num(cells, fo_idx)
            faceoffs_won = _opt_num(cells, fow_idx)
            first, _, last = name.partition(" ")
            position = cells[pos_idx].get_text().strip() if 0 <= pos_idx < len(cells) else None

            players.append(
                MLLPlayer(
                    id=player_id,
                    name=name,
                    first_name=first or None,
                    last_name=last or None,
                    position=position or None,
                    team_id=team.id,
                    team_name=team.name,
                    stats=MLLPlayerStats(
                        games_played=int(_num(cells, gp_idx)),
                        goals=int(_num(cells, g_idx)),
                        assists=int(_num(cells, a_idx)),
                        points=int(_num(cells, pts_idx)),
                        shots=_opt_int(_opt_num(cells, sh_idx)),
                        shot_pct=_opt_num(cells, sh_pct_idx),
                        ground_balls=_opt_int(_opt_num(cells, gb_idx)),
                        faceoffs_won=_opt_int(faceoffs_won),
                        faceoffs_lost=(
                            int(faceoffs - faceoffs_won)
                            if faceoffs is not None and faceoffs_won is not None
                            else None
                        ),
                        faceoff_pct=_opt_num(cells, fo_pct_idx),
                    ),
                )
            )
    return players


# --------------------------------------------------------------------------- #
# Goalies
# --------------------------------------------------------------------------- #
def _is_goalie_table(headers: List[str]) -> bool:
    columns = set(headers)
    if not ({"gp", "w", "l"} <= columns and columns & {"ga", "svs", "saves"}):
        return False
    if not columns & {"player", "name"}:
        return False
    # G/A/Pts without GA is a scoring table
    return not ({"g", "a", "pts"} <= columns and "ga" not in columns)


def parse_goalies(html: str, team: MLLTeam) -> List[MLLGoalie]:
    """Goalies from the GP/W/L/GA table of a StatsCrew team stats page."""
    soup = _html.load(html)
    goalies: List[MLLGoalie] = []
    seen = set()

    for table in soup.find_all("table"):
        headers = _headers(table)
        if not _is_goalie_table(headers):
            continue

        player_idx = _index(headers, "player", "name")
        gp_idx = _index(headers, "gp")
        w_idx = _index(headers, "w")
        l_idx = _index(headers, "l")
        ga_idx = _index(headers, "ga")
        svs_idx = _index(headers, "svs", "saves")
        gaa_idx = _index(headers, "gaa")
        sv_pct_idx = _index(headers, "sv%", "svpct", "sv pct")

        for cells in _data_rows(table):
            if len(cells) < max(player_idx, gp_idx, w_idx, l_idx) + 1:
                continue
            name = cells[player_idx].get_text().strip()
            if not name:
                continue
            goalie_id = _player_id(cells[player_idx], name)
            if goalie_id in seen:
                continue
            seen.add(goalie_id)

            first, _, last = name.partition(" ")
            goalies.append(
                MLLGoalie(
                    id=goalie_id,
                    name=name,
                    first_name=first or None,
                    last_name=last or None,
                    team_id=team.id,
                    team_name=team.name,
                    stats=MLLGoalieStats(
                        games_played=int(_num(cells, gp_idx)),
                        wins=int(_num(cells, w_idx)),
                        losses=int(_num(cells, l_idx)),
                        goals_against=int(_num(cells, ga_idx)),
                        saves=int(_num(cells, svs_idx)),
                        gaa=_opt_num(cells, gaa_idx),
                        save_pct=_opt_num(cells, sv_pct_idx),
                    ),
                )
            )
    return goalies


# --------------------------------------------------------------------------- #
# Standings
# --------------------------------------------------------------------------- #
def _is_team_header(header: str) -> bool:
    return header in ("team", "club", "name", "") or "team" in header


def parse_standings(html: str) -> List[MLLStanding]:
    """Standings rows from every W/L/GF/GA table on a StatsCrew season page."""
    soup = _html.load(html)
    standings: List[MLLStanding] = []

    for table in soup.find_all("table"):
        headers = _headers(table)
        if not ({"w", "l", "gf", "ga"} <= set(headers) and any(_is_team_header(h) for h in headers)):
            continue

        team_idx = next(i for i, h in enumerate(headers) if _is_team_header(h))
        w_idx = _index(headers, "w")
        l_idx = _index(headers, "l")
        gf_idx = _index(headers, "gf")
        ga_idx = _index(headers, "ga")
        pct_idx = _index(headers, "win%", "pct", "pct.", "w%")

        position = 1
        for cells in _data_rows(table):
            if len(cells) < max(team_idx, w_idx, l_idx) + 1:
                continue
            team_name = cells[team_idx].get_text().strip()
            if not team_name:
                continue

            anchor = cells[team_idx].find("a")
            match = _ANY_TEAM_LINK.search(anchor.get("href", "")) if anchor else None
            team_id = match.group(1) if match else f"MLL{team_name[:3].upper()}"

            wins = int(_num(cells, w_idx))
            losses = int(_num(cells, l_idx))
            goals_for = int(_num(cells, gf_idx))
            goals_against = int(_num(cells, ga_idx))

            if pct_idx >= 0:
                win_pct = _num(cells, pct_idx)
                if win_pct > 1:
                    win_pct /= 100
            else:
                win_pct = wins / (wins + losses) if wins + losses else 0.0

            standings.append(
                MLLStanding(
                    team_id=team_id,
                    team_name=team_name,
                    position=position,
                    wins=wins,
                    losses=losses,
                    games_played=wins + losses,
                    goals_for=goals_for,
                    goals_against=goals_against,
                    goal_diff=goals_for - goals_against,
                    win_pct=win_pct,
                )
            )
            position += 1
    return standings


# --------------------------------------------------------------------------- #
# Stat leaders
# --------------------------------------------------------------------------- #
_LEADER_COLUMNS = {"points": "pts", "goals": "g", "assists": "a"}


def _leader_stat_type(headers: List[str], previous: str) -> str:
    columns = set(headers)
    if "pts" in columns:
        return "points"
    if "g" in columns:
        return "goals"
    if "a" in columns:
        return "assists"
    return previous


def parse_stat_leaders(html: str) -> List[MLLStatLeader]:
    """
    Ranked rows from the points / goals / assists tables of a StatsCrew
    league leaders page. A table whose columns do not name its category
    inherits the category of the table before it.
    """
    soup = _html.load(html)
    leaders: List[MLLStatLeader] = []
    stat_type = "points"

    for table in soup.find_all("table"):
        headers = _headers(table)
        if "player" not in headers and "name" not in headers:
            continue

        stat_type = _leader_stat_type(headers, stat_type)
        player_idx = _index(headers, "player", "name")
        team_idx = _index(headers, "team")
        value_idx = _index(headers, _LEADER_COLUMNS[stat_type])
        if value_idx < 0:
            value_idx = max(player_idx, team_idx) + 1

        rank = 1
        for cells in _data_rows(table):
            if len(cells) < max(player_idx, value_idx) + 1:
                continue
            name = cells[player_idx].get_text().strip()
            if not name:
                continue
            value = parse_number(cells[value_idx].get_text().strip())
            if value is None:
                continue

            team_id = team_name = None
            if 0 <= team_idx < len(cells):
                team_name = cells[team_idx].get_text().strip() or None
                anchor = cells[team_idx].find("a")
                match = _ANY_TEAM_LINK.search(anchor.get("href", "")) if anchor else None
                team_id = match.group(1) if match else None

            leaders.append(
                MLLStatLeader(
                    player_id=_player_id(cells[player_idx], name),
                    player_name=name,
                    team_id=team_id,
                    team_name=team_name,
                    stat_type=stat_type,
                    stat_value=value,
                    rank=rank,
                )
            )
            rank += 1
    return leaders


# --------------------------------------------------------------------------- #
# Wayback schedule
# --------------------------------------------------------------------------- #
_CDX_FIELDS = ("urlkey", "timestamp", "original", "mimetype", "statuscode", "digest", "length")


def parse_cdx(payload) -> List[WaybackSnapshot]:
    """CDX ``output=json`` rows (first row is the header) -> status-200 snapshots."""
    if not isinstance(payload, list):
        raise DecodeError("CDX response is not an array")
    snapshots = []
    for row in payload[1:]:
        values: Dict[str, str] = {field: str(value) for field, value in zip(_CDX_FIELDS, row)}
        snapshot = WaybackSnapshot(**values)
        if snapshot.statuscode == "200":
            snapshots.append(snapshot)
    return snapshots


def _snapshot_priority(url: str) -> int:
    if "/schedule/league" in url:
        return 0
    if "/schedule.html" in url:
        return 1
    if url.endswith("/schedule/") or url.endswith("/schedule"):
        return 2
    if "/schedule.aspx" in url:
        return 3
    if "?team=" in url:
        return 4
    if "/events" in url:
        return 5
    return 6


def rank_snapshots(snapshots: Sequence[WaybackSnapshot]) -> List[WaybackSnapshot]:
    """League-wide schedule pages first; most recent capture first within a tier."""
    newest_first = sorted(snapshots, key=lambda s: s.timestamp, reverse=True)
    return sorted(newest_first, key=lambda s: _snapshot_priority(s.original))


def parse_date(text: str) -> Optional[str]:
    """``MM/DD/YY``, ``MM/DD/YYYY`` or ``Month D, YYYY`` -> ``YYYY-MM-DD``."""
    cleaned = text.strip()
    if not cleaned:
        return None

    year = month = day = None
    match = _SHORT_DATE.match(cleaned) or _LONG_DATE.match(cleaned)
    if match:
        month, day, year = (int(g) for g in match.groups())
        if year < 100:
            year += 1900 if year > 50 else 2000
    else:
        match = _TEXT_DATE.match(cleaned)
        if match:
            month = _MONTHS.get(match.group(1).lower())
            day, year = int(match.group(2)), int(match.group(3))

    if month is None:
        return None
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def _parse_score(text: str) -> Optional[int]:
    value = parse_number(text.replace("\xa0", " ").strip())
    return None if value is None else int(value)


def _team_key(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "", name.lower())[:10]


def parse_schedule(html: str, source_url: str, today: Optional[date] = None) -> List[MLLGame]:
    """Game rows (date, away team + score, home team + score) from a schedule page."""
    soup = _html.load(html)
    today = today or date.today()
    games: List[MLLGame] = []
    seen = set()

    for row in soup.find_all("tr"):
        cells = row.find_all("td", recursive=False)
        if len(cells) < 4:
            continue

        teams = []
        for idx, cell in enumerate(cells):
            anchor = cell.find("a")
            href = anchor.get("href", "") if anchor else ""
            name = (anchor.get_text().strip() if anchor else "") or cell.get_text().strip()
            if "team=" in href or ("/schedule" in href and len(name) > 2):
                team_match = _SCHEDULE_TEAM.search(href)
                teams.append((idx, name, team_match.group(1) if team_match else None))
        if len(teams) < 2:
            continue

        game_date = None
        for cell in cells[:3]:
            game_date = parse_date(cell.get_text())
            if game_date:
                break

        (away_idx, away_name, away_code), (home_idx, home_name, home_code) = teams[:2]
        away_score = _parse_score(cells[away_idx + 1].get_text()) if away_idx + 1 < len(cells) else None
        home_score = _parse_score(cells[home_idx + 1].get_text()) if home_idx + 1 < len(cells) else None

        game_id = f"{game_date or 'unknown'}-{_team_key(away_name)}-{_team_key(home_name)}"
        if game_id in seen:
            continue
        seen.add(game_id)

        if away_score is not None and home_score is not None:
            status = "final"
        elif game_date:
            status = "completed" if date.fromisoformat(game_date) < today else "scheduled"
        else:
            status = None

        games.append(
            MLLGame(
                id=game_id,
                date=game_date,
                status=status,
                home_team_id=f"MLL{home_code}" if home_code else f"MLL{_team_key(home_name).upper()[:3]}",
                away_team_id=f"MLL{away_code}" if away_code else f"MLL{_team_key(away_name).upper()[:3]}",
                home_team_name=home_name,
                away_team_name=away_name,
                home_score=home_score,
                away_score=away_score,
                source_url=source_url,
            )
        )

    # undated games last
    games.sort(key=lambda g: (g.date is None, g.date or ""))
    logger.debug("Parsed %d games from %s", len(games), source_url)
    return games
