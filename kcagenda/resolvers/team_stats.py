# kcagenda/resolvers/team_stats.py

import logging
from typing import Any, Dict, List, Optional, Tuple

from bs4 import BeautifulSoup

from kcagenda.config import LOL, LOL_FANDOM_URL
from kcagenda.errors import FetchTimeout
from kcagenda.models import LolChampionStats, LolPlayerStats, TeamStats
from kcagenda.names import correct_name, is_placeholder, wiki_slug

logger = logging.getLogger(__name__)

STATS_READY_SELECTOR = "table.wikitable, div.noarticletext"
TOP_CHAMPIONS = 5


def _cell_text(cells: List[Any], index: int) -> str:
    if index >= len(cells):
        return ""
    return cells[index].get_text(strip=True)


def _table_rows(table) -> List[Any]:
    return table.select("tbody tr") or table.select("tr")


def _parse_player_row(row) -> LolPlayerStats:
    cells = row.find_all("td")
    champions: List[str] = []
    if len(cells) > 20:
        for link in cells[20].select("a"):
            span = link.find("span", title=True)
            champions.append((span.get("title") or "").strip() if span else "")
    return LolPlayerStats(
        name=_cell_text(cells, 1),
        kda=_cell_text(cells, 9),
        csm=_cell_text(cells, 11),
        gm=_cell_text(cells, 13),
        dmgm=_cell_text(cells, 15),
        kpar=_cell_text(cells, 16),
        most_played_champions=champions,
    )


def find_champion_table(soup: BeautifulSoup):
    """
    Locate the "By Champion" table.

    Starts at the section anchor, climbs to its h3, then walks up to the
    nearest div that also holds a wikitable. Layout differs between team
    pages, so no fixed path is used.
    """
    anchor = soup.select_one("span#By_Champion")
    if anchor is None:
        return None
    heading = anchor.find_parent("h3")
    if heading is None:
        return None

    for parent in heading.parents:
        if parent.name == "div" and parent.select_one("table.wikitable") is not None:
            return parent.select_one("table.wikitable")
    return None


def parse_champion_table(table) -> Tuple[List[LolChampionStats], int]:
    rows = [row for row in _table_rows(table) if row.find("td") is not None]
    champions: List[LolChampionStats] = []
    for row in rows:
        if len(champions) >= TOP_CHAMPIONS:
            break
        cells = row.find_all("td")
        name_el = cells[0].select_one("span.markup-object-name")
        champion = name_el.get_text(strip=True) if name_el else ""
        if not champion:
            continue
        champions.append(
            LolChampionStats(
                champion=champion,
                games_played=_cell_text(cells, 1),
                win_rate=_cell_text(cells, 5),
                kda=_cell_text(cells, 9),
                csm=_cell_text(cells, 11),
                gm=_cell_text(cells, 13),
                dmgm=_cell_text(cells, 15),
                kpar=_cell_text(cells, 16),
            )
        )
    return champions, len(rows)


def parse_team_stats_html(html: str) -> TeamStats:
    """Parse a team statistics page; missing page or tables give empty stats."""
    soup = BeautifulSoup(html, "html.parser")
    if soup.select_one("div.noarticletext") is not None:
        return TeamStats.empty()

    player_table = soup.select_one("table.wikitable")
    if player_table is None:
        return TeamStats.empty()

    players = [p for p in (_parse_player_row(row) for row in _table_rows(player_table)) if p.kda]

    champion_table = find_champion_table(soup)
    if champion_table is None:
        return TeamStats(players=players)

    champions, total = parse_champion_table(champion_table)
    return TeamStats(players=players, champions=champions, number_of_champions_played=total)


class TeamStatsResolver:
    """Season statistics per team, memoized by (corrected name, season)."""

    def __init__(self, session):
        self.session = session
        self._cache: Dict[Tuple[str, int], TeamStats] = {}

    @staticmethod
    def stats_url(team_name: str, season: int) -> str:
        return f"{LOL_FANDOM_URL}/wiki/{wiki_slug(team_name)}/Statistics/{season}"

    async def resolve(self, team_name: str, season: int, league: Optional[str] = None) -> TeamStats:
        if is_placeholder(team_name):
            return TeamStats.empty()

        corrected = correct_name(team_name, LOL, league)
        key = (corrected, season)
        if key not in self._cache:
            self._cache[key] = await self._fetch(corrected, season)
        else:
            logger.debug("Team stats cache hit for %s %s", corrected, season)
        return self._cache[key]

    async def _fetch(self, team_name: str, season: int) -> TeamStats:
        url = self.stats_url(team_name, season)
        try:
            html = await self.session.get_html(url, selector=STATS_READY_SELECTOR)
        except FetchTimeout as e:
            logger.warning("Statistics page timed out for %s: %s", team_name, e)
            return TeamStats.empty()

        if html is None:
            logger.info("No statistics tables for %s (%s)", team_name, season)
            return TeamStats.empty()

        stats = parse_team_stats_html(html)
        if not stats.players:
            logger.info("No statistics page or player table for %s (%s)", team_name, season)
        return stats

