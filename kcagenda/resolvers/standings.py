# kcagenda/resolvers/standings.py
"""
League standings snapshots.

Each league's wiki page lays its standings out differently and names its
season phases differently, so parsing is done by one strategy per league
family. Bracket phases (play-offs, finals ...) have no table and resolve to
an empty list without touching the network.
"""

import logging
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional, Tuple

from bs4 import BeautifulSoup

from kcagenda.config import LOL_FANDOM_URL, ORGANIZATION_NAMES_BY_LEAGUE, TARGET_ORGANIZATION
from kcagenda.errors import FetchTimeout, UnknownLeagueStrategy
from kcagenda.models import RankingRow, to_utc

logger = logging.getLogger(__name__)

BRACKET_MATCH_TYPES = frozenset({
    "Play-offs",
    "Playoffs",
    "Finale",
    "Finals",
    "Final",
})

SWISS_MATCH_TYPES = frozenset({"Système suisse", "Swiss Stage"})


def season_for(match_date: datetime) -> int:
    """Season year of a match; late-December matches open the next season."""
    date = to_utc(match_date)
    if date.month == 12 and date.day >= 21:
        return date.year + 1
    return date.year


def split_for(match_date: datetime, winter_split: Optional[str]) -> Optional[str]:
    """
    Season phase for a date.

    Winter: Dec 21 - Mar 20 (only for leagues that have one),
    Spring: Mar 21 - Jun 20, Summer: Jun 21 - Sep 30, none otherwise.
    """
    date = to_utc(match_date)
    month_day = (date.month, date.day)
    if month_day >= (12, 21) or month_day < (3, 21):
        return winter_split
    if month_day < (6, 21):
        return "Spring"
    if month_day <= (9, 30):
        return "Summer"
    return None


def _series_cells(cells) -> Tuple[str, str, str]:
    record = cells[2].get_text(strip=True) if len(cells) > 2 else ""
    wins, _, losses = record.partition("-")
    percentage = cells[3].get_text(strip=True)[:-1] if len(cells) > 3 else ""
    return wins.strip(), losses.strip(), percentage


def _highlighted_rows(table) -> List:
    rows = table.select("tbody tr") or table.select("tr")
    return [row for row in rows if row.get("data-teamhighlight")]


def _parse_league_rows(table, region: str) -> List[RankingRow]:
    ranking: List[RankingRow] = []
    for row in _highlighted_rows(table):
        cells = row.find_all("td")[:-1]
        if len(cells) < 2:
            continue
        wins, losses, percentage = _series_cells(cells)
        ranking.append(
            RankingRow(
                position=cells[0].get_text(strip=True),
                team_name=cells[1].get_text(strip=True),
                region_name=region,
                wins=wins,
                losses=losses,
                percentage=percentage,
            )
        )
    return ranking


class StandingsStrategy:
    """Page layout and season naming for one league family."""

    region = ""
    winter_split: Optional[str] = None
    has_splits = True
    extra_bracket_types: FrozenSet[str] = frozenset()

    def split(self, match_date: datetime) -> Optional[str]:
        if not self.has_splits:
            return None
        return split_for(match_date, self.winter_split)

    def page_url(self, league: str, season: int) -> str:
        raise NotImplementedError

    def parse(self, html: str, split: Optional[str], match_type: str) -> Optional[List[RankingRow]]:
        raise NotImplementedError


class LFLStandings(StandingsStrategy):
    region = "LFL"
    winter_split = "Flash_In"

    def page_url(self, league: str, season: int) -> str:
        return f"{LOL_FANDOM_URL}/wiki/LFL/{season}_Season"

    def parse(self, html: str, split: Optional[str], match_type: str) -> Optional[List[RankingRow]]:
        soup = BeautifulSoup(html, "html.parser")
        if not split or soup.find("span", id=split) is None:
            return None

        if match_type in SWISS_MATCH_TYPES:
            tables = soup.select("table.wikitable2")
            if not tables:
                return None
            table = max(tables, key=lambda t: len(t.select("tbody tr") or t.select("tr")))
            return _parse_league_rows(table, self.region)

        highlight = ORGANIZATION_NAMES_BY_LEAGUE["LFL"]
        for table in soup.select("table.wikitable2.standings"):
            if table.select_one(f'tr[data-teamhighlight="{highlight}"]') is not None:
                return _parse_league_rows(table, self.region)
        return None


class LECStandings(StandingsStrategy):
    region = "LEC"
    winter_split = "Winter"

    def page_url(self, league: str, season: int) -> str:
        return f"{LOL_FANDOM_URL}/wiki/LEC/{season}_Season"

    def parse(self, html: str, split: Optional[str], match_type: str) -> Optional[List[RankingRow]]:
        soup = BeautifulSoup(html, "html.parser")
        anchor = soup.find("span", id=split) if split else None
        if anchor is None:
            return None
        heading = anchor.find_parent("h2")
        if heading is None:
            return None
        container = heading.find_next_sibling("div")
        table = container.select_one("table.wikitable2") if container is not None else None
        if table is None:
            return None
        return _parse_league_rows(table, self.region)


class InternationalEventStandings(StandingsStrategy):
    has_splits = False
    extra_bracket_types = frozenset({
        "Quarts de finale",
        "Quarterfinals",
        "Demi-finales",
        "Semifinals",
        "Play-ins",
    })

    PAGE_NAMES = {
        "First Stand": "First_Stand",
        "MSI": "Mid-Season_Invitational",
        "Mondial": "Season_World_Championship",
        "Worlds": "Season_World_Championship",
    }

    def page_url(self, league: str, season: int) -> str:
        page = self.PAGE_NAMES.get(league, league.replace(" ", "_"))
        return f"{LOL_FANDOM_URL}/wiki/{season}_{page}"

    def parse(self, html: str, split: Optional[str], match_type: str) -> Optional[List[RankingRow]]:
        soup = BeautifulSoup(html, "html.parser")
        target = None
        for table in soup.select("table.wikitable2"):
            if table.select_one(f'tr[data-teamhighlight="{TARGET_ORGANIZATION}"]') is not None:
                target = table
                break
        if target is None:
            return None

        ranking: List[RankingRow] = []
        for row in _highlighted_rows(target):
            all_cells = row.find_all("td")
            if len(all_cells) < 2:
                continue
            team_el = all_cells[1].find("span")
            region_el = all_cells[1].find("div")
            wins, losses, percentage = _series_cells(all_cells[:-1])
            ranking.append(
                RankingRow(
                    position=all_cells[0].get_text(strip=True),
                    team_name=team_el.get_text(strip=True) if team_el else "",
                    region_name=region_el.get_text(strip=True) if region_el else "",
                    wins=wins,
                    losses=losses,
                    percentage=percentage,
                )
            )
        return ranking


_LFL = LFLStandings()
_LEC = LECStandings()
_INTERNATIONAL = InternationalEventStandings()

STRATEGIES: Dict[str, StandingsStrategy] = {
    "LFL": _LFL,
    "La Ligue Française": _LFL,
    "LEC": _LEC,
    "First Stand": _INTERNATIONAL,
    "MSI": _INTERNATIONAL,
    "Mondial": _INTERNATIONAL,
    "Worlds": _INTERNATIONAL,
}


def strategy_for(league: str) -> StandingsStrategy:
    try:
        return STRATEGIES[league]
    except KeyError:
        raise UnknownLeagueStrategy(f"No standings strategy for league '{league}'")


class StandingsResolver:
    """Standings per league phase, memoized by league phase and season."""

    def __init__(self, session):
        self.session = session
        self._cache: Dict[Tuple[str, str, int, bool], Optional[List[RankingRow]]] = {}

    async def resolve(self, league: str, match_type: str, match_date: datetime) -> Optional[List[RankingRow]]:
        if match_type in BRACKET_MATCH_TYPES:
            return []

        try:
            strategy = strategy_for(league)
        except UnknownLeagueStrategy as e:
            logger.debug("%s", e)
            return None

        if match_type in strategy.extra_bracket_types:
            return []

        split = strategy.split(match_date)
        if strategy.has_splits and split is None:
            logger.info("No split covers %s for %s; skipping standings", match_date.date(), league)
            return None

        season = season_for(match_date)
        key = (league, split or league, season, match_type in SWISS_MATCH_TYPES)
        if key in self._cache:
            logger.debug("Standings cache hit for %s", key)
            return self._cache[key]

        ranking = await self._fetch(strategy, league, split, match_type, season)
        self._cache[key] = ranking
        return ranking

    async def _fetch(
        self,
        strategy: StandingsStrategy,
        league: str,
        split: Optional[str],
        match_type: str,
        season: int,
    ) -> Optional[List[RankingRow]]:
        url = strategy.page_url(league, season)
        try:
            html = await self.session.get_html(url, selector="table.wikitable2")
        except FetchTimeout as e:
            logger.warning("Standings page timed out for %s: %s", league, e)
            return None
        if html is None:
            logger.info("No standings table on %s", url)
            return None

        ranking = strategy.parse(html, split, match_type)
        if ranking is None:
            logger.info("Standings for %s (%s) not found on %s", league, split, url)
        return ranking
