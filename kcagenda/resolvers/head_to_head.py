# kcagenda/resolvers/head_to_head.py
"""
Head-to-head statistics from a team's match-history query.

Every row of the history table is one game. Side percentages use all rows;
the vs-opponent figures use only rows against that opponent, grouped by day
into series.
"""

import logging
from collections import Counter, OrderedDict
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple

from bs4 import BeautifulSoup

from kcagenda.config import LOL_FANDOM_URL
from kcagenda.models import HeadToHeadStats
from kcagenda.names import query_term, wiki_slug

logger = logging.getLogger(__name__)

HISTORY_COLUMNS = 10
TOP_CHAMPIONS = 3


@dataclass
class HistoryRow:
    """One game of a team's match history."""

    date: str
    result: str
    side: str
    opponent: str
    champions: List[str] = field(default_factory=list)

    @property
    def is_win(self) -> bool:
        return self.result == "Win"

    @property
    def day(self) -> Optional[date]:
        return parse_history_date(self.date)


def parse_history_date(text: str) -> Optional[date]:
    value = (text or "").strip()
    if not value:
        return None
    for fmt in ("%Y-%m-%d", "%Y-%m-%d %H:%M", "%d %B %Y", "%B %d, %Y"):
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(value[:10]).date()
    except ValueError:
        return None


def match_history_url(team_name: str, season: int) -> str:
    return (
        f"{LOL_FANDOM_URL}/Special:RunQuery/MatchHistoryGame"
        f"?MHG%5Bpreload%5D=Team&MHG%5Bspl%5D=yes"
        f"&MHG%5Bstartdate%5D={season}-01-01"
        f"&MHG%5Bteam%5D={query_term(team_name)}&_run=true"
    )


def _span_titles(cell) -> List[str]:
    return [s.get("title", "").strip() for s in cell.find_all("span") if s.get("title")]


def parse_match_history_html(html: str) -> Optional[List[HistoryRow]]:
    """Rows of the first history table, or None when the page has no table."""
    soup = BeautifulSoup(html, "html.parser")
    table = soup.select_one("table.wikitable")
    if table is None:
        return None

    rows: List[HistoryRow] = []
    for tr in table.select("tbody tr") or table.select("tr"):
        cells = tr.find_all("td")[:HISTORY_COLUMNS]
        if len(cells) < 6:
            continue
        link = cells[5].find("a")
        opponent = (link.get("title") if link and link.get("title") else cells[5].get_text(strip=True))
        champions: List[str] = []
        for cell in cells[6:8]:
            champions.extend(_span_titles(cell))
        rows.append(
            HistoryRow(
                date=cells[0].get_text(strip=True),
                result=cells[3].get_text(strip=True),
                side=cells[4].get_text(strip=True),
                opponent=opponent.strip(),
                champions=champions,
            )
        )
    return rows


def side_win_percentages(rows: List[HistoryRow]) -> Tuple[float, float]:
    """
    Share of all games played on the red and blue side.

    Both figures are divided by the total number of games, so they sum to
    at most 1.
    """
    if not rows:
        return 0.0, 0.0
    total = len(rows)
    red = sum(1 for row in rows if row.side == "Red")
    blue = sum(1 for row in rows if row.side == "Blue")
    return red / total, blue / total


def rows_against(rows: List[HistoryRow], opponent: str) -> List[HistoryRow]:
    target = wiki_slug(opponent).lower()
    return [row for row in rows if wiki_slug(row.opponent).lower() == target]


def series_outcomes(rows: List[HistoryRow]) -> List[bool]:
    """
    Rebuild best-of series from single games, one series per calendar day.

    A series is won only with strictly more game wins than losses; a tie
    counts as a loss.
    """
    by_day: "OrderedDict[str, List[bool]]" = OrderedDict()
    for row in rows:
        by_day.setdefault(row.date, []).append(row.is_win)

    outcomes: List[bool] = []
    for results in by_day.values():
        wins = sum(1 for r in results if r)
        losses = len(results) - wins
        outcomes.append(wins > losses)
    return outcomes


def winrate_vs_opponent(rows: List[HistoryRow]) -> float:
    outcomes = series_outcomes(rows)
    if not outcomes:
        return 0.0
    return sum(1 for won in outcomes if won) / len(outcomes)


def top_banned_champions(rows: List[HistoryRow], limit: int = TOP_CHAMPIONS) -> List[Tuple[str, int]]:
    counts: Counter = Counter()
    for row in rows:
        counts.update(c for c in row.champions if c)
    return counts.most_common(limit)


def compute_head_to_head(rows: List[HistoryRow], opponent: str) -> HeadToHeadStats:
    red, blue = side_win_percentages(rows)
    stats = HeadToHeadStats(win_by_red_side_percentage=red, win_by_blue_side_percentage=blue)

    against = rows_against(rows, opponent)
    if not against:
        return stats

    stats.winrate_vs_other_team_percentage = winrate_vs_opponent(against)
    stats.top_three_champions = top_banned_champions(against)
    return stats


class HeadToHeadResolver:
    """Fetches a team's season history once per run and aggregates it per opponent."""

    def __init__(self, session):
        self.session = session
        self._history: Dict[Tuple[str, int], Optional[List[HistoryRow]]] = {}

    async def history(self, team_name: str, season: int) -> Optional[List[HistoryRow]]:
        key = (team_name, season)
        if key not in self._history:
            url = match_history_url(team_name, season)
            html = await self.session.get_html(url, selector="table.wikitable")
            if html is None:
                logger.info("No match history table for %s (%s)", team_name, season)
                self._history[key] = None
            else:
                self._history[key] = parse_match_history_html(html)
        return self._history[key]

    async def resolve(self, team_name: str, opponent: str, season: int) -> HeadToHeadStats:
        rows = await self.history(team_name, season)
        if rows is None:
            return HeadToHeadStats()
        stats = compute_head_to_head(rows, opponent)
        if stats.winrate_vs_other_team_percentage is None:
            logger.info("No games of %s against %s in %s", team_name, opponent, season)
        return stats
