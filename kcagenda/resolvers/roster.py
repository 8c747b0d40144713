# kcagenda/resolvers/roster.py
"""
Team roster lookup.

League of Legends rosters come from the stats wiki team page; Valorant
rosters come from Liquipedia. Names go through the per-game correction
table before the page URL is built.
"""

import logging
from typing import Dict, List, Optional, Tuple

from bs4 import BeautifulSoup

from kcagenda.config import LIQUIPEDIA_VALORANT_URL, LOL, LOL_FANDOM_URL, VALORANT
from kcagenda.errors import FetchTimeout
from kcagenda.models import Player
from kcagenda.names import correct_name, is_placeholder, wiki_slug

logger = logging.getLogger(__name__)

LOL_ROSTER_SELECTOR = (
    "#mw-content-text > div > div.mw-parser-output > table:nth-child(2) "
    "> tbody > tr > td > table"
)
LOL_ROSTER_CELLS = "tr:nth-child(3) span[title], tr:nth-child(3) a"
VALORANT_ROSTER_SELECTOR = "table.wikitable.wikitable-striped.roster-card"

# Games without an entry keep every listed player.
ROSTER_LIMITS: Dict[str, int] = {LOL: 5}


def parse_lol_roster_html(html: str, limit: Optional[int] = ROSTER_LIMITS[LOL]) -> List[Player]:
    """Pair role icons with player links, one player per role."""
    soup = BeautifulSoup(html, "html.parser")
    table = soup.select_one(LOL_ROSTER_SELECTOR) or soup.select_one("table")
    if table is None:
        return []

    elements = table.select(LOL_ROSTER_CELLS)
    players: List[Player] = []
    seen_positions = set()
    for i in range(0, len(elements) - 1, 2):
        position_el, name_el = elements[i], elements[i + 1]
        position = (position_el.get("title") or "").strip()
        name = name_el.get_text(strip=True)
        if not position or not name or position in seen_positions:
            continue
        seen_positions.add(position)
        players.append(Player(name=name, position=position))
        if limit is not None and len(players) >= limit:
            break
    return players


def parse_valorant_roster_html(html: str, limit: Optional[int] = None) -> List[Player]:
    soup = BeautifulSoup(html, "html.parser")
    table = soup.select_one(VALORANT_ROSTER_SELECTOR)
    if table is None:
        return []

    players: List[Player] = []
    seen = set()
    for cell in table.select("td.ID"):
        name = cell.get_text(strip=True)
        if not name or name in seen:
            continue
        seen.add(name)
        players.append(Player(name=name, position=None))
        if limit is not None and len(players) >= limit:
            break
    return players


class RosterResolver:
    """Resolve rosters through a page session, memoized by corrected name."""

    def __init__(self, session):
        self.session = session
        self._cache: Dict[Tuple[str, str], List[Player]] = {}

    def _roster_url(self, name: str, game: str) -> str:
        if game == VALORANT:
            return f"{LIQUIPEDIA_VALORANT_URL}/{wiki_slug(name)}"
        return f"{LOL_FANDOM_URL}/wiki/{wiki_slug(name)}"

    async def resolve(self, team_name: str, game: str, league: Optional[str] = None) -> List[Player]:
        if is_placeholder(team_name):
            return []

        corrected = correct_name(team_name, game, league)
        key = (game, corrected)
        if key in self._cache:
            logger.debug("Roster cache hit for %s", corrected)
            return [Player(p.name, p.position) for p in self._cache[key]]

        roster = await self._fetch(corrected, game)
        self._cache[key] = roster
        return [Player(p.name, p.position) for p in roster]

    async def _fetch(self, name: str, game: str) -> List[Player]:
        url = self._roster_url(name, game)
        try:
            if game == VALORANT:
                html = await self.session.get_html(url, selector=VALORANT_ROSTER_SELECTOR)
            else:
                html = await self.session.get_html(url, selector="table", dismiss_consent=True)
        except FetchTimeout as e:
            logger.warning("Roster page timed out for %s: %s", name, e)
            return []

        if html is None:
            logger.info("No roster table for %s", name)
            return []

        if game == VALORANT:
            roster = parse_valorant_roster_html(html)
        else:
            roster = parse_lol_roster_html(html, ROSTER_LIMITS.get(game))
        logger.info("Roster for %s: %d players", name, len(roster))
        return roster
