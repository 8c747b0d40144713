# kcagenda/results.py
"""
Final scores for live matches.

Two result sources: the official API's completed events (matched by id,
then by team pair) and, for division-2 matches, the organization's
match-history query on the stats wiki. A live match with no result yet
stays live until the next poll.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from kcagenda.api_client import COMPLETED, EsportsAPIClient
from kcagenda.config import DIV2_LEAGUE, ORGANIZATION_NAMES_BY_LEAGUE
from kcagenda.database import Database
from kcagenda.models import Match, MatchStatus, stats_year
from kcagenda.names import correct_lol_name, is_organization, wiki_slug
from kcagenda.resolvers.head_to_head import HistoryRow, match_history_url, parse_match_history_html

logger = logging.getLogger(__name__)

Scores = Dict[str, Optional[int]]


def _pair_key(names: Iterable[str]) -> Tuple[str, ...]:
    return tuple(sorted(n.strip().lower() for n in names))


class RiotResultSource:
    """Completed events from the official API."""

    def __init__(self, api_client: EsportsAPIClient):
        self.api_client = api_client

    async def completed_events(self, games: Iterable[str]) -> List[Dict[str, Any]]:
        batches = await asyncio.gather(
            *(asyncio.to_thread(self.api_client.get_events, game, COMPLETED) for game in games)
        )
        return [event for batch in batches for event in batch]

    @staticmethod
    def _scores_for(match: Match, event: Dict[str, Any], by_id: bool) -> Optional[Scores]:
        """Event scores keyed by stored team names; None while any team lacks one."""
        event_teams = EsportsAPIClient.event_teams(event)
        by_lower = {t.get("name", "").strip().lower(): t for t in event_teams}
        names = match.team_names()

        paired = {}
        for name in names:
            team = by_lower.pop(name.strip().lower(), None)
            if team is not None:
                paired[name] = team
        if by_id and len(event_teams) == len(names):
            # Renamed upstream teams keep their stored position.
            leftovers = [t for t in event_teams if t in by_lower.values()]
            for name, team in zip([n for n in names if n not in paired], leftovers):
                paired[name] = team

        scores = {name: EsportsAPIClient.team_score(team) for name, team in paired.items()}
        if len(scores) < len(names) or any(score is None for score in scores.values()):
            return None
        return scores

    @staticmethod
    def match_events(live: List[Match], events: List[Dict[str, Any]]) -> Dict[str, Scores]:
        by_id = {str(e.get("id")): e for e in events if e.get("id")}
        by_pair = {}
        for event in events:
            names = [t.get("name", "") for t in EsportsAPIClient.event_teams(event)]
            if len(names) == 2:
                by_pair.setdefault(_pair_key(names), event)

        results: Dict[str, Scores] = {}
        for match in live:
            event = by_id.get(match.match_id)
            matched_by_id = event is not None
            if event is None:
                event = by_pair.get(_pair_key(match.team_names()))
            if event is None:
                continue
            scores = RiotResultSource._scores_for(match, event, matched_by_id)
            if scores is None:
                logger.info("Event for %s has incomplete scores; keeping it live", match.match_id)
                continue
            results[match.match_id] = scores
        return results

    async def resolve(self, live: List[Match]) -> Dict[str, Scores]:
        games = sorted({m.game for m in live})
        events = await self.completed_events(games)
        return self.match_events(live, events)


def tally_series(rows: List[HistoryRow], match: Match) -> Optional[Scores]:
    """Organization wins and losses against the match opponent on the match day."""
    org_index = next(
        (i for i, t in enumerate(match.teams) if is_organization(t.name, t.acronym)),
        None,
    )
    if org_index is None or len(match.teams) != 2:
        return None

    organization = match.teams[org_index]
    opponent = match.teams[1 - org_index]
    target = wiki_slug(correct_lol_name(opponent.name)).lower()
    month_day = (match.date.month, match.date.day)

    wins = losses = 0
    for row in rows:
        day = row.day
        if day is None or (day.month, day.day) != month_day:
            continue
        if target not in wiki_slug(row.opponent).lower():
            continue
        if row.is_win:
            wins += 1
        else:
            losses += 1

    if wins == 0 and losses == 0:
        return None
    return {organization.name: wins, opponent.name: losses}


class Div2ResultSource:
    """Division-2 results from the stats wiki match history."""

    def __init__(self, session):
        self.session = session

    async def resolve(self, live: List[Match]) -> Dict[str, Scores]:
        team = ORGANIZATION_NAMES_BY_LEAGUE[DIV2_LEAGUE]
        rows_by_season: Dict[int, List[HistoryRow]] = defaultdict(list)
        for season in sorted({stats_year(m.date) for m in live}):
            html = await self.session.get_html(match_history_url(team, season), selector="table.wikitable")
            if html is None:
                logger.info("No division 2 history table for %s", season)
                continue
            rows_by_season[season] = parse_match_history_html(html) or []

        results: Dict[str, Scores] = {}
        for match in live:
            scores = tally_series(rows_by_season.get(stats_year(match.date), []), match)
            if scores is not None:
                results[match.match_id] = scores
        return results


class LiveResultPoller:
    """Completes live matches whose results are published."""

    def __init__(
        self,
        db: Database,
        riot_source: RiotResultSource,
        session_factory: Optional[Callable[[], Any]] = None,
    ):
        self.db = db
        self.riot_source = riot_source
        self.session_factory = session_factory

    async def _div2_results(self, live: List[Match]) -> Dict[str, Scores]:
        if self.session_factory is None:
            logger.warning("No browser available for %d division 2 matches", len(live))
            return {}
        async with self.session_factory() as session:
            return await Div2ResultSource(session).resolve(live)

    async def poll(self) -> int:
        """Returns the number of matches moved to completed."""
        live = self.db.find_matches(status=MatchStatus.LIVE)
        if not live:
            logger.debug("No live matches")
            return 0

        riot_live = [m for m in live if m.league != DIV2_LEAGUE]
        div2_live = [m for m in live if m.league == DIV2_LEAGUE]

        results: Dict[str, Scores] = {}
        if riot_live:
            try:
                results.update(await self.riot_source.resolve(riot_live))
            except Exception as e:
                logger.warning("Official results unavailable: %s", e)
        if div2_live:
            try:
                results.update(await self._div2_results(div2_live))
            except Exception as e:
                logger.warning("Division 2 results unavailable: %s", e)

        completed = 0
        for match_id, scores in results.items():
            if self.db.update_team_scores(match_id, scores, MatchStatus.COMPLETED):
                completed += 1
                logger.info("Match %s completed: %s", match_id, scores)

        pending = len(live) - completed
        if pending:
            logger.info("%d live match(es) still without a result", pending)
        return completed
