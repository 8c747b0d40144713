# kcagenda/enrichment.py
"""
Enrichment of draft matches.

One pipeline instance per run: its resolvers share one page session and
their caches, so a team that plays several matches is fetched once. A
failing lookup leaves its field null and never stops the rest of the batch.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from kcagenda.config import LOL
from kcagenda.database import Database
from kcagenda.models import HeadToHeadStats, Match, MatchStatus, Team, TeamStats, stats_year
from kcagenda.names import correct_name, is_organization, organization_name
from kcagenda.resolvers import HeadToHeadResolver, RosterResolver, StandingsResolver, TeamStatsResolver

logger = logging.getLogger(__name__)


def apply_team_stats(team: Team, stats: Optional[TeamStats], keep_missing_players: bool = False) -> None:
    """
    Copy season stats onto a team.

    With keep_missing_players, a player without a stats row keeps what it
    had; otherwise its stats are cleared.
    """
    if stats is None:
        team.stats = None
        team.number_of_champions_played = None
        return

    team.stats = list(stats.champions)
    team.number_of_champions_played = stats.number_of_champions_played
    for player in team.players:
        row = stats.player(player.name)
        if row is not None:
            player.stats = row
        elif not keep_missing_players:
            player.stats = None


class EnrichmentPipeline:
    def __init__(self, db: Database, session):
        self.db = db
        self.session = session
        self.rosters = RosterResolver(session)
        self.team_stats = TeamStatsResolver(session)
        self.standings = StandingsResolver(session)
        self.head_to_head = HeadToHeadResolver(session)

    async def _guard(self, label: str, match: Match, coro):
        """Await coro; on failure log and return None."""
        try:
            return await coro
        except Exception as e:
            logger.warning("%s failed for match %s: %s", label, match.match_id, e)
            return None

    async def _resolve_rosters(self, match: Match) -> None:
        rosters = await asyncio.gather(
            *(
                self._guard(f"Roster of {team.name}", match, self.rosters.resolve(team.name, match.game, match.league))
                for team in match.teams
            )
        )
        for team, players in zip(match.teams, rosters):
            team.players = players or []

    def _head_to_head_pair(self, match: Match):
        names = match.team_names()
        org_index = next(
            (i for i, team in enumerate(match.teams) if is_organization(team.name, team.acronym)),
            None,
        )
        if org_index is None or len(names) != 2:
            return None
        organization = organization_name(match.league, [names[org_index]], match.game)
        opponent = correct_name(names[1 - org_index], match.game, match.league)
        return organization, opponent

    async def _head_to_head(self, match: Match, season: int) -> Optional[HeadToHeadStats]:
        pair = self._head_to_head_pair(match)
        if pair is None:
            return None
        organization, opponent = pair
        return await self.head_to_head.resolve(organization, opponent, season)

    async def _resolve_statistics(self, match: Match, keep_missing_players: bool = False) -> None:
        season = stats_year(match.date)
        first, second = match.teams[0], match.teams[1]

        stats_one, stats_two, ranking, kc_stats = await asyncio.gather(
            self._guard(f"Stats of {first.name}", match, self.team_stats.resolve(first.name, season, match.league)),
            self._guard(f"Stats of {second.name}", match, self.team_stats.resolve(second.name, season, match.league)),
            self._guard("Standings", match, self.standings.resolve(match.league, match.type, match.date)),
            self._guard("Head-to-head", match, self._head_to_head(match, season)),
        )

        apply_team_stats(first, stats_one, keep_missing_players)
        apply_team_stats(second, stats_two, keep_missing_players)
        match.ranking_data = ranking
        match.kc_stats = kc_stats

    async def enrich_match(self, match: Match) -> Match:
        """Fill rosters, and for League of Legends stats, standings and head-to-head."""
        if len(match.teams) != 2:
            logger.warning("Match %s has %d teams; skipping enrichment", match.match_id, len(match.teams))
            return match

        await self._resolve_rosters(match)
        if match.game == LOL:
            await self._resolve_statistics(match)
        match.enriched_at = datetime.now(timezone.utc)
        return match

    async def enrich(self, matches: Iterable[Match]) -> int:
        """Enrich and persist each match. Returns how many were saved."""
        saved = 0
        for match in matches:
            try:
                await self.enrich_match(match)
                self.db.save_match(match)
                saved += 1
                logger.info("Enriched %s (%s)", match.match_id, " vs ".join(match.team_names()))
            except Exception:
                logger.exception("Enrichment failed for match %s", match.match_id)
        return saved

    async def refresh_statistics(self, matches: Iterable[Match]) -> int:
        """Re-resolve stats, standings and head-to-head; rosters are kept."""
        refreshed = 0
        for match in matches:
            if match.game != LOL or len(match.teams) != 2:
                continue
            try:
                await self._resolve_statistics(match, keep_missing_players=True)
                self.db.save_match(match)
                refreshed += 1
            except Exception:
                logger.exception("Stats refresh failed for match %s", match.match_id)
        return refreshed


def unenriched_matches(db: Database) -> List[Match]:
    """Scheduled drafts that still need enrichment."""
    return db.find_matches(status=MatchStatus.SCHEDULED, enriched=False)
