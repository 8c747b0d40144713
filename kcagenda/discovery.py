# kcagenda/discovery.py
"""
Match discovery.

Turns upstream schedules into draft matches (teams known, no rosters or
stats yet) for the organization, minus anything the store already holds.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Set
from urllib.parse import parse_qs, urlencode, urlparse

from kcagenda.api_client import UNSTARTED, EsportsAPIClient
from kcagenda.casters import CasterDirectory
from kcagenda.config import (
    DIV2_BASE_URL,
    DIV2_LEAGUE,
    DIV2_LOGO_URL,
    DIV2_MATCHES_PAGE,
    DIV2_ORGANIZATION_MARKER,
    DIV2_SEASON_START,
    LOL,
)
from kcagenda.database import Database
from kcagenda.errors import DuplicateMatch, StructureNotFound
from kcagenda.models import Match, MatchStatus, Team, parse_utc
from kcagenda.names import initials, is_organization, is_placeholder

logger = logging.getLogger(__name__)


def involves_organization(match: Match) -> bool:
    return any(is_organization(team.name, team.acronym) for team in match.teams)


def _team_keys(match: Match) -> Set[str]:
    return {team.name.strip().lower() for team in match.teams if not is_placeholder(team.name)}


def check_duplicate(draft: Match, known_ids: Set[str], known: Iterable[Match]) -> None:
    """
    Raise DuplicateMatch when the draft is already known.

    Known means the same match id, or the same UTC day with a team in
    common (upstream sometimes re-issues a match under a new id).
    """
    if draft.match_id in known_ids:
        raise DuplicateMatch(f"{draft.match_id} already stored")

    day = draft.date.date()
    teams = _team_keys(draft)
    for other in known:
        if other.game != draft.game or other.date.date() != day:
            continue
        shared = teams & _team_keys(other)
        if shared:
            raise DuplicateMatch(
                f"{draft.match_id} shares {sorted(shared)} with {other.match_id} on {day}"
            )


def deduplicate(
    drafts: Iterable[Match],
    existing: Iterable[Match],
    stored_ids: Iterable[str] = (),
) -> List[Match]:
    """Keep drafts unknown to the store and to earlier drafts of the same batch."""
    known: List[Match] = list(existing)
    known_ids = {m.match_id for m in known} | set(stored_ids)
    kept: List[Match] = []
    for draft in drafts:
        try:
            check_duplicate(draft, known_ids, known)
        except DuplicateMatch as e:
            logger.debug("Dropping draft: %s", e)
            continue
        kept.append(draft)
        known.append(draft)
        known_ids.add(draft.match_id)
    return kept


class MatchDiscovery:
    """Draft matches for one game from the official esports API."""

    def __init__(self, db: Database, api_client: EsportsAPIClient, casters: Optional[CasterDirectory] = None):
        self.db = db
        self.api_client = api_client
        self.casters = casters or CasterDirectory(db)

    async def discover(self, game: str, now: Optional[datetime] = None) -> List[Match]:
        now = now or datetime.now(timezone.utc)
        events = await asyncio.to_thread(self.api_client.get_events, game, UNSTARTED, now)

        drafts: List[Match] = []
        for event in events:
            draft = EsportsAPIClient.event_to_draft(event, game)
            if draft is None or not involves_organization(draft):
                continue
            drafts.append(draft)

        existing = self.db.find_matches(game=game, date_from=now)
        stored_ids = self.db.get_existing_match_ids(d.match_id for d in drafts)
        kept = deduplicate(drafts, existing, stored_ids)
        for draft in kept:
            draft.casters = self.casters.for_league(draft.league)

        logger.info(
            "%s discovery: %d events, %d organization drafts, %d new",
            game,
            len(events),
            len(drafts),
            len(kept),
        )
        return kept


class Div2Discovery:
    """
    Draft matches from the division-2 bracket site.

    The site's own /api/rounds call is intercepted to learn the tournament
    and its rounds, then each round's matches are read through the same
    browser context.
    """

    def __init__(self, db: Database, session, casters: Optional[CasterDirectory] = None):
        self.db = db
        self.session = session
        self.casters = casters or CasterDirectory(db)

    @staticmethod
    def tournament_id_from_url(url: str) -> Optional[str]:
        values = parse_qs(urlparse(url).query).get("tournament_ids")
        return values[0] if values else None

    @staticmethod
    def round_matches_url(tournament_id: str, round_data: Dict[str, Any]) -> str:
        group = round_data.get("group") or {}
        stage = group.get("stage") or {}
        query = urlencode(
            {
                "tournament_ids": tournament_id,
                "stage_ids": stage.get("id", ""),
                "group_ids": group.get("id", ""),
                "round_ids": round_data.get("id", ""),
                "sort": "scheduled_asc",
            }
        )
        return f"{DIV2_BASE_URL}/api/matches?{query}"

    @staticmethod
    def match_to_draft(raw: Dict[str, Any]) -> Optional[Match]:
        start = parse_utc(raw.get("scheduledDatetime"))
        opponents = raw.get("opponents") or []
        if raw.get("id") is None or start is None or len(opponents) != 2:
            return None

        teams: List[Team] = []
        for opponent in opponents:
            participant = opponent.get("participant") or {}
            name = participant.get("name", "")
            logo_id = (participant.get("logo") or {}).get("id")
            teams.append(
                Team(
                    name=name,
                    acronym=initials(name),
                    logo_url=f"{DIV2_BASE_URL}/media/file/{logo_id}/icon_medium" if logo_id else "",
                )
            )

        return Match(
            match_id=str(raw["id"]),
            game=LOL,
            league=DIV2_LEAGUE,
            league_logo_url=DIV2_LOGO_URL,
            type=(raw.get("round") or {}).get("name", ""),
            date=start,
            status=MatchStatus.SCHEDULED,
            teams=teams,
        )

    @staticmethod
    def is_organization_match(raw: Dict[str, Any]) -> bool:
        start = parse_utc(raw.get("scheduledDatetime"))
        if start is None or start < parse_utc(DIV2_SEASON_START):
            return False
        return any(
            DIV2_ORGANIZATION_MARKER in ((o.get("participant") or {}).get("name") or "")
            for o in raw.get("opponents") or []
        )

    async def _fetch_round_matches(self, url: str) -> List[Dict[str, Any]]:
        try:
            payload = await self.session.request_json(url)
        except Exception as e:
            logger.warning("Division 2 round fetch failed (%s): %s", url, e)
            return []
        return payload if isinstance(payload, list) else []

    async def discover(self) -> List[Match]:
        captured = await self.session.capture_json(DIV2_MATCHES_PAGE, lambda u: "/api/rounds" in u)
        if not captured:
            logger.warning("Division 2 rounds were not captured; nothing discovered")
            return []

        rounds_url, rounds = captured[0]
        tournament_id = self.tournament_id_from_url(rounds_url)
        if not tournament_id or not isinstance(rounds, list):
            raise StructureNotFound(f"Division 2 rounds response has no tournament id: {rounds_url}")

        urls = [self.round_matches_url(tournament_id, r) for r in rounds]
        responses = await asyncio.gather(*(self._fetch_round_matches(u) for u in urls))
        raw_matches = [m for batch in responses for m in batch]

        drafts = [
            draft
            for draft in (self.match_to_draft(m) for m in raw_matches if self.is_organization_match(m))
            if draft is not None
        ]
        stored_ids = self.db.get_existing_match_ids(d.match_id for d in drafts)
        existing = self.db.find_matches(league=DIV2_LEAGUE)
        kept = deduplicate(drafts, existing, stored_ids)

        for draft in kept:
            draft.casters = self.casters.for_league(DIV2_LEAGUE)

        logger.info(
            "Division 2 discovery: %d rounds, %d matches, %d organization, %d new",
            len(rounds),
            len(raw_matches),
            len(drafts),
            len(kept),
        )
        return kept
