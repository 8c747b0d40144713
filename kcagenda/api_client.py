from __future__ import annotations

import json
import logging
import socket
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from kcagenda.config import (
    ESPORTS_DOMAINS,
    HOME_EVENTS_HASH,
    HOME_EVENTS_OPERATION,
    LEAGUE_IDS,
    SPORT_CODES,
    USER_AGENT,
)
from kcagenda.errors import FetchTimeout
from kcagenda.models import Match, MatchStatus, Team, parse_utc

logger = logging.getLogger(__name__)

UNSTARTED = "unstarted"
COMPLETED = "completed"


class EsportsAPIClient:
    """Client for the official esports sites' persisted GraphQL query."""

    HEADERS = {
        "User-Agent": USER_AGENT,
        "Accept": "*/*",
        "Accept-Language": "fr-FR,fr;q=0.9,en;q=0.8",
        "Content-Type": "application/json",
        "apollographql-client-name": "Esports Web",
        "apollographql-client-version": "0.0.0",
        "x-apollo-operation-name": HOME_EVENTS_OPERATION,
    }

    def __init__(self, timeout_seconds: int = 20, lookahead_days: int = 60, page_size: int = 40):
        self.timeout_seconds = timeout_seconds
        self.lookahead_days = lookahead_days
        self.page_size = page_size

    def _get_json(self, url: str, headers: Dict[str, str], retry_429: bool = True) -> Dict[str, Any]:
        req = Request(url, headers=headers, method="GET")
        try:
            with urlopen(req, timeout=self.timeout_seconds) as resp:
                return json.loads(resp.read().decode("utf-8"))
        except HTTPError as exc:
            if exc.code == 429 and retry_429:
                logger.warning("Rate limited by %s; retrying once in 10s", url.split("?")[0])
                time.sleep(10)
                return self._get_json(url, headers, retry_429=False)
            raise
        except (URLError, socket.timeout) as exc:
            raise FetchTimeout(f"Esports API unreachable: {exc}")

    def _event_window(self, state: str, now: datetime) -> tuple[datetime, datetime]:
        day_start = now.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
        if state == COMPLETED:
            # Matches started late yesterday may only finish after midnight.
            return day_start - timedelta(days=1), day_start + timedelta(days=1, hours=1)
        return day_start, day_start + timedelta(days=self.lookahead_days, hours=1)

    def build_home_events_url(self, game: str, state: str, now: Optional[datetime] = None) -> str:
        now = now or datetime.now(timezone.utc)
        start, end = self._event_window(state, now)
        variables = {
            "hl": "fr-FR",
            "sport": SPORT_CODES[game],
            "leagues": LEAGUE_IDS[game],
            "eventDateStart": start.strftime("%Y-%m-%dT%H:%M:%S.000Z"),
            "eventDateEnd": end.strftime("%Y-%m-%dT%H:%M:%S.000Z"),
            "eventState": [state],
            "eventType": "match",
            "pageSize": self.page_size,
        }
        extensions = {"persistedQuery": {"version": 1, "sha256Hash": HOME_EVENTS_HASH}}
        query = urlencode(
            {
                "operationName": HOME_EVENTS_OPERATION,
                "variables": json.dumps(variables, separators=(",", ":")),
                "extensions": json.dumps(extensions, separators=(",", ":")),
            }
        )
        return f"{ESPORTS_DOMAINS[game]}/api/gql?{query}"

    def get_events(self, game: str, state: str = UNSTARTED, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Return raw event objects for a game and event state."""
        url = self.build_home_events_url(game, state, now)
        headers = dict(self.HEADERS)
        headers["Origin"] = ESPORTS_DOMAINS[game]
        headers["Referer"] = f"{ESPORTS_DOMAINS[game]}/"
        payload = self._get_json(url, headers)
        events = ((payload.get("data") or {}).get("esports") or {}).get("events") or []
        logger.info("Fetched %d %s %s events", len(events), state, game)
        return events

    # --- Event mapping ---

    @staticmethod
    def event_teams(event: Dict[str, Any]) -> List[Dict[str, Any]]:
        return ((event.get("match") or {}).get("matchTeams")) or []

    @staticmethod
    def team_score(team: Dict[str, Any]) -> Optional[int]:
        """Game wins of one event team; None until the result is published."""
        return (team.get("result") or {}).get("gameWins")

    @staticmethod
    def event_to_draft(event: Dict[str, Any], game: str) -> Optional[Match]:
        """Build a draft match from an event; None when the event is malformed."""
        start = parse_utc(event.get("startTime"))
        event_id = event.get("id")
        teams = EsportsAPIClient.event_teams(event)
        if not event_id or start is None or len(teams) != 2:
            logger.debug("Skipping malformed event %r", event_id)
            return None

        league = event.get("league") or {}
        strategy = (event.get("match") or {}).get("strategy") or {}
        return Match(
            match_id=str(event_id),
            game=game,
            league=league.get("name", ""),
            league_logo_url=league.get("image"),
            type=event.get("blockName") or "",
            date=start,
            status=MatchStatus.SCHEDULED,
            rounds=strategy.get("count"),
            teams=[
                Team(
                    name=team.get("name", ""),
                    acronym=team.get("code", ""),
                    logo_url=team.get("image", ""),
                )
                for team in teams
            ],
        )
