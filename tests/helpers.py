# tests/helpers.py

import os
import tempfile
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from kcagenda.api_client import UNSTARTED
from kcagenda.config import LOL
from kcagenda.database import Database
from kcagenda.errors import FetchTimeout
from kcagenda.models import Match, MatchStatus, Team


def create_test_db():
    """Create a fresh database in a temporary file. Returns (db, path)."""
    fd, db_path = tempfile.mkstemp(suffix='.db')
    os.close(fd)
    return Database(db_path), db_path


def destroy_test_db(db: Database, db_path: str) -> None:
    db.close()
    for suffix in ('', '-wal', '-shm'):
        if os.path.exists(db_path + suffix):
            os.remove(db_path + suffix)


class FakeSession:
    """
    Stand-in for BrowserSession serving canned HTML.

    pages maps a URL fragment to HTML; the longest fragment contained in the
    requested URL wins. Unknown URLs behave like a selector that never shows
    up (None). Fragments listed in timeouts raise FetchTimeout.
    """

    def __init__(self, pages: Optional[Dict[str, str]] = None, timeouts=(),
                 captured=None, json_by_url: Optional[Dict[str, Any]] = None):
        self.pages = dict(pages or {})
        self.timeouts = list(timeouts)
        self.captured = list(captured or [])
        self.json_by_url = dict(json_by_url or {})
        self.calls: List[str] = []
        self.json_calls: List[str] = []
        self.opened = 0
        self.closed = 0

    async def __aenter__(self):
        self.opened += 1
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.closed += 1

    def _lookup(self, url: str, table: Dict[str, Any]):
        matches = [key for key in table if key in url]
        if not matches:
            return None
        return table[max(matches, key=len)]

    async def get_html(self, url, selector=None, wait_until="domcontentloaded", dismiss_consent=False):
        self.calls.append(url)
        if any(fragment in url for fragment in self.timeouts):
            raise FetchTimeout(f"Navigation to {url} timed out")
        return self._lookup(url, self.pages)

    async def capture_json(self, url, predicate, timeout_s=None, expected=1):
        self.calls.append(url)
        return [(u, body) for u, body in self.captured if predicate(u)]

    async def request_json(self, url):
        self.json_calls.append(url)
        body = self._lookup(url, self.json_by_url)
        if body is None:
            raise RuntimeError(f"HTTP 404 for {url}")
        return body

    def fetches(self, fragment: str) -> int:
        return sum(1 for url in self.calls if fragment in url)


class FakeAPIClient:
    """Stand-in for EsportsAPIClient with events keyed by (game, state)."""

    def __init__(self, events: Optional[Dict[tuple, List[Dict[str, Any]]]] = None, error: Exception = None):
        self.events = events or {}
        self.error = error
        self.calls: List[tuple] = []

    def get_events(self, game, state=UNSTARTED, now=None):
        self.calls.append((game, state))
        if self.error is not None:
            raise self.error
        return list(self.events.get((game, state), []))


def make_event(event_id: str, start: str, teams, league: str = "LEC",
               block: str = "Regular Season", count: int = 3, scores=None) -> Dict[str, Any]:
    """Build an upstream event. teams is a list of (name, code) pairs."""
    scores = scores or [None] * len(teams)
    return {
        "id": event_id,
        "startTime": start,
        "blockName": block,
        "league": {"name": league, "image": f"https://static.example/{league}.png"},
        "match": {
            "strategy": {"count": count},
            "matchTeams": [
                {
                    "name": name,
                    "code": code,
                    "image": f"https://static.example/{code}.png",
                    "result": {"gameWins": score},
                }
                for (name, code), score in zip(teams, scores)
            ],
        },
    }


def make_match(match_id: str, date: datetime, teams=(("Karmine Corp", "KC"), ("G2 Esports", "G2")),
               game: str = LOL, league: str = "LEC", type: str = "Regular Season",
               status: MatchStatus = MatchStatus.SCHEDULED) -> Match:
    return Match(
        match_id=match_id,
        game=game,
        league=league,
        type=type,
        date=date,
        status=status,
        rounds=3,
        teams=[Team(name=name, acronym=code) for name, code in teams],
    )


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)
