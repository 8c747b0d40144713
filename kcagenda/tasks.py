# kcagenda/tasks.py
"""
Pipeline entry points used by the CLI, the web task routes and the scheduler.

Each task opens what it needs (store, browser) and releases it before
returning. Callers may pass their own store, API client or session factory;
those are left open.
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Iterator, Optional

from kcagenda.api_client import EsportsAPIClient
from kcagenda.config import LOL, Settings
from kcagenda.database import Database
from kcagenda.discovery import Div2Discovery, MatchDiscovery
from kcagenda.enrichment import EnrichmentPipeline, unenriched_matches
from kcagenda.models import MatchStatus
from kcagenda.results import LiveResultPoller, RiotResultSource
from kcagenda.scraper import BrowserSession
from kcagenda.status import StatusTransitionSweeper

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Any]


@contextmanager
def _store(settings: Settings, db: Optional[Database]) -> Iterator[Database]:
    if db is not None:
        yield db
        return
    owned = Database(settings.db_path)
    try:
        yield owned
    finally:
        owned.close()


def _session_factory(settings: Settings, session_factory: Optional[SessionFactory]) -> SessionFactory:
    return session_factory or (lambda: BrowserSession(settings))


async def run_discovery(
    game: str,
    settings: Optional[Settings] = None,
    db: Optional[Database] = None,
    api_client: Optional[EsportsAPIClient] = None,
    now: Optional[datetime] = None,
) -> int:
    """Persist new draft matches for a game. Returns the number inserted."""
    settings = settings or Settings.from_env()
    api_client = api_client or EsportsAPIClient(lookahead_days=settings.lookahead_days)
    with _store(settings, db) as store:
        drafts = await MatchDiscovery(store, api_client).discover(game, now)
        inserted = store.insert_matches(drafts)
    logger.info("Discovery for %s inserted %d match(es)", game, inserted)
    return inserted


async def run_div2_discovery(
    settings: Optional[Settings] = None,
    db: Optional[Database] = None,
    session_factory: Optional[SessionFactory] = None,
) -> int:
    settings = settings or Settings.from_env()
    with _store(settings, db) as store:
        async with _session_factory(settings, session_factory)() as session:
            drafts = await Div2Discovery(store, session).discover()
        inserted = store.insert_matches(drafts)
    logger.info("Division 2 discovery inserted %d match(es)", inserted)
    return inserted


async def run_enrichment(
    settings: Optional[Settings] = None,
    db: Optional[Database] = None,
    session_factory: Optional[SessionFactory] = None,
) -> int:
    """Enrich every scheduled draft not enriched yet. Returns the number saved."""
    settings = settings or Settings.from_env()
    with _store(settings, db) as store:
        drafts = unenriched_matches(store)
        if not drafts:
            logger.info("No drafts to enrich")
            return 0
        async with _session_factory(settings, session_factory)() as session:
            saved = await EnrichmentPipeline(store, session).enrich(drafts)
    logger.info("Enriched %d of %d draft(s)", saved, len(drafts))
    return saved


async def run_live_result_check(
    settings: Optional[Settings] = None,
    db: Optional[Database] = None,
    api_client: Optional[EsportsAPIClient] = None,
    session_factory: Optional[SessionFactory] = None,
) -> int:
    settings = settings or Settings.from_env()
    api_client = api_client or EsportsAPIClient(lookahead_days=settings.lookahead_days)
    with _store(settings, db) as store:
        poller = LiveResultPoller(
            store,
            RiotResultSource(api_client),
            _session_factory(settings, session_factory),
        )
        return await poller.poll()


async def run_status_sweep(
    settings: Optional[Settings] = None,
    db: Optional[Database] = None,
    now: Optional[datetime] = None,
) -> int:
    settings = settings or Settings.from_env()
    with _store(settings, db) as store:
        return StatusTransitionSweeper(store).sweep(now)


async def run_standings_refresh(
    settings: Optional[Settings] = None,
    db: Optional[Database] = None,
    session_factory: Optional[SessionFactory] = None,
    now: Optional[datetime] = None,
) -> int:
    """Re-scrape stats, standings and head-to-head of upcoming League of Legends matches."""
    settings = settings or Settings.from_env()
    now = now or datetime.now(timezone.utc)
    with _store(settings, db) as store:
        upcoming = store.find_matches(status=MatchStatus.SCHEDULED, game=LOL, date_from=now)
        if not upcoming:
            logger.info("No upcoming League of Legends matches to refresh")
            return 0
        async with _session_factory(settings, session_factory)() as session:
            refreshed = await EnrichmentPipeline(store, session).refresh_statistics(upcoming)
    logger.info("Refreshed stats for %d of %d match(es)", refreshed, len(upcoming))
    return refreshed
