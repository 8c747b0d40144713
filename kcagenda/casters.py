# kcagenda/casters.py

import logging
from typing import Dict, List, Optional

from kcagenda.config import CASTERS
from kcagenda.database import Database
from kcagenda.models import Caster

logger = logging.getLogger(__name__)


def seed_casters(db: Database, roster: Optional[List[Dict[str, object]]] = None, force: bool = False) -> int:
    """
    Load the static caster roster into the store.

    Runs only on an empty caster table unless force is set. Returns the
    number of casters written.
    """
    if not force and db.count_casters() > 0:
        logger.info("Casters already seeded; skipping")
        return 0

    written = 0
    for entry in roster if roster is not None else CASTERS:
        caster = Caster(
            name=str(entry["name"]),
            twitch_link=str(entry["twitch_link"]),
            leagues=list(entry.get("leagues") or []),
        )
        db.upsert_caster(caster)
        written += 1
    logger.info("Seeded %d casters", written)
    return written


class CasterDirectory:
    """League -> casters lookup, cached for one run."""

    def __init__(self, db: Database):
        self.db = db
        self._by_league: Dict[str, List[Caster]] = {}

    def for_league(self, league: str) -> List[Caster]:
        if league not in self._by_league:
            self._by_league[league] = self.db.find_casters_by_league(league)
        return list(self._by_league[league])
