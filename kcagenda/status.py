# kcagenda/status.py

import logging
from datetime import datetime, timezone
from typing import Optional

from kcagenda.database import Database
from kcagenda.models import MatchStatus

logger = logging.getLogger(__name__)


class StatusTransitionSweeper:
    """Moves scheduled matches whose start time has passed to live."""

    def __init__(self, db: Database):
        self.db = db

    def sweep(self, now: Optional[datetime] = None) -> int:
        now = now or datetime.now(timezone.utc)
        due = self.db.find_matches(status=MatchStatus.SCHEDULED, date_to=now)
        promoted = 0
        for match in due:
            if self.db.update_status(match.match_id, MatchStatus.LIVE):
                promoted += 1
                logger.info("Match %s is now live", match.match_id)
        logger.debug("Status sweep: %d due, %d promoted", len(due), promoted)
        return promoted
