# kcagenda/database.py

import json
import logging
import os
import sqlite3
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set

from kcagenda.errors import PersistenceConflict
from kcagenda.models import Caster, Match, MatchStatus, to_utc_iso

logger = logging.getLogger(__name__)


class Database:
    """Match and caster store on sqlite3, queried like a document store."""

    MATCH_COLUMNS = (
        "match_id, game, league, league_logo_url, type, date, status, rounds, "
        "teams, casters, ranking_data, kc_stats, enriched_at"
    )

    def __init__(self, db_path: str = 'data/kcagenda.db'):
        self.db_path = self._resolve_db_path(db_path)
        self.conn = None
        self.init_database()

    @staticmethod
    def _resolve_db_path(db_path: str) -> str:
        """Return an absolute database path anchored to project root when relative."""
        if db_path == ":memory:":
            return db_path
        path = Path(db_path)
        if path.is_absolute():
            return str(path)

        project_root = Path(__file__).resolve().parents[1]
        return str(project_root / path)

    def init_database(self):
        """Create tables if they don't exist."""
        try:
            db_dir = os.path.dirname(self.db_path) if self.db_path != ":memory:" else ""
            if db_dir:
                try:
                    os.makedirs(db_dir, exist_ok=True)
                except OSError as e:
                    raise RuntimeError(f"Failed to create database directory '{db_dir}': {e}")

            self.conn = sqlite3.connect(self.db_path, timeout=30.0)
            self.conn.row_factory = sqlite3.Row
            self.conn.execute("PRAGMA busy_timeout = 30000")
            self._set_wal_mode_best_effort()

            cursor = self.conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS matches (
                    id              INTEGER PRIMARY KEY AUTOINCREMENT,
                    match_id        TEXT UNIQUE NOT NULL,
                    game            TEXT NOT NULL,
                    league          TEXT NOT NULL,
                    league_logo_url TEXT,
                    type            TEXT NOT NULL,
                    date            TEXT NOT NULL,
                    status          INTEGER NOT NULL DEFAULT 0,
                    rounds          INTEGER,
                    teams           TEXT NOT NULL,
                    casters         TEXT,
                    ranking_data    TEXT,
                    kc_stats        TEXT,
                    enriched_at     TEXT,
                    created_at      TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at      TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_matches_status_date
                ON matches (status, date)
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_matches_game_date
                ON matches (game, date)
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS casters (
                    id              INTEGER PRIMARY KEY AUTOINCREMENT,
                    name            TEXT UNIQUE NOT NULL,
                    twitch_link     TEXT NOT NULL,
                    leagues         TEXT NOT NULL,
                    created_at      TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at      TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

            self._commit_with_retry(context="init schema commit")
        except sqlite3.Error as e:
            raise RuntimeError(f"Failed to initialize database at '{self.db_path}': {e}")

    def _commit_with_retry(self, retries: int = 8, delay_seconds: float = 0.25, context: str = "commit") -> None:
        """
        Retry commit on transient SQLITE_BUSY/locked errors.
        """
        last_error = None
        for attempt in range(retries):
            try:
                self.conn.commit()
                return
            except sqlite3.OperationalError as e:
                last_error = e
                if "locked" not in str(e).lower() and "busy" not in str(e).lower():
                    raise
                if attempt == retries - 1:
                    break
                time.sleep(delay_seconds)
        raise RuntimeError(
            f"Failed to {context}: database remained locked after {retries} attempts ({last_error})"
        )

    def _set_wal_mode_best_effort(self, retries: int = 5, delay_seconds: float = 0.2) -> None:
        """Try to enable WAL without failing startup if the DB is temporarily locked."""
        if self.db_path == ":memory:":
            return
        for attempt in range(retries):
            try:
                self.conn.execute("PRAGMA journal_mode = WAL")
                return
            except sqlite3.OperationalError as e:
                msg = str(e).lower()
                if "locked" not in msg and "busy" not in msg:
                    raise
                if attempt == retries - 1:
                    logger.warning("Could not enable WAL mode (database locked); continuing. (%s)", e)
                    return
                time.sleep(delay_seconds)

    # --- Row mapping ---

    @staticmethod
    def _json_load(raw: Any, fallback: Any) -> Any:
        if raw is None or raw == "":
            return fallback
        try:
            return json.loads(raw)
        except (TypeError, json.JSONDecodeError):
            logger.warning("Invalid JSON column value; using fallback.")
            return fallback

    @staticmethod
    def _json_dump(value: Any) -> Optional[str]:
        if value is None:
            return None
        return json.dumps(value, ensure_ascii=False)

    def _row_to_match(self, row: sqlite3.Row) -> Match:
        doc = {
            "matchId": row["match_id"],
            "game": row["game"],
            "league": row["league"],
            "leagueLogoUrl": row["league_logo_url"],
            "type": row["type"],
            "date": row["date"],
            "status": row["status"],
            "rounds": row["rounds"],
            "teams": self._json_load(row["teams"], []),
            "casters": self._json_load(row["casters"], []),
            "rankingData": self._json_load(row["ranking_data"], None),
            "kcStats": self._json_load(row["kc_stats"], None),
            "enrichedAt": row["enriched_at"],
        }
        return Match.from_document(doc)

    def _match_params(self, match: Match) -> Dict[str, Any]:
        doc = match.to_document()
        return {
            "match_id": doc["matchId"],
            "game": doc["game"],
            "league": doc["league"],
            "league_logo_url": doc["leagueLogoUrl"],
            "type": doc["type"],
            "date": doc["date"],
            "status": doc["status"],
            "rounds": doc["rounds"],
            "teams": self._json_dump(doc["teams"]),
            "casters": self._json_dump(doc["casters"]),
            "ranking_data": self._json_dump(doc["rankingData"]),
            "kc_stats": self._json_dump(doc["kcStats"]),
            "enriched_at": to_utc_iso(match.enriched_at) if match.enriched_at else None,
        }

    # --- Matches: reads ---

    def find_matches(
        self,
        status: Optional[int] = None,
        game: Optional[str] = None,
        games: Optional[Iterable[str]] = None,
        league: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        enriched: Optional[bool] = None,
        sort: str = "asc",
        limit: Optional[int] = None,
    ) -> List[Match]:
        """Find matches by filter, sorted by date."""
        clauses: List[str] = []
        params: List[Any] = []

        if status is not None:
            clauses.append("status = ?")
            params.append(int(status))
        if game is not None:
            clauses.append("game = ?")
            params.append(game)
        if games is not None:
            games = list(games)
            if not games:
                return []
            clauses.append(f"game IN ({', '.join('?' for _ in games)})")
            params.extend(games)
        if league is not None:
            clauses.append("league = ?")
            params.append(league)
        if date_from is not None:
            clauses.append("date >= ?")
            params.append(to_utc_iso(date_from))
        if date_to is not None:
            clauses.append("date <= ?")
            params.append(to_utc_iso(date_to))
        if enriched is True:
            clauses.append("enriched_at IS NOT NULL")
        elif enriched is False:
            clauses.append("enriched_at IS NULL")

        sql = f"SELECT {self.MATCH_COLUMNS} FROM matches"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += f" ORDER BY date {'DESC' if str(sort).lower() == 'desc' else 'ASC'}, id ASC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))

        cursor = self.conn.cursor()
        cursor.execute(sql, params)
        return [self._row_to_match(row) for row in cursor.fetchall()]

    def get_match(self, match_id: str) -> Optional[Match]:
        cursor = self.conn.cursor()
        cursor.execute(f"SELECT {self.MATCH_COLUMNS} FROM matches WHERE match_id = ?", (match_id,))
        row = cursor.fetchone()
        return self._row_to_match(row) if row else None

    def get_existing_match_ids(self, match_ids: Iterable[str]) -> Set[str]:
        """Return which of the given match IDs are already stored."""
        ids = [str(m) for m in match_ids if m]
        if not ids:
            return set()
        cursor = self.conn.cursor()
        cursor.execute(
            f"SELECT match_id FROM matches WHERE match_id IN ({', '.join('?' for _ in ids)})",
            ids,
        )
        return {row["match_id"] for row in cursor.fetchall()}

    def match_count(self) -> int:
        cursor = self.conn.cursor()
        cursor.execute("SELECT COUNT(*) FROM matches")
        return int(cursor.fetchone()[0])

    # --- Matches: writes ---

    def insert_match(self, match: Match) -> int:
        """Insert a new match; raises PersistenceConflict on a known match_id."""
        params = self._match_params(match)
        try:
            cursor = self.conn.cursor()
            cursor.execute(
                """
                INSERT INTO matches (
                    match_id, game, league, league_logo_url, type, date, status, rounds,
                    teams, casters, ranking_data, kc_stats, enriched_at
                ) VALUES (
                    :match_id, :game, :league, :league_logo_url, :type, :date, :status, :rounds,
                    :teams, :casters, :ranking_data, :kc_stats, :enriched_at
                )
                """,
                params,
            )
            self._commit_with_retry(context="insert match commit")
            return cursor.lastrowid
        except sqlite3.IntegrityError as e:
            self.conn.rollback()
            raise PersistenceConflict(match.match_id, f"Match '{match.match_id}' already exists: {e}")
        except sqlite3.Error as e:
            self.conn.rollback()
            raise RuntimeError(f"Failed to insert match '{match.match_id}': {e}")

    def insert_matches(self, matches: Iterable[Match]) -> int:
        """Insert a batch; conflicting records are skipped and the rest proceed."""
        inserted = 0
        for match in matches:
            try:
                self.insert_match(match)
                inserted += 1
            except PersistenceConflict as e:
                logger.warning("Skipping insert: %s", e)
        return inserted

    def save_match(self, match: Match) -> None:
        """Upsert by match_id. Status never moves backwards."""
        params = self._match_params(match)
        try:
            cursor = self.conn.cursor()
            cursor.execute(
                """
                INSERT INTO matches (
                    match_id, game, league, league_logo_url, type, date, status, rounds,
                    teams, casters, ranking_data, kc_stats, enriched_at
                ) VALUES (
                    :match_id, :game, :league, :league_logo_url, :type, :date, :status, :rounds,
                    :teams, :casters, :ranking_data, :kc_stats, :enriched_at
                )
                ON CONFLICT(match_id) DO UPDATE SET
                    game = excluded.game,
                    league = excluded.league,
                    league_logo_url = excluded.league_logo_url,
                    type = excluded.type,
                    date = excluded.date,
                    status = MAX(matches.status, excluded.status),
                    rounds = excluded.rounds,
                    teams = excluded.teams,
                    casters = excluded.casters,
                    ranking_data = excluded.ranking_data,
                    kc_stats = excluded.kc_stats,
                    enriched_at = excluded.enriched_at,
                    updated_at = CURRENT_TIMESTAMP
                """,
                params,
            )
            self._commit_with_retry(context="save match commit")
        except sqlite3.Error as e:
            self.conn.rollback()
            raise RuntimeError(f"Failed to save match '{match.match_id}': {e}")

    def update_status(self, match_id: str, new_status: int) -> bool:
        """Move a match forward to new_status. Returns False when nothing changed."""
        try:
            cursor = self.conn.cursor()
            cursor.execute(
                """
                UPDATE matches
                SET status = ?, updated_at = CURRENT_TIMESTAMP
                WHERE match_id = ? AND status < ?
                """,
                (int(new_status), match_id, int(new_status)),
            )
            self._commit_with_retry(context="update status commit")
            return cursor.rowcount > 0
        except sqlite3.Error as e:
            self.conn.rollback()
            raise RuntimeError(f"Failed to update status for match '{match_id}': {e}")

    def update_team_scores(
        self,
        match_id: str,
        scores_by_team: Dict[str, Optional[int]],
        status: int = MatchStatus.COMPLETED,
    ) -> bool:
        """
        Set team scores matched by team name and advance the status.

        Equivalent of an update with array filters on teams[].name; teams
        whose name is not in scores_by_team keep their score.
        """
        try:
            cursor = self.conn.cursor()
            cursor.execute("SELECT teams, status FROM matches WHERE match_id = ?", (match_id,))
            row = cursor.fetchone()
            if not row:
                return False

            teams = self._json_load(row["teams"], [])
            for team in teams:
                name = team.get("name")
                if name in scores_by_team:
                    team["score"] = scores_by_team[name]

            cursor.execute(
                """
                UPDATE matches
                SET teams = ?, status = MAX(status, ?), updated_at = CURRENT_TIMESTAMP
                WHERE match_id = ?
                """,
                (self._json_dump(teams), int(status), match_id),
            )
            self._commit_with_retry(context="update team scores commit")
            return True
        except sqlite3.Error as e:
            self.conn.rollback()
            raise RuntimeError(f"Failed to update scores for match '{match_id}': {e}")

    # --- Casters ---

    def upsert_caster(self, caster: Caster) -> None:
        try:
            cursor = self.conn.cursor()
            cursor.execute(
                """
                INSERT INTO casters (name, twitch_link, leagues) VALUES (?, ?, ?)
                ON CONFLICT(name) DO UPDATE SET
                    twitch_link = excluded.twitch_link,
                    leagues = excluded.leagues,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (caster.name, caster.twitch_link, self._json_dump(caster.leagues)),
            )
            self._commit_with_retry(context="upsert caster commit")
        except sqlite3.Error as e:
            self.conn.rollback()
            raise RuntimeError(f"Failed to upsert caster '{caster.name}': {e}")

    def get_all_casters(self) -> List[Caster]:
        cursor = self.conn.cursor()
        cursor.execute("SELECT name, twitch_link, leagues FROM casters ORDER BY name")
        return [
            Caster(
                name=row["name"],
                twitch_link=row["twitch_link"],
                leagues=self._json_load(row["leagues"], []),
            )
            for row in cursor.fetchall()
        ]

    def find_casters_by_league(self, league: str) -> List[Caster]:
        return [c for c in self.get_all_casters() if league in c.leagues]

    def count_casters(self) -> int:
        cursor = self.conn.cursor()
        cursor.execute("SELECT COUNT(*) FROM casters")
        return int(cursor.fetchone()[0])

    def close(self):
        """Close database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None
