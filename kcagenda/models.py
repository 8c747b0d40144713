# kcagenda/models.py
"""
Match data model.

Documents are persisted with the camelCase keys the calendar UI reads
(matchId, logoUrl, rankingData, kcStats ...). In Python the records are
dataclasses; game-specific stats are tagged records selected by game.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any, Dict, List, Optional, Tuple

from kcagenda.config import LOL


class MatchStatus(IntEnum):
    SCHEDULED = 0
    LIVE = 1
    COMPLETED = 2


def to_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def stats_year(value: datetime) -> int:
    """Calendar year whose statistics and match history cover a date."""
    return to_utc(value).year


def to_utc_iso(value: datetime) -> str:
    """Serialize to a fixed-width UTC ISO string so text ordering is time ordering."""
    return to_utc(value).strftime("%Y-%m-%dT%H:%M:%S.%f+00:00")


def parse_utc(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_utc(value)
    try:
        return to_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))
    except ValueError:
        return None


# --- League of Legends stat rows ---

@dataclass
class LolPlayerStats:
    name: str
    kda: str = ""
    csm: str = ""
    gm: str = ""
    dmgm: str = ""
    kpar: str = ""
    most_played_champions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "kda": self.kda,
            "csm": self.csm,
            "gm": self.gm,
            "dmgm": self.dmgm,
            "kpar": self.kpar,
            "mostPlayedChampion": list(self.most_played_champions),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LolPlayerStats":
        return cls(
            name=data.get("name", ""),
            kda=data.get("kda", ""),
            csm=data.get("csm", ""),
            gm=data.get("gm", ""),
            dmgm=data.get("dmgm", ""),
            kpar=data.get("kpar", ""),
            most_played_champions=list(data.get("mostPlayedChampion") or []),
        )


@dataclass
class LolChampionStats:
    champion: str
    games_played: str = ""
    win_rate: str = ""
    kda: str = ""
    csm: str = ""
    gm: str = ""
    dmgm: str = ""
    kpar: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "champion": self.champion,
            "gamesPlayed": self.games_played,
            "winRate": self.win_rate,
            "kda": self.kda,
            "csm": self.csm,
            "gm": self.gm,
            "dmgm": self.dmgm,
            "kpar": self.kpar,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LolChampionStats":
        return cls(
            champion=data.get("champion", ""),
            games_played=data.get("gamesPlayed", ""),
            win_rate=data.get("winRate", ""),
            kda=data.get("kda", ""),
            csm=data.get("csm", ""),
            gm=data.get("gm", ""),
            dmgm=data.get("dmgm", ""),
            kpar=data.get("kpar", ""),
        )


# Tagged stat records per game. Games without an entry carry no stats.
PLAYER_STATS_TYPES = {LOL: LolPlayerStats}
CHAMPION_STATS_TYPES = {LOL: LolChampionStats}


@dataclass
class TeamStats:
    """Result of a team statistics lookup for one season."""

    players: List[LolPlayerStats] = field(default_factory=list)
    champions: List[LolChampionStats] = field(default_factory=list)
    number_of_champions_played: int = 0

    @classmethod
    def empty(cls) -> "TeamStats":
        return cls()

    def player(self, name: str) -> Optional[LolPlayerStats]:
        for row in self.players:
            if row.name == name:
                return row
        return None


# --- Match snapshot payloads ---

@dataclass
class RankingRow:
    position: str
    team_name: str
    region_name: str
    wins: str = ""
    losses: str = ""
    percentage: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "position": self.position,
            "teamName": self.team_name,
            "regionName": self.region_name,
            "series": {"win": self.wins, "lose": self.losses, "percentage": self.percentage},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RankingRow":
        series = data.get("series") or {}
        return cls(
            position=data.get("position", ""),
            team_name=data.get("teamName", ""),
            region_name=data.get("regionName", ""),
            wins=series.get("win", ""),
            losses=series.get("lose", ""),
            percentage=series.get("percentage", ""),
        )


@dataclass
class HeadToHeadStats:
    win_by_red_side_percentage: float = 0.0
    win_by_blue_side_percentage: float = 0.0
    winrate_vs_other_team_percentage: Optional[float] = None
    top_three_champions: Optional[List[Tuple[str, int]]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "winByRedSidePercentage": self.win_by_red_side_percentage,
            "winByBlueSidePercentage": self.win_by_blue_side_percentage,
        }
        if self.winrate_vs_other_team_percentage is not None:
            data["winrateVsOtherTeamPercentage"] = self.winrate_vs_other_team_percentage
        if self.top_three_champions is not None:
            data["topThreeChampions"] = [[name, count] for name, count in self.top_three_champions]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HeadToHeadStats":
        top = data.get("topThreeChampions")
        return cls(
            win_by_red_side_percentage=float(data.get("winByRedSidePercentage") or 0.0),
            win_by_blue_side_percentage=float(data.get("winByBlueSidePercentage") or 0.0),
            winrate_vs_other_team_percentage=data.get("winrateVsOtherTeamPercentage"),
            top_three_champions=[(str(n), int(c)) for n, c in top] if top is not None else None,
        )


@dataclass
class Caster:
    name: str
    twitch_link: str
    leagues: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "twitchLink": self.twitch_link, "leagues": list(self.leagues)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Caster":
        return cls(
            name=data.get("name", ""),
            twitch_link=data.get("twitchLink") or data.get("twitch_link", ""),
            leagues=list(data.get("leagues") or []),
        )


# --- Match aggregate ---

@dataclass
class Player:
    name: str
    position: Optional[str] = None
    stats: Optional[LolPlayerStats] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "position": self.position,
            "stats": self.stats.to_dict() if self.stats else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], game: str = LOL) -> "Player":
        stats_type = PLAYER_STATS_TYPES.get(game)
        raw = data.get("stats")
        return cls(
            name=data.get("name", ""),
            position=data.get("position"),
            stats=stats_type.from_dict(raw) if stats_type and raw else None,
        )


@dataclass
class Team:
    name: str
    acronym: str = ""
    logo_url: str = ""
    players: List[Player] = field(default_factory=list)
    score: Optional[int] = None
    stats: Optional[List[LolChampionStats]] = None
    number_of_champions_played: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "acronym": self.acronym,
            "logoUrl": self.logo_url,
            "players": [p.to_dict() for p in self.players],
            "score": self.score,
            "stats": [c.to_dict() for c in self.stats] if self.stats is not None else None,
            "numberOfChampionsPlayed": self.number_of_champions_played,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], game: str = LOL) -> "Team":
        champion_type = CHAMPION_STATS_TYPES.get(game)
        raw_stats = data.get("stats")
        stats = None
        if champion_type and isinstance(raw_stats, list):
            stats = [champion_type.from_dict(row) for row in raw_stats]
        return cls(
            name=data.get("name", ""),
            acronym=data.get("acronym", ""),
            logo_url=data.get("logoUrl", ""),
            players=[Player.from_dict(p, game) for p in data.get("players") or []],
            score=data.get("score"),
            stats=stats,
            number_of_champions_played=data.get("numberOfChampionsPlayed"),
        )


@dataclass
class Match:
    match_id: str
    game: str
    league: str
    type: str
    date: datetime
    teams: List[Team] = field(default_factory=list)
    status: MatchStatus = MatchStatus.SCHEDULED
    rounds: Optional[int] = None
    league_logo_url: Optional[str] = None
    casters: List[Caster] = field(default_factory=list)
    ranking_data: Optional[List[RankingRow]] = None
    kc_stats: Optional[HeadToHeadStats] = None
    enriched_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        self.date = to_utc(self.date)
        self.status = MatchStatus(int(self.status))

    def team_names(self) -> List[str]:
        return [team.name for team in self.teams]

    def to_document(self) -> Dict[str, Any]:
        return {
            "matchId": self.match_id,
            "game": self.game,
            "league": self.league,
            "leagueLogoUrl": self.league_logo_url,
            "type": self.type,
            "date": to_utc_iso(self.date),
            "status": int(self.status),
            "rounds": self.rounds,
            "teams": [t.to_dict() for t in self.teams],
            "casters": [c.to_dict() for c in self.casters],
            "rankingData": [r.to_dict() for r in self.ranking_data] if self.ranking_data is not None else None,
            "kcStats": self.kc_stats.to_dict() if self.kc_stats else None,
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Match":
        game = doc.get("game", LOL)
        ranking = doc.get("rankingData")
        kc_stats = doc.get("kcStats")
        return cls(
            match_id=doc["matchId"],
            game=game,
            league=doc.get("league", ""),
            type=doc.get("type", ""),
            date=parse_utc(doc.get("date")) or datetime.now(timezone.utc),
            teams=[Team.from_dict(t, game) for t in doc.get("teams") or []],
            status=MatchStatus(int(doc.get("status") or 0)),
            rounds=doc.get("rounds"),
            league_logo_url=doc.get("leagueLogoUrl"),
            casters=[Caster.from_dict(c) for c in doc.get("casters") or []],
            ranking_data=[RankingRow.from_dict(r) for r in ranking] if ranking is not None else None,
            kc_stats=HeadToHeadStats.from_dict(kc_stats) if kc_stats else None,
            enriched_at=parse_utc(doc.get("enrichedAt")),
        )
