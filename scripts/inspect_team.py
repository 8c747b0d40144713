#!/usr/bin/env python3
# scripts/inspect_team.py
"""
Print what the resolvers find for a team, without touching the database.

Usage:
    python scripts/inspect_team.py --team "Karmine Corp" --league LEC
    python scripts/inspect_team.py --team "Karmine Corp Blue" --league LFL --opponent "Vitality.Bee"
    python scripts/inspect_team.py --team "Karmine Corp" --game valorant --headed
"""

import sys
import os
import argparse
import asyncio
import json
from datetime import datetime, timezone

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from kcagenda.config import LOL, VALORANT, Settings, configure_logging
from kcagenda.models import stats_year
from kcagenda.resolvers import HeadToHeadResolver, RosterResolver, StandingsResolver, TeamStatsResolver
from kcagenda.scraper import BrowserSession


async def inspect(args, settings: Settings) -> None:
    game = VALORANT if args.game == 'valorant' else LOL
    when = datetime.now(timezone.utc)
    if args.date:
        when = datetime.strptime(args.date, '%Y-%m-%d').replace(tzinfo=timezone.utc)
    season = stats_year(when)

    async with BrowserSession(settings) as session:
        players = await RosterResolver(session).resolve(args.team, game, args.league)
        print(f"Roster ({len(players)}):")
        for player in players:
            print(f"  {player.position or '-':<8} {player.name}")

        if game != LOL:
            return

        stats = await TeamStatsResolver(session).resolve(args.team, season, args.league)
        print(f"\n{season} stats: {len(stats.players)} player row(s), "
              f"{stats.number_of_champions_played} champion(s) played")
        for champion in stats.champions:
            print(f"  {champion.champion:<16} {champion.games_played:>4} games  {champion.win_rate}")

        if args.league:
            rows = await StandingsResolver(session).resolve(args.league, args.type, when)
            if rows is None:
                print(f"\nNo standings for {args.league} on {when.date()}")
            else:
                print(f"\nStandings ({len(rows)}):")
                for row in rows:
                    print(f"  {row.position:>3} {row.team_name:<28} {row.wins}-{row.losses}")

        if args.opponent:
            h2h = await HeadToHeadResolver(session).resolve(args.team, args.opponent, season)
            print(f"\nVs {args.opponent}:")
            print(json.dumps(h2h.to_dict(), indent=2))


def main():
    """Main CLI entrypoint."""
    parser = argparse.ArgumentParser(
        description='Inspect roster, stats, standings and head-to-head for a team',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument('--team', required=True, help='Team display name')
    parser.add_argument('--game', choices=['lol', 'valorant'], default='lol')
    parser.add_argument('--league', help='League name (enables standings)')
    parser.add_argument('--type', default='Regular Season', help='Match type (default: Regular Season)')
    parser.add_argument('--opponent', help='Opponent for head-to-head')
    parser.add_argument('--date', help='Reference date YYYY-MM-DD (default: today)')
    parser.add_argument('--headed', action='store_true', help='Show the browser window')
    args = parser.parse_args()

    settings = Settings.from_env()
    if args.headed:
        settings.headless = False
    configure_logging(settings.log_level)

    asyncio.run(inspect(args, settings))


if __name__ == '__main__':
    main()
