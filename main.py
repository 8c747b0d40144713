# main.py
"""
Command line entry point for the match pipeline.

Usage:
    python main.py discover --game lol
    python main.py discover-div2
    python main.py enrich
    python main.py check-results
    python main.py sweep
    python main.py refresh-stats
    python main.py seed-casters
    python main.py schedule
"""

import argparse
import asyncio
import logging
import sys

from kcagenda import tasks
from kcagenda.casters import seed_casters
from kcagenda.config import LOL, VALORANT, Settings, configure_logging
from kcagenda.database import Database
from kcagenda.scheduler import Scheduler, default_jobs

logger = logging.getLogger("kcagenda")

GAME_CHOICES = {"lol": LOL, "valorant": VALORANT}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Karmine Corp match agenda: discovery, enrichment and result tracking",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--db", help="Database path (default: KCAGENDA_DB_PATH or data/kcagenda.db)")
    parser.add_argument("--headed", action="store_true", help="Show the browser window")
    parser.add_argument("--log-level", help="Logging level (default: KCAGENDA_LOG_LEVEL or INFO)")

    sub = parser.add_subparsers(dest="command", required=True)

    discover = sub.add_parser("discover", help="Find upcoming matches on the official esports API")
    discover.add_argument("--game", choices=sorted(GAME_CHOICES), default="lol")
    discover.add_argument("--enrich", action="store_true", help="Enrich new drafts right away")

    sub.add_parser("discover-div2", help="Find division 2 matches on the bracket site")
    sub.add_parser("enrich", help="Fill rosters, stats, standings and head-to-head of drafts")
    sub.add_parser("check-results", help="Complete live matches whose result is published")
    sub.add_parser("sweep", help="Mark started matches as live")
    sub.add_parser("refresh-stats", help="Re-scrape stats of upcoming League of Legends matches")

    seed = sub.add_parser("seed-casters", help="Load the caster roster into the database")
    seed.add_argument("--force", action="store_true", help="Rewrite casters even if some exist")

    sub.add_parser("schedule", help="Run all jobs on their schedule until interrupted")
    return parser


def settings_from_args(args: argparse.Namespace) -> Settings:
    settings = Settings.from_env()
    if args.db:
        settings.db_path = args.db
    if args.headed:
        settings.headless = False
    if args.log_level:
        settings.log_level = args.log_level.upper()
    return settings


async def run_schedule(settings: Settings) -> None:
    scheduler = Scheduler(default_jobs(settings))
    scheduler.start()
    try:
        await asyncio.Event().wait()
    finally:
        await scheduler.stop()


async def dispatch(args: argparse.Namespace, settings: Settings) -> int:
    command = args.command
    if command == "discover":
        inserted = await tasks.run_discovery(GAME_CHOICES[args.game], settings=settings)
        print(f"Inserted {inserted} new match(es)")
        if args.enrich and inserted:
            saved = await tasks.run_enrichment(settings=settings)
            print(f"Enriched {saved} match(es)")
    elif command == "discover-div2":
        inserted = await tasks.run_div2_discovery(settings=settings)
        print(f"Inserted {inserted} new division 2 match(es)")
    elif command == "enrich":
        saved = await tasks.run_enrichment(settings=settings)
        print(f"Enriched {saved} match(es)")
    elif command == "check-results":
        completed = await tasks.run_live_result_check(settings=settings)
        print(f"Completed {completed} match(es)")
    elif command == "sweep":
        promoted = await tasks.run_status_sweep(settings=settings)
        print(f"{promoted} match(es) now live")
    elif command == "refresh-stats":
        refreshed = await tasks.run_standings_refresh(settings=settings)
        print(f"Refreshed {refreshed} match(es)")
    elif command == "seed-casters":
        db = Database(settings.db_path)
        try:
            written = seed_casters(db, force=args.force)
        finally:
            db.close()
        print(f"Seeded {written} caster(s)")
    elif command == "schedule":
        await run_schedule(settings)
    return 0


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = settings_from_args(args)
    configure_logging(settings.log_level)

    try:
        return asyncio.run(dispatch(args, settings))
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 130
    except Exception as e:
        logger.exception("Command %s failed", args.command)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
