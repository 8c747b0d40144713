# kcagenda/scheduler.py
"""
In-process job scheduler.

All timing and running flags live on one SchedulerState owned by the
Scheduler. A job that is still running when its next tick comes is
skipped for that tick, never queued.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Dict, List, Optional, Set

from kcagenda import tasks
from kcagenda.config import GAMES, Settings

logger = logging.getLogger(__name__)

JobAction = Callable[[], Awaitable[object]]


class DailyAt:
    def __init__(self, hour: int, minute: int = 0):
        self.hour = hour
        self.minute = minute

    def next_run(self, now: datetime) -> datetime:
        candidate = now.replace(hour=self.hour, minute=self.minute, second=0, microsecond=0)
        if candidate <= now:
            candidate += timedelta(days=1)
        return candidate


class HourlyAt:
    def __init__(self, minute: int):
        self.minute = minute

    def next_run(self, now: datetime) -> datetime:
        candidate = now.replace(minute=self.minute, second=0, microsecond=0)
        if candidate <= now:
            candidate += timedelta(hours=1)
        return candidate


class Every:
    def __init__(self, minutes: int):
        self.interval = timedelta(minutes=minutes)

    def next_run(self, now: datetime) -> datetime:
        return now + self.interval


@dataclass
class Job:
    name: str
    schedule: object
    action: JobAction


@dataclass
class SchedulerState:
    running_jobs: Set[str] = field(default_factory=set)
    last_runs: Dict[str, datetime] = field(default_factory=dict)
    loops: List[asyncio.Task] = field(default_factory=list)
    active: Set[asyncio.Task] = field(default_factory=set)
    started: bool = False

    def is_running(self, name: str) -> bool:
        return name in self.running_jobs


class Scheduler:
    def __init__(self, jobs: List[Job], state: Optional[SchedulerState] = None, clock=None):
        self.jobs = jobs
        self.state = state or SchedulerState()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def run_guarded(self, job: Job) -> bool:
        """Run a job unless it is already running. Returns whether it ran."""
        if self.state.is_running(job.name):
            logger.info("Job %s still running; skipping this tick", job.name)
            return False

        self.state.running_jobs.add(job.name)
        try:
            logger.info("Job %s started", job.name)
            await job.action()
            logger.info("Job %s finished", job.name)
        except Exception:
            logger.exception("Job %s failed", job.name)
        finally:
            self.state.running_jobs.discard(job.name)
            self.state.last_runs[job.name] = self._clock()
        return True

    async def _loop(self, job: Job) -> None:
        while self.state.started:
            now = self._clock()
            delay = (job.schedule.next_run(now) - now).total_seconds()
            await asyncio.sleep(max(0.0, delay))
            if not self.state.started:
                break
            # Detached run; overlapping ticks hit the running guard.
            run = asyncio.create_task(self.run_guarded(job))
            self.state.active.add(run)
            run.add_done_callback(self.state.active.discard)

    def start(self) -> None:
        if self.state.started:
            return
        self.state.started = True
        for job in self.jobs:
            self.state.loops.append(asyncio.create_task(self._loop(job), name=f"job:{job.name}"))
        logger.info("Scheduler started with %d job(s)", len(self.jobs))

    async def stop(self) -> None:
        self.state.started = False
        pending = list(self.state.loops) + list(self.state.active)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self.state.loops.clear()
        self.state.active.clear()
        self.state.running_jobs.clear()
        logger.info("Scheduler stopped")


def default_jobs(settings: Settings) -> List[Job]:
    async def discover_and_enrich():
        for game in GAMES:
            try:
                await tasks.run_discovery(game, settings=settings)
            except Exception:
                logger.exception("Discovery failed for %s", game)
        try:
            await tasks.run_div2_discovery(settings=settings)
        except Exception:
            logger.exception("Division 2 discovery failed")
        await tasks.run_enrichment(settings=settings)

    return [
        Job("discovery", DailyAt(23, 0), discover_and_enrich),
        Job("status-sweep", HourlyAt(1), lambda: tasks.run_status_sweep(settings=settings)),
        Job("live-results", Every(10), lambda: tasks.run_live_result_check(settings=settings)),
        Job("stats-refresh", DailyAt(4, 0), lambda: tasks.run_standings_refresh(settings=settings)),
    ]
