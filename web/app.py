from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from datetime import datetime, time, timedelta, timezone
import logging
import os
import re
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from kcagenda import tasks
from kcagenda.config import GAMES, Settings, configure_logging
from kcagenda.database import Database

settings = Settings.from_env()
configure_logging(settings.log_level)
logger = logging.getLogger("kcagenda.web")

app = FastAPI()

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
MAX_RANGE_DAYS = 90
MAX_MATCHES = 50


def _parse_day(raw: str, label: str) -> datetime:
    if not raw or not DATE_PATTERN.match(raw):
        raise HTTPException(status_code=400, detail=f"Invalid {label}, expected YYYY-MM-DD")
    try:
        return datetime.strptime(raw, "%Y-%m-%d").replace(tzinfo=timezone.utc)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {label}, expected YYYY-MM-DD")


def _authorized(request: Request) -> bool:
    secret = settings.scraper_secret
    return bool(secret) and request.headers.get("Authorization") == secret


async def _run_task(request: Request, label: str, action) -> JSONResponse:
    if not _authorized(request):
        return JSONResponse(status_code=401, content={"success": False, "error": "Unauthorized"})
    try:
        await action()
    except Exception:
        logger.exception("Task %s failed", label)
        return JSONResponse(status_code=500, content={"success": False, "error": f"Error running {label}"})
    return JSONResponse(content={"success": True})


@app.get("/api/matches")
async def list_matches(startDate: str = "", endDate: str = "") -> JSONResponse:
    start_day = _parse_day(startDate, "startDate")
    end_day = _parse_day(endDate, "endDate")
    if end_day < start_day:
        raise HTTPException(status_code=400, detail="endDate is before startDate")
    if end_day - start_day > timedelta(days=MAX_RANGE_DAYS):
        raise HTTPException(status_code=400, detail=f"Date range exceeds {MAX_RANGE_DAYS} days")

    start = datetime.combine(start_day.date(), time.min, tzinfo=timezone.utc)
    end = datetime.combine(end_day.date(), time(23, 59, 59, 999000), tzinfo=timezone.utc)

    try:
        db = Database(settings.db_path)
        try:
            matches = db.find_matches(date_from=start, date_to=end, limit=MAX_MATCHES)
        finally:
            db.close()
    except Exception as e:
        logger.exception("Failed to load matches")
        raise HTTPException(status_code=500, detail=f"Failed to load matches: {str(e)}")

    return JSONResponse(
        content=[m.to_document() for m in matches],
        headers={"Cache-Control": "public, max-age=300"},
    )


@app.post("/api/tasks/scrape-matches")
async def scrape_matches(request: Request) -> JSONResponse:
    async def action():
        for game in GAMES:
            await tasks.run_discovery(game, settings=settings)
        await tasks.run_enrichment(settings=settings)

    return await _run_task(request, "match discovery", action)


@app.post("/api/tasks/scrape-div-two-matches")
async def scrape_div_two_matches(request: Request) -> JSONResponse:
    async def action():
        await tasks.run_div2_discovery(settings=settings)
        await tasks.run_enrichment(settings=settings)

    return await _run_task(request, "division 2 discovery", action)


@app.post("/api/tasks/change-status")
async def change_status(request: Request) -> JSONResponse:
    return await _run_task(request, "status sweep", lambda: tasks.run_status_sweep(settings=settings))


@app.post("/api/tasks/check-result")
async def check_result(request: Request) -> JSONResponse:
    return await _run_task(request, "result check", lambda: tasks.run_live_result_check(settings=settings))


@app.post("/api/tasks/update-lol-stats")
async def update_lol_stats(request: Request) -> JSONResponse:
    return await _run_task(request, "stats refresh", lambda: tasks.run_standings_refresh(settings=settings))
