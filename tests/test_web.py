# tests/test_web.py

import pytest
from fastapi.testclient import TestClient

import web.app as web_app
from kcagenda import tasks
from kcagenda.config import GAMES, Settings
from kcagenda.models import MatchStatus
from tests.helpers import create_test_db, destroy_test_db, make_match, utc

SECRET = "s3cret"


@pytest.fixture
def db(monkeypatch):
    database, db_path = create_test_db()
    monkeypatch.setattr(web_app, "settings", Settings(db_path=db_path, scraper_secret=SECRET))
    yield database
    destroy_test_db(database, db_path)


@pytest.fixture
def client(db):
    return TestClient(web_app.app)


class TestMatchesRoute:

    def test_matches_in_range_sorted_by_date(self, db, client):
        db.insert_matches([
            make_match("late", utc(2025, 3, 2, 23, 59, 59)),
            make_match("early", utc(2025, 3, 1, 0, 0)),
            make_match("outside", utc(2025, 3, 3, 0, 0)),
            make_match("before", utc(2025, 2, 28, 23, 59)),
        ])

        response = client.get("/api/matches", params={"startDate": "2025-03-01", "endDate": "2025-03-02"})

        assert response.status_code == 200
        assert [m["matchId"] for m in response.json()] == ["early", "late"]
        assert "max-age=300" in response.headers["cache-control"]
        document = response.json()[0]
        assert document["teams"][0]["name"] == "Karmine Corp"
        assert document["status"] == MatchStatus.SCHEDULED

    def test_at_most_fifty_matches(self, db, client):
        db.insert_matches([make_match(f"M{i:02d}", utc(2025, 3, 1, 0, i)) for i in range(55)])
        response = client.get("/api/matches", params={"startDate": "2025-03-01", "endDate": "2025-03-01"})
        assert len(response.json()) == 50

    @pytest.mark.parametrize("params", [
        {},
        {"startDate": "2025-03-01"},
        {"startDate": "2025-3-1", "endDate": "2025-03-02"},
        {"startDate": "2025-02-30", "endDate": "2025-03-02"},
        {"startDate": "2025-03-02", "endDate": "2025-03-01"},
        {"startDate": "2025-01-01", "endDate": "2025-04-02"},
    ])
    def test_bad_ranges_rejected(self, client, params):
        assert client.get("/api/matches", params=params).status_code == 400

    def test_ninety_days_allowed(self, client):
        response = client.get("/api/matches", params={"startDate": "2025-01-01", "endDate": "2025-04-01"})
        assert response.status_code == 200
        assert response.json() == []


class TestTaskRoutes:

    def test_missing_or_wrong_token(self, client):
        for headers in ({}, {"Authorization": "nope"}):
            response = client.post("/api/tasks/change-status", headers=headers)
            assert response.status_code == 401
            assert response.json() == {"success": False, "error": "Unauthorized"}

    def test_empty_secret_rejects_everything(self, client, monkeypatch):
        monkeypatch.setattr(web_app, "settings", Settings(scraper_secret=""))
        response = client.post("/api/tasks/check-result", headers={"Authorization": ""})
        assert response.status_code == 401

    def test_scrape_matches_runs_discovery_then_enrichment(self, client, monkeypatch):
        calls = []

        async def fake_discovery(game, settings=None, **kwargs):
            calls.append(("discover", game))
            return 1

        async def fake_enrichment(settings=None, **kwargs):
            calls.append(("enrich",))
            return 1

        monkeypatch.setattr(tasks, "run_discovery", fake_discovery)
        monkeypatch.setattr(tasks, "run_enrichment", fake_enrichment)

        response = client.post("/api/tasks/scrape-matches", headers={"Authorization": SECRET})

        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert calls == [("discover", game) for game in GAMES] + [("enrich",)]

    @pytest.mark.parametrize("path,task_name", [
        ("/api/tasks/change-status", "run_status_sweep"),
        ("/api/tasks/check-result", "run_live_result_check"),
        ("/api/tasks/update-lol-stats", "run_standings_refresh"),
    ])
    def test_single_task_routes(self, client, monkeypatch, path, task_name):
        calls = []

        async def fake_task(settings=None, **kwargs):
            calls.append(settings.scraper_secret)
            return 0

        monkeypatch.setattr(tasks, task_name, fake_task)

        response = client.post(path, headers={"Authorization": SECRET})
        assert response.json() == {"success": True}
        assert calls == [SECRET]

    def test_pipeline_failure_is_generic_500(self, client, monkeypatch):
        async def broken(settings=None, **kwargs):
            raise RuntimeError("database is locked")

        monkeypatch.setattr(tasks, "run_div2_discovery", broken)

        response = client.post("/api/tasks/scrape-div-two-matches", headers={"Authorization": SECRET})
        assert response.status_code == 500
        assert response.json()["success"] is False
        assert "locked" not in response.json()["error"]
