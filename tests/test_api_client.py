import json
from io import BytesIO
from urllib.error import HTTPError, URLError
from urllib.parse import parse_qs, urlparse

import pytest

from kcagenda.api_client import COMPLETED, UNSTARTED, EsportsAPIClient
from kcagenda.config import LOL, VALORANT
from kcagenda.errors import FetchTimeout
from kcagenda.models import MatchStatus
from tests.helpers import make_event, utc


@pytest.fixture
def client():
    return EsportsAPIClient(lookahead_days=60)


def _variables(url: str):
    query = parse_qs(urlparse(url).query)
    return json.loads(query["variables"][0])


def test_unstarted_window(client):
    url = client.build_home_events_url(LOL, UNSTARTED, utc(2025, 2, 20, 15, 30))
    assert url.startswith("https://lolesports.com/api/gql?")
    variables = _variables(url)
    assert variables["sport"] == "lol"
    assert variables["eventState"] == ["unstarted"]
    assert variables["eventDateStart"] == "2025-02-20T00:00:00.000Z"
    assert variables["eventDateEnd"] == "2025-04-21T01:00:00.000Z"
    assert "98767991302996019" in variables["leagues"]


def test_completed_window_starts_yesterday(client):
    variables = _variables(client.build_home_events_url(VALORANT, COMPLETED, utc(2025, 2, 20, 0, 30)))
    assert variables["sport"] == "val"
    assert variables["eventDateStart"] == "2025-02-19T00:00:00.000Z"
    assert variables["eventDateEnd"] == "2025-02-21T01:00:00.000Z"


def test_get_events_reads_payload(client, monkeypatch):
    seen = {}

    def fake_get(url, headers, retry_429=True):
        seen["url"] = url
        seen["headers"] = headers
        return {"data": {"esports": {"events": [{"id": "E1"}, {"id": "E2"}]}}}

    monkeypatch.setattr(client, "_get_json", fake_get)
    events = client.get_events(VALORANT, UNSTARTED, utc(2025, 2, 20))

    assert [e["id"] for e in events] == ["E1", "E2"]
    assert seen["headers"]["Origin"] == "https://valorantesports.com"
    assert seen["headers"]["x-apollo-operation-name"] == "homeEvents"


def test_get_events_empty_payload(client, monkeypatch):
    monkeypatch.setattr(client, "_get_json", lambda url, headers, retry_429=True: {"data": None})
    assert client.get_events(LOL) == []


def test_rate_limit_retry(monkeypatch):
    import kcagenda.api_client as api_module

    client = EsportsAPIClient()
    calls = {"count": 0}

    def fake_urlopen(req, timeout=20):
        calls["count"] += 1
        if calls["count"] == 1:
            raise HTTPError(req.full_url, 429, "Too Many Requests", hdrs=None, fp=BytesIO(b"{}"))
        return BytesIO(b'{"ok": true}')

    monkeypatch.setattr(api_module, "urlopen", fake_urlopen)
    monkeypatch.setattr(api_module.time, "sleep", lambda *_: None)

    data = client._get_json("https://example.com/test", {})
    assert data["ok"] is True
    assert calls["count"] == 2


def test_second_rate_limit_propagates(monkeypatch):
    import kcagenda.api_client as api_module

    def fake_urlopen(req, timeout=20):
        raise HTTPError(req.full_url, 429, "Too Many Requests", hdrs=None, fp=BytesIO(b"{}"))

    monkeypatch.setattr(api_module, "urlopen", fake_urlopen)
    monkeypatch.setattr(api_module.time, "sleep", lambda *_: None)

    with pytest.raises(HTTPError):
        EsportsAPIClient()._get_json("https://example.com/test", {})


def test_unreachable_host_is_fetch_timeout(monkeypatch):
    import kcagenda.api_client as api_module

    def fake_urlopen(req, timeout=20):
        raise URLError("timed out")

    monkeypatch.setattr(api_module, "urlopen", fake_urlopen)

    with pytest.raises(FetchTimeout):
        EsportsAPIClient()._get_json("https://example.com/test", {})


def test_event_to_draft():
    event = make_event("E1", "2025-03-01T17:00:00Z", [("Karmine Corp", "KC"), ("G2 Esports", "G2")],
                       league="LEC", block="Semaine 2", count=1)
    draft = EsportsAPIClient.event_to_draft(event, LOL)

    assert draft.match_id == "E1"
    assert draft.date == utc(2025, 3, 1, 17)
    assert draft.status == MatchStatus.SCHEDULED
    assert draft.type == "Semaine 2"
    assert draft.rounds == 1
    assert draft.teams[1].logo_url == "https://static.example/G2.png"
    assert all(team.players == [] for team in draft.teams)


def test_team_score():
    event = make_event("E1", "2025-03-01T17:00:00Z", [("Karmine Corp", "KC"), ("G2 Esports", "G2")], scores=[3, 2])
    assert [EsportsAPIClient.team_score(t) for t in EsportsAPIClient.event_teams(event)] == [3, 2]
    assert EsportsAPIClient.team_score({"name": "TBD"}) is None
