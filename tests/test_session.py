# tests/test_session.py

import asyncio

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeout

from kcagenda.config import Settings
from kcagenda.errors import FetchTimeout
from kcagenda.scraper import BrowserSession


class FakeResponse:
    def __init__(self, url, body, status=200):
        self.url = url
        self.status = status
        self._body = body

    async def json(self):
        if isinstance(self._body, Exception):
            raise self._body
        return self._body


class FakePage:
    def __init__(self, html="<html></html>", slow_goto=False, missing_selector=False, responses=()):
        self.html = html
        self.slow_goto = slow_goto
        self.missing_selector = missing_selector
        self.responses = list(responses)
        self.handlers = []
        self.closed = False
        self.clicked = []

    async def goto(self, url, wait_until=None, timeout=None):
        if self.slow_goto:
            raise PlaywrightTimeout("Timeout 60000ms exceeded")
        for response in self.responses:
            for handler in list(self.handlers):
                await handler(response)
        return FakeResponse(url, None)

    async def click(self, selector, timeout=None):
        self.clicked.append(selector)
        raise PlaywrightTimeout("no banner")

    async def wait_for_selector(self, selector, timeout=None):
        if self.missing_selector:
            raise PlaywrightTimeout(f"waiting for {selector}")

    async def content(self):
        return self.html

    def on(self, event, handler):
        self.handlers.append(handler)

    def remove_listener(self, event, handler):
        self.handlers.remove(handler)

    async def close(self):
        self.closed = True


def _session(page, monkeypatch):
    session = BrowserSession(Settings(intercept_timeout_s=0.5))

    async def new_page():
        return page

    monkeypatch.setattr(session, "_new_page", new_page)
    return session


def test_get_html_returns_rendered_page(monkeypatch):
    page = FakePage("<html><table class='wikitable'></table></html>")
    html = asyncio.run(_session(page, monkeypatch).get_html("https://x", selector="table", dismiss_consent=True))
    assert "wikitable" in html
    assert page.closed
    assert page.clicked == ["#onetrust-reject-all-handler"]


def test_missing_selector_returns_none(monkeypatch):
    page = FakePage(missing_selector=True)
    assert asyncio.run(_session(page, monkeypatch).get_html("https://x", selector="table.wikitable")) is None
    assert page.closed


def test_navigation_timeout_raises_fetch_timeout(monkeypatch):
    page = FakePage(slow_goto=True)
    with pytest.raises(FetchTimeout):
        asyncio.run(_session(page, monkeypatch).get_html("https://x"))
    assert page.closed


def test_capture_json_keeps_matching_responses(monkeypatch):
    page = FakePage(responses=[
        FakeResponse("https://site/api/other", {"skip": True}),
        FakeResponse("https://site/api/rounds?tournament_ids=T1", [{"id": "R1"}]),
    ])
    captured = asyncio.run(_session(page, monkeypatch).capture_json("https://site", lambda u: "/api/rounds" in u))
    assert captured == [("https://site/api/rounds?tournament_ids=T1", [{"id": "R1"}])]
    assert page.handlers == []
    assert page.closed


def test_capture_json_times_out_empty(monkeypatch):
    page = FakePage(responses=[FakeResponse("https://site/api/rounds", ValueError("not json"))])
    captured = asyncio.run(
        _session(page, monkeypatch).capture_json("https://site", lambda u: "/api/rounds" in u, timeout_s=0.25)
    )
    assert captured == []


def test_unstarted_session():
    session = BrowserSession(Settings())
    with pytest.raises(RuntimeError):
        asyncio.run(session.request_json("https://x"))
    asyncio.run(session.close())
    asyncio.run(session.close())
