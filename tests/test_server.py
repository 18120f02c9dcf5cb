"""HTTP tests for taxcode.server routes.

The TestClient is used without entering the lifespan, so no settings file is
read and no background load starts; each test installs its own store.
"""
from __future__ import annotations

import asyncio
import logging

import pytest
from fastapi.testclient import TestClient

from taxcode import loader, server
from taxcode.config import Settings
from taxcode.parsing_types import Section, Source
from taxcode.store import SectionStore

URL = "https://example.org/code"


def _store(*sections: Section) -> SectionStore:
    store = SectionStore()
    store.publish(list(sections), details={"id_stride": 1000, "sources": []})
    return store


SECTIONS = (
    Section(1001, "Article 1 ...", URL, "Article 1. Tax definitions. VAT is ...", "article", "1"),
    Section(1002, "Article 2 ...", URL, "Article 2. Rates. ...", "article", "2"),
)


@pytest.fixture()
def client(monkeypatch: pytest.MonkeyPatch) -> TestClient:
    monkeypatch.setattr(server, "_store", _store(*SECTIONS))
    return TestClient(server.app)


class TestHealth:
    def test_ready(self, client: TestClient) -> None:
        body = client.get("/health").json()
        assert body["status"] == "ok"
        assert body["state"] == "ready"
        assert body["sections"] == 2

    def test_empty(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(server, "_store", SectionStore())
        body = TestClient(server.app).get("/health").json()
        assert body["status"] == "empty"
        assert body["sections"] == 0


class TestSearchRoutes:
    def test_post_search(self, client: TestClient) -> None:
        resp = client.post("/search", json={"query": "VAT", "limit": 5})
        assert resp.status_code == 200
        body = resp.json()
        assert body["total"] == 1
        hit = body["hits"][0]
        assert hit["id"] == 1001
        assert hit["url"] == URL
        assert "VAT" in hit["excerpt"]
        assert set(hit) == {"id", "title", "url", "score", "excerpt"}

    def test_get_search(self, client: TestClient) -> None:
        body = client.get("/search", params={"q": "VAT", "limit": "abc"}).json()
        assert [h["id"] for h in body["hits"]] == [1001]

    def test_empty_query_is_bad_request(self, client: TestClient) -> None:
        resp = client.post("/search", json={"query": "  "})
        assert resp.status_code == 400
        assert resp.json()["detail"]["error"] == "bad_request"

    def test_missing_query_field(self, client: TestClient) -> None:
        resp = client.post("/search", json={})
        assert resp.status_code == 400

    def test_get_without_q(self, client: TestClient) -> None:
        assert client.get("/search").status_code == 400


class TestSectionRoute:
    def test_found(self, client: TestClient) -> None:
        body = client.get("/section", params={"id": "1002"}).json()
        assert body["id"] == 1002
        assert body["title"] == "Article 2 ..."
        assert body["text"].startswith("Article 2.")

    def test_not_found(self, client: TestClient) -> None:
        resp = client.get("/section", params={"id": "9999"})
        assert resp.status_code == 404
        assert resp.json()["detail"]["error"] == "not_found"

    @pytest.mark.parametrize(
        "params",
        [{}, {"id": "abc"}, {"id": ""}, {"id": "\u00b2"}, {"id": "--5"}, {"id": "1_000"}],
    )
    def test_bad_id(self, client: TestClient, params: dict) -> None:
        resp = client.get("/section", params=params)
        assert resp.status_code == 400
        assert resp.json()["detail"]["error"] == "bad_request"


class TestMiscRoutes:
    def test_debug_titles(self, client: TestClient) -> None:
        body = client.get("/debug/titles").json()
        assert body["count"] == 2
        assert body["titles"][0] == {"id": 1001, "title": "Article 1 ..."}

    def test_index(self, client: TestClient) -> None:
        resp = client.get("/")
        assert resp.status_code == 200
        assert "/search" in resp.text

    def test_reload(self, client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
        text = "Статья 1. Первая\nТекст.\nСтатья 2. Вторая\nТекст."

        def fake_fetch(url: str, *, timeout: float = 30.0, client: object = None) -> str:
            return text

        monkeypatch.setattr(loader, "fetch_source", fake_fetch)
        monkeypatch.setattr(server, "_settings", Settings(sources=(Source("https://a.example"),)))

        resp = client.post("/reload")
        assert resp.status_code == 200
        body = resp.json()
        assert body["reloaded"] is True
        assert body["sectionCount"] == 2
        assert body["sources"][0]["status"] == "extraction_degraded"

        assert client.get("/section", params={"id": "1001"}).status_code == 200
        assert client.get("/health").json()["sections"] == 2


class TestInitialLoad:
    def _finished(self, set_outcome) -> asyncio.Future:
        loop = asyncio.new_event_loop()
        try:
            fut = loop.create_future()
            set_outcome(fut)
            return fut
        finally:
            loop.close()

    def test_failure_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        fut = self._finished(lambda f: f.set_exception(RuntimeError("store exploded")))
        with caplog.at_level(logging.ERROR, logger="taxcode.server"):
            server._log_initial_load(fut)
        assert "Initial load failed: store exploded" in caplog.text
        assert caplog.records[-1].exc_info is not None

    def test_success_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        fut = self._finished(lambda f: f.set_result({"sectionCount": 7}))
        with caplog.at_level(logging.INFO, logger="taxcode.server"):
            server._log_initial_load(fut)
        assert "Initial load finished: 7 sections" in caplog.text
