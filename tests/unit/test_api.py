"""
Unit tests for the FastAPI endpoints.

The lifespan hook is not run (TestClient used without a context manager);
globals are replaced with in-memory stores and mocked generators.
"""

from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

import src.main as main
from src.corpus import CorpusLoadError, CorpusStore
from src.generation import GeneratedAnswer
from src.relevance import ContextResult

pytestmark = pytest.mark.unit


@pytest.fixture
def client():
    return TestClient(main.app, raise_server_exceptions=False)


@pytest.fixture
def store(export_file, export_entry, monkeypatch):
    entries = [
        export_entry("1", "Sunday sketch", "2026-10-01T10:00:00Z"),
        export_entry("2", "Ninja launching in 24 hours", "2026-10-17T18:00:00Z", favorite_count=120),
        export_entry("3", "RT @kurosunart: new piece up", "2026-10-10T09:00:00Z"),
    ]
    corpus = CorpusStore(export_file(entries), "kurosun", ["kurosunart"])
    monkeypatch.setattr(main, "corpus_store", corpus)
    monkeypatch.setattr(main, "response_generator", None)
    return corpus


class TestServiceEndpoints:
    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_health(self, client, store):
        store.snapshot  # force load

        data = client.get("/health").json()

        assert data["status"] == "healthy"
        assert data["version"] == main.APP_VERSION
        assert data["posts_loaded"] == 3

    def test_health_without_store(self, client, monkeypatch):
        monkeypatch.setattr(main, "corpus_store", None)
        assert client.get("/health").json()["posts_loaded"] == 0


class TestRecordEndpoints:
    """Corpus listing, search, stats and refresh"""

    def test_list(self, client, store):
        data = client.get("/v1/records").json()

        assert data["count"] == 3
        assert [p["id"] for p in data["posts"]] == ["2", "3", "1"]
        assert data["stats"]["total_posts"] == 3
        assert data["posts"][0]["likes"] == 120

    def test_recent(self, client, store):
        data = client.get("/v1/records/recent", params={"count": 1}).json()
        assert [p["id"] for p in data["posts"]] == ["2"]

    def test_recent_rejects_bad_count(self, client, store):
        assert client.get("/v1/records/recent", params={"count": 0}).status_code == 422

    def test_search(self, client, store):
        data = client.get("/v1/records/search/ninja").json()

        assert data["keyword"] == "ninja"
        assert data["count"] == 1
        assert data["posts"][0]["url"] == "https://twitter.com/kurosun/status/2"

    def test_stats(self, client, store):
        data = client.get("/v1/records/stats").json()
        assert data["total_posts"] == 3
        assert data["newest_post"] == "2026-10-17T18:00:00+00:00"

    def test_refresh(self, client, store, export_file, export_entry):
        export_file([export_entry("9", "only post", "2026-10-18T08:00:00Z")])

        response = client.post("/v1/records/refresh")

        assert response.status_code == 200
        assert response.json()["count"] == 1
        assert len(response.json()["source_hash"]) == 64
        assert store.snapshot.records[0].id == "9"

    def test_refresh_failure(self, client, store, monkeypatch):
        previous = store.snapshot
        monkeypatch.setattr(store, "refresh", Mock(side_effect=CorpusLoadError("broken export")))

        response = client.post("/v1/records/refresh")

        assert response.status_code == 500
        assert "broken export" in response.json()["detail"]
        assert store.snapshot is previous

    @pytest.mark.parametrize("method,path", [
        ("get", "/v1/records"),
        ("get", "/v1/records/stats"),
        ("get", "/v1/records/search/ninja"),
        ("post", "/v1/records/refresh"),
    ])
    def test_not_initialized(self, client, monkeypatch, method, path):
        monkeypatch.setattr(main, "corpus_store", None)
        assert getattr(client, method)(path).status_code == 503


class TestContextEndpoint:
    def test_context(self, client, store):
        response = client.post("/v1/context", json={"query": "ninja release date"})

        assert response.status_code == 200
        data = response.json()
        assert data["record_ids"][0] == "2"
        assert "launching" in data["terms"]
        assert data["context"].startswith("Complete post history from @kurosun")
        assert data["total"] == 3

    def test_empty_query_rejected(self, client, store):
        assert client.post("/v1/context", json={"query": ""}).status_code == 422

    def test_empty_corpus(self, client, tmp_path, monkeypatch):
        monkeypatch.setattr(main, "corpus_store", CorpusStore(tmp_path / "missing.json", "kurosun"))

        data = client.post("/v1/context", json={"query": "ninja"}).json()

        assert data["context"] == "No posts available in memory."
        assert data["record_ids"] == []


class TestChatEndpoint:
    """Chat answers with and without a generator"""

    def test_chat_with_generator(self, client, store, monkeypatch, make_record):
        record = make_record("2", text="Ninja launching in 24 hours")
        generator = Mock()
        generator.generate = AsyncMock(return_value=GeneratedAnswer(
            text="Launching tomorrow.",
            context=ContextResult(context="ctx", records=[record]),
        ))
        monkeypatch.setattr(main, "response_generator", generator)

        data = client.post("/v1/chat", json={"message": "when is ninja?"}).json()

        assert data["answer"] == "Launching tomorrow."
        assert data["chunks"] == ["Launching tomorrow."]
        assert data["sources"] == ["https://twitter.com/kurosun/status/2"]
        assert data["fallback"] is False
        generator.generate.assert_awaited_once()

    def test_long_answer_chunked(self, client, store, monkeypatch):
        answer = " ".join(["This is one sentence of a long answer."] * 120)
        generator = Mock()
        generator.generate = AsyncMock(return_value=GeneratedAnswer(
            text=answer,
            context=ContextResult(context="ctx"),
        ))
        monkeypatch.setattr(main, "response_generator", generator)

        data = client.post("/v1/chat", json={"message": "tell me everything"}).json()

        assert len(data["chunks"]) > 1
        assert all(len(chunk) <= 2000 for chunk in data["chunks"])

    def test_chat_without_generator_falls_back(self, client, store):
        data = client.post("/v1/chat", json={"message": "hello"}).json()

        assert data["fallback"] is True
        assert data["answer"].startswith("Hello!")

    def test_unhandled_error(self, client, store, monkeypatch):
        generator = Mock()
        generator.generate = AsyncMock(side_effect=RuntimeError("boom"))
        monkeypatch.setattr(main, "response_generator", generator)

        response = client.post("/v1/chat", json={"message": "ninja"})

        assert response.status_code == 500
        assert response.json()["error"] == "Internal server error"
