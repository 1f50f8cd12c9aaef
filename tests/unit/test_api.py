"""Unit tests for the FastAPI router."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from rage_sdk.http.api import create_router
from rage_sdk.interceptor import RageInterceptor
from rage_sdk.retrieval.in_memory import InMemoryRetrievalClient


@pytest.fixture
def client(interceptor):
    app = FastAPI()
    app.include_router(create_router(interceptor), prefix="/rage")
    with TestClient(app) as test_client:
        yield test_client


class TestEnrichEndpoint:

    def test_enrich(self, client):
        response = client.post("/rage/enrich", json={
            "message": "How do I rotate API credentials?",
            "correlation_id": "rage_api_1",
        })

        assert response.status_code == 200
        body = response.json()
        assert body["enriched"] is True
        assert "security-guide.md" in body["context"]
        assert body["messages"] is None

    def test_enrich_and_inject(self, client):
        response = client.post("/rage/enrich", json={
            "message": "How do I rotate API credentials?",
            "messages": [
                {"role": "system", "content": "You are helpful."},
                {"role": "user", "content": "How do I rotate API credentials?"},
            ],
        })

        messages = response.json()["messages"]
        assert [m["role"] for m in messages] == ["system", "system", "user"]
        assert messages[1]["content"].startswith("# Relevant Context")

    def test_no_context_is_not_an_error(self, client):
        response = client.post("/rage/enrich", json={"message": "hi", "messages": []})

        assert response.status_code == 200
        assert response.json() == {"context": None, "enriched": False, "messages": []}

    def test_message_is_required(self, client):
        assert client.post("/rage/enrich", json={}).status_code == 422


class TestOperationalEndpoints:

    def test_health(self, client):
        response = client.get("/rage/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_unhealthy_returns_503(self, rage_config, fast_error_handler):
        class BrokenHealth(InMemoryRetrievalClient):
            async def health_check(self, correlation_id=None):
                raise ConnectionError("connection refused")

        interceptor = RageInterceptor(
            rage_config, retrieval_client=BrokenHealth(), error_handler=fast_error_handler
        )
        app = FastAPI()
        app.include_router(create_router(interceptor))

        with TestClient(app) as test_client:
            response = test_client.get("/health")

        assert response.status_code == 503
        assert response.json()["detail"]["status"] == "unhealthy"

    def test_metrics(self, client):
        client.post("/rage/enrich", json={"message": "How do I rotate API credentials?"})

        metrics = client.get("/rage/metrics").json()
        assert metrics["enrichment"]["total"] == 1
        assert metrics["resilience"]["status"] == "healthy"

        summary = client.get("/rage/metrics/summary").json()
        assert summary["total_enrichments"] == 1

    def test_config_is_masked(self, client, rage_config):
        config = client.get("/rage/config").json()
        assert config["enabled"] is True
        assert config["api_key"] != rage_config.api_key
        assert "***" in config["api_key"]
