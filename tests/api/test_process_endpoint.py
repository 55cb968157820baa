# tests/api/test_process_endpoint.py
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

import API_LAYER.app as api
from executors.resolved import ResolvedIntentExecutor
from executors.transaction import TransactionExecutor
from services.intent_cache import InMemoryIntentCacheStore, IntentCache
from services.transaction_store import InMemoryTransactionStore

# No context manager: startup would try to reach the database.
client = TestClient(api.app)

REFERENCE = "2025-02-15T12:00:00Z"


@pytest.fixture(autouse=True)
def store(monkeypatch):
    """Wires in-memory stores and no model, the way startup does without DATABASE_URL."""
    store = InMemoryTransactionStore()
    monkeypatch.setattr(api, "transaction_executor", TransactionExecutor(store))
    monkeypatch.setattr(api, "resolved_executor", ResolvedIntentExecutor())
    monkeypatch.setattr(api, "intent_cache", IntentCache(InMemoryIntentCacheStore()))
    monkeypatch.setattr(api, "text_generator", None)
    monkeypatch.setattr(api, "DEBUG", False)
    return store


def test_transaction_is_resolved_and_saved(store):
    response = client.post(
        "/process",
        json={"text": "Spent $45 at Trader Joe's yesterday", "userId": 42, "referenceTimestamp": REFERENCE},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["type"] == "transaction"
    assert body["intent"]["confidence"] == "high"
    assert body["intent"]["entities"]["transactionDate"] == "2025-02-14T00:00:00.000Z"
    assert body["data"]["success"] is True
    assert body["data"]["displayId"] == 1
    assert body["diagnostics"]["usedLLM"] is False
    assert len(store.for_user(42)) == 1


def test_insight_is_returned_without_persistence(store):
    response = client.post(
        "/process",
        json={
            "text": "How much did I spend on groceries last month?",
            "userId": 42,
            "referenceTimestamp": REFERENCE,
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["type"] == "insight"
    assert body["intent"]["queryType"] == "sum"
    assert body["intent"]["filters"]["timeframe"]["grain"] == "month"
    assert store.records == []


def test_empty_text_is_other():
    response = client.post("/process", json={"text": "", "userId": 42})

    body = response.json()
    assert response.status_code == 200
    assert body["type"] == "other"
    assert body["message"] == "Empty message"


def test_executor_failure_fails_fast(monkeypatch):
    broken = MagicMock()
    broken.execute = AsyncMock(side_effect=RuntimeError("boom"))
    monkeypatch.setattr(api, "transaction_executor", broken)
    before = api.request_counters["errors"]

    response = client.post(
        "/process",
        json={"text": "Spent $5 at Cafe Nero", "userId": 42, "referenceTimestamp": REFERENCE},
    )

    assert response.status_code == 500
    assert response.json()["detail"] == "An unexpected error occurred"
    assert api.request_counters["errors"] == before + 1


def test_user_id_is_required():
    response = client.post("/process", json={"text": "hi"})
    assert response.status_code == 422


def test_health_and_metrics():
    assert client.get("/").status_code == 200

    health = client.get("/health").json()
    assert health["status"] == "ok"
    assert health["llm_fallback"] is False

    metrics = client.get("/metrics").json()
    assert {"transaction", "insight", "other", "total", "errors"} <= set(metrics)
