"""
Tests for the HTTP status API.
"""
import pytest
from fastapi.testclient import TestClient

from aegis_relayer.engine import DEMO_SENDER
from aegis_relayer.server import create_app

RECEIVER = "0x00000000000000000000000000000000000000c0"
SENDER = "0x00000000000000000000000000000000000000d0"


@pytest.fixture
def client(engine):
    return TestClient(create_app(engine))


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert "T" in body["timestamp"]


def test_status_when_idle(client):
    response = client.get("/api/status")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "IDLE"
    assert body["pooledIntents"] == 0
    assert body["aiReady"] is False
    assert body["summary"] == "Waiting for intents..."
    assert body["stats"]["totalBatchesExecuted"] == 0


def test_simulate_intent_pools_it(client):
    response = client.post("/api/simulate-intent", json={"receiver": RECEIVER, "amount": "0.5"})

    assert response.status_code == 200
    assert response.json() == {"ok": True, "message": "Intent injected into pool", "intentIndex": 0}

    status = client.get("/api/status").json()
    assert status["status"] == "POOLING"
    assert status["pooledIntents"] == 1
    assert status["intents"][0]["receiver"] == RECEIVER
    assert status["intents"][0]["amount"] == "0.5"
    assert status["intents"][0]["sender"] == DEMO_SENDER


def test_simulated_intents_reach_threshold(client, stub_ledger):
    for i in range(5):
        response = client.post(
            "/api/simulate-intent",
            json={"sender": SENDER, "receiver": RECEIVER, "amount": "1"},
        )
        assert response.json()["intentIndex"] == i

    status = client.get("/api/status").json()
    assert status["pooledIntents"] == 0
    assert status["lastBatch"]["batchSize"] == 5
    assert status["lastBatch"]["totalValue"] == "5"
    assert len(stub_ledger.settlements) == 1


@pytest.mark.parametrize("body", [
    {"receiver": RECEIVER},
    {"amount": "1"},
    {"receiver": "", "amount": "1"},
])
def test_simulate_intent_requires_fields(client, body):
    response = client.post("/api/simulate-intent", json=body)

    assert response.status_code == 400
    assert response.json() == {"error": "receiver and amount are required"}


@pytest.mark.parametrize("amount", ["abc", "-1", "NaN", "Infinity"])
def test_simulate_intent_rejects_bad_amount(client, amount):
    response = client.post("/api/simulate-intent", json={"receiver": RECEIVER, "amount": amount})

    assert response.status_code == 400
    assert response.json() == {"error": f"Invalid amount: {amount}"}


def test_malformed_body(client):
    response = client.post(
        "/api/simulate-intent",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid request body"}


def test_unknown_route(client):
    response = client.get("/api/nope")

    assert response.status_code == 404
    assert response.json() == {"error": "Not found"}


def test_internal_error(engine, monkeypatch):
    def broken_snapshot():
        raise RuntimeError("state unavailable")

    monkeypatch.setattr(engine, "snapshot", broken_snapshot)
    client = TestClient(create_app(engine), raise_server_exceptions=False)

    response = client.get("/api/status")

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}


def test_cors_headers(engine):
    client = TestClient(create_app(engine, cors_origin="http://dashboard.local"))

    response = client.get("/health", headers={"Origin": "http://dashboard.local"})

    assert response.headers["access-control-allow-origin"] == "http://dashboard.local"


@pytest.mark.parametrize("body", [
    {"receiver": "foo", "amount": "1"},
    {"receiver": "0x1234", "amount": "1"},
    {"sender": "not-an-address", "receiver": RECEIVER, "amount": "1"},
])
def test_simulate_intent_rejects_bad_address(client, engine, stub_ledger, body):
    response = client.post("/api/simulate-intent", json=body)

    assert response.status_code == 400
    assert response.json()["error"].startswith("Invalid intent")
    assert len(engine.pool) == 0

    # A later valid intent still settles normally
    for _ in range(5):
        client.post("/api/simulate-intent", json={"receiver": RECEIVER, "amount": "1"})
    assert len(stub_ledger.settlements) == 1
