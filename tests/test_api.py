"""HTTP envelopes and the WebSocket push channel."""

import time

import pytest
from fastapi.testclient import TestClient

from mixer.main import create_app

from .conftest import RECIPIENT, USER

DEPOSIT = {
    "userAddress": USER,
    "token": "STRK",
    "amount": 1000,
    "recipient": RECIPIENT,
    "privacySettings": {"privacyLevel": "medium", "delayHours": 0},
}


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as client:
        yield client


def wait_for_status(client, transaction_id, status, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        data = client.get(f"/api/mix/status/{transaction_id}").json()["data"]
        if data["status"] == status:
            return data
        time.sleep(0.02)
    raise AssertionError(f"{transaction_id} never reached {status}")


def create_deposit(client, **overrides):
    response = client.post("/api/mix/deposit", json={**DEPOSIT, **overrides})
    assert response.status_code == 201, response.text
    return response.json()["data"]["transactionId"]


def test_deposit_returns_handle(client):
    response = client.post("/api/mix/deposit", json=DEPOSIT)

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["data"]["fee"] == "8"
    assert body["data"]["estimatedCompletion"] == 360
    assert body["data"]["lightningInvoice"].startswith("lnbc")
    assert body["data"]["transactionId"].startswith("tx_")
    assert body["timestamp"].endswith("Z")


def test_deposit_runs_to_completion(client):
    tx_id = create_deposit(client)

    data = wait_for_status(client, tx_id, "completed")

    assert data["progress"] == 100
    assert [s["name"] for s in data["steps"]] == [
        "deposit",
        "swap",
        "lightning",
        "cashu",
        "mixing",
        "redeem",
        "withdrawal",
    ]
    assert all(s["status"] == "completed" for s in data["steps"])
    assert data["transactionHash"].startswith("0x")


def test_zero_amount_is_rejected(client):
    response = client.post("/api/mix/deposit", json={**DEPOSIT, "amount": 0})

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "Bad Request"
    assert client.get("/api/mix/history", params={"userAddress": USER}).json()["data"][
        "totalCount"
    ] == 0


def test_amount_below_one_sat_is_rejected(client):
    response = client.post(
        "/api/mix/deposit",
        json={**DEPOSIT, "amount": "0.0005", "privacySettings": {"privacyLevel": "low"}},
    )

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Bad Request"
    assert body["message"].startswith("Amount too small")
    assert body["details"]["minimumNetAmount"] == "0.001"


def test_missing_fields_are_rejected(client):
    response = client.post("/api/mix/deposit", json={"userAddress": USER})

    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Missing required fields"
    assert "recipient" in body["details"]["requiredFields"]


def test_invalid_privacy_level_is_rejected(client):
    response = client.post(
        "/api/mix/deposit", json={**DEPOSIT, "privacySettings": {"privacyLevel": "max"}}
    )

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_unknown_transaction_is_not_found(client):
    for path in (
        "/api/mix/status/tx_nope",
        "/api/transactions/tx_nope",
        "/api/transactions/tx_nope/steps",
    ):
        response = client.get(path)
        assert response.status_code == 404
        assert response.json()["error"] == "Not Found"


def test_history_requires_user_address(client):
    response = client.get("/api/mix/history")

    assert response.status_code == 400
    assert response.json()["message"] == "User address is required"


def test_history_paging(client):
    for _ in range(3):
        create_deposit(client)

    data = client.get("/api/mix/history", params={"userAddress": USER, "limit": 2}).json()["data"]

    assert data["totalCount"] == 3
    assert len(data["transactions"]) == 2
    assert data["hasMore"] is True
    assert data["transactions"][0]["userAddress"] == USER


def test_cancel_completed_transaction_conflicts(client):
    tx_id = create_deposit(client)
    wait_for_status(client, tx_id, "completed")

    response = client.post(f"/api/mix/cancel/{tx_id}")

    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "Conflict"
    assert body["details"]["currentStatus"] == "completed"
    assert client.get(f"/api/mix/status/{tx_id}").json()["data"]["status"] == "completed"


def test_retry_and_delete_require_failed_status(client):
    tx_id = create_deposit(client)
    wait_for_status(client, tx_id, "completed")

    retry = client.post(f"/api/transactions/{tx_id}/retry", json={"stepName": "cashu"})
    assert retry.status_code == 409
    assert client.delete(f"/api/transactions/{tx_id}").status_code == 409


def test_transaction_detail(client):
    tx_id = create_deposit(client)

    data = client.get(f"/api/transactions/{tx_id}").json()["data"]

    assert data["transaction"]["id"] == tx_id
    assert data["transaction"]["amount"] == "1000"
    assert data["transaction"]["netAmount"] == "992"
    assert data["transaction"]["privacySettings"]["privacyLevel"] == "medium"
    assert len(data["steps"]) == 7


def test_stats_and_search_routes(client):
    tx_id = create_deposit(client)
    wait_for_status(client, tx_id, "completed")

    stats = client.get("/api/transactions/stats", params={"period": "1h"})
    assert stats.status_code == 200
    assert stats.json()["data"]["statusCounts"]["completed"] == 1

    search = client.get("/api/transactions/search", params={"query": tx_id})
    assert search.status_code == 200
    assert search.json()["data"]["totalCount"] == 1


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["services"] == {"lightning": True, "cashu": True, "atomiq": True, "database": True}


def test_push_channel_broadcasts_to_all_observers(client):
    with client.websocket_connect("/ws") as ws:
        welcome = ws.receive_json()
        assert welcome["type"] == "connected"
        assert welcome["message"] == "Connected to Starknet Lightning Mixer WebSocket"

        ws.send_json({"type": "subscribe", "transactionId": "X"})
        ack = ws.receive_json()
        assert ack["type"] == "subscribed"
        assert ack["transactionId"] == "X"

        tx_id = create_deposit(client)
        received = []
        while not any(m["type"] == "transactionUpdate" for m in received):
            assert len(received) < 20
            received.append(ws.receive_json())

        update = next(m for m in received if m["type"] == "transactionUpdate")
        assert update["transactionId"] == tx_id
        assert update["step"] == "deposit"

        ws.send_json({"type": "ping"})
        while (message := ws.receive_json())["type"] != "pong":
            assert message["type"].startswith("transaction")


def test_push_channel_rejects_malformed_message(client):
    with client.websocket_connect("/ws") as ws:
        ws.receive_json()
        ws.send_text("{not json")

        assert ws.receive_json() == {
            "type": "error",
            "message": "Invalid message format",
            "timestamp": pytest.approx(int(time.time() * 1000), abs=60_000),
        }
