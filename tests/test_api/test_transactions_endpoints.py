"""Tests for the /api/v1/transactions endpoints."""

from __future__ import annotations

CLAIMS = "/api/v1/claims"
TRANSACTIONS = "/api/v1/transactions"


def _create(client, recipient: str = "alice@example.com") -> dict:
    response = client.post(
        CLAIMS, json={"recipient": recipient, "amount": "5", "currency": "XLM"}
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestTransactions:
    def test_empty(self, test_client):
        response = test_client.get(TRANSACTIONS)
        assert response.status_code == 200
        assert response.json() == []

    def test_created_claim_is_listed(self, test_client):
        created = _create(test_client)
        [entry] = test_client.get(TRANSACTIONS).json()
        assert entry["lookup_key"] == created["lookup_key"]
        assert entry["status"] == "sent"
        assert entry["amount"] == "5"
        assert entry["payment_mode"] == "simulated"
        assert "claim_url" not in entry
        assert "token" not in entry

    def test_get_after_redeem(self, test_client):
        created = _create(test_client)
        test_client.post(f"{CLAIMS}/redeem", json={"token": created["token"]})
        response = test_client.get(f"{TRANSACTIONS}/{created['lookup_key']}")
        assert response.status_code == 200
        entry = response.json()
        assert entry["status"] == "claimed"
        assert entry["claim_transaction_id"]
        assert [e["type"] for e in entry["events"]] == ["claim-transfer"]

    def test_status_filter_and_limit(self, test_client):
        first = _create(test_client, "a@example.com")
        _create(test_client, "b@example.com")
        _create(test_client, "c@example.com")
        test_client.post(f"{CLAIMS}/redeem", json={"token": first["token"]})

        claimed = test_client.get(TRANSACTIONS, params={"status": "claimed"}).json()
        assert [e["lookup_key"] for e in claimed] == [first["lookup_key"]]
        assert len(test_client.get(TRANSACTIONS, params={"limit": 2}).json()) == 2

    def test_invalid_limit(self, test_client):
        assert test_client.get(TRANSACTIONS, params={"limit": 0}).status_code == 422

    def test_unknown(self, test_client):
        response = test_client.get(f"{TRANSACTIONS}/missing")
        assert response.status_code == 404
        assert response.json()["code"] == "transaction-not-found"
