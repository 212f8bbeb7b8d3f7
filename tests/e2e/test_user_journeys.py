"""
E2E journeys through the HTTP API for several identity personas.

External collaborators (model service, ledger, content store) are the
mocked clients from conftest; everything else runs for real against the
test database.

Personas:
- asha: complete onboarding, scoring and anchoring
- ravi: ledger down during scoring, anchored later by retry
- meera: two identities registered, each sees only their own data
"""

import pytest
from fastapi.testclient import TestClient
from creditchain_gateway.domain.exceptions import LedgerError


def register(client: TestClient, name: str, email: str, pan: str, aadhaar: str, card: str) -> str:
    response = client.post(
        "/v1/users",
        json={
            "name": name,
            "email": email,
            "phone": "9000000000",
            "pan_number": pan,
            "aadhaar_number": aadhaar,
            "credit_card_number": card,
        },
    )
    assert response.status_code == 201
    return response.json()["user_id"]


@pytest.mark.integration
def test_asha_full_journey(client: TestClient):
    """
    asha: register -> profile -> score -> dashboard -> history
    Expected: anchored result visible everywhere
    """
    user_id = register(client, "Asha", "asha@example.com", "ABCDE1234F", "1234-5678-9012", "1234-5678-9012-3456")

    profile = client.post(f"/v1/users/{user_id}/profile").json()
    assert profile["created"] is True
    income = profile["profile"]["personal_info"]["monthly_income"]
    assert 30000 <= income <= 510000 and income % 15000 == 0

    score = client.post(f"/v1/credit-score/{user_id}").json()
    assert score["anchored"] is True, "Result should be anchored when every collaborator is up"
    assert score["anomaly_metrics"]["total_transactions_analyzed"] == 75

    dashboard = client.get(f"/v1/users/{user_id}/dashboard").json()
    assert dashboard["latest_credit_score"] == score["credit_score"]

    history = client.get(f"/v1/credit-score/{user_id}/history").json()
    assert [r["result_id"] for r in history["results"]] == [score["result_id"]]
    assert history["results"][0]["ledger_tx_ref"] == score["ledger"]["tx_ref"]


@pytest.mark.integration
def test_ravi_anchored_after_ledger_outage(client: TestClient, ledger_client):
    """
    ravi: ledger is down while scoring
    Expected: score still returned, references attached on retry
    """
    user_id = register(client, "Ravi", "ravi@example.com", "PQRST6789K", "2345-6789-0123", "2345-6789-0123-4567")
    client.post(f"/v1/users/{user_id}/profile")

    ledger_client.submit_score.side_effect = LedgerError("Ledger submit failed after 3 attempt(s)")
    score = client.post(f"/v1/credit-score/{user_id}").json()
    assert score["anchored"] is False
    assert score["anchoring_error"].startswith("ledger")

    latest = client.get(f"/v1/credit-score/{user_id}/latest").json()
    assert latest["ledger"] is None, "Unanchored results carry no ledger reference"

    ledger_client.submit_score.side_effect = None
    retry = client.post(f"/v1/credit-score/results/{score['result_id']}/anchor").json()
    assert retry["anchored"] is True
    assert retry["data_hash"] == client.get(f"/v1/credit-score/{user_id}/latest").json()["data_hash"]


@pytest.mark.integration
def test_meera_data_is_isolated(client: TestClient):
    """
    meera and a second user: each only sees their own transactions
    Expected: listings filter strictly by owner
    """
    meera = register(client, "Meera", "meera@example.com", "LMNOP4321Z", "3456-7890-1234", "3456-7890-1234-5678")
    other = register(client, "Kiran", "kiran@example.com", "FGHIJ8765Y", "4567-8901-2345", "4567-8901-2345-6789")
    client.post(f"/v1/users/{meera}/profile")
    client.post(f"/v1/users/{other}/profile")

    meera_txns = client.get(f"/v1/transactions/{meera}", params={"limit": 100}).json()["transactions"]
    other_txns = client.get(f"/v1/transactions/{other}", params={"limit": 100}).json()["transactions"]

    assert len(meera_txns) == len(other_txns) == 75
    assert all(meera in t["transaction_id"] for t in meera_txns)
    assert not {t["transaction_id"] for t in meera_txns} & {t["transaction_id"] for t in other_txns}

    meera_profile = client.get(f"/v1/users/{meera}/profile").json()["profile"]
    other_profile = client.get(f"/v1/users/{other}/profile").json()["profile"]
    assert meera_profile != other_profile
