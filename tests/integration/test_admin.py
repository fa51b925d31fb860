"""Integration tests for /api/admin rewards and outbox operations"""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from shelterflex_gateway.domain.exceptions import LedgerWriteFailure
from shelterflex_gateway.domain.models import OutboxStatus

pytestmark = pytest.mark.integration


MARK_PAID_BODY = {
    "tokenAddress": "CUSDC",
    "externalRefSource": "stripe",
    "externalRef": "pi_test123",
    "amountNgn": "150000",
    "fxRateNgnPerUsdc": "1500",
    "fxProvider": "coinbase",
}


def _create_reward(client: TestClient, payable: bool = True, **overrides) -> dict:
    body = {"whistleblowerId": "wb-001", "dealId": "deal-001", "listingId": "listing-001", "amountUsdc": "100"}
    body.update(overrides)
    reward = client.post("/api/admin/rewards", json=body).json()["data"]
    if payable:
        client.patch(f"/api/admin/rewards/{reward['rewardId']}/status", json={"status": "payable"})
    return reward


def _fail_items(container, payload, count):
    items = []
    for n in range(count):
        item = container.outbox_store.create("tenant_repayment", f"manual:{n}", payload)
        container.outbox_store.update_status(item.id, OutboxStatus.FAILED, error="ledger down")
        items.append(item)
    return items


def test_create_and_list_rewards(client: TestClient):
    response = client.post(
        "/api/admin/rewards",
        json={"whistleblowerId": "wb-001", "dealId": "deal-001", "listingId": "listing-001", "amountUsdc": "25.5"},
    )

    assert response.status_code == 201
    reward = response.json()["data"]
    assert reward["status"] == "pending"
    assert reward["amountUsdc"] == "25.5"

    listed = client.get("/api/admin/rewards").json()["data"]
    assert [r["rewardId"] for r in listed] == [reward["rewardId"]]


def test_reward_status_guard(client: TestClient):
    reward = _create_reward(client, payable=False)

    response = client.patch(f"/api/admin/rewards/{reward['rewardId']}/status", json={"status": "paid"})

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "CONFLICT"


def test_mark_paid(client: TestClient, container):
    """Test payable reward is paid and its receipt written through the outbox"""
    reward = _create_reward(client)

    response = client.post(f"/api/admin/rewards/{reward['rewardId']}/mark-paid", json=MARK_PAID_BODY)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["reward"]["status"] == "paid"
    assert data["reward"]["paidAt"] is not None
    assert data["reward"]["paymentTxId"] == data["receipt"]["txId"]
    assert data["reward"]["metadata"]["fxRateNgnPerUsdc"] == "1500"
    assert data["receipt"]["status"] == "sent"

    item = container.outbox_store.get_by_id(data["receipt"]["outboxId"])
    assert item.tx_type == "whistleblower_reward"
    assert item.payload["reward_id"] == reward["rewardId"]
    assert item.payload["amount_usdc"] == "100"


def test_mark_paid_idempotent_on_external_ref(client: TestClient, container):
    first = _create_reward(client)
    second = _create_reward(client, whistleblowerId="wb-002", amountUsdc="150")

    r1 = client.post(f"/api/admin/rewards/{first['rewardId']}/mark-paid", json=MARK_PAID_BODY).json()["data"]
    r2 = client.post(f"/api/admin/rewards/{second['rewardId']}/mark-paid", json=MARK_PAID_BODY).json()["data"]

    assert r1["receipt"]["txId"] == r2["receipt"]["txId"]
    assert r1["receipt"]["outboxId"] == r2["receipt"]["outboxId"]
    assert container.outbox_store.count() == 1


def test_mark_paid_requires_payable(client: TestClient, container):
    """Test pending reward is rejected with current and required status"""
    reward = _create_reward(client, payable=False)

    response = client.post(f"/api/admin/rewards/{reward['rewardId']}/mark-paid", json=MARK_PAID_BODY)

    assert response.status_code == 409
    error = response.json()["error"]
    assert error["code"] == "CONFLICT"
    assert "cannot be marked as paid" in error["message"]
    assert error["details"] == {"currentStatus": "pending", "requiredStatus": "payable"}
    assert container.outbox_store.count() == 0


def test_mark_paid_twice_rejected(client: TestClient):
    reward = _create_reward(client)
    client.post(f"/api/admin/rewards/{reward['rewardId']}/mark-paid", json=MARK_PAID_BODY)

    response = client.post(
        f"/api/admin/rewards/{reward['rewardId']}/mark-paid",
        json={**MARK_PAID_BODY, "externalRef": "pi_other"},
    )

    assert response.status_code == 409
    assert response.json()["error"]["details"]["currentStatus"] == "paid"


def test_mark_paid_queued_when_ledger_down(client: TestClient, container):
    reward = _create_reward(client)

    with patch.object(container.ledger, "record_receipt", AsyncMock(side_effect=LedgerWriteFailure("down"))):
        response = client.post(f"/api/admin/rewards/{reward['rewardId']}/mark-paid", json=MARK_PAID_BODY)

    assert response.status_code == 202
    assert response.json()["data"]["receipt"]["status"] == "failed"
    assert response.json()["data"]["reward"]["status"] == "paid"


def test_mark_paid_without_fx_metadata(client: TestClient):
    reward = _create_reward(client)

    response = client.post(
        f"/api/admin/rewards/{reward['rewardId']}/mark-paid",
        json={"tokenAddress": "CUSDC", "externalRefSource": "stripe", "externalRef": "pi_plain"},
    )

    assert response.status_code == 200
    assert response.json()["data"]["reward"]["metadata"] is None


def test_mark_paid_rejects_reference_of_another_tx_type(client: TestClient, container, tenant_payload):
    """Test a payout cannot reuse the receipt of a tenant repayment with the same external ref"""
    repayment = container.outbox_store.create("tenant_repayment", "stripe:pi_test123", tenant_payload)
    reward = _create_reward(client)

    with patch.object(container.ledger, "record_receipt", AsyncMock()) as record_receipt:
        response = client.post(f"/api/admin/rewards/{reward['rewardId']}/mark-paid", json=MARK_PAID_BODY)

    assert response.status_code == 409
    error = response.json()["error"]
    assert error["code"] == "CONFLICT"
    assert error["details"] == {
        "existingTxType": "tenant_repayment",
        "requestedTxType": "whistleblower_reward",
        "outboxId": repayment.id,
    }
    record_receipt.assert_not_awaited()
    assert container.rewards.get_by_id(reward["rewardId"]).status == "payable"
    assert container.outbox_store.count() == 1


def test_mark_paid_stores_normalized_reference(client: TestClient):
    reward = _create_reward(client)

    response = client.post(
        f"/api/admin/rewards/{reward['rewardId']}/mark-paid",
        json={**MARK_PAID_BODY, "externalRefSource": "  Stripe", "externalRef": "pi_Mixed "},
    )

    paid = response.json()["data"]["reward"]
    assert paid["externalRefSource"] == "stripe"
    assert paid["externalRef"] == "pi_Mixed"


def test_mark_paid_missing_reward(client: TestClient):
    assert client.post("/api/admin/rewards/missing/mark-paid", json=MARK_PAID_BODY).status_code == 404


def test_list_outbox(client: TestClient, container, tenant_payload):
    """Test operator view filters by status and caps the limit"""
    _fail_items(container, tenant_payload, 2)
    container.outbox_store.create("tenant_repayment", "manual:pending", tenant_payload)

    everything = client.get("/api/admin/outbox").json()["data"]
    assert everything["total"] == 3
    assert everything["items"][0]["externalRef"] == "manual:pending"

    failed = client.get("/api/admin/outbox", params={"status": "failed"}).json()["data"]
    assert [i["externalRef"] for i in failed["items"]] == ["manual:0", "manual:1"]
    assert failed["items"][0]["lastError"] == "ledger down"


@pytest.mark.parametrize("params", [{"limit": 0}, {"limit": 1001}, {"status": "done"}])
def test_list_outbox_invalid_params(client: TestClient, params):
    response = client.get("/api/admin/outbox", params=params)

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_retry_item(client: TestClient, container, tenant_payload):
    (item,) = _fail_items(container, tenant_payload, 1)

    response = client.post(f"/api/admin/outbox/{item.id}/retry")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["retried"] is True
    assert data["item"]["status"] == "sent"
    assert data["item"]["attempts"] == 2
    assert data["item"]["lastError"] is None


def test_retry_item_still_failing(client: TestClient, container, tenant_payload):
    (item,) = _fail_items(container, tenant_payload, 1)

    with patch.object(container.ledger, "record_receipt", AsyncMock(side_effect=LedgerWriteFailure("still down"))):
        data = client.post(f"/api/admin/outbox/{item.id}/retry").json()["data"]

    assert data["retried"] is False
    assert data["item"]["lastError"] == "still down"


def test_retry_missing_item(client: TestClient):
    response = client.post("/api/admin/outbox/missing/retry")

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


def test_retry_all(client: TestClient, container, tenant_payload):
    _fail_items(container, tenant_payload, 3)

    response = client.post("/api/admin/outbox/retry-all")

    assert response.status_code == 200
    data = response.json()["data"]
    assert (data["succeeded"], data["failed"]) == (3, 0)
    assert data["message"] == "Retried 3 items: 3 succeeded, 0 failed"
    assert container.outbox_store.list_by_status(OutboxStatus.FAILED) == []
