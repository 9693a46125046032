"""Tests for DG withdrawal endpoints."""

import time

import pytest
from httpx import AsyncClient

from dgvault.config import settings


@pytest.mark.asyncio
async def test_withdraw_success(client: AsyncClient, player, wallet, sign):
    """Test a signed withdrawal completes and returns the transaction hash."""
    _, api_key = player

    response = await client.post(
        "/api/token/withdraw",
        headers={"X-User-Key": api_key},
        json=sign(wallet, 5000)
    )

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["amountDG"] == 5000
    assert data["status"] == "completed"
    assert data["transactionHash"].startswith("0x")
    assert "idempotent" not in data


@pytest.mark.asyncio
async def test_withdraw_replay_is_idempotent(client: AsyncClient, player, wallet, sign, fake_chain):
    _, api_key = player
    body = sign(wallet, 5000)

    first = await client.post("/api/token/withdraw", headers={"X-User-Key": api_key}, json=body)
    second = await client.post("/api/token/withdraw", headers={"X-User-Key": api_key}, json=body)

    assert second.status_code == 200
    assert second.json()["idempotent"] is True
    assert second.json()["withdrawalId"] == first.json()["withdrawalId"]
    assert len(fake_chain.writes_of("transfer")) == 1


@pytest.mark.asyncio
async def test_withdraw_requires_api_key(client: AsyncClient, wallet, sign):
    response = await client.post(
        "/api/token/withdraw",
        headers={"X-User-Key": "dgv_sk_invalid"},
        json=sign(wallet, 5000)
    )

    assert response.status_code == 401
    assert response.json()["detail"]["code"] == "INVALID_API_KEY"


@pytest.mark.asyncio
async def test_expired_deadline_returns_400(client: AsyncClient, player, wallet, sign):
    _, api_key = player

    response = await client.post(
        "/api/token/withdraw",
        headers={"X-User-Key": api_key},
        json=sign(wallet, 5000, deadline=int(time.time()) - 10)
    )

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Signature expired", "code": "INVALID_REQUEST"}


@pytest.mark.asyncio
async def test_non_integer_amount_returns_400(client: AsyncClient, player, wallet, sign):
    _, api_key = player
    body = sign(wallet, 5000)
    body["amountDG"] = 5000.5

    response = await client.post("/api/token/withdraw", headers={"X-User-Key": api_key}, json=body)

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_REQUEST"


@pytest.mark.asyncio
async def test_tampered_request_returns_403(client: AsyncClient, player, wallet, sign):
    _, api_key = player
    body = sign(wallet, 5000)
    body["amountDG"] = 9000

    response = await client.post("/api/token/withdraw", headers={"X-User-Key": api_key}, json=body)

    assert response.status_code == 403
    assert response.json()["code"] == "SIGNATURE_INVALID"


@pytest.mark.asyncio
async def test_failed_transfer_returns_502_and_restores_xp(client: AsyncClient, player, wallet, sign, fake_chain, db):
    user, api_key = player
    fake_chain.receipt_status = 0

    response = await client.post("/api/token/withdraw", headers={"X-User-Key": api_key}, json=sign(wallet, 5000))

    assert response.status_code == 502
    data = response.json()
    assert data["code"] == "ON_CHAIN_FAILURE"
    assert data["withdrawalId"]

    await db.refresh(user)
    assert user.experience_points == 10000

    detail = await client.get(f"/api/token/withdrawals/{data['withdrawalId']}", headers={"X-User-Key": api_key})
    assert detail.json()["withdrawal"]["status"] == "failed"
    assert detail.json()["withdrawal"]["error_message"] == "Transaction reverted on-chain"


@pytest.mark.asyncio
async def test_retry_endpoint_with_new_signature(client: AsyncClient, player, wallet, sign, fake_chain):
    _, api_key = player
    fake_chain.receipt_status = 0
    failed = await client.post("/api/token/withdraw", headers={"X-User-Key": api_key}, json=sign(wallet, 5000))
    failed_id = failed.json()["withdrawalId"]

    fake_chain.receipt_status = 1
    response = await client.post(
        f"/api/token/withdrawals/{failed_id}/retry",
        headers={"X-User-Key": api_key},
        json=sign(wallet, 5000, deadline=int(time.time()) + 1200)
    )

    assert response.status_code == 200
    assert response.json()["status"] == "completed"

    detail = await client.get(
        f"/api/token/withdrawals/{response.json()['withdrawalId']}",
        headers={"X-User-Key": api_key}
    )
    assert detail.json()["withdrawal"]["retry_of_id"] == failed_id


@pytest.mark.asyncio
async def test_retry_endpoint_resubmit_policy(client: AsyncClient, player, wallet, sign, fake_chain, monkeypatch):
    monkeypatch.setattr(settings, "WITHDRAWAL_RETRY_POLICY", "resubmit")
    _, api_key = player
    fake_chain.receipt_status = 0
    failed = await client.post("/api/token/withdraw", headers={"X-User-Key": api_key}, json=sign(wallet, 5000))

    fake_chain.receipt_status = 1
    response = await client.post(
        f"/api/token/withdrawals/{failed.json()['withdrawalId']}/retry",
        headers={"X-User-Key": api_key}
    )

    assert response.status_code == 200
    assert response.json()["status"] == "completed"


@pytest.mark.asyncio
async def test_history_and_detail(client: AsyncClient, player, wallet, sign, make_user):
    _, api_key = player
    await client.post("/api/token/withdraw", headers={"X-User-Key": api_key}, json=sign(wallet, 3000))
    await client.post("/api/token/withdraw", headers={"X-User-Key": api_key}, json=sign(wallet, 3500))

    response = await client.get("/api/token/withdrawals?limit=1", headers={"X-User-Key": api_key})

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert data["limit"] == 1
    assert data["offset"] == 0
    assert [w["amount_dg"] for w in data["withdrawals"]] == [3500]

    _, other_key = await make_user(name="stranger")
    other = await client.get(
        f"/api/token/withdrawals/{data['withdrawals'][0]['id']}",
        headers={"X-User-Key": other_key}
    )
    assert other.status_code == 404
    assert other.json()["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_rate_limited_returns_429(client: AsyncClient, player, wallet, sign, monkeypatch):
    monkeypatch.setattr(settings, "WITHDRAWAL_RATE_LIMIT_MAX", 2)
    _, api_key = player
    body = sign(wallet, 5000)

    statuses = []
    for _ in range(3):
        response = await client.post("/api/token/withdraw", headers={"X-User-Key": api_key}, json=body)
        statuses.append(response.status_code)

    assert statuses == [200, 200, 429]
    assert response.json()["code"] == "RATE_LIMITED"
    assert int(response.headers["Retry-After"]) > 0
