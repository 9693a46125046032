"""Tests for withdrawal limit configuration."""

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from dgvault.models.system_config import ConfigAuditLog


@pytest.mark.asyncio
async def test_public_limits_default_to_settings(client: AsyncClient):
    response = await client.get("/api/config/withdrawal-limits")

    assert response.status_code == 200
    assert response.json() == {"success": True, "limits": {"minAmount": 3000, "maxAmount": 100000}}


@pytest.mark.asyncio
async def test_admin_updates_limits_with_audit(client: AsyncClient, admin, db):
    admin_user, api_key = admin

    response = await client.put(
        "/api/admin/config/withdrawal-limits",
        headers={"X-User-Key": api_key},
        json={"minAmount": 500, "maxAmount": 20000}
    )

    assert response.status_code == 200
    limits = response.json()["limits"]
    assert (limits["minAmount"], limits["maxAmount"]) == (500, 20000)
    assert limits["updatedBy"] == admin_user.id

    audit = (await db.execute(select(ConfigAuditLog).order_by(ConfigAuditLog.config_key))).scalars().all()
    assert [(a.config_key, a.old_value, a.new_value) for a in audit] == [
        ("dg_withdrawal_max_daily_amount", None, "20000"),
        ("dg_withdrawal_min_amount", None, "500"),
    ]

    public = await client.get("/api/config/withdrawal-limits")
    assert public.json()["limits"] == {"minAmount": 500, "maxAmount": 20000}


@pytest.mark.asyncio
async def test_unchanged_value_writes_no_audit_row(client: AsyncClient, admin, db):
    _, api_key = admin
    headers = {"X-User-Key": api_key}

    await client.put("/api/admin/config/withdrawal-limits", headers=headers, json={"minAmount": 500, "maxAmount": 20000})
    await client.put("/api/admin/config/withdrawal-limits", headers=headers, json={"minAmount": 600, "maxAmount": 20000})

    audit = (await db.execute(select(ConfigAuditLog))).scalars().all()
    assert len(audit) == 3


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [
    {"minAmount": 0, "maxAmount": 100},
    {"minAmount": 100, "maxAmount": 100},
    {"minAmount": 200, "maxAmount": 100},
])
async def test_invalid_limits_rejected(client: AsyncClient, admin, body):
    _, api_key = admin

    response = await client.put("/api/admin/config/withdrawal-limits", headers={"X-User-Key": api_key}, json=body)

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_REQUEST"


@pytest.mark.asyncio
async def test_updated_minimum_applies_to_withdrawals(client: AsyncClient, admin, player, wallet, sign):
    _, admin_key = admin
    _, player_key = player
    await client.put(
        "/api/admin/config/withdrawal-limits",
        headers={"X-User-Key": admin_key},
        json={"minAmount": 6000, "maxAmount": 20000}
    )

    response = await client.post("/api/token/withdraw", headers={"X-User-Key": player_key}, json=sign(wallet, 5000))

    assert response.status_code == 400
    assert response.json()["code"] == "LIMIT_EXCEEDED"


@pytest.mark.asyncio
async def test_limits_update_requires_admin(client: AsyncClient, player):
    _, api_key = player
    response = await client.put(
        "/api/admin/config/withdrawal-limits",
        headers={"X-User-Key": api_key},
        json={"minAmount": 1, "maxAmount": 2}
    )
    assert response.status_code == 403
