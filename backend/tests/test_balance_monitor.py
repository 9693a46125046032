"""Tests for server wallet balance alerts."""

import pytest
from httpx import AsyncClient

from dgvault.services.balance_monitor import AssetThresholds, BalanceMonitor, evaluate_thresholds
from conftest import DG_TOKEN_ADDRESS, FakeChainClient, SERVER_WALLET

DG = 10 ** 18


def test_evaluate_thresholds_levels():
    thresholds = AssetThresholds(warning=100, critical=10)

    assert evaluate_thresholds("dg", 100, thresholds, 0) is None

    warning = evaluate_thresholds("dg", 99, thresholds, 0)
    assert (warning.type, warning.severity) == ("low_dg_balance", "warning")

    critical = evaluate_thresholds("eth", 9, thresholds, 0)
    assert (critical.type, critical.severity) == ("critically_low_eth", "critical")


@pytest.mark.asyncio
async def test_healthy_wallet_has_no_alerts(fake_chain):
    fake_chain.reads["balanceOf"] = 50_000 * DG
    fake_chain.eth_balance = DG // 10

    report = await BalanceMonitor(fake_chain, DG_TOKEN_ADDRESS).check()
    data = report.to_dict()

    assert data["alerts"] == []
    assert data["balances"] == {
        "dg": "50000",
        "eth": "0.1",
        "dgRaw": str(50_000 * DG),
        "ethRaw": str(DG // 10),
    }
    assert data["thresholds"] == {"dg": "10000", "dgCritical": "1000", "eth": "0.01", "ethCritical": "0.002"}
    assert data["serverWallet"] == SERVER_WALLET


@pytest.mark.asyncio
async def test_low_dg_and_critical_eth(fake_chain):
    fake_chain.reads["balanceOf"] = 5_000 * DG
    fake_chain.eth_balance = DG // 1000  # 0.001 ETH

    report = await BalanceMonitor(fake_chain, DG_TOKEN_ADDRESS).check()

    assert [(a.type, a.severity) for a in report.alerts] == [
        ("low_dg_balance", "warning"),
        ("critically_low_eth", "critical"),
    ]


@pytest.mark.asyncio
async def test_missing_wallet_raises():
    with pytest.raises(RuntimeError, match="not configured"):
        await BalanceMonitor(FakeChainClient(account_address=None), DG_TOKEN_ADDRESS).check()


@pytest.mark.asyncio
async def test_balance_endpoint_requires_admin(client: AsyncClient, player):
    _, api_key = player
    response = await client.get("/api/admin/server-wallet/balance", headers={"X-User-Key": api_key})

    assert response.status_code == 403
    assert response.json()["detail"]["code"] == "ADMIN_REQUIRED"


@pytest.mark.asyncio
async def test_balance_endpoint(client: AsyncClient, admin, fake_chain):
    _, api_key = admin
    fake_chain.reads["balanceOf"] = 500 * DG
    fake_chain.eth_balance = DG

    response = await client.get("/api/admin/server-wallet/balance", headers={"X-User-Key": api_key})

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["alerts"][0]["type"] == "critically_low_dg"
    assert data["balances"]["eth"] == "1"
