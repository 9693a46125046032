"""Server wallet balance checks against configured alert thresholds."""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from dgvault.config import settings
from dgvault.core.abis import ERC20_ABI
from dgvault.core.amounts import format_amount, format_amount_for_input, parse_amount
from dgvault.services.chain_service import ChainClient

logger = logging.getLogger(__name__)

ETH_DECIMALS = 18


@dataclass(frozen=True)
class BalanceAlert:
    type: str
    message: str
    severity: str  # warning|critical


@dataclass(frozen=True)
class AssetThresholds:
    warning: int
    critical: int


@dataclass
class BalanceReport:
    server_wallet: str
    dg_raw: int
    eth_raw: int
    dg_decimals: int
    dg_thresholds: AssetThresholds
    eth_thresholds: AssetThresholds
    alerts: List[BalanceAlert] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "success": True,
            "balances": {
                "dg": format_amount(self.dg_raw, self.dg_decimals),
                "eth": format_amount(self.eth_raw, ETH_DECIMALS, 6),
                "dgRaw": str(self.dg_raw),
                "ethRaw": str(self.eth_raw),
            },
            "thresholds": {
                "dg": format_amount_for_input(self.dg_thresholds.warning, self.dg_decimals),
                "dgCritical": format_amount_for_input(self.dg_thresholds.critical, self.dg_decimals),
                "eth": format_amount_for_input(self.eth_thresholds.warning, ETH_DECIMALS),
                "ethCritical": format_amount_for_input(self.eth_thresholds.critical, ETH_DECIMALS),
            },
            "alerts": [alert.__dict__ for alert in self.alerts],
            "serverWallet": self.server_wallet,
        }


def _threshold(value: Decimal, decimals: int) -> int:
    amount = parse_amount(format(value, "f"), decimals)
    if amount is None:
        raise ValueError(f"Invalid balance threshold: {value}")
    return amount


def evaluate_thresholds(
    asset: str,
    balance: int,
    thresholds: AssetThresholds,
    decimals: int,
) -> Optional[BalanceAlert]:
    """
    Compare one balance to its thresholds.

    Returns:
        A critical alert below the critical threshold, a warning below the
        warning threshold, otherwise None
    """
    label = asset.upper()
    shown = format_amount(balance, decimals, 6)
    if balance < thresholds.critical:
        return BalanceAlert(
            type=f"critically_low_{asset}",
            message=f"{label} balance critically low: {shown} "
                    f"(critical below {format_amount_for_input(thresholds.critical, decimals)})",
            severity="critical",
        )
    if balance < thresholds.warning:
        return BalanceAlert(
            type=f"low_{asset}_balance",
            message=f"{label} balance below threshold: {shown} "
                    f"(warning below {format_amount_for_input(thresholds.warning, decimals)})",
            severity="warning",
        )
    return None


class BalanceMonitor:
    """Read-only check of the custodial wallet's DG and ETH balances."""

    def __init__(self, chain: ChainClient, dg_token_address: str, dg_decimals: Optional[int] = None):
        self.chain = chain
        self.dg_token_address = dg_token_address
        self.dg_decimals = dg_decimals if dg_decimals is not None else settings.DG_TOKEN_DECIMALS
        self.dg_thresholds = AssetThresholds(
            warning=_threshold(settings.DG_BALANCE_WARNING_THRESHOLD, self.dg_decimals),
            critical=_threshold(settings.DG_BALANCE_CRITICAL_THRESHOLD, self.dg_decimals),
        )
        self.eth_thresholds = AssetThresholds(
            warning=_threshold(settings.ETH_BALANCE_WARNING_THRESHOLD, ETH_DECIMALS),
            critical=_threshold(settings.ETH_BALANCE_CRITICAL_THRESHOLD, ETH_DECIMALS),
        )

    async def check(self) -> BalanceReport:
        """
        Read current balances and build alerts.

        Raises:
            RuntimeError: If no server wallet is configured
        """
        wallet = self.chain.account_address
        if not wallet:
            raise RuntimeError("Server wallet not configured")

        dg_raw = int(await self.chain.read_contract(
            self.dg_token_address, ERC20_ABI, "balanceOf", [wallet]
        ))
        eth_raw = int(await self.chain.get_balance(wallet))

        alerts = [
            alert for alert in (
                evaluate_thresholds("dg", dg_raw, self.dg_thresholds, self.dg_decimals),
                evaluate_thresholds("eth", eth_raw, self.eth_thresholds, ETH_DECIMALS),
            )
            if alert is not None
        ]
        for alert in alerts:
            logger.warning(f"Server wallet alert [{alert.severity}]: {alert.message}")

        return BalanceReport(
            server_wallet=wallet,
            dg_raw=dg_raw,
            eth_raw=eth_raw,
            dg_decimals=self.dg_decimals,
            dg_thresholds=self.dg_thresholds,
            eth_thresholds=self.eth_thresholds,
            alerts=alerts,
        )
