"""Two-step allowance flow required before a Universal Router swap.

1. ERC20 ``approve(permit2, MAX_UINT256)`` by the token owner.
2. Permit2 ``approve(token, router, MAX_UINT160, MAX_UINT48)``.

Each step is one-time per token and spender, checked against fresh on-chain
state, and retried on its own by the caller. Nothing here touches the
database.
"""

import logging
import time
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Callable, List, Optional

from dgvault.config import settings
from dgvault.core.abis import ERC20_ABI, PERMIT2_ABI, MAX_UINT160, MAX_UINT256, MAX_UINT48
from dgvault.core.errors import ApprovalRequired, OnChainFailure
from dgvault.services.chain_service import ChainClient

logger = logging.getLogger(__name__)


class ApprovalStepKind(str, Enum):
    ERC20_TO_PERMIT2 = "approve-erc20"
    PERMIT2_TO_ROUTER = "approve-permit2"


@dataclass(frozen=True)
class ApprovalState:
    owner_address: str
    token_address: str
    spender_address: str
    allowance_amount: int
    expiration: Optional[int] = None  # None for plain ERC20 allowances
    nonce: Optional[int] = None

    def is_sufficient(self, required: int, now: float) -> bool:
        if self.allowance_amount < required:
            return False
        if self.expiration is not None and self.expiration <= now:
            return False
        return True


@dataclass(frozen=True)
class ApprovalStep:
    id: ApprovalStepKind
    title: str
    description: str
    state: ApprovalState

    def to_dict(self) -> dict:
        data = asdict(self)
        data["id"] = self.id.value
        # uint values exceed JSON-safe integers
        data["state"]["allowance_amount"] = str(self.state.allowance_amount)
        return data


_STEP_TEXT = {
    ApprovalStepKind.ERC20_TO_PERMIT2: (
        "Approve token for Permit2",
        "One-time ERC20 approval so Permit2 can access the tokens",
    ),
    ApprovalStepKind.PERMIT2_TO_ROUTER: (
        "Approve Universal Router via Permit2",
        "One-time Permit2 allowance for the Universal Router",
    ),
}


class ApprovalOrchestrator:
    """Checks and submits the ERC20 → Permit2 → router approvals."""

    def __init__(
        self,
        chain: ChainClient,
        permit2_address: Optional[str] = None,
        router_address: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.chain = chain
        self.permit2_address = permit2_address or settings.PERMIT2_ADDRESS
        self.router_address = router_address or settings.UNISWAP_UNIVERSAL_ROUTER
        self._clock = clock

    async def read_erc20_allowance(self, owner: str, token: str) -> ApprovalState:
        amount = await self.chain.read_contract(
            token, ERC20_ABI, "allowance", [owner, self.permit2_address]
        )
        return ApprovalState(
            owner_address=owner,
            token_address=token,
            spender_address=self.permit2_address,
            allowance_amount=int(amount or 0),
        )

    async def read_permit2_allowance(self, owner: str, token: str) -> ApprovalState:
        amount, expiration, nonce = await self.chain.read_contract(
            self.permit2_address, PERMIT2_ABI, "allowance", [owner, token, self.router_address]
        )
        return ApprovalState(
            owner_address=owner,
            token_address=token,
            spender_address=self.router_address,
            allowance_amount=int(amount),
            expiration=int(expiration),
            nonce=int(nonce),
        )

    async def _read_state(self, kind: ApprovalStepKind, owner: str, token: str) -> ApprovalState:
        if kind is ApprovalStepKind.ERC20_TO_PERMIT2:
            return await self.read_erc20_allowance(owner, token)
        return await self.read_permit2_allowance(owner, token)

    async def plan_approvals(self, owner: str, token: str, amount: int) -> List[ApprovalStep]:
        """
        List the approval steps still needed for ``owner`` to swap ``amount``.

        Args:
            owner: Token owner address
            token: ERC20 being sold
            amount: Swap input in smallest units

        Returns:
            Needed steps in execution order; empty when both approvals suffice
        """
        now = self._clock()
        steps = []
        for kind in ApprovalStepKind:
            state = await self._read_state(kind, owner, token)
            if state.is_sufficient(amount, now):
                logger.info(f"{kind.value} allowance sufficient for {owner}, skipping")
                continue
            title, description = _STEP_TEXT[kind]
            steps.append(ApprovalStep(kind, title, description, state))
        return steps

    async def require_approvals(self, owner: str, token: str, amount: int) -> None:
        """Raise ApprovalRequired unless the swap can execute right away."""
        steps = await self.plan_approvals(owner, token, amount)
        if steps:
            raise ApprovalRequired(
                "Token approvals must be completed before swapping",
                steps=[step.id.value for step in steps],
            )

    async def _confirm(self, tx_hash: str, label: str) -> None:
        receipt = await self.chain.wait_for_receipt(tx_hash)
        if receipt.get('status') != 1:
            raise OnChainFailure(f"{label} transaction reverted on-chain: {tx_hash}")

    async def _approve_erc20(self, token: str, amount: int) -> str:
        return await self.chain.write_contract(
            token, ERC20_ABI, "approve", [self.permit2_address, amount]
        )

    async def execute_step(self, kind: ApprovalStepKind, token: str) -> str:
        """
        Submit one approval from the server wallet and wait for it to mine.

        Returns:
            Transaction hash of the confirmed approval

        Raises:
            OnChainFailure: If submission fails or the transaction reverts
        """
        owner = self.chain.account_address
        if not owner:
            raise OnChainFailure("Server wallet not configured")

        try:
            if kind is ApprovalStepKind.PERMIT2_TO_ROUTER:
                tx_hash = await self.chain.write_contract(
                    self.permit2_address,
                    PERMIT2_ABI,
                    "approve",
                    [token, self.router_address, MAX_UINT160, MAX_UINT48],
                )
                await self._confirm(tx_hash, "Permit2 approval")
                return tx_hash

            try:
                tx_hash = await self._approve_erc20(token, MAX_UINT256)
            except Exception as e:
                # USDT-style tokens refuse non-zero to non-zero allowance changes
                current = await self.read_erc20_allowance(owner, token)
                if current.allowance_amount == 0:
                    raise
                logger.warning(
                    f"Direct approval failed for {token}; resetting allowance to 0 first: {e}"
                )
                reset_hash = await self._approve_erc20(token, 0)
                await self._confirm(reset_hash, "Allowance reset")
                tx_hash = await self._approve_erc20(token, MAX_UINT256)

            await self._confirm(tx_hash, "ERC20 approval")
            return tx_hash

        except OnChainFailure:
            raise
        except Exception as e:
            logger.error(f"Approval step {kind.value} failed for {token}: {e}", exc_info=True)
            raise OnChainFailure(f"Approval step {kind.value} failed: {e}")

    async def ensure_approvals(self, token: str, amount: int) -> List[dict]:
        """
        Bring the server wallet's approvals up to ``amount`` for ``token``.

        State is re-read before each step, so calling this again after a
        failure resumes at the step that failed.

        Returns:
            ``[{"step": ..., "transactionHash": ...}]`` for submitted steps
        """
        owner = self.chain.account_address
        if not owner:
            raise OnChainFailure("Server wallet not configured")

        executed = []
        for kind in ApprovalStepKind:
            state = await self._read_state(kind, owner, token)
            if state.is_sufficient(amount, self._clock()):
                continue
            tx_hash = await self.execute_step(kind, token)
            logger.info(f"Approval step {kind.value} confirmed for {token} (tx: {tx_hash})")
            executed.append({"step": kind.value, "transactionHash": tx_hash})
        return executed
