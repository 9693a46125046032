"""Admin endpoints: server wallet health, withdrawal limits, swap approvals."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from dgvault.api.deps import get_db, get_chain, require_admin
from dgvault.config import settings
from dgvault.core.errors import InvalidRequest
from dgvault.models.user import User
from dgvault.schemas.config import WithdrawalLimitsUpdate
from dgvault.schemas.vendor import ApprovalExecuteRequest
from dgvault.services.approval_service import ApprovalOrchestrator
from dgvault.services.balance_monitor import BalanceMonitor
from dgvault.services.chain_service import ChainClient
from dgvault.services.config_service import get_withdrawal_limits, update_withdrawal_limits

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/server-wallet/balance")
async def server_wallet_balance(
    admin: User = Depends(require_admin),
    chain: ChainClient = Depends(get_chain)
):
    """
    DG and ETH balances of the withdrawal wallet with threshold alerts.

    Raises:
        500: Server wallet not configured or balance read failed
    """
    token_address = settings.dg_contracts_by_chain.get(settings.CHAIN_ID)
    if not token_address:
        raise InvalidRequest(f"DG token contract not configured for chainId {settings.CHAIN_ID}")

    try:
        report = await BalanceMonitor(chain, token_address).check()
    except RuntimeError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )
    return report.to_dict()


@router.get("/config/withdrawal-limits")
async def read_withdrawal_limits(
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin)
):
    limits = await get_withdrawal_limits(db)
    return {"success": True, "limits": limits.to_dict()}


@router.put("/config/withdrawal-limits")
async def write_withdrawal_limits(
    request: WithdrawalLimitsUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin)
):
    """Update min/max limits; every changed value is written to the audit log."""
    limits = await update_withdrawal_limits(db, request.min_amount, request.max_amount, admin.id)
    return {"success": True, "limits": limits.to_dict()}


@router.post("/approvals")
async def execute_approvals(
    request: ApprovalExecuteRequest,
    admin: User = Depends(require_admin),
    chain: ChainClient = Depends(get_chain)
):
    """
    Submit whichever ERC20 → Permit2 → router approvals the server wallet lacks.

    Safe to call again after a failure: it resumes at the missing step.
    """
    if not (request.amount.isascii() and request.amount.isdigit()):
        raise InvalidRequest("amount must be a non-negative integer in smallest units")

    logger.info(f"Admin {admin.id} ensuring swap approvals for {request.token_address}")
    executed = await ApprovalOrchestrator(chain).ensure_approvals(request.token_address, int(request.amount))
    return {"success": True, "executed": executed}
