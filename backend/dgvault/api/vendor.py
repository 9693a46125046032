"""Token vendor quote and approval planning endpoints."""

from fastapi import APIRouter, Depends, Query
from web3 import Web3

from dgvault.api.deps import get_chain
from dgvault.config import settings
from dgvault.core.errors import InvalidRequest
from dgvault.schemas.vendor import VendorQuoteRequest
from dgvault.services.approval_service import ApprovalOrchestrator
from dgvault.services.chain_service import ChainClient
from dgvault.services.vendor_service import QuoteDirection, vendor_quote_service

router = APIRouter(prefix="/vendor", tags=["vendor"])


@router.post("/quote")
async def quote(request: VendorQuoteRequest, chain: ChainClient = Depends(get_chain)):
    """
    Fee and output estimate for a vendor buy or sell.

    When ``owner`` is given on a sell, the quote is only returned once the
    owner's DG approvals cover the input; otherwise 412 APPROVAL_REQUIRED
    lists the missing steps.
    """
    result = vendor_quote_service.quote(request.direction, request.amount)

    if request.owner is not None and request.direction is QuoteDirection.SELL:
        if not Web3.is_address(request.owner):
            raise InvalidRequest("Invalid owner address")
        token = settings.dg_contracts_by_chain.get(settings.CHAIN_ID)
        if not token:
            raise InvalidRequest(f"DG token not configured for chain {settings.CHAIN_ID}")
        await ApprovalOrchestrator(chain).require_approvals(request.owner, token, result.amount_in)

    return result.to_dict()


@router.get("/approvals")
async def plan_approvals(
    owner: str = Query(..., description="Wallet that will sell the token"),
    token: str = Query(..., description="ERC20 being sold"),
    amount: str = Query(..., description="Swap input in smallest units"),
    chain: ChainClient = Depends(get_chain)
):
    """List the approval steps ``owner`` still has to sign before swapping."""
    if not Web3.is_address(owner) or not Web3.is_address(token):
        raise InvalidRequest("Invalid owner or token address")
    if not (amount.isascii() and amount.isdigit()):
        raise InvalidRequest("amount must be a non-negative integer in smallest units")

    steps = await ApprovalOrchestrator(chain).plan_approvals(owner, token, int(amount))
    return {
        "success": True,
        "ready": not steps,
        "steps": [step.to_dict() for step in steps],
    }
