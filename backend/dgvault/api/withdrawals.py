"""DG token withdrawal endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from dgvault.api.deps import (
    get_db,
    get_current_user,
    get_withdrawal_processor,
    enforce_withdrawal_rate_limit,
)
from dgvault.config import settings
from dgvault.models.user import User
from dgvault.schemas.withdrawal import (
    WithdrawalRequest,
    WithdrawalResponse,
    WithdrawalDetailResponse,
    WithdrawalHistoryResponse,
)
from dgvault.services.withdrawal_service import WithdrawalProcessor, WithdrawalSubmission

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/token", tags=["withdrawals"])


def _to_submission(request: WithdrawalRequest) -> WithdrawalSubmission:
    return WithdrawalSubmission(
        wallet_address=request.wallet_address,
        amount_dg=request.amount_dg,
        signature=request.signature,
        deadline=request.deadline,
        chain_id=request.chain_id if request.chain_id is not None else settings.CHAIN_ID,
    )


@router.post("/withdraw")
async def withdraw(
    request: WithdrawalRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(enforce_withdrawal_rate_limit),
    processor: WithdrawalProcessor = Depends(get_withdrawal_processor)
):
    """
    Withdraw XP as DG tokens to a linked wallet.

    Flow:
    1. Validate request fields and wallet ownership
    2. Check DG Nation membership (when configured)
    3. Verify the EIP-712 signature
    4. Return the prior result if this signature already completed
    5. Deduct XP and record a pending withdrawal in one transaction
    6. Transfer DG and mark the withdrawal completed or failed

    Raises:
        400: Invalid request, limit exceeded or insufficient balance
        403: Signature invalid or membership missing
        409: Same signature already in flight
        429: Rate limited
        502: Transfer failed (XP restored)
    """
    logger.info(
        f"User {current_user.id} requesting withdrawal: "
        f"{request.amount_dg} DG to {request.wallet_address}"
    )
    outcome = await processor.process(db, current_user, _to_submission(request))
    return outcome.to_dict()


@router.post("/withdrawals/{withdrawal_id}/retry")
async def retry_withdrawal(
    withdrawal_id: str,
    request: Optional[WithdrawalRequest] = Body(None),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(enforce_withdrawal_rate_limit),
    processor: WithdrawalProcessor = Depends(get_withdrawal_processor)
):
    """Retry a failed withdrawal; the body carries a new signature unless resubmitting."""
    submission = _to_submission(request) if request is not None else None
    outcome = await processor.retry(db, current_user, withdrawal_id, submission)
    return outcome.to_dict()


@router.get("/withdrawals", response_model=WithdrawalHistoryResponse)
async def list_withdrawals(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    processor: WithdrawalProcessor = Depends(get_withdrawal_processor)
):
    """Newest-first withdrawal history for the caller."""
    withdrawals, total = await processor.list_withdrawals(db, current_user.id, limit, offset)
    return WithdrawalHistoryResponse(
        withdrawals=[WithdrawalResponse.model_validate(w) for w in withdrawals],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/withdrawals/{withdrawal_id}", response_model=WithdrawalDetailResponse)
async def get_withdrawal(
    withdrawal_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    processor: WithdrawalProcessor = Depends(get_withdrawal_processor)
):
    withdrawal = await processor.get_withdrawal(db, current_user.id, withdrawal_id)
    return WithdrawalDetailResponse(withdrawal=WithdrawalResponse.model_validate(withdrawal))
