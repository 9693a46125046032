"""Withdrawal request and response schemas."""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field


class WithdrawalRequest(BaseModel):
    """Signed request to pay out XP as DG tokens."""

    wallet_address: str = Field(
        ...,
        alias="walletAddress",
        description="Linked wallet that signed the request and receives DG"
    )
    amount_dg: int = Field(..., alias="amountDG", description="Whole DG to withdraw")
    signature: str = Field(..., description="EIP-712 signature, 0x-prefixed hex")
    deadline: int = Field(..., description="Unix seconds after which the signature is void")
    chain_id: Optional[int] = Field(
        None,
        alias="chainId",
        description="Chain the signature was made for (defaults to the configured chain)"
    )

    class Config:
        populate_by_name = True


class WithdrawalResponse(BaseModel):
    """One withdrawal record."""

    id: str
    wallet_address: str
    amount_dg: int
    xp_balance_before: int
    chain_id: int
    attempt: int
    retry_of_id: str | None
    transaction_hash: str | None
    status: str
    error_message: str | None
    created_at: datetime
    completed_at: datetime | None

    class Config:
        from_attributes = True


class WithdrawalDetailResponse(BaseModel):
    success: bool = True
    withdrawal: WithdrawalResponse


class WithdrawalHistoryResponse(BaseModel):
    success: bool = True
    withdrawals: List[WithdrawalResponse]
    total: int
    limit: int
    offset: int
